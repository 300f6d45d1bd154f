"""Entry point for ``python -m textcal``.

Provides a CLI over the extraction core.  Uses stdlib :mod:`argparse`
for argument parsing.

Subcommands:
    extract -- Default. Extract events from a text file (``-`` for stdin).
    subject -- Parse a time range from a subject line.

Exit codes:
    0 -- Completed (including zero events or a degraded result).
    1 -- An error occurred (file not found, bad input, config error).
    2 -- Argument parsing error (handled by argparse).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from textcal.config import ConfigError, Settings, load_settings
from textcal.demo_output import format_subject_range, print_extraction_result
from textcal.llm import GeminiClient, extract_llm
from textcal.log import setup_logging
from textcal.models.events import ExtractionRequest, ExtractionResult
from textcal.rules import extract_rules
from textcal.selector import extract_smart
from textcal.subject import parse_subject_range

_STRATEGIES = ("smart", "rules", "llm")


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="textcal",
        description="Extract calendar events from unstructured text.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # --- "extract" subcommand (default) -------------------------------
    extract_parser = subparsers.add_parser(
        "extract",
        help="Extract calendar events from a text file.",
    )
    extract_parser.add_argument(
        "source",
        type=str,
        help="Path to a text file, or '-' to read stdin.",
    )
    extract_parser.add_argument(
        "--timezone",
        type=str,
        default=None,
        help="IANA timezone (defaults to TIMEZONE from config).",
    )
    extract_parser.add_argument(
        "--reference-date",
        type=str,
        default=None,
        help="ISO 8601 anchor for relative dates (defaults to now).",
    )
    extract_parser.add_argument(
        "--strategy",
        choices=_STRATEGIES,
        default="smart",
        help="smart: LLM with rule fallback (default); rules or llm: one path only.",
    )
    extract_parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Print the result envelope as JSON.",
    )
    extract_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug-level logging.",
    )

    # --- "subject" subcommand -----------------------------------------
    subject_parser = subparsers.add_parser(
        "subject",
        help="Parse a 'Month Day, H:MMam - H:MMpm' range from a subject line.",
    )
    subject_parser.add_argument("subject", type=str, help="The subject line.")
    subject_parser.add_argument(
        "--now",
        type=str,
        default=None,
        help="ISO 8601 reference instant (defaults to now).",
    )
    subject_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug-level logging.",
    )

    return parser


def _resolve_command(
    parser: argparse.ArgumentParser,
    argv: list[str],
) -> argparse.Namespace:
    """Parse *argv*, routing to ``extract`` when no subcommand is given."""
    known_subcommands = {"extract", "subject"}
    if not argv:
        argv = ["extract"]
    elif argv[0] in {"-h", "--help"}:
        pass
    elif argv[0] not in known_subcommands:
        argv = ["extract", *argv]

    return parser.parse_args(argv)


def _read_source(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def _handle_extract(args: argparse.Namespace) -> int:
    """Execute the ``extract`` subcommand."""
    try:
        text = _read_source(args.source)
    except FileNotFoundError:
        print(f"Error: File not found: {args.source}", file=sys.stderr)
        return 1
    except (IsADirectoryError, PermissionError, UnicodeDecodeError) as exc:
        print(f"Error: Cannot read {args.source}: {exc}", file=sys.stderr)
        return 1

    try:
        settings = load_settings(require_llm=args.strategy != "rules")
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if not args.verbose:
        try:
            setup_logging(settings.log_level)
        except ValueError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1

    try:
        request = ExtractionRequest(
            text=text or None,
            timezone=args.timezone or settings.timezone,
            reference_date=args.reference_date,
        )
    except ValidationError as exc:
        print(f"Error: Invalid input: {exc}", file=sys.stderr)
        return 1

    result = asyncio.run(_run_strategy(args.strategy, request, settings))

    if args.json:
        print(json.dumps({"ok": True, "data": result.to_wire()}, indent=2))
    else:
        print_extraction_result(result)
    return 0


async def _run_strategy(
    strategy: str,
    request: ExtractionRequest,
    settings: Settings,
) -> ExtractionResult:
    if strategy == "rules":
        return extract_rules(request.text, request.timezone, request.reference_date)

    client = GeminiClient(api_key=settings.gemini_api_key, model=settings.llm_model)
    if strategy == "llm":
        return await extract_llm(
            request.text,
            client,
            timezone=request.timezone,
            reference_date=request.reference_date,
            budget_ms=settings.llm_budget_ms,
            model=settings.llm_model,
        )
    return await extract_smart(
        request.text,
        client,
        timezone=request.timezone,
        reference_date=request.reference_date,
        budget_ms=settings.llm_budget_ms,
        model=settings.llm_model,
    )


def _handle_subject(args: argparse.Namespace) -> int:
    """Execute the ``subject`` subcommand."""
    now = None
    if args.now is not None:
        try:
            now = datetime.fromisoformat(args.now)
        except ValueError:
            print(f"Error: --now is not an ISO 8601 datetime: {args.now}", file=sys.stderr)
            return 1

    parsed = parse_subject_range(args.subject, now=now)
    print(format_subject_range(args.subject, parsed))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Run the textcal CLI.

    Args:
        argv: Command-line arguments.  Defaults to ``sys.argv[1:]``.

    Returns:
        Exit code: ``0`` on success, ``1`` on error.
    """
    parser = build_parser()
    args = _resolve_command(parser, argv if argv is not None else sys.argv[1:])

    setup_logging("DEBUG" if getattr(args, "verbose", False) else "INFO")

    if args.command == "subject":
        return _handle_subject(args)
    return _handle_extract(args)


if __name__ == "__main__":
    raise SystemExit(main())
