"""Console rendering of extraction results.

:func:`format_extraction_result` turns an
:class:`~textcal.models.events.ExtractionResult` into a readable report
(events, warnings, strategy and timings).  :func:`format_subject_range`
does the same for the subject-line parser.  The ``print_*`` wrappers
write to stdout.
"""

from __future__ import annotations

import sys

from textcal.models.events import Event, ExtractionResult, parse_iso
from textcal.subject import SubjectRange

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_BANNER_WIDTH = 60
_SEPARATOR = "=" * _BANNER_WIDTH
_DISPLAY_FORMAT = "%A %Y-%m-%d, %I:%M %p"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def format_extraction_result(result: ExtractionResult) -> str:
    """Render an :class:`ExtractionResult` as a multi-line report.

    Sections:

    - **Events** -- title, time range, source, confidence.
    - **Warnings** -- code and message for each warning.
    - **Summary** -- event count, degraded flag, strategy and timings
      when ``meta`` is present.

    Args:
        result: The result to format.

    Returns:
        A multi-line string ready for console display.
    """
    lines: list[str] = []

    _append_banner(lines)
    _append_events(lines, result)
    _append_warnings(lines, result)
    _append_summary(lines, result)
    lines.append(_SEPARATOR)

    return "\n".join(lines)


def print_extraction_result(result: ExtractionResult) -> None:
    """Format and print an :class:`ExtractionResult` to stdout."""
    sys.stdout.write(format_extraction_result(result) + "\n")


def format_subject_range(subject: str, parsed: SubjectRange | None) -> str:
    """Render the outcome of :func:`~textcal.subject.parse_subject_range`."""
    if parsed is None:
        return f'No time range found in "{subject}"'
    return f"{parsed.start_iso} -> {parsed.end_iso}"


# ---------------------------------------------------------------------------
# Internal formatters
# ---------------------------------------------------------------------------


def _append_banner(lines: list[str]) -> None:
    lines.append(_SEPARATOR)
    lines.append("  TEXT-TO-CALENDAR EXTRACTION")
    lines.append(_SEPARATOR)


def _append_events(lines: list[str], result: ExtractionResult) -> None:
    lines.append("")
    lines.append("--- EVENTS ---")

    if not result.events:
        lines.append("  No calendar events detected.")
        return

    for idx, event in enumerate(result.events, start=1):
        _append_event(lines, idx, event)


def _append_event(lines: list[str], idx: int, event: Event) -> None:
    lines.append("")
    lines.append(f"  Event {idx}: {event.title}")
    when = _format_event_time(event.start, event.end)
    if event.all_day:
        when += " (all day)"
    lines.append(f"    When: {when}")
    if event.timezone:
        lines.append(f"    Timezone: {event.timezone}")
    if event.location:
        lines.append(f"    Where: {event.location}")
    lines.append(f"    Source: {event.source}")
    lines.append(f"    Confidence: {event.confidence:.2f}")


def _append_warnings(lines: list[str], result: ExtractionResult) -> None:
    if not result.warnings:
        return
    lines.append("")
    lines.append("--- WARNINGS ---")
    for warning in result.warnings:
        lines.append(f"  [{warning.code.value}] {warning.message}")


def _append_summary(lines: list[str], result: ExtractionResult) -> None:
    lines.append("")
    lines.append("--- SUMMARY ---")
    lines.append(f"  Events: {len(result.events)}")
    lines.append(f"  Degraded: {'yes' if result.degraded else 'no'}")

    meta = result.meta
    if meta is None:
        return
    lines.append(f"  Strategy: {meta.strategy}")
    if meta.model:
        lines.append(f"  Model: {meta.model}")
    if meta.degraded_reason:
        lines.append(f"  Fallback reason: {meta.degraded_reason}")
    lines.append(f"  Duration: {meta.timings.total_ms}ms")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _format_event_time(start: str, end: str | None) -> str:
    """Format an event's start/end for display.

    Falls back to the raw strings when they do not parse.  When both fall
    on the same day only the end's time is shown.
    """
    start_dt = parse_iso(start)
    start_str = start_dt.strftime(_DISPLAY_FORMAT) if start_dt else start

    if end is None:
        return start_str

    end_dt = parse_iso(end)
    if end_dt is None:
        return f"{start_str} - {end}"
    if start_dt is not None and start_dt.date() == end_dt.date():
        return f"{start_str} - {end_dt.strftime('%I:%M %p')}"
    return f"{start_str} - {end_dt.strftime(_DISPLAY_FORMAT)}"
