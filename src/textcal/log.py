"""Logging setup for textcal.

One pipe-separated format on stderr with ISO 8601 timestamps, plus a
helper for dumping long model output at DEBUG without flooding the log.
"""

from __future__ import annotations

import logging
import sys

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Marks the handler we attach so repeated setup calls stay idempotent.
_HANDLER_ATTR = "_textcal_log_handler"

DEFAULT_CHUNK_CHARS = 1200


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger with the textcal formatter.

    Calling this function multiple times is safe; it updates the level of
    the existing handler instead of adding another.

    Args:
        level: A standard logging level name (e.g. ``"DEBUG"``).

    Raises:
        ValueError: If *level* is not a recognised logging level string.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level!r}")

    root = logging.getLogger()
    root.setLevel(numeric_level)

    for handler in root.handlers:
        if getattr(handler, _HANDLER_ATTR, False):
            handler.setLevel(numeric_level)
            return

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
    setattr(handler, _HANDLER_ATTR, True)
    root.addHandler(handler)


def truncate(text: str, max_chars: int = DEFAULT_CHUNK_CHARS) -> str:
    """Cut *text* to *max_chars*, noting how much was dropped."""
    if len(text) <= max_chars:
        return text
    return f"{text[:max_chars]} ...(+{len(text) - max_chars} chars truncated)"


def log_chunk(
    logger: logging.Logger,
    label: str,
    text: str | None,
    max_chars: int = DEFAULT_CHUNK_CHARS,
) -> None:
    """Log a possibly long blob at DEBUG, truncated to *max_chars*.

    Nothing is formatted unless DEBUG is enabled for *logger*.

    Args:
        logger: Logger to write to.
        label: Short description printed before the blob.
        text: The blob; ``None`` is logged as an empty string.
        max_chars: Maximum number of characters to keep.
    """
    if not logger.isEnabledFor(logging.DEBUG):
        return
    logger.debug("%s:\n%s", label, truncate(text or "", max_chars))
