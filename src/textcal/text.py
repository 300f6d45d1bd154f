"""Text normalization applied before any date or LLM parsing."""

from __future__ import annotations

import re

_LINE_ENDING_RE = re.compile(r"\r\n?")

# Tabs expand to a fixed run so column-based heuristics stay stable.
_TAB_REPLACEMENT = "  "


def normalize_text(text: str) -> str:
    """Canonicalise raw input text.

    Converts ``\\r\\n`` and bare ``\\r`` line endings to ``\\n``, replaces
    each tab with two spaces, and strips leading/trailing whitespace.
    The function is total and idempotent; empty input yields ``""``.

    Args:
        text: Raw text as pasted or extracted from an email body.

    Returns:
        The normalized text.
    """
    return _LINE_ENDING_RE.sub("\n", text).replace("\t", _TAB_REPLACEMENT).strip()
