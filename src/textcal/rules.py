"""Rule-based event extraction (no AI).

Finds date/time phrases with :func:`~textcal.dates.parse_dates` and turns
each surviving hit into an :class:`~textcal.models.events.Event` whose
title is the text line leading up to the phrase.
"""

from __future__ import annotations

import logging
import re

from textcal.dates import DateHit, parse_dates
from textcal.models.events import (
    DEFAULT_TIMEZONE,
    UNTITLED,
    Event,
    ExtractionResult,
    WarningCode,
    is_ordered,
    make_warning,
    parse_iso,
)
from textcal.text import normalize_text

logger = logging.getLogger(__name__)

RULES_CONFIDENCE = 0.75

_BULLET_RE = re.compile(r"^[-•*\s]+")


def extract_rules(
    text: str | None,
    timezone: str = DEFAULT_TIMEZONE,
    reference_date: str | None = None,
) -> ExtractionResult:
    """Extract events from *text* using deterministic rules.

    Empty input is a legitimate "nothing to extract" outcome, not an error:
    the result is empty, not degraded, and carries an ``EMPTY_TEXT``
    warning.  This path never marks itself degraded.

    Args:
        text: Raw input text.
        timezone: IANA timezone stamped on every event and used to read
            bare wall-clock times.
        reference_date: ISO 8601 anchor for relative phrases.

    Returns:
        An :class:`ExtractionResult` with ``source="rules"`` events.
    """
    raw = (text or "").strip()
    if not raw:
        return ExtractionResult.empty(
            make_warning(WarningCode.EMPTY_TEXT, "empty text"),
            degraded=False,
        )

    normalized = normalize_text(raw)
    hits = parse_dates(normalized, reference_date, timezone)

    events: list[Event] = []
    for hit in hits:
        event = _event_from_hit(normalized, hit, timezone)
        if event is not None:
            events.append(event)

    logger.info("Rule extraction: %d hit(s), %d event(s)", len(hits), len(events))
    return ExtractionResult(events=events, degraded=False)


def guess_title_near(text: str, offset: int) -> str:
    """Return the line leading up to *offset*, stripped of bullets.

    Takes everything before *offset*, keeps the last newline-delimited
    segment, trims it, and removes leading dashes, bullets and asterisks.
    Falls back to ``"Untitled"`` when nothing is left.
    """
    line = text[:offset].split("\n")[-1]
    title = _BULLET_RE.sub("", line.strip())
    return title or UNTITLED


def _event_from_hit(text: str, hit: DateHit, timezone: str) -> Event | None:
    if parse_iso(hit.start_iso) is None:
        logger.debug("Dropping hit with unparseable start %r", hit.start_iso)
        return None
    if hit.end_iso is not None:
        if parse_iso(hit.end_iso) is None:
            logger.debug("Dropping hit with unparseable end %r", hit.end_iso)
            return None
        if not is_ordered(hit.start_iso, hit.end_iso):
            logger.debug("Dropping hit whose end precedes start: %r", hit)
            return None

    return Event(
        title=guess_title_near(text, hit.offset),
        start=hit.start_iso,
        end=hit.end_iso,
        timezone=timezone,
        source="rules",
        confidence=RULES_CONFIDENCE,
    )
