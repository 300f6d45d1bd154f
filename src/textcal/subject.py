"""Time-range parsing for calendar-style subject lines.

Handles subjects such as::

    Friday, August 29, 01:00PM - 02:00PM (EDT - America/Port-au-Prince)
    Fri Aug 29 1:00 PM - 2:00 PM
    August 29, 01:00 PM–02:00 PM

and returns local (offset-free) ISO strings.  A non-match is signalled by
``None``, never by an exception.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta

logger = logging.getLogger(__name__)

_DASHES_RE = re.compile("[–—]")

_TIME = r"(\d{1,2}:\d{2}\s*[AP]M)"

_WITH_WEEKDAY_RE = re.compile(
    r"(?:\b(?:Mon|Tue|Wed|Thu|Fri|Sat|Sun)[a-z]*,\s+)?"
    r"([A-Za-z]+)\s+(\d{1,2}),?\s+" + _TIME + r"\s*-\s*" + _TIME + r"\b",
    re.IGNORECASE,
)
_WITHOUT_WEEKDAY_RE = re.compile(
    r"\b([A-Za-z]+)\s+(\d{1,2}),?\s+" + _TIME + r"\s*-\s*" + _TIME + r"\b",
    re.IGNORECASE,
)

_MONTH_FORMATS = ("%B", "%b")
_DEFAULT_DURATION = timedelta(hours=1)
_OUTPUT_FORMAT = "%Y-%m-%dT%H:%M:00"


@dataclass(frozen=True)
class SubjectRange:
    """A local start/end pair parsed from a subject line.

    Attributes:
        start_iso: ``YYYY-MM-DDTHH:MM:00`` local start.
        end_iso: ``YYYY-MM-DDTHH:MM:00`` local end (after start).
    """

    start_iso: str
    end_iso: str


def parse_subject_range(subject: str, now: datetime | None = None) -> SubjectRange | None:
    """Extract a month/day and start/end time range from *subject*.

    The year is taken from *now*.  If the start is already in the past it
    rolls forward exactly one year, with Feb 29 becoming Feb 28 when the
    following year is not a leap year.  An end that is not strictly after the
    start becomes ``start + 1 hour``.

    Args:
        subject: The subject line.
        now: Reference instant (defaults to the current local time).  An
            aware value is converted to local wall-clock time.

    Returns:
        A :class:`SubjectRange`, or ``None`` when nothing matches or a
        component does not form a valid date.
    """
    if not subject:
        return None
    if now is None:
        now = datetime.now()
    elif now.tzinfo is not None:
        now = now.astimezone().replace(tzinfo=None)

    text = _DASHES_RE.sub("-", subject)
    match = _WITH_WEEKDAY_RE.search(text) or _WITHOUT_WEEKDAY_RE.search(text)
    if match is None:
        return None

    month, day, start_text, end_text = match.groups()

    start = _build(month, day, start_text, now.year)
    if start is None:
        return None
    end = _build(month, day, end_text, now.year)
    if start < now:
        start = _next_year(start)
        end = _next_year(end) if end is not None else None

    if end is None or end <= start:
        end = start + _DEFAULT_DURATION

    return SubjectRange(
        start_iso=start.strftime(_OUTPUT_FORMAT),
        end_iso=end.strftime(_OUTPUT_FORMAT),
    )


def _build(month: str, day: str, clock: str, year: int) -> datetime | None:
    clock = re.sub(r"\s+", "", clock).upper()
    for month_format in _MONTH_FORMATS:
        try:
            return datetime.strptime(
                f"{month} {day} {year} {clock}",
                f"{month_format} %d %Y %I:%M%p",
            )
        except ValueError:
            continue
    logger.debug("Subject components do not form a date: %s %s %s", month, day, clock)
    return None


def _next_year(moment: datetime) -> datetime:
    try:
        return moment.replace(year=moment.year + 1)
    except ValueError:
        # Feb 29 lands on Feb 28 in a non-leap year.
        return moment.replace(year=moment.year + 1, day=28)
