"""Deterministic date/time recognition over free text.

Scheduling phrases are located with anchored patterns (month/day dates,
weekdays, ``today``/``tomorrow``, numeric and ISO dates, clock times and
compact ``3-4pm`` ranges).  Calendar dates are resolved with
:func:`dateparser.parse` using a forward bias from the reference instant;
weekdays and clock times are combined locally in the request timezone.
Relative periods (``in 3 days``, ``next week``) are found with
:func:`dateparser.search.search_dates` and re-parsed one phrase at a time.

Adjacent date and time pieces join into one moment; two moments joined by
a range separator become one hit with an end.  No validation happens here;
callers filter invalid hits.
"""

from __future__ import annotations

import calendar
import logging
import re
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta, timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import dateparser
from dateparser.search import search_dates

from textcal.models.events import DEFAULT_TIMEZONE, parse_iso

logger = logging.getLogger(__name__)

# Horizontal whitespace: pieces never join across a line break.
_H = r"[^\S\n]"

_MONTH = (
    r"(?P<month>jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?"
    r"|aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
    r"(?![a-z])\.?"
)
_WEEKDAY_NAMES = (
    r"mon(?:day)?|tue(?:s(?:day)?)?|wed(?:nesday)?|thu(?:r(?:s(?:day)?)?)?"
    r"|fri(?:day)?|sat(?:urday)?|sun(?:day)?"
)
_WEEKDAY = r"(?P<weekday>" + _WEEKDAY_NAMES + r")(?![a-z])\.?"
_LEADING_WEEKDAY = r"(?:\b(?:" + _WEEKDAY_NAMES + r")(?![a-z])\.?,?" + _H + r"+)?"
_ON = r"(?:\bon" + _H + r"+)?"
_YEAR = r"(?:,?" + _H + r"+(?P<year>\d{4})(?!\d))?"
_MERIDIEM = r"(?P<mer>[ap])\.?m\.?(?![a-z])"

_MONTH_DAY_RE = re.compile(
    _ON + _LEADING_WEEKDAY + r"\b" + _MONTH + _H + r"*"
    r"(?P<day>\d{1,2})(?:st|nd|rd|th)?(?!\d|:|" + _H + r"*[ap]\.?m(?![a-z]))" + _YEAR,
    re.IGNORECASE,
)
_DAY_MONTH_RE = re.compile(
    _ON + _LEADING_WEEKDAY + r"\b(?P<day>\d{1,2})(?:st|nd|rd|th)?" + _H + r"+"
    r"(?:of" + _H + r"+)?" + _MONTH + _YEAR,
    re.IGNORECASE,
)
_NUMERIC_DATE_RE = re.compile(_ON + r"\b(?P<date>\d{1,2}/\d{1,2}(?:/\d{2,4})?)(?![\d/])", re.IGNORECASE)
_ISO_RE = re.compile(
    _ON + r"\b(?P<iso>\d{4}-\d{2}-\d{2}"
    r"(?P<clock>[T ]\d{2}:\d{2}(?::\d{2})?(?:\.\d+)?(?:Z|[+-]\d{2}:?\d{2})?)?)(?![\d:])",
    re.IGNORECASE,
)
_WEEKDAY_RE = re.compile(
    _ON + r"\b(?:(?P<modifier>next|this)" + _H + r"+)?" + _WEEKDAY,
    re.IGNORECASE,
)
_RELATIVE_DAY_RE = re.compile(r"\b(?P<word>today|tonight|tomorrow|tmrw)\b", re.IGNORECASE)

_TIME_RANGE_RE = re.compile(
    r"\b(?P<h1>\d{1,2})(?::(?P<m1>[0-5]\d))?" + _H + r"*(?:-|–|—|to|until|till)" + _H + r"*"
    r"(?P<h2>\d{1,2})(?::(?P<m2>[0-5]\d))?" + _H + r"*" + _MERIDIEM,
    re.IGNORECASE,
)
_CLOCK_RE = re.compile(
    r"\b(?:at" + _H + r"+)?(?:(?P<named>noon|midnight)\b"
    r"|(?P<hour>\d{1,2})(?::(?P<minute>[0-5]\d))?" + _H + r"*" + _MERIDIEM
    + r"|(?P<h24>[01]?\d|2[0-3]):(?P<m24>[0-5]\d)(?![\d:]))",
    re.IGNORECASE,
)

# Relative periods are left to dateparser's search.
_PERIOD_RE = re.compile(
    r"\b(?:minutes?|hours?|days?|weeks?|weekend|months?|years?)\b", re.IGNORECASE
)

# Glue between a date piece and a clock piece that makes them one moment.
_DATE_TIME_GLUE_RE = re.compile(r"^" + _H + r"*,?" + _H + r"*(?:(?:at|from|@)" + _H + r"*)?$", re.I)
_TIME_DATE_GLUE_RE = re.compile(r"^" + _H + r"*,?" + _H + r"*(?:on" + _H + r"+)?$", re.I)

# Text between two moments that turns them into a single start/end range.
_RANGE_SEPARATOR_RE = re.compile(
    r"^" + _H + r"*(?:-|–|—|to|until|till|through|thru)" + _H + r"*$",
    re.IGNORECASE,
)

_WEEKDAY_INDEX = {name: idx for idx, name in enumerate(("mon", "tue", "wed", "thu", "fri", "sat", "sun"))}
_FULL_WEEKDAYS = {name.lower() for name in calendar.day_name}
_MONTH_INDEX = {
    name: idx
    for idx, name in enumerate(
        ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"),
        start=1,
    )
}
# Month words that are also everyday English; only a capitalised form counts.
_AMBIGUOUS_MONTHS = {"may", "march"}

# A date without a time of day is placed at noon.
_IMPLIED_CLOCK = time(12, 0)
_TONIGHT_CLOCK = time(20, 0)


@dataclass(frozen=True)
class DateHit:
    """A candidate date/time span found in text.

    Attributes:
        start_iso: ISO 8601 start in UTC (``Z`` suffix).
        end_iso: ISO 8601 end in UTC, or ``None`` for a point in time.
        offset: Character offset in the source text where the phrase began.
        phrase: The matched source phrase (including any range end).
    """

    start_iso: str
    end_iso: str | None
    offset: int
    phrase: str = ""


@dataclass(frozen=True)
class _Span:
    start: int
    stop: int
    day: date | None = None
    clock: time | None = None
    exact: datetime | None = None
    implied: time = _IMPLIED_CLOCK

    @property
    def has_date(self) -> bool:
        return self.day is not None or self.exact is not None


def parse_dates(
    text: str,
    reference_instant: str | None = None,
    timezone_name: str | None = None,
) -> list[DateHit]:
    """Find date/time phrases in *text*.

    Phrases resolve forward in time from the reference instant: a weekday
    means its next occurrence, a date without a year means the next such
    date, and a bare clock time that has already passed today means
    tomorrow.  A date without a time of day is placed at noon.  Two
    moments joined by a range separator (``"3pm - 4pm"``, ``"Sept 1 to
    Sept 5"``) become one hit; a time-only end takes the start's date and
    moves to the next day when it would not come after the start.

    Args:
        text: Text to scan, ideally already normalized.
        reference_instant: ISO 8601 anchor for relative phrases.  Defaults
            to the current time when ``None`` or unparseable.
        timezone_name: IANA zone that wall-clock times are read in.
            Defaults to :data:`~textcal.models.events.DEFAULT_TIMEZONE`.

    Returns:
        Hits in source order.
    """
    if not text:
        return []

    zone = _zone(timezone_name or DEFAULT_TIMEZONE)
    reference = parse_iso(reference_instant) if reference_instant else None
    if reference is None:
        reference = datetime.now(timezone.utc)
    elif reference.tzinfo is None:
        reference = reference.replace(tzinfo=zone)
    now = reference.astimezone(zone)

    settings: dict[str, Any] = {
        "PREFER_DATES_FROM": "future",
        "RELATIVE_BASE": now.replace(tzinfo=None),
        "TIMEZONE": zone.key,
        "RETURN_AS_TIMEZONE_AWARE": False,
    }

    spans = _select([], [(span,) for span in _date_spans(text, now, settings, zone)])
    spans = _select(spans, _time_range_spans(text))
    spans = _select(spans, [(span,) for span in _clock_spans(text)])
    spans = _select(spans, [(span,) for span in _period_spans(text, settings, zone)])
    spans.sort(key=lambda span: span.start)
    logger.debug("Recognised %d date/time piece(s)", len(spans))

    return _build_hits(text, _join_moments(text, spans), now, zone)


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to %s", name, DEFAULT_TIMEZONE)
        return ZoneInfo(DEFAULT_TIMEZONE)


# ---------------------------------------------------------------------------
# Piece recognition
# ---------------------------------------------------------------------------


def _date_spans(
    text: str,
    now: datetime,
    settings: dict[str, Any],
    zone: ZoneInfo,
) -> list[_Span]:
    spans: list[_Span] = []

    for pattern in (_MONTH_DAY_RE, _DAY_MONTH_RE):
        for match in pattern.finditer(text):
            token = match.group("month").rstrip(".")
            if token.lower() in _AMBIGUOUS_MONTHS and token.islower():
                continue
            phrase = f"{calendar.month_name[_MONTH_INDEX[token[:3].lower()]]} {match.group('day')}"
            if match.group("year"):
                phrase += f" {match.group('year')}"
            day = _parse_day(phrase, settings)
            if day is not None:
                spans.append(_Span(match.start(), match.end(), day=day))

    for match in _NUMERIC_DATE_RE.finditer(text):
        day = _parse_day(match.group("date"), settings)
        if day is not None:
            spans.append(_Span(match.start(), match.end(), day=day))

    for match in _ISO_RE.finditer(text):
        moment = parse_iso(match.group("iso"))
        if moment is None:
            continue
        if match.group("clock"):
            if moment.tzinfo is None:
                moment = moment.replace(tzinfo=zone)
            spans.append(_Span(match.start(), match.end(), exact=moment))
        else:
            spans.append(_Span(match.start(), match.end(), day=moment.date()))

    today = now.date()
    for match in _WEEKDAY_RE.finditer(text):
        token = match.group("weekday").rstrip(".")
        if token.lower() not in _FULL_WEEKDAYS and not token[0].isupper():
            continue
        day = _weekday_date(token, match.group("modifier"), today)
        spans.append(_Span(match.start(), match.end(), day=day))

    for match in _RELATIVE_DAY_RE.finditer(text):
        word = match.group("word").lower()
        if word in ("tomorrow", "tmrw"):
            spans.append(_Span(match.start(), match.end(), day=today + timedelta(days=1)))
        elif word == "tonight":
            spans.append(_Span(match.start(), match.end(), day=today, implied=_TONIGHT_CLOCK))
        else:
            spans.append(_Span(match.start(), match.end(), day=today))

    return spans


def _parse_day(phrase: str, settings: dict[str, Any]) -> date | None:
    parsed = dateparser.parse(phrase, languages=["en"], settings=settings)
    if parsed is None:
        logger.debug("dateparser rejected %r", phrase)
        return None
    return parsed.date()


def _weekday_date(token: str, modifier: str | None, today: date) -> date:
    """Resolve a weekday name forward from *today*.

    ``this <day>`` may be today; a plain weekday is always 1-7 days ahead;
    ``next <day>`` skips to the following week when the plain reading
    still falls in the current week.
    """
    target = _WEEKDAY_INDEX[token[:3].lower()]
    ahead = (target - today.weekday()) % 7
    modifier = (modifier or "").lower()
    if modifier == "this":
        return today + timedelta(days=ahead)
    if ahead == 0:
        ahead = 7
    if modifier == "next" and target > today.weekday():
        ahead += 7
    return today + timedelta(days=ahead)


def _clock(hour: int, minute: int, meridiem: str | None) -> time | None:
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12 + (12 if meridiem.lower() == "p" else 0)
    elif hour > 23:
        return None
    return time(hour, minute)


def _time_range_spans(text: str) -> list[tuple[_Span, ...]]:
    """Split compact ranges such as ``3-4pm`` into two clock pieces.

    The first time borrows the second's meridiem unless that would put it
    after the end (``11-1pm`` starts at 11am).
    """
    pairs: list[tuple[_Span, ...]] = []
    for match in _TIME_RANGE_RE.finditer(text):
        meridiem = match.group("mer")
        end = _clock(int(match.group("h2")), int(match.group("m2") or 0), meridiem)
        start = _clock(int(match.group("h1")), int(match.group("m1") or 0), meridiem)
        if start is None or end is None:
            continue
        if start > end:
            flipped = _clock(
                int(match.group("h1")),
                int(match.group("m1") or 0),
                "a" if meridiem.lower() == "p" else "p",
            )
            if flipped is not None and flipped <= end:
                start = flipped
        first_stop = match.end("m1") if match.group("m1") else match.end("h1")
        pairs.append(
            (
                _Span(match.start(), first_stop, clock=start),
                _Span(match.start("h2"), match.end(), clock=end),
            )
        )
    return pairs


def _clock_spans(text: str) -> list[_Span]:
    spans: list[_Span] = []
    for match in _CLOCK_RE.finditer(text):
        named = match.group("named")
        if named:
            clock: time | None = time(12, 0) if named.lower() == "noon" else time(0, 0)
        elif match.group("hour"):
            clock = _clock(int(match.group("hour")), int(match.group("minute") or 0), match.group("mer"))
        else:
            clock = _clock(int(match.group("h24")), int(match.group("m24")), None)
        if clock is not None:
            spans.append(_Span(match.start(), match.end(), clock=clock))
    return spans


def _period_spans(text: str, settings: dict[str, Any], zone: ZoneInfo) -> list[_Span]:
    """Relative periods (``in 3 days``) located by dateparser's search.

    Each matched phrase is re-parsed on its own; single words are ignored.
    """
    if not _PERIOD_RE.search(text):
        return []

    found = search_dates(text, languages=["en"], settings=settings) or []
    spans: list[_Span] = []
    cursor = 0
    for phrase, _ in found:
        offset = text.find(phrase, cursor)
        if offset < 0:
            logger.debug("Could not locate phrase %r in text, skipping", phrase)
            continue
        cursor = offset + len(phrase)
        if len(phrase.split()) < 2 or not _PERIOD_RE.search(phrase):
            continue
        moment = dateparser.parse(phrase, languages=["en"], settings=settings)
        if moment is None:
            continue
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=zone)
        spans.append(_Span(offset, offset + len(phrase), exact=moment))
    return spans


def _select(chosen: list[_Span], groups: list[tuple[_Span, ...]]) -> list[_Span]:
    """Add each group of pieces that does not overlap anything chosen so far.

    Earlier pieces win; at the same position the longer piece wins.
    """
    result = list(chosen)
    for group in sorted(groups, key=lambda g: (g[0].start, g[0].start - g[-1].stop)):
        if not any(a.start < b.stop and b.start < a.stop for a in group for b in result):
            result.extend(group)
    return result


# ---------------------------------------------------------------------------
# Moments and ranges
# ---------------------------------------------------------------------------


def _join_moments(text: str, spans: list[_Span]) -> list[_Span]:
    """Join a date-only piece and an adjacent time-only piece into one."""
    moments: list[_Span] = []
    idx = 0
    while idx < len(spans):
        current = spans[idx]
        following = spans[idx + 1] if idx + 1 < len(spans) else None
        if following is not None and current.exact is None and following.exact is None:
            gap = text[current.stop:following.start]
            date_then_time = (
                current.day is not None and current.clock is None
                and following.clock is not None and following.day is None
                and _DATE_TIME_GLUE_RE.match(gap)
            )
            time_then_date = (
                current.clock is not None and current.day is None
                and following.day is not None and following.clock is None
                and _TIME_DATE_GLUE_RE.match(gap)
            )
            if date_then_time or time_then_date:
                moments.append(
                    _Span(
                        current.start,
                        following.stop,
                        day=current.day or following.day,
                        clock=current.clock or following.clock,
                    )
                )
                idx += 2
                continue
        moments.append(current)
        idx += 1
    return moments


def _build_hits(text: str, moments: list[_Span], now: datetime, zone: ZoneInfo) -> list[DateHit]:
    hits: list[DateHit] = []
    idx = 0
    while idx < len(moments):
        current = moments[idx]
        following = moments[idx + 1] if idx + 1 < len(moments) else None

        if following is not None and _RANGE_SEPARATOR_RE.match(
            text[current.stop:following.start]
        ):
            if not current.has_date and following.has_date:
                current = replace(current, day=_local_day(following, zone))
            start = _resolve_start(current, now, zone)
            end = _resolve_end(following, start, zone)
            hits.append(
                DateHit(
                    start_iso=_to_utc_iso(start),
                    end_iso=_to_utc_iso(end) if end is not None else None,
                    offset=current.start,
                    phrase=text[current.start:following.stop],
                )
            )
            idx += 2
            continue

        hits.append(
            DateHit(
                start_iso=_to_utc_iso(_resolve_start(current, now, zone)),
                end_iso=None,
                offset=current.start,
                phrase=text[current.start:current.stop],
            )
        )
        idx += 1
    return hits


def _local_day(span: _Span, zone: ZoneInfo) -> date | None:
    if span.exact is not None:
        return span.exact.astimezone(zone).date()
    return span.day


def _resolve_start(span: _Span, now: datetime, zone: ZoneInfo) -> datetime:
    if span.exact is not None:
        return span.exact
    day = span.day if span.day is not None else now.date()
    moment = datetime.combine(day, span.clock or span.implied, tzinfo=zone)
    if span.day is None and moment < now:
        # A bare time that already passed today means tomorrow.
        moment += timedelta(days=1)
    return moment


def _resolve_end(span: _Span, start: datetime, zone: ZoneInfo) -> datetime | None:
    if span.exact is not None:
        end = span.exact
    else:
        day = span.day if span.day is not None else start.astimezone(zone).date()
        end = datetime.combine(day, span.clock or span.implied, tzinfo=zone)
        if span.day is None and end <= start:
            # Overnight range: "11pm - 1am" ends the next day.
            end += timedelta(days=1)
    if end < start:
        logger.debug("Range end %s precedes start %s, keeping start only", end, start)
        return None
    return end


def _to_utc_iso(moment: datetime) -> str:
    return (
        moment.astimezone(timezone.utc)
        .replace(microsecond=0)
        .isoformat()
        .replace("+00:00", "Z")
    )
