"""Pydantic models for extracted calendar events and the result envelope.

Defines the data types shared by every extraction path:

- :class:`Event` -- a single validated calendar event.
- :class:`ExtractionWarning` -- an advisory, non-fatal warning with a
  machine-readable :class:`WarningCode`.
- :class:`ExtractionMeta` -- execution metadata (strategy, timings).
- :class:`ExtractionResult` -- the response envelope returned by every
  extractor.
- :class:`ExtractionRequest` -- the request contract consumed by the
  pipeline.

All models are frozen; wire names are camelCase (``allDay``,
``referenceDate``) through field aliases.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_TIMEZONE = "America/Toronto"
UNTITLED = "Untitled"
MAX_TITLE_LENGTH = 200

EventSource = Literal["rules", "llm"]
Strategy = Literal[
    "llm-first",
    "rules-first",
    "llm-then-rules",
    "rules-then-llm",
    "rules-only",
    "llm-only",
]


# ---------------------------------------------------------------------------
# ISO 8601 helpers
# ---------------------------------------------------------------------------


def parse_iso(value: str | None) -> datetime | None:
    """Parse an ISO 8601 string, returning ``None`` when it is not parseable.

    Accepts a trailing ``Z`` as UTC.  Empty and ``None`` inputs yield
    ``None``.
    """
    if not value or not isinstance(value, str):
        return None
    candidate = value.strip()
    if candidate.endswith(("Z", "z")):
        candidate = candidate[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        return None


def _comparable(moment: datetime) -> datetime:
    # Naive timestamps are compared as UTC so mixed inputs never raise.
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def is_ordered(start: str, end: str) -> bool:
    """Return ``True`` when both strings parse and ``end >= start``."""
    start_dt = parse_iso(start)
    end_dt = parse_iso(end)
    if start_dt is None or end_dt is None:
        return False
    return _comparable(end_dt) >= _comparable(start_dt)


# ---------------------------------------------------------------------------
# Warnings
# ---------------------------------------------------------------------------


class WarningCode(str, Enum):
    """Machine-readable warning codes that callers can group on."""

    RELATIVE_DATE = "RELATIVE_DATE"
    TIMEZONE_ASSUMED = "TIMEZONE_ASSUMED"
    END_BEFORE_START_DROPPED = "END_BEFORE_START_DROPPED"
    BAD_ISO_DROPPED = "BAD_ISO_DROPPED"
    EMPTY_TEXT = "EMPTY_TEXT"
    LLM_TIMEOUT = "LLM_TIMEOUT"
    LLM_ABORTED = "LLM_ABORTED"
    LLM_ERROR = "LLM_ERROR"
    LLM_OK = "LLM_OK"
    LLM_BAD_JSON = "LLM_BAD_JSON"
    LLM_WARNING = "LLM_WARNING"
    LOW_CONFIDENCE = "LOW_CONFIDENCE"
    AMBIGUOUS_TIME = "AMBIGUOUS_TIME"
    NO_ACTIONABLE_INTENT = "NO_ACTIONABLE_INTENT"
    NO_RETURN_EVENT = "NO_RETURN_EVENT"
    OTHER = "OTHER"


class ExtractionWarning(BaseModel):
    """A structured, advisory warning attached to an extraction result.

    Attributes:
        code: Machine-readable :class:`WarningCode`.
        message: Human-readable description.
        context: Optional debugging context (budget, offsets, ...).
    """

    model_config = ConfigDict(frozen=True)

    code: WarningCode
    message: str
    context: dict[str, Any] | None = None


# ---------------------------------------------------------------------------
# Event
# ---------------------------------------------------------------------------


class Event(BaseModel):
    """A single calendar event produced by either extraction path.

    Attributes:
        title: Display title, trimmed and capped at
            :data:`MAX_TITLE_LENGTH` characters.  Defaults to
            ``"Untitled"`` when empty.
        start: ISO 8601 start timestamp (must be parseable).
        end: ISO 8601 end timestamp, or ``None``.  When present it is
            never before ``start``.
        all_day: Whether the time of day is meaningless (``allDay``).
        timezone: IANA zone carried through from the request.
        source: Which path produced the event (``"rules"`` or ``"llm"``).
        confidence: Trust score in ``[0, 1]``.
        location: Optional pass-through location.
        description: Optional pass-through description.
        url: Optional pass-through link.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str = UNTITLED
    start: str
    end: str | None = None
    all_day: bool | None = Field(default=None, alias="allDay")
    timezone: str | None = None
    source: EventSource
    confidence: float = Field(ge=0.0, le=1.0)
    location: str | None = None
    description: str | None = None
    url: str | None = None

    @field_validator("title", mode="before")
    @classmethod
    def _clean_title(cls, value: Any) -> str:
        title = str(value or "").strip()
        if not title:
            return UNTITLED
        return title[:MAX_TITLE_LENGTH]

    @field_validator("start")
    @classmethod
    def _check_start(cls, value: str) -> str:
        if parse_iso(value) is None:
            raise ValueError(f"start is not a valid ISO 8601 timestamp: {value!r}")
        return value

    @model_validator(mode="after")
    def _check_range(self) -> Event:
        if self.end is not None and not is_ordered(self.start, self.end):
            raise ValueError(
                f"end {self.end!r} is not a valid timestamp at or after start {self.start!r}"
            )
        return self


# ---------------------------------------------------------------------------
# Result envelope
# ---------------------------------------------------------------------------


class ExtractionTimings(BaseModel):
    """Wall-clock timings in milliseconds."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    total_ms: int = Field(alias="totalMs")
    llm_ms: int | None = Field(default=None, alias="llmMs")
    rules_ms: int | None = Field(default=None, alias="rulesMs")


class ExtractionMeta(BaseModel):
    """Execution metadata for logs and UI badges."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    strategy: Strategy
    timings: ExtractionTimings
    model: str | None = None
    correlation_id: str | None = Field(default=None, alias="correlationId")
    degraded_reason: str | None = Field(default=None, alias="degradedReason")


class ExtractionResult(BaseModel):
    """Response envelope returned by every extractor.

    Attributes:
        events: Validated events (may be empty).
        degraded: ``True`` when the result is not the happy-path output.
        warnings: Advisory warnings accumulated during the request.
        meta: Optional execution metadata.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    events: list[Event] = Field(default_factory=list)
    degraded: bool = False
    warnings: list[ExtractionWarning] | None = None
    meta: ExtractionMeta | None = None

    @classmethod
    def empty(
        cls,
        *warnings: ExtractionWarning,
        degraded: bool,
    ) -> ExtractionResult:
        """Build an event-less result carrying *warnings*."""
        return cls(events=[], degraded=degraded, warnings=list(warnings) or None)

    @property
    def warning_codes(self) -> list[WarningCode]:
        """Codes of all attached warnings, in order."""
        return [w.code for w in self.warnings or []]

    def to_wire(self) -> dict[str, Any]:
        """Serialise to the camelCase JSON-compatible wire shape."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


class ExtractionRequest(BaseModel):
    """Inbound extraction request.

    Attributes:
        text: Raw text to extract events from.  Must be non-empty when
            provided.
        file_id: Reserved reference to an uploaded file (``fileId``).
            Accepted for contract compatibility but unused by the core.
        timezone: IANA timezone (defaults to ``"America/Toronto"``).
        reference_date: ISO 8601 anchor for relative phrases
            (``referenceDate``).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    text: str | None = Field(default=None, min_length=1)
    file_id: UUID | None = Field(default=None, alias="fileId")
    timezone: str = DEFAULT_TIMEZONE
    reference_date: str | None = Field(default=None, alias="referenceDate")

    @field_validator("reference_date")
    @classmethod
    def _check_reference_date(cls, value: str | None) -> str | None:
        if value is not None and parse_iso(value) is None:
            raise ValueError(f"referenceDate is not an ISO 8601 datetime: {value!r}")
        return value

    @model_validator(mode="after")
    def _require_source(self) -> ExtractionRequest:
        if not self.text and self.file_id is None:
            raise ValueError("Provide `text` or `fileId`")
        return self

    @property
    def stripped_text(self) -> str:
        """The request text with surrounding whitespace removed."""
        return (self.text or "").strip()


def make_warning(
    code: WarningCode,
    message: str,
    **context: Any,
) -> ExtractionWarning:
    """Convenience constructor for :class:`ExtractionWarning`."""
    return ExtractionWarning(code=code, message=message, context=context or None)
