"""Tests for the event, warning and envelope models."""

from __future__ import annotations

import uuid

import pytest
from pydantic import ValidationError

from textcal.models.events import (
    MAX_TITLE_LENGTH,
    Event,
    ExtractionMeta,
    ExtractionRequest,
    ExtractionResult,
    ExtractionTimings,
    WarningCode,
    is_ordered,
    make_warning,
    parse_iso,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _event(**overrides: object) -> Event:
    data: dict[str, object] = {
        "title": "Sync",
        "start": "2025-08-29T17:00:00Z",
        "source": "llm",
        "confidence": 0.9,
    }
    data.update(overrides)
    return Event(**data)


# ---------------------------------------------------------------------------
# ISO helpers
# ---------------------------------------------------------------------------


class TestIsoHelpers:
    """Tests for :func:`parse_iso` and :func:`is_ordered`."""

    def test_parse_iso_accepts_z_suffix(self) -> None:
        parsed = parse_iso("2025-08-29T17:00:00Z")
        assert parsed is not None
        assert parsed.utcoffset().total_seconds() == 0

    def test_parse_iso_rejects_garbage(self) -> None:
        assert parse_iso("next tuesday") is None
        assert parse_iso("") is None
        assert parse_iso(None) is None

    def test_is_ordered(self) -> None:
        assert is_ordered("2025-08-29T17:00:00Z", "2025-08-29T18:00:00Z")
        assert is_ordered("2025-08-29T17:00:00Z", "2025-08-29T17:00:00Z")
        assert not is_ordered("2025-08-29T18:00:00Z", "2025-08-29T17:00:00Z")

    def test_is_ordered_across_offsets(self) -> None:
        """13:00-04:00 is the same instant as 17:00Z."""
        assert is_ordered("2025-08-29T17:00:00Z", "2025-08-29T13:30:00-04:00")

    def test_is_ordered_unparseable(self) -> None:
        assert not is_ordered("2025-08-29T17:00:00Z", "later")


# ---------------------------------------------------------------------------
# Event
# ---------------------------------------------------------------------------


class TestEvent:
    """Tests for :class:`Event` validation."""

    def test_valid_event(self) -> None:
        event = _event(end="2025-08-29T18:00:00Z")
        assert event.end == "2025-08-29T18:00:00Z"

    def test_blank_title_becomes_untitled(self) -> None:
        assert _event(title="   ").title == "Untitled"
        assert _event(title=None).title == "Untitled"

    def test_title_trimmed_and_capped(self) -> None:
        event = _event(title="  " + "x" * (MAX_TITLE_LENGTH + 50) + "  ")
        assert event.title == "x" * MAX_TITLE_LENGTH

    def test_bad_start_rejected(self) -> None:
        with pytest.raises(ValidationError, match="start"):
            _event(start="tomorrow-ish")

    def test_end_before_start_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _event(end="2025-08-29T16:00:00Z")

    def test_confidence_bounds(self) -> None:
        with pytest.raises(ValidationError):
            _event(confidence=1.5)
        with pytest.raises(ValidationError):
            _event(confidence=-0.1)

    def test_source_restricted(self) -> None:
        with pytest.raises(ValidationError):
            _event(source="guess")

    def test_all_day_alias(self) -> None:
        """Both ``allDay`` and ``all_day`` populate the field."""
        assert Event.model_validate(
            {"start": "2025-08-29", "allDay": True, "source": "llm", "confidence": 0.7}
        ).all_day is True
        assert _event(all_day=True).all_day is True

    def test_event_is_frozen(self) -> None:
        event = _event()
        with pytest.raises(ValidationError):
            event.title = "changed"  # type: ignore[misc]


# ---------------------------------------------------------------------------
# Result envelope
# ---------------------------------------------------------------------------


class TestExtractionResult:
    """Tests for :class:`ExtractionResult` and its wire shape."""

    def test_empty_without_warnings(self) -> None:
        result = ExtractionResult.empty(degraded=False)
        assert result.events == []
        assert result.warnings is None

    def test_empty_with_warning(self) -> None:
        result = ExtractionResult.empty(
            make_warning(WarningCode.LLM_TIMEOUT, "llm timeout after 1000ms", budget_ms=1000),
            degraded=True,
        )
        assert result.degraded is True
        assert result.warning_codes == [WarningCode.LLM_TIMEOUT]
        assert result.warnings[0].context == {"budget_ms": 1000}

    def test_make_warning_without_context(self) -> None:
        assert make_warning(WarningCode.OTHER, "x").context is None

    def test_to_wire_uses_camel_case_and_drops_none(self) -> None:
        result = ExtractionResult(
            events=[_event(all_day=False)],
            degraded=False,
            meta=ExtractionMeta(
                strategy="llm-first",
                timings=ExtractionTimings(total_ms=12, llm_ms=10),
                correlation_id="1.2.3.4",
            ),
        )

        wire = result.to_wire()

        assert wire["events"][0]["allDay"] is False
        assert "end" not in wire["events"][0]
        assert "warnings" not in wire
        assert wire["meta"]["timings"] == {"totalMs": 12, "llmMs": 10}
        assert wire["meta"]["correlationId"] == "1.2.3.4"

    def test_warning_code_serializes_as_string(self) -> None:
        result = ExtractionResult.empty(
            make_warning(WarningCode.EMPTY_TEXT, "empty text"), degraded=False
        )
        assert result.to_wire()["warnings"] == [{"code": "EMPTY_TEXT", "message": "empty text"}]


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


class TestExtractionRequest:
    """Tests for :class:`ExtractionRequest` validation."""

    def test_text_only(self) -> None:
        request = ExtractionRequest.model_validate({"text": "  lunch Friday  "})
        assert request.timezone == "America/Toronto"
        assert request.stripped_text == "lunch Friday"

    def test_file_id_only(self) -> None:
        file_id = str(uuid.uuid4())
        request = ExtractionRequest.model_validate({"fileId": file_id})
        assert str(request.file_id) == file_id
        assert request.stripped_text == ""

    def test_neither_text_nor_file_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Provide `text` or `fileId`"):
            ExtractionRequest.model_validate({})

    def test_empty_text_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ExtractionRequest.model_validate({"text": ""})

    def test_bad_file_id_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ExtractionRequest.model_validate({"fileId": "not-a-uuid"})

    def test_reference_date_alias_and_validation(self) -> None:
        request = ExtractionRequest.model_validate(
            {"text": "x", "referenceDate": "2025-08-01T00:00:00Z"}
        )
        assert request.reference_date == "2025-08-01T00:00:00Z"

        with pytest.raises(ValidationError, match="referenceDate"):
            ExtractionRequest.model_validate({"text": "x", "referenceDate": "yesterday"})
