"""Unit tests for the console result formatter."""

from __future__ import annotations

import pytest

from textcal.demo_output import (
    format_extraction_result,
    format_subject_range,
    print_extraction_result,
)
from textcal.models.events import (
    Event,
    ExtractionMeta,
    ExtractionResult,
    ExtractionTimings,
    WarningCode,
    make_warning,
)
from textcal.subject import SubjectRange

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_event(
    title: str = "Design review",
    start: str = "2025-08-29T13:00:00-04:00",
    end: str | None = "2025-08-29T14:00:00-04:00",
    **extra: object,
) -> Event:
    return Event(
        title=title,
        start=start,
        end=end,
        timezone="America/Toronto",
        source="llm",
        confidence=0.9,
        **extra,
    )


def _meta(**overrides: object) -> ExtractionMeta:
    data: dict[str, object] = {
        "strategy": "llm-first",
        "timings": ExtractionTimings(total_ms=42, llm_ms=40),
        "model": "gemini-2.0-flash",
    }
    data.update(overrides)
    return ExtractionMeta(**data)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestFormatExtractionResult:
    """Tests for :func:`format_extraction_result`."""

    def test_event_details(self) -> None:
        output = format_extraction_result(
            ExtractionResult(events=[_make_event(location="Room 4")], meta=_meta())
        )

        assert "TEXT-TO-CALENDAR EXTRACTION" in output
        assert "Event 1: Design review" in output
        assert "When: Friday 2025-08-29, 01:00 PM - 02:00 PM" in output
        assert "Timezone: America/Toronto" in output
        assert "Where: Room 4" in output
        assert "Source: llm" in output
        assert "Confidence: 0.90" in output

    def test_multi_day_range_shows_full_end(self) -> None:
        output = format_extraction_result(
            ExtractionResult(events=[_make_event(end="2025-08-30T10:00:00-04:00")])
        )

        assert "- Saturday 2025-08-30, 10:00 AM" in output

    def test_all_day_marker(self) -> None:
        output = format_extraction_result(
            ExtractionResult(events=[_make_event(start="2025-08-29", end=None, all_day=True)])
        )

        assert "(all day)" in output

    def test_zero_events(self) -> None:
        output = format_extraction_result(ExtractionResult())

        assert "No calendar events detected." in output
        assert "Events: 0" in output
        assert "Degraded: no" in output
        assert "--- WARNINGS ---" not in output
        assert "Strategy:" not in output

    def test_warnings_and_fallback_reason(self) -> None:
        result = ExtractionResult(
            events=[],
            degraded=True,
            warnings=[
                make_warning(WarningCode.LLM_TIMEOUT, "llm timeout after 15000ms"),
                make_warning(WarningCode.NO_RETURN_EVENT, "no events from llm or rules"),
            ],
            meta=_meta(strategy="llm-then-rules", degraded_reason="LLM_TIMEOUT"),
        )

        output = format_extraction_result(result)

        assert "[LLM_TIMEOUT] llm timeout after 15000ms" in output
        assert "[NO_RETURN_EVENT] no events from llm or rules" in output
        assert "Degraded: yes" in output
        assert "Strategy: llm-then-rules" in output
        assert "Fallback reason: LLM_TIMEOUT" in output
        assert "Duration: 42ms" in output

    def test_print_writes_to_stdout(self, capsys: pytest.CaptureFixture[str]) -> None:
        print_extraction_result(ExtractionResult())

        assert "TEXT-TO-CALENDAR EXTRACTION" in capsys.readouterr().out


class TestFormatSubjectRange:
    def test_parsed(self) -> None:
        parsed = SubjectRange("2025-08-29T13:00:00", "2025-08-29T14:00:00")

        assert format_subject_range("x", parsed) == "2025-08-29T13:00:00 -> 2025-08-29T14:00:00"

    def test_not_found(self) -> None:
        assert format_subject_range("Lunch?", None) == 'No time range found in "Lunch?"'
