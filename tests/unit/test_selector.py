"""Tests for the LLM-first selection policy."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import patch

from textcal.dates import DateHit
from textcal.exceptions import ExtractionError
from textcal.models.events import WarningCode
from textcal.selector import extract_smart

_TEXT = "Team meeting 2025-08-29 13:00"
_RULE_HIT = DateHit(
    start_iso="2025-08-29T17:00:00Z",
    end_iso=None,
    offset=_TEXT.index("2025"),
    phrase="2025-08-29 13:00",
)
_LLM_PAYLOAD = json.dumps(
    {
        "events": [
            {
                "title": "Team meeting",
                "start": "2025-08-29T13:00:00-04:00",
                "end": "2025-08-29T14:00:00-04:00",
                "confidence": 0.9,
            }
        ]
    }
)


def _run(coro):
    return asyncio.run(coro)


class TestLlmFirst:
    """The LLM result wins when it succeeds with events."""

    def test_llm_events_returned(self, make_generator) -> None:
        generator = make_generator(_LLM_PAYLOAD)

        with patch("textcal.rules.parse_dates") as mock_parse:
            result = _run(
                extract_smart(_TEXT, generator, model="gemini-test", correlation_id="10.0.0.1")
            )

        mock_parse.assert_not_called()
        assert result.degraded is False
        assert [e.source for e in result.events] == ["llm"]
        assert result.warning_codes == [WarningCode.LLM_OK]
        assert result.meta.strategy == "llm-first"
        assert result.meta.model == "gemini-test"
        assert result.meta.correlation_id == "10.0.0.1"
        assert result.meta.degraded_reason is None
        assert result.meta.timings.llm_ms is not None
        assert result.meta.timings.rules_ms is None


class TestFallbackToRules:
    """When the LLM path yields nothing, the rule result is presented."""

    def test_timeout_falls_back_to_rule_event(self, make_generator, fast_budget: None) -> None:
        generator = make_generator(_LLM_PAYLOAD, delay=5.0)

        with patch("textcal.rules.parse_dates", return_value=[_RULE_HIT]):
            result = _run(extract_smart(_TEXT, generator, budget_ms=50))

        assert len(result.events) == 1
        assert result.events[0].source == "rules"
        assert result.events[0].start == "2025-08-29T17:00:00Z"
        assert result.degraded is False
        assert result.warnings is None
        assert result.meta.strategy == "llm-then-rules"
        assert result.meta.degraded_reason == "LLM_TIMEOUT"
        assert result.meta.timings.rules_ms is not None

    def test_llm_error_falls_back(self, make_generator) -> None:
        generator = make_generator(error=ExtractionError("quota exceeded"))

        with patch("textcal.rules.parse_dates", return_value=[_RULE_HIT]):
            result = _run(extract_smart(_TEXT, generator))

        assert [e.source for e in result.events] == ["rules"]
        assert result.meta.degraded_reason == "LLM_ERROR"

    def test_llm_success_without_events_falls_back(self, make_generator) -> None:
        generator = make_generator('{"events":[]}')

        with patch("textcal.rules.parse_dates", return_value=[_RULE_HIT]):
            result = _run(extract_smart(_TEXT, generator))

        assert [e.source for e in result.events] == ["rules"]
        assert result.meta.degraded_reason == "NO_RETURN_EVENT"


class TestBothEmpty:
    """When neither path finds anything the result is explicitly degraded."""

    def test_bad_json_and_no_rule_hits(self, make_generator) -> None:
        generator = make_generator("not json at all")

        with patch("textcal.rules.parse_dates", return_value=[]):
            result = _run(extract_smart("hello there", generator))

        assert result.events == []
        assert result.degraded is True
        assert result.warning_codes == [WarningCode.LLM_BAD_JSON, WarningCode.NO_RETURN_EVENT]
        assert result.meta.strategy == "llm-then-rules"
        assert result.meta.degraded_reason == "LLM_BAD_JSON"

    def test_empty_llm_success_and_no_rule_hits(self, make_generator) -> None:
        generator = make_generator('{"events":[],"warnings":["nothing concrete"]}')

        with patch("textcal.rules.parse_dates", return_value=[]):
            result = _run(extract_smart("maybe lunch sometime", generator))

        assert result.degraded is True
        assert result.warning_codes == [
            WarningCode.LLM_OK,
            WarningCode.LLM_WARNING,
            WarningCode.NO_RETURN_EVENT,
        ]
        assert result.meta.degraded_reason == "NO_RETURN_EVENT"


class TestEmptyText:
    """Empty text never reaches the model."""

    def test_empty_text_uses_rules_only(self, make_generator) -> None:
        generator = make_generator(_LLM_PAYLOAD)

        result = _run(extract_smart("   ", generator, correlation_id="c-1"))

        assert generator.calls == []
        assert result.events == []
        assert result.degraded is False
        assert result.warning_codes == [WarningCode.EMPTY_TEXT]
        assert result.meta.strategy == "rules-only"
        assert result.meta.correlation_id == "c-1"
