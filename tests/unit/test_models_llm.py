"""Tests for the strict LLM response schema."""

from __future__ import annotations

import json

import pytest

from textcal.models.llm import LLMResponseSchema, validate_llm_payload


class TestValidateLlmPayload:
    """Tests for :func:`validate_llm_payload`."""

    def test_valid_payload(self) -> None:
        check = validate_llm_payload(
            json.dumps(
                {
                    "events": [
                        {
                            "title": "Review",
                            "start": "2025-08-29T13:00:00-04:00",
                            "end": None,
                            "allDay": False,
                            "confidence": 0.8,
                        }
                    ],
                    "warnings": ["one vague mention skipped"],
                }
            )
        )

        assert check.ok
        assert check.error is None
        assert check.payload.events[0].all_day is False
        assert check.payload.warnings == ["one vague mention skipped"]

    def test_empty_object_defaults(self) -> None:
        check = validate_llm_payload("{}")
        assert check.ok
        assert check.payload == LLMResponseSchema(events=[], warnings=None)

    def test_invalid_json(self) -> None:
        check = validate_llm_payload("{not json")
        assert not check.ok
        assert check.error.startswith("Invalid JSON")

    def test_unknown_keys_ignored(self) -> None:
        check = validate_llm_payload(
            '{"events":[{"title":"A","start":"2025-08-29","mood":"happy"}],"extra":1}'
        )
        assert check.ok

    @pytest.mark.parametrize(
        "payload",
        [
            {"events": "nope"},
            {"events": [{"title": ""}]},
            {"events": [{"start": "2025-08-29T13:00:00Z"}]},
            {"events": [{"title": "A", "start": ""}]},
            {"events": [{"title": "A", "allDay": "yes"}]},
            {"events": [{"title": "A", "confidence": 1.2}]},
            {"events": [{"title": "A", "confidence": "0.9"}]},
            {"warnings": "not a list"},
            [],
        ],
    )
    def test_schema_violations_rejected(self, payload: object) -> None:
        """Any structural violation rejects the whole payload."""
        check = validate_llm_payload(json.dumps(payload))
        assert not check.ok
        assert check.error.startswith("Schema validation failed")

    def test_one_bad_event_rejects_valid_siblings(self) -> None:
        check = validate_llm_payload(
            json.dumps(
                {
                    "events": [
                        {"title": "Good", "start": "2025-08-29T13:00:00Z"},
                        {"title": "Bad", "confidence": 7},
                    ]
                }
            )
        )
        assert check.payload is None
