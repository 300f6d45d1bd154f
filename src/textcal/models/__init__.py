"""Data models for textcal."""

from __future__ import annotations

from textcal.models.events import (
    DEFAULT_TIMEZONE,
    Event,
    ExtractionMeta,
    ExtractionRequest,
    ExtractionResult,
    ExtractionTimings,
    ExtractionWarning,
    WarningCode,
    make_warning,
)
from textcal.models.llm import (
    LLMResponseEvent,
    LLMResponseSchema,
    PayloadCheck,
    validate_llm_payload,
)

__all__ = [
    "DEFAULT_TIMEZONE",
    "Event",
    "ExtractionMeta",
    "ExtractionRequest",
    "ExtractionResult",
    "ExtractionTimings",
    "ExtractionWarning",
    "LLMResponseEvent",
    "LLMResponseSchema",
    "PayloadCheck",
    "WarningCode",
    "make_warning",
    "validate_llm_payload",
]
