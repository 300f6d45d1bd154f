"""textcal: text-to-calendar event extraction.

Turns unstructured text (emails, pasted notes) into validated calendar
events through a deterministic rule path and an LLM path, with a
selection policy between the two.
"""

from __future__ import annotations

from textcal.exceptions import ExtractionError, MalformedResponseError
from textcal.llm import GeminiClient, extract_json_block, extract_llm
from textcal.models.events import (
    Event,
    ExtractionRequest,
    ExtractionResult,
    ExtractionWarning,
    WarningCode,
)
from textcal.pipeline import ExtractionPipeline, requester_key
from textcal.rules import extract_rules
from textcal.selector import extract_smart
from textcal.subject import SubjectRange, parse_subject_range
from textcal.text import normalize_text

__version__ = "0.1.0"

__all__ = [
    "Event",
    "ExtractionError",
    "ExtractionPipeline",
    "ExtractionRequest",
    "ExtractionResult",
    "ExtractionWarning",
    "GeminiClient",
    "MalformedResponseError",
    "SubjectRange",
    "WarningCode",
    "extract_json_block",
    "extract_llm",
    "extract_rules",
    "extract_smart",
    "normalize_text",
    "parse_subject_range",
    "requester_key",
]
