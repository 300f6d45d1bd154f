"""Strict schema for untrusted LLM output.

The model is asked for ``{"events": [...], "warnings": [...]}``.  Nothing
from the raw response is trusted until it passes
:func:`validate_llm_payload`, which returns a tagged :class:`PayloadCheck`
instead of raising.  Any structural violation rejects the whole payload;
individually valid events inside a malformed envelope are never kept.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationError

NonEmptyStr = Annotated[str, Field(min_length=1)]
Confidence = Annotated[float, Field(ge=0.0, le=1.0, strict=True)]


class LLMResponseEvent(BaseModel):
    """A single candidate event as emitted by the model.

    ``start`` and ``end`` may be absent or ``null``; when they are strings
    they must be non-empty.  Unknown keys are ignored.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    title: NonEmptyStr
    start: NonEmptyStr | None = None
    end: NonEmptyStr | None = None
    all_day: StrictBool | None = Field(default=None, alias="allDay")
    confidence: Confidence | None = None


class LLMResponseSchema(BaseModel):
    """Top-level payload emitted by the model."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    events: list[LLMResponseEvent] = Field(default_factory=list)
    warnings: list[str] | None = None


@dataclass(frozen=True)
class PayloadCheck:
    """Tagged outcome of :func:`validate_llm_payload`.

    Exactly one of *payload* and *error* is set.
    """

    payload: LLMResponseSchema | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.payload is not None


def validate_llm_payload(text: str) -> PayloadCheck:
    """Parse *text* as JSON and validate it against :class:`LLMResponseSchema`.

    Args:
        text: The JSON candidate extracted from the raw model output.

    Returns:
        A :class:`PayloadCheck` holding either the validated payload or a
        description of why it was rejected.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        return PayloadCheck(error=f"Invalid JSON: {exc}")

    try:
        return PayloadCheck(payload=LLMResponseSchema.model_validate(data))
    except ValidationError as exc:
        return PayloadCheck(error=f"Schema validation failed: {exc}")
