"""Request-level entry point for text-to-calendar extraction.

Wires the components together: request validation, the LLM-first
selection policy, and the latest-result cache.  :class:`ExtractionPipeline`
returns the generic ``{"ok": True, "data": ...}`` /
``{"ok": False, "error": ...}`` envelopes that an HTTP layer can send
as-is.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from textcal.cache import LatestResultCache
from textcal.config import Settings
from textcal.llm import DEFAULT_MODEL, GeminiClient, TextGenerator
from textcal.models.events import DEFAULT_TIMEZONE, ExtractionRequest, ExtractionResult
from textcal.selector import LLM_WAIT_MS, extract_smart

logger = logging.getLogger(__name__)

UNKNOWN_REQUESTER = "unknown"


def requester_key(forwarded_for: str | None = None, remote_addr: str | None = None) -> str:
    """Derive the cache key for a caller.

    Uses the first ``X-Forwarded-For`` entry when present, then the socket
    address, then ``"unknown"``.
    """
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    if remote_addr and remote_addr.strip():
        return remote_addr.strip()
    return UNKNOWN_REQUESTER


def ok_envelope(result: ExtractionResult) -> dict[str, Any]:
    return {"ok": True, "data": result.to_wire()}


def error_envelope(code: str, message: str, details: Any = None) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return {"ok": False, "error": error}


class ExtractionPipeline:
    """Validate a request, run the selection policy, remember the result.

    Args:
        generator: Text-generation capability for the LLM path.
        cache: Latest-result cache; a default-sized one is created when
            omitted.
        model: Model identifier for the LLM path.
        budget_ms: Fixed LLM budget in milliseconds.
        default_timezone: Timezone applied when a request omits one.
        min_confidence: Optional server-side confidence floor.
    """

    def __init__(
        self,
        generator: TextGenerator,
        *,
        cache: LatestResultCache | None = None,
        model: str = DEFAULT_MODEL,
        budget_ms: int = LLM_WAIT_MS,
        default_timezone: str = DEFAULT_TIMEZONE,
        min_confidence: float | None = None,
    ) -> None:
        self._generator = generator
        self._cache = cache if cache is not None else LatestResultCache()
        self._model = model
        self._budget_ms = budget_ms
        self._default_timezone = default_timezone
        self._min_confidence = min_confidence

    @classmethod
    def from_settings(cls, settings: Settings) -> ExtractionPipeline:
        """Build a pipeline backed by Gemini from application settings."""
        return cls(
            GeminiClient(api_key=settings.gemini_api_key, model=settings.llm_model),
            cache=LatestResultCache(
                max_entries=settings.cache_max_entries,
                ttl_seconds=settings.cache_ttl_seconds,
            ),
            model=settings.llm_model,
            budget_ms=settings.llm_budget_ms,
            default_timezone=settings.timezone,
        )

    @property
    def cache(self) -> LatestResultCache:
        return self._cache

    async def extract(
        self,
        payload: Mapping[str, Any] | ExtractionRequest,
        requester: str = UNKNOWN_REQUESTER,
    ) -> dict[str, Any]:
        """Run one extraction request.

        Args:
            payload: Raw request body (camelCase keys) or a validated
                :class:`ExtractionRequest`.
            requester: Cache key for the caller (see :func:`requester_key`).

        Returns:
            ``{"ok": True, "data": <result>}`` on success (including
            degraded results), or ``{"ok": False, "error": {...}}`` with
            code ``E_BAD_INPUT`` for an invalid body or ``E_EXTRACT`` for
            an unexpected failure.
        """
        try:
            request = self._validate(payload)
        except ValidationError as exc:
            logger.info("Rejected extraction request from %s: %s", requester, exc)
            return error_envelope(
                "E_BAD_INPUT",
                "Invalid body",
                exc.errors(include_url=False, include_context=False),
            )

        started = time.monotonic()
        try:
            result = await extract_smart(
                request.text,
                self._generator,
                timezone=request.timezone,
                reference_date=request.reference_date,
                budget_ms=self._budget_ms,
                model=self._model,
                min_confidence=self._min_confidence,
                correlation_id=requester,
            )
        except Exception as exc:
            logger.exception("Extraction failed for %s", requester)
            return error_envelope("E_EXTRACT", str(exc) or "Extraction failed")

        self._cache.put(requester, result)
        logger.info(
            "Extraction for %s done in %.0fms: %d event(s), degraded=%s",
            requester,
            (time.monotonic() - started) * 1000,
            len(result.events),
            result.degraded,
        )
        return ok_envelope(result)

    def latest(self, requester: str = UNKNOWN_REQUESTER) -> dict[str, Any]:
        """Return the latest envelope for *requester*, or an empty one."""
        record = self._cache.get(requester)
        if record is None:
            return ok_envelope(ExtractionResult(events=[], degraded=False))
        return ok_envelope(record.result)

    def _validate(self, payload: Mapping[str, Any] | ExtractionRequest) -> ExtractionRequest:
        if isinstance(payload, ExtractionRequest):
            return payload
        if not isinstance(payload, Mapping):
            # Lists, strings and None fail model validation as a whole.
            return ExtractionRequest.model_validate(payload)
        body = dict(payload)
        body.setdefault("timezone", self._default_timezone)
        return ExtractionRequest.model_validate(body)
