"""LLM-based calendar event extraction.

:class:`GeminiClient` wraps the Google ``google-genai`` SDK as the
text-generation capability.  :func:`extract_llm` drives a single,
budget-bounded call through any :class:`TextGenerator`, recovers the JSON
payload from noisy output, validates it strictly, and sanitizes each
candidate event.

Every failure mode (bad JSON, schema violation, timeout, transport error)
converges to the same shape: no events, ``degraded=True`` and one
descriptive warning.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from typing import Protocol

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from rapidfuzz.fuzz import token_set_ratio

from textcal.exceptions import ExtractionError, MalformedResponseError
from textcal.log import log_chunk
from textcal.models.events import (
    DEFAULT_TIMEZONE,
    Event,
    ExtractionResult,
    ExtractionWarning,
    WarningCode,
    is_ordered,
    make_warning,
    parse_iso,
)
from textcal.models.llm import LLMResponseEvent, LLMResponseSchema, validate_llm_payload
from textcal.prompts import (
    DEDUPE_WINDOW_MINUTES,
    build_extraction_prompt,
    build_system_prompt,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash"
DEFAULT_BUDGET_MS = 6000
MIN_BUDGET_MS = 1000
MAX_BUDGET_MS = 20_000
MAX_OUTPUT_TOKENS = 900
FALLBACK_CONFIDENCE = 0.6
DUPLICATE_TITLE_SCORE = 90.0

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


class TextGenerator(Protocol):
    """The external text-generation capability used by :func:`extract_llm`."""

    async def generate(
        self,
        prompt: str,
        *,
        model: str,
        temperature: float,
        max_output_tokens: int,
    ) -> str:
        """Return the raw completion for *prompt*."""
        ...


class GeminiClient:
    """Text generation via Google Gemini.

    Wraps the async surface of ``google.genai.Client``.  The system
    instruction pins the model to minified JSON output.

    Args:
        api_key: Google Gemini API key.
        model: Default model identifier.  Defaults to
            ``"gemini-2.0-flash"``.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
    ) -> None:
        self._client = genai.Client(api_key=api_key)
        self._model = model

    @property
    def model(self) -> str:
        return self._model

    async def generate(
        self,
        prompt: str,
        *,
        model: str | None = None,
        temperature: float = 0.0,
        max_output_tokens: int = MAX_OUTPUT_TOKENS,
    ) -> str:
        """Call Gemini once and return the raw response text.

        Args:
            prompt: The extraction prompt.
            model: Model override; defaults to the client's model.
            temperature: Sampling temperature (``0`` for deterministic).
            max_output_tokens: Output length cap.

        Returns:
            The raw text of the first candidate.

        Raises:
            ExtractionError: On API-level failures or an empty completion.
        """
        config = genai_types.GenerateContentConfig(
            system_instruction=build_system_prompt(),
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            response_mime_type="application/json",
        )
        try:
            response = await self._client.aio.models.generate_content(
                model=model or self._model,
                contents=prompt,
                config=config,
            )
        except genai_errors.APIError as exc:
            logger.error("Gemini API error: %s", exc)
            raise ExtractionError(f"Gemini API call failed: {exc}") from exc

        text = response.text or ""
        if not text:
            raise ExtractionError("Gemini returned an empty completion")
        return text


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


async def extract_llm(
    text: str | None,
    generator: TextGenerator,
    *,
    timezone: str = DEFAULT_TIMEZONE,
    reference_date: str | None = None,
    budget_ms: float | None = None,
    model: str | None = None,
    min_confidence: float | None = None,
) -> ExtractionResult:
    """Extract events from *text* with a single, budget-bounded LLM call.

    Empty input returns a degraded ``EMPTY_TEXT`` result without calling
    the model: callers are expected to route empty text elsewhere.

    Args:
        text: Raw input text.
        generator: The text-generation capability.
        timezone: IANA timezone stamped on every event.
        reference_date: ISO 8601 anchor passed to the model.
        budget_ms: Requested time budget; clamped into
            ``[MIN_BUDGET_MS, MAX_BUDGET_MS]``.
        model: Model identifier; defaults to :data:`DEFAULT_MODEL`.
        min_confidence: Optional server-side floor.  Events below it are
            dropped with a ``LOW_CONFIDENCE`` warning.  Off by default.

    Returns:
        An :class:`ExtractionResult`.  Never raises for model or transport
        failures.
    """
    raw = (text or "").strip()
    if not raw:
        logger.warning("LLM extraction skipped: empty text")
        return ExtractionResult.empty(
            make_warning(WarningCode.EMPTY_TEXT, "empty text"),
            degraded=True,
        )

    timeout_ms = clamp_budget(budget_ms)
    model_name = model or DEFAULT_MODEL
    prompt = build_extraction_prompt(raw, timezone, reference_date)

    logger.info(
        "LLM extraction start | model=%s budget_ms=%d tz=%s ref=%s chars=%d",
        model_name,
        timeout_ms,
        timezone,
        reference_date,
        len(raw),
    )
    log_chunk(logger, "LLM prompt", prompt)

    started = time.monotonic()
    try:
        raw_output = await asyncio.wait_for(
            generator.generate(
                prompt,
                model=model_name,
                temperature=0.0,
                max_output_tokens=MAX_OUTPUT_TOKENS,
            ),
            timeout=timeout_ms / 1000,
        )
        log_chunk(logger, "Raw LLM output", raw_output)
        payload = parse_response(raw_output)
    except TimeoutError:
        elapsed_ms = int((time.monotonic() - started) * 1000)
        reason = f"llm timeout after {timeout_ms}ms"
        logger.warning("LLM extraction degraded: %s", reason)
        return ExtractionResult.empty(
            make_warning(
                WarningCode.LLM_TIMEOUT,
                reason,
                budget_ms=timeout_ms,
                elapsed_ms=elapsed_ms,
            ),
            degraded=True,
        )
    except MalformedResponseError as exc:
        logger.warning("LLM response rejected: %s", exc)
        log_chunk(logger, "Rejected LLM output", exc.raw_response)
        return ExtractionResult.empty(
            make_warning(WarningCode.LLM_BAD_JSON, "llm bad json/schema"),
            degraded=True,
        )
    except Exception as exc:
        reason = str(exc) or "llm error"
        logger.warning("LLM extraction degraded: %s", reason)
        return ExtractionResult.empty(
            make_warning(WarningCode.LLM_ERROR, reason, error_type=type(exc).__name__),
            degraded=True,
        )

    events = [
        event
        for event in (sanitize_event(candidate, timezone) for candidate in payload.events)
        if event is not None
    ]
    events = dedupe_events(events)

    warnings: list[ExtractionWarning] = [make_warning(WarningCode.LLM_OK, "llm success")]
    if min_confidence is not None:
        kept = [e for e in events if e.confidence >= min_confidence]
        if len(kept) < len(events):
            warnings.append(
                make_warning(
                    WarningCode.LOW_CONFIDENCE,
                    f"dropped {len(events) - len(kept)} event(s) below confidence {min_confidence}",
                    min_confidence=min_confidence,
                )
            )
        events = kept
    warnings.extend(
        make_warning(WarningCode.LLM_WARNING, message) for message in payload.warnings or []
    )

    logger.info(
        "LLM extraction success | events=%d (of %d candidates) elapsed_ms=%d",
        len(events),
        len(payload.events),
        int((time.monotonic() - started) * 1000),
    )
    return ExtractionResult(events=events, degraded=False, warnings=warnings)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def clamp_budget(budget_ms: float | None) -> int:
    """Clamp a requested budget into ``[MIN_BUDGET_MS, MAX_BUDGET_MS]``.

    ``None`` selects :data:`DEFAULT_BUDGET_MS`.  Zero, negative and
    runaway values are corrected silently.
    """
    if budget_ms is None:
        return DEFAULT_BUDGET_MS
    return int(max(MIN_BUDGET_MS, min(budget_ms, MAX_BUDGET_MS)))


def extract_json_block(raw: str) -> str:
    """Recover the JSON object from possibly noisy model output.

    Recovery order:

    1. The trimmed text already looks like a bare object -> returned as-is.
    2. A fenced code block (optionally tagged ``json``) -> its contents.
    3. The span from the first ``{`` to the last ``}``, if it parses.
    4. Otherwise the trimmed text, left for the parser to reject.
    """
    trimmed = raw.strip()
    if trimmed.startswith("{") and trimmed.endswith("}"):
        return trimmed

    fence = _FENCE_RE.search(trimmed)
    if fence:
        return fence.group(1).strip()

    first = trimmed.find("{")
    last = trimmed.rfind("}")
    if first >= 0 and last > first:
        candidate = trimmed[first:last + 1].strip()
        try:
            json.loads(candidate)
        except json.JSONDecodeError:
            pass
        else:
            return candidate

    return trimmed


def parse_response(raw_output: str) -> LLMResponseSchema:
    """Extract and validate the payload from raw model output.

    Raises:
        MalformedResponseError: If the output is empty, is not JSON, or
            does not match :class:`~textcal.models.llm.LLMResponseSchema`.
    """
    if not raw_output or not raw_output.strip():
        raise MalformedResponseError("Empty response from LLM", raw_response=raw_output or "")

    candidate = extract_json_block(raw_output)
    log_chunk(logger, "Extracted JSON candidate", candidate)

    check = validate_llm_payload(candidate)
    if not check.ok:
        raise MalformedResponseError(check.error or "invalid payload", raw_response=raw_output)
    return check.payload


def sanitize_event(candidate: LLMResponseEvent, timezone: str) -> Event | None:
    """Turn a schema-valid candidate into an :class:`Event`, or drop it.

    A missing or unparseable ``start`` drops the candidate.  An ``end``
    that does not parse or precedes ``start`` is cleared, never swapped.
    Confidence defaults to :data:`FALLBACK_CONFIDENCE`.
    """
    if candidate.start is None or parse_iso(candidate.start) is None:
        logger.debug("Dropping LLM event %r: unusable start %r", candidate.title, candidate.start)
        return None

    end = candidate.end
    if end is not None and not is_ordered(candidate.start, end):
        logger.debug("Clearing end %r of LLM event %r", end, candidate.title)
        end = None

    confidence = candidate.confidence
    if confidence is None:
        confidence = FALLBACK_CONFIDENCE

    return Event(
        title=candidate.title,
        start=candidate.start,
        end=end,
        all_day=bool(candidate.all_day),
        timezone=timezone,
        source="llm",
        confidence=confidence,
    )


def dedupe_events(
    events: list[Event],
    window_minutes: int = DEDUPE_WINDOW_MINUTES,
    min_score: float = DUPLICATE_TITLE_SCORE,
) -> list[Event]:
    """Collapse near-duplicate events, keeping the more confident one.

    Two events are duplicates when their titles score at least
    *min_score* on :func:`rapidfuzz.fuzz.token_set_ratio` and their starts
    lie within *window_minutes* of each other.  Order of first appearance
    is preserved.
    """
    kept: list[Event] = []
    for event in events:
        match = _find_duplicate(kept, event, window_minutes, min_score)
        if match is None:
            kept.append(event)
            continue
        if event.confidence > kept[match].confidence:
            kept[match] = event
        logger.debug("Collapsed duplicate LLM event %r", event.title)
    return kept


def _find_duplicate(
    kept: list[Event],
    event: Event,
    window_minutes: int,
    min_score: float,
) -> int | None:
    start = parse_iso(event.start)
    if start is None:
        return None
    for idx, other in enumerate(kept):
        other_start = parse_iso(other.start)
        if other_start is None:
            continue
        a, b = start, other_start
        if a.tzinfo is None or b.tzinfo is None:
            a, b = a.replace(tzinfo=None), b.replace(tzinfo=None)
        if abs((a - b).total_seconds()) > window_minutes * 60:
            continue
        if token_set_ratio(event.title.lower(), other.title.lower()) >= min_score:
            return idx
    return None

