"""Selection policy between the LLM and rule-based extractors.

Strategy: **LLM first, rules as fallback.**  The LLM path runs once under
a fixed budget.  When it is degraded or finds nothing, the rule path runs
and its result becomes the presented result.  When both come up empty the
outcome is an explicitly degraded, annotated empty result; an empty
"successful" result is never returned silently.
"""

from __future__ import annotations

import logging
import time

from textcal.llm import DEFAULT_MODEL, TextGenerator, extract_llm
from textcal.models.events import (
    DEFAULT_TIMEZONE,
    ExtractionMeta,
    ExtractionResult,
    ExtractionTimings,
    ExtractionWarning,
    WarningCode,
    make_warning,
)
from textcal.rules import extract_rules

logger = logging.getLogger(__name__)

LLM_WAIT_MS = 15_000


async def extract_smart(
    text: str | None,
    generator: TextGenerator,
    *,
    timezone: str = DEFAULT_TIMEZONE,
    reference_date: str | None = None,
    budget_ms: int = LLM_WAIT_MS,
    model: str | None = None,
    min_confidence: float | None = None,
    correlation_id: str | None = None,
) -> ExtractionResult:
    """Run the LLM path, falling back to rules when it yields nothing.

    Outcomes:

    - Empty text: the LLM is skipped and the rule path's empty
      ``EMPTY_TEXT`` result is returned (strategy ``rules-only``).
    - LLM succeeded with events: returned as-is (``llm-first``).
    - LLM degraded or empty, rules found events: the rule result's events,
      flags and warnings are presented (``llm-then-rules``); the LLM
      failure is recorded in ``meta.degradedReason``.
    - Both empty: ``degraded=True`` with the LLM warnings, the rule
      warnings and a ``NO_RETURN_EVENT`` warning.

    Never raises; never blocks longer than *budget_ms* on the LLM call.

    Args:
        text: Raw input text.
        generator: Text-generation capability for the LLM path.
        timezone: IANA timezone stamped on events.
        reference_date: ISO 8601 anchor for relative dates.
        budget_ms: Fixed LLM budget in milliseconds.
        model: Model identifier override.
        min_confidence: Optional server-side confidence floor for the LLM
            path.
        correlation_id: Optional id copied into ``meta``.

    Returns:
        A well-formed :class:`ExtractionResult` with ``meta`` populated.
    """
    started = time.monotonic()
    model_name = model or DEFAULT_MODEL

    if not (text or "").strip():
        rules = extract_rules(text, timezone, reference_date)
        return _with_meta(
            rules,
            strategy="rules-only",
            started=started,
            rules_ms=_elapsed_ms(started),
            correlation_id=correlation_id,
        )

    logger.info("LLM-first strategy (max %dms)", budget_ms)
    llm = await extract_llm(
        text,
        generator,
        timezone=timezone,
        reference_date=reference_date,
        budget_ms=budget_ms,
        model=model_name,
        min_confidence=min_confidence,
    )
    llm_ms = _elapsed_ms(started)
    logger.info(
        "LLM extraction finished in %dms; events=%d degraded=%s",
        llm_ms,
        len(llm.events),
        llm.degraded,
    )

    if llm.events and not llm.degraded:
        return _with_meta(
            llm,
            strategy="llm-first",
            started=started,
            llm_ms=llm_ms,
            model=model_name,
            correlation_id=correlation_id,
        )

    reason = _failure_reason(llm)
    logger.info("Falling back to rules (%s)", reason)
    rules_started = time.monotonic()
    rules = extract_rules(text, timezone, reference_date)
    rules_ms = _elapsed_ms(rules_started)

    if rules.events:
        return _with_meta(
            rules,
            strategy="llm-then-rules",
            started=started,
            llm_ms=llm_ms,
            rules_ms=rules_ms,
            model=model_name,
            correlation_id=correlation_id,
            degraded_reason=reason,
        )

    warnings: list[ExtractionWarning] = [*(llm.warnings or []), *(rules.warnings or [])]
    warnings.append(make_warning(WarningCode.NO_RETURN_EVENT, "no events from llm or rules"))
    logger.warning("No events from either path (%s)", reason)
    empty = ExtractionResult(events=[], degraded=True, warnings=warnings)
    return _with_meta(
        empty,
        strategy="llm-then-rules",
        started=started,
        llm_ms=llm_ms,
        rules_ms=rules_ms,
        model=model_name,
        correlation_id=correlation_id,
        degraded_reason=reason,
    )


def _failure_reason(result: ExtractionResult) -> str:
    for warning in result.warnings or []:
        if warning.code not in (WarningCode.LLM_OK, WarningCode.LLM_WARNING):
            return warning.code.value
    if not result.events:
        return WarningCode.NO_RETURN_EVENT.value
    return WarningCode.OTHER.value


def _elapsed_ms(since: float) -> int:
    return int((time.monotonic() - since) * 1000)


def _with_meta(
    result: ExtractionResult,
    *,
    strategy: str,
    started: float,
    llm_ms: int | None = None,
    rules_ms: int | None = None,
    model: str | None = None,
    correlation_id: str | None = None,
    degraded_reason: str | None = None,
) -> ExtractionResult:
    meta = ExtractionMeta(
        strategy=strategy,
        timings=ExtractionTimings(
            total_ms=_elapsed_ms(started),
            llm_ms=llm_ms,
            rules_ms=rules_ms,
        ),
        model=model,
        correlation_id=correlation_id,
        degraded_reason=degraded_reason,
    )
    return result.model_copy(update={"meta": meta})
