"""Prompt builders for the LLM event-extraction path.

The system prompt pins the model to JSON-only output; the extraction
prompt carries the schema, the extraction rules, and the request context
(timezone, reference date) followed by the text itself.
"""

from __future__ import annotations

CONFIDENCE_THRESHOLD = 0.6
DEDUPE_WINDOW_MINUTES = 15

OUTPUT_SCHEMA = (
    '{"events":[{"title":"string","start":"ISO","end":"ISO?",'
    '"allDay":"boolean?","confidence":"number?"}],"warnings":["string"]}'
)


def build_system_prompt() -> str:
    """Return the system instruction sent with every extraction call."""
    return (
        "You are an event extraction engine. Reply ONLY with valid minified "
        "JSON. No code fences. No prose."
    )


def build_extraction_prompt(
    text: str,
    timezone: str,
    reference_date: str | None = None,
) -> str:
    """Build the extraction prompt for a single request.

    The prompt constrains the model to one minified JSON object matching
    :data:`OUTPUT_SCHEMA`, requires ISO 8601 timestamps with an offset,
    forbids inventing end times, restricts extraction to genuine
    scheduling intent, asks the model to withhold candidates below
    :data:`CONFIDENCE_THRESHOLD` (emitting a warning instead), and to merge
    near-duplicates within :data:`DEDUPE_WINDOW_MINUTES`.

    Args:
        text: The (trimmed) text to extract events from.
        timezone: IANA timezone used to interpret wall-clock times.
        reference_date: ISO 8601 anchor for relative dates, if any.

    Returns:
        The complete prompt string.
    """
    return f"""\
You are an extraction engine. Extract calendar events from the given text.
- Resolve relative dates ("tomorrow", "next Tuesday") using the reference date if provided.
- Output ONLY a single valid, minified JSON object with this exact schema:
{OUTPUT_SCHEMA}

Format rules:
- "start" and "end" must be ISO 8601 and include a timezone offset or Z.
- If the duration or end time is not stated, omit "end" or set it to null. Never invent an end time.
- If the event is clearly all-day, set "allDay": true.
- "confidence" is a number between 0 and 1 describing how sure you are.
- Do NOT include any additional fields, explanations, prose or code fences.

Extraction criteria:
- Only extract genuine scheduling intent: meetings, calls, appointments, deadlines,
  explicit invitations.
- Do NOT extract hypotheticals ("we could meet sometime"), past-tense logs of what
  already happened, vague mentions without a concrete time, newsletter or marketing
  content, or quoted/superseded content from earlier messages in a thread.
- When a later message changes an earlier plan, keep only the final version.
- If your confidence in a candidate is below {CONFIDENCE_THRESHOLD}, do NOT emit it as an
  event; add a short string to "warnings" describing it instead.
- Merge near-duplicate events (same or very similar title) whose start times fall
  within {DEDUPE_WINDOW_MINUTES} minutes of each other into one event.
- If nothing qualifies, return {{"events":[],"warnings":[]}}.

Context:
- timezone: {timezone}
- referenceDate: {reference_date or "none"}

TEXT:
{text}
""".strip()
