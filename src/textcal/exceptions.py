"""Custom exceptions for the textcal extraction core.

None of these escape the extractors: :func:`~textcal.llm.extract_llm`
converts them into degraded results with a descriptive warning.
"""

from __future__ import annotations


class MalformedResponseError(Exception):
    """Raised when the LLM response cannot be parsed or validated.

    Covers JSON parse failures and Pydantic schema validation errors.
    The LLM extractor catches this and returns an ``LLM_BAD_JSON``
    degraded result.

    Attributes:
        raw_response: The raw LLM output that failed to parse.
    """

    def __init__(self, message: str, raw_response: str = "") -> None:
        super().__init__(message)
        self.raw_response = raw_response


class ExtractionError(Exception):
    """Raised when the text-generation call itself fails.

    Covers transport and API errors (network, auth, quota).  Unlike
    :class:`MalformedResponseError`, the model never produced output.
    """
