"""Configuration loading for textcal.

Reads settings from environment variables (with .env support via
python-dotenv).  Only the Gemini API key is required, and only when the
LLM path is going to run.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from textcal.models.events import DEFAULT_TIMEZONE


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables.

    Attributes:
        gemini_api_key: API key for Google Gemini (empty when the LLM path
            is not needed).
        llm_model: Gemini model identifier.
        llm_budget_ms: Time budget for one LLM call, in milliseconds.
        timezone: Default IANA timezone for requests.
        log_level: Logging level (default ``"INFO"``).
        cache_max_entries: Capacity of the latest-result cache.
        cache_ttl_seconds: Lifetime of a latest-result cache entry.
    """

    gemini_api_key: str = ""
    llm_model: str = "gemini-2.0-flash"
    llm_budget_ms: int = 15_000
    timezone: str = DEFAULT_TIMEZONE
    log_level: str = "INFO"
    cache_max_entries: int = 1024
    cache_ttl_seconds: float = 3600.0

    def __repr__(self) -> str:
        return (
            f"Settings(gemini_api_key='***', "
            f"llm_model={self.llm_model!r}, "
            f"llm_budget_ms={self.llm_budget_ms!r}, "
            f"timezone={self.timezone!r}, "
            f"log_level={self.log_level!r}, "
            f"cache_max_entries={self.cache_max_entries!r}, "
            f"cache_ttl_seconds={self.cache_ttl_seconds!r})"
        )


_INT_VARS = {
    "LLM_BUDGET_MS": "llm_budget_ms",
    "LATEST_CACHE_MAX_ENTRIES": "cache_max_entries",
}
_FLOAT_VARS = {
    "LATEST_CACHE_TTL_SECONDS": "cache_ttl_seconds",
}
_STR_VARS = {
    "LLM_MODEL": "llm_model",
    "TIMEZONE": "timezone",
    "LOG_LEVEL": "log_level",
}


def load_settings(require_llm: bool = True) -> Settings:
    """Load and validate settings from environment variables.

    Calls :func:`dotenv.load_dotenv` so a ``.env`` file in the project root
    is picked up automatically.

    Args:
        require_llm: When ``True`` (the default), ``GEMINI_API_KEY`` must
            be set.  Rule-only callers pass ``False``.

    Returns:
        A validated :class:`Settings` instance.

    Raises:
        ConfigError: If a required variable is missing, or a numeric
            variable does not parse.  The message names **all** offending
            variables.
    """
    load_dotenv()

    values: dict[str, object] = {}
    problems: list[str] = []

    api_key = os.environ.get("GEMINI_API_KEY", "")
    if api_key.strip():
        values["gemini_api_key"] = api_key
    elif require_llm:
        problems.append("GEMINI_API_KEY (missing)")

    for env_var, field_name in _STR_VARS.items():
        raw = os.environ.get(env_var, "").strip()
        if raw:
            values[field_name] = raw

    for env_var, field_name in {**_INT_VARS, **_FLOAT_VARS}.items():
        raw = os.environ.get(env_var, "").strip()
        if not raw:
            continue
        cast = int if env_var in _INT_VARS else float
        try:
            number = cast(raw)
        except ValueError:
            problems.append(f"{env_var} (not a number: {raw!r})")
            continue
        if number <= 0:
            problems.append(f"{env_var} (must be positive: {raw!r})")
            continue
        values[field_name] = number

    if problems:
        raise ConfigError(f"Invalid or missing environment variables: {', '.join(problems)}")

    return Settings(**values)
