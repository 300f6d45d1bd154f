"""Shared fixtures for textcal tests."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Generator

import pytest

_ENV_VARS = (
    "GEMINI_API_KEY",
    "LLM_MODEL",
    "LLM_BUDGET_MS",
    "TIMEZONE",
    "LOG_LEVEL",
    "LATEST_CACHE_MAX_ENTRIES",
    "LATEST_CACHE_TTL_SECONDS",
)


class FakeGenerator:
    """In-memory stand-in for the text-generation capability.

    Returns *response*, raises *error*, or sleeps *delay* seconds first.
    Every call is recorded in :attr:`calls`.
    """

    def __init__(
        self,
        response: str = "",
        *,
        error: BaseException | None = None,
        delay: float = 0.0,
    ) -> None:
        self.response = response
        self.error = error
        self.delay = delay
        self.calls: list[dict] = []

    async def generate(
        self,
        prompt: str,
        *,
        model: str,
        temperature: float,
        max_output_tokens: int,
    ) -> str:
        self.calls.append(
            {
                "prompt": prompt,
                "model": model,
                "temperature": temperature,
                "max_output_tokens": max_output_tokens,
            }
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture()
def make_generator() -> Callable[..., FakeGenerator]:
    """Factory for :class:`FakeGenerator` instances."""
    return FakeGenerator


@pytest.fixture()
def monkeypatch_env(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set the required environment variables to valid defaults.

    Also patches ``load_dotenv`` so that a real ``.env`` file on disk does not
    override the test values.
    """
    monkeypatch.setattr("textcal.config.load_dotenv", lambda *_a, **_kw: None)
    for key in _ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    env_vars = {"GEMINI_API_KEY": "test-gemini-key-12345"}
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    return env_vars


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove all textcal-related environment variables."""
    monkeypatch.setattr("textcal.config.load_dotenv", lambda *_a, **_kw: None)
    for key in _ENV_VARS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture()
def fast_budget(monkeypatch: pytest.MonkeyPatch) -> None:
    """Lower the LLM budget floor so timeout tests finish quickly."""
    monkeypatch.setattr("textcal.llm.MIN_BUDGET_MS", 10)


@pytest.fixture(autouse=True)
def _reset_root_logger() -> Generator[None, None, None]:
    """Reset the root logger after each test to prevent handler leaks."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
