"""Pytest configuration and fixtures.

Provides environment isolation, logging configuration and a scripted fake of
the remote service. All fixtures here are autouse unless noted.
"""

from __future__ import annotations

from contextlib import suppress
from dataclasses import dataclass, field
import json
import logging
import os
from typing import Any

import httpx
import pytest

from gemwire.config import Config

# =============================================================================
# Test Doubles
# =============================================================================

Scripted = httpx.Response | Exception


def json_response(
    payload: Any, status_code: int = 200, headers: dict[str, str] | None = None
) -> httpx.Response:
    return httpx.Response(
        status_code,
        content=json.dumps(payload).encode(),
        headers={"Content-Type": "application/json", **(headers or {})},
    )


def chat_payload(text: str = "ok", finish_reason: str = "STOP") -> dict[str, Any]:
    return {
        "candidates": [
            {
                "content": {"role": "model", "parts": [{"text": text}]},
                "finishReason": finish_reason,
                "index": 0,
            }
        ],
        "modelVersion": "gemini-2.0-flash-001",
        "usageMetadata": {
            "promptTokenCount": 7,
            "candidatesTokenCount": 1,
            "totalTokenCount": 8,
        },
    }


@dataclass
class FakeService:
    """Scripted stand-in for the HTTPS endpoint.

    Responses (or exceptions to raise) are served in order; the last one
    repeats once the script runs out. Every request is captured for assertions.
    """

    script: list[Scripted] = field(default_factory=list)
    requests: list[httpx.Request] = field(default_factory=list)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        idx = min(len(self.requests), len(self.script)) - 1
        item = self.script[idx]
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def body(self, idx: int = -1) -> dict[str, Any]:
        """Decoded JSON body of a captured request."""
        return json.loads(self.requests[idx].content)


@pytest.fixture
def service() -> FakeService:
    return FakeService()


@pytest.fixture
def config() -> Config:
    return Config(model="gemini-2.0-flash", api_key="test-key")


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Record retry and post-upload pauses instead of waiting."""
    recorded: list[float] = []

    async def _fake_sleep(delay: float) -> None:
        recorded.append(delay)

    monkeypatch.setattr("gemwire.retry._sleep", _fake_sleep)
    monkeypatch.setattr("gemwire.upload._sleep", _fake_sleep)
    return recorded


# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "dotenv.load_dotenv", lambda *_args, **_kwargs: False, raising=False
        )


@pytest.fixture(autouse=True)
def isolate_gemini_env(request, monkeypatch):
    """Ensure a clean environment for each test.

    Clears GEMINI_* and GEMWIRE_* env vars to prevent test pollution.
    Opt-out: @pytest.mark.allow_env_pollution
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return

    for key in list(os.environ.keys()):
        if key.startswith(("GEMINI_", "GEMWIRE_")):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
