"""Sequential retry over non-success responses.

Design goals:
- Attempts are strictly sequential: ``1 + max_retries`` at most
- The pause between attempts is constant (no exponential growth, no jitter)
- Only non-2xx responses are retried; transport failures propagate at once
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING

from gemwire._http import is_success
from gemwire.classify import classify_response
from gemwire.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import httpx

    from gemwire.config import Config

logger = logging.getLogger(__name__)

# Indirection so tests can observe the pauses without waiting.
_sleep = asyncio.sleep


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry policy with a fixed delay."""

    max_retries: int = 3
    delay_s: float = 2.0

    def __post_init__(self) -> None:
        """Validate invariants to keep retry behavior predictable."""
        if self.max_retries < 0:
            raise ConfigurationError("RetryPolicy.max_retries must be >= 0")
        if self.delay_s < 0:
            raise ConfigurationError("RetryPolicy.delay_s must be >= 0")

    @property
    def max_attempts(self) -> int:
        return 1 + self.max_retries

    @classmethod
    def from_config(cls, config: Config) -> RetryPolicy:
        return cls(max_retries=config.max_retries, delay_s=config.retry_delay_s)


async def send_with_retries(
    send: Callable[[], Awaitable[httpx.Response]],
    *,
    policy: RetryPolicy,
    phase: str,
) -> httpx.Response:
    """Issue ``send()`` until a 2xx response or the attempts run out.

    Returns:
        The first successful response.

    Raises:
        APIError: The classified final response when every attempt failed.
        TransportError: Immediately, from any attempt.
    """
    response = await send()

    for attempt in range(1, policy.max_retries + 1):
        if is_success(response.status_code):
            break

        logger.warning(
            "%s server error (attempt %d/%d): %d",
            phase,
            attempt,
            policy.max_retries,
            response.status_code,
        )
        await _sleep(policy.delay_s)
        response = await send()

    if not is_success(response.status_code):
        raise classify_response(response, phase=phase)
    return response
