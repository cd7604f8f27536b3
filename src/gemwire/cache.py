"""Cached content: server-side context reused across calls.

``create_cached_content`` registers one inline payload plus a system
instruction and returns a ``CacheHandle``. ``CacheRegistry`` is an optional,
caller-owned memo of handles keyed by content hash, with expiry tracking and
single-flight creation.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import hashlib
import logging
import time
from typing import TYPE_CHECKING

from gemwire._http import is_success
from gemwire.classify import classify_response, decode_json
from gemwire.errors import ResponseDecodeError
from gemwire.transport import open_client, post
from gemwire.types import CachedContentRequest, InlineData, InlineDataPart, Turn

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import httpx

    from gemwire.config import Config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheHandle:
    """Opaque name of a cached-content entry (``cachedContents/...``)."""

    name: str
    model: str | None = None
    ttl_seconds: int | None = None
    expire_time: str | None = None

    def __str__(self) -> str:
        return self.name


def build_cache_request(
    model: str, *, data: str, mime_type: str, instruction: str, ttl_seconds: int
) -> CachedContentRequest:
    return CachedContentRequest(
        model=f"models/{model}",
        contents=(
            Turn(
                role="user",
                parts=(InlineDataPart(inline_data=InlineData(mime_type=mime_type, data=data)),),
            ),
        ),
        system_instruction=Turn.from_text(instruction),
        ttl=f"{ttl_seconds}s",
    )


async def create_cached_content(
    config: Config,
    *,
    data: str,
    mime_type: str,
    instruction: str,
    ttl_seconds: int,
    transport: httpx.AsyncBaseTransport | None = None,
) -> CacheHandle:
    """Register base64 *data* as cached content for ``config.model``.

    Raises:
        TransportError: On connect, TLS or deadline failures.
        APIError: Classified error for a non-success status.
        ResponseDecodeError: When the response carries no ``name``.
    """
    request = build_cache_request(
        config.model,
        data=data,
        mime_type=mime_type,
        instruction=instruction,
        ttl_seconds=ttl_seconds,
    )
    body = request.model_dump_json(by_alias=True, exclude_none=True).encode()

    async with open_client(transport) as client:
        response = await post(
            client,
            config.cached_contents_url(),
            body,
            timeout=config.timeout_s,
            phase="cache",
        )
    if not is_success(response.status_code):
        raise classify_response(response, phase="cache")

    payload = decode_json(response, phase="cache")
    if config.log_payloads:
        logger.debug("cache response: %s", payload)
    name = payload.get("name")
    if not isinstance(name, str) or not name:
        logger.error(
            "cache response has no name (status %d): %s",
            response.status_code,
            response.text[:2000],
        )
        raise ResponseDecodeError(
            "Missing cache name",
            diagnostic="cache.missing_name",
            status_code=response.status_code,
            phase="cache",
        )
    expire_time = payload.get("expireTime")
    return CacheHandle(
        name=name.strip('"'),
        model=config.model,
        ttl_seconds=ttl_seconds,
        expire_time=expire_time if isinstance(expire_time, str) else None,
    )


def compute_cache_key(
    model: str, *, data: str, mime_type: str, instruction: str
) -> str:
    """Deterministic key from the model and a digest of the cached payload."""
    digest = hashlib.sha256()
    for piece in (model, mime_type, instruction, data):
        digest.update(piece.encode())
        digest.update(b"\x00")
    return digest.hexdigest()[:32]


def _consume_exception(fut: asyncio.Future[CacheHandle]) -> None:
    # Avoid 'Future exception was never retrieved' when nobody else waited.
    if not fut.cancelled():
        fut.exception()


@dataclass
class CacheRegistry:
    """Handles by key, dropped once their TTL has elapsed."""

    _entries: dict[str, tuple[CacheHandle, float]] = field(default_factory=dict)
    _inflight: dict[str, asyncio.Future[CacheHandle]] = field(default_factory=dict)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def get(self, key: str) -> CacheHandle | None:
        """Get the handle if present and not expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        handle, expires_at = entry
        if time.monotonic() >= expires_at:
            del self._entries[key]
            return None
        return handle

    def set(self, key: str, handle: CacheHandle, ttl_seconds: int) -> None:
        now = time.monotonic()
        for stale in [k for k, (_, exp) in self._entries.items() if now >= exp]:
            del self._entries[stale]
        self._entries[key] = (handle, now + max(0, ttl_seconds))

    async def get_or_create(
        self,
        key: str,
        *,
        ttl_seconds: int,
        create: Callable[[], Awaitable[CacheHandle]],
    ) -> CacheHandle:
        """Return the live handle for *key*, creating it at most once at a time.

        Concurrent callers for the same key share one ``create()`` call.
        """
        async with self._lock:
            cached = self.get(key)
            if cached is not None:
                return cached
            fut = self._inflight.get(key)
            creator = fut is None
            if fut is None:
                fut = asyncio.get_running_loop().create_future()
                fut.add_done_callback(_consume_exception)
                self._inflight[key] = fut

        if not creator:
            return await fut

        try:
            handle = await create()
        except asyncio.CancelledError:
            fut.cancel()
            raise
        except Exception as exc:
            fut.set_exception(exc)
            raise
        else:
            self.set(key, handle, ttl_seconds)
            fut.set_result(handle)
            return handle
        finally:
            async with self._lock:
                self._inflight.pop(key, None)


async def get_or_create_cache(
    registry: CacheRegistry,
    config: Config,
    *,
    data: str,
    mime_type: str,
    instruction: str,
    ttl_seconds: int,
    transport: httpx.AsyncBaseTransport | None = None,
) -> CacheHandle:
    """Reuse a live handle for identical content, or register it once."""
    key = compute_cache_key(
        config.model, data=data, mime_type=mime_type, instruction=instruction
    )
    return await registry.get_or_create(
        key,
        ttl_seconds=ttl_seconds,
        create=lambda: create_cached_content(
            config,
            data=data,
            mime_type=mime_type,
            instruction=instruction,
            ttl_seconds=ttl_seconds,
            transport=transport,
        ),
    )
