"""Single-attempt HTTPS POST primitive.

No retry logic lives here; the invokers decide whether to send again. Transport
level failures (connect, TLS, deadline) are mapped into ``TransportError`` with
the underlying httpx exception preserved as ``__cause__``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import httpx

from gemwire._http import JSON_CONTENT_TYPE, redact_url
from gemwire.errors import TransportError, walk_exception_chain

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)


def open_client(transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """Create an HTTP client scoped to one invocation.

    ``transport`` lets tests swap in ``httpx.MockTransport``.
    """
    return httpx.AsyncClient(transport=transport)


def _transport_diagnostic(exc: BaseException) -> str:
    for e in walk_exception_chain(exc):
        if isinstance(e, (httpx.TimeoutException, TimeoutError)):
            return "transport.timeout"
        if isinstance(e, httpx.ConnectError):
            return "transport.connect"
    return "transport.error"


def wrap_transport_error(exc: BaseException, *, url: str, phase: str) -> TransportError:
    """Map an httpx failure into the transport taxonomy entry."""
    diagnostic = _transport_diagnostic(exc)
    hint = None
    if diagnostic == "transport.timeout":
        hint = "Increase the timeout (with_timeout) for long generations."
    return TransportError(
        f"POST {redact_url(url)} failed: {type(exc).__name__}: {exc}",
        hint=hint,
        diagnostic=diagnostic,
        phase=phase,
        retryable=True,
    )


async def post(
    client: httpx.AsyncClient,
    url: str,
    body: bytes,
    *,
    timeout: float,
    phase: str,
    headers: Mapping[str, str] | None = None,
    content_type: str | None = JSON_CONTENT_TYPE,
) -> httpx.Response:
    """Perform exactly one POST and return the raw response.

    Args:
        client: Invocation-scoped HTTP client.
        url: Target URL (may carry the API key; it is redacted in logs).
        body: Serialized request body.
        timeout: Hard deadline in seconds for the whole attempt.
        phase: Operation name attached to any raised error.
        headers: Extra request headers.
        content_type: ``Content-Type`` header value; ``None`` omits it.

    Raises:
        TransportError: On connect, TLS or deadline failures.
    """
    request_headers: dict[str, str] = {}
    if content_type is not None:
        request_headers["Content-Type"] = content_type
    if headers:
        request_headers.update(headers)

    logger.debug("POST %s (%d bytes)", redact_url(url), len(body))
    try:
        async with asyncio.timeout(timeout):
            return await client.post(
                url,
                content=body,
                headers=request_headers,
                timeout=httpx.Timeout(timeout),
            )
    except asyncio.CancelledError:
        raise
    except (TimeoutError, httpx.HTTPError) as exc:
        raise wrap_transport_error(exc, url=url, phase=phase) from exc
