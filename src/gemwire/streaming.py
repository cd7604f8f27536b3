"""Server-sent event decoding for incremental generation.

Bytes are decoded with an incremental UTF-8 decoder, so a multi-byte character
split across two reads is reassembled instead of being replaced. Events are
framed on the accumulated text buffer, which makes the decoded sequence
independent of how the transport chunks the body.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
from typing import TYPE_CHECKING

import httpx

from gemwire._http import JSON_CONTENT_TYPE, is_success, redact_url
from gemwire.classify import classify_response, decode_chat_payload, decode_json_text
from gemwire.errors import ResponseDecodeError
from gemwire.transport import open_client, wrap_transport_error

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from gemwire.responses import ChatResponse

logger = logging.getLogger(__name__)

EVENT_DELIMITER = "\n\n"
DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


class SSEDecoder:
    """Frames a byte stream into ``data:`` payloads.

    Feed raw chunks in arrival order; each call returns the payloads of the
    events completed by that chunk. Once an event ending in ``[DONE]`` is seen,
    ``done`` is set and nothing further is returned.
    """

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.done = False

    def feed(self, chunk: bytes) -> list[str]:
        if self.done:
            return []
        text = self._utf8.decode(chunk)
        self._buffer = (self._buffer + text).replace("\r\n", "\n")
        return self._drain()

    def flush(self) -> list[str]:
        """Emit a trailing event that was not followed by a blank line."""
        if self.done:
            return []
        self._buffer += self._utf8.decode(b"", final=True)
        self._buffer = self._buffer.replace("\r\n", "\n")
        payloads = self._drain()
        tail, self._buffer = self._buffer, ""
        if tail.strip() and not self.done:
            payloads.extend(self._handle_event(tail))
        return payloads

    def _drain(self) -> list[str]:
        payloads: list[str] = []
        while not self.done and EVENT_DELIMITER in self._buffer:
            event, self._buffer = self._buffer.split(EVENT_DELIMITER, 1)
            payloads.extend(self._handle_event(event))
        return payloads

    def _handle_event(self, event: str) -> list[str]:
        if not event.strip():
            return []
        if event.rstrip().endswith(DONE_SENTINEL):
            self.done = True
            return []
        data_lines = [
            line[len(DATA_PREFIX) :].removeprefix(" ")
            for line in event.split("\n")
            if line.startswith(DATA_PREFIX)
        ]
        if not data_lines:
            return []
        return ["\n".join(data_lines)]


def _decode_event(data: str, *, log_payloads: bool) -> ChatResponse | None:
    if log_payloads:
        logger.debug("stream event: %s", data)
    try:
        payload = decode_json_text(data, phase="stream")
        return decode_chat_payload(payload, phase="stream")
    except ResponseDecodeError as exc:
        logger.warning("Skipping malformed stream event: %s", exc)
        return None


async def stream_chat(
    url: str,
    body: bytes,
    *,
    timeout: float,
    transport: httpx.AsyncBaseTransport | None = None,
    log_payloads: bool = False,
) -> AsyncIterator[ChatResponse]:
    """POST once and yield one ChatResponse per ``data:`` event.

    The sequence is lazy, finite and not restartable. Stop consuming (ideally
    via ``contextlib.aclosing``) to drop the body and close the connection.

    Raises:
        APIError: Classified error when the POST returns a non-success status.
        TransportError: When connecting or reading the body fails.
        ServiceError: When an event carries the service's structured error.
    """
    async with open_client(transport) as client:
        try:
            async with client.stream(
                "POST",
                url,
                content=body,
                headers={"Content-Type": JSON_CONTENT_TYPE},
                timeout=httpx.Timeout(timeout),
            ) as response:
                if not is_success(response.status_code):
                    await response.aread()
                    raise classify_response(response, phase="stream")

                logger.debug("stream opened: %s", redact_url(url))
                decoder = SSEDecoder()
                async for chunk in response.aiter_bytes():
                    for data in decoder.feed(chunk):
                        event = _decode_event(data, log_payloads=log_payloads)
                        if event is not None:
                            yield event
                    if decoder.done:
                        return
                for data in decoder.flush():
                    event = _decode_event(data, log_payloads=log_payloads)
                    if event is not None:
                        yield event
        except asyncio.CancelledError:
            raise
        except httpx.HTTPError as exc:
            raise wrap_transport_error(exc, url=url, phase="stream") from exc
