"""Resumable media upload.

Two phases against the Files API:

1. start: POST file metadata with ``X-Goog-Upload-Protocol: resumable`` and
   ``X-Goog-Upload-Command: start``; the session URL comes back in the
   ``x-goog-upload-url`` response header.
2. upload + finalize: POST the raw bytes to that session URL at offset 0.

The resulting file URI is wrapped in an ``UploadHandle`` that can be attached to
a later turn as a file-reference part.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
from dataclasses import dataclass
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from gemwire import mime
from gemwire._http import (
    UPLOAD_COMMAND_HEADER,
    UPLOAD_CONTENT_LENGTH_HEADER,
    UPLOAD_CONTENT_TYPE_HEADER,
    UPLOAD_OFFSET_HEADER,
    UPLOAD_PROTOCOL_HEADER,
    UPLOAD_URL_RESPONSE_HEADER,
    is_success,
    redact_url,
)
from gemwire.classify import classify_response, decode_json
from gemwire.errors import (
    InvalidMimeTypeError,
    MissingFileURIError,
    MissingUploadURLError,
    UploadInputError,
)
from gemwire.transport import open_client, post
from gemwire.types import FileData, FileDataPart

if TYPE_CHECKING:
    import httpx

    from gemwire.config import Config

logger = logging.getLogger(__name__)

#: Pause after uploading video so server-side processing can begin.
VIDEO_PROCESSING_DELAY_S = 5.0

_sleep = asyncio.sleep


@dataclass(frozen=True)
class UploadHandle:
    """A file registered with the service, usable in later turns."""

    mime_type: str
    file_uri: str
    name: str | None = None
    display_name: str | None = None

    def as_part(self) -> FileDataPart:
        return FileDataPart(
            file_data=FileData(mime_type=self.mime_type, file_uri=self.file_uri)
        )


def resolve_upload_payload(
    *,
    file_path: str | Path | None,
    data: str | None,
    mime_type: str,
) -> tuple[bytes, str]:
    """Return the raw bytes to upload and the effective MIME type.

    Exactly one of *file_path* or *data* (base64 text) must be given.
    ``mime_type="auto"`` infers from the file extension and is only valid with
    *file_path*.

    Raises:
        UploadInputError: Both or neither input given, unreadable file, bad base64.
        InvalidMimeTypeError: ``auto`` requested for a base64 payload.
    """
    if file_path is not None and data is not None:
        raise UploadInputError(
            "Can't use both file_path and data",
            hint="Pass a local file path or a base64 payload, not both.",
        )
    if file_path is None and data is None:
        raise UploadInputError(
            "Must use file_path or data",
            hint="Pass file_path='scan.png' or data=<base64 string>.",
        )

    if file_path is not None:
        path = Path(file_path)
        if mime_type == mime.AUTO:
            mime_type = mime.mime_type_for_path(path.name)
        try:
            payload = path.read_bytes()
        except OSError as exc:
            raise UploadInputError(f"Could not read {path}: {exc}") from exc
        return payload, mime_type

    if mime_type == mime.AUTO:
        raise InvalidMimeTypeError(
            "Can't use mime_type='auto' with a base64 payload",
            hint="Pass the payload's MIME type explicitly, e.g. 'image/png'.",
        )
    try:
        payload = base64.b64decode("".join(data.split()), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise UploadInputError(f"Upload data is not valid base64: {exc}") from exc
    return payload, mime_type


async def _start_session(
    client: httpx.AsyncClient,
    config: Config,
    *,
    display_name: str,
    content_length: int,
    mime_type: str,
) -> str:
    body = json.dumps({"file": {"display_name": display_name}}).encode()
    headers = {
        UPLOAD_PROTOCOL_HEADER: "resumable",
        UPLOAD_COMMAND_HEADER: "start",
        UPLOAD_CONTENT_LENGTH_HEADER: str(content_length),
        UPLOAD_CONTENT_TYPE_HEADER: mime_type,
    }
    response = await post(
        client,
        config.files_url(),
        body,
        timeout=config.timeout_s,
        phase="upload.start",
        headers=headers,
    )
    if not is_success(response.status_code):
        raise classify_response(response, phase="upload.start")

    upload_url = response.headers.get(UPLOAD_URL_RESPONSE_HEADER)
    if not upload_url:
        raise MissingUploadURLError(
            "Missing upload URL",
            status_code=response.status_code,
            phase="upload.start",
        )
    return upload_url


async def _upload_and_finalize(
    client: httpx.AsyncClient,
    config: Config,
    *,
    upload_url: str,
    payload: bytes,
) -> dict[str, Any]:
    headers = {
        "Content-Length": str(len(payload)),
        UPLOAD_OFFSET_HEADER: "0",
        UPLOAD_COMMAND_HEADER: "upload, finalize",
    }
    response = await post(
        client,
        upload_url,
        payload,
        timeout=config.timeout_s,
        phase="upload.finalize",
        headers=headers,
        content_type=None,
    )
    if not is_success(response.status_code):
        raise classify_response(response, phase="upload.finalize")

    data = decode_json(response, phase="upload.finalize")
    if config.log_payloads:
        logger.debug("upload response: %s", data)
    file_info = data.get("file")
    if not isinstance(file_info, dict) or not isinstance(file_info.get("uri"), str):
        logger.error(
            "upload response has no file URI (status %d): %s",
            response.status_code,
            response.text[:2000],
        )
        raise MissingFileURIError(
            "Missing file URI",
            status_code=response.status_code,
            phase="upload.finalize",
        )
    return file_info


async def upload_media(
    config: Config,
    *,
    display_name: str,
    file_path: str | Path | None = None,
    data: str | None = None,
    mime_type: str = mime.AUTO,
    transport: httpx.AsyncBaseTransport | None = None,
) -> UploadHandle:
    """Upload a local file or base64 payload and return its handle."""
    payload, resolved_mime = resolve_upload_payload(
        file_path=file_path, data=data, mime_type=mime_type
    )

    async with open_client(transport) as client:
        upload_url = await _start_session(
            client,
            config,
            display_name=display_name,
            content_length=len(payload),
            mime_type=resolved_mime,
        )
        logger.debug("upload session opened: %s", redact_url(upload_url))
        file_info = await _upload_and_finalize(
            client, config, upload_url=upload_url, payload=payload
        )

    if mime.is_video(resolved_mime):
        # Best effort: gives transcoding a head start, does not wait for ACTIVE.
        await _sleep(VIDEO_PROCESSING_DELAY_S)

    return UploadHandle(
        mime_type=resolved_mime,
        file_uri=file_info["uri"].strip('"'),
        name=file_info.get("name"),
        display_name=display_name,
    )
