"""Map HTTP outcomes into the closed error taxonomy.

Order of inspection: transport failures are raised by ``gemwire.transport``
before a response exists; here a response is checked for a malformed body,
then for a service-reported structured error, and finally falls back to an
unspecified service failure.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from gemwire.errors import (
    APIError,
    ResponseDecodeError,
    ServiceError,
    UnspecifiedServiceError,
)
from gemwire.responses import ChatResponse, EmbedResponse, ErrorDetails

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)

_BODY_LOG_LIMIT = 2000


def _auth_hint(status_code: int | None, message: str) -> str | None:
    lowered = message.lower()
    if status_code in {401, 403} or (
        status_code == 400 and ("api key" in lowered or "api_key" in lowered)
    ):
        return "Check credentials (set GEMINI_API_KEY or pass api_key=...)."
    return None


def service_error(
    details: ErrorDetails, *, status_code: int | None, phase: str
) -> ServiceError:
    """Build a ServiceError from the service's structured ``error`` object."""
    message = details.message or "Service reported an error without a message"
    return ServiceError(
        message,
        hint=_auth_hint(status_code, message),
        status_code=status_code,
        phase=phase,
        retryable=False,
        service_code=details.code,
        service_status=details.status,
        details=details.details,
    )


def _structured_error(payload: Any) -> ErrorDetails | None:
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if not isinstance(error, dict):
        return None
    try:
        return ErrorDetails.model_validate(error)
    except ValidationError:
        return None


def classify_response(response: httpx.Response, *, phase: str) -> APIError:
    """Classify a non-success response. Always logs the raw status and body."""
    status = response.status_code
    body = response.text
    logger.error(
        "%s failed with status %d: %s", phase, status, body[:_BODY_LOG_LIMIT]
    )

    try:
        payload = json.loads(body) if body else None
    except ValueError:
        payload = None

    details = _structured_error(payload)
    if details is not None and details.message:
        return service_error(details, status_code=status, phase=phase)

    return UnspecifiedServiceError(
        f"{phase} failed with status {status} and no structured error",
        hint=_auth_hint(status, body),
        status_code=status,
        phase=phase,
        retryable=status >= 500 or status == 429,
    )


def _log_unusable_body(phase: str, status: int | None, reason: str, body: str) -> None:
    logger.error(
        "%s returned an unusable body (status %s, %s): %s",
        phase,
        status,
        reason,
        body[:_BODY_LOG_LIMIT],
    )


def decode_json_text(
    text: str, *, phase: str, status_code: int | None = None
) -> dict[str, Any]:
    """Parse *text* as a JSON object. Logs the status and body on failure."""
    try:
        payload = json.loads(text)
    except ValueError as exc:
        _log_unusable_body(phase, status_code, "not JSON", text)
        raise ResponseDecodeError(
            f"{phase} returned a body that is not JSON: {exc}",
            status_code=status_code,
            phase=phase,
        ) from exc
    if not isinstance(payload, dict):
        _log_unusable_body(phase, status_code, "not an object", text)
        raise ResponseDecodeError(
            f"{phase} returned JSON of type {type(payload).__name__}, expected an object",
            status_code=status_code,
            phase=phase,
        )
    return payload


def decode_json(response: httpx.Response, *, phase: str) -> dict[str, Any]:
    """Parse a success body as a JSON object."""
    return decode_json_text(
        response.text, phase=phase, status_code=response.status_code
    )


def _embedded_error(
    details: ErrorDetails, payload: dict[str, Any], *, phase: str, status_code: int | None
) -> ServiceError:
    logger.error(
        "%s returned an embedded error (status %s): %s",
        phase,
        status_code,
        json.dumps(payload)[:_BODY_LOG_LIMIT],
    )
    return service_error(details, status_code=status_code, phase=phase)


def decode_chat_payload(
    payload: dict[str, Any], *, phase: str, status_code: int | None = None
) -> ChatResponse:
    """Validate a decoded body as ChatResponse, surfacing embedded errors."""
    try:
        decoded = ChatResponse.model_validate(payload)
    except ValidationError as exc:
        _log_unusable_body(phase, status_code, "schema mismatch", json.dumps(payload))
        raise ResponseDecodeError(
            f"{phase} response did not match the expected schema: {exc}",
            status_code=status_code,
            phase=phase,
        ) from exc
    # Success at the transport level can still carry an application-level error.
    if decoded.error is not None:
        raise _embedded_error(decoded.error, payload, phase=phase, status_code=status_code)
    return decoded


def decode_chat_response(response: httpx.Response, *, phase: str) -> ChatResponse:
    """Decode a 2xx ``generateContent`` response."""
    payload = decode_json(response, phase=phase)
    return decode_chat_payload(payload, phase=phase, status_code=response.status_code)


def decode_embed_response(response: httpx.Response, *, phase: str) -> EmbedResponse:
    """Decode a 2xx ``embedContent`` response."""
    status = response.status_code
    payload = decode_json(response, phase=phase)
    try:
        decoded = EmbedResponse.model_validate(payload)
    except ValidationError as exc:
        _log_unusable_body(phase, status, "schema mismatch", response.text)
        raise ResponseDecodeError(
            f"{phase} response did not match the expected schema: {exc}",
            status_code=status,
            phase=phase,
        ) from exc
    if decoded.error is not None:
        raise _embedded_error(decoded.error, payload, phase=phase, status_code=status)
    if decoded.embedding is None:
        _log_unusable_body(phase, status, "no embedding", response.text)
        raise ResponseDecodeError(
            f"{phase} response carried no embedding",
            status_code=status,
            phase=phase,
        )
    return decoded
