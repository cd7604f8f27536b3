"""Exception hierarchy for gemwire.

Every failure surfaced by the client belongs to one closed taxonomy. Each
exception carries a human ``hint`` and a machine-readable ``diagnostic`` code so
callers (and tests) can branch on the cause without parsing messages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator


class GemwireError(Exception):
    """Base exception for all gemwire errors."""

    diagnostic: str = "gemwire.error"

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        diagnostic: str | None = None,
    ) -> None:
        super().__init__(message)
        self.hint = hint
        if diagnostic is not None:
            self.diagnostic = diagnostic


class ConfigurationError(GemwireError):
    """Client configuration or caller input is invalid."""

    diagnostic = "config.invalid"


class CredentialError(ConfigurationError):
    """No API key could be resolved."""

    diagnostic = "credentials.missing"


class InvalidMimeTypeError(ConfigurationError):
    """A MIME type could not be inferred for the given input."""

    diagnostic = "mime.invalid"


class APIError(GemwireError):
    """A call to the remote service failed.

    ``phase`` names the operation that failed (``generate``, ``stream``,
    ``embed``, ``upload.start``, ``upload.finalize``, ``cache``).
    """

    diagnostic = "api.error"

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        diagnostic: str | None = None,
        status_code: int | None = None,
        phase: str | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message, hint=hint, diagnostic=diagnostic)
        self.status_code = status_code
        self.phase = phase
        self.retryable = retryable


class TransportError(APIError):
    """Connection, TLS or deadline failure before a response was received."""

    diagnostic = "transport.error"


class ResponseDecodeError(APIError):
    """A response body did not match the expected schema."""

    diagnostic = "response.decode"


class ServiceError(APIError):
    """The service reported a structured error (message, status, code)."""

    diagnostic = "service.error"

    def __init__(
        self,
        message: str,
        *,
        service_code: int | None = None,
        service_status: str | None = None,
        details: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.service_code = service_code
        self.service_status = service_status
        self.details = details or []


class UnspecifiedServiceError(APIError):
    """Non-success status without a structured error body."""

    diagnostic = "service.unspecified"


class UploadError(APIError):
    """Resumable upload failed."""

    diagnostic = "upload.error"


class UploadInputError(UploadError):
    """Upload inputs were mixed, absent or unreadable."""

    diagnostic = "upload.input"


class MissingUploadURLError(UploadError):
    """The start phase did not return an ``x-goog-upload-url`` header."""

    diagnostic = "upload.missing_url"


class MissingFileURIError(UploadError):
    """The finalize phase did not return ``file.uri``."""

    diagnostic = "upload.missing_file_uri"


def walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, with cycle protection."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
