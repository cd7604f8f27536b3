"""Small HTTP-related constants shared across gemwire.

This module is intentionally tiny to avoid circular imports and drift.
"""

from __future__ import annotations

import re

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
UPLOAD_BASE_URL = "https://generativelanguage.googleapis.com/upload/v1beta"

JSON_CONTENT_TYPE = "application/json"

# Resumable upload protocol headers.
UPLOAD_PROTOCOL_HEADER = "X-Goog-Upload-Protocol"
UPLOAD_COMMAND_HEADER = "X-Goog-Upload-Command"
UPLOAD_CONTENT_LENGTH_HEADER = "X-Goog-Upload-Header-Content-Length"
UPLOAD_CONTENT_TYPE_HEADER = "X-Goog-Upload-Header-Content-Type"
UPLOAD_OFFSET_HEADER = "X-Goog-Upload-Offset"
UPLOAD_URL_RESPONSE_HEADER = "x-goog-upload-url"

_KEY_PARAM_RE = re.compile(r"([?&]key=)[^&]*")


def is_success(status_code: int) -> bool:
    """Return True for 2xx statuses."""
    return 200 <= status_code < 300


def redact_url(url: str) -> str:
    """Hide the ``key`` query parameter so URLs are safe to log."""
    return _KEY_PARAM_RE.sub(r"\1[REDACTED]", url)
