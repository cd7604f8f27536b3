"""Static file-extension to MIME type table used by ``mime_type="auto"``.

Inference never reads file content. Unknown extensions fall back to
``text/plain``.
"""

from __future__ import annotations

from pathlib import PurePosixPath

AUTO = "auto"
DEFAULT_MIME_TYPE = "text/plain"

_EXTENSION_MIME_TYPES: dict[str, str] = {
    # Images
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
    # Video
    "mp4": "video/mp4",
    "flv": "video/x-flv",
    "mov": "video/quicktime",
    "mpg": "video/mpeg",
    "mpeg": "video/mpeg",
    "mpegs": "video/mpeg",
    "3gpp": "video/3gpp",
    "webm": "video/webm",
    "wmv": "video/x-ms-wmv",
    # Documents
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "rtf": "application/rtf",
    "dot": "application/msword",
    "dotx": "application/vnd.openxmlformats-officedocument.wordprocessingml.template",
    "txt": "text/plain",
    "csv": "text/csv",
    "tsv": "text/tab-separated-values",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    # Audio
    "mp3": "audio/mpeg",
    "aac": "audio/aac",
    "mpa": "audio/mpeg",
    "flac": "audio/flac",
    "wav": "audio/wav",
    "opus": "audio/opus",
    "pcm": "audio/pcm",
}


def mime_type_for_extension(extension: str) -> str:
    """Return the MIME type for *extension* (with or without the leading dot)."""
    return _EXTENSION_MIME_TYPES.get(
        extension.lstrip(".").lower(), DEFAULT_MIME_TYPE
    )


def mime_type_for_path(path: str) -> str:
    """Infer a MIME type from the extension of a path or URI."""
    return mime_type_for_extension(PurePosixPath(path).suffix)


def is_video(mime_type: str) -> bool:
    return mime_type.startswith("video")
