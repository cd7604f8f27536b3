"""Configuration: frozen Config with explicit model and resolved credentials."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import os
from typing import Any

from dotenv import load_dotenv

from gemwire._http import GEMINI_BASE_URL, UPLOAD_BASE_URL
from gemwire.errors import ConfigurationError, CredentialError

load_dotenv()

API_KEY_ENV_VAR = "GEMINI_API_KEY"
LOG_PAYLOADS_ENV_VAR = "GEMWIRE_LOG_PAYLOADS"

DEFAULT_TIMEOUT_S = 300.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_S = 2.0


def _log_payloads_default() -> bool:
    return os.getenv(LOG_PAYLOADS_ENV_VAR) == "1"


@dataclass(frozen=True)
class Config:
    """Immutable configuration for one client value.

    The model is required. The API key is auto-resolved from ``GEMINI_API_KEY``
    when not passed explicitly.

    Example:
        config = Config(model="gemini-2.0-flash")
        # API key is automatically resolved from GEMINI_API_KEY
    """

    model: str
    #: Auto-resolved from ``GEMINI_API_KEY`` when *None*.
    api_key: str | None = None
    base_url: str = GEMINI_BASE_URL
    upload_base_url: str = UPLOAD_BASE_URL
    timeout_s: float = DEFAULT_TIMEOUT_S
    max_retries: int = DEFAULT_MAX_RETRIES
    #: Constant pause between attempts (no exponential growth).
    retry_delay_s: float = DEFAULT_RETRY_DELAY_S
    #: Log request/response bodies at DEBUG level.
    log_payloads: bool = field(default_factory=_log_payloads_default)

    def __post_init__(self) -> None:
        """Auto-resolve API key and validate configuration."""
        if not isinstance(self.model, str) or not self.model.strip():
            raise ConfigurationError(
                "model must be a non-empty string",
                hint="Pass model='gemini-2.0-flash' (or another model id).",
            )
        if self.max_retries < 0:
            raise ConfigurationError(
                f"max_retries must be >= 0, got {self.max_retries}",
                hint="Total attempts are 1 + max_retries.",
            )
        if self.retry_delay_s < 0:
            raise ConfigurationError(
                f"retry_delay_s must be >= 0, got {self.retry_delay_s}",
            )
        if self.timeout_s <= 0:
            raise ConfigurationError(
                f"timeout_s must be > 0, got {self.timeout_s}",
                hint="The timeout is a hard deadline per HTTP attempt.",
            )

        if self.api_key is None:
            object.__setattr__(self, "api_key", os.environ.get(API_KEY_ENV_VAR))

        if not self.api_key:
            raise CredentialError(
                "Gemini API key not found",
                hint=f"Set {API_KEY_ENV_VAR} environment variable or pass api_key=...",
            )

    def with_changes(self, **changes: Any) -> Config:
        """Return a new validated Config with *changes* applied."""
        return replace(self, **changes)

    # --- Endpoints ---

    def generate_url(self, *, stream: bool = False) -> str:
        """URL for one-shot or incremental content generation."""
        if stream:
            return (
                f"{self.base_url}/models/{self.model}:streamGenerateContent"
                f"?alt=sse&key={self.api_key}"
            )
        return f"{self.base_url}/models/{self.model}:generateContent?key={self.api_key}"

    def embed_url(self) -> str:
        """URL for embedding a single turn."""
        return f"{self.base_url}/models/{self.model}:embedContent?key={self.api_key}"

    def files_url(self) -> str:
        """URL that starts a resumable upload session."""
        return f"{self.upload_base_url}/files?key={self.api_key}"

    def cached_contents_url(self) -> str:
        """URL that registers cached content."""
        return f"{self.base_url}/cachedContents?key={self.api_key}"

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"Config(model={self.model!r}, "
            f"api_key={'[REDACTED]' if self.api_key else None}, "
            f"timeout_s={self.timeout_s}, max_retries={self.max_retries})"
        )

    __repr__ = __str__
