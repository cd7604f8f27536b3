"""Embedding invoker for ``embedContent``."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from gemwire.classify import decode_embed_response
from gemwire.config import Config
from gemwire.errors import ConfigurationError
from gemwire.retry import RetryPolicy, send_with_retries
from gemwire.transport import open_client, post
from gemwire.types import EmbedRequest, TaskType, Turn

if TYPE_CHECKING:
    import httpx

    from gemwire.responses import EmbedResponse

logger = logging.getLogger(__name__)

#: Embedding calls are not retried unless asked for.
DEFAULT_EMBED_MAX_RETRIES = 0


class GeminiEmbed:
    """Single-turn embedding client.

    Same value semantics as ``GeminiChat``; each ``embed`` call sends exactly
    one user turn and never accumulates history.

    Example:
        embedder = GeminiEmbed("text-embedding-004").with_task_type(TaskType.RETRIEVAL_QUERY)
        vector = (await embedder.embed("active conditions")).values
    """

    __slots__ = ("_config", "_task_type", "_title", "_output_dimensionality", "_transport")

    def __init__(
        self,
        model: str | None = None,
        *,
        config: Config | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if config is None:
            if model is None:
                raise ConfigurationError(
                    "GeminiEmbed needs a model or a Config",
                    hint="Pass GeminiEmbed('text-embedding-004') or config=Config(...).",
                )
            config = Config(model=model, max_retries=DEFAULT_EMBED_MAX_RETRIES)
        elif model is not None and model != config.model:
            config = config.with_changes(model=model)
        self._config = config
        self._task_type = TaskType.UNSPECIFIED
        self._title: str | None = None
        self._output_dimensionality: int | None = None
        self._transport = transport

    def _evolve(self, **changes: object) -> GeminiEmbed:
        clone = object.__new__(GeminiEmbed)
        for slot in self.__slots__:
            setattr(clone, slot, changes.get(slot.lstrip("_"), getattr(self, slot)))
        return clone

    @property
    def config(self) -> Config:
        return self._config

    def __repr__(self) -> str:
        return (
            f"GeminiEmbed(model={self._config.model!r}, "
            f"task_type={self._task_type.value})"
        )

    def with_output_dimensionality(self, dimensions: int) -> GeminiEmbed:
        """Truncate the returned vector to *dimensions* values."""
        if dimensions <= 0:
            raise ConfigurationError(
                f"output_dimensionality must be > 0, got {dimensions}"
            )
        return self._evolve(output_dimensionality=dimensions)

    def with_task_type(self, task_type: TaskType | str) -> GeminiEmbed:
        try:
            task_type = TaskType(task_type)
        except ValueError as exc:
            raise ConfigurationError(
                f"Unknown task type: {task_type!r}",
                hint="One of: " + ", ".join(t.value for t in TaskType) + ".",
            ) from exc
        return self._evolve(task_type=task_type)

    def with_title(self, title: str) -> GeminiEmbed:
        """Document title; only honoured with ``RETRIEVAL_DOCUMENT``."""
        return self._evolve(title=title)

    def with_max_retries(self, max_retries: int) -> GeminiEmbed:
        return self._evolve(config=self._config.with_changes(max_retries=max_retries))

    def with_timeout(self, timeout_s: float) -> GeminiEmbed:
        return self._evolve(config=self._config.with_changes(timeout_s=timeout_s))

    def with_api_key(self, api_key: str) -> GeminiEmbed:
        return self._evolve(config=self._config.with_changes(api_key=api_key))

    def with_model(self, model: str) -> GeminiEmbed:
        return self._evolve(config=self._config.with_changes(model=model))

    def build_request(self, text: str) -> EmbedRequest:
        return EmbedRequest(
            model=f"models/{self._config.model}",
            content=Turn.from_text(text),
            task_type=self._task_type,
            title=self._title,
            output_dimensionality=self._output_dimensionality,
        )

    async def embed(self, text: str) -> EmbedResponse:
        """Embed *text* and return the vector.

        Raises:
            TransportError: On connect, TLS or deadline failures.
            ServiceError: Structured error after the last retry or inside a 2xx body.
            UnspecifiedServiceError: Non-2xx after the last retry, no error body.
            ResponseDecodeError: When a 2xx body carries no embedding.
        """
        body = self.build_request(text).model_dump_json(
            by_alias=True, exclude_none=True
        )
        if self._config.log_payloads:
            logger.debug("embed request: %s", body)

        url = self._config.embed_url()
        async with open_client(self._transport) as client:
            response = await send_with_retries(
                lambda: post(
                    client,
                    url,
                    body.encode(),
                    timeout=self._config.timeout_s,
                    phase="embed",
                ),
                policy=RetryPolicy.from_config(self._config),
                phase="embed",
            )
        return decode_embed_response(response, phase="embed")
