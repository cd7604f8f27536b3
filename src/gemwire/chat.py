"""Chat invoker and its configuration builder.

``GeminiChat`` is an immutable value: every ``with_*`` method returns a new
client, so a partially configured chain can be shared, branched or discarded
freely. Content methods always append a new Turn; nothing edits an existing
one. The client holds no connection; each call opens and closes its own.

Example:
    chat = GeminiChat("gemini-2.0-flash").with_temperature(0.2).with_max_tokens(256)
    response = await chat.invoke("Summarize: patient has 2 active conditions.")
    print(response.text)
"""

from __future__ import annotations

from contextlib import aclosing
import logging
from typing import TYPE_CHECKING, Any

from gemwire import mime
from gemwire.cache import CacheHandle, create_cached_content
from gemwire.classify import decode_chat_response
from gemwire.config import Config
from gemwire.errors import ConfigurationError
from gemwire.retry import RetryPolicy, send_with_retries
from gemwire.streaming import stream_chat
from gemwire.transport import open_client, post
from gemwire.types import (
    STRUCTURED_OUTPUT_MIME_TYPE,
    ChatRequest,
    FileData,
    FileDataPart,
    FunctionResponse,
    FunctionResponsePart,
    InlineData,
    InlineDataPart,
    SafetySetting,
    Schema,
    Tool,
    Turn,
    parse_part,
)
from gemwire.upload import UploadHandle, upload_media

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable
    from pathlib import Path

    import httpx

    from gemwire.responses import ChatResponse
    from gemwire.types import Part

logger = logging.getLogger(__name__)


class GeminiChat:
    """Multi-turn chat client for ``generateContent``.

    Args:
        model: Model id, e.g. ``"gemini-2.0-flash"``. Overrides ``config.model``.
        config: Full configuration; built from *model* and the environment
            when omitted.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    __slots__ = ("_config", "_request", "_transport")

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
                    "GeminiChat needs a model or a Config",
                    hint="Pass GeminiChat('gemini-2.0-flash') or config=Config(...).",
                )
            config = Config(model=model)
        elif model is not None and model != config.model:
            config = config.with_changes(model=model)
        self._config = config
        self._request = ChatRequest()
        self._transport = transport

    def _evolve(
        self,
        *,
        config: Config | None = None,
        request: ChatRequest | None = None,
    ) -> GeminiChat:
        clone = object.__new__(GeminiChat)
        clone._config = config if config is not None else self._config
        clone._request = request if request is not None else self._request
        clone._transport = self._transport
        return clone

    def _with_request(self, **changes: Any) -> GeminiChat:
        return self._evolve(request=self._request.model_copy(update=changes))

    def _with_generation(self, **changes: Any) -> GeminiChat:
        generation = self._request.generation_config.model_copy(update=changes)
        return self._with_request(generation_config=generation)

    def _append(self, *turns: Turn) -> GeminiChat:
        for turn in turns:
            if not turn.parts:
                raise ConfigurationError(
                    "A turn must contain at least one part",
                    hint="Pass one or more parts, e.g. [TextPart(text='...')].",
                )
        return self._with_request(contents=self._request.contents + turns)

    # --- Inspection ---

    @property
    def config(self) -> Config:
        return self._config

    @property
    def request(self) -> ChatRequest:
        """The request that the next call would extend with its prompt."""
        return self._request

    @property
    def history(self) -> tuple[Turn, ...]:
        return self._request.contents

    def last_turn(self) -> Turn | None:
        """Return the most recently appended turn, or None when empty."""
        if not self._request.contents:
            return None
        return self._request.contents[-1]

    def __repr__(self) -> str:
        return (
            f"GeminiChat(model={self._config.model!r}, "
            f"turns={len(self._request.contents)})"
        )

    # --- Generation settings ---

    def with_temperature(self, temperature: float) -> GeminiChat:
        return self._with_generation(temperature=temperature)

    def with_top_k(self, top_k: int) -> GeminiChat:
        return self._with_generation(top_k=top_k)

    def with_top_p(self, top_p: float) -> GeminiChat:
        return self._with_generation(top_p=top_p)

    def with_candidate_count(self, candidate_count: int) -> GeminiChat:
        if candidate_count <= 0:
            raise ConfigurationError(
                f"candidate_count must be > 0, got {candidate_count}"
            )
        return self._with_generation(candidate_count=candidate_count)

    def with_max_tokens(self, max_tokens: int) -> GeminiChat:
        """Cap the number of generated tokens per candidate."""
        if max_tokens <= 0:
            raise ConfigurationError(
                f"max_tokens must be a positive integer, got {max_tokens}",
                hint="Pass max_tokens=256 or greater.",
            )
        return self._with_generation(max_output_tokens=max_tokens)

    def with_stop_sequences(self, stop_sequences: str | Iterable[str]) -> GeminiChat:
        """Stop generating at any of *stop_sequences*; a bare string is one sequence."""
        if isinstance(stop_sequences, str):
            stop_sequences = (stop_sequences,)
        return self._with_generation(stop_sequences=tuple(stop_sequences))

    def with_presence_penalty(self, penalty: float) -> GeminiChat:
        return self._with_generation(presence_penalty=penalty)

    def with_frequency_penalty(self, penalty: float) -> GeminiChat:
        return self._with_generation(frequency_penalty=penalty)

    def with_logprobs(self, logprobs: int) -> GeminiChat:
        """Return log probabilities for the top *logprobs* tokens at each step."""
        return self._with_generation(response_logprobs=True, logprobs=logprobs)

    def with_response_schema(self, schema: Schema | dict[str, Any]) -> GeminiChat:
        """Constrain output to *schema*.

        The response MIME type is always set to ``application/json`` alongside
        the schema; the service rejects one without the other.
        """
        if not isinstance(schema, Schema):
            schema = Schema.model_validate(schema)
        return self._with_generation(
            response_schema=schema,
            response_mime_type=STRUCTURED_OUTPUT_MIME_TYPE,
        )

    def with_system_prompt(self, system_prompt: str) -> GeminiChat:
        """Set the system instruction, replacing any previous one."""
        return self._with_request(system_instruction=Turn.from_text(system_prompt))

    # --- Conversation content ---

    def with_file_uri(self, file_uri: str, mime_type: str = mime.AUTO) -> GeminiChat:
        """Append a user turn referencing an uploaded file.

        ``mime_type="auto"`` infers the type from the URI's extension.
        """
        if mime_type == mime.AUTO:
            mime_type = mime.mime_type_for_path(file_uri)
        part = FileDataPart(file_data=FileData(mime_type=mime_type, file_uri=file_uri))
        return self._append(Turn(role="user", parts=(part,)))

    def with_upload(self, handle: UploadHandle) -> GeminiChat:
        return self._append(Turn(role="user", parts=(handle.as_part(),)))

    def with_inline_data(self, data: str, mime_type: str) -> GeminiChat:
        """Append a user turn carrying base64 *data* inline."""
        part = InlineDataPart(inline_data=InlineData(mime_type=mime_type, data=data))
        return self._append(Turn(role="user", parts=(part,)))

    def with_function_response(
        self,
        response: FunctionResponse | str,
        result: dict[str, Any] | None = None,
    ) -> GeminiChat:
        """Append a function turn with the result of a requested call.

        Accepts a ``FunctionResponse`` or a function name plus its result dict.
        """
        if isinstance(response, str):
            response = FunctionResponse(name=response, response=result or {})
        part = FunctionResponsePart(function_response=response)
        return self._append(Turn(role="function", parts=(part,)))

    def with_assistant_response(self, parts: Iterable[Part | dict[str, Any]]) -> GeminiChat:
        """Append a model turn, e.g. a previous candidate's content."""
        return self._append(
            Turn(role="model", parts=tuple(parse_part(p) for p in parts))
        )

    def with_multiple_parts(self, parts: Iterable[Part | dict[str, Any]]) -> GeminiChat:
        """Append one user turn made of several parts (text plus images, ...)."""
        return self._append(
            Turn(role="user", parts=tuple(parse_part(p) for p in parts))
        )

    def with_chat_history(self, history: Iterable[Turn | dict[str, Any]]) -> GeminiChat:
        """Append turns returned as ``ChatResponse.chat_history`` by an earlier call.

        Wire dicts (e.g. history persisted as JSON) are validated into turns.
        """
        return self._append(
            *(t if isinstance(t, Turn) else Turn.model_validate(t) for t in history)
        )

    # --- Request settings ---

    def with_cached_content(self, cache: CacheHandle | str) -> GeminiChat:
        name = cache.name if isinstance(cache, CacheHandle) else cache
        return self._with_request(cached_content=name)

    def with_tools(self, tools: Iterable[Tool | dict[str, Any]]) -> GeminiChat:
        """Replace the tool list."""
        parsed = tuple(t if isinstance(t, Tool) else Tool.model_validate(t) for t in tools)
        return self._with_request(tools=parsed)

    def with_tool_config(self, tool_config: dict[str, Any]) -> GeminiChat:
        return self._with_request(tool_config=dict(tool_config))

    def with_google_search(self) -> GeminiChat:
        """Add the built-in search tool so answers carry grounding metadata."""
        tools = (self._request.tools or ()) + (Tool.search(),)
        return self._with_request(tools=tools)

    def with_safety_settings(
        self, safety_settings: Iterable[SafetySetting | dict[str, Any]]
    ) -> GeminiChat:
        parsed = tuple(
            s if isinstance(s, SafetySetting) else SafetySetting.model_validate(s)
            for s in safety_settings
        )
        return self._with_request(safety_settings=parsed)

    # --- Client settings ---

    def with_timeout(self, timeout_s: float) -> GeminiChat:
        return self._evolve(config=self._config.with_changes(timeout_s=timeout_s))

    def with_max_retries(self, max_retries: int) -> GeminiChat:
        return self._evolve(config=self._config.with_changes(max_retries=max_retries))

    def with_model(self, model: str) -> GeminiChat:
        return self._evolve(config=self._config.with_changes(model=model))

    def with_api_key(self, api_key: str) -> GeminiChat:
        return self._evolve(config=self._config.with_changes(api_key=api_key))

    # --- Invocation ---

    def _serialize(self, request: ChatRequest) -> bytes:
        body = request.model_dump_json(by_alias=True, exclude_none=True)
        if self._config.log_payloads:
            logger.debug("chat request: %s", body)
        return body.encode()

    async def invoke(self, prompt: str) -> ChatResponse:
        """Send the history plus *prompt* as a new user turn.

        The returned ``chat_history`` holds this client's turns including the
        prompt; feed it to ``with_chat_history`` to continue the conversation.
        The client itself is not changed.

        Raises:
            TransportError: On connect, TLS or deadline failures (not retried).
            ServiceError: When the service reports a structured error, either
                after the last retry or embedded in a 2xx body.
            UnspecifiedServiceError: Non-2xx after the last retry, no error body.
            ResponseDecodeError: When a 2xx body does not match ChatResponse.
        """
        request = self._append(Turn.from_text(prompt))._request
        body = self._serialize(request)
        url = self._config.generate_url()
        policy = RetryPolicy.from_config(self._config)

        async with open_client(self._transport) as client:
            response = await send_with_retries(
                lambda: post(
                    client, url, body, timeout=self._config.timeout_s, phase="generate"
                ),
                policy=policy,
                phase="generate",
            )
        if self._config.log_payloads:
            logger.debug("chat response: %s", response.text)

        decoded = decode_chat_response(response, phase="generate")
        return decoded.model_copy(update={"chat_history": request.contents})

    async def stream(self, prompt: str) -> AsyncIterator[ChatResponse]:
        """Yield partial responses for *prompt* as the service produces them.

        Single attempt, no retries. Breaking out of the loop closes the
        connection.
        """
        request = self._append(Turn.from_text(prompt))._request
        body = self._serialize(request)
        events = stream_chat(
            self._config.generate_url(stream=True),
            body,
            timeout=self._config.timeout_s,
            transport=self._transport,
            log_payloads=self._config.log_payloads,
        )
        async with aclosing(events):
            async for event in events:
                yield event

    async def upload_media(
        self,
        *,
        display_name: str,
        file_path: str | Path | None = None,
        data: str | None = None,
        mime_type: str = mime.AUTO,
    ) -> UploadHandle:
        """Upload a file or base64 payload; attach the result with ``with_upload``."""
        return await upload_media(
            self._config,
            display_name=display_name,
            file_path=file_path,
            data=data,
            mime_type=mime_type,
            transport=self._transport,
        )

    async def cache_content(
        self,
        data: str,
        mime_type: str,
        instruction: str,
        ttl_seconds: int,
    ) -> CacheHandle:
        """Register base64 *data* as cached content for this client's model."""
        return await create_cached_content(
            self._config,
            data=data,
            mime_type=mime_type,
            instruction=instruction,
            ttl_seconds=ttl_seconds,
            transport=self._transport,
        )
