"""Request model: turns, parts, tool schemas and generation configuration.

All models are frozen pydantic models with tuple sequences, so a value handed to
a client is owned by value and can never be mutated behind the client's back.
Field names are snake_case in Python and camelCase on the wire.

A ``Part`` is a closed union of exactly five shapes. Decoding a part object
that carries none, or more than one, of the variant keys is rejected rather
than silently picking one.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    field_validator,
)
from pydantic.alias_generators import to_camel

Role = Literal["user", "model", "function"]


class WireModel(BaseModel):
    """Base for every model that crosses the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        protected_namespaces=(),
    )

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-ready payload (camelCase keys, unset fields omitted)."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# =============================================================================
# Parts
# =============================================================================


class FunctionCall(WireModel):
    """A function invocation requested by the model."""

    name: str
    args: dict[str, Any] = Field(default_factory=dict)


class FunctionResponse(WireModel):
    """The caller's result for a previous function call."""

    name: str
    response: dict[str, Any] = Field(default_factory=dict)


class InlineData(WireModel):
    """Base64 payload sent inside the request body."""

    mime_type: str
    data: str


class FileData(WireModel):
    """Reference to a previously uploaded file."""

    mime_type: str
    file_uri: str


class TextPart(WireModel):
    kind: ClassVar[str] = "text"

    text: str


class FunctionCallPart(WireModel):
    kind: ClassVar[str] = "function_call"

    function_call: FunctionCall


class FunctionResponsePart(WireModel):
    kind: ClassVar[str] = "function_response"

    function_response: FunctionResponse


class InlineDataPart(WireModel):
    kind: ClassVar[str] = "inline_data"

    inline_data: InlineData


class FileDataPart(WireModel):
    kind: ClassVar[str] = "file_data"

    file_data: FileData


# Wire keys (both spellings the service accepts) -> variant tag.
_PART_KEYS: dict[str, str] = {
    "text": "text",
    "functionCall": "function_call",
    "function_call": "function_call",
    "functionResponse": "function_response",
    "function_response": "function_response",
    "inlineData": "inline_data",
    "inline_data": "inline_data",
    "fileData": "file_data",
    "file_data": "file_data",
}


def _part_tag(value: Any) -> str | None:
    """Pick the union member for *value*; None when zero or several variants are set."""
    if isinstance(value, BaseModel):
        return getattr(value, "kind", None)
    if not isinstance(value, dict):
        return None
    tags = {_PART_KEYS[key] for key in value if key in _PART_KEYS}
    if len(tags) != 1:
        return None
    return tags.pop()


Part = Annotated[
    Union[
        Annotated[TextPart, Tag("text")],
        Annotated[FunctionCallPart, Tag("function_call")],
        Annotated[FunctionResponsePart, Tag("function_response")],
        Annotated[InlineDataPart, Tag("inline_data")],
        Annotated[FileDataPart, Tag("file_data")],
    ],
    Discriminator(
        _part_tag,
        custom_error_type="invalid_part",
        custom_error_message="Part must carry exactly one of text, functionCall, "
        "functionResponse, inlineData or fileData",
    ),
]

_PART_ADAPTER: TypeAdapter[Any] = TypeAdapter(Part)


def parse_part(value: Any) -> Part:
    """Validate one part object (wire dict or model).

    Raises:
        pydantic.ValidationError: If *value* populates zero or several variants.
    """
    return _PART_ADAPTER.validate_python(value)


class Turn(WireModel):
    """One message of a conversation: a role plus an ordered sequence of parts."""

    role: Role = "user"
    parts: tuple[Part, ...] = ()

    @classmethod
    def from_text(cls, text: str, *, role: Role = "user") -> Turn:
        return cls(role=role, parts=(TextPart(text=text),))

    @property
    def text(self) -> str:
        """Concatenated text of all text parts."""
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))


# =============================================================================
# Schemas and tools
# =============================================================================


class SchemaType(str, Enum):
    TYPE_UNSPECIFIED = "TYPE_UNSPECIFIED"
    STRING = "STRING"
    NUMBER = "NUMBER"
    INTEGER = "INTEGER"
    BOOLEAN = "BOOLEAN"
    ARRAY = "ARRAY"
    OBJECT = "OBJECT"


class Schema(WireModel):
    """Typed description of a JSON value shape (the OpenAPI subset the service accepts).

    Use the constructors for the common shapes::

        Schema.object(
            {"severity": Schema.string(), "code_display": Schema.string()},
            required=["severity", "code_display"],
        )
    """

    type: SchemaType
    format: str | None = None
    description: str | None = None
    nullable: bool | None = None
    enum: tuple[str, ...] | None = None
    properties: dict[str, Schema] | None = None
    required: tuple[str, ...] | None = None
    items: Schema | None = None
    property_ordering: tuple[str, ...] | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _upper_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.upper()
        return value

    @classmethod
    def object(
        cls,
        properties: dict[str, Schema],
        *,
        required: list[str] | tuple[str, ...] | None = None,
        description: str | None = None,
    ) -> Schema:
        return cls(
            type=SchemaType.OBJECT,
            properties=properties,
            required=tuple(required) if required is not None else None,
            description=description,
        )

    @classmethod
    def array(cls, items: Schema, *, description: str | None = None) -> Schema:
        return cls(type=SchemaType.ARRAY, items=items, description=description)

    @classmethod
    def string(cls, *, description: str | None = None) -> Schema:
        return cls(type=SchemaType.STRING, description=description)

    @classmethod
    def number(cls, *, description: str | None = None) -> Schema:
        return cls(type=SchemaType.NUMBER, description=description)

    @classmethod
    def integer(cls, *, description: str | None = None) -> Schema:
        return cls(type=SchemaType.INTEGER, description=description)

    @classmethod
    def boolean(cls, *, description: str | None = None) -> Schema:
        return cls(type=SchemaType.BOOLEAN, description=description)

    @classmethod
    def enumeration(
        cls, values: list[str] | tuple[str, ...], *, description: str | None = None
    ) -> Schema:
        return cls(
            type=SchemaType.STRING,
            format="enum",
            enum=tuple(values),
            description=description,
        )


class FunctionDeclaration(WireModel):
    """A function the model may call."""

    name: str
    description: str | None = None
    parameters: Schema | None = None


class Tool(WireModel):
    """One tool entry: function declarations or a built-in tool."""

    function_declarations: tuple[FunctionDeclaration, ...] | None = None
    google_search: dict[str, Any] | None = None

    @classmethod
    def functions(cls, *declarations: FunctionDeclaration) -> Tool:
        return cls(function_declarations=declarations)

    @classmethod
    def search(cls) -> Tool:
        return cls(google_search={})


# =============================================================================
# Safety
# =============================================================================


class HarmCategory(str, Enum):
    UNSPECIFIED = "HARM_CATEGORY_UNSPECIFIED"
    HARASSMENT = "HARM_CATEGORY_HARASSMENT"
    HATE_SPEECH = "HARM_CATEGORY_HATE_SPEECH"
    SEXUALLY_EXPLICIT = "HARM_CATEGORY_SEXUALLY_EXPLICIT"
    DANGEROUS_CONTENT = "HARM_CATEGORY_DANGEROUS_CONTENT"
    CIVIC_INTEGRITY = "HARM_CATEGORY_CIVIC_INTEGRITY"

    @classmethod
    def _missing_(cls, value: object) -> HarmCategory:
        return cls.UNSPECIFIED


class HarmBlockThreshold(str, Enum):
    UNSPECIFIED = "HARM_BLOCK_THRESHOLD_UNSPECIFIED"
    BLOCK_LOW_AND_ABOVE = "BLOCK_LOW_AND_ABOVE"
    BLOCK_MEDIUM_AND_ABOVE = "BLOCK_MEDIUM_AND_ABOVE"
    BLOCK_ONLY_HIGH = "BLOCK_ONLY_HIGH"
    BLOCK_NONE = "BLOCK_NONE"
    OFF = "OFF"


class SafetySetting(WireModel):
    category: HarmCategory
    threshold: HarmBlockThreshold


# =============================================================================
# Requests
# =============================================================================

STRUCTURED_OUTPUT_MIME_TYPE = "application/json"


class GenerationConfig(WireModel):
    """Optional generation knobs. Unset fields fall back to service defaults."""

    temperature: float | None = None
    top_k: int | None = None
    top_p: float | None = None
    candidate_count: int | None = None
    max_output_tokens: int | None = None
    stop_sequences: tuple[str, ...] | None = None
    response_mime_type: str | None = None
    response_schema: Schema | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    response_logprobs: bool | None = None
    logprobs: int | None = None


class ChatRequest(WireModel):
    """Body of ``generateContent`` and ``streamGenerateContent``."""

    contents: tuple[Turn, ...] = ()
    tools: tuple[Tool, ...] | None = None
    #: Opaque passthrough; its shape varies by tool.
    tool_config: dict[str, Any] | None = None
    system_instruction: Turn | None = None
    generation_config: GenerationConfig = Field(default_factory=GenerationConfig)
    cached_content: str | None = None
    safety_settings: tuple[SafetySetting, ...] | None = None


class TaskType(str, Enum):
    """How the service should optimise an embedding vector."""

    UNSPECIFIED = "TASK_TYPE_UNSPECIFIED"
    RETRIEVAL_QUERY = "RETRIEVAL_QUERY"
    RETRIEVAL_DOCUMENT = "RETRIEVAL_DOCUMENT"
    SEMANTIC_SIMILARITY = "SEMANTIC_SIMILARITY"
    CLASSIFICATION = "CLASSIFICATION"
    CLUSTERING = "CLUSTERING"
    QUESTION_ANSWERING = "QUESTION_ANSWERING"
    FACT_VERIFICATION = "FACT_VERIFICATION"
    CODE_RETRIEVAL_QUERY = "CODE_RETRIEVAL_QUERY"


class EmbedRequest(WireModel):
    """Body of ``embedContent``: exactly one turn."""

    model: str
    content: Turn
    task_type: TaskType = TaskType.UNSPECIFIED
    title: str | None = None
    output_dimensionality: int | None = None


class CachedContentRequest(WireModel):
    """Body of ``cachedContents`` registration."""

    model: str
    contents: tuple[Turn, ...]
    system_instruction: Turn | None = None
    ttl: str
