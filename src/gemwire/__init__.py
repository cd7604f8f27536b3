"""gemwire: async HTTP client for the Gemini generative-language REST API.

Public API:
    - GeminiChat: multi-turn chat, streaming, media upload, cached content
    - GeminiEmbed: single-turn embeddings
    - Config: configuration dataclass
    - Turn / parts / Schema: request model
    - ChatResponse / EmbedResponse: typed responses
"""

from __future__ import annotations

import logging

from gemwire.cache import (
    CacheHandle,
    CacheRegistry,
    create_cached_content,
    get_or_create_cache,
)
from gemwire.chat import GeminiChat
from gemwire.config import Config
from gemwire.embed import GeminiEmbed
from gemwire.errors import (
    APIError,
    ConfigurationError,
    CredentialError,
    GemwireError,
    InvalidMimeTypeError,
    MissingFileURIError,
    MissingUploadURLError,
    ResponseDecodeError,
    ServiceError,
    TransportError,
    UnspecifiedServiceError,
    UploadError,
    UploadInputError,
)
from gemwire.grounding import render_grounding_markdown
from gemwire.responses import (
    Candidate,
    ChatResponse,
    ContentEmbedding,
    EmbedResponse,
    ErrorDetails,
    FinishReason,
    GroundingMetadata,
    HarmProbability,
    SafetyRating,
    UsageMetadata,
)
from gemwire.retry import RetryPolicy
from gemwire.types import (
    ChatRequest,
    EmbedRequest,
    FileData,
    FileDataPart,
    FunctionCall,
    FunctionCallPart,
    FunctionDeclaration,
    FunctionResponse,
    FunctionResponsePart,
    GenerationConfig,
    HarmBlockThreshold,
    HarmCategory,
    InlineData,
    InlineDataPart,
    Part,
    SafetySetting,
    Schema,
    SchemaType,
    TaskType,
    TextPart,
    Tool,
    Turn,
    parse_part,
)
from gemwire.upload import UploadHandle, upload_media

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("gemwire")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("gemwire").addHandler(logging.NullHandler())

__all__ = [
    "APIError",
    "CacheHandle",
    "CacheRegistry",
    "Candidate",
    "ChatRequest",
    "ChatResponse",
    "Config",
    "ConfigurationError",
    "ContentEmbedding",
    "CredentialError",
    "EmbedRequest",
    "EmbedResponse",
    "ErrorDetails",
    "FileData",
    "FileDataPart",
    "FinishReason",
    "FunctionCall",
    "FunctionCallPart",
    "FunctionDeclaration",
    "FunctionResponse",
    "FunctionResponsePart",
    "GeminiChat",
    "GeminiEmbed",
    "GemwireError",
    "GenerationConfig",
    "GroundingMetadata",
    "HarmBlockThreshold",
    "HarmCategory",
    "HarmProbability",
    "InlineData",
    "InlineDataPart",
    "InvalidMimeTypeError",
    "MissingFileURIError",
    "MissingUploadURLError",
    "Part",
    "ResponseDecodeError",
    "RetryPolicy",
    "SafetyRating",
    "SafetySetting",
    "Schema",
    "SchemaType",
    "ServiceError",
    "TaskType",
    "TextPart",
    "Tool",
    "TransportError",
    "Turn",
    "UnspecifiedServiceError",
    "UploadError",
    "UploadHandle",
    "UploadInputError",
    "UsageMetadata",
    "create_cached_content",
    "get_or_create_cache",
    "parse_part",
    "render_grounding_markdown",
    "upload_media",
]
