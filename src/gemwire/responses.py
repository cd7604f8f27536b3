"""Typed responses returned by the chat, stream and embed invokers."""

from __future__ import annotations

from enum import Enum
from typing import Any

from gemwire.types import FunctionCall, FunctionCallPart, HarmCategory, Turn, WireModel


class FinishReason(str, Enum):
    """Why a candidate stopped generating."""

    UNSPECIFIED = "FINISH_REASON_UNSPECIFIED"
    STOP = "STOP"
    MAX_TOKENS = "MAX_TOKENS"
    SAFETY = "SAFETY"
    RECITATION = "RECITATION"
    LANGUAGE = "LANGUAGE"
    OTHER = "OTHER"
    BLOCKLIST = "BLOCKLIST"
    PROHIBITED_CONTENT = "PROHIBITED_CONTENT"
    SPII = "SPII"
    MALFORMED_FUNCTION_CALL = "MALFORMED_FUNCTION_CALL"

    @classmethod
    def _missing_(cls, value: object) -> FinishReason:
        # Newer service versions add reasons; keep decoding.
        return cls.OTHER


class HarmProbability(str, Enum):
    UNSPECIFIED = "HARM_PROBABILITY_UNSPECIFIED"
    NEGLIGIBLE = "NEGLIGIBLE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @classmethod
    def _missing_(cls, value: object) -> HarmProbability:
        return cls.UNSPECIFIED


class SafetyRating(WireModel):
    category: HarmCategory | None = None
    probability: HarmProbability | None = None
    blocked: bool | None = None


class WebInfo(WireModel):
    title: str | None = None
    uri: str | None = None


class GroundingChunk(WireModel):
    web: WebInfo | None = None


class Segment(WireModel):
    start_index: int | None = None
    end_index: int | None = None
    text: str | None = None


class GroundingSupport(WireModel):
    segment: Segment | None = None
    grounding_chunk_indices: tuple[int, ...] | None = None
    confidence_scores: tuple[float, ...] | None = None


class SearchEntryPoint(WireModel):
    rendered_content: str | None = None


class GroundingMetadata(WireModel):
    grounding_chunks: tuple[GroundingChunk, ...] | None = None
    grounding_supports: tuple[GroundingSupport, ...] | None = None
    search_entry_point: SearchEntryPoint | None = None
    web_search_queries: tuple[str, ...] | None = None


class Candidate(WireModel):
    content: Turn | None = None
    finish_reason: FinishReason | None = None
    safety_ratings: tuple[SafetyRating, ...] | None = None
    grounding_metadata: GroundingMetadata | None = None
    index: int | None = None


class UsageMetadata(WireModel):
    prompt_token_count: int | None = None
    candidates_token_count: int | None = None
    total_token_count: int | None = None


class ErrorDetails(WireModel):
    """Structured error object the service embeds under ``error``."""

    code: int | None = None
    message: str | None = None
    status: str | None = None
    details: list[dict[str, Any]] | None = None


class ChatResponse(WireModel):
    """Decoded ``generateContent`` response (or one streamed event).

    ``chat_history`` is never taken from the service: the chat invoker replaces
    it with the client's own turn sequence.
    """

    candidates: tuple[Candidate, ...] = ()
    model_version: str | None = None
    usage_metadata: UsageMetadata | None = None
    chat_history: tuple[Turn, ...] | None = None
    error: ErrorDetails | None = None

    @property
    def text(self) -> str:
        """Text of the first candidate, or an empty string."""
        if not self.candidates or self.candidates[0].content is None:
            return ""
        return self.candidates[0].content.text

    @property
    def function_calls(self) -> list[FunctionCall]:
        """Function calls requested by the first candidate."""
        if not self.candidates or self.candidates[0].content is None:
            return []
        return [
            p.function_call
            for p in self.candidates[0].content.parts
            if isinstance(p, FunctionCallPart)
        ]


class ContentEmbedding(WireModel):
    values: tuple[float, ...] = ()


class EmbedResponse(WireModel):
    embedding: ContentEmbedding | None = None
    error: ErrorDetails | None = None

    @property
    def values(self) -> tuple[float, ...]:
        if self.embedding is None:
            return ()
        return self.embedding.values
