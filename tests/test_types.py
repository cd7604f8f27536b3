"""Request model: part union, turns and schemas."""

from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError
import pytest

from gemwire.types import (
    ChatRequest,
    EmbedRequest,
    FileDataPart,
    FunctionCallPart,
    FunctionDeclaration,
    FunctionResponsePart,
    GenerationConfig,
    HarmCategory,
    InlineDataPart,
    Schema,
    SchemaType,
    TaskType,
    TextPart,
    Tool,
    Turn,
    parse_part,
)

pytestmark = pytest.mark.unit

_part_dicts = st.one_of(
    st.builds(lambda t: {"text": t}, st.text()),
    st.builds(
        lambda n, v: {"functionCall": {"name": n, "args": {"x": v}}},
        st.text(min_size=1),
        st.integers(),
    ),
    st.builds(
        lambda n: {"functionResponse": {"name": n, "response": {"ok": True}}},
        st.text(min_size=1),
    ),
    st.builds(
        lambda m, d: {"inlineData": {"mimeType": m, "data": d}},
        st.sampled_from(["image/png", "application/pdf"]),
        st.text(alphabet="ABCDEFabcdef0123456789+/=", max_size=16),
    ),
    st.builds(
        lambda m, u: {"fileData": {"mimeType": m, "fileUri": u}},
        st.sampled_from(["video/mp4", "text/plain"]),
        st.text(min_size=1),
    ),
)


@given(part=_part_dicts)
def test_wire_parts_decode_to_one_variant_and_back(part: dict) -> None:
    decoded = parse_part(part)

    assert decoded.to_wire() == part


@pytest.mark.parametrize(
    ("wire", "cls"),
    [
        ({"text": "hi"}, TextPart),
        ({"functionCall": {"name": "lookup"}}, FunctionCallPart),
        ({"function_response": {"name": "lookup", "response": {}}}, FunctionResponsePart),
        ({"inline_data": {"mime_type": "image/png", "data": "AA=="}}, InlineDataPart),
        ({"fileData": {"mimeType": "video/mp4", "fileUri": "files/abc"}}, FileDataPart),
    ],
)
def test_part_variant_selected_by_key(wire: dict, cls: type) -> None:
    assert isinstance(parse_part(wire), cls)


@pytest.mark.parametrize(
    "wire",
    [
        {},
        {"thought": True},
        {"text": "a", "inlineData": {"mimeType": "image/png", "data": "AA=="}},
        {"text": "a", "functionCall": {"name": "f"}},
    ],
)
def test_part_with_zero_or_several_variants_is_rejected(wire: dict) -> None:
    with pytest.raises(ValidationError):
        parse_part(wire)


def test_turn_decodes_parts_from_wire() -> None:
    turn = Turn.model_validate(
        {"role": "model", "parts": [{"text": "Hello "}, {"text": "world"}]}
    )

    assert turn.role == "model"
    assert turn.text == "Hello world"


def test_turn_rejects_ambiguous_part() -> None:
    with pytest.raises(ValidationError):
        Turn.model_validate(
            {"role": "user", "parts": [{"text": "a", "fileData": {"mimeType": "x", "fileUri": "y"}}]}
        )


def test_turn_is_frozen() -> None:
    turn = Turn.from_text("hi")
    with pytest.raises(ValidationError):
        turn.role = "model"  # type: ignore[misc]


def test_chat_request_serializes_camel_case_and_omits_unset() -> None:
    request = ChatRequest(
        contents=(Turn.from_text("hi"),),
        generation_config=GenerationConfig(temperature=0.2, max_output_tokens=256),
    )

    assert request.to_wire() == {
        "contents": [{"role": "user", "parts": [{"text": "hi"}]}],
        "generationConfig": {"temperature": 0.2, "maxOutputTokens": 256},
    }


def test_schema_constructors_render_openapi_subset() -> None:
    schema = Schema.object(
        {
            "severity": Schema.enumeration(["low", "high"]),
            "codes": Schema.array(Schema.string()),
        },
        required=["severity"],
    )

    assert schema.to_wire() == {
        "type": "OBJECT",
        "properties": {
            "severity": {"type": "STRING", "format": "enum", "enum": ["low", "high"]},
            "codes": {"type": "ARRAY", "items": {"type": "STRING"}},
        },
        "required": ["severity"],
    }


def test_schema_type_is_case_insensitive() -> None:
    schema = Schema.model_validate({"type": "object", "properties": {"n": {"type": "integer"}}})

    assert schema.type is SchemaType.OBJECT
    assert schema.properties is not None
    assert schema.properties["n"].type is SchemaType.INTEGER


def test_tool_variants() -> None:
    declaration = FunctionDeclaration(
        name="get_conditions",
        description="List active conditions",
        parameters=Schema.object({"patient_id": Schema.string()}),
    )

    assert Tool.search().to_wire() == {"googleSearch": {}}
    wire = Tool.functions(declaration).to_wire()
    assert wire["functionDeclarations"][0]["name"] == "get_conditions"


def test_unknown_harm_category_falls_back() -> None:
    assert HarmCategory("HARM_CATEGORY_NEW_THING") is HarmCategory.UNSPECIFIED


def test_embed_request_defaults_task_type() -> None:
    request = EmbedRequest(model="models/text-embedding-004", content=Turn.from_text("q"))

    assert request.to_wire()["taskType"] == TaskType.UNSPECIFIED.value
