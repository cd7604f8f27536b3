"""Chat invoker: request flow, retries and error classification."""

from __future__ import annotations

import logging

import httpx
import pytest

from gemwire.chat import GeminiChat
from gemwire.config import Config
from gemwire.errors import (
    ResponseDecodeError,
    ServiceError,
    TransportError,
    UnspecifiedServiceError,
)
from gemwire.responses import FinishReason
from gemwire.types import Turn
from tests.conftest import FakeService, chat_payload, json_response

pytestmark = pytest.mark.contract


def _chat(config: Config, service: FakeService) -> GeminiChat:
    return GeminiChat(config=config, transport=service.transport)


@pytest.mark.asyncio
async def test_invoke_returns_single_user_turn_history_and_stop(
    config: Config, service: FakeService
) -> None:
    service.script = [json_response(chat_payload("Two active conditions.", "STOP"))]

    response = await (
        _chat(config, service)
        .with_temperature(0.2)
        .with_max_tokens(256)
        .invoke("Summarize: patient has 2 active conditions.")
    )

    assert response.chat_history is not None
    assert len(response.chat_history) == 1
    assert response.chat_history[0].role == "user"
    assert response.candidates[0].finish_reason is FinishReason.STOP
    assert response.text == "Two active conditions."
    assert response.usage_metadata is not None
    assert response.usage_metadata.total_token_count == 8

    body = service.body()
    assert body["contents"] == [
        {"role": "user", "parts": [{"text": "Summarize: patient has 2 active conditions."}]}
    ]
    assert body["generationConfig"] == {"temperature": 0.2, "maxOutputTokens": 256}


@pytest.mark.asyncio
async def test_invoke_posts_json_to_generate_endpoint(
    config: Config, service: FakeService
) -> None:
    service.script = [json_response(chat_payload())]

    await _chat(config, service).invoke("hi")

    request = service.requests[0]
    assert request.method == "POST"
    assert str(request.url) == (
        "https://generativelanguage.googleapis.com/v1beta/models/"
        "gemini-2.0-flash:generateContent?key=test-key"
    )
    assert request.headers["Content-Type"] == "application/json"


@pytest.mark.asyncio
async def test_invoke_does_not_change_the_client(
    config: Config, service: FakeService
) -> None:
    service.script = [json_response(chat_payload())]
    chat = _chat(config, service).with_system_prompt("Be terse.")

    response = await chat.invoke("first")

    assert chat.history == ()
    assert service.body()["systemInstruction"] == {"role": "user", "parts": [{"text": "Be terse."}]}
    assert response.chat_history == (Turn.from_text("first"),)


@pytest.mark.asyncio
async def test_history_replaces_service_echo(config: Config, service: FakeService) -> None:
    payload = chat_payload()
    payload["chatHistory"] = [{"role": "user", "parts": [{"text": "forged"}]}]
    service.script = [json_response(payload)]
    chat = _chat(config, service).with_chat_history(
        [Turn.from_text("q1"), Turn.from_text("a1", role="model")]
    )

    response = await chat.invoke("q2")

    assert response.chat_history is not None
    assert [t.text for t in response.chat_history] == ["q1", "a1", "q2"]


@pytest.mark.asyncio
async def test_multi_turn_continuation(config: Config, service: FakeService) -> None:
    service.script = [json_response(chat_payload("first answer"))]
    chat = _chat(config, service)
    first = await chat.invoke("first question")

    assert first.chat_history is not None
    follow_up = chat.with_chat_history(first.chat_history).with_assistant_response(
        first.candidates[0].content.parts
    )
    await follow_up.invoke("second question")

    contents = service.body()["contents"]
    assert [c["role"] for c in contents] == ["user", "model", "user"]
    assert contents[1]["parts"] == [{"text": "first answer"}]


@pytest.mark.asyncio
@pytest.mark.parametrize("max_retries", [0, 1, 3])
async def test_retries_are_sequential_with_fixed_delay(
    config: Config, service: FakeService, sleeps: list[float], max_retries: int
) -> None:
    service.script = [httpx.Response(503, text="unavailable")]
    chat = _chat(config.with_changes(retry_delay_s=2.0), service).with_max_retries(
        max_retries
    )

    with pytest.raises(UnspecifiedServiceError) as exc:
        await chat.invoke("hi")

    assert service.calls == 1 + max_retries
    assert sleeps == [2.0] * max_retries
    assert exc.value.status_code == 503
    assert exc.value.phase == "generate"
    assert exc.value.retryable is True


@pytest.mark.asyncio
async def test_retry_recovers_on_later_success(
    config: Config, service: FakeService, sleeps: list[float]
) -> None:
    service.script = [
        httpx.Response(500),
        httpx.Response(500),
        json_response(chat_payload("recovered")),
    ]

    response = await _chat(config, service).invoke("hi")

    assert response.text == "recovered"
    assert service.calls == 3
    assert sleeps == [2.0, 2.0]


@pytest.mark.asyncio
async def test_retry_attempts_are_logged(
    config: Config,
    service: FakeService,
    sleeps: list[float],
    caplog: pytest.LogCaptureFixture,
) -> None:
    service.script = [httpx.Response(500), json_response(chat_payload())]

    with caplog.at_level(logging.WARNING, logger="gemwire.retry"):
        await _chat(config, service).invoke("hi")

    assert any("attempt 1/3" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_structured_error_after_retries_is_service_error(
    config: Config, service: FakeService, sleeps: list[float]
) -> None:
    service.script = [
        json_response(
            {
                "error": {
                    "code": 400,
                    "message": "API key not valid. Please pass a valid API key.",
                    "status": "INVALID_ARGUMENT",
                }
            },
            status_code=400,
        )
    ]

    with pytest.raises(ServiceError) as exc:
        await _chat(config, service).with_max_retries(1).invoke("hi")

    err = exc.value
    assert service.calls == 2
    assert err.service_code == 400
    assert err.service_status == "INVALID_ARGUMENT"
    assert err.status_code == 400
    assert err.hint is not None
    assert "GEMINI_API_KEY" in err.hint


@pytest.mark.asyncio
async def test_final_failure_logs_status_and_body(
    config: Config,
    service: FakeService,
    sleeps: list[float],
    caplog: pytest.LogCaptureFixture,
) -> None:
    service.script = [httpx.Response(502, text="bad gateway")]

    with caplog.at_level(logging.ERROR, logger="gemwire.classify"), pytest.raises(
        UnspecifiedServiceError
    ):
        await _chat(config, service).with_max_retries(0).invoke("hi")

    assert any(
        "502" in r.getMessage() and "bad gateway" in r.getMessage()
        for r in caplog.records
    )


@pytest.mark.asyncio
async def test_success_status_with_embedded_error_fails(
    config: Config, service: FakeService
) -> None:
    service.script = [
        json_response({"error": {"code": 500, "message": "Internal", "status": "INTERNAL"}})
    ]

    with pytest.raises(ServiceError) as exc:
        await _chat(config, service).invoke("hi")

    assert service.calls == 1
    assert exc.value.status_code == 200
    assert exc.value.service_status == "INTERNAL"


@pytest.mark.asyncio
async def test_malformed_success_body_is_decode_error(
    config: Config, service: FakeService
) -> None:
    service.script = [httpx.Response(200, text="<html>not json</html>")]

    with pytest.raises(ResponseDecodeError) as exc:
        await _chat(config, service).invoke("hi")

    assert exc.value.diagnostic == "response.decode"


@pytest.mark.asyncio
async def test_malformed_success_body_logs_status_and_body(
    config: Config, service: FakeService, caplog: pytest.LogCaptureFixture
) -> None:
    service.script = [httpx.Response(200, text="<html>proxy error</html>")]

    with caplog.at_level(logging.ERROR, logger="gemwire"):
        with pytest.raises(ResponseDecodeError):
            await _chat(config, service).invoke("hi")

    messages = [r.getMessage() for r in caplog.records if r.levelno >= logging.ERROR]
    assert any("200" in m and "<html>proxy error</html>" in m for m in messages)


@pytest.mark.asyncio
async def test_schema_mismatch_and_embedded_error_are_logged(
    config: Config, service: FakeService, caplog: pytest.LogCaptureFixture
) -> None:
    service.script = [
        json_response({"candidates": "not-a-list"}),
        json_response({"error": {"code": 400, "message": "Bad turn", "status": "INVALID_ARGUMENT"}}),
    ]
    chat = _chat(config, service)

    with caplog.at_level(logging.ERROR, logger="gemwire"):
        with pytest.raises(ResponseDecodeError):
            await chat.invoke("hi")
        with pytest.raises(ServiceError):
            await chat.invoke("hi")

    messages = [r.getMessage() for r in caplog.records if r.levelno >= logging.ERROR]
    assert any("schema mismatch" in m and "not-a-list" in m for m in messages)
    assert any("embedded error (status 200)" in m and "Bad turn" in m for m in messages)


@pytest.mark.asyncio
async def test_ambiguous_part_in_response_is_decode_error(
    config: Config, service: FakeService
) -> None:
    service.script = [
        json_response(
            {
                "candidates": [
                    {
                        "content": {
                            "role": "model",
                            "parts": [{"text": "a", "functionCall": {"name": "f"}}],
                        }
                    }
                ]
            }
        )
    ]

    with pytest.raises(ResponseDecodeError):
        await _chat(config, service).invoke("hi")


@pytest.mark.asyncio
async def test_transport_error_is_not_retried(
    config: Config, service: FakeService, sleeps: list[float]
) -> None:
    service.script = [httpx.ConnectError("connection refused")]

    with pytest.raises(TransportError) as exc:
        await _chat(config, service).invoke("hi")

    err = exc.value
    assert service.calls == 1
    assert sleeps == []
    assert err.diagnostic == "transport.connect"
    assert isinstance(err.__cause__, httpx.ConnectError)
    assert "test-key" not in str(err)


@pytest.mark.asyncio
async def test_timeout_maps_to_transport_timeout(
    config: Config, service: FakeService
) -> None:
    service.script = [httpx.ReadTimeout("read timed out")]

    with pytest.raises(TransportError) as exc:
        await _chat(config, service).with_timeout(5).invoke("hi")

    assert exc.value.diagnostic == "transport.timeout"
    assert exc.value.hint is not None


@pytest.mark.asyncio
async def test_function_calls_are_decoded(config: Config, service: FakeService) -> None:
    service.script = [
        json_response(
            {
                "candidates": [
                    {
                        "content": {
                            "role": "model",
                            "parts": [
                                {
                                    "functionCall": {
                                        "name": "get_conditions",
                                        "args": {"patient_id": "p1"},
                                    }
                                }
                            ],
                        },
                        "finishReason": "STOP",
                    }
                ]
            }
        )
    ]

    response = await _chat(config, service).invoke("What conditions?")

    calls = response.function_calls
    assert len(calls) == 1
    assert calls[0].name == "get_conditions"
    assert calls[0].args == {"patient_id": "p1"}
    assert response.text == ""


@pytest.mark.asyncio
async def test_unknown_finish_reason_decodes_as_other(
    config: Config, service: FakeService
) -> None:
    service.script = [json_response(chat_payload(finish_reason="SOMETHING_NEW"))]

    response = await _chat(config, service).invoke("hi")

    assert response.candidates[0].finish_reason is FinishReason.OTHER


@pytest.mark.asyncio
async def test_payload_logging_is_opt_in(
    config: Config, service: FakeService, caplog: pytest.LogCaptureFixture
) -> None:
    service.script = [json_response(chat_payload())]

    with caplog.at_level(logging.DEBUG, logger="gemwire.chat"):
        await _chat(config, service).invoke("secret prompt")
        assert not any("secret prompt" in r.getMessage() for r in caplog.records)

        verbose = config.with_changes(log_payloads=True)
        await _chat(verbose, service).invoke("secret prompt")

    assert any("secret prompt" in r.getMessage() for r in caplog.records)
