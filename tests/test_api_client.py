import asyncio

import aiohttp
import pytest

from api import (
    AuthenticationError,
    CompletionClient,
    RateLimitError,
    ServiceRejectedError,
    ServiceUnreachableError,
)
from api.tools import default_registry
from models import ChatSettings, Turn
import constants as C

from conftest import FakeResponse, FakeSession


def completion_payload(message, finish_reason="stop"):
    return {"choices": [{"index": 0, "message": message, "finish_reason": finish_reason}]}


def make_client(*responses, error=None):
    client = CompletionClient(api_key="test-key", endpoint="https://llm.example/v1/")
    client.session = FakeSession(responses, error=error)
    return client


@pytest.mark.asyncio
async def test_request_payload_and_headers():
    client = make_client(FakeResponse(200, completion_payload({"role": "assistant", "content": "yo"})))
    messages = [Turn.system("persona").to_api(), Turn.user("hey").to_api()]

    result = await client.complete(messages, default_registry().declarations(), ChatSettings())

    request = client.session.requests[0]
    assert request["method"] == "POST"
    assert request["url"] == "https://llm.example/v1" + C.API_CHAT_COMPLETIONS
    assert request["headers"]["Authorization"] == "Bearer test-key"
    payload = request["json"]
    assert payload["model"] == C.DEFAULT_MODEL
    assert payload["temperature"] == C.DEFAULT_TEMPERATURE
    assert payload["max_tokens"] == C.DEFAULT_MAX_TOKENS
    assert payload["stream"] is False
    assert payload["tool_choice"] == "auto"
    assert payload["tools"][0]["function"]["name"] == "generate_image"
    assert payload["messages"] == messages
    assert result.content == "yo"
    assert result.is_terminal


@pytest.mark.asyncio
async def test_no_tools_omits_tool_choice():
    client = make_client(FakeResponse(200, completion_payload({"content": "yo"})))

    await client.complete([Turn.user("hey").to_api()], None, ChatSettings())

    payload = client.session.requests[0]["json"]
    assert "tools" not in payload
    assert "tool_choice" not in payload


@pytest.mark.asyncio
async def test_tool_calls_are_parsed():
    message = {
        "role": "assistant",
        "content": None,
        "tool_calls": [
            {"id": "call_a", "type": "function", "function": {"name": "generate_image", "arguments": '{"prompt": "cat"}'}},
            {"type": "function", "function": {"name": "generate_image", "arguments": {"prompt": "dog"}}},
        ],
    }
    client = make_client(FakeResponse(200, completion_payload(message, "tool_calls")))

    result = await client.complete([Turn.user("hey").to_api()], None, ChatSettings())

    assert result.content == ""
    assert result.finish_reason == "tool_calls"
    assert not result.is_terminal
    assert [c.id for c in result.tool_calls] == ["call_a", "call_1"]
    assert result.tool_calls[1].arguments == '{"prompt": "dog"}'


@pytest.mark.asyncio
async def test_legacy_function_call_is_parsed():
    message = {"content": "", "function_call": {"name": "generate_image", "arguments": '{"prompt": "x"}'}}
    client = make_client(FakeResponse(200, completion_payload(message)))

    result = await client.complete([], None, ChatSettings())

    assert result.tool_calls[0].name == "generate_image"


@pytest.mark.asyncio
async def test_content_parts_are_joined():
    message = {"content": [{"type": "text", "text": "yo "}, "what's ", {"text": "good"}]}
    client = make_client(FakeResponse(200, completion_payload(message)))

    result = await client.complete([], None, ChatSettings())

    assert result.content == "yo what's good"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, error_type",
    [
        (401, AuthenticationError),
        (403, AuthenticationError),
        (429, RateLimitError),
        (500, ServiceRejectedError),
    ],
)
async def test_non_200_maps_to_rejection(status, error_type):
    client = make_client(FakeResponse(status, text="nope"))

    with pytest.raises(error_type) as exc_info:
        await client.complete([], None, ChatSettings())

    assert exc_info.value.status == status
    assert exc_info.value.detail == "nope"


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [aiohttp.ClientError("reset"), asyncio.TimeoutError()])
async def test_transport_failures_are_unreachable(error):
    client = make_client(error=error)

    with pytest.raises(ServiceUnreachableError):
        await client.complete([], None, ChatSettings())


def test_invalid_messages_are_dropped():
    client = CompletionClient()

    normalized = client._normalize_messages(
        [{"role": "narrator", "content": "x"}, "bad", {"role": "USER", "content": None}]
    )

    assert normalized == [{"role": "user", "content": ""}]
