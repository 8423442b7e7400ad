from datetime import datetime

import pytest

from models import SessionState, ToolCall, Turn, TurnRole
import constants as C


def test_tool_turn_to_api_carries_call_id_and_name():
    call = ToolCall(id="call_9", name="generate_image")

    msg = Turn.tool_result(call, "https://img/x").to_api()

    assert msg == {
        "role": "tool",
        "content": "https://img/x",
        "tool_call_id": "call_9",
        "name": "generate_image",
    }


def test_assistant_tool_request_to_api():
    call = ToolCall(id="call_1", name="generate_image", arguments='{"prompt": "x"}')
    turn = Turn(role=TurnRole.ASSISTANT, tool_calls=[call])

    msg = turn.to_api()

    assert turn.requests_tools
    assert msg["content"] == ""
    assert msg["tool_calls"] == [
        {"id": "call_1", "type": "function", "function": {"name": "generate_image", "arguments": '{"prompt": "x"}'}}
    ]


def test_plain_turns_omit_tool_fields():
    assert Turn.user("hey").to_api() == {"role": "user", "content": "hey"}
    assert Turn.assistant("yo", image_url="https://img/x").to_api() == {"role": "assistant", "content": "yo"}


def test_tool_call_from_api_accepts_dict_arguments():
    call = ToolCall.from_api({"id": "c", "function": {"name": " generate_image ", "arguments": {"prompt": "x"}}})

    assert call.name == "generate_image"
    assert call.arguments == '{"prompt": "x"}'


def test_from_dict_rejects_unknown_role():
    with pytest.raises(ValueError):
        Turn.from_dict({"role": "dj", "content": "x"})


def test_from_dict_fills_missing_id_and_timestamp():
    turn = Turn.from_dict({"role": "assistant", "content": None})

    assert turn.id
    assert turn.content == ""
    assert turn.tool_calls is None


def test_toggle_theme():
    state = SessionState()

    assert state.toggle_theme() == C.THEME_LIGHT
    assert state.toggle_theme() == C.THEME_DARK


def test_from_dict_reads_web_client_records():
    bot = Turn.from_dict({"text": "yo", "sender": "bot", "image": "https://img/x", "timestamp": 1700000000000})
    user = Turn.from_dict({"text": "hey", "sender": "user", "timestamp": 1700000001500})

    assert bot.role == TurnRole.ASSISTANT
    assert bot.content == "yo"
    assert bot.image_url == "https://img/x"
    assert user.role == TurnRole.USER
    assert user.timestamp == datetime.fromtimestamp(1700000001.5)


def test_from_dict_prefers_role_over_sender():
    turn = Turn.from_dict({"role": "tool", "sender": "bot", "content": "https://img/x"})

    assert turn.role == TurnRole.TOOL
    assert turn.image_url is None
