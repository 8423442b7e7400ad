"""
Shared fakes for the completion service, aiohttp sessions and storage.
"""
import copy
import json

import pytest

from api import CompletionMessage
from models import ChatSettings, ToolCall


@pytest.fixture(autouse=True)
def config_dir(tmp_path, monkeypatch):
    """Point local persistence at a temp directory."""
    path = tmp_path / "config"
    monkeypatch.setenv("SMOKESTREAM_CONFIG_DIR", str(path))
    return path


class FakeCompletionClient:
    """Scripted completion service; records every request."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    async def complete(self, messages, tools, settings):
        self.calls.append(
            {
                "messages": copy.deepcopy(messages),
                "tools": copy.deepcopy(tools),
                "settings": settings,
            }
        )
        if not self.responses:
            raise AssertionError("No scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def text_reply(content):
    return CompletionMessage(content=content)


def tool_reply(*calls, content=""):
    """Build a response requesting tools from (id, name, args) tuples."""
    return CompletionMessage(
        content=content,
        tool_calls=[
            ToolCall(id=call_id, name=name, arguments=args if isinstance(args, str) else json.dumps(args))
            for call_id, name, args in calls
        ],
    )


@pytest.fixture
def settings():
    return ChatSettings(system_prompt="You are a test persona.", max_rounds=4)


class FakeResponse:
    def __init__(self, status=200, payload=None, text=""):
        self.status = status
        self._payload = payload if payload is not None else {}
        self._text = text or json.dumps(self._payload)

    async def json(self):
        return self._payload

    async def text(self):
        return self._text

    async def read(self):
        return self._text.encode("utf-8")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Stands in for aiohttp.ClientSession; records requests in order."""

    def __init__(self, responses=None, error=None):
        self.responses = list(responses or [])
        self.error = error
        self.requests = []
        self.closed = False

    def _request(self, method, url, **kwargs):
        self.requests.append({"method": method, "url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)

    def get(self, url, **kwargs):
        return self._request("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._request("POST", url, **kwargs)

    def patch(self, url, **kwargs):
        return self._request("PATCH", url, **kwargs)

    async def close(self):
        self.closed = True
