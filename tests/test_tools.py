from urllib.parse import parse_qs, urlparse

import pytest

from api.tools import (
    IMAGE_TOOL_NAME,
    ToolError,
    ToolRegistry,
    build_image_url,
    default_registry,
    parse_tool_args,
    sanitize_tool_name,
)
import constants as C


def test_image_url_embeds_encoded_prompt_and_parameters():
    url = build_image_url("neon cat", seed=1234)

    parsed = urlparse(url)
    assert f"{parsed.scheme}://{parsed.netloc}" == C.IMAGE_HOST_DEFAULT
    assert parsed.path == "/prompt/neon%20cat"
    assert parse_qs(parsed.query) == {
        "model": ["flux"],
        "seed": ["1234"],
        "width": ["1152"],
        "height": ["896"],
        "nologo": ["true"],
    }


def test_image_url_escapes_reserved_characters():
    url = build_image_url("cats & dogs / 100%?", seed=1)

    assert "/prompt/cats%20%26%20dogs%20%2F%20100%25%3F?" in url


@pytest.mark.parametrize("prompt", ["", "   ", None])
def test_image_url_blank_prompt_uses_default(prompt):
    url = build_image_url(prompt, seed=7)

    assert "/prompt/cyberpunk%20smoke%20session%20neon%20haze" in url
    assert "/prompt/?" not in url


def test_image_url_seed_defaults_to_current_time(monkeypatch):
    monkeypatch.setattr("api.tools.time.time", lambda: 1700000000.5)

    url = build_image_url("neon cat")

    assert "seed=1700000000500" in url


def test_image_url_respects_custom_host():
    url = build_image_url("x", seed=1, host="https://img.example.com/")

    assert url.startswith("https://img.example.com/prompt/x?")


def test_default_registry_declares_image_tool():
    registry = default_registry()

    declarations = registry.declarations()
    assert len(declarations) == 1
    fn = declarations[0]["function"]
    assert declarations[0]["type"] == "function"
    assert fn["name"] == IMAGE_TOOL_NAME
    assert fn["parameters"]["required"] == ["prompt"]


def test_registry_executes_by_name():
    registry = default_registry()

    result = registry.execute(IMAGE_TOOL_NAME, '{"prompt": "neon cat"}')

    assert "neon%20cat" in result


def test_registry_unknown_tool_raises():
    with pytest.raises(ToolError):
        ToolRegistry().execute("missing", "{}")


def test_registry_serializes_non_string_results():
    registry = ToolRegistry()
    registry.register("echo", "Echo args", None, lambda args: {"got": args})

    assert registry.execute("echo", '{"a": 1}') == '{"got": {"a": 1}}'
    assert registry.declarations()[0]["function"]["parameters"] == {
        "type": "object",
        "properties": {},
    }


def test_registry_rejects_empty_name():
    with pytest.raises(ToolError):
        ToolRegistry().register("   ", "", None, lambda args: "")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ({"prompt": "x"}, {"prompt": "x"}),
        ('{"prompt": "x"}', {"prompt": "x"}),
        ("", {}),
        (None, {}),
        ("[1, 2]", {"_args": [1, 2]}),
        ("{oops", {"_raw": "{oops"}),
    ],
)
def test_parse_tool_args(raw, expected):
    assert parse_tool_args(raw) == expected


def test_sanitize_tool_name():
    assert sanitize_tool_name("generate image!") == "generate_image_"
    assert sanitize_tool_name(None) is None
    assert len(sanitize_tool_name("x" * 100)) == 64
