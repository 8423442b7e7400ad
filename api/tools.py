"""
Tool registry for the completion loop.

Each tool is a registry entry: a JSON schema advertised to the model and an
executor returning the string result handed back as a tool turn.
"""
import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import quote, urlencode

import constants as C

logger = logging.getLogger(__name__)

IMAGE_TOOL_NAME = "generate_image"


class ToolError(Exception):
    """Raised when a tool cannot be resolved."""
    pass


@dataclass
class ToolSpec:
    """A callable tool: schema plus executor."""
    name: str
    description: str
    parameters: dict
    executor: Callable[[dict], str]

    def declaration(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolRegistry:
    """Maps tool names to their schema and executor."""

    def __init__(self):
        self._tools: dict[str, ToolSpec] = {}

    def register(
        self,
        name: str,
        description: str,
        parameters: Optional[dict],
        executor: Callable[[dict], str],
    ) -> ToolSpec:
        """Register a tool, replacing any previous entry with the same name."""
        clean = sanitize_tool_name(name)
        if not clean:
            raise ToolError(f"Invalid tool name: {name!r}")
        if not isinstance(parameters, dict):
            parameters = {"type": "object", "properties": {}}
        spec = ToolSpec(
            name=clean,
            description=str(description or "").strip(),
            parameters=parameters,
            executor=executor,
        )
        self._tools[clean] = spec
        logger.debug("Registered tool %s", clean)
        return spec

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def names(self) -> list[str]:
        return list(self._tools)

    def declarations(self) -> list[dict]:
        """OpenAI-compatible function tool declarations."""
        return [spec.declaration() for spec in self._tools.values()]

    def execute(self, name: str, raw_args: object) -> str:
        """Run a tool synchronously and return its string result.

        Raises:
            ToolError: If no tool with that name is registered.
        """
        spec = self._tools.get(name)
        if spec is None:
            raise ToolError(f"Unknown tool: {name}")
        args = parse_tool_args(raw_args)
        result = spec.executor(args)
        if isinstance(result, str):
            return result
        return json.dumps(result, ensure_ascii=False)


def sanitize_tool_name(name: object) -> Optional[str]:
    """Tool names must be simple identifiers for OpenAI-compatible APIs."""
    if name is None:
        return None
    cleaned = re.sub(r"[^a-zA-Z0-9_-]", "_", str(name).strip())
    if not cleaned:
        return None
    return cleaned[:64]


def parse_tool_args(raw_args: object) -> dict:
    """Parse tool arguments JSON safely."""
    if isinstance(raw_args, dict):
        return raw_args
    text = str(raw_args or "").strip()
    if not text:
        return {}
    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
        return {"_args": parsed}
    except json.JSONDecodeError:
        logger.warning("Unparseable tool arguments: %s", text[:200])
        return {"_raw": text}


def build_image_url(
    prompt: str,
    seed: Optional[int] = None,
    host: str = C.IMAGE_HOST_DEFAULT,
) -> str:
    """Build the image endpoint URL for a prompt.

    The seed defaults to the current time in milliseconds so identical
    prompts still yield distinct images. A blank prompt is replaced with
    the default prompt.
    """
    text = (prompt or "").strip() or C.DEFAULT_IMAGE_PROMPT
    if seed is None:
        seed = int(time.time() * 1000)
    query = urlencode(
        {
            "model": C.IMAGE_MODEL,
            "seed": int(seed),
            "width": C.IMAGE_WIDTH,
            "height": C.IMAGE_HEIGHT,
            "nologo": "true",
        }
    )
    # Same unreserved set as encodeURIComponent
    encoded = quote(text, safe="!~*'()")
    return f"{host.rstrip('/')}/prompt/{encoded}?{query}"


def make_image_executor(host: str = C.IMAGE_HOST_DEFAULT) -> Callable[[dict], str]:
    """Executor for the image tool; the URL itself is the result."""

    def _generate_image(args: dict) -> str:
        prompt = args.get("prompt") if isinstance(args, dict) else None
        if not isinstance(prompt, str) or not prompt.strip():
            logger.info("Image tool called without a usable prompt, using default")
            prompt = C.DEFAULT_IMAGE_PROMPT
        url = build_image_url(prompt, host=host)
        logger.info("Image URL built for prompt %r", prompt[:80])
        return url

    return _generate_image


def default_registry(image_host: str = C.IMAGE_HOST_DEFAULT) -> ToolRegistry:
    """Registry holding the built-in tools."""
    registry = ToolRegistry()
    registry.register(
        IMAGE_TOOL_NAME,
        "Drop a visual bomb. Use this when they want art, pics, visuals, "
        "generate image, show me, make a pic, etc.",
        {
            "type": "object",
            "properties": {
                "prompt": {
                    "type": "string",
                    "description": "Wild detailed description for the Flux drop",
                }
            },
            "required": ["prompt"],
        },
        make_image_executor(image_host),
    )
    return registry
