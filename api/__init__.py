"""
Chat-completions API client for OpenAI-compatible hosted endpoints.

Tool support: tool schemas and tool_choice are sent with every request; the
service decides whether to answer directly or request tool calls.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

import aiohttp

from models import ChatSettings, ToolCall
from api.tools import sanitize_tool_name
import constants as C

logger = logging.getLogger(__name__)


class CompletionError(Exception):
    """Base exception for completion client errors."""
    pass


class ServiceUnreachableError(CompletionError):
    """Raised when the completion service cannot be reached."""
    pass


class ServiceRejectedError(CompletionError):
    """Raised when the service answers with a non-200 status."""

    def __init__(self, status: int, detail: str = ""):
        super().__init__(f"API error {status}: {detail}")
        self.status = status
        self.detail = detail


class AuthenticationError(ServiceRejectedError):
    """Raised on 401/403 responses."""
    pass


class RateLimitError(ServiceRejectedError):
    """Raised on 429 responses."""
    pass


@dataclass
class CompletionMessage:
    """The assistant message from one completion round-trip."""
    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str = ""

    @property
    def is_terminal(self) -> bool:
        return not self.tool_calls


class CompletionClient:
    """Client for an OpenAI-compatible chat-completions endpoint."""

    def __init__(self, api_key: str = "", endpoint: str = C.API_ENDPOINT_DEFAULT):
        """Initialize the client.

        Args:
            api_key: Bearer token for the hosted API.
            endpoint: Base URL of the API (e.g., https://api.groq.com/openai/v1)
        """
        self.api_key = api_key
        self.endpoint = endpoint.rstrip("/")
        self.session: Optional[aiohttp.ClientSession] = None

    async def initialize(self) -> None:
        """Asynchronously initialize the HTTP session."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()

    async def close(self) -> None:
        """Close the HTTP session."""
        if self.session and not self.session.closed:
            await self.session.close()

    async def complete(
        self,
        messages: list[dict],
        tools: Optional[list[dict]],
        settings: ChatSettings,
    ) -> CompletionMessage:
        """Issue one non-stream completion request.

        Args:
            messages: Full outgoing message list, system turn first.
            tools: Tool declarations, or None.
            settings: Sampling parameters.

        Returns:
            The assistant message, carrying either content or tool calls.

        Raises:
            CompletionError: On transport failure or a rejected request.
        """
        if self.session is None or self.session.closed:
            await self.initialize()

        payload = {
            **settings.to_dict(),
            "messages": self._normalize_messages(messages),
            "stream": False,
        }
        normalized_tools = self._normalize_tools(tools)
        if normalized_tools:
            payload["tools"] = normalized_tools
            payload["tool_choice"] = settings.tool_choice or "auto"

        logger.info(
            "Payload ready: model=%s messages=%d tools=%d tool_choice=%s",
            payload.get("model"),
            len(payload["messages"]),
            len(payload.get("tools", [])),
            payload.get("tool_choice"),
        )

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            async with self.session.post(
                f"{self.endpoint}{C.API_CHAT_COMPLETIONS}",
                json=payload,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=C.API_TIMEOUT),
            ) as resp:
                if resp.status != 200:
                    error_text = await resp.text()
                    raise self._rejection(resp.status, error_text)
                data = await resp.json()
        except asyncio.TimeoutError as e:
            raise ServiceUnreachableError(
                f"API request timed out (exceeded {C.API_TIMEOUT}s)"
            ) from e
        except aiohttp.ClientConnectorError as e:
            raise ServiceUnreachableError(f"Failed to connect to {self.endpoint}: {e}") from e
        except aiohttp.ClientError as e:
            raise ServiceUnreachableError(f"Client error: {e}") from e

        choice = (data.get("choices") or [{}])[0]
        message = choice.get("message") or {}
        return CompletionMessage(
            content=self._extract_assistant_content(choice, message),
            tool_calls=self._extract_tool_calls(choice, message),
            finish_reason=str(choice.get("finish_reason") or ""),
        )

    def _rejection(self, status: int, detail: str) -> ServiceRejectedError:
        if status in (401, 403):
            return AuthenticationError(status, detail)
        if status == 429:
            return RateLimitError(status, detail)
        return ServiceRejectedError(status, detail)

    def _normalize_messages(self, messages: list[dict]) -> list[dict]:
        """Normalize messages to valid role/content dicts."""
        normalized = []
        for item in messages:
            if not isinstance(item, dict):
                continue
            role = str(item.get("role", "")).strip().lower()
            content = item.get("content", "")
            if role not in {"system", "user", "assistant", "tool"}:
                continue
            if content is None:
                content = ""
            msg = {"role": role, "content": str(content)}
            if role == "tool":
                if item.get("tool_call_id"):
                    msg["tool_call_id"] = str(item.get("tool_call_id"))
                if item.get("name"):
                    msg["name"] = str(item.get("name"))
            if role == "assistant" and isinstance(item.get("tool_calls"), list):
                msg["tool_calls"] = item.get("tool_calls")
            normalized.append(msg)
        return normalized

    def _normalize_tools(self, tools: object) -> Optional[list[dict]]:
        """Normalize tool definitions to OpenAI-compatible function tools."""
        if not isinstance(tools, list):
            return None
        normalized = []
        for tool in tools:
            entry = self._normalize_single_tool(tool)
            if entry:
                normalized.append(entry)
            else:
                logger.debug("Skipped invalid tool: %s", tool)
        return normalized or None

    def _normalize_single_tool(self, tool: object) -> Optional[dict]:
        """Normalize one tool definition."""
        if not isinstance(tool, dict):
            return None

        # Either {"type":"function","function":{...}} or the flat shorthand
        if tool.get("type") == "function" and isinstance(tool.get("function"), dict):
            fn = tool["function"]
        else:
            fn = tool
        name = sanitize_tool_name(fn.get("name"))
        if not name:
            return None
        params = fn.get("parameters")
        if not isinstance(params, dict):
            params = {"type": "object", "properties": {}}
        return {
            "type": "function",
            "function": {
                "name": name,
                "description": str(fn.get("description", "")).strip(),
                "parameters": params,
            },
        }

    def _extract_assistant_content(self, choice: dict, message: dict) -> str:
        """Extract assistant text from varied response shapes."""
        parsed = self._content_to_text(message.get("content"))
        if parsed:
            return parsed
        # Some providers include legacy text field
        return self._content_to_text(choice.get("text"))

    def _content_to_text(self, content: object) -> str:
        """Convert string/parts content to text."""
        if content is None:
            return ""
        if isinstance(content, str):
            return content
        if isinstance(content, dict):
            if isinstance(content.get("text"), str):
                return str(content.get("text"))
            return ""
        if isinstance(content, list):
            parts = []
            for item in content:
                if isinstance(item, str):
                    parts.append(item)
                elif isinstance(item, dict) and isinstance(item.get("text"), str):
                    parts.append(item.get("text"))
            return "".join(parts)
        return str(content)

    def _extract_tool_calls(self, choice: dict, message: dict) -> list[ToolCall]:
        """Extract tool calls across provider response variants."""
        raw = message.get("tool_calls")
        if isinstance(raw, dict):
            raw = [raw]
        if isinstance(raw, list):
            calls = [ToolCall.from_api(tc) for tc in raw if isinstance(tc, dict)]
            for index, call in enumerate(calls):
                if not call.id:
                    call.id = f"call_{index}"
            return calls

        # Legacy OpenAI-compatible single function_call format
        function_call = message.get("function_call") or choice.get("function_call")
        if isinstance(function_call, dict):
            return [
                ToolCall(
                    id="legacy_fc_0",
                    name=str(function_call.get("name") or ""),
                    arguments=str(function_call.get("arguments") or "{}"),
                )
            ]
        return []


from api.completion_loop import CompletionLoop, LoopResult, LoopState  # noqa: E402

__all__ = [
    "CompletionClient",
    "CompletionMessage",
    "CompletionError",
    "ServiceUnreachableError",
    "ServiceRejectedError",
    "AuthenticationError",
    "RateLimitError",
    "CompletionLoop",
    "LoopResult",
    "LoopState",
]
