"""
Data models for conversation turns and chat settings.

The completion API is stateless: every request must include the full turn
history. The persona system turn is never stored here; the loop prepends it
to each request.
"""
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from enum import Enum

import constants as C


class TurnRole(Enum):
    """Role of the turn author."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass
class ToolCall:
    """One tool invocation requested by the completion service."""
    id: str
    name: str
    arguments: str = "{}"

    def to_api(self) -> dict:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }

    @classmethod
    def from_api(cls, data: dict) -> "ToolCall":
        fn = data.get("function") or {}
        arguments = fn.get("arguments")
        if isinstance(arguments, dict):
            arguments = json.dumps(arguments, ensure_ascii=False)
        return cls(
            id=str(data.get("id") or ""),
            name=str(fn.get("name") or "").strip(),
            arguments=arguments if isinstance(arguments, str) else "{}",
        )


def _parse_timestamp(raw: object) -> datetime:
    """ISO strings from local snapshots, epoch milliseconds from the web client."""
    if isinstance(raw, str):
        return datetime.fromisoformat(raw)
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return datetime.fromtimestamp(raw / 1000)
    return datetime.now()


@dataclass
class Turn:
    """A single entry in the conversation."""
    role: TurnRole
    content: str = ""
    tool_calls: Optional[list[ToolCall]] = None
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None
    image_url: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __str__(self) -> str:
        return f"{self.role.value}: {self.content[:50]}..."

    @classmethod
    def system(cls, content: str) -> "Turn":
        return cls(role=TurnRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Turn":
        return cls(role=TurnRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str, image_url: Optional[str] = None) -> "Turn":
        return cls(role=TurnRole.ASSISTANT, content=content, image_url=image_url)

    @classmethod
    def tool_result(cls, call: ToolCall, content: str) -> "Turn":
        return cls(
            role=TurnRole.TOOL,
            content=content,
            tool_call_id=call.id,
            tool_name=call.name,
        )

    @property
    def requests_tools(self) -> bool:
        """True for an assistant turn that defers to one or more tools."""
        return self.role == TurnRole.ASSISTANT and bool(self.tool_calls)

    def to_api(self) -> dict:
        """Convert to the chat-completions message shape."""
        msg = {"role": self.role.value, "content": self.content or ""}
        if self.requests_tools:
            msg["tool_calls"] = [call.to_api() for call in self.tool_calls]
        if self.role == TurnRole.TOOL:
            if self.tool_call_id:
                msg["tool_call_id"] = self.tool_call_id
            if self.tool_name:
                msg["name"] = self.tool_name
        return msg

    def to_dict(self) -> dict:
        """Serialize to a JSON-serializable dict."""
        data = {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.tool_calls:
            data["tool_calls"] = [
                {"id": c.id, "name": c.name, "arguments": c.arguments}
                for c in self.tool_calls
            ]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        if self.tool_name is not None:
            data["tool_name"] = self.tool_name
        if self.image_url is not None:
            data["image_url"] = self.image_url
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Turn":
        """Deserialize from a dict.

        Also reads the web client's records: `{text, sender, image, timestamp}`
        where `sender` is "user" or "bot" and `timestamp` is epoch milliseconds.

        Raises:
            ValueError: If the role is unknown or the timestamp malformed.
        """
        raw_calls = data.get("tool_calls")
        tool_calls = None
        if isinstance(raw_calls, list):
            tool_calls = [
                ToolCall(
                    id=str(c.get("id") or ""),
                    name=str(c.get("name") or ""),
                    arguments=str(c.get("arguments") or "{}"),
                )
                for c in raw_calls
                if isinstance(c, dict)
            ]
        role = data.get("role")
        if role is None and "sender" in data:
            role = "user" if data.get("sender") == "user" else "assistant"
        content = data.get("content") if "content" in data else data.get("text")
        return cls(
            id=str(data.get("id") or uuid.uuid4()),
            role=TurnRole(role),
            content=str(content or ""),
            tool_calls=tool_calls or None,
            tool_call_id=data.get("tool_call_id"),
            tool_name=data.get("tool_name"),
            image_url=data.get("image_url") or data.get("image") or None,
            timestamp=_parse_timestamp(data.get("timestamp")),
        )


@dataclass
class ChatSettings:
    """Completion parameters sent with every request."""
    model: str = C.DEFAULT_MODEL
    temperature: float = C.DEFAULT_TEMPERATURE
    max_tokens: int = C.DEFAULT_MAX_TOKENS
    tool_choice: str = C.DEFAULT_TOOL_CHOICE
    max_rounds: int = C.DEFAULT_MAX_ROUNDS
    system_prompt: str = C.SYSTEM_PROMPT

    def to_dict(self) -> dict:
        """Convert to API request parameters."""
        return {
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }


@dataclass
class SessionState:
    """UI-level mutable state for one window session."""
    theme: str = C.DEFAULT_THEME
    is_loading: bool = False
    is_listening: bool = False
    is_speaking: bool = False
    user_id: Optional[str] = None

    def toggle_theme(self) -> str:
        self.theme = C.THEME_LIGHT if self.theme == C.THEME_DARK else C.THEME_DARK
        return self.theme
