"""
Data models for conversation turns, settings and session state.
"""
from .turn import Turn, TurnRole, ToolCall, ChatSettings, SessionState

__all__ = [
    "Turn",
    "TurnRole",
    "ToolCall",
    "ChatSettings",
    "SessionState",
]
