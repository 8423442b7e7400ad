"""
UI components for SmokeStream.
"""
from ui.components.message_bubble import MessageBubble, TypingIndicator
from ui.components.chat_input import ChatInput
from ui.components.chat_area import ChatArea

__all__ = [
    "MessageBubble",
    "TypingIndicator",
    "ChatInput",
    "ChatArea",
]
