"""Chat sessions and their message history."""

from .models import (
    ChatMessage,
    ChatSession,
    MessageDeliveryStatus,
    MessageDirection,
    render_template_message,
)
from .repository import ChatMessageRepository, ChatSessionRepository, MessageDeliveryRepository

__all__ = [
    "ChatMessage",
    "ChatSession",
    "MessageDeliveryStatus",
    "MessageDirection",
    "render_template_message",
    "ChatMessageRepository",
    "ChatSessionRepository",
    "MessageDeliveryRepository",
]
