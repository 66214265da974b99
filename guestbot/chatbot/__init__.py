"""
Chatbot core: the generic tool loop, the read-tool cache and audit logging.

The agents live in their own modules (``guestbot.chatbot.service``,
``guestbot.chatbot.guest_handler_agent``, ``guestbot.chatbot.session``)
and are re-exported from ``guestbot``.
"""

from .loop import (
    AgentReply,
    IterationRecord,
    LoopObserver,
    LoopResult,
    LoopSettings,
    LoopStop,
    ToolCallRecord,
    ToolLoop,
    strip_trailing_note,
)
from .audit_logger import AuditLogger
from .cache import ToolResultCache

__all__ = [
    "AgentReply",
    "AuditLogger",
    "IterationRecord",
    "LoopObserver",
    "LoopResult",
    "LoopSettings",
    "LoopStop",
    "ToolCallRecord",
    "ToolLoop",
    "ToolResultCache",
    "strip_trailing_note",
]
