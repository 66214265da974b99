"""
guestbot - WhatsApp RSVP assistant for event guests

guestbot answers guests' questions about the events they are invited to
and applies the changes they ask for (RSVP, dietary restrictions,
companion names, additional confirmations, notes and special requests).

Key Features:
- Main agent with a cached, event-aware system prompt
- Guest handler sub-agent that owns every guest mutation
- Shared tool loop with a ledger of executions, iterations and API calls
- Redis cache for read-only tool results
- Debounced replies through QStash, delivery through Twilio WhatsApp

Quick Start:
    from guestbot import GuestBot

    app = GuestBot("config.yaml")
    await app.handle_incoming_message("org_1", "whatsapp:+5215555555555", "Hola!")

Lower-level use:
    from guestbot import ChatbotService, ChatbotStores

    stores = ChatbotStores.from_database(db)
    service = ChatbotService(session, guests, llm_client, stores)
    result = await service.process_last_message()
"""

__version__ = "0.1.0"

from .app import GuestBot
from .chatbot import (
    AgentReply,
    AuditLogger,
    LoopObserver,
    LoopResult,
    LoopSettings,
    LoopStop,
    ToolLoop,
    ToolResultCache,
)
from .chatbot.stores import ChatbotStores
from .chatbot.tools import GuestTool, ToolTable, guest_handler_tools
from .chatbot.guest_handler_agent import GuestHandlerAgent
from .chatbot.service import ChatbotService
from .chatbot.session import ChatSessionHandler
from .guests import EventContext, GuestContext, GuestContextEntry, build_guest_context_hash
from .ledger.recorder import LedgerRecorder

__all__ = [
    "__version__",
    # App
    "GuestBot",
    # Agents
    "ChatbotService",
    "GuestHandlerAgent",
    "ChatSessionHandler",
    # Loop
    "AgentReply",
    "LoopObserver",
    "LoopResult",
    "LoopSettings",
    "LoopStop",
    "ToolLoop",
    "LedgerRecorder",
    "AuditLogger",
    # Tools
    "GuestTool",
    "ToolTable",
    "guest_handler_tools",
    "ToolResultCache",
    # Data
    "ChatbotStores",
    "EventContext",
    "GuestContext",
    "GuestContextEntry",
    "build_guest_context_hash",
]
