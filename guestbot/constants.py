"""
Shared constants for the guestbot package.

Centralizes values used by both agents, the tools and the session
handler so they live in one place.
"""

from typing import Tuple

# ── Agent loop ──

MAX_LOOP_ITERATIONS = 10
MAIN_AGENT_MAX_TOKENS = 1024
SUB_AGENT_MAX_TOKENS = 1024
DEFAULT_MODEL = "claude-sonnet-4-0"
UNKNOWN_GUEST_MODEL = "claude-3-5-haiku-latest"

# ── Conversation ──

HISTORY_LIMIT = 20
# History length above which the wrapped user prompt is marked cacheable.
USER_PROMPT_CACHE_MIN_MESSAGES = 2
SESSION_TIMEOUT_HOURS = 24
REPLY_DELAY_SECONDS = 3

# ── Read-tool cache ──

TOOL_CACHE_TTL_SECONDS = 60 * 60 * 24
TOOL_CACHE_KEY_PREFIX = "chatbot:eventId:"

# ── Guest statuses accepted by update_rsvp ──

RSVP_STATUSES: Tuple[str, ...] = ("CONFIRMED", "PENDING", "DECLINED")

# ── Fixed user-facing strings ──

SUB_AGENT_ERROR_CLARIFICATION = (
    "I encountered an issue trying to understand that. Could you please try again?"
)
MAIN_AGENT_ERROR_TEXT = (
    "Al parecer hubo un error al generar la respuesta. Favor de contactar a los "
    "anfitriones del evento para obtener la información que necesita."
)
EMPTY_RESPONSE_TEXT = (
    "Lo siento, hubo un problema al generar una respuesta. "
    "Por favor, intenta tu pregunta de nuevo."
)
DEPTH_LIMIT_TEXT = (
    "Maximum tool processing depth reached. Please try rephrasing your request."
)
UNKNOWN_GUEST_REPLY = (
    "Lo siento, no reconozco este número de teléfono. Si eres un invitado, por favor "
    "asegúrate de usar el número que proporcionaste durante el registro."
)
UNKNOWN_GUEST_ERROR_TEXT = (
    "Lo siento, no pude generar una respuesta debido a un error técnico."
)
UNKNOWN_GUEST_MAX_TOKENS = 80
