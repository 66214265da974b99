"""Guest/event data model and repositories."""

from .models import (
    ConfirmationOption,
    ConfirmationQuestion,
    EventContext,
    EventSummary,
    GuestConfirmationResponse,
    GuestContext,
    GuestContextEntry,
    GuestContextHash,
    GuestStatus,
    Venue,
    build_guest_context_hash,
)
from .repository import (
    ConfirmationQuestionRepository,
    ConfirmationResponseRepository,
    EventRepository,
    GuestRepository,
    GuestRequestRepository,
)

__all__ = [
    "ConfirmationOption",
    "ConfirmationQuestion",
    "EventContext",
    "EventSummary",
    "GuestConfirmationResponse",
    "GuestContext",
    "GuestContextEntry",
    "GuestContextHash",
    "GuestStatus",
    "Venue",
    "build_guest_context_hash",
    "ConfirmationQuestionRepository",
    "ConfirmationResponseRepository",
    "EventRepository",
    "GuestRepository",
    "GuestRequestRepository",
]
