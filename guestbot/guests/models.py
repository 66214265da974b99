"""
Guest and event data model shared by tools, agents and the chatbot service.

The GuestContextHash maps an event id to the guest the conversation is
about (with companions and confirmation responses already resolved) plus
a short summary of the event. It is rebuilt for every inbound turn and
passed explicitly to every tool and agent.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple


class GuestStatus(str, Enum):
    """RSVP status of a guest"""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    DECLINED = "DECLINED"
    INACTIVE = "INACTIVE"


@dataclass
class GuestConfirmationResponse:
    """A guest's answer to one custom confirmation question."""
    guest_id: str
    question_id: str
    selected_option_id: Optional[str] = None
    custom_response: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "GuestConfirmationResponse":
        return cls(
            guest_id=row["guest_id"],
            question_id=row["question_id"],
            selected_option_id=row.get("selected_option_id"),
            custom_response=row.get("custom_response"),
        )


@dataclass
class ConfirmationOption:
    id: str
    label: str


@dataclass
class ConfirmationQuestion:
    """A per-event question with a fixed set of selectable answers."""
    id: str
    event_id: str
    label: str
    best_way_to_ask: str = ""
    options: List[ConfirmationOption] = field(default_factory=list)

    def option(self, option_id: Optional[str]) -> Optional[ConfirmationOption]:
        if not option_id:
            return None
        for opt in self.options:
            if opt.id == option_id:
                return opt
        return None


@dataclass
class GuestContext:
    """
    A guest record plus its resolved relationships.

    For a primary guest ``companions`` holds the other members of the
    guest group; companions themselves carry an empty list.
    """
    id: str
    event_id: str
    name: str
    status: str = GuestStatus.PENDING.value
    phone: Optional[str] = None
    dietary_restrictions: Optional[str] = None
    notes: Optional[str] = None
    table: Optional[str] = None
    category: Optional[str] = None
    inviter: Optional[str] = None
    is_primary_guest: bool = True
    has_multiple_guests: bool = False
    guest_group_id: Optional[str] = None
    confirmation_responses: List[GuestConfirmationResponse] = field(default_factory=list)
    companions: List["GuestContext"] = field(default_factory=list)

    def response_for(self, question_id: str) -> Optional[GuestConfirmationResponse]:
        for response in self.confirmation_responses:
            if response.question_id == question_id:
                return response
        return None

    @classmethod
    def from_row(
        cls,
        row: Dict[str, Any],
        responses: Iterable[GuestConfirmationResponse] = (),
        companions: Iterable["GuestContext"] = (),
    ) -> "GuestContext":
        return cls(
            id=row["id"],
            event_id=row["event_id"],
            name=row["name"],
            status=row.get("status") or GuestStatus.PENDING.value,
            phone=row.get("phone"),
            dietary_restrictions=row.get("dietary_restrictions"),
            notes=row.get("notes"),
            table=row.get("table_name"),
            category=row.get("category"),
            inviter=row.get("inviter"),
            is_primary_guest=row.get("is_primary_guest", True),
            has_multiple_guests=row.get("has_multiple_guests", False),
            guest_group_id=row.get("guest_group_id"),
            confirmation_responses=list(responses),
            companions=list(companions),
        )


@dataclass
class Venue:
    name: str
    address: Optional[str] = None
    purpose: str = "MAIN"


@dataclass
class EventContext:
    """Chatbot-relevant details of one event."""
    event_id: str
    name: str
    date: datetime
    start_time: str = ""
    end_time: str = ""
    timezone: str = ""
    persons: Tuple[str, str] = ("", "")
    venues: List[Venue] = field(default_factory=list)
    has_chatbot_enabled: bool = True
    confirmations: List[ConfirmationQuestion] = field(default_factory=list)

    @property
    def hosts(self) -> str:
        return " & ".join(self.persons)


@dataclass
class EventSummary:
    name: str
    hosts: str
    additional_confirmations: List[ConfirmationQuestion] = field(default_factory=list)


@dataclass
class GuestContextEntry:
    """One GuestContextHash value: the conversation's guest for an event."""
    guest: GuestContext
    event: EventSummary

    def find_guest(self, guest_id: Optional[str]) -> Optional[GuestContext]:
        """Return the primary guest or the companion with ``guest_id``."""
        if guest_id is None or guest_id == self.guest.id:
            return self.guest
        for companion in self.guest.companions:
            if companion.id == guest_id:
                return companion
        return None


GuestContextHash = Dict[str, GuestContextEntry]


def build_guest_context_hash(
    events: Iterable[EventContext],
    guests: Iterable[GuestContext],
) -> GuestContextHash:
    """Index the session's guests by the chatbot-enabled events they belong to."""
    guests = list(guests)
    context: GuestContextHash = {}
    for event in events:
        for guest in guests:
            if guest.event_id == event.event_id:
                context[event.event_id] = GuestContextEntry(
                    guest=guest,
                    event=EventSummary(
                        name=event.name,
                        hosts=event.hosts,
                        additional_confirmations=list(event.confirmations),
                    ),
                )
    return context
