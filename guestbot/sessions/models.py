"""Chat session and message records."""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

_PLACEHOLDER_RE = re.compile(r"\{\{(\d+)\}\}")
_GUEST_FIELD_RE = re.compile(r"\{\{guest\.(\w+)\}\}")
_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


class MessageDirection(str, Enum):
    INBOUND = "INBOUND"
    OUTBOUND = "OUTBOUND"


class MessageDeliveryStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    READ = "READ"
    FAILED = "FAILED"


# Deliveries the guest has actually received
VISIBLE_DELIVERY_STATUSES = (
    MessageDeliveryStatus.SENT,
    MessageDeliveryStatus.DELIVERED,
    MessageDeliveryStatus.READ,
)


@dataclass
class ChatSession:
    """One WhatsApp conversation with a phone number inside an organization."""
    id: str
    phone: str
    organization_id: str
    guest_id: Optional[str] = None
    is_active: bool = True
    is_test: bool = False
    last_message_at: Optional[datetime] = None
    next_reply_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ChatSession":
        return cls(
            id=row["id"],
            phone=row["phone"],
            organization_id=row["organization_id"],
            guest_id=row.get("guest_id"),
            is_active=row.get("is_active", True),
            is_test=row.get("is_test", False),
            last_message_at=row.get("last_message_at"),
            next_reply_at=row.get("next_reply_at"),
        )


@dataclass
class ChatMessage:
    id: str
    session_id: str
    direction: MessageDirection
    content: str
    agent_execution_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def role(self) -> str:
        """Completion-API role of this message."""
        return "user" if self.direction == MessageDirection.INBOUND else "assistant"

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "ChatMessage":
        return cls(
            id=row["id"],
            session_id=row["session_id"],
            direction=MessageDirection(row["direction"]),
            content=row.get("content") or "",
            agent_execution_id=row.get("agent_execution_id"),
            created_at=row.get("created_at"),
        )


def _guest_field(guest: Dict[str, Any], name: str) -> Any:
    if name in guest:
        return guest[name]
    return guest.get(_CAMEL_RE.sub("_", name).lower())


def render_template_message(
    template: Optional[str],
    variables: Optional[Dict[str, Any]],
    guest: Optional[Dict[str, Any]],
) -> str:
    """
    Fill the ``{{1}}``, ``{{2}}`` ... placeholders of a WhatsApp template.

    A variable value of the form ``{{guest.<field>}}`` is read from the
    guest row; ``tableName`` and ``table_name`` both resolve. A placeholder
    whose variable (or guest field) is missing stays as written.
    """
    variables = variables or {}
    guest = guest or {}

    def _fill(match) -> str:
        placeholder = match.group(0)
        value = variables.get(match.group(1))
        if not value:
            return placeholder
        value = str(value)
        if value.startswith("{{"):
            field = _GUEST_FIELD_RE.search(value)
            if field:
                guest_value = _guest_field(guest, field.group(1))
                return placeholder if guest_value is None else str(guest_value)
        return value

    return _PLACEHOLDER_RE.sub(_fill, template or "")
