"""Chat session, message and bulk-message delivery repositories."""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Sequence

from ..db.repository import Repository
from .models import (
    VISIBLE_DELIVERY_STATUSES,
    ChatMessage,
    ChatSession,
    MessageDirection,
    render_template_message,
)

logger = logging.getLogger(__name__)


def _affected_rows(status: str) -> int:
    # asyncpg returns a command tag such as "UPDATE 3"
    try:
        return int(str(status).split()[-1])
    except (ValueError, IndexError):
        return 0


class ChatSessionRepository(Repository):
    TABLE_NAME = "chat_sessions"

    async def get(self, session_id: str) -> Optional[ChatSession]:
        row = await self._fetch_one("id = $1", (session_id,))
        return ChatSession.from_row(row) if row else None

    async def find_active(
        self,
        phone: str,
        organization_id: str,
        is_test: bool,
        max_age: timedelta,
    ) -> Optional[ChatSession]:
        """Most recent active session for a phone that saw a message within ``max_age``."""
        since = datetime.now(timezone.utc) - max_age
        rows = await self._fetch_many(
            where=(
                "organization_id = $1 AND phone = $2 AND is_active = TRUE "
                "AND is_test = $3 AND last_message_at >= $4"
            ),
            args=(organization_id, phone, is_test, since),
            order_by="last_message_at DESC",
            limit=1,
        )
        return ChatSession.from_row(rows[0]) if rows else None

    async def create(
        self,
        phone: str,
        organization_id: str,
        is_test: bool = False,
        next_reply_at: Optional[datetime] = None,
    ) -> ChatSession:
        row = await self._insert({
            "phone": phone,
            "organization_id": organization_id,
            "is_test": is_test,
            "last_message_at": datetime.now(timezone.utc),
            "next_reply_at": next_reply_at,
        })
        logger.info(f"Created chat session {row['id']} for {phone}")
        return ChatSession.from_row(row)

    async def touch(self, session_id: str, next_reply_at: Optional[datetime]) -> Optional[ChatSession]:
        """Record inbound activity and push the reply deadline."""
        row = await self._update("id", session_id, {
            "last_message_at": datetime.now(timezone.utc),
            "next_reply_at": next_reply_at,
        })
        return ChatSession.from_row(row) if row else None

    async def deactivate_for_phone(self, phone: str, organization_id: str, is_test: bool) -> int:
        status = await self._db.execute(
            "UPDATE chat_sessions SET is_active = FALSE "
            "WHERE organization_id = $1 AND phone = $2 AND is_test = $3 AND is_active = TRUE",
            organization_id,
            phone,
            is_test,
        )
        return _affected_rows(status)


class ChatMessageRepository(Repository):
    TABLE_NAME = "chat_messages"

    async def create(
        self,
        session_id: str,
        direction: MessageDirection,
        content: str,
        agent_execution_id: Optional[str] = None,
    ) -> ChatMessage:
        row = await self._insert({
            "session_id": session_id,
            "direction": direction.value,
            "content": content,
            "agent_execution_id": agent_execution_id,
        })
        return ChatMessage.from_row(row)

    async def list_recent(self, session_id: str, limit: int) -> List[ChatMessage]:
        """The last ``limit`` non-empty messages, oldest first."""
        rows = await self._fetch_many(
            where="session_id = $1 AND content <> ''",
            args=(session_id,),
            order_by="created_at DESC",
            limit=limit,
        )
        return [ChatMessage.from_row(r) for r in reversed(rows)]


def _json_value(value: Any) -> Any:
    # asyncpg hands JSONB back as text unless a codec is registered
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


class MessageDeliveryRepository(Repository):
    """
    Template messages the organization sent to guests in bulk.

    They never pass through chat_messages, so the chatbot reads them here
    and renders them as assistant turns of the conversation.
    """

    TABLE_NAME = "message_deliveries"

    async def list_delivered_for_guests(
        self,
        guest_ids: Sequence[str],
        session_id: str,
    ) -> List[ChatMessage]:
        """Received deliveries for ``guest_ids``, oldest first, with their templates filled in."""
        if not guest_ids:
            return []
        rows = await self._db.fetch(
            "SELECT d.id, d.variables, d.sent_at, b.template_body, to_jsonb(g) AS guest "
            "FROM message_deliveries d "
            "JOIN bulk_messages b ON b.id = d.bulk_message_id "
            "JOIN guests g ON g.id = d.guest_id "
            "WHERE d.guest_id = ANY($1::text[]) AND d.status = ANY($2::text[]) "
            "ORDER BY d.sent_at",
            list(guest_ids),
            [status.value for status in VISIBLE_DELIVERY_STATUSES],
        )

        messages = []
        for row in rows:
            content = render_template_message(
                row["template_body"], _json_value(row["variables"]), _json_value(row["guest"])
            )
            if not content:
                continue
            messages.append(ChatMessage(
                id=row["id"],
                session_id=session_id,
                direction=MessageDirection.OUTBOUND,
                content=content,
                created_at=row["sent_at"],
            ))
        return messages
