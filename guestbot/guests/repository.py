"""
Guest and event repositories.

Data access for the tables the chatbot tools read and write: guests,
custom confirmation questions and responses, guest requests and events
(with venues and FAQ).
"""

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from ..db.repository import Repository
from .models import (
    ConfirmationOption,
    ConfirmationQuestion,
    EventContext,
    GuestConfirmationResponse,
    GuestContext,
    GuestStatus,
    Venue,
)

logger = logging.getLogger(__name__)


class GuestRepository(Repository):
    TABLE_NAME = "guests"

    async def get(self, guest_id: str) -> Optional[Dict[str, Any]]:
        return await self._fetch_one("id = $1", (guest_id,))

    async def update_fields(self, guest_id: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Update guest columns and return the updated row."""
        data = {**data, "updated_at": datetime.now(timezone.utc)}
        return await self._update("id", guest_id, data)

    async def rename_companion(self, guest_id: str, name: str) -> Optional[Dict[str, Any]]:
        """Rename a companion. Primary guests are never renamed."""
        row = await self._db.fetchrow(
            "UPDATE guests SET name = $1, updated_at = NOW() "
            "WHERE id = $2 AND is_primary_guest = FALSE "
            "RETURNING *",
            name,
            guest_id,
        )
        return dict(row) if row else None

    async def find_for_phone(self, phone: str, organization_id: str) -> List[GuestContext]:
        """Load every active primary-guest record for a phone number, with companions."""
        rows = await self._db.fetch(
            "SELECT g.* FROM guests g "
            "JOIN events e ON e.id = g.event_id "
            "WHERE g.phone = $1 "
            "AND e.organization_id = $2 "
            "AND e.is_active = TRUE "
            "AND g.is_primary_guest = TRUE "
            "AND g.status <> $3 "
            "ORDER BY g.created_at",
            phone,
            organization_id,
            GuestStatus.INACTIVE.value,
        )
        primaries = [dict(r) for r in rows]
        if not primaries:
            return []

        group_ids = [r["guest_group_id"] for r in primaries if r.get("guest_group_id")]
        companion_rows: List[Dict[str, Any]] = []
        if group_ids:
            companion_rows = await self._fetch_many(
                where="guest_group_id = ANY($1::text[]) AND is_primary_guest = FALSE AND status <> $2",
                args=(group_ids, GuestStatus.INACTIVE.value),
                order_by="created_at",
            )

        responses = await ConfirmationResponseRepository(self._db).list_for_guests(
            [r["id"] for r in primaries + companion_rows]
        )

        companions_by_group: Dict[str, List[GuestContext]] = defaultdict(list)
        for row in companion_rows:
            companions_by_group[row["guest_group_id"]].append(
                GuestContext.from_row(row, responses=responses.get(row["id"], []))
            )

        return [
            GuestContext.from_row(
                row,
                responses=responses.get(row["id"], []),
                companions=companions_by_group.get(row.get("guest_group_id"), []),
            )
            for row in primaries
        ]


class ConfirmationQuestionRepository(Repository):
    TABLE_NAME = "event_required_guest_confirmations"

    async def get_question(self, question_id: str) -> Optional[ConfirmationQuestion]:
        row = await self._fetch_one("id = $1", (question_id,))
        if not row:
            return None
        options = await self._load_options([question_id])
        return self._to_question(row, options.get(question_id, []))

    async def list_for_events(self, event_ids: Sequence[str]) -> Dict[str, List[ConfirmationQuestion]]:
        """Return questions grouped by event id."""
        if not event_ids:
            return {}
        rows = await self._fetch_many(
            where="event_id = ANY($1::text[])",
            args=(list(event_ids),),
            order_by="created_at",
        )
        options = await self._load_options([r["id"] for r in rows])
        grouped: Dict[str, List[ConfirmationQuestion]] = defaultdict(list)
        for row in rows:
            grouped[row["event_id"]].append(self._to_question(row, options.get(row["id"], [])))
        return dict(grouped)

    async def _load_options(self, question_ids: List[str]) -> Dict[str, List[ConfirmationOption]]:
        if not question_ids:
            return {}
        rows = await self._db.fetch(
            "SELECT * FROM event_required_guest_confirmation_options "
            "WHERE question_id = ANY($1::text[]) ORDER BY label",
            question_ids,
        )
        grouped: Dict[str, List[ConfirmationOption]] = defaultdict(list)
        for r in rows:
            grouped[r["question_id"]].append(ConfirmationOption(id=r["id"], label=r["label"]))
        return grouped

    @staticmethod
    def _to_question(row: Dict[str, Any], options: List[ConfirmationOption]) -> ConfirmationQuestion:
        return ConfirmationQuestion(
            id=row["id"],
            event_id=row["event_id"],
            label=row["label"],
            best_way_to_ask=row.get("best_way_to_ask") or "",
            options=options,
        )


class ConfirmationResponseRepository(Repository):
    TABLE_NAME = "guest_confirmation_responses"

    async def upsert_response(
        self,
        guest_id: str,
        question_id: str,
        custom_response: Optional[str],
        selected_option_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Store the guest's answer; one row per (guest, question)."""
        return await self._upsert(
            {
                "guest_id": guest_id,
                "question_id": question_id,
                "selected_option_id": selected_option_id,
                "custom_response": custom_response,
                "updated_at": datetime.now(timezone.utc),
            },
            conflict_columns=("guest_id", "question_id"),
        )

    async def list_for_guests(self, guest_ids: Sequence[str]) -> Dict[str, List[GuestConfirmationResponse]]:
        if not guest_ids:
            return {}
        rows = await self._fetch_many(
            where="guest_id = ANY($1::text[])",
            args=(list(guest_ids),),
        )
        grouped: Dict[str, List[GuestConfirmationResponse]] = defaultdict(list)
        for row in rows:
            grouped[row["guest_id"]].append(GuestConfirmationResponse.from_row(row))
        return dict(grouped)


class GuestRequestRepository(Repository):
    TABLE_NAME = "guest_requests"

    async def create(self, guest_id: str, event_id: str, request_text: str) -> Optional[Dict[str, Any]]:
        """Open a special request for the hosts to review."""
        return await self._insert({
            "guest_id": guest_id,
            "event_id": event_id,
            "request_text": request_text,
        })


class EventRepository(Repository):
    TABLE_NAME = "events"

    async def list_chatbot_events(self, event_ids: Sequence[str]) -> List[EventContext]:
        """Load the chatbot-enabled events among ``event_ids`` with venues and confirmations."""
        if not event_ids:
            return []
        rows = await self._fetch_many(
            where="id = ANY($1::text[]) AND has_chatbot_enabled = TRUE",
            args=(list(event_ids),),
            order_by="date",
        )
        if not rows:
            return []

        ids = [r["id"] for r in rows]
        venue_rows = await self._db.fetch(
            "SELECT * FROM venues WHERE event_id = ANY($1::text[]) ORDER BY name",
            ids,
        )
        venues: Dict[str, List[Venue]] = defaultdict(list)
        for v in venue_rows:
            venues[v["event_id"]].append(
                Venue(name=v["name"], address=v["address"], purpose=v["purpose"])
            )
        confirmations = await ConfirmationQuestionRepository(self._db).list_for_events(ids)

        return [
            EventContext(
                event_id=r["id"],
                name=r["name"],
                date=r["date"],
                start_time=r.get("start_time") or "",
                end_time=r.get("end_time") or "",
                timezone=r.get("timezone") or "",
                persons=(r["person1"], r["person2"]),
                venues=venues.get(r["id"], []),
                has_chatbot_enabled=r["has_chatbot_enabled"],
                confirmations=confirmations.get(r["id"], []),
            )
            for r in rows
        ]

    async def list_active_faq(self, event_id: str) -> List[Dict[str, Any]]:
        rows = await self._db.fetch(
            "SELECT question, answer FROM event_questions "
            "WHERE event_id = $1 AND status = 'ACTIVE' "
            "ORDER BY created_at",
            event_id,
        )
        return [dict(r) for r in rows]
