"""Tests for the asyncpg repositories: generated SQL and row mapping"""

from datetime import datetime, timedelta, timezone
from typing import get_type_hints

import pytest

from guestbot.db import Database, Repository
from guestbot.guests.repository import ConfirmationResponseRepository, GuestRepository
from guestbot.ledger.models import AgentSpec, AgentType
from guestbot.ledger.repository import AgentRepository, ChatbotApiCallRepository
from guestbot.llm.base import LLMResponse
from guestbot.sessions.models import MessageDirection, render_template_message
from guestbot.sessions.repository import (
    ChatMessageRepository,
    ChatSessionRepository,
    MessageDeliveryRepository,
)

from fakes import text_response


class CapturingDatabase:
    """Records every query; returns canned rows."""

    def __init__(self, fetchrow_results=None, fetch_results=None, execute_result="UPDATE 0"):
        self.queries = []
        self._fetchrow = list(fetchrow_results or [])
        self._fetch = list(fetch_results or [])
        self._execute = execute_result

    async def fetchrow(self, query, *args):
        self.queries.append((query, args))
        return self._fetchrow.pop(0) if self._fetchrow else None

    async def fetch(self, query, *args):
        self.queries.append((query, args))
        return self._fetch.pop(0) if self._fetch else []

    async def execute(self, query, *args):
        self.queries.append((query, args))
        return self._execute


# =========================================================================
# Base helpers
# =========================================================================


class TestRepositoryHelpers:

    @pytest.mark.asyncio
    async def test_upsert_updates_non_key_columns(self):
        db = CapturingDatabase(fetchrow_results=[{"guest_id": "g1", "question_id": "q1"}])
        await ConfirmationResponseRepository(db).upsert_response("g1", "q1", "tequila", "opt_1")

        query, args = db.queries[0]
        assert query.startswith("INSERT INTO guest_confirmation_responses")
        assert "ON CONFLICT (guest_id, question_id)" in query
        assert "custom_response = EXCLUDED.custom_response" in query
        assert "guest_id = EXCLUDED.guest_id" not in query
        assert args[:4] == ("g1", "q1", "opt_1", "tequila")

    @pytest.mark.asyncio
    async def test_update_places_id_last(self):
        db = CapturingDatabase(fetchrow_results=[{"id": "g1", "status": "CONFIRMED"}])
        row = await GuestRepository(db).update_fields("g1", {"status": "CONFIRMED"})

        query, args = db.queries[0]
        assert query.startswith("UPDATE guests SET status = $1, updated_at = $2 WHERE id = $3")
        assert args[0] == "CONFIRMED" and args[-1] == "g1"
        assert row == {"id": "g1", "status": "CONFIRMED"}


# =========================================================================
# Domain queries
# =========================================================================


class TestGuestRepository:

    @pytest.mark.asyncio
    async def test_rename_only_targets_companions(self):
        db = CapturingDatabase()
        assert await GuestRepository(db).rename_companion("g1", "Ana") is None
        query, args = db.queries[0]
        assert "is_primary_guest = FALSE" in query
        assert args == ("Ana", "g1")

    @pytest.mark.asyncio
    async def test_find_for_phone_attaches_companions(self):
        primary = {"id": "g1", "event_id": "e1", "name": "Mary", "guest_group_id": "grp",
                   "is_primary_guest": True, "has_multiple_guests": True}
        companion = {"id": "g2", "event_id": "e1", "name": "Guest 1", "guest_group_id": "grp",
                     "is_primary_guest": False}
        response = {"guest_id": "g1", "question_id": "q1", "custom_response": "wine"}
        db = CapturingDatabase(fetch_results=[[primary], [companion], [response]])

        guests = await GuestRepository(db).find_for_phone("+521", "org_1")

        assert [g.name for g in guests] == ["Mary"]
        assert [c.id for c in guests[0].companions] == ["g2"]
        assert guests[0].response_for("q1").custom_response == "wine"
        assert db.queries[0][1] == ("+521", "org_1", "INACTIVE")

    @pytest.mark.asyncio
    async def test_find_for_phone_without_match(self):
        db = CapturingDatabase()
        assert await GuestRepository(db).find_for_phone("+521", "org_1") == []
        assert len(db.queries) == 1


class TestSessionRepositories:

    @pytest.mark.asyncio
    async def test_find_active_filters_by_test_flag(self):
        db = CapturingDatabase()
        await ChatSessionRepository(db).find_active("+521", "org_1", True, timedelta(hours=24))

        query, args = db.queries[0]
        assert "is_test = $3" in query
        assert query.endswith("ORDER BY last_message_at DESC LIMIT 1")
        assert args[:3] == ("org_1", "+521", True)

    @pytest.mark.asyncio
    async def test_deactivate_returns_affected_rows(self):
        db = CapturingDatabase(execute_result="UPDATE 2")
        assert await ChatSessionRepository(db).deactivate_for_phone("+521", "org_1", False) == 2

    @pytest.mark.asyncio
    async def test_list_recent_oldest_first(self):
        rows = [
            {"id": "m2", "session_id": "s", "direction": "OUTBOUND", "content": "Hola Mary"},
            {"id": "m1", "session_id": "s", "direction": "INBOUND", "content": "Hola"},
        ]
        db = CapturingDatabase(fetch_results=[rows])
        messages = await ChatMessageRepository(db).list_recent("s", 20)

        assert [m.id for m in messages] == ["m1", "m2"]
        assert messages[0].direction == MessageDirection.INBOUND
        assert "LIMIT 20" in db.queries[0][0]


class TestMessageDeliveryRepository:

    @pytest.mark.asyncio
    async def test_renders_received_deliveries(self):
        sent_at = datetime(2026, 10, 1, 17, 0, tzinfo=timezone.utc)
        rows = [
            {"id": "d1", "sent_at": sent_at,
             "template_body": "Hola {{1}}, tu mesa es la {{2}}",
             "variables": '{"1": "{{guest.name}}", "2": "{{guest.tableName}}"}',
             "guest": '{"id": "g1", "name": "Mary", "table_name": "7"}'},
            {"id": "d2", "sent_at": sent_at, "template_body": None, "variables": None, "guest": None},
        ]
        db = CapturingDatabase(fetch_results=[rows])

        messages = await MessageDeliveryRepository(db).list_delivered_for_guests(["g1"], "sess_1")

        assert [m.content for m in messages] == ["Hola Mary, tu mesa es la 7"]
        assert messages[0].direction == MessageDirection.OUTBOUND
        assert messages[0].session_id == "sess_1"
        assert messages[0].created_at == sent_at
        query, args = db.queries[0]
        assert "d.guest_id = ANY($1::text[])" in query
        assert query.endswith("ORDER BY d.sent_at")
        assert args == (["g1"], ["SENT", "DELIVERED", "READ"])

    @pytest.mark.asyncio
    async def test_no_guests_skips_query(self):
        db = CapturingDatabase()
        assert await MessageDeliveryRepository(db).list_delivered_for_guests([], "sess_1") == []
        assert db.queries == []


class TestRenderTemplateMessage:

    def test_literal_values(self):
        assert render_template_message("Boda el {{1}} a las {{2}}", {"1": "12/12", "2": "18:00"}, {}) == (
            "Boda el 12/12 a las 18:00"
        )

    def test_missing_variable_keeps_placeholder(self):
        assert render_template_message("Hola {{1}}, {{2}}", {"1": "Mary"}, {}) == "Hola Mary, {{2}}"

    def test_missing_guest_field_keeps_placeholder(self):
        text = render_template_message("Mesa {{1}}", {"1": "{{guest.tableName}}"}, {"name": "Mary"})
        assert text == "Mesa {{1}}"

    def test_other_braced_value_passes_through(self):
        assert render_template_message("{{1}}", {"1": "{{event.name}}"}, {}) == "{{event.name}}"

    def test_empty_template(self):
        assert render_template_message(None, {"1": "x"}, {}) == ""


class TestLedgerRepositories:

    @pytest.mark.asyncio
    async def test_agent_get_or_create_inserts_once(self):
        spec = AgentSpec(name="Main", description="d", type=AgentType.MAIN,
                         system_prompt="p", model="m", max_tokens=1024)
        db = CapturingDatabase(fetchrow_results=[None, {"id": "agent_1"}])

        row = await AgentRepository(db).get_or_create(spec)

        assert row == {"id": "agent_1"}
        assert db.queries[0][1] == ("MAIN",)
        assert db.queries[1][0].startswith("INSERT INTO agents")

    @pytest.mark.asyncio
    async def test_api_call_row_from_response(self):
        db = CapturingDatabase(fetchrow_results=[{"id": "call_1"}])
        response = text_response("hola")

        await ChatbotApiCallRepository(db).record("sess_1", response, "exec_1", "iter_1")

        query, args = db.queries[0]
        assert query.startswith("INSERT INTO chatbot_api_calls")
        assert args[0] == response.message_id
        assert args[-2:] == ("exec_1", "iter_1")

    @pytest.mark.asyncio
    async def test_token_totals(self):
        db = CapturingDatabase(fetchrow_results=[{
            "input_tokens": 30, "output_tokens": 12,
            "cache_creation_tokens": 0, "cache_read_tokens": 100,
        }])
        totals = await ChatbotApiCallRepository(db).token_totals("exec_1")
        assert totals.total == 142

    def test_record_annotations_resolve(self):
        hints = get_type_hints(ChatbotApiCallRepository.record)
        assert hints["response"] is LLMResponse


class TestRepositoryAnnotations:

    def test_database_annotations_resolve(self):
        assert get_type_hints(Repository.__init__)["db"] is Database
