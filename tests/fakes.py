"""In-memory stand-ins used across the test suite.

Every fake repository mirrors the method names of the real one it stands
in for, so tools, agents and the ledger recorder run unchanged against it.
"""

import copy
import itertools
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from guestbot.guests.models import ConfirmationQuestion, EventContext, GuestContext
from guestbot.ledger.models import ExecutionStatus, IterationStatus, TokenTotals
from guestbot.llm.base import LLMResponse, StopReason, ToolCall, Usage
from guestbot.sessions.models import ChatMessage, ChatSession, MessageDirection


# ---------------------------------------------------------------------------
# LLM
# ---------------------------------------------------------------------------

_ids = itertools.count(1)


def text_response(text: str, usage: Optional[Usage] = None) -> LLMResponse:
    return LLMResponse(
        content=text,
        stop_reason=StopReason.END_TURN,
        usage=usage or Usage(prompt_tokens=10, completion_tokens=5),
        message_id=f"msg_{next(_ids)}",
        model="claude-test",
        content_blocks=[{"type": "text", "text": text}],
    )


def tool_response(calls: Sequence[tuple], text: str = "") -> LLMResponse:
    """``calls`` is a sequence of ``(name, arguments)`` pairs."""
    tool_calls = [
        ToolCall(id=f"toolu_{next(_ids)}", name=name, arguments=dict(args))
        for name, args in calls
    ]
    blocks: List[Dict[str, Any]] = []
    if text:
        blocks.append({"type": "text", "text": text})
    blocks.extend(
        {"type": "tool_use", "id": tc.id, "name": tc.name, "input": tc.arguments}
        for tc in tool_calls
    )
    return LLMResponse(
        content=text,
        tool_calls=tool_calls,
        stop_reason=StopReason.TOOL_USE,
        usage=Usage(prompt_tokens=10, completion_tokens=5),
        message_id=f"msg_{next(_ids)}",
        model="claude-test",
        content_blocks=blocks,
    )


def empty_response() -> LLMResponse:
    return LLMResponse(content="", message_id=f"msg_{next(_ids)}", content_blocks=[])


class FakeLLMClient:
    """Returns scripted responses in order; an Exception item is raised instead."""

    def __init__(self, responses: Sequence[Any] = ()):
        self._responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    async def chat_completion(self, messages, tools=None, system=None, config=None, **kwargs):
        self.calls.append({
            "messages": copy.deepcopy(messages),
            "tools": tools,
            "system": system,
            "config": config,
        })
        if not self._responses:
            raise AssertionError("FakeLLMClient ran out of scripted responses")
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def tool_names_called(self) -> List[str]:
        """Tool names requested so far, read from the history of the latest call."""
        names = []
        for message in self.calls[-1]["messages"] if self.calls else []:
            if message["role"] == "assistant" and isinstance(message["content"], list):
                names.extend(b["name"] for b in message["content"] if b.get("type") == "tool_use")
        return names


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------

class FakeRedis:
    def __init__(self):
        self.data: Dict[str, str] = {}
        self.expiry: Dict[str, int] = {}
        self.closed = False

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        if ex is not None:
            self.expiry[key] = ex

    async def delete(self, key):
        self.data.pop(key, None)

    async def close(self):
        self.closed = True


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------

class FakeGuestRepository:
    def __init__(self, rows: Dict[str, Dict[str, Any]], by_phone: Optional[Dict[str, List[GuestContext]]] = None):
        self.rows = rows
        self.by_phone = by_phone or {}
        self.updates: List[tuple] = []
        self.get_calls = 0

    async def get(self, guest_id):
        self.get_calls += 1
        row = self.rows.get(guest_id)
        return dict(row) if row else None

    async def update_fields(self, guest_id, data):
        self.updates.append((guest_id, dict(data)))
        if guest_id not in self.rows:
            return None
        self.rows[guest_id].update(data)
        return dict(self.rows[guest_id])

    async def rename_companion(self, guest_id, name):
        row = self.rows.get(guest_id)
        if row is None or row.get("is_primary_guest", True):
            return None
        self.updates.append((guest_id, {"name": name}))
        row["name"] = name
        return dict(row)

    async def find_for_phone(self, phone, organization_id):
        return list(self.by_phone.get(phone, []))


class FakeConfirmationQuestionRepository:
    def __init__(self, questions: Sequence[ConfirmationQuestion] = ()):
        self.questions = {q.id: q for q in questions}

    async def get_question(self, question_id):
        return self.questions.get(question_id)


class FakeConfirmationResponseRepository:
    def __init__(self):
        self.rows: Dict[tuple, Dict[str, Any]] = {}

    async def upsert_response(self, guest_id, question_id, custom_response, selected_option_id=None):
        row = {
            "guest_id": guest_id,
            "question_id": question_id,
            "custom_response": custom_response,
            "selected_option_id": selected_option_id,
        }
        self.rows[(guest_id, question_id)] = row
        return dict(row)


class FakeGuestRequestRepository:
    def __init__(self):
        self.created: List[Dict[str, Any]] = []

    async def create(self, guest_id, event_id, request_text):
        row = {"id": f"req_{len(self.created) + 1}", "guest_id": guest_id,
               "event_id": event_id, "request_text": request_text}
        self.created.append(row)
        return row


class FakeEventRepository:
    def __init__(self, events: Sequence[EventContext] = (), faq: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.events = list(events)
        self.faq = faq or {}

    async def list_chatbot_events(self, event_ids):
        return [e for e in self.events if e.event_id in event_ids and e.has_chatbot_enabled]

    async def list_active_faq(self, event_id):
        return list(self.faq.get(event_id, []))


class FakeAgentRepository:
    def __init__(self):
        self.specs = []

    async def get_or_create(self, spec):
        self.specs.append(spec)
        return {"id": f"agent_{spec.type.value.lower()}", "name": spec.name}


class FakeExecutionRepository:
    def __init__(self):
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.completions: List[str] = []

    async def start(self, session_id, agent_id, system_prompt, user_message,
                    parent_execution_id=None, parent_loop_iteration_id=None,
                    status=ExecutionStatus.RUNNING):
        execution_id = f"exec_{len(self.rows) + 1}"
        row = {
            "id": execution_id,
            "session_id": session_id,
            "agent_id": agent_id,
            "status": status.value,
            "system_prompt": system_prompt,
            "user_message": user_message,
            "parent_execution_id": parent_execution_id,
            "parent_loop_iteration_id": parent_loop_iteration_id,
        }
        self.rows[execution_id] = row
        return dict(row)

    async def complete(self, execution_id, status, final_response, totals, execution_time_ms):
        self.completions.append(execution_id)
        row = self.rows[execution_id]
        row.update({
            "status": status.value,
            "final_response": final_response,
            "input_tokens": totals.input_tokens,
            "output_tokens": totals.output_tokens,
            "execution_time_ms": execution_time_ms,
        })
        return dict(row)

    def by_agent(self, agent_id):
        return [r for r in self.rows.values() if r["agent_id"] == agent_id]


class FakeIterationRepository:
    def __init__(self):
        self.rows: Dict[str, Dict[str, Any]] = {}

    async def start(self, execution_id, iteration_number, input_prompt):
        iteration_id = f"iter_{len(self.rows) + 1}"
        row = {
            "id": iteration_id,
            "execution_id": execution_id,
            "iteration_number": iteration_number,
            "status": IterationStatus.RUNNING.value,
            "input_prompt": input_prompt,
        }
        self.rows[iteration_id] = row
        return dict(row)

    async def complete(self, iteration_id, status, output_content, tool_calls, tool_results, iteration_time_ms):
        self.rows[iteration_id].update({
            "status": status.value,
            "output_content": output_content,
            "tool_calls": tool_calls,
            "tool_results": tool_results,
        })
        return dict(self.rows[iteration_id])

    def for_execution(self, execution_id):
        return [r for r in self.rows.values() if r["execution_id"] == execution_id]


class FakeApiCallRepository:
    def __init__(self):
        self.rows: List[Dict[str, Any]] = []

    async def record(self, session_id, response, agent_execution_id, loop_iteration_id):
        usage = response.usage or Usage()
        row = {
            "message_id": response.message_id,
            "session_id": session_id,
            "agent_execution_id": agent_execution_id,
            "loop_iteration_id": loop_iteration_id,
            "input_tokens": usage.prompt_tokens,
            "output_tokens": usage.completion_tokens,
            "cache_creation_tokens": usage.cache_creation_tokens,
            "cache_read_tokens": usage.cache_read_tokens,
        }
        self.rows.append(row)
        return row

    async def token_totals(self, execution_id):
        rows = [r for r in self.rows if r["agent_execution_id"] == execution_id]
        return TokenTotals(
            input_tokens=sum(r["input_tokens"] for r in rows),
            output_tokens=sum(r["output_tokens"] for r in rows),
            cache_creation_tokens=sum(r["cache_creation_tokens"] for r in rows),
            cache_read_tokens=sum(r["cache_read_tokens"] for r in rows),
        )


class FakeSessionRepository:
    def __init__(self):
        self.sessions: Dict[str, ChatSession] = {}
        self.touched: List[str] = []

    async def get(self, session_id):
        return self.sessions.get(session_id)

    async def find_active(self, phone, organization_id, is_test, max_age):
        for session in self.sessions.values():
            if (session.phone == phone and session.organization_id == organization_id
                    and session.is_test == is_test and session.is_active):
                return session
        return None

    async def create(self, phone, organization_id, is_test=False, next_reply_at=None):
        session = ChatSession(
            id=f"sess_{len(self.sessions) + 1}",
            phone=phone,
            organization_id=organization_id,
            is_test=is_test,
            last_message_at=datetime.now(timezone.utc),
            next_reply_at=next_reply_at,
        )
        self.sessions[session.id] = session
        return session

    async def touch(self, session_id, next_reply_at):
        self.touched.append(session_id)
        session = self.sessions.get(session_id)
        if session is None:
            return None
        session.next_reply_at = next_reply_at
        return session

    async def deactivate_for_phone(self, phone, organization_id, is_test):
        closed = 0
        for session in self.sessions.values():
            if session.phone == phone and session.is_active and session.is_test == is_test:
                session.is_active = False
                closed += 1
        return closed


class FakeMessageRepository:
    def __init__(self):
        self.messages: List[ChatMessage] = []

    async def create(self, session_id, direction, content, agent_execution_id=None):
        message = ChatMessage(
            id=f"m_{len(self.messages) + 1}",
            session_id=session_id,
            direction=direction,
            content=content,
            agent_execution_id=agent_execution_id,
            created_at=datetime.now(timezone.utc),
        )
        self.messages.append(message)
        return message

    async def list_recent(self, session_id, limit):
        rows = [m for m in self.messages if m.session_id == session_id and m.content]
        return rows[-limit:]

    def outbound(self):
        return [m for m in self.messages if m.direction == MessageDirection.OUTBOUND]


class FakeDeliveryRepository:
    """Already-rendered bulk messages keyed by guest id."""

    def __init__(self, by_guest: Optional[Dict[str, List[ChatMessage]]] = None):
        self.by_guest = by_guest or {}
        self.requests: List[List[str]] = []

    async def list_delivered_for_guests(self, guest_ids, session_id):
        self.requests.append(list(guest_ids))
        found = [m for gid in guest_ids for m in self.by_guest.get(gid, [])]
        return sorted(found, key=lambda m: m.created_at)


# ---------------------------------------------------------------------------
# Guest world: Mary is invited to one wedding with two unnamed companions
# ---------------------------------------------------------------------------

EVENT_ID = "evt_1"
MARY_ID = "g_mary"
COMPANION_1_ID = "g_c1"
COMPANION_2_ID = "g_c2"
MARY_PHONE = "+5215550001"


def guest_rows() -> Dict[str, Dict[str, Any]]:
    base = {"event_id": EVENT_ID, "guest_group_id": "grp_1", "status": "PENDING", "phone": MARY_PHONE}
    return {
        MARY_ID: {**base, "id": MARY_ID, "name": "Mary", "is_primary_guest": True,
                  "has_multiple_guests": True, "table_name": "7", "dietary_restrictions": None,
                  "notes": None, "category": "Family", "inviter": "Luis"},
        COMPANION_1_ID: {**base, "id": COMPANION_1_ID, "name": "Guest 1", "is_primary_guest": False},
        COMPANION_2_ID: {**base, "id": COMPANION_2_ID, "name": "Guest 2", "is_primary_guest": False},
    }


def clarification_json(question: str) -> str:
    return json.dumps({"clarificationRequest": question})
