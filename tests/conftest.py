"""Shared fixtures: the guest world, in-memory stores and a fake Redis cache."""

from datetime import datetime, timezone

import pytest

from guestbot.chatbot.cache import ToolResultCache
from guestbot.chatbot.stores import ChatbotStores
from guestbot.guests.models import (
    ConfirmationOption,
    ConfirmationQuestion,
    EventContext,
    GuestContext,
    Venue,
    build_guest_context_hash,
)
from guestbot.sessions.models import ChatSession

from fakes import (
    COMPANION_1_ID,
    COMPANION_2_ID,
    EVENT_ID,
    MARY_ID,
    MARY_PHONE,
    FakeAgentRepository,
    FakeApiCallRepository,
    FakeConfirmationQuestionRepository,
    FakeConfirmationResponseRepository,
    FakeEventRepository,
    FakeExecutionRepository,
    FakeGuestRepository,
    FakeGuestRequestRepository,
    FakeIterationRepository,
    FakeMessageRepository,
    FakeRedis,
    FakeSessionRepository,
    guest_rows,
)


@pytest.fixture
def drink_question():
    return ConfirmationQuestion(
        id="q_drink",
        event_id=EVENT_ID,
        label="Favorite drink",
        best_way_to_ask="What would you like to drink?",
        options=[
            ConfirmationOption(id="opt_tequila", label="Tequila"),
            ConfirmationOption(id="opt_wine", label="Wine"),
        ],
    )


@pytest.fixture
def wedding(drink_question):
    return EventContext(
        event_id=EVENT_ID,
        name="Boda Mary & Luis",
        date=datetime(2026, 12, 12, 18, 0, tzinfo=timezone.utc),
        start_time="18:00",
        end_time="23:30",
        timezone="America/Mexico_City",
        persons=("Mary", "Luis"),
        venues=[Venue(name="Hacienda San Gabriel", address="Km 5 Carretera", purpose="MAIN_CEREMONY")],
        confirmations=[drink_question],
    )


@pytest.fixture
def mary():
    rows = guest_rows()
    companions = [
        GuestContext.from_row(rows[COMPANION_1_ID]),
        GuestContext.from_row(rows[COMPANION_2_ID]),
    ]
    return GuestContext.from_row(rows[MARY_ID], companions=companions)


@pytest.fixture
def context(wedding, mary):
    return build_guest_context_hash([wedding], [mary])


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def tool_cache(fake_redis):
    return ToolResultCache(client=fake_redis)


@pytest.fixture
def stores(wedding, mary, drink_question):
    return ChatbotStores(
        guests=FakeGuestRepository(guest_rows(), by_phone={MARY_PHONE: [mary]}),
        confirmation_questions=FakeConfirmationQuestionRepository([drink_question]),
        confirmation_responses=FakeConfirmationResponseRepository(),
        guest_requests=FakeGuestRequestRepository(),
        events=FakeEventRepository(
            [wedding],
            faq={EVENT_ID: [{"question": "Dress code?", "answer": "Formal"}]},
        ),
        agents=FakeAgentRepository(),
        executions=FakeExecutionRepository(),
        iterations=FakeIterationRepository(),
        api_calls=FakeApiCallRepository(),
        sessions=FakeSessionRepository(),
        messages=FakeMessageRepository(),
    )


@pytest.fixture
def session():
    return ChatSession(id="sess_1", phone=MARY_PHONE, organization_id="org_1")
