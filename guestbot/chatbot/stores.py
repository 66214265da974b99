"""Bundle of repositories handed to tools and agents."""

from dataclasses import dataclass
from typing import Optional

from ..guests.repository import (
    ConfirmationQuestionRepository,
    ConfirmationResponseRepository,
    EventRepository,
    GuestRepository,
    GuestRequestRepository,
)
from ..ledger.repository import (
    AgentExecutionRepository,
    AgentRepository,
    ChatbotApiCallRepository,
    LoopIterationRepository,
)
from ..sessions.repository import (
    ChatMessageRepository,
    ChatSessionRepository,
    MessageDeliveryRepository,
)
from .cache import ToolResultCache


@dataclass
class ChatbotStores:
    """
    Storage collaborators for one chatbot turn.

    Every field is optional so tests can inject only what a code path
    touches. A missing ledger repository simply disables ledger writes.
    """

    guests: Optional[GuestRepository] = None
    confirmation_questions: Optional[ConfirmationQuestionRepository] = None
    confirmation_responses: Optional[ConfirmationResponseRepository] = None
    guest_requests: Optional[GuestRequestRepository] = None
    events: Optional[EventRepository] = None
    agents: Optional[AgentRepository] = None
    executions: Optional[AgentExecutionRepository] = None
    iterations: Optional[LoopIterationRepository] = None
    api_calls: Optional[ChatbotApiCallRepository] = None
    sessions: Optional[ChatSessionRepository] = None
    messages: Optional[ChatMessageRepository] = None
    deliveries: Optional[MessageDeliveryRepository] = None
    cache: Optional[ToolResultCache] = None

    @classmethod
    def from_database(cls, db, cache: Optional[ToolResultCache] = None) -> "ChatbotStores":
        return cls(
            guests=GuestRepository(db),
            confirmation_questions=ConfirmationQuestionRepository(db),
            confirmation_responses=ConfirmationResponseRepository(db),
            guest_requests=GuestRequestRepository(db),
            events=EventRepository(db),
            agents=AgentRepository(db),
            executions=AgentExecutionRepository(db),
            iterations=LoopIterationRepository(db),
            api_calls=ChatbotApiCallRepository(db),
            sessions=ChatSessionRepository(db),
            messages=ChatMessageRepository(db),
            deliveries=MessageDeliveryRepository(db),
            cache=cache,
        )
