"""
Agent ledger: agents, executions, loop iterations and API calls.

``LedgerRecorder`` lives in ``guestbot.ledger.recorder``.
"""

from .models import AgentSpec, AgentType, ExecutionStatus, IterationStatus, TokenTotals
from .repository import (
    AgentExecutionRepository,
    AgentRepository,
    ChatbotApiCallRepository,
    LoopIterationRepository,
)

__all__ = [
    "AgentSpec",
    "AgentType",
    "ExecutionStatus",
    "IterationStatus",
    "TokenTotals",
    "AgentRepository",
    "AgentExecutionRepository",
    "LoopIterationRepository",
    "ChatbotApiCallRepository",
]
