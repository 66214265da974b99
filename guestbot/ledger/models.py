"""Agent ledger enums and value types."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class AgentType(str, Enum):
    MAIN = "MAIN"
    SUB_AGENT = "SUB_AGENT"


class ExecutionStatus(str, Enum):
    """Lifecycle of an AgentExecution row: RUNNING, then exactly one terminal state"""
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class IterationStatus(str, Enum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass
class AgentSpec:
    """Definition used to get-or-create the Agent row for an agent kind."""

    name: str
    description: str
    type: AgentType
    system_prompt: str
    model: str
    max_tokens: int
    temperature: float = 0.7

    def to_row(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "type": self.type.value,
            "system_prompt": self.system_prompt,
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "is_active": True,
        }


@dataclass
class TokenTotals:
    """Token counters summed over the API calls of one execution."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0

    @property
    def total(self) -> int:
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_tokens
            + self.cache_read_tokens
        )
