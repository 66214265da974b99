"""
guestbot LLM Client Base - types shared by the completion client and the agents

- LLMConfig: connection and default request settings
- LLMResponse: one completion, keeping the raw content blocks so an agent
  loop can replay the assistant turn verbatim on the next iteration
- Usage: token accounting including prompt-cache writes and reads, which
  the agent ledger stores per API call
- BaseLLMClient: ``chat_completion`` wrapper around a provider ``_call_api``
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Union
from enum import Enum


class StopReason(str, Enum):
    """Why the model stopped generating"""
    END_TURN = "end_turn"
    MAX_TOKENS = "max_tokens"
    STOP_SEQUENCE = "stop_sequence"
    TOOL_USE = "tool_use"


@dataclass
class LLMConfig:
    """
    Client settings.

    ``max_tokens`` is the default per-request cap; both agents pass their
    own value through ``chat_completion(config=...)``. ``max_retries`` is
    handed to the SDK, the agent loop itself never retries a call.
    """
    api_key: Optional[str] = None
    model: str = "claude-sonnet-4-0"
    base_url: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 1024
    timeout: int = 60
    max_retries: int = 3
    default_headers: Dict[str, str] = field(default_factory=dict)
    track_costs: bool = True


@dataclass
class ToolCall:
    """A tool_use block requested by the model"""
    id: str
    name: str
    arguments: Dict[str, Any]


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    # USD, when the model has a PRICING entry
    cost: Optional[float] = None

    @property
    def total_tokens(self) -> int:
        return (
            self.prompt_tokens
            + self.completion_tokens
            + self.cache_creation_tokens
            + self.cache_read_tokens
        )


@dataclass
class LLMResponse:
    """
    One completion.

    ``content`` is the concatenated text; ``content_blocks`` holds every
    text and tool_use block in the order the model produced them.
    ``message_id``, ``role``, ``stop_sequence`` and ``usage`` feed the
    chatbot_api_calls ledger row.
    """
    content: str
    tool_calls: Optional[List[ToolCall]] = None
    stop_reason: StopReason = StopReason.END_TURN
    usage: Optional[Usage] = None
    model: Optional[str] = None
    message_id: Optional[str] = None
    role: str = "assistant"
    stop_sequence: Optional[str] = None
    content_blocks: List[Dict[str, Any]] = field(default_factory=list)
    raw_response: Optional[Any] = None

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    @property
    def is_empty(self) -> bool:
        """True when the model returned no content blocks at all"""
        return not self.content_blocks


class BaseLLMClient(ABC):
    """
    Completion client used by ``ToolLoop``.

    Subclasses implement ``_call_api``; callers go through ``chat_completion``,
    which merges per-call overrides and prices the usage.
    """

    provider: str = "unknown"

    # Per 1K tokens: {"model": {"input", "output", "cache_write", "cache_read"}}
    PRICING: Dict[str, Dict[str, float]] = {}

    def __init__(self, config: Optional[LLMConfig] = None, **kwargs):
        if config is None:
            config = LLMConfig(**kwargs)
        else:
            for key, value in kwargs.items():
                if hasattr(config, key):
                    setattr(config, key, value)

        self.config = config
        self._client = None  # SDK client, created on first call

    @abstractmethod
    async def _call_api(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs
    ) -> LLMResponse:
        """Provider call. ``kwargs`` may carry system, model, max_tokens, temperature."""

    async def chat_completion(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        system: Optional[Union[str, List[Dict[str, Any]]]] = None,
        config: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Send one completion request.

        Args:
            messages: Conversation turns; content may be a string or a block list
            tools: Tool manifest, possibly with ``cache_control`` on the last entry
            system: System prompt, either a string or a list of text blocks
            config: Per-call overrides such as ``max_tokens`` or ``model``
        """
        params = {**kwargs, **(config or {})}
        if system:
            params["system"] = system

        response = await self._call_api(messages, tools, **params)

        if self.config.track_costs and response.usage:
            response.usage.cost = self._calculate_cost(response.usage, response.model)
        return response

    def _calculate_cost(self, usage: Usage, model: Optional[str] = None) -> Optional[float]:
        pricing = self.PRICING.get(model or self.config.model)
        if pricing is None:
            return None
        return (
            usage.prompt_tokens * pricing.get("input", 0)
            + usage.completion_tokens * pricing.get("output", 0)
            + usage.cache_creation_tokens * pricing.get("cache_write", 0)
            + usage.cache_read_tokens * pricing.get("cache_read", 0)
        ) / 1000

    async def close(self) -> None:
        if self._client is not None and hasattr(self._client, "close"):
            await self._client.close()
        self._client = None
