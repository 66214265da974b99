"""
guestbot Anthropic Client - Messages API client with prompt caching

Supports:
- System prompts given as an ordered list of text blocks, each optionally
  tagged with ``cache_control``
- Tool manifests whose entries may carry ``cache_control``
- Cache read/write token accounting
"""

import os
from typing import Dict, Any, List, Optional

from .base import (
    BaseLLMClient, LLMConfig, LLMResponse,
    ToolCall, Usage, StopReason
)


class AnthropicClient(BaseLLMClient):
    """
    Anthropic API client.

    Example:
        client = AnthropicClient(model="claude-sonnet-4-0")
        response = await client.chat_completion(
            messages=[{"role": "user", "content": "Hello!"}],
            system=[
                {"type": "text", "text": "You are an event assistant."},
                {"type": "text", "text": event_details, "cache_control": {"type": "ephemeral"}},
            ],
            tools=tool_table.manifest(),
        )
    """

    provider = "anthropic"

    # Pricing per 1K tokens
    PRICING = {
        "claude-sonnet-4-0": {
            "input": 0.003, "output": 0.015, "cache_write": 0.00375, "cache_read": 0.0003,
        },
        "claude-sonnet-4-20250514": {
            "input": 0.003, "output": 0.015, "cache_write": 0.00375, "cache_read": 0.0003,
        },
        "claude-3-7-sonnet-latest": {
            "input": 0.003, "output": 0.015, "cache_write": 0.00375, "cache_read": 0.0003,
        },
        "claude-3-5-haiku-latest": {
            "input": 0.0008, "output": 0.004, "cache_write": 0.001, "cache_read": 0.00008,
        },
    }

    def __init__(self, config: Optional[LLMConfig] = None, **kwargs):
        """
        Initialize Anthropic client.

        Args:
            config: LLMConfig instance
            api_key: Anthropic API key (or set ANTHROPIC_API_KEY env var)
            model: Model name
            **kwargs: Additional config options
        """
        if config is None and "api_key" not in kwargs:
            kwargs["api_key"] = os.environ.get("ANTHROPIC_API_KEY")

        if config is None:
            if "model" not in kwargs:
                raise ValueError("model is required")
            model = kwargs.pop("model")
            config = LLMConfig(model=model, **kwargs)
            kwargs = {}

        super().__init__(config, **kwargs)

    def _get_client(self):
        """Get or create the Anthropic client"""
        if self._client is None:
            try:
                from anthropic import AsyncAnthropic
            except ImportError:
                raise ImportError(
                    "anthropic package not installed. "
                    "Install with: pip install anthropic"
                )

            self._client = AsyncAnthropic(
                api_key=self.config.api_key,
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                max_retries=self.config.max_retries,
                default_headers=self.config.default_headers or None,
            )

        return self._client

    async def _call_api(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs
    ) -> LLMResponse:
        """Make Anthropic API call"""
        client = self._get_client()

        # A "system" role message is folded into the system parameter
        system = kwargs.get("system")
        user_messages = []
        for msg in messages:
            if msg["role"] == "system":
                system = msg["content"]
            else:
                user_messages.append(msg)

        params = {
            "model": kwargs.get("model", self.config.model),
            "messages": user_messages,
            "max_tokens": kwargs.get("max_tokens", self.config.max_tokens),
        }

        if system:
            params["system"] = system

        if "temperature" in kwargs:
            params["temperature"] = kwargs["temperature"]

        if tools:
            params["tools"] = tools

        if "stop" in kwargs:
            params["stop_sequences"] = kwargs["stop"] if isinstance(kwargs["stop"], list) else [kwargs["stop"]]

        response = await client.messages.create(**params)

        content = ""
        tool_calls = []
        blocks: List[Dict[str, Any]] = []

        for block in response.content or []:
            if block.type == "text":
                content += block.text
                blocks.append({"type": "text", "text": block.text})
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(
                    id=block.id,
                    name=block.name,
                    arguments=dict(block.input or {}),
                ))
                blocks.append({
                    "type": "tool_use",
                    "id": block.id,
                    "name": block.name,
                    "input": block.input,
                })

        return LLMResponse(
            content=content,
            tool_calls=tool_calls if tool_calls else None,
            stop_reason=self._parse_stop_reason(response.stop_reason),
            usage=self._parse_usage(response.usage),
            model=response.model,
            message_id=response.id,
            role=response.role,
            stop_sequence=response.stop_sequence,
            content_blocks=blocks,
            raw_response=response,
        )

    def _parse_usage(self, usage: Any) -> Usage:
        """Parse Anthropic usage, cache fields may be None"""
        if usage is None:
            return Usage()
        return Usage(
            prompt_tokens=usage.input_tokens or 0,
            completion_tokens=usage.output_tokens or 0,
            cache_creation_tokens=getattr(usage, "cache_creation_input_tokens", None) or 0,
            cache_read_tokens=getattr(usage, "cache_read_input_tokens", None) or 0,
        )

    def _parse_stop_reason(self, stop_reason: Optional[str]) -> StopReason:
        """Parse Anthropic stop_reason to StopReason"""
        if stop_reason is None:
            return StopReason.END_TURN

        mapping = {
            "end_turn": StopReason.END_TURN,
            "max_tokens": StopReason.MAX_TOKENS,
            "stop_sequence": StopReason.STOP_SEQUENCE,
            "tool_use": StopReason.TOOL_USE,
        }
        return mapping.get(stop_reason, StopReason.END_TURN)
