"""
guestbot LLM Client - Anthropic Messages API client

Usage:
    from guestbot.llm import AnthropicClient, LLMConfig

    client = AnthropicClient(config=LLMConfig(model="claude-sonnet-4-0", api_key="sk-ant-xxx"))
    response = await client.chat_completion(messages=[...], system=[...], tools=[...])
"""

from .base import BaseLLMClient, LLMConfig, LLMResponse, StopReason, ToolCall, Usage
from .anthropic_client import AnthropicClient

__all__ = [
    "BaseLLMClient",
    "LLMConfig",
    "LLMResponse",
    "StopReason",
    "ToolCall",
    "Usage",
    "AnthropicClient",
]
