"""
Agent ledger repositories.

Every agent run writes one agent_executions row, one agent_loop_iterations
row per pass through its loop, and one chatbot_api_calls row per completion
call.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..db.repository import Repository
from ..llm.base import LLMResponse
from .models import (
    AgentSpec,
    ExecutionStatus,
    IterationStatus,
    TokenTotals,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _json_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, default=str, ensure_ascii=False)


class AgentRepository(Repository):
    TABLE_NAME = "agents"

    async def get_or_create(self, spec: AgentSpec) -> Dict[str, Any]:
        """Return the active agent of ``spec.type``, creating it on first use."""
        row = await self._fetch_one(
            "type = $1 AND is_active = TRUE", (spec.type.value,)
        )
        if row:
            return row
        row = await self._insert(spec.to_row())
        logger.info(f"Created agent '{spec.name}' ({spec.type.value})")
        return row


class AgentExecutionRepository(Repository):
    TABLE_NAME = "agent_executions"

    async def start(
        self,
        session_id: str,
        agent_id: str,
        system_prompt: str,
        user_message: str,
        parent_execution_id: Optional[str] = None,
        parent_loop_iteration_id: Optional[str] = None,
        status: ExecutionStatus = ExecutionStatus.RUNNING,
    ) -> Dict[str, Any]:
        return await self._insert({
            "session_id": session_id,
            "agent_id": agent_id,
            "status": status.value,
            "system_prompt": system_prompt,
            "user_message": user_message,
            "parent_execution_id": parent_execution_id,
            "parent_loop_iteration_id": parent_loop_iteration_id,
            "started_at": _now(),
        })

    async def complete(
        self,
        execution_id: str,
        status: ExecutionStatus,
        final_response: str,
        totals: TokenTotals,
        execution_time_ms: int,
    ) -> Optional[Dict[str, Any]]:
        return await self._update("id", execution_id, {
            "status": status.value,
            "final_response": final_response,
            "input_tokens": totals.input_tokens,
            "output_tokens": totals.output_tokens,
            "cache_creation_tokens": totals.cache_creation_tokens,
            "cache_read_tokens": totals.cache_read_tokens,
            "execution_time_ms": execution_time_ms,
            "completed_at": _now(),
        })


class LoopIterationRepository(Repository):
    TABLE_NAME = "agent_loop_iterations"

    async def start(self, execution_id: str, iteration_number: int, input_prompt: str) -> Dict[str, Any]:
        return await self._insert({
            "execution_id": execution_id,
            "iteration_number": iteration_number,
            "status": IterationStatus.RUNNING.value,
            "input_prompt": input_prompt,
            "started_at": _now(),
        })

    async def complete(
        self,
        iteration_id: str,
        status: IterationStatus,
        output_content: str,
        tool_calls: Optional[List[Dict[str, Any]]],
        tool_results: Optional[List[Dict[str, Any]]],
        iteration_time_ms: int,
    ) -> Optional[Dict[str, Any]]:
        return await self._update("id", iteration_id, {
            "status": status.value,
            "output_content": output_content,
            "tool_calls": _json_or_none(tool_calls),
            "tool_results": _json_or_none(tool_results),
            "iteration_time_ms": iteration_time_ms,
            "completed_at": _now(),
        })


class ChatbotApiCallRepository(Repository):
    TABLE_NAME = "chatbot_api_calls"

    async def record(
        self,
        session_id: str,
        response: LLMResponse,
        agent_execution_id: Optional[str],
        loop_iteration_id: Optional[str],
    ) -> Optional[Dict[str, Any]]:
        usage = response.usage
        return await self._insert({
            "message_id": response.message_id,
            "session_id": session_id,
            "role": response.role,
            "model": response.model,
            "content": _json_or_none(response.content_blocks),
            "stop_reason": response.stop_reason.value,
            "stop_sequence": response.stop_sequence,
            "input_tokens": usage.prompt_tokens if usage else 0,
            "output_tokens": usage.completion_tokens if usage else 0,
            "cache_creation_tokens": usage.cache_creation_tokens if usage else 0,
            "cache_read_tokens": usage.cache_read_tokens if usage else 0,
            "agent_execution_id": agent_execution_id,
            "loop_iteration_id": loop_iteration_id,
        })

    async def token_totals(self, execution_id: str) -> TokenTotals:
        """Sum token usage over every API call owned by an execution."""
        row = await self._db.fetchrow(
            "SELECT COALESCE(SUM(input_tokens), 0) AS input_tokens, "
            "COALESCE(SUM(output_tokens), 0) AS output_tokens, "
            "COALESCE(SUM(cache_creation_tokens), 0) AS cache_creation_tokens, "
            "COALESCE(SUM(cache_read_tokens), 0) AS cache_read_tokens "
            "FROM chatbot_api_calls WHERE agent_execution_id = $1",
            execution_id,
        )
        if not row:
            return TokenTotals()
        return TokenTotals(
            input_tokens=int(row["input_tokens"]),
            output_tokens=int(row["output_tokens"]),
            cache_creation_tokens=int(row["cache_creation_tokens"]),
            cache_read_tokens=int(row["cache_read_tokens"]),
        )
