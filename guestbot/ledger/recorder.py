"""
LedgerRecorder - persists an agent run as ledger rows.

Implements the LoopObserver hooks: one agent_executions row per run, one
agent_loop_iterations row per pass and one chatbot_api_calls row per
completion call. Token totals on the execution row are summed from its
API-call rows when the run is completed.
"""

import logging
import time
from typing import Optional

from ..chatbot.loop import IterationRecord, LoopObserver, LoopResult
from ..llm.base import LLMResponse
from .models import ExecutionStatus, TokenTotals

logger = logging.getLogger(__name__)


class LedgerRecorder(LoopObserver):
    """
    Ledger writer for one agent execution.

    Usage:
        recorder = LedgerRecorder(stores, session_id)
        await recorder.start_execution(agent_id, system_prompt, user_message)
        result = await ToolLoop(llm, tools, observer=recorder).run(system, messages)
        await recorder.complete_execution(result.text)

    Any repository left as None on ``stores`` turns the matching writes
    into no-ops.
    """

    def __init__(self, stores, session_id: str):
        self._stores = stores
        self.session_id = session_id
        self.execution_id: Optional[str] = None
        self.current_iteration_id: Optional[str] = None
        self._iteration_counter = 0
        self._started: Optional[float] = None
        self._terminal = False

    @property
    def completed(self) -> bool:
        return self._terminal

    # ------------------------------------------------------------------
    # execution rows
    # ------------------------------------------------------------------

    async def start_execution(
        self,
        agent_id: Optional[str],
        system_prompt: str,
        user_message: str,
        parent_execution_id: Optional[str] = None,
        parent_loop_iteration_id: Optional[str] = None,
    ) -> Optional[str]:
        """Create the RUNNING execution row. Failures propagate."""
        self._started = time.monotonic()
        if self._stores.executions is None:
            return None
        row = await self._stores.executions.start(
            session_id=self.session_id,
            agent_id=agent_id,
            system_prompt=system_prompt,
            user_message=user_message,
            parent_execution_id=parent_execution_id,
            parent_loop_iteration_id=parent_loop_iteration_id,
        )
        self.execution_id = row["id"] if row else None
        return self.execution_id

    async def log_failed_execution(self, agent_id: Optional[str], user_message: str) -> Optional[str]:
        """Record a run that could not start (e.g. no chatbot-enabled events)."""
        self._terminal = True
        if self._stores.executions is None:
            return None
        row = await self._stores.executions.start(
            session_id=self.session_id,
            agent_id=agent_id,
            system_prompt="",
            user_message=user_message,
            status=ExecutionStatus.FAILED,
        )
        self.execution_id = row["id"] if row else None
        logger.warning(f"[Ledger] Logged failed execution {self.execution_id} for session {self.session_id}")
        return self.execution_id

    async def complete_execution(
        self,
        final_response: str,
        status: ExecutionStatus = ExecutionStatus.COMPLETED,
    ) -> None:
        """Write the single terminal update for this execution."""
        if self._terminal:
            return
        self._terminal = True
        if self.execution_id is None or self._stores.executions is None:
            return

        totals = TokenTotals()
        if self._stores.api_calls is not None:
            totals = await self._stores.api_calls.token_totals(self.execution_id)
        elapsed_ms = int((time.monotonic() - (self._started or time.monotonic())) * 1000)

        await self._stores.executions.complete(
            execution_id=self.execution_id,
            status=status,
            final_response=final_response,
            totals=totals,
            execution_time_ms=elapsed_ms,
        )
        logger.info(
            f"[Ledger] Execution {self.execution_id} {status.value}: "
            f"{totals.total} tokens in {elapsed_ms}ms"
        )

    # ------------------------------------------------------------------
    # LoopObserver hooks
    # ------------------------------------------------------------------

    async def on_iteration_start(self, iteration_number: int, input_prompt: str) -> Optional[str]:
        self._iteration_counter += 1
        self.current_iteration_id = None
        if self.execution_id is None or self._stores.iterations is None:
            return None
        row = await self._stores.iterations.start(
            execution_id=self.execution_id,
            iteration_number=self._iteration_counter,
            input_prompt=input_prompt,
        )
        self.current_iteration_id = row["id"] if row else None
        return self.current_iteration_id

    async def on_api_call(self, response: LLMResponse) -> None:
        if self._stores.api_calls is None:
            return
        try:
            await self._stores.api_calls.record(
                session_id=self.session_id,
                response=response,
                agent_execution_id=self.execution_id,
                loop_iteration_id=self.current_iteration_id,
            )
        except Exception as e:
            logger.warning(f"[Ledger] Failed to store API call {response.message_id}: {e}")

    async def on_iteration_complete(self, record: IterationRecord) -> None:
        iteration_id = record.iteration_id or self.current_iteration_id
        if iteration_id is None or self._stores.iterations is None:
            return
        await self._stores.iterations.complete(
            iteration_id=iteration_id,
            status=record.status,
            output_content=record.output_text,
            tool_calls=record.tool_calls,
            tool_results=record.tool_results,
            iteration_time_ms=record.duration_ms,
        )

    async def on_execution_complete(self, result: LoopResult) -> None:
        logger.debug(
            f"[Ledger] Loop for execution {self.execution_id} stopped "
            f"({result.stop.value}) after {result.iterations} iterations"
        )
