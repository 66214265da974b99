"""Bounded tool-calling loop shared by the main agent and the guest handler.

Each pass sends the full history to the LLM, replays the assistant turn
into the history, executes any requested tools in order and appends their
results as a single user turn. The loop stops when the model answers
without tool calls, when the iteration budget runs out, or when the
completion call fails or comes back empty.

Ledger writes are not made here. The loop reports progress to a
``LoopObserver``; ``guestbot.ledger.recorder.LedgerRecorder`` is the
persisting implementation.
"""

import json
import logging
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

from ..constants import DEPTH_LIMIT_TEXT, EMPTY_RESPONSE_TEXT, MAX_LOOP_ITERATIONS
from ..ledger.models import IterationStatus
from ..llm.base import LLMResponse, ToolCall, Usage
from .audit_logger import AuditLogger

logger = logging.getLogger(__name__)

_TRAILING_NOTE_RE = re.compile(r"\(Note:.*?\)$", re.IGNORECASE)


def strip_trailing_note(text: str) -> str:
    """Remove a trailing "(Note: ...)" aside the model sometimes appends."""
    return _TRAILING_NOTE_RE.sub("", (text or "").strip()).strip()


@dataclass
class AgentReply:
    """What an agent hands back to its caller."""

    text: str
    clarification_needed: Optional[str] = None

    def to_tool_result(self) -> str:
        """Flatten into the string fed back to a calling agent."""
        if self.clarification_needed:
            return f"{self.text}\n\nClarification Needed: {self.clarification_needed}"
        return self.text


class LoopStop(str, Enum):
    FINAL_ANSWER = "final_answer"
    TRANSPORT_ERROR = "transport_error"
    EMPTY_RESPONSE = "empty_response"
    DEPTH_LIMIT = "depth_limit"


@dataclass
class LoopSettings:
    """Per-agent loop parameters."""

    agent_name: str = "agent"
    max_iterations: int = MAX_LOOP_ITERATIONS
    model: Optional[str] = None
    max_tokens: int = 1024
    first_error_text: str = ""
    """Reply text when the very first completion call fails."""
    first_error_clarification: Optional[str] = None
    """Clarification returned alongside ``first_error_text``."""
    empty_first_text: str = EMPTY_RESPONSE_TEXT
    """Reply text when the first completion comes back with no content."""
    depth_limit_text: str = DEPTH_LIMIT_TEXT
    """Reply text when the budget runs out with no usable text."""


@dataclass
class ToolCallRecord:
    """Per-call telemetry for a single tool invocation."""

    name: str
    arguments: Dict[str, Any]
    iteration: int
    duration_ms: int = 0
    success: bool = True
    result_chars: int = 0


@dataclass
class IterationRecord:
    """Snapshot handed to ``LoopObserver.on_iteration_complete``."""

    number: int
    iteration_id: Optional[str]
    status: IterationStatus
    output_text: str = ""
    tool_calls: Optional[List[Dict[str, Any]]] = None
    tool_results: Optional[List[Dict[str, Any]]] = None
    duration_ms: int = 0


@dataclass
class LoopResult:
    """Structured result returned by ``ToolLoop.run``."""

    text: str
    stop: LoopStop
    iterations: int = 0
    clarification_needed: Optional[str] = None
    failed: bool = False
    """True only when the run produced nothing usable (first call failed)."""
    tool_calls: List[ToolCallRecord] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    duration_ms: int = 0
    messages: List[Dict[str, Any]] = field(default_factory=list)

    def to_reply(self) -> AgentReply:
        return AgentReply(text=self.text, clarification_needed=self.clarification_needed)


class LoopObserver:
    """Receives loop progress events. The base class ignores them all."""

    execution_id: Optional[str] = None
    current_iteration_id: Optional[str] = None

    async def on_iteration_start(self, iteration_number: int, input_prompt: str) -> Optional[str]:
        """Called before each completion call; returns the iteration id, if any."""
        return None

    async def on_api_call(self, response: LLMResponse) -> None:
        pass

    async def on_iteration_complete(self, record: IterationRecord) -> None:
        pass

    async def on_execution_complete(self, result: LoopResult) -> None:
        pass


class ToolLoop:
    """
    One bounded tool-calling loop.

    Args:
        llm_client: Anything with an async ``chat_completion(messages, tools, system, config)``
        tools: ToolTable of the tools offered to the model
        observer: LoopObserver receiving iteration and execution events
        settings: LoopSettings for this agent
        audit: AuditLogger for structured decision logs
        fixed_event_id: When set, every tool call runs against this event,
            whatever ``eventId`` the model supplied
    """

    def __init__(
        self,
        llm_client,
        tools,
        observer: Optional[LoopObserver] = None,
        settings: Optional[LoopSettings] = None,
        audit: Optional[AuditLogger] = None,
        fixed_event_id: Optional[str] = None,
    ):
        self._llm = llm_client
        self._tools = tools
        self._observer = observer or LoopObserver()
        self._settings = settings or LoopSettings()
        self._audit = audit or AuditLogger()
        self._fixed_event_id = fixed_event_id

    async def run(
        self,
        system: Union[str, Sequence[Dict[str, Any]]],
        messages: List[Dict[str, Any]],
    ) -> LoopResult:
        settings = self._settings
        agent = settings.agent_name
        messages = list(messages)
        manifest = self._tools.manifest()
        started = time.monotonic()

        final_text = ""
        last_text = ""
        clarification: Optional[str] = None
        failed = False
        stop = LoopStop.DEPTH_LIMIT
        usage = Usage()
        records: List[ToolCallRecord] = []
        iteration = 0

        while iteration < settings.max_iterations:
            iteration += 1
            iter_started = time.monotonic()
            input_prompt = (
                json.dumps(messages[-1], default=str, ensure_ascii=False)
                if messages else "Initial prompt"
            )
            iteration_id = await self._observer.on_iteration_start(iteration, input_prompt)

            try:
                response = await self._llm.chat_completion(
                    messages=messages,
                    tools=manifest,
                    system=system,
                    config=self._completion_config(),
                )
            except Exception as e:
                logger.error(f"[ToolLoop:{agent} {iteration}] Completion call failed: {e}", exc_info=True)
                await self._complete_iteration(
                    iteration, iteration_id, iter_started, IterationStatus.FAILED
                )
                stop = LoopStop.TRANSPORT_ERROR
                if iteration == 1:
                    final_text = settings.first_error_text
                    clarification = settings.first_error_clarification
                    failed = True
                else:
                    logger.warning(
                        f"[ToolLoop:{agent} {iteration}] Using text from a previous iteration"
                    )
                    final_text = last_text
                break

            await self._observer.on_api_call(response)
            _accumulate(usage, response.usage)

            if response.is_empty:
                logger.warning(f"[ToolLoop:{agent} {iteration}] Empty content in response")
                await self._complete_iteration(
                    iteration, iteration_id, iter_started, IterationStatus.FAILED
                )
                stop = LoopStop.EMPTY_RESPONSE
                if iteration > 1 and last_text:
                    final_text = last_text
                    break
                if iteration == 1:
                    final_text = settings.empty_first_text
                    break
                if iteration >= settings.max_iterations:
                    stop = LoopStop.DEPTH_LIMIT
                continue

            text = ""
            for block in response.content_blocks:
                if block.get("type") == "text":
                    text += block["text"]
                    if block["text"].strip():
                        last_text = block["text"].strip()

            messages.append({"role": "assistant", "content": response.content_blocks})

            if not response.has_tool_calls:
                final_text = strip_trailing_note(text)
                stop = LoopStop.FINAL_ANSWER
                await self._complete_iteration(
                    iteration, iteration_id, iter_started, IterationStatus.COMPLETED, text
                )
                break

            tool_results = []
            for tc in response.tool_calls:
                content = await self._run_tool(tc, iteration, records)
                tool_results.append({
                    "type": "tool_result",
                    "tool_use_id": tc.id,
                    "content": content,
                })
            messages.append({"role": "user", "content": tool_results})

            await self._complete_iteration(
                iteration,
                iteration_id,
                iter_started,
                IterationStatus.COMPLETED,
                text,
                tool_calls=[
                    {"id": tc.id, "name": tc.name, "input": tc.arguments}
                    for tc in response.tool_calls
                ],
                tool_results=tool_results,
            )

            if iteration >= settings.max_iterations:
                logger.warning(
                    f"[ToolLoop:{agent} {iteration}] Max tool call loops ({settings.max_iterations}) reached"
                )
                final_text = strip_trailing_note(text) or settings.depth_limit_text
                stop = LoopStop.DEPTH_LIMIT

        if not final_text:
            final_text = last_text
        if not final_text and stop == LoopStop.DEPTH_LIMIT:
            final_text = settings.depth_limit_text

        result = LoopResult(
            text=final_text,
            stop=stop,
            iterations=iteration,
            clarification_needed=clarification,
            failed=failed,
            tool_calls=records,
            usage=usage,
            duration_ms=int((time.monotonic() - started) * 1000),
            messages=messages,
        )
        self._audit.log_execution_complete(
            agent=agent,
            stop=stop.value,
            iterations=iteration,
            failed=failed,
            response_chars=len(final_text),
            duration_ms=result.duration_ms,
        )
        await self._observer.on_execution_complete(result)
        return result

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _completion_config(self) -> Dict[str, Any]:
        config: Dict[str, Any] = {"max_tokens": self._settings.max_tokens}
        if self._settings.model:
            config["model"] = self._settings.model
        return config

    async def _run_tool(self, tc: ToolCall, iteration: int, records: List[ToolCallRecord]) -> str:
        """Execute one tool call; any failure becomes the tool's result string."""
        agent = self._settings.agent_name
        arguments = dict(tc.arguments or {})
        tool = self._tools.get(tc.name)
        if tool is None:
            logger.error(f"[ToolLoop:{agent} {iteration}] Tool with name {tc.name} not found")
            records.append(ToolCallRecord(name=tc.name, arguments=arguments, iteration=iteration, success=False))
            return f"Error: Tool {tc.name} not found."

        tool_input = dict(arguments)
        event_id = tool_input.pop("eventId", None)
        if self._fixed_event_id is not None:
            event_id = self._fixed_event_id

        started = time.monotonic()
        error = None
        try:
            result = await tool.execute(event_id, tool_input)
            content = result.to_tool_result() if isinstance(result, AgentReply) else str(result)
        except Exception as e:
            logger.error(f"[ToolLoop:{agent} {iteration}] Error executing tool {tc.name}: {e}", exc_info=True)
            error = str(e)
            content = f"Error executing tool {tc.name}: {e}"
        duration_ms = int((time.monotonic() - started) * 1000)

        records.append(ToolCallRecord(
            name=tc.name,
            arguments=arguments,
            iteration=iteration,
            duration_ms=duration_ms,
            success=error is None,
            result_chars=len(content),
        ))
        self._audit.log_tool_execution(
            agent=agent,
            tool_name=tc.name,
            args_summary=AuditLogger.summarize_args(arguments),
            success=error is None,
            duration_ms=duration_ms,
            error=error,
        )
        return content

    async def _complete_iteration(
        self,
        number: int,
        iteration_id: Optional[str],
        started: float,
        status: IterationStatus,
        output_text: str = "",
        tool_calls: Optional[List[Dict[str, Any]]] = None,
        tool_results: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        self._audit.log_loop_iteration(
            agent=self._settings.agent_name,
            iteration=number,
            status=status.value,
            tool_calls=[tc["name"] for tc in tool_calls or []],
        )
        await self._observer.on_iteration_complete(IterationRecord(
            number=number,
            iteration_id=iteration_id,
            status=status,
            output_text=output_text,
            tool_calls=tool_calls,
            tool_results=tool_results,
            duration_ms=int((time.monotonic() - started) * 1000),
        ))


def _accumulate(total: Usage, usage: Optional[Usage]) -> None:
    if usage is None:
        return
    total.prompt_tokens += usage.prompt_tokens
    total.completion_tokens += usage.completion_tokens
    total.cache_creation_tokens += usage.cache_creation_tokens
    total.cache_read_tokens += usage.cache_read_tokens
