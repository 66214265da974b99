"""
GuestHandlerAgent - applies one natural-language guest instruction for one event.

The main agent delegates every guest change here. The agent runs its own
bounded tool loop over the guest mutation tools and reports back a short
summary, or a clarification request when the instruction is ambiguous.
"""

import json
import logging
from typing import Optional

from ..constants import DEFAULT_MODEL, SUB_AGENT_ERROR_CLARIFICATION, SUB_AGENT_MAX_TOKENS
from ..guests.models import GuestContext, GuestContextHash
from ..ledger.models import AgentSpec, AgentType, ExecutionStatus
from ..ledger.recorder import LedgerRecorder
from .audit_logger import AuditLogger
from .loop import AgentReply, LoopSettings, ToolLoop
from .prompts import GUEST_HANDLER_SYSTEM_PROMPT, render_guest_handler_user_prompt
from .tools import guest_handler_tools

logger = logging.getLogger(__name__)

_DECODER = json.JSONDecoder()


def extract_clarification(text: str) -> Optional[str]:
    """Pull ``clarificationRequest`` out of the agent's JSON summary, if present.

    The summary may follow free text that itself contains braces, so every
    ``{`` is tried as the start of a JSON object.
    """
    text = text or ""
    start = text.find("{")
    while start != -1:
        try:
            payload, _ = _DECODER.raw_decode(text, start)
        except json.JSONDecodeError:
            payload = None
        if isinstance(payload, dict) and payload.get("clarificationRequest"):
            return payload["clarificationRequest"]
        start = text.find("{", start + 1)
    return None


class GuestHandlerAgent:
    """
    Sub-agent scoped to a single event.

    Args:
        event_id: The event every tool call runs against
        context: GuestContextHash for the current turn
        llm_client: Completion client
        stores: ChatbotStores
        session_id: Chat session the run belongs to
        parent_execution_id: Execution of the main agent that delegated
        parent_loop_iteration_id: Main-agent iteration that issued the delegation
        test_mode: Simulate mutations instead of writing them
        model: Completion model
    """

    def __init__(
        self,
        event_id: str,
        context: GuestContextHash,
        llm_client,
        stores,
        session_id: str,
        parent_execution_id: Optional[str] = None,
        parent_loop_iteration_id: Optional[str] = None,
        test_mode: bool = False,
        model: str = DEFAULT_MODEL,
        max_tokens: int = SUB_AGENT_MAX_TOKENS,
        max_iterations: Optional[int] = None,
    ):
        self.event_id = event_id
        self.context = context
        self.llm_client = llm_client
        self.stores = stores
        self.session_id = session_id
        self.parent_execution_id = parent_execution_id
        self.parent_loop_iteration_id = parent_loop_iteration_id
        self.test_mode = test_mode
        self.model = model
        self.max_tokens = max_tokens
        self.max_iterations = max_iterations
        self.recorder = LedgerRecorder(stores, session_id)
        self.audit = AuditLogger(session_id)

    @property
    def spec(self) -> AgentSpec:
        return AgentSpec(
            name="Guest Handler Agent",
            description="Applies guest updates (RSVP, dietary restrictions, notes, companions, confirmations)",
            type=AgentType.SUB_AGENT,
            system_prompt=GUEST_HANDLER_SYSTEM_PROMPT,
            model=self.model,
            max_tokens=self.max_tokens,
        )

    def build_user_prompt(self, instruction: str, main_guest: GuestContext) -> str:
        entry = self.context.get(self.event_id)
        return render_guest_handler_user_prompt(
            instruction=instruction,
            main_guest=main_guest,
            event_id=self.event_id,
            event_name=entry.event.name if entry else "",
            confirmations=entry.event.additional_confirmations if entry else [],
        )

    def _settings(self) -> LoopSettings:
        settings = LoopSettings(
            agent_name="guest_handler",
            model=self.model,
            max_tokens=self.max_tokens,
            first_error_text="",
            first_error_clarification=SUB_AGENT_ERROR_CLARIFICATION,
        )
        if self.max_iterations:
            settings.max_iterations = self.max_iterations
        return settings

    async def handle_instruction(self, instruction: str, main_guest: GuestContext) -> AgentReply:
        """Apply ``instruction`` for ``main_guest`` and its companions."""
        logger.info(f"[GuestHandler] Event {self.event_id}: {instruction[:200]}")
        try:
            agent_id = None
            if self.stores.agents is not None:
                agent = await self.stores.agents.get_or_create(self.spec)
                agent_id = agent["id"] if agent else None

            user_prompt = self.build_user_prompt(instruction, main_guest)
            await self.recorder.start_execution(
                agent_id=agent_id,
                system_prompt=GUEST_HANDLER_SYSTEM_PROMPT,
                user_message=user_prompt,
                parent_execution_id=self.parent_execution_id,
                parent_loop_iteration_id=self.parent_loop_iteration_id,
            )

            loop = ToolLoop(
                llm_client=self.llm_client,
                tools=guest_handler_tools(self.context, self.stores, self.test_mode),
                observer=self.recorder,
                settings=self._settings(),
                audit=self.audit,
                fixed_event_id=self.event_id,
            )
            result = await loop.run(
                system=GUEST_HANDLER_SYSTEM_PROMPT,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except Exception as e:
            logger.error(f"[GuestHandler] Failed to handle instruction for event {self.event_id}: {e}", exc_info=True)
            await self.recorder.complete_execution("", ExecutionStatus.FAILED)
            return AgentReply(text="", clarification_needed=SUB_AGENT_ERROR_CLARIFICATION)

        if result.failed:
            await self.recorder.complete_execution("", ExecutionStatus.FAILED)
            return result.to_reply()

        await self.recorder.complete_execution(result.text)
        return AgentReply(
            text=result.text,
            clarification_needed=result.clarification_needed or extract_clarification(result.text),
        )
