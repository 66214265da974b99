"""Hand-off from the main agent to the guest handler agent."""

from typing import Any, Dict, Optional

from ...constants import DEFAULT_MODEL, SUB_AGENT_MAX_TOKENS
from ..audit_logger import AuditLogger
from ..loop import AgentReply, LoopObserver
from .base import GuestTool, event_id_property


class DelegateGuestHandlingTool(GuestTool):
    """
    Runs a fresh GuestHandlerAgent scoped to one event.

    The parent execution and loop iteration ids are read from the main
    agent's observer when the call is made, so the nested execution
    points at the iteration that issued it.

    The sub-agent runs on the main agent's ``model`` and ``max_iterations``.
    """

    name = "delegate_guest_handling"
    description = (
        "Handles any task related to guest handling for the main guest and/or their "
        "companions: RSVPs, dietary restrictions, notes, companion names, answers to "
        "additional confirmations and special requests."
    )
    input_schema = {
        "type": "object",
        "properties": {
            "eventId": event_id_property(
                "The ID of the event the guest handling is for. This is critical."
            ),
            "instructionInNaturalLanguage": {
                "type": "string",
                "description": (
                    "The user's instruction in natural language, e.g. \"Update the dietary "
                    "restrictions of the guest to vegetarian.\" or \"Note that the guest is "
                    "arriving late.\""
                ),
            },
        },
        "required": ["eventId", "instructionInNaturalLanguage"],
    }

    def __init__(
        self,
        context,
        stores,
        llm_client,
        session_id: str,
        parent_observer: Optional[LoopObserver] = None,
        test_mode: bool = False,
        audit: Optional[AuditLogger] = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = SUB_AGENT_MAX_TOKENS,
        max_iterations: Optional[int] = None,
    ):
        super().__init__(context, stores, test_mode)
        self.model = model
        self.max_tokens = max_tokens
        self.max_iterations = max_iterations
        self.llm_client = llm_client
        self.session_id = session_id
        self.parent_observer = parent_observer or LoopObserver()
        self.audit = audit or AuditLogger(session_id)

    async def _execute(self, event_id: str, guest_id: str, tool_input: Dict[str, Any]) -> AgentReply:
        from ..guest_handler_agent import GuestHandlerAgent

        instruction = tool_input.get("instructionInNaturalLanguage", "")
        parent_execution_id = self.parent_observer.execution_id
        parent_iteration_id = self.parent_observer.current_iteration_id
        self.audit.log_delegation(
            event_id=event_id,
            instruction=instruction,
            parent_execution_id=parent_execution_id,
            parent_loop_iteration_id=parent_iteration_id,
        )
        agent = GuestHandlerAgent(
            event_id=event_id,
            context=self.context,
            llm_client=self.llm_client,
            stores=self.stores,
            session_id=self.session_id,
            parent_execution_id=parent_execution_id,
            parent_loop_iteration_id=parent_iteration_id,
            test_mode=self.test_mode,
            model=self.model,
            max_tokens=self.max_tokens,
            max_iterations=self.max_iterations,
        )
        return await agent.handle_instruction(instruction, self.context[event_id].guest)

    async def simulate(self, event_id: str, guest_id: str, tool_input: Dict[str, Any]) -> AgentReply:
        # The sub-agent simulates its own tools.
        return await self._execute(event_id, guest_id, tool_input)
