"""
ChatbotService - the main conversational agent.

Owns one chat session's turn: loads the history and the chatbot-enabled
events of the session's guests, builds the cached system prompt, runs the
tool loop (answering directly, looking up event details, or delegating
guest changes to the GuestHandlerAgent) and stores the reply.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from ..constants import (
    DEFAULT_MODEL,
    EMPTY_RESPONSE_TEXT,
    HISTORY_LIMIT,
    MAIN_AGENT_ERROR_TEXT,
    MAIN_AGENT_MAX_TOKENS,
    SUB_AGENT_MAX_TOKENS,
    UNKNOWN_GUEST_ERROR_TEXT,
    UNKNOWN_GUEST_MAX_TOKENS,
    UNKNOWN_GUEST_MODEL,
    UNKNOWN_GUEST_REPLY,
    USER_PROMPT_CACHE_MIN_MESSAGES,
)
from ..guests.models import EventContext, GuestContext, build_guest_context_hash
from ..ledger.models import AgentSpec, AgentType, ExecutionStatus
from ..ledger.recorder import LedgerRecorder
from ..sessions.models import ChatMessage, ChatSession, MessageDirection
from .audit_logger import AuditLogger
from .loop import AgentReply, LoopResult, LoopSettings, ToolLoop
from .prompts import (
    PLACEHOLDER_USER_QUERY,
    render_event_block,
    render_main_base_prompt,
    render_rsvp_status_block,
    render_user_prompt,
)
from .tools import DelegateGuestHandlingTool, GetEventDetailsTool, ToolTable

logger = logging.getLogger(__name__)

_EPHEMERAL = {"type": "ephemeral"}
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

_UNKNOWN_GUEST_SYSTEM_PROMPT = (
    "Eres un asistente para eventos especiales (bodas, cumpleaños, etc.), pero no has podido "
    "identificar al invitado por su número de teléfono. Indica brevemente que no reconoces el "
    "número y que por eso no puedes responder, y pide que contacte a los anfitriones del evento. "
    "No incluyas nada más. Un buen ejemplo de respuesta: "
    f"\"{UNKNOWN_GUEST_REPLY}\""
)


def last_user_message(messages: Sequence[Dict[str, Any]]) -> str:
    """Text of the trailing run of user messages, joined with spaces."""
    collected: List[str] = []
    for message in reversed(messages):
        if message.get("role") != "user":
            break
        content = message.get("content")
        if isinstance(content, str):
            text = content
        else:
            text = " ".join(
                block.get("text", "")
                for block in content or []
                if isinstance(block, dict) and block.get("type") == "text"
            )
        if text.strip():
            collected.insert(0, text)
    return " ".join(collected)


def system_prompt_text(blocks: Sequence[Dict[str, Any]]) -> str:
    return "\n".join(block["text"] for block in blocks)


class ChatbotService:
    """
    Main agent for one chat session.

    Args:
        session: The ChatSession being answered
        guests: Primary-guest records for the session's phone number
        llm_client: Completion client
        stores: ChatbotStores
        test_mode: Simulate guest mutations
        model: Completion model
        max_tokens: Completion token limit
        history_limit: How many recent messages are sent to the model
        max_iterations: Tool loop budget for both agents (defaults to the loop's own)
        sub_agent_max_tokens: Completion token limit of the guest handler agent
    """

    def __init__(
        self,
        session: ChatSession,
        guests: List[GuestContext],
        llm_client,
        stores,
        test_mode: bool = False,
        model: str = DEFAULT_MODEL,
        max_tokens: int = MAIN_AGENT_MAX_TOKENS,
        history_limit: int = HISTORY_LIMIT,
        max_iterations: Optional[int] = None,
        sub_agent_max_tokens: int = SUB_AGENT_MAX_TOKENS,
    ):
        self.session = session
        self.guests = list(guests)
        self.llm_client = llm_client
        self.stores = stores
        self.test_mode = test_mode
        self.model = model
        self.max_tokens = max_tokens
        self.history_limit = history_limit
        self.max_iterations = max_iterations
        self.sub_agent_max_tokens = sub_agent_max_tokens
        self.recorder = LedgerRecorder(stores, session.id)
        self.audit = AuditLogger(session.id)
        self._agent_id: Optional[str] = None
        self._last_result: Optional[LoopResult] = None

    @property
    def spec(self) -> AgentSpec:
        return AgentSpec(
            name="Main Chatbot Agent",
            description="Primary assistant for event guests",
            type=AgentType.MAIN,
            system_prompt=render_main_base_prompt(multi_event=False),
            model=self.model,
            max_tokens=self.max_tokens,
        )

    async def _get_or_create_agent_id(self) -> Optional[str]:
        if self._agent_id is None and self.stores.agents is not None:
            agent = await self.stores.agents.get_or_create(self.spec)
            self._agent_id = agent["id"] if agent else None
        return self._agent_id

    # ------------------------------------------------------------------
    # context loading
    # ------------------------------------------------------------------

    async def get_conversation_history(self) -> List[ChatMessage]:
        """
        The session's chat messages merged with the bulk messages its guests
        received, in time order, keeping the last ``history_limit`` entries.
        """
        history = list(await self.stores.messages.list_recent(self.session.id, self.history_limit))
        if self.stores.deliveries is not None and self.guests:
            history.extend(await self.stores.deliveries.list_delivered_for_guests(
                [g.id for g in self.guests], self.session.id
            ))
            history.sort(key=lambda m: m.created_at or _EPOCH)
        return history[-self.history_limit:]

    async def get_events_context(self) -> List[EventContext]:
        return await self.stores.events.list_chatbot_events(
            list(dict.fromkeys(g.event_id for g in self.guests))
        )

    # ------------------------------------------------------------------
    # turn
    # ------------------------------------------------------------------

    async def process_last_message(self) -> Dict[str, str]:
        """Answer the session's latest messages and store the reply."""
        agent_id = await self._get_or_create_agent_id()
        history = await self.get_conversation_history()

        try:
            events = await self.get_events_context()
            if not events:
                logger.warning(f"[Chatbot] No chatbot-enabled events for session {self.session.id}")
                await self.recorder.log_failed_execution(
                    agent_id, last_user_message(self._history_messages(history))
                )
                return {"message": ""}

            reply = await self.generate_response(events, history)

            saved = await self.stores.messages.create(
                session_id=self.session.id,
                direction=MessageDirection.OUTBOUND,
                content=reply.text,
                agent_execution_id=self.recorder.execution_id,
            )
            status = (
                ExecutionStatus.FAILED
                if self._last_result is not None and self._last_result.failed
                else ExecutionStatus.COMPLETED
            )
            await self.recorder.complete_execution(reply.text, status)
            return {"message": saved.content}
        except Exception:
            await self.recorder.complete_execution("", ExecutionStatus.FAILED)
            raise

    @staticmethod
    def _history_messages(history: Sequence[ChatMessage]) -> List[Dict[str, Any]]:
        return [{"role": m.role, "content": m.content} for m in history if m.content]

    def build_messages(self, history: Sequence[ChatMessage]) -> List[Dict[str, Any]]:
        """History as completion messages, with the latest user message wrapped."""
        messages = self._history_messages(history)
        cache_prompt = len(messages) > USER_PROMPT_CACHE_MIN_MESSAGES

        for i in range(len(messages) - 1, -1, -1):
            message = messages[i]
            if message["role"] == "user" and message["content"]:
                block: Dict[str, Any] = {"type": "text", "text": render_user_prompt(message["content"])}
                if cache_prompt:
                    block["cache_control"] = dict(_EPHEMERAL)
                messages[i] = {"role": "user", "content": [block]}
                break
        else:
            messages.append({
                "role": "user",
                "content": [{"type": "text", "text": render_user_prompt(PLACEHOLDER_USER_QUERY)}],
            })
        return messages

    def build_system_prompt(self, events: Sequence[EventContext]) -> List[Dict[str, Any]]:
        """Base prompt, one block per event, then the RSVP block.

        The last event block and the RSVP block carry cache breakpoints.
        """
        guests_by_event = {g.event_id: g for g in self.guests}
        blocks: List[Dict[str, Any]] = [
            {"type": "text", "text": render_main_base_prompt(multi_event=len(events) > 1)}
        ]
        for index, event in enumerate(events):
            block: Dict[str, Any] = {
                "type": "text",
                "text": render_event_block(event, guests_by_event.get(event.event_id)),
            }
            if index == len(events) - 1:
                block["cache_control"] = dict(_EPHEMERAL)
            blocks.append(block)
        blocks.append({
            "type": "text",
            "text": render_rsvp_status_block(self.guests, events),
            "cache_control": dict(_EPHEMERAL),
        })
        return blocks

    def _settings(self) -> LoopSettings:
        settings = LoopSettings(
            agent_name="main",
            model=self.model,
            max_tokens=self.max_tokens,
            first_error_text=MAIN_AGENT_ERROR_TEXT,
            empty_first_text=EMPTY_RESPONSE_TEXT,
        )
        if self.max_iterations:
            settings.max_iterations = self.max_iterations
        return settings

    async def generate_response(
        self,
        events: Sequence[EventContext],
        history: Sequence[ChatMessage],
    ) -> AgentReply:
        """Run the main tool loop for the current turn."""
        agent_id = await self._get_or_create_agent_id()
        messages = self.build_messages(history)
        context = build_guest_context_hash(events, self.guests)
        system = self.build_system_prompt(events)

        await self.recorder.start_execution(
            agent_id=agent_id,
            system_prompt=system_prompt_text(system),
            user_message=last_user_message(messages),
        )

        tools = ToolTable([
            GetEventDetailsTool(context, self.stores, self.test_mode),
            DelegateGuestHandlingTool(
                context,
                self.stores,
                llm_client=self.llm_client,
                session_id=self.session.id,
                parent_observer=self.recorder,
                test_mode=self.test_mode,
                audit=self.audit,
                model=self.model,
                max_tokens=self.sub_agent_max_tokens,
                max_iterations=self.max_iterations,
            ),
        ])
        loop = ToolLoop(
            llm_client=self.llm_client,
            tools=tools,
            observer=self.recorder,
            settings=self._settings(),
            audit=self.audit,
        )
        self._last_result = await loop.run(system=system, messages=messages)
        return self._last_result.to_reply()

    async def generate_response_for_unknown_guest(self, query: str) -> AgentReply:
        """Short reply for a phone number that matches no guest."""
        try:
            response = await self.llm_client.chat_completion(
                messages=[{
                    "role": "user",
                    "content": (
                        "Soy un invitado intentando contactar a los anfitriones del evento. "
                        f"Tengo la siguiente pregunta: {query}"
                    ),
                }],
                system=_UNKNOWN_GUEST_SYSTEM_PROMPT,
                config={"model": UNKNOWN_GUEST_MODEL, "max_tokens": UNKNOWN_GUEST_MAX_TOKENS},
            )
        except Exception as e:
            logger.error(f"[Chatbot] Unknown-guest reply failed: {e}", exc_info=True)
            return AgentReply(text=UNKNOWN_GUEST_ERROR_TEXT)

        text = "".join(
            block.get("text", "")
            for block in response.content_blocks
            if block.get("type") == "text"
        )
        return AgentReply(text=text or UNKNOWN_GUEST_REPLY)
