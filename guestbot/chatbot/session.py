"""
ChatSessionHandler - inbound WhatsApp message flow.

Resolves the session for a phone number, stores the inbound message,
identifies the guests behind the number and either answers right away
(test sessions) or schedules a debounced reply through QStash. The reply
callback lands in ``reply_to_session``. Voice notes are transcribed first
and then follow the same path.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ..constants import REPLY_DELAY_SECONDS, SESSION_TIMEOUT_HOURS
from ..guests.models import GuestContext
from ..sessions.models import ChatSession, MessageDirection
from .service import ChatbotService

logger = logging.getLogger(__name__)


class ChatSessionHandler:
    """
    Entry point for messages received from one organization's WhatsApp number.

    Args:
        organization_id: Organization that owns the number
        stores: ChatbotStores
        llm_client: Completion client passed on to ChatbotService
        whatsapp: Provider used to deliver replies (optional for test sessions)
        scheduler: QStashScheduler for debounced replies
        transcriber: WhisperTranscriber for voice notes
        test_mode: Test sessions reply immediately and simulate guest writes
        reply_delay_seconds: Debounce window
        service_options: Extra keyword arguments for ChatbotService
    """

    def __init__(
        self,
        organization_id: str,
        stores,
        llm_client,
        whatsapp=None,
        scheduler=None,
        transcriber=None,
        test_mode: bool = False,
        reply_delay_seconds: int = REPLY_DELAY_SECONDS,
        session_timeout_hours: int = SESSION_TIMEOUT_HOURS,
        service_options: Optional[Dict[str, Any]] = None,
    ):
        self.organization_id = organization_id
        self.stores = stores
        self.llm_client = llm_client
        self.whatsapp = whatsapp
        self.scheduler = scheduler
        self.transcriber = transcriber
        self.test_mode = test_mode
        self.reply_delay_seconds = reply_delay_seconds
        self.session_timeout = timedelta(hours=session_timeout_hours)
        self.service_options = service_options or {}
        self.active_session: Optional[ChatSession] = None

    @staticmethod
    def _phone(raw: str) -> str:
        return raw.replace("whatsapp:", "").strip()

    def _next_reply_at(self) -> datetime:
        return datetime.now(timezone.utc) + timedelta(seconds=self.reply_delay_seconds)

    def _service(self, session: ChatSession, guests: List[GuestContext], test_mode: bool) -> ChatbotService:
        return ChatbotService(
            session=session,
            guests=guests,
            llm_client=self.llm_client,
            stores=self.stores,
            test_mode=test_mode,
            **self.service_options,
        )

    async def identify_guests(self, session: ChatSession) -> List[GuestContext]:
        """Active primary-guest records (with companions) for the session's phone."""
        if not session.phone:
            return []
        return await self.stores.guests.find_for_phone(session.phone, self.organization_id)

    async def get_or_create_session(self, phone: str) -> ChatSession:
        """Reuse the recent active session for ``phone`` or open a new one."""
        next_reply_at = self._next_reply_at()
        session = await self.stores.sessions.find_active(
            phone=phone,
            organization_id=self.organization_id,
            is_test=self.test_mode,
            max_age=self.session_timeout,
        )
        if session is not None:
            session = await self.stores.sessions.touch(session.id, next_reply_at) or session
        else:
            session = await self.stores.sessions.create(
                phone=phone,
                organization_id=self.organization_id,
                is_test=self.test_mode,
                next_reply_at=next_reply_at,
            )
        self.active_session = session
        return session

    async def handle_incoming_message(self, sender: str, body: str) -> Dict[str, Any]:
        """Store an inbound message and answer it now or schedule the reply."""
        phone = self._phone(sender)
        session = await self.get_or_create_session(phone)
        await self.stores.messages.create(
            session_id=session.id,
            direction=MessageDirection.INBOUND,
            content=body,
        )

        guests = await self.identify_guests(session)
        if not guests:
            return await self._handle_unknown_guest(session, body)

        if self.test_mode:
            result = await self._service(session, guests, test_mode=True).process_last_message()
            return {"message": result["message"], "scheduled": False}

        await self.scheduler.schedule(
            {"sessionId": session.id, "organizationId": self.organization_id},
            self.reply_delay_seconds,
        )
        return {"message": body, "scheduled": True}

    async def handle_incoming_audio(self, sender: str, media_url: str) -> Dict[str, Any]:
        """Transcribe a voice note and handle the text like a typed message."""
        if not media_url:
            raise ValueError("No audio URL in the incoming message")
        if self.transcriber is None or self.whatsapp is None:
            raise ValueError("Voice notes need both a WhatsApp provider and a transcriber")

        audio = await self.whatsapp.download_media(media_url)
        text = await self.transcriber.transcribe(audio)
        logger.info(f"[ChatSession] Voice note from {self._phone(sender)} transcribed: {text[:200]}")
        return await self.handle_incoming_message(sender, text)

    async def reply_to_session(self, session_id: str) -> str:
        """Reply to everything received in a session since the last answer.

        Returns an empty string when a newer message has pushed the reply
        deadline into the future.
        """
        session = await self.stores.sessions.get(session_id)
        if session is None:
            raise ValueError(f"Chat session not found: {session_id}")
        self.active_session = session

        if session.next_reply_at and session.next_reply_at > datetime.now(timezone.utc):
            logger.info(f"[ChatSession] Session {session_id} received newer messages, skipping reply")
            return ""

        guests = await self.identify_guests(session)
        if not guests:
            result = await self._handle_unknown_guest(session, "")
            await self._send(session, result["message"])
            return result["message"]

        # Scheduled replies always write for real.
        result = await self._service(session, guests, test_mode=False).process_last_message()
        message = result["message"]
        if message:
            await self._send(session, message)
        return message

    async def close_sessions(self, sender: str) -> int:
        """Deactivate the active sessions of a phone number."""
        closed = await self.stores.sessions.deactivate_for_phone(
            self._phone(sender), self.organization_id, self.test_mode
        )
        logger.info(f"[ChatSession] Closed {closed} session(s) for {sender}")
        return closed

    async def _handle_unknown_guest(self, session: ChatSession, body: str) -> Dict[str, Any]:
        logger.info(f"[ChatSession] Unknown guest from {session.phone}, message: {body[:200]}")
        reply = await self._service(session, [], test_mode=self.test_mode).generate_response_for_unknown_guest(body)
        return {"message": reply.text, "scheduled": False}

    async def _send(self, session: ChatSession, body: str) -> bool:
        if self.whatsapp is None:
            logger.warning(f"[ChatSession] No WhatsApp provider configured, reply for {session.id} not sent")
            return False
        return await self.whatsapp.send_message(session.phone, body)
