"""
Twilio WhatsApp Provider - Sends WhatsApp messages via Twilio and downloads
the media guests attach to theirs
"""

import logging

import httpx
from twilio.rest import Client as TwilioClient

from .base import BaseWhatsAppProvider

logger = logging.getLogger(__name__)


class TwilioWhatsAppProvider(BaseWhatsAppProvider):
    """
    Twilio WhatsApp sender.

    Requires configuration:
    - account_sid: Twilio account SID
    - auth_token: Twilio auth token
    - whatsapp_number: The organization's WhatsApp-enabled sender number
    """

    def __init__(self, account_sid: str, auth_token: str, whatsapp_number: str):
        super().__init__()
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.whatsapp_number = whatsapp_number

        if self.is_enabled():
            logger.info(f"Twilio WhatsApp Provider initialized (From: {self.whatsapp_number})")
        else:
            logger.warning("Twilio WhatsApp Provider disabled - missing configuration")

    def is_enabled(self) -> bool:
        return all([self.account_sid, self.auth_token, self.whatsapp_number])

    async def send_message(self, to: str, body: str) -> bool:
        if not self.is_enabled():
            logger.warning("Twilio not configured - cannot send WhatsApp message")
            return False

        logger.info(f"[Twilio] Sending WhatsApp message to {to}: {body[:200]}...")
        try:
            client = TwilioClient(self.account_sid, self.auth_token)
            message = client.messages.create(
                from_=self.whatsapp_address(self.whatsapp_number),
                to=self.whatsapp_address(to),
                body=body,
            )
            logger.info(f"[Twilio] WhatsApp message sent - SID: {message.sid}")
            return True
        except Exception as e:
            logger.error(f"[Twilio] Failed to send WhatsApp message: {e}", exc_info=True)
            return False

    async def download_media(self, url: str, timeout: float = 30) -> bytes:
        """Fetch a message attachment; Twilio media URLs take the account's basic auth."""
        if not self.is_enabled():
            raise ValueError("Twilio not configured - cannot download media")

        async with httpx.AsyncClient(
            auth=(self.account_sid, self.auth_token),
            follow_redirects=True,
            timeout=timeout,
        ) as client:
            resp = await client.get(url)
            resp.raise_for_status()
            content = resp.content

        logger.info(f"[Twilio] Downloaded {len(content)} bytes of media")
        return content
