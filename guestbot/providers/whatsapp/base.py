"""
Base WhatsApp Provider - Abstract base class for WhatsApp senders
"""

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class BaseWhatsAppProvider(ABC):
    """
    Abstract base class for WhatsApp providers.

    All providers must implement:
    - send_message(to, body) - Send a WhatsApp message
    - is_enabled() - Check if provider is configured and ready

    Providers that can fetch inbound attachments also override
    download_media(url).
    """

    def __init__(self):
        self.provider_name = self.__class__.__name__

    @abstractmethod
    async def send_message(self, to: str, body: str) -> bool:
        """
        Send a WhatsApp message.

        Args:
            to: Recipient phone number, with or without the ``whatsapp:`` prefix
            body: Message content

        Returns:
            True if sent successfully, False otherwise
        """
        pass

    @abstractmethod
    def is_enabled(self) -> bool:
        pass

    async def download_media(self, url: str) -> bytes:
        raise NotImplementedError(f"{self.provider_name} cannot download media")

    @staticmethod
    def whatsapp_address(phone: str) -> str:
        """``+5215555555555`` -> ``whatsapp:+5215555555555``."""
        if phone.startswith("whatsapp:"):
            return phone
        return f"whatsapp:{phone}"
