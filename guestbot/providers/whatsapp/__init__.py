"""WhatsApp providers."""

from .base import BaseWhatsAppProvider
from .twilio import TwilioWhatsAppProvider

__all__ = ["BaseWhatsAppProvider", "TwilioWhatsAppProvider"]
