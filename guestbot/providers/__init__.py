"""Outbound integrations: WhatsApp delivery, delayed reply scheduling and voice-note transcription."""

from .qstash import QStashScheduler
from .transcription import WhisperTranscriber
from .whatsapp import BaseWhatsAppProvider, TwilioWhatsAppProvider

__all__ = ["BaseWhatsAppProvider", "TwilioWhatsAppProvider", "QStashScheduler", "WhisperTranscriber"]
