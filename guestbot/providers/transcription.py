"""
Whisper transcriber - turns WhatsApp voice notes into text through the
OpenAI audio transcription endpoint.
"""

import logging

import httpx

logger = logging.getLogger(__name__)


class WhisperTranscriber:
    TRANSCRIPTIONS_URL = "https://api.openai.com/v1/audio/transcriptions"

    def __init__(self, api_key: str, model: str = "whisper-1", timeout: float = 60):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    def is_enabled(self) -> bool:
        return bool(self.api_key)

    async def transcribe(
        self,
        audio: bytes,
        filename: str = "audio.ogg",
        content_type: str = "audio/ogg",
    ) -> str:
        """Upload ``audio`` as a multipart form and return the transcribed text."""
        if not self.is_enabled():
            raise ValueError("Transcription is not configured (transcription.api_key)")

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                self.TRANSCRIPTIONS_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                data={"model": self.model},
                files={"file": (filename, audio, content_type)},
            )
            resp.raise_for_status()
            text = resp.json().get("text", "")

        logger.info(f"[Whisper] Transcribed {len(audio)} bytes into {len(text)} chars")
        return text
