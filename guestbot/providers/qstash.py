"""
QStash scheduler - delayed reply callbacks through Upstash QStash.

Every inbound message schedules one callback a few seconds out. The
session handler ignores callbacks that arrive before the session's
``next_reply_at``, so a burst of messages gets a single reply.
"""

import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class QStashScheduler:
    PUBLISH_URL = "https://qstash.upstash.io/v2/publish/"

    def __init__(self, token: str, callback_url: str, timeout: float = 30):
        self.token = token
        self.callback_url = callback_url
        self.timeout = timeout

    def is_enabled(self) -> bool:
        return bool(self.token and self.callback_url)

    async def schedule(
        self,
        payload: Dict[str, Any],
        delay_seconds: int,
        destination: Optional[str] = None,
    ) -> Optional[str]:
        """Publish ``payload`` to ``destination`` after ``delay_seconds``; returns the message id."""
        if not self.is_enabled():
            raise ValueError("QStash is not configured (qstash.token and qstash.callback_url)")

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(
                f"{self.PUBLISH_URL}{destination or self.callback_url}",
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Content-Type": "application/json",
                    "Upstash-Delay": f"{delay_seconds}s",
                },
                json=payload,
            )
            resp.raise_for_status()
            data = resp.json()

        message_id = data.get("messageId")
        logger.info(f"[QStash] Scheduled {message_id} in {delay_seconds}s")
        return message_id
