"""Redis-backed cache for read-only tool results."""

import json
import logging
from typing import Any, Optional

from ..constants import TOOL_CACHE_KEY_PREFIX, TOOL_CACHE_TTL_SECONDS

logger = logging.getLogger(__name__)


class ToolResultCache:
    """
    Per-event cache of read-only tool results.

    Every event owns one bucket (a JSON object stored under
    ``chatbot:eventId:{event_id}``) whose fields are ``"{tool}:{guest_id}"``.
    Any mutation clears the whole bucket.

    Usage:
        cache = ToolResultCache(redis_url="redis://localhost:6379")
        await cache.initialize()
        await cache.set("evt_1", "get_event_details", "g_1", "...")
        await cache.get("evt_1", "get_event_details", "g_1")
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        ttl_seconds: int = TOOL_CACHE_TTL_SECONDS,
        client=None,
    ):
        self._redis_url = redis_url
        self._ttl_seconds = ttl_seconds
        self._redis = client

    async def initialize(self) -> None:
        """Connect to Redis (lazy import redis.asyncio)."""
        if self._redis is not None:
            return
        try:
            import redis.asyncio as aioredis
        except ImportError:
            raise ImportError("redis package required for ToolResultCache. Install with: pip install redis")
        self._redis = aioredis.from_url(self._redis_url, decode_responses=True)

    async def close(self) -> None:
        if self._redis:
            await self._redis.close()
            self._redis = None

    @staticmethod
    def bucket_key(event_id: str) -> str:
        return f"{TOOL_CACHE_KEY_PREFIX}{event_id}"

    async def _load_bucket(self, event_id: str) -> dict:
        if not self._redis:
            await self.initialize()
        raw = await self._redis.get(self.bucket_key(event_id))
        if not raw:
            return {}
        try:
            bucket = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"[Cache] Discarding malformed bucket for event {event_id}")
            return {}
        return bucket if isinstance(bucket, dict) else {}

    async def get(self, event_id: str, tool_name: str, guest_id: str) -> Optional[Any]:
        bucket = await self._load_bucket(event_id)
        value = bucket.get(f"{tool_name}:{guest_id}")
        if value is not None:
            logger.info(f"[Cache] Tool '{tool_name}' cache hit for event {event_id}")
        return value

    async def set(self, event_id: str, tool_name: str, guest_id: str, result: Any) -> None:
        """Add one result to the event bucket and refresh the bucket's expiry."""
        bucket = await self._load_bucket(event_id)
        bucket[f"{tool_name}:{guest_id}"] = result
        await self._redis.set(
            self.bucket_key(event_id),
            json.dumps(bucket, default=str, ensure_ascii=False),
            ex=self._ttl_seconds,
        )

    async def invalidate(self, event_id: str) -> None:
        """Drop every cached result for an event."""
        if not self._redis:
            await self.initialize()
        await self._redis.delete(self.bucket_key(event_id))
        logger.debug(f"[Cache] Cleared bucket for event {event_id}")
