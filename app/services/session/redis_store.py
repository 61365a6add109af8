"""Redis-backed session store."""
import logging
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.services.session.base import SessionStore, SessionStoreError

logger = logging.getLogger(__name__)


class RedisSessionStore(SessionStore):
    """Session store on Redis. Every write refreshes the key's TTL."""

    def __init__(self, redis_url: str, ttl_seconds: int, prefix: str = "ivr:"):
        if not redis_url:
            raise RuntimeError("REDIS_URL is not set")
        self._r = redis.from_url(redis_url, decode_responses=True)
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._r.get(self._key(key))
        except RedisError as e:
            logger.warning(f"[SESSION] Redis GET failed - Key: {key}, Error: {e}")
            raise SessionStoreError(f"GET {key} failed") from e

    async def set(self, key: str, value: str) -> None:
        try:
            await self._r.set(self._key(key), value, ex=self.ttl_seconds)
        except RedisError as e:
            logger.warning(f"[SESSION] Redis SET failed - Key: {key}, Error: {e}")
            raise SessionStoreError(f"SET {key} failed") from e

    async def increment(self, key: str) -> int:
        try:
            async with self._r.pipeline(transaction=True) as pipe:
                pipe.incr(self._key(key))
                pipe.expire(self._key(key), self.ttl_seconds)
                count, _ = await pipe.execute()
            return int(count)
        except RedisError as e:
            logger.warning(f"[SESSION] Redis INCR failed - Key: {key}, Error: {e}")
            raise SessionStoreError(f"INCR {key} failed") from e

    async def close(self) -> None:
        await self._r.aclose()
