"""Attempt counters kept in Redis so every worker shares one window."""
from __future__ import annotations

import logging

from redis.asyncio import Redis

logger = logging.getLogger("portfolio.redis")


class RedisCounterStore:
    """Fixed-window counters: INCR plus an expiry set on the first hit only."""

    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, redis_url: str) -> RedisCounterStore:
        # Connections are opened lazily on the first command
        return cls(Redis.from_url(redis_url, encoding="utf-8", decode_responses=True))

    async def increment_counter(self, key: str, ttl_seconds: int | None = None) -> int:
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            if ttl_seconds is not None:
                pipe.expire(key, ttl_seconds, nx=True)
            count, *_ = await pipe.execute()
        return int(count)

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Redis connection closed")
