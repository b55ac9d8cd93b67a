import hashlib
import logging
from typing import Protocol

from redis.exceptions import RedisError

from ..errors import RateLimitedError

logger = logging.getLogger("portfolio.rate_limit")

KEY_PREFIX = "ratelimit:invitations"
IDENTIFIER_HASH_LENGTH = 16


class CounterBackend(Protocol):
    async def increment_counter(self, key: str, ttl_seconds: int | None = None) -> int:
        ...


def _make_key(scope: str, client_ip: str | None) -> str:
    ip_component = client_ip or "unknown-ip"
    ip_hash = hashlib.sha256(ip_component.encode()).hexdigest()[:IDENTIFIER_HASH_LENGTH]
    return f"{KEY_PREFIX}:{scope}:{ip_hash}"


class InviteRateLimiter:
    """Fixed-window limiter for the public invitation endpoints.

    Counters live in Redis so every worker shares them. A Redis failure
    lets the request through.
    """

    def __init__(self, backend: CounterBackend, max_attempts: int, window_seconds: int) -> None:
        self.backend = backend
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds

    async def hit(self, scope: str, client_ip: str | None) -> int:
        key = _make_key(scope, client_ip)
        try:
            count = await self.backend.increment_counter(key, ttl_seconds=self.window_seconds)
        except RedisError:
            logger.error("Rate limit counter unavailable for %s", scope, exc_info=True)
            return 0

        if count > self.max_attempts:
            logger.warning("Rate limit exceeded scope=%s count=%d", scope, count)
            raise RateLimitedError()
        return count
