"""Denylist of revoked session tokens.

Revoked tokens are stored under their raw value with a time-to-live equal
to the token's remaining lifetime, so an entry never outlives the token it
revokes and no cleanup job is needed.
"""

import logging
import threading
import time
from collections.abc import Callable
from typing import Protocol

import redis.asyncio as aioredis
from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

DENYLIST_KEY_PREFIX = "denylist:"


class TokenDenylist(Protocol):
    async def add(self, token: str, ttl_seconds: int) -> None: ...

    async def contains(self, token: str) -> bool: ...

    async def ping(self) -> bool: ...


def create_redis_client(redis_url: str, *, socket_timeout: float = 5.0) -> Redis:
    """Create an asyncio Redis client; connections are opened lazily."""
    return aioredis.from_url(
        redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_timeout,
    )


class RedisTokenDenylist:
    """Denylist backed by Redis key expiry. Shared by every API process."""

    def __init__(self, client: Redis, key_prefix: str = DENYLIST_KEY_PREFIX):
        self.client = client
        self.key_prefix = key_prefix

    def _key(self, token: str) -> str:
        return f"{self.key_prefix}{token}"

    async def add(self, token: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        await self.client.set(self._key(token), "1", ex=ttl_seconds)

    async def contains(self, token: str) -> bool:
        return bool(await self.client.exists(self._key(token)))

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except (RedisError, OSError) as e:
            logger.debug(f"Redis ping failed: {e}")
            return False

    async def close(self) -> None:
        await self.client.aclose()


class InMemoryTokenDenylist:
    """Process-local denylist for development and tests.

    Entries are dropped lazily once their expiry passes.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._entries: dict[str, float] = {}  # token -> expiry timestamp
        self._lock = threading.Lock()
        self._clock = clock

    async def add(self, token: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        with self._lock:
            self._entries[token] = self._clock() + ttl_seconds

    async def contains(self, token: str) -> bool:
        with self._lock:
            expires_at = self._entries.get(token)
            if expires_at is None:
                return False
            if self._clock() >= expires_at:
                del self._entries[token]
                return False
            return True

    async def ping(self) -> bool:
        return True

    def cleanup_expired(self) -> int:
        """Drop expired entries. Returns count removed."""
        now = self._clock()
        with self._lock:
            expired = [token for token, exp in self._entries.items() if now >= exp]
            for token in expired:
                del self._entries[token]
            return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
