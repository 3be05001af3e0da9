"""
Key-Value Stores
================
Shared key-value store contract with Redis and in-memory backends.

The rate limiter counts requests here, so production deployments must use
a store shared across instances (Redis). ``InMemoryStore`` is for
development and testing only.
"""

import time
from typing import Callable, Dict, Optional, Protocol, Tuple, runtime_checkable

from redis.asyncio import Redis

# Lua script so the counter never exists without an expiry
INCR_WINDOW_SCRIPT = """
local count = redis.call('INCR', KEYS[1])
if redis.call('TTL', KEYS[1]) < 0 then
    redis.call('EXPIRE', KEYS[1], ARGV[1])
end
return count
"""


@runtime_checkable
class KeyValueStore(Protocol):
    """Operations the resilience layer needs from a shared store."""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        ...

    async def incr(self, key: str) -> int:
        """Atomically increment an integer counter, creating it at 1."""
        ...

    async def expire(self, key: str, seconds: int) -> bool:
        ...

    async def incr_window(self, key: str, seconds: int) -> int:
        """
        Atomically increment a counter and give it an expiry of ``seconds``
        unless it already has one.
        """
        ...

    async def delete(self, key: str) -> None:
        ...


class RedisStore:
    """
    Redis-backed store.

    INCR and EXPIRE are single atomic commands, and ``incr_window`` runs both
    in one Lua script, so concurrent callers across processes count correctly.
    """

    def __init__(self, redis_client: Redis):
        self.redis = redis_client
        self._incr_window = redis_client.register_script(INCR_WINDOW_SCRIPT)

    @classmethod
    def from_url(cls, url: str) -> "RedisStore":
        return cls(Redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> Optional[str]:
        return await self.redis.get(key)

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        await self.redis.set(key, value, ex=ttl_seconds)

    async def incr(self, key: str) -> int:
        return int(await self.redis.incr(key))

    async def expire(self, key: str, seconds: int) -> bool:
        return bool(await self.redis.expire(key, seconds))

    async def incr_window(self, key: str, seconds: int) -> int:
        return int(await self._incr_window(keys=[key], args=[seconds]))

    async def delete(self, key: str) -> None:
        await self.redis.delete(key)

    async def ping(self) -> bool:
        return bool(await self.redis.ping())

    async def aclose(self) -> None:
        await self.redis.aclose()


class InMemoryStore:
    """
    Process-local store with Redis-like expiry semantics.

    For development and testing only.
    Use RedisStore in production.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}

    def _live(self, key: str) -> Optional[Tuple[str, Optional[float]]]:
        entry = self._data.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return entry

    async def get(self, key: str) -> Optional[str]:
        entry = self._live(key)
        return entry[0] if entry else None

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        self._data[key] = (str(value), expires_at)

    async def incr(self, key: str) -> int:
        entry = self._live(key)
        if entry is None:
            count, expires_at = 1, None
        else:
            try:
                count = int(entry[0]) + 1
            except ValueError:
                raise ValueError("value is not an integer or out of range") from None
            expires_at = entry[1]
        self._data[key] = (str(count), expires_at)
        return count

    async def expire(self, key: str, seconds: int) -> bool:
        entry = self._live(key)
        if entry is None:
            return False
        self._data[key] = (entry[0], self._clock() + seconds)
        return True

    async def incr_window(self, key: str, seconds: int) -> int:
        count = await self.incr(key)
        _, expires_at = self._data[key]
        if expires_at is None:
            self._data[key] = (str(count), self._clock() + seconds)
        return count

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        self._data.clear()

    def ttl(self, key: str) -> Optional[float]:
        """Seconds until ``key`` expires, None when it has no expiry or is missing."""
        entry = self._live(key)
        if entry is None or entry[1] is None:
            return None
        return entry[1] - self._clock()

    def __len__(self) -> int:
        return sum(1 for key in list(self._data) if self._live(key) is not None)
