"""
Cache
=====
JSON cache over a key-value store. Store failures are logged and reported,
then degrade to a cache miss instead of raising.
"""

import json
from typing import Any, Optional

import structlog

from ..errors.reporting import ErrorReporter, report_nowait
from .store import KeyValueStore

logger = structlog.get_logger(__name__)


class Cache:
    """
    Namespaced JSON cache.

    Example:
        cache = Cache(store, prefix="cache:", ttl=3600)
        await cache.set("agency:42:agents", agents)
        agents = await cache.get("agency:42:agents")
    """

    def __init__(
        self,
        store: KeyValueStore,
        prefix: str = "cache:",
        ttl: int = 3600,
        reporter: Optional[ErrorReporter] = None,
    ):
        self.store = store
        self.prefix = prefix
        self.ttl = ttl
        self.reporter = reporter

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def _failed(self, action: str, key: str, error: Exception) -> None:
        logger.error("cache_operation_failed", action=action, key=key, error=str(error))
        report_nowait(self.reporter, error, {"action": action, "key": key})

    async def get(self, key: str, default: Any = None) -> Any:
        try:
            raw = await self.store.get(self._key(key))
        except Exception as e:
            self._failed("cache_get", key, e)
            return default
        if raw is None:
            return default
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        try:
            await self.store.set(self._key(key), json.dumps(value), ttl or self.ttl)
        except Exception as e:
            self._failed("cache_set", key, e)
            return False
        return True

    async def delete(self, key: str) -> None:
        try:
            await self.store.delete(self._key(key))
        except Exception as e:
            self._failed("cache_delete", key, e)

    async def has(self, key: str) -> bool:
        try:
            return await self.store.get(self._key(key)) is not None
        except Exception as e:
            self._failed("cache_has", key, e)
            return False
