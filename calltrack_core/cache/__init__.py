"""
CallTrack Core - Cache
======================
Shared key-value store backends and a JSON cache on top of them.
"""

from .store import KeyValueStore, RedisStore, InMemoryStore
from .cache import Cache

__all__ = [
    # Stores
    "KeyValueStore",
    "RedisStore",
    "InMemoryStore",
    # Cache
    "Cache",
]
