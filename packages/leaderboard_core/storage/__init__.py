"""Storage backends, caches and durable stores for leaderboards."""

from .base import BackingStoreError, StorageBackend
from .cache_first import CacheFirstStorage
from .caches import LocalMapCache, RedisListCache
from .contracts import DurableStore, ListCache, Query
from .durable import PostgresDurableStore, SQLiteDurableStore, build_durable_store
from .memory import InMemoryStorage

__all__ = [
    "BackingStoreError",
    "StorageBackend",
    "CacheFirstStorage",
    "LocalMapCache",
    "RedisListCache",
    "DurableStore",
    "ListCache",
    "Query",
    "PostgresDurableStore",
    "SQLiteDurableStore",
    "build_durable_store",
    "InMemoryStorage",
]
