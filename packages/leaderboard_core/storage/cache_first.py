"""Cache-first storage backend with optional write-through durable persistence.

The cache holds the whole entry list of a collection as a single value and is
the source of truth for reads. A configured durable store receives every
mutation first and is only read to repopulate the cache after a miss.
Sorting always happens in memory over the materialized list.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from logging import getLogger
from typing import Any, Optional
import threading
import weakref

from ..entry import Entry
from .base import StorageBackend, top_sorted
from .contracts import DurableStore, ListCache, Query, Record

logger = getLogger("leaderboard_core.storage.cache_first")

_LOCKS_GUARD = threading.Lock()
# Entries drop once no backend for the collection is alive.
_COLLECTION_LOCKS: weakref.WeakValueDictionary[str, Any] = weakref.WeakValueDictionary()


def collection_lock(collection: str) -> threading.RLock:
    """Process-wide lock for one collection name, shared by every backend using it."""
    with _LOCKS_GUARD:
        lock = _COLLECTION_LOCKS.get(collection)
        if lock is None:
            lock = threading.RLock()
            _COLLECTION_LOCKS[collection] = lock
        return lock


def _to_record(entry: Entry) -> Record:
    return entry.to_dict()


def _to_entry(record: Record) -> Entry:
    return Entry.of(record)


def _record_value(record: Record, field: str) -> Any:
    return record.get(field)


class CacheFirstStorage(StorageBackend):
    """Backend over a shared list cache and an optional durable store.

    Neither the cache nor the durable store is owned: both may serve many
    collections and are closed by whoever created them. Each
    read-mutate-write sequence runs under the collection's lock so
    concurrent writers to one collection cannot drop each other's updates.
    """

    def __init__(
        self,
        cache: ListCache,
        collection: str,
        *,
        durable_store: Optional[DurableStore] = None,
    ) -> None:
        if cache is None:
            raise ValueError("CacheFirstStorage requires a cache")
        if not collection:
            raise ValueError("CacheFirstStorage requires a collection name")
        self.cache = cache
        self.collection = collection
        self.durable_store = durable_store
        self._lock = collection_lock(collection)

    def _cached_list(self) -> list[Record]:
        cached = self.cache.get_list(self.collection)
        if cached is not None:
            return [dict(r) for r in cached]

        if self.durable_store is not None:
            logger.info("[CACHE] Cache miss for '%s', reloading from durable store", self.collection)
            loaded = self.durable_store.find(self.collection, Query.all())
            self.cache.put_list(self.collection, loaded)
            return [dict(r) for r in loaded]

        return []

    def atomic(self) -> AbstractContextManager[Any]:
        return self._lock

    def save(self, entry: Entry) -> None:
        record = _to_record(entry)
        with self._lock:
            if self.durable_store is not None:
                self.durable_store.insert(self.collection, record)
            records = self._cached_list()
            records.append(dict(record))
            self.cache.put_list(self.collection, records)
        logger.debug("[STORAGE] Saved entry to '%s' (%d cached)", self.collection, len(records))

    def get_top_sorted_by(self, score_field: str, limit: Optional[int]) -> list[Entry]:
        with self._lock:
            records = self._cached_list()
        ordered = top_sorted(records, score_field, limit, value_of=_record_value)
        return [_to_entry(r) for r in ordered]

    def find_by(self, field: str, value: Any) -> Optional[Entry]:
        query = Query.where(field, value)
        with self._lock:
            records = self._cached_list()
        for record in records:
            if query.matches(record):
                return _to_entry(record)
        return None

    def remove_by(self, field: str, value: Any) -> None:
        query = Query.where(field, value)
        with self._lock:
            if self.durable_store is not None:
                self.durable_store.delete(self.collection, query)
            records = self._cached_list()
            kept = [r for r in records if not query.matches(r)]
            self.cache.put_list(self.collection, kept)
        if len(kept) != len(records):
            logger.debug(
                "[STORAGE] Removed %d entries from '%s' where %s=%r",
                len(records) - len(kept),
                self.collection,
                field,
                value,
            )

    def size(self) -> int:
        if self.durable_store is not None:
            return int(self.durable_store.count(self.collection, Query.all()))
        with self._lock:
            return len(self._cached_list())

    def clear(self) -> None:
        with self._lock:
            if self.durable_store is not None:
                self.durable_store.delete(self.collection, Query.all())
            self.cache.put_list(self.collection, [])
        logger.info("[STORAGE] Cleared collection '%s'", self.collection)
