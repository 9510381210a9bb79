#!/usr/bin/env python3

from __future__ import annotations

import gc
import threading
import unittest
import uuid
from typing import Optional

from packages.leaderboard_core.entry import Entry
from packages.leaderboard_core.storage import (
    BackingStoreError,
    CacheFirstStorage,
    LocalMapCache,
)
from packages.leaderboard_core.storage.cache_first import _COLLECTION_LOCKS, collection_lock
from packages.leaderboard_core.storage.contracts import ListCache, Query, Record

from test_storage_backends import ListDurableStore


class FailingDurableStore(ListDurableStore):
    def __init__(self) -> None:
        super().__init__()
        self.fail_writes = False

    def _maybe_fail(self, operation: str) -> None:
        if self.fail_writes:
            raise BackingStoreError("durable store offline", store="fake", operation=operation)

    def insert(self, collection: str, record: Record) -> None:
        self._maybe_fail("insert")
        super().insert(collection, record)

    def delete(self, collection: str, query: Query) -> int:
        self._maybe_fail("delete")
        return super().delete(collection, query)


class CountingCache(LocalMapCache):
    def __init__(self) -> None:
        super().__init__()
        self.puts = 0

    def put_list(self, collection: str, records: list[Record]) -> None:
        self.puts += 1
        super().put_list(collection, records)


class SlowCache(ListCache):
    """Widens the read-modify-write window so lost updates would show up."""

    def __init__(self) -> None:
        self._inner = LocalMapCache()

    def get_list(self, collection: str) -> Optional[list[Record]]:
        out = self._inner.get_list(collection)
        threading.Event().wait(0.0005)
        return out

    def put_list(self, collection: str, records: list[Record]) -> None:
        self._inner.put_list(collection, records)


def _collection() -> str:
    return f"kills-{uuid.uuid4().hex}"


class CacheFirstStorageTests(unittest.TestCase):
    def test_fresh_backend_reloads_from_durable_store(self) -> None:
        durable = ListDurableStore()
        name = _collection()
        first = CacheFirstStorage(LocalMapCache(), name, durable_store=durable)
        first.save(Entry.of({"player": "Steve", "kills": 3}))

        second = CacheFirstStorage(LocalMapCache(), name, durable_store=durable)
        found = second.find_by("player", "Steve")
        self.assertIsNotNone(found)
        self.assertEqual(found.get("kills"), 3)

    def test_cache_miss_populates_cache_with_durable_rows(self) -> None:
        durable = ListDurableStore()
        name = _collection()
        durable.insert(name, {"player": "a", "kills": 1})
        durable.insert(name, {"player": "b", "kills": 2})
        cache = LocalMapCache()
        backend = CacheFirstStorage(cache, name, durable_store=durable)

        self.assertIsNone(cache.get_list(name))
        top = backend.get_top_sorted_by("kills", None)
        self.assertEqual([e.get("player") for e in top], ["b", "a"])
        self.assertEqual(cache.get_list(name), [{"player": "a", "kills": 1}, {"player": "b", "kills": 2}])

    def test_cache_hit_does_not_read_durable_store(self) -> None:
        durable = ListDurableStore()
        backend = CacheFirstStorage(LocalMapCache(), _collection(), durable_store=durable)
        backend.save(Entry.of({"player": "a", "kills": 1}))
        durable.calls.clear()
        backend.get_top_sorted_by("kills", 5)
        backend.find_by("player", "a")
        self.assertNotIn("find", durable.calls)

    def test_reload_keeps_insertion_order_for_ties(self) -> None:
        durable = ListDurableStore()
        name = _collection()
        writer = CacheFirstStorage(LocalMapCache(), name, durable_store=durable)
        for player in ("x", "y", "z"):
            writer.save(Entry.of({"player": player, "kills": 1}))
        reader = CacheFirstStorage(LocalMapCache(), name, durable_store=durable)
        self.assertEqual([e.get("player") for e in reader.get_top_sorted_by("kills", None)], ["x", "y", "z"])

    def test_without_durable_store_and_empty_cache_reads_empty(self) -> None:
        backend = CacheFirstStorage(LocalMapCache(), _collection())
        self.assertEqual(backend.get_top_sorted_by("kills", None), [])
        self.assertIsNone(backend.find_by("player", "x"))
        self.assertEqual(backend.size(), 0)

    def test_every_mutation_rewrites_the_whole_list(self) -> None:
        cache = CountingCache()
        name = _collection()
        backend = CacheFirstStorage(cache, name)
        backend.save(Entry.of({"player": "a", "kills": 1}))
        backend.save(Entry.of({"player": "b", "kills": 2}))
        backend.remove_by("player", "a")
        self.assertEqual(cache.puts, 3)
        self.assertEqual(cache.get_list(name), [{"player": "b", "kills": 2}])

    def test_remove_by_writes_through(self) -> None:
        durable = ListDurableStore()
        name = _collection()
        backend = CacheFirstStorage(LocalMapCache(), name, durable_store=durable)
        backend.save(Entry.of({"player": "a", "kills": 1}))
        backend.save(Entry.of({"player": "a", "kills": 2}))
        backend.save(Entry.of({"player": "b", "kills": 3}))
        backend.remove_by("player", "a")
        self.assertEqual(durable.collections[name], [{"player": "b", "kills": 3}])
        self.assertEqual(backend.size(), 1)

    def test_clear_empties_cache_and_durable_store(self) -> None:
        durable = ListDurableStore()
        name = _collection()
        backend = CacheFirstStorage(LocalMapCache(), name, durable_store=durable)
        backend.save(Entry.of({"player": "a", "kills": 1}))
        backend.clear()
        self.assertEqual(backend.size(), 0)

        reloaded = CacheFirstStorage(LocalMapCache(), name, durable_store=durable)
        self.assertEqual(reloaded.get_top_sorted_by("kills", None), [])

    def test_size_prefers_durable_count(self) -> None:
        durable = ListDurableStore()
        name = _collection()
        cache = LocalMapCache()
        backend = CacheFirstStorage(cache, name, durable_store=durable)
        backend.save(Entry.of({"player": "a", "kills": 1}))
        durable.insert(name, {"player": "external", "kills": 9})
        durable.calls.clear()
        self.assertEqual(backend.size(), 2)
        self.assertEqual(durable.calls, ["count"])

    def test_size_without_durable_uses_cached_length(self) -> None:
        cache = LocalMapCache()
        name = _collection()
        backend = CacheFirstStorage(cache, name)
        backend.save(Entry.of({"player": "a"}))
        cache.put_list(name, [{"player": "a"}, {"player": "b"}])
        self.assertEqual(backend.size(), 2)

    def test_failed_durable_write_leaves_cache_untouched(self) -> None:
        durable = FailingDurableStore()
        cache = LocalMapCache()
        name = _collection()
        backend = CacheFirstStorage(cache, name, durable_store=durable)
        backend.save(Entry.of({"player": "a", "kills": 1}))
        before = cache.get_list(name)

        durable.fail_writes = True
        with self.assertRaises(BackingStoreError):
            backend.save(Entry.of({"player": "b", "kills": 2}))
        with self.assertRaises(BackingStoreError):
            backend.remove_by("player", "a")
        with self.assertRaises(BackingStoreError):
            backend.clear()
        self.assertEqual(cache.get_list(name), before)

    def test_cache_errors_propagate(self) -> None:
        class BrokenCache(LocalMapCache):
            def get_list(self, collection: str):
                raise BackingStoreError("cache down", store="fake", operation="get_list")

        backend = CacheFirstStorage(BrokenCache(), _collection())
        with self.assertRaises(BackingStoreError):
            backend.get_top_sorted_by("kills", 1)

    def test_shared_cache_is_partitioned_by_collection(self) -> None:
        cache = LocalMapCache()
        kills = CacheFirstStorage(cache, _collection())
        deaths = CacheFirstStorage(cache, _collection())
        kills.save(Entry.of({"player": "a", "kills": 1}))
        self.assertEqual(deaths.size(), 0)
        self.assertEqual(kills.size(), 1)

    def test_requires_cache_and_collection(self) -> None:
        with self.assertRaises(ValueError):
            CacheFirstStorage(None, "kills")  # type: ignore[arg-type]
        with self.assertRaises(ValueError):
            CacheFirstStorage(LocalMapCache(), "")

    def test_close_leaves_shared_resources_open(self) -> None:
        cache = LocalMapCache()
        name = _collection()
        backend = CacheFirstStorage(cache, name)
        backend.save(Entry.of({"player": "a"}))
        backend.close()
        self.assertEqual(cache.get_list(name), [{"player": "a"}])

    def test_concurrent_writers_do_not_lose_updates(self) -> None:
        cache = SlowCache()
        name = _collection()
        backends = [CacheFirstStorage(cache, name) for _ in range(4)]

        def writer(index: int) -> None:
            for i in range(25):
                backends[index].save(Entry.of({"player": f"{index}-{i}", "kills": i}))

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(backends[0].size(), 100)

    def test_collection_lock_is_shared_per_name(self) -> None:
        name = _collection()
        self.assertIs(collection_lock(name), collection_lock(name))
        self.assertIsNot(collection_lock(name), collection_lock(_collection()))

    def test_invalidate_forces_reload_from_durable_store(self) -> None:
        durable = ListDurableStore()
        cache = CountingCache()
        name = _collection()
        backend = CacheFirstStorage(cache, name, durable_store=durable)
        backend.save(Entry.of({"player": "Steve", "kills": 3}))
        durable.insert(name, {"player": "Alex", "kills": 9})
        self.assertIsNone(backend.find_by("player", "Alex"))

        cache.invalidate(name)
        self.assertIsNone(cache.get_list(name))
        self.assertEqual(backend.find_by("player", "Alex").get("kills"), 9)
        self.assertEqual(len(cache.get_list(name)), 2)

    def test_collection_lock_is_released_with_its_backends(self) -> None:
        name = _collection()
        backend = CacheFirstStorage(LocalMapCache(), name)
        self.assertIs(backend.atomic(), collection_lock(name))
        del backend
        gc.collect()
        self.assertNotIn(name, _COLLECTION_LOCKS)


if __name__ == "__main__":
    unittest.main()
