"""In-process storage backend with copy-on-write snapshots."""

from __future__ import annotations

from contextlib import AbstractContextManager
from logging import getLogger
from typing import Any, Optional
import threading

from ..entry import Entry
from .base import StorageBackend, entry_matches, entry_value, top_sorted

logger = getLogger("leaderboard_core.storage.memory")


class InMemoryStorage(StorageBackend):
    """Unsorted entry list; every top-N query sorts a fresh snapshot.

    Writers swap in a new tuple under a lock, so readers always iterate a
    complete snapshot even while another thread is writing.
    """

    def __init__(self) -> None:
        self._entries: tuple[Entry, ...] = ()
        self._write_lock = threading.RLock()

    def atomic(self) -> AbstractContextManager[Any]:
        return self._write_lock

    def save(self, entry: Entry) -> None:
        with self._write_lock:
            self._entries = self._entries + (entry,)

    def get_top_sorted_by(self, score_field: str, limit: Optional[int]) -> list[Entry]:
        return top_sorted(self._entries, score_field, limit, value_of=entry_value)

    def find_by(self, field: str, value: Any) -> Optional[Entry]:
        for entry in self._entries:
            if entry_matches(entry, field, value):
                return entry
        return None

    def remove_by(self, field: str, value: Any) -> None:
        with self._write_lock:
            kept = tuple(e for e in self._entries if not entry_matches(e, field, value))
            removed = len(self._entries) - len(kept)
            self._entries = kept
        if removed:
            logger.debug("[STORAGE] Removed %d in-memory entries where %s=%r", removed, field, value)

    def size(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        with self._write_lock:
            self._entries = ()
