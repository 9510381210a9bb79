"""Storage backend contract for a single leaderboard."""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager, nullcontext
from typing import Any, Callable, Iterable, Optional, TypeVar

from ..entry import Entry, sort_score, values_equal


T = TypeVar("T")


class BackingStoreError(RuntimeError):
    """Failure reported by an injected durable store or cache."""

    def __init__(self, message: str, *, store: str, operation: str) -> None:
        super().__init__(message)
        self.store = store
        self.operation = operation


def check_limit(limit: Optional[int]) -> Optional[int]:
    if limit is None:
        return None
    limit = int(limit)
    if limit < 0:
        raise ValueError(f"limit must be >= 0, got {limit}")
    return limit


def top_sorted(
    items: Iterable[T],
    score_field: str,
    limit: Optional[int],
    *,
    value_of: Callable[[T, str], Any],
) -> list[T]:
    limit = check_limit(limit)
    # sorted() keeps equal keys in input order, also with reverse=True.
    ordered = sorted(items, key=lambda item: sort_score(value_of(item, score_field)), reverse=True)
    if limit is None:
        return ordered
    return ordered[:limit]


def entry_value(entry: Entry, field: str) -> Any:
    return entry.get(field)


def entry_matches(entry: Entry, field: str, value: Any) -> bool:
    return values_equal(entry.get(field), value)


class StorageBackend(ABC):
    @abstractmethod
    def save(self, entry: Entry) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_top_sorted_by(self, score_field: str, limit: Optional[int]) -> list[Entry]:
        raise NotImplementedError

    @abstractmethod
    def find_by(self, field: str, value: Any) -> Optional[Entry]:
        raise NotImplementedError

    @abstractmethod
    def remove_by(self, field: str, value: Any) -> None:
        raise NotImplementedError

    @abstractmethod
    def size(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        raise NotImplementedError

    def atomic(self) -> AbstractContextManager[Any]:
        """Reentrant guard for a find/remove/save sequence on this backend.

        Backends shared across threads return their write lock so a
        multi-step update is not interleaved with other writers. The default
        does no locking.
        """
        return nullcontext()

    def close(self) -> None:
        """Release resources owned by the backend. Shared stores are left open."""
        return None
