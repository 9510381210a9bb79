"""Boundaries consumed by the cache-first backend: durable stores and list caches."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from ..entry import values_equal


Record = dict[str, Any]


@dataclass(frozen=True)
class Query:
    field: Optional[str] = None
    value: Any = None

    @classmethod
    def all(cls) -> "Query":
        return cls()

    @classmethod
    def where(cls, field: str, value: Any) -> "Query":
        if not field:
            raise ValueError("Query.where requires a field name")
        return cls(field=field, value=value)

    @property
    def is_all(self) -> bool:
        return self.field is None

    def matches(self, record: Record) -> bool:
        if self.field is None:
            return True
        return values_equal(record.get(self.field), self.value)


class DurableStore(ABC):
    """Persistence keyed by collection name. Implementations raise BackingStoreError."""

    @abstractmethod
    def insert(self, collection: str, record: Record) -> None:
        raise NotImplementedError

    @abstractmethod
    def find(self, collection: str, query: Query) -> list[Record]:
        """Matching records in insertion order."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, collection: str, query: Query) -> int:
        raise NotImplementedError

    @abstractmethod
    def count(self, collection: str, query: Query) -> int:
        raise NotImplementedError


class ListCache(ABC):
    """Cache holding one whole record list per collection name."""

    @abstractmethod
    def get_list(self, collection: str) -> Optional[list[Record]]:
        """Cached list, or None on a miss."""
        raise NotImplementedError

    @abstractmethod
    def put_list(self, collection: str, records: list[Record]) -> None:
        raise NotImplementedError
