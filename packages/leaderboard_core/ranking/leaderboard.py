"""Ranking engine: upsert-by-identity, score mutation and rank lookup."""

from __future__ import annotations

from logging import getLogger
from typing import Any, Mapping, Optional

from ..entry import Entry, EntryBuilder, FieldValue, is_number, numeric_value, values_equal
from ..storage.base import StorageBackend
from ..storage.memory import InMemoryStorage

logger = getLogger("leaderboard_core.ranking.leaderboard")

NOT_FOUND_RANK = -1
DEFAULT_SCORE_FIELD = "score"


class ConfigurationError(RuntimeError):
    pass


class Leaderboard:
    """A named ranking over open-ended entries.

    ``score_field`` names the numeric sort key. When ``identity_field`` is
    set, :meth:`submit` replaces any entry sharing the same identity value,
    so each identity appears at most once. Without it, submissions append.

    Example::

        lb = (
            Leaderboard.create("kills")
            .score_field("kills")
            .identity_field("player")
            .build()
        )
        lb.submit({"player": "Steve", "kills": 150, "deaths": 3})
        lb.top(10)
        lb.rank_of("player", "Steve")
    """

    def __init__(
        self,
        name: str,
        *,
        score_field: str = DEFAULT_SCORE_FIELD,
        identity_field: Optional[str] = None,
        storage: Optional[StorageBackend] = None,
    ) -> None:
        if not name:
            raise ValueError("Leaderboard name is required")
        if not score_field:
            raise ValueError("score_field must be a non-empty string")
        self.name = name
        self.score_field = score_field
        self.identity_field = identity_field or None
        self.storage = storage if storage is not None else InMemoryStorage()

    @staticmethod
    def create(name: str) -> "LeaderboardBuilder":
        return LeaderboardBuilder(name)

    # Write

    def submit(self, entry: Entry | Mapping[str, FieldValue]) -> None:
        entry = Entry.of(entry)
        with self.storage.atomic():
            if self.identity_field is not None:
                identity_value = entry.get(self.identity_field)
                if identity_value is not None:
                    self.storage.remove_by(self.identity_field, identity_value)
            self.storage.save(entry)

    def _require_identity(self, operation: str) -> str:
        if self.identity_field is None:
            raise ConfigurationError(
                f"{operation}() requires identity_field to be configured on leaderboard '{self.name}'"
            )
        return self.identity_field

    def _rebuild(self, identity_field: str, identity_value: Any) -> tuple[Optional[Entry], EntryBuilder]:
        existing = self.storage.find_by(identity_field, identity_value)
        builder = Entry.builder()
        if existing is not None:
            builder.fields(existing.as_map())
        else:
            builder.field(identity_field, identity_value)
        return existing, builder

    def add_score(self, identity_value: FieldValue, delta: int | float) -> Entry:
        identity_field = self._require_identity("add_score")
        if not is_number(delta):
            raise TypeError("delta must be a number")
        # read-modify-write must not interleave with other writers
        with self.storage.atomic():
            existing, builder = self._rebuild(identity_field, identity_value)
            current = numeric_value(existing.get(self.score_field)) if existing is not None else 0
            entry = builder.field(self.score_field, current + delta).build()
            self.submit(entry)
        logger.debug(
            "[RANKING] %s: %s=%r score %r -> %r",
            self.name,
            identity_field,
            identity_value,
            current,
            entry.get(self.score_field),
        )
        return entry

    def set_score(self, identity_value: FieldValue, score: int | float) -> Entry:
        identity_field = self._require_identity("set_score")
        if not is_number(score):
            raise TypeError("score must be a number")
        with self.storage.atomic():
            _, builder = self._rebuild(identity_field, identity_value)
            entry = builder.field(self.score_field, score).build()
            self.submit(entry)
        return entry

    def remove(self, field: str, value: Any) -> None:
        self.storage.remove_by(field, value)

    def clear(self) -> None:
        logger.info("[RANKING] Clearing leaderboard '%s'", self.name)
        self.storage.clear()

    # Read

    def top(self, limit: Optional[int]) -> list[Entry]:
        return self.storage.get_top_sorted_by(self.score_field, limit)

    def find_by(self, field: str, value: Any) -> Optional[Entry]:
        return self.storage.find_by(field, value)

    def rank_of(self, field: str, value: Any) -> int:
        """1-based rank of the first entry with field == value, or NOT_FOUND_RANK."""
        ranked = self.storage.get_top_sorted_by(self.score_field, None)
        for position, entry in enumerate(ranked, start=1):
            if values_equal(entry.get(field), value):
                return position
        return NOT_FOUND_RANK

    def size(self) -> int:
        return int(self.storage.size())

    # Lifecycle

    def close(self) -> None:
        self.storage.close()

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "score_field": self.score_field,
            "identity_field": self.identity_field,
            "size": self.size(),
        }

    def __repr__(self) -> str:
        return (
            f"Leaderboard(name={self.name!r}, score_field={self.score_field!r}, "
            f"identity_field={self.identity_field!r}, storage={type(self.storage).__name__})"
        )


class LeaderboardBuilder:
    def __init__(self, name: str) -> None:
        if not name:
            raise ValueError("Leaderboard name is required")
        self._name = name
        self._score_field = DEFAULT_SCORE_FIELD
        self._identity_field: Optional[str] = None
        self._storage: Optional[StorageBackend] = None

    def score_field(self, field: str) -> "LeaderboardBuilder":
        if not field:
            raise ValueError("score_field must be a non-empty string")
        self._score_field = field
        return self

    def identity_field(self, field: Optional[str]) -> "LeaderboardBuilder":
        """Upsert by this field; pass None to keep append-only submissions."""
        self._identity_field = field
        return self

    def with_storage(self, storage: StorageBackend) -> "LeaderboardBuilder":
        if storage is None:
            raise ValueError("storage must not be None")
        self._storage = storage
        return self

    def build(self) -> Leaderboard:
        return Leaderboard(
            self._name,
            score_field=self._score_field,
            identity_field=self._identity_field,
            storage=self._storage,
        )
