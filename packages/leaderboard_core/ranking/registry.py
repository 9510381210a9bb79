"""Named leaderboard registry with lifecycle hooks."""

from __future__ import annotations

from logging import getLogger
from typing import Optional
import threading

from .leaderboard import Leaderboard

logger = getLogger("leaderboard_core.ranking.registry")


class UnknownLeaderboardError(KeyError):
    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"No leaderboard registered: {self.name}"


class LeaderboardRegistry:
    """Maps leaderboard names to instances. Passed explicitly to consumers."""

    def __init__(self) -> None:
        self._boards: dict[str, Leaderboard] = {}
        self._lock = threading.Lock()

    def register(self, leaderboard: Leaderboard) -> "LeaderboardRegistry":
        with self._lock:
            replaced = self._boards.get(leaderboard.name)
            self._boards[leaderboard.name] = leaderboard
        if replaced is not None and replaced is not leaderboard:
            logger.warning("[REGISTRY] Replaced leaderboard '%s'", leaderboard.name)
        else:
            logger.info("[REGISTRY] Registered leaderboard '%s'", leaderboard.name)
        return self

    def unregister(self, name: str) -> Optional[Leaderboard]:
        with self._lock:
            return self._boards.pop(name, None)

    def get(self, name: str) -> Optional[Leaderboard]:
        with self._lock:
            return self._boards.get(name)

    def get_or_raise(self, name: str) -> Leaderboard:
        board = self.get(name)
        if board is None:
            raise UnknownLeaderboardError(name)
        return board

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._boards)

    def all(self) -> list[Leaderboard]:
        with self._lock:
            return list(self._boards.values())

    def close(self) -> None:
        with self._lock:
            boards = list(self._boards.values())
            self._boards.clear()
        for board in boards:
            board.close()
        logger.info("[REGISTRY] Closed %d leaderboards", len(boards))

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._boards

    def __len__(self) -> int:
        with self._lock:
            return len(self._boards)
