"""Leaderboard ranking engine and registry."""

from ..entry import ConversionError, Entry, EntryBuilder
from .leaderboard import (
    DEFAULT_SCORE_FIELD,
    NOT_FOUND_RANK,
    ConfigurationError,
    Leaderboard,
    LeaderboardBuilder,
)
from .registry import LeaderboardRegistry, UnknownLeaderboardError

__all__ = [
    "ConversionError",
    "Entry",
    "EntryBuilder",
    "DEFAULT_SCORE_FIELD",
    "NOT_FOUND_RANK",
    "ConfigurationError",
    "Leaderboard",
    "LeaderboardBuilder",
    "LeaderboardRegistry",
    "UnknownLeaderboardError",
]
