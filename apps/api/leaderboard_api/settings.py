"""Environment-driven settings for the leaderboard query API."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional
import os


DEFAULT_BOARDS = "kills=kills:player"
STORAGE_MODES = ("memory", "cache")


def _truthy_env(name: str, default: bool = False) -> bool:
    raw = str(os.environ.get(name) or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    raw = str(os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _normalize_base_path(raw: str) -> str:
    path = raw.strip()
    if not path or path == "/":
        return ""
    if not path.startswith("/"):
        path = "/" + path
    return path.rstrip("/")


@dataclass(frozen=True)
class BoardSpec:
    name: str
    score_field: str
    identity_field: Optional[str] = None


def parse_board_specs(raw: str) -> list[BoardSpec]:
    """Parse ``name=score_field[:identity_field]`` items separated by commas.

    A bare ``name`` uses the name as its score field.
    """
    specs: list[BoardSpec] = []
    for chunk in raw.split(","):
        item = chunk.strip()
        if not item:
            continue
        name, _, fields = item.partition("=")
        name = name.strip()
        if not name:
            raise ValueError(f"Invalid leaderboard spec: {item!r}")
        score_field, _, identity_field = (fields or name).partition(":")
        specs.append(
            BoardSpec(
                name=name,
                score_field=score_field.strip() or name,
                identity_field=identity_field.strip() or None,
            )
        )
    return specs


@dataclass(frozen=True)
class ApiSettings:
    base_path: str = ""
    cors_origins: tuple[str, ...] = ("*",)
    boards: tuple[BoardSpec, ...] = field(default_factory=lambda: tuple(parse_board_specs(DEFAULT_BOARDS)))
    storage: str = "memory"
    database_url: Optional[str] = None
    redis_url: Optional[str] = None
    cache_ttl_seconds: Optional[int] = None
    default_limit: int = 10
    cors_enabled: bool = False

    @classmethod
    def from_env(cls) -> "ApiSettings":
        storage = str(os.environ.get("LEADERBOARD_STORAGE") or "memory").strip().lower()
        if storage not in STORAGE_MODES:
            raise ValueError(f"LEADERBOARD_STORAGE must be one of {STORAGE_MODES}, got {storage!r}")
        cache_ttl = _int_env("LEADERBOARD_CACHE_TTL", 0)
        return cls(
            base_path=_normalize_base_path(os.environ.get("LEADERBOARD_BASE_PATH", "")),
            cors_origins=tuple(
                o.strip() for o in os.environ.get("LEADERBOARD_CORS_ORIGINS", "*").split(",") if o.strip()
            ),
            boards=tuple(parse_board_specs(os.environ.get("LEADERBOARD_BOARDS", DEFAULT_BOARDS))),
            storage=storage,
            database_url=os.environ.get("DATABASE_URL") or None,
            redis_url=os.environ.get("LEADERBOARD_REDIS_URL") or None,
            cache_ttl_seconds=cache_ttl if cache_ttl > 0 else None,
            default_limit=max(1, _int_env("LEADERBOARD_DEFAULT_LIMIT", 10)),
            cors_enabled=_truthy_env("LEADERBOARD_CORS", default=False),
        )
