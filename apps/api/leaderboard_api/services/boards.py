"""Builds the leaderboard registry and its shared storage from settings."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional
import logging

from packages.leaderboard_core.ranking import Leaderboard, LeaderboardRegistry
from packages.leaderboard_core.storage import (
    CacheFirstStorage,
    DurableStore,
    InMemoryStorage,
    ListCache,
    LocalMapCache,
    RedisListCache,
    StorageBackend,
    build_durable_store,
)

from ..settings import ApiSettings, BoardSpec

logger = logging.getLogger("leaderboard_api.boards")


@dataclass
class BoardRuntime:
    """Registry plus the shared cache and durable store it was composed from."""

    registry: LeaderboardRegistry
    cache: Optional[ListCache] = None
    durable_store: Optional[DurableStore] = None
    _closed: bool = field(default=False, repr=False)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.registry.close()
        for resource in (self.cache, self.durable_store):
            close = getattr(resource, "close", None)
            if callable(close):
                close()
        logger.info("[BOARDS] Leaderboard runtime closed")


def _build_cache(settings: ApiSettings) -> ListCache:
    if settings.redis_url:
        logger.info("[BOARDS] Using Redis list cache")
        return RedisListCache(settings.redis_url, ttl_seconds=settings.cache_ttl_seconds)
    logger.info("[BOARDS] Using in-process list cache")
    return LocalMapCache()


def _build_storage(
    spec: BoardSpec,
    settings: ApiSettings,
    cache: Optional[ListCache],
    durable_store: Optional[DurableStore],
) -> StorageBackend:
    if settings.storage == "cache" and cache is not None:
        return CacheFirstStorage(cache, spec.name, durable_store=durable_store)
    return InMemoryStorage()


def build_runtime(settings: ApiSettings) -> BoardRuntime:
    cache: Optional[ListCache] = None
    durable_store: Optional[DurableStore] = None
    if settings.storage == "cache":
        cache = _build_cache(settings)
        durable_store = build_durable_store(settings.database_url)
        if durable_store is None:
            logger.warning("[BOARDS] No DATABASE_URL set; cached leaderboards are not persisted")

    registry = LeaderboardRegistry()
    for spec in settings.boards:
        board = Leaderboard(
            spec.name,
            score_field=spec.score_field,
            identity_field=spec.identity_field,
            storage=_build_storage(spec, settings, cache, durable_store),
        )
        registry.register(board)
        logger.info(
            "[BOARDS] Configured leaderboard '%s' (score=%s, identity=%s, storage=%s)",
            spec.name,
            spec.score_field,
            spec.identity_field,
            settings.storage,
        )
    return BoardRuntime(registry=registry, cache=cache, durable_store=durable_store)
