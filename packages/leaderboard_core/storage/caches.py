"""List cache implementations: an in-process map and a Redis-backed variant."""

from __future__ import annotations

from logging import getLogger
from typing import Any, Optional
import json
import threading

from .base import BackingStoreError
from .contracts import ListCache, Record

logger = getLogger("leaderboard_core.storage.caches")


class LocalMapCache(ListCache):
    """Process-local cache; lists are copied on the way in and out."""

    def __init__(self) -> None:
        self._lists: dict[str, tuple[Record, ...]] = {}
        self._lock = threading.Lock()

    def get_list(self, collection: str) -> Optional[list[Record]]:
        with self._lock:
            cached = self._lists.get(collection)
        if cached is None:
            return None
        return [dict(r) for r in cached]

    def put_list(self, collection: str, records: list[Record]) -> None:
        frozen = tuple(dict(r) for r in records)
        with self._lock:
            self._lists[collection] = frozen

    def invalidate(self, collection: str) -> None:
        with self._lock:
            self._lists.pop(collection, None)


class RedisListCache(ListCache):
    """Stores each collection as one JSON array under ``{key_prefix}:{collection}``."""

    def __init__(
        self,
        redis_url: Optional[str] = None,
        *,
        client: Any = None,
        key_prefix: str = "leaderboard",
        ttl_seconds: Optional[int] = None,
    ) -> None:
        if client is None:
            if not redis_url:
                raise ValueError("RedisListCache requires a redis_url or a client")
            client = self._connect(redis_url)
        self.client = client
        self.key_prefix = key_prefix.rstrip(":")
        self.ttl_seconds = int(ttl_seconds) if ttl_seconds else None

    @staticmethod
    def _connect(redis_url: str) -> Any:
        try:
            import redis
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RuntimeError(
                "Redis cache requires `redis`. Install it with: pip install redis"
            ) from exc
        return redis.Redis.from_url(redis_url, decode_responses=True)

    def _key(self, collection: str) -> str:
        return f"{self.key_prefix}:{collection}"

    def get_list(self, collection: str) -> Optional[list[Record]]:
        try:
            raw = self.client.get(self._key(collection))
        except Exception as exc:
            raise BackingStoreError(
                f"Redis read failed for '{collection}': {exc}", store="redis", operation="get_list"
            ) from exc
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            payload = json.loads(raw)
        except ValueError as exc:
            raise BackingStoreError(
                f"Redis holds an unreadable list for '{collection}': {exc}",
                store="redis",
                operation="get_list",
            ) from exc
        if not isinstance(payload, list):
            logger.warning("[CACHE] Ignoring malformed cached list for '%s'", collection)
            return None
        return [dict(r) for r in payload]

    def put_list(self, collection: str, records: list[Record]) -> None:
        payload = json.dumps(list(records), separators=(",", ":"))
        try:
            if self.ttl_seconds:
                self.client.set(self._key(collection), payload, ex=self.ttl_seconds)
            else:
                self.client.set(self._key(collection), payload)
        except Exception as exc:
            raise BackingStoreError(
                f"Redis write failed for '{collection}': {exc}", store="redis", operation="put_list"
            ) from exc

    def close(self) -> None:
        close = getattr(self.client, "close", None)
        if callable(close):
            close()
