"""Durable record stores with SQLite fallback and Postgres support."""

from __future__ import annotations

from logging import getLogger
from pathlib import Path
from typing import Any, Optional
import json
import sqlite3
import threading

from .base import BackingStoreError
from .contracts import DurableStore, Query, Record

logger = getLogger("leaderboard_core.storage.durable")


def _now_utc_sqlite() -> str:
    return "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"


def _dump(record: Record) -> str:
    return json.dumps(record, separators=(",", ":"))


class SQLiteDurableStore(DurableStore):
    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self._initialized = False
        self._init_lock = threading.Lock()
        self._local = threading.local()

    def _connect(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            return conn
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA busy_timeout = 5000")
        self._local.conn = conn
        return conn

    def init_db(self) -> None:
        if self._initialized:
            return
        with self._init_lock:
            if self._initialized:
                return
            logger.info("[STORAGE] Initializing SQLite leaderboard database at '%s'", self.db_path)
            try:
                with self._connect() as conn:
                    conn.execute(
                        f"""
                        CREATE TABLE IF NOT EXISTS leaderboard_records (
                          id INTEGER PRIMARY KEY AUTOINCREMENT,
                          collection TEXT NOT NULL,
                          payload_json TEXT NOT NULL,
                          created_at TEXT NOT NULL DEFAULT ({_now_utc_sqlite()})
                        )
                        """
                    )
                    conn.execute(
                        "CREATE INDEX IF NOT EXISTS idx_leaderboard_records_collection "
                        "ON leaderboard_records(collection, id)"
                    )
            except sqlite3.Error as exc:
                raise BackingStoreError(str(exc), store="sqlite", operation="init_db") from exc
            self._initialized = True

    def _rows(self, conn: sqlite3.Connection, collection: str) -> list[sqlite3.Row]:
        return conn.execute(
            "SELECT id, payload_json FROM leaderboard_records WHERE collection = ? ORDER BY id ASC",
            (collection,),
        ).fetchall()

    def insert(self, collection: str, record: Record) -> None:
        self.init_db()
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO leaderboard_records (collection, payload_json) VALUES (?, ?)",
                    (collection, _dump(record)),
                )
        except sqlite3.Error as exc:
            raise BackingStoreError(str(exc), store="sqlite", operation="insert") from exc

    def find(self, collection: str, query: Query) -> list[Record]:
        self.init_db()
        try:
            rows = self._rows(self._connect(), collection)
        except sqlite3.Error as exc:
            raise BackingStoreError(str(exc), store="sqlite", operation="find") from exc
        records = [json.loads(row["payload_json"]) for row in rows]
        return [r for r in records if query.matches(r)]

    def delete(self, collection: str, query: Query) -> int:
        self.init_db()
        try:
            with self._connect() as conn:
                if query.is_all:
                    cur = conn.execute(
                        "DELETE FROM leaderboard_records WHERE collection = ?",
                        (collection,),
                    )
                    deleted = int(cur.rowcount or 0)
                else:
                    # Field equality follows Python numeric rules, so match outside SQL.
                    ids = [
                        (row["id"],)
                        for row in self._rows(conn, collection)
                        if query.matches(json.loads(row["payload_json"]))
                    ]
                    conn.executemany("DELETE FROM leaderboard_records WHERE id = ?", ids)
                    deleted = len(ids)
        except sqlite3.Error as exc:
            raise BackingStoreError(str(exc), store="sqlite", operation="delete") from exc
        if deleted:
            logger.debug("[STORAGE] Deleted %d SQLite records from '%s'", deleted, collection)
        return deleted

    def count(self, collection: str, query: Query) -> int:
        if not query.is_all:
            return len(self.find(collection, query))
        self.init_db()
        try:
            row = self._connect().execute(
                "SELECT COUNT(*) AS c FROM leaderboard_records WHERE collection = ?",
                (collection,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise BackingStoreError(str(exc), store="sqlite", operation="count") from exc
        return int(row["c"]) if row else 0

    def close(self) -> None:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None


class PostgresDurableStore(DurableStore):
    def __init__(self, database_url: str) -> None:
        self.database_url = database_url
        self._initialized = False
        self._ensure_driver()

    @staticmethod
    def _ensure_driver() -> None:
        try:
            import psycopg  # noqa: F401
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RuntimeError(
                "Postgres backend requires `psycopg`. Install it with: pip install psycopg[binary]"
            ) from exc

    def _connect(self):
        import psycopg
        from psycopg.rows import dict_row

        return psycopg.connect(self.database_url, row_factory=dict_row)

    def _execute(self, operation: str, sql: str, params: tuple[Any, ...], *, fetch: bool = False):
        import psycopg

        self.init_db()
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, params)
                    if fetch:
                        return cur.fetchall()
                    return cur.rowcount
        except psycopg.Error as exc:
            raise BackingStoreError(str(exc), store="postgres", operation=operation) from exc

    def init_db(self) -> None:
        if self._initialized:
            return
        import psycopg

        logger.info("[STORAGE] Initializing Postgres leaderboard tables")
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        CREATE TABLE IF NOT EXISTS leaderboard_records (
                          id BIGSERIAL PRIMARY KEY,
                          collection TEXT NOT NULL,
                          payload JSONB NOT NULL,
                          created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                        )
                        """
                    )
                    cur.execute(
                        "CREATE INDEX IF NOT EXISTS idx_leaderboard_records_collection "
                        "ON leaderboard_records(collection, id)"
                    )
        except psycopg.Error as exc:
            raise BackingStoreError(str(exc), store="postgres", operation="init_db") from exc
        self._initialized = True

    @staticmethod
    def _where(collection: str, query: Query) -> tuple[str, tuple[Any, ...]]:
        if query.is_all:
            return "collection = %s", (collection,)
        # JSONB compares numbers numerically, so 5 and 5.0 match.
        return "collection = %s AND payload -> %s = %s::jsonb", (
            collection,
            query.field,
            json.dumps(query.value),
        )

    def insert(self, collection: str, record: Record) -> None:
        self._execute(
            "insert",
            "INSERT INTO leaderboard_records (collection, payload) VALUES (%s, %s::jsonb)",
            (collection, _dump(record)),
        )

    def find(self, collection: str, query: Query) -> list[Record]:
        clause, params = self._where(collection, query)
        rows = self._execute(
            "find",
            f"SELECT payload FROM leaderboard_records WHERE {clause} ORDER BY id ASC",
            params,
            fetch=True,
        )
        out: list[Record] = []
        for row in rows or []:
            payload = row["payload"]
            out.append(json.loads(payload) if isinstance(payload, str) else dict(payload))
        return out

    def delete(self, collection: str, query: Query) -> int:
        clause, params = self._where(collection, query)
        deleted = self._execute("delete", f"DELETE FROM leaderboard_records WHERE {clause}", params)
        return int(deleted or 0)

    def count(self, collection: str, query: Query) -> int:
        clause, params = self._where(collection, query)
        rows = self._execute(
            "count",
            f"SELECT COUNT(*) AS c FROM leaderboard_records WHERE {clause}",
            params,
            fetch=True,
        )
        return int(rows[0]["c"]) if rows else 0

    def close(self) -> None:
        return None


def build_durable_store(database_url: Optional[str]) -> Optional[DurableStore]:
    if not database_url:
        return None
    if database_url.startswith(("postgres://", "postgresql://")):
        return PostgresDurableStore(database_url)
    if database_url.startswith("sqlite:///"):
        return SQLiteDurableStore(Path(database_url[len("sqlite:///") :]))
    raise ValueError(f"Unsupported DATABASE_URL scheme: {database_url.split(':', 1)[0]}")
