#!/usr/bin/env python3
"""Load a JSON array of entries into a durable leaderboard collection.

The collection is read back through a cache-first backend, so the printed
ranking is exactly what the API serves after a cold start.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import leaderboard entries from JSON")
    parser.add_argument("input", help="Path to a JSON file holding a list of entry objects")
    parser.add_argument("--board", required=True, help="Leaderboard / collection name")
    parser.add_argument("--score-field", default="score", help="Numeric field used for ranking")
    parser.add_argument(
        "--identity-field",
        default="",
        help="Upsert by this field (omit to append every entry)",
    )
    parser.add_argument(
        "--database-url",
        default="sqlite:///data/leaderboards.db",
        help="sqlite:///path or postgresql:// URL of the durable store",
    )
    parser.add_argument("--replace", action="store_true", help="Clear the collection before importing")
    parser.add_argument("--top", type=int, default=10, help="How many ranked entries to print")
    parser.add_argument("--verbose", action="store_true", help="Keep storage logs enabled")
    return parser.parse_args()


def _load_entries(path: Path) -> list[dict[str, Any]]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
        raise SystemExit(f"{path} must contain a JSON array of objects")
    return payload


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    from packages.leaderboard_core.ranking import Leaderboard
    from packages.leaderboard_core.storage import CacheFirstStorage, LocalMapCache, build_durable_store

    entries = _load_entries(Path(args.input))
    durable_store = build_durable_store(args.database_url)
    if durable_store is None:
        raise SystemExit("--database-url is required")

    board = (
        Leaderboard.create(args.board)
        .score_field(args.score_field)
        .identity_field(args.identity_field or None)
        .with_storage(CacheFirstStorage(LocalMapCache(), args.board, durable_store=durable_store))
        .build()
    )
    if args.replace:
        board.clear()
    for item in entries:
        board.submit(item)

    print(json.dumps(
        {
            "board": args.board,
            "imported": len(entries),
            "size": board.size(),
            "top": [e.to_dict() for e in board.top(max(0, args.top))],
        },
        indent=2,
    ))
    board.close()
    close = getattr(durable_store, "close", None)
    if callable(close):
        close()


if __name__ == "__main__":
    main()
