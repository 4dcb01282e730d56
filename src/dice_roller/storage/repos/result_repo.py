"""Repository for rolls saved against a document position."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from dice_roller.storage.database import Database
from dice_roller.utils import format_position, load_payload

logger = logging.getLogger(__name__)


class ResultRepo:
    """CRUD for roll_results, keyed by document path, line and index on the line."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def save(self, path: str, line: int, index: int, payload: dict[str, Any]) -> None:
        """Insert or replace the saved result at a position."""
        with self.db.get_connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO roll_results "
                "(path, line, idx, notation, kind, payload, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    path,
                    line,
                    index,
                    payload.get("notation", ""),
                    payload.get("type", ""),
                    json.dumps(payload),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )

    def get(self, path: str, line: int, index: int) -> dict | None:
        with self.db.get_connection() as conn:
            row = conn.execute(
                "SELECT payload FROM roll_results WHERE path = ? AND line = ? AND idx = ?",
                (path, line, index),
            ).fetchone()
        return load_payload(row["payload"]) if row else None

    def for_document(self, path: str) -> dict[int, dict[int, dict]]:
        """Return ``{line: {index: payload}}`` for one document."""
        with self.db.get_connection() as conn:
            rows = conn.execute(
                "SELECT line, idx, payload FROM roll_results WHERE path = ? "
                "ORDER BY line, idx",
                (path,),
            ).fetchall()
        results: dict[int, dict[int, dict]] = {}
        for r in rows:
            payload = load_payload(r["payload"])
            if payload is None:
                logger.warning("Skipping unreadable result at %s", format_position(path, r["line"], r["idx"]))
                continue
            results.setdefault(r["line"], {})[r["idx"]] = payload
        return results

    def documents(self) -> list[str]:
        with self.db.get_connection() as conn:
            rows = conn.execute(
                "SELECT DISTINCT path FROM roll_results ORDER BY path"
            ).fetchall()
        return [r["path"] for r in rows]

    def clear_line(self, path: str, line: int) -> int:
        """Delete every saved result on a line. Returns the number removed."""
        with self.db.get_connection() as conn:
            cur = conn.execute(
                "DELETE FROM roll_results WHERE path = ? AND line = ?", (path, line)
            )
        return cur.rowcount

    def clear_document(self, path: str) -> int:
        with self.db.get_connection() as conn:
            cur = conn.execute("DELETE FROM roll_results WHERE path = ?", (path,))
        return cur.rowcount
