"""SQLite file that keeps rolls saved against document positions."""
from __future__ import annotations

import contextlib
import importlib
import logging
import pathlib
import sqlite3
from typing import Generator

logger = logging.getLogger(__name__)

# Applied in order; a migration's version is its 1-based position here.
_MIGRATIONS = [
    "001_initial",
]


class SchemaError(RuntimeError):
    """The results file was written by a newer release with unknown migrations."""


class Database:
    """Connection owner and migration runner for the saved-results store.

    ``db_path`` may be ``":memory:"``; otherwise its parent directory is
    created on first use.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._connection: sqlite3.Connection | None = None
        if not self.in_memory:
            pathlib.Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    @property
    def in_memory(self) -> bool:
        return self.db_path == ":memory:"

    @property
    def version(self) -> int:
        """Highest applied migration, 0 for a fresh file."""
        conn = self._get_raw_connection()
        conn.execute("CREATE TABLE IF NOT EXISTS schema_version (version INTEGER PRIMARY KEY)")
        row = conn.execute("SELECT max(version) FROM schema_version").fetchone()
        return row[0] or 0

    def initialize(self) -> list[str]:
        """Bring the results schema up to date. Returns the migrations applied now.

        Raises:
            SchemaError: If the file records a version this release does not know.
        """
        current = self.version
        if current > len(_MIGRATIONS):
            raise SchemaError(
                f"{self.db_path} is at schema version {current}, "
                f"this release only knows {len(_MIGRATIONS)}"
            )
        conn = self._get_raw_connection()
        applied: list[str] = []
        for version, name in enumerate(_MIGRATIONS, 1):
            if version <= current:
                continue
            mod = importlib.import_module(f"dice_roller.storage.migrations.{name}")
            mod.upgrade(conn)
            conn.execute("INSERT INTO schema_version VALUES (?)", (version,))
            applied.append(name)
            logger.info("Applied migration %s to %s", name, self.db_path)
        conn.commit()
        return applied

    def _get_raw_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            self._connection = sqlite3.connect(self.db_path)
            self._connection.row_factory = sqlite3.Row
            if not self.in_memory:
                self._connection.execute("PRAGMA journal_mode=WAL")
        return self._connection

    @contextlib.contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Yield the shared connection; commit on success, roll back on error."""
        conn = self._get_raw_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None
