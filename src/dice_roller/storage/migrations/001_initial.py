from __future__ import annotations

import sqlite3

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS roll_results (
    path        TEXT NOT NULL,
    line        INTEGER NOT NULL,
    idx         INTEGER NOT NULL,
    notation    TEXT NOT NULL,
    kind        TEXT NOT NULL,
    payload     TEXT NOT NULL,
    created_at  TEXT NOT NULL,
    PRIMARY KEY (path, line, idx)
);

CREATE INDEX IF NOT EXISTS idx_roll_results_path ON roll_results(path);
"""


def upgrade(conn: sqlite3.Connection) -> None:
    """Create the roll result table."""
    conn.executescript(_SCHEMA_SQL)
