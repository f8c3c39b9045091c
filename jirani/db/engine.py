"""SQLite connection and table creation."""
from __future__ import annotations

import sqlite3
from pathlib import Path

from jirani.config import DB_PATH

_DDL = """
CREATE TABLE IF NOT EXISTS conversations (
    sender_id   TEXT PRIMARY KEY,
    state       TEXT NOT NULL,
    phase       TEXT NOT NULL DEFAULT 'greeting',
    updated_at  TEXT NOT NULL DEFAULT (datetime('now','localtime'))
);

CREATE TABLE IF NOT EXISTS incidents (
    id              TEXT PRIMARY KEY,
    type            TEXT NOT NULL,
    severity        INTEGER NOT NULL,
    location        TEXT NOT NULL DEFAULT '',
    description     TEXT NOT NULL DEFAULT '',
    event_timestamp TEXT NOT NULL,
    longitude       REAL,
    latitude        REAL,
    from_phone      TEXT,
    images          TEXT NOT NULL DEFAULT '[]',
    source          TEXT NOT NULL DEFAULT 'whatsapp',
    created_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_incidents_created_at ON incidents(created_at);
"""


def get_connection(db_path: Path | str | None = None) -> sqlite3.Connection:
    path = str(db_path or DB_PATH)
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    return conn


def init_db(db_path: Path | str | None = None) -> None:
    conn = get_connection(db_path)
    conn.executescript(_DDL)
    conn.close()
