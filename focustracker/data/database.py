"""
SQLite database initialization and connection management.

Single responsibility: own the connection and create tables.
All actual queries live in Repository.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Default DB lives at the repo root
DEFAULT_DB_PATH = Path(__file__).resolve().parent.parent.parent / "focus_tracker.db"

SCHEMA_SQL = """
-- Sessions ------------------------------------------------------------------
CREATE TABLE IF NOT EXISTS sessions (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    start_time      TEXT    NOT NULL,
    end_time        TEXT,
    duration        REAL    NOT NULL DEFAULT 0,
    is_valid        INTEGER NOT NULL DEFAULT 0,
    session_type    TEXT    NOT NULL DEFAULT 'focus',
    activity_label  TEXT,
    category        TEXT,
    target_duration REAL,
    notes           TEXT
);

-- Usage records ---------------------------------------------------------------
CREATE TABLE IF NOT EXISTS usage_records (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    activity_identifier TEXT    NOT NULL,
    activity_name       TEXT    NOT NULL DEFAULT '',
    category_hint       TEXT,
    start_time          TEXT    NOT NULL,
    end_time            TEXT,
    duration            REAL    NOT NULL DEFAULT 0,
    scene_tag           TEXT,
    is_productive_time  INTEGER NOT NULL DEFAULT 0,
    interruption_count  INTEGER NOT NULL DEFAULT 0
);

-- Tags ----------------------------------------------------------------------
CREATE TABLE IF NOT EXISTS tags (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT    NOT NULL UNIQUE,
    color       TEXT    NOT NULL DEFAULT '#007AFF',
    is_default  INTEGER NOT NULL DEFAULT 0,
    usage_count INTEGER NOT NULL DEFAULT 0,
    created_at  TEXT    NOT NULL
);

-- Activity identifiers learned per tag (a set, one row per member) ----------
CREATE TABLE IF NOT EXISTS tag_activities (
    tag_id              INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
    activity_identifier TEXT    NOT NULL,
    PRIMARY KEY (tag_id, activity_identifier)
);

-- Settings (singleton row) ---------------------------------------------------
CREATE TABLE IF NOT EXISTS settings (
    id                      INTEGER PRIMARY KEY CHECK (id = 1),
    daily_focus_goal        REAL    NOT NULL,
    daily_usage_goal        REAL    NOT NULL,
    sleep_start             TEXT    NOT NULL,
    sleep_end               TEXT    NOT NULL,
    lunch_enabled           INTEGER NOT NULL DEFAULT 0,
    lunch_start             TEXT    NOT NULL,
    lunch_end               TEXT    NOT NULL,
    flexible_weekend_sleep  INTEGER NOT NULL DEFAULT 0,
    use_local_time_zone     INTEGER NOT NULL DEFAULT 1,
    time_zone_offset_hours  REAL    NOT NULL DEFAULT 0,
    notifications_enabled   INTEGER NOT NULL DEFAULT 1
);

-- Focus-hour milestones already announced ----------------------------------
CREATE TABLE IF NOT EXISTS notified_milestones (
    hours       INTEGER PRIMARY KEY,
    notified_at TEXT    NOT NULL
);

-- Indexes for common queries -------------------------------------------------
CREATE INDEX IF NOT EXISTS idx_sessions_start       ON sessions(start_time);
CREATE INDEX IF NOT EXISTS idx_sessions_valid       ON sessions(is_valid);
CREATE INDEX IF NOT EXISTS idx_usage_start          ON usage_records(start_time);
CREATE INDEX IF NOT EXISTS idx_usage_activity       ON usage_records(activity_identifier);
CREATE INDEX IF NOT EXISTS idx_tag_activities_ident ON tag_activities(activity_identifier);
"""


def open_connection(db_path: Path | str) -> sqlite3.Connection:
    """Open a connection with row access by name and the schema in place."""
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row          # dict-like rows
    conn.execute("PRAGMA foreign_keys=ON")
    conn.executescript(SCHEMA_SQL)
    conn.commit()
    return conn


class Database:
    """Thin wrapper around a SQLite connection."""

    def __init__(self, db_path: Optional[Path] = None) -> None:
        self.db_path = db_path or DEFAULT_DB_PATH
        self.conn: Optional[sqlite3.Connection] = None

    # -- lifecycle -----------------------------------------------------------

    def connect(self) -> sqlite3.Connection:
        """Open (or return existing) connection and ensure schema exists."""
        if self.conn is not None:
            return self.conn
        logger.info("Connecting to SQLite at %s", self.db_path)
        self.conn = open_connection(self.db_path)
        if str(self.db_path) != ":memory:":
            self.conn.execute("PRAGMA journal_mode=WAL")
        logger.info("Database schema ensured.")
        return self.conn

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.info("Database connection closed.")


# ---------------------------------------------------------------------------
# Explanation
# ---------------------------------------------------------------------------
# What this file does:
#   Manages the SQLite connection and makes sure all tables exist on startup.
#
# Key pieces:
#   - SCHEMA_SQL: the full DDL. CREATE IF NOT EXISTS makes it safe to run on
#     every launch. Four logical collections (sessions, usage_records, tags,
#     settings) plus tag_activities, the set of identifiers learned per tag.
#   - The settings table can only ever hold the row with id = 1.
#   - open_connection(): shared by Database and the test fixtures.
#
# Data flow:
#   App start -> Database.connect() -> tables created -> Repository uses conn
