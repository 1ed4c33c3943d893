"""
SQLite helpers and schema initialization.

A ``Database`` is created once by the composition root and handed to the
ledger, transfer protocol and history store. Every call opens a short-lived
connection; ``transaction()`` takes the write lock up front (BEGIN
IMMEDIATE) so a check-then-write sequence cannot interleave with another
writer, even from a different thread or process.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from tilawa.config import TilawaSettings, get_settings

logger = logging.getLogger(__name__)

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS communities (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        admin_id INTEGER NOT NULL,
        max_members INTEGER NOT NULL DEFAULT 30 CHECK(max_members BETWEEN 1 AND 30),
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS community_members (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        community_id INTEGER NOT NULL,
        member_id INTEGER NOT NULL,
        joined_at TEXT NOT NULL,
        UNIQUE(community_id, member_id),
        FOREIGN KEY(community_id) REFERENCES communities(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS juz_assignments (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        community_id INTEGER NOT NULL,
        juz_number INTEGER NOT NULL CHECK(juz_number BETWEEN 1 AND 30),
        member_id INTEGER NOT NULL,
        assigned_at TEXT NOT NULL,
        completion_percentage REAL NOT NULL DEFAULT 0
            CHECK(completion_percentage BETWEEN 0 AND 100),
        UNIQUE(community_id, juz_number),
        UNIQUE(community_id, member_id),
        FOREIGN KEY(community_id) REFERENCES communities(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS juz_transfer_requests (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        community_id INTEGER NOT NULL,
        juz_number INTEGER NOT NULL CHECK(juz_number BETWEEN 1 AND 30),
        from_member_id INTEGER NOT NULL,
        to_member_id INTEGER NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending'
            CHECK(status IN ('pending','accepted','declined')),
        created_at TEXT NOT NULL,
        resolved_at TEXT,
        FOREIGN KEY(community_id) REFERENCES communities(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS recitation_sessions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        surah_id INTEGER NOT NULL,
        start_ayah INTEGER NOT NULL,
        end_ayah INTEGER NOT NULL,
        pause_duration INTEGER NOT NULL DEFAULT 5,
        completed_ayahs INTEGER NOT NULL DEFAULT 0,
        session_time INTEGER NOT NULL DEFAULT 0,
        is_completed INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS ayah_practice_log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        surah_id INTEGER NOT NULL,
        ayah_number INTEGER NOT NULL,
        practice_date TEXT NOT NULL,
        listen_count INTEGER NOT NULL DEFAULT 0,
        total_duration INTEGER NOT NULL DEFAULT 0,
        updated_at TEXT NOT NULL,
        UNIQUE(user_id, surah_id, ayah_number, practice_date)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS bookmarked_ayahs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        surah_id INTEGER NOT NULL,
        ayah_number INTEGER NOT NULL,
        notes TEXT,
        created_at TEXT NOT NULL,
        UNIQUE(user_id, surah_id, ayah_number)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_preferences (
        user_id INTEGER PRIMARY KEY,
        pause_duration INTEGER NOT NULL DEFAULT 5 CHECK(pause_duration BETWEEN 0 AND 30),
        auto_repeat INTEGER NOT NULL DEFAULT 0,
        auto_repeat_ayah INTEGER NOT NULL DEFAULT 0,
        last_surah INTEGER NOT NULL DEFAULT 1,
        last_ayah INTEGER NOT NULL DEFAULT 1
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_transfer_from ON juz_transfer_requests(from_member_id)",
    "CREATE INDEX IF NOT EXISTS idx_transfer_to ON juz_transfer_requests(to_member_id)",
    "CREATE INDEX IF NOT EXISTS idx_sessions_user ON recitation_sessions(user_id)",
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_db_time(moment: datetime) -> str:
    """Store timestamps as ISO-8601 UTC strings."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="seconds")


class Database:
    """
    Thin wrapper over a SQLite file.

    Example:
        db = Database(Path("tilawa.db"))
        db.initialize()
        with db.transaction() as conn:
            conn.execute("UPDATE juz_assignments SET ...")
    """

    def __init__(self, path: Path | str | None = None, timeout: float | None = None,
                 settings: TilawaSettings | None = None):
        settings = settings or get_settings()
        self.path = Path(path) if path is not None else settings.database_path
        self.timeout = timeout if timeout is not None else settings.database_timeout

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self.path,
            timeout=self.timeout,
            check_same_thread=False,
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run statements under the database write lock.

        Commits when the block exits normally, rolls back on any exception
        and re-raises it.
        """
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    def execute(self, sql: str, params: tuple = ()) -> int:
        with self.transaction() as conn:
            cur = conn.execute(sql, params)
            return cur.lastrowid

    def fetch_one(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        conn = self._connect()
        try:
            return conn.execute(sql, params).fetchone()
        finally:
            conn.close()

    def fetch_all(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        conn = self._connect()
        try:
            return conn.execute(sql, params).fetchall()
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create tables and indexes if they do not exist yet."""
        if self.path.parent and not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)

        conn = self._connect()
        try:
            conn.execute("PRAGMA journal_mode = WAL")
            for statement in SCHEMA:
                conn.execute(statement)
        finally:
            conn.close()
        logger.debug("Database ready at %s", self.path)
