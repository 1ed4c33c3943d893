"""
Listening history, bookmarks and preferences.

Everything here is a progress mirror: the playback scheduler decides what
happens, this store only remembers it. Session updates are plain overwrites
(last write wins); practice counts accumulate per user, verse and day.
"""

from __future__ import annotations

import logging
import sqlite3
from collections import Counter
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any

from pydantic import ValidationError

from tilawa.core.ledger import Clock
from tilawa.core.verses import is_valid_verse, normalize_range
from tilawa.core.weekly import week_start_date
from tilawa.exceptions import (
    BookmarkNotFound,
    InvalidSetting,
    InvalidVerseRange,
    NotAuthorized,
    RecitationSessionNotFound,
)
from tilawa.models import (
    Bookmark,
    PracticeCount,
    PracticeDay,
    PracticedAyah,
    RecitationSession,
    SessionStats,
    UserPreferences,
    WeeklyListening,
)
from tilawa.models.surah import SURAH_AYAH_COUNTS, SURAH_NAMES
from tilawa.storage import Database, to_db_time, utc_now

logger = logging.getLogger(__name__)

PREFERENCE_FIELDS = ("pause_duration", "auto_repeat", "auto_repeat_ayah", "last_surah", "last_ayah")


class HistoryStore:
    """
    Per-user listening records.

    Example:
        history = HistoryStore(db)
        session = history.create_session(user_id=1, surah_id=1, start_ayah=1, end_ayah=7)
        history.update_session(session.id, completed_ayahs=3, session_time=42)
        history.session_stats(user_id=1)
    """

    def __init__(self, db: Database, clock: Clock | None = None):
        self.db = db
        self._clock = clock or utc_now

    def now(self) -> datetime:
        moment = self._clock()
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment

    # ============ Sessions ============

    def create_session(self, user_id: int, surah_id: int, start_ayah: int | None = None,
                       end_ayah: int | None = None, pause_duration: int = 5) -> RecitationSession:
        if surah_id not in SURAH_AYAH_COUNTS:
            raise InvalidVerseRange(f"Unknown surah {surah_id}", {"surah_id": surah_id})
        if not 0 <= pause_duration <= 30:
            raise InvalidSetting(
                "Pause duration must be between 0 and 30 seconds",
                {"pause_duration": pause_duration},
            )
        start_ayah, end_ayah = normalize_range(SURAH_AYAH_COUNTS[surah_id], start_ayah, end_ayah)

        session_id = self.db.execute(
            """
            INSERT INTO recitation_sessions(user_id, surah_id, start_ayah, end_ayah,
                                            pause_duration, created_at)
            VALUES(?,?,?,?,?,?)
            """,
            (user_id, surah_id, start_ayah, end_ayah, pause_duration, to_db_time(self.now())),
        )
        logger.debug("Session %s started for user %s on surah %s", session_id, user_id, surah_id)
        return self.get_session(session_id)

    def update_session(self, session_id: int, completed_ayahs: int | None = None,
                       session_time: int | None = None,
                       is_completed: bool | None = None) -> RecitationSession:
        changes: dict[str, Any] = {}
        if completed_ayahs is not None:
            changes["completed_ayahs"] = max(0, int(completed_ayahs))
        if session_time is not None:
            changes["session_time"] = max(0, int(session_time))
        if is_completed is not None:
            changes["is_completed"] = int(bool(is_completed))

        with self.db.transaction() as conn:
            if conn.execute("SELECT 1 FROM recitation_sessions WHERE id = ?",
                            (session_id,)).fetchone() is None:
                raise RecitationSessionNotFound(session_id)
            if changes:
                assignments = ", ".join(f"{column} = ?" for column in changes)
                conn.execute(
                    f"UPDATE recitation_sessions SET {assignments} WHERE id = ?",
                    (*changes.values(), session_id),
                )
        return self.get_session(session_id)

    def get_session(self, session_id: int) -> RecitationSession:
        row = self.db.fetch_one("SELECT * FROM recitation_sessions WHERE id = ?", (session_id,))
        if row is None:
            raise RecitationSessionNotFound(session_id)
        return RecitationSession.model_validate(dict(row))

    def user_sessions(self, user_id: int, limit: int | None = None) -> list[RecitationSession]:
        sql = "SELECT * FROM recitation_sessions WHERE user_id = ? ORDER BY created_at DESC, id DESC"
        params: tuple = (user_id,)
        if limit is not None:
            sql += " LIMIT ?"
            params = (user_id, limit)
        return [RecitationSession.model_validate(dict(r)) for r in self.db.fetch_all(sql, params)]

    def session_stats(self, user_id: int, now: datetime | None = None) -> SessionStats:
        """
        Totals over all of a user's sessions.

        ``weekly_progress`` holds listening seconds for each of the last
        seven days, oldest first, so index 6 is today.
        """
        sessions = self.user_sessions(user_id)
        if not sessions:
            return SessionStats()

        now = now or self.now()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        total_time = sum(s.session_time for s in sessions)

        surah_counts = Counter(s.surah_id for s in sessions)
        top_surah = surah_counts.most_common(1)[0][0]

        weekly_progress = [0] * 7
        for session in sessions:
            age = now - session.created_at
            if age < timedelta(0):
                continue
            day_index = age // timedelta(days=1)
            if day_index < 7:
                weekly_progress[6 - day_index] += session.session_time

        return SessionStats(
            total_sessions=len(sessions),
            total_time=total_time,
            total_ayahs=sum(s.completed_ayahs for s in sessions),
            completed_sessions=sum(1 for s in sessions if s.is_completed),
            average_session_time=round(total_time / len(sessions)),
            most_listened_surah=SURAH_NAMES[top_surah],
            weekly_progress=weekly_progress,
        )

    def weekly_history(self, user_id: int, tz: tzinfo | None = None) -> list[WeeklyListening]:
        """
        Listening time per Friday-to-Thursday week, newest week first.

        Weeks start at Friday 00:00 in ``tz``, the system's local zone when
        omitted.
        """
        weeks: dict[date, WeeklyListening] = {}
        for session in self.user_sessions(user_id):
            key = week_start_date(session.created_at.astimezone(tz))
            bucket = weeks.setdefault(key, WeeklyListening(week_start=key))
            bucket.session_count += 1
            bucket.total_time += session.session_time
        return sorted(weeks.values(), key=lambda w: w.week_start, reverse=True)

    # ============ Practice log ============

    def log_practice(self, user_id: int, surah_id: int, ayah_number: int, duration: float = 0) -> None:
        """Count one more listen of a verse for today."""
        if not is_valid_verse(surah_id, ayah_number):
            raise InvalidVerseRange(
                f"Unknown verse {surah_id}:{ayah_number}",
                {"surah_id": surah_id, "ayah_number": ayah_number},
            )
        now = self.now()
        self.db.execute(
            """
            INSERT INTO ayah_practice_log(user_id, surah_id, ayah_number, practice_date,
                                          listen_count, total_duration, updated_at)
            VALUES(?,?,?,?, 1, ?, ?)
            ON CONFLICT(user_id, surah_id, ayah_number, practice_date) DO UPDATE SET
                listen_count = listen_count + 1,
                total_duration = total_duration + excluded.total_duration,
                updated_at = excluded.updated_at
            """,
            (user_id, surah_id, ayah_number, now.date().isoformat(),
             int(round(duration)), to_db_time(now)),
        )

    def heatmap(self, user_id: int) -> list[PracticeCount]:
        """Total listens per verse across all days."""
        rows = self.db.fetch_all(
            """
            SELECT surah_id, ayah_number, SUM(listen_count) AS count,
                   MAX(practice_date) AS last_practiced
            FROM ayah_practice_log WHERE user_id = ?
            GROUP BY surah_id, ayah_number
            ORDER BY surah_id, ayah_number
            """,
            (user_id,),
        )
        return [PracticeCount.model_validate(dict(r)) for r in rows]

    def surah_progress(self, user_id: int, surah_id: int) -> list[PracticeCount]:
        return [p for p in self.heatmap(user_id) if p.surah_id == surah_id]

    def calendar(self, user_id: int, year: int, month: int) -> list[PracticeDay]:
        """Listens per day of one month."""
        first = date(year, month, 1)
        after = date(year + month // 12, month % 12 + 1, 1)
        rows = self.db.fetch_all(
            """
            SELECT practice_date AS day, SUM(listen_count) AS count,
                   SUM(total_duration) AS duration
            FROM ayah_practice_log
            WHERE user_id = ? AND practice_date >= ? AND practice_date < ?
            GROUP BY practice_date
            ORDER BY practice_date
            """,
            (user_id, first.isoformat(), after.isoformat()),
        )
        return [PracticeDay.model_validate(dict(r)) for r in rows]

    def most_practiced(self, user_id: int, limit: int = 10) -> list[PracticedAyah]:
        rows = self.db.fetch_all(
            """
            SELECT surah_id, ayah_number, SUM(listen_count) AS count
            FROM ayah_practice_log WHERE user_id = ?
            GROUP BY surah_id, ayah_number
            ORDER BY count DESC, surah_id, ayah_number
            LIMIT ?
            """,
            (user_id, limit),
        )
        return [
            PracticedAyah(surah_id=r["surah_id"], surah_name=SURAH_NAMES[r["surah_id"]],
                          ayah_number=r["ayah_number"], count=r["count"])
            for r in rows
        ]

    # ============ Bookmarks ============

    def add_bookmark(self, user_id: int, surah_id: int, ayah_number: int,
                     notes: str | None = None) -> Bookmark:
        """Bookmark a verse. Bookmarking it again returns the existing bookmark."""
        if not is_valid_verse(surah_id, ayah_number):
            raise InvalidVerseRange(
                f"Unknown verse {surah_id}:{ayah_number}",
                {"surah_id": surah_id, "ayah_number": ayah_number},
            )
        with self.db.transaction() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO bookmarked_ayahs(user_id, surah_id, ayah_number, notes, created_at)
                    VALUES(?,?,?,?,?)
                    """,
                    (user_id, surah_id, ayah_number, notes, to_db_time(self.now())),
                )
            except sqlite3.IntegrityError:
                logger.debug("Verse %s:%s already bookmarked by %s", surah_id, ayah_number, user_id)
            row = conn.execute(
                "SELECT * FROM bookmarked_ayahs WHERE user_id = ? AND surah_id = ? AND ayah_number = ?",
                (user_id, surah_id, ayah_number),
            ).fetchone()
        return Bookmark.model_validate(dict(row))

    def bookmarks(self, user_id: int) -> list[Bookmark]:
        rows = self.db.fetch_all(
            "SELECT * FROM bookmarked_ayahs WHERE user_id = ? ORDER BY created_at DESC, id DESC",
            (user_id,),
        )
        return [Bookmark.model_validate(dict(r)) for r in rows]

    def update_bookmark(self, bookmark_id: int, user_id: int, notes: str | None) -> Bookmark:
        with self.db.transaction() as conn:
            self._owned_bookmark(conn, bookmark_id, user_id)
            conn.execute("UPDATE bookmarked_ayahs SET notes = ? WHERE id = ?", (notes, bookmark_id))
            row = conn.execute("SELECT * FROM bookmarked_ayahs WHERE id = ?", (bookmark_id,)).fetchone()
        return Bookmark.model_validate(dict(row))

    def delete_bookmark(self, bookmark_id: int, user_id: int) -> None:
        with self.db.transaction() as conn:
            self._owned_bookmark(conn, bookmark_id, user_id)
            conn.execute("DELETE FROM bookmarked_ayahs WHERE id = ?", (bookmark_id,))

    @staticmethod
    def _owned_bookmark(conn: sqlite3.Connection, bookmark_id: int, user_id: int) -> sqlite3.Row:
        row = conn.execute("SELECT * FROM bookmarked_ayahs WHERE id = ?", (bookmark_id,)).fetchone()
        if row is None:
            raise BookmarkNotFound(bookmark_id)
        if row["user_id"] != user_id:
            raise NotAuthorized(
                "Bookmarks can only be changed by their owner",
                {"bookmark_id": bookmark_id, "user_id": user_id},
            )
        return row

    # ============ Preferences ============

    def preferences(self, user_id: int) -> UserPreferences:
        """Stored preferences, created with defaults on first access."""
        self.db.execute("INSERT OR IGNORE INTO user_preferences(user_id) VALUES(?)", (user_id,))
        row = self.db.fetch_one("SELECT * FROM user_preferences WHERE user_id = ?", (user_id,))
        return UserPreferences.model_validate(dict(row))

    def update_preferences(self, user_id: int, **changes: Any) -> UserPreferences:
        unknown = set(changes) - set(PREFERENCE_FIELDS)
        if unknown:
            raise InvalidSetting(f"Unknown preferences: {', '.join(sorted(unknown))}")

        current = self.preferences(user_id)
        try:
            updated = UserPreferences.model_validate({**current.model_dump(), **changes})
        except ValidationError as e:
            raise InvalidSetting(f"Invalid preferences: {e.errors()[0]['msg']}",
                                 {"fields": sorted(changes)}) from e
        if not is_valid_verse(updated.last_surah, updated.last_ayah):
            raise InvalidSetting(
                f"Unknown verse {updated.last_surah}:{updated.last_ayah}",
                {"last_surah": updated.last_surah, "last_ayah": updated.last_ayah},
            )

        self.db.execute(
            """
            UPDATE user_preferences
            SET pause_duration = ?, auto_repeat = ?, auto_repeat_ayah = ?,
                last_surah = ?, last_ayah = ?
            WHERE user_id = ?
            """,
            (updated.pause_duration, int(updated.auto_repeat), int(updated.auto_repeat_ayah),
             updated.last_surah, updated.last_ayah, user_id),
        )
        return updated
