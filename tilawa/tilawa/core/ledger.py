"""
Juz assignment ledger.

Tracks which member holds which juz in each community. Two invariants hold
at all times and are backed by UNIQUE constraints in storage:

- a juz has at most one holder per community
- a member holds at most one juz per community

Every check-then-write runs inside ``Database.transaction()`` so two members
racing for the same juz get one success and one ``JuzTaken``.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Callable

from tilawa.config import TilawaSettings, get_settings
from tilawa.core.juz import ALL_JUZ, check_juz_number
from tilawa.exceptions import (
    AlreadyHasJuz,
    AlreadyMember,
    AssignmentNotFound,
    CommunityFull,
    CommunityNotFound,
    InvalidInputError,
    JuzTaken,
    ModificationWindowClosed,
    NoJuzAvailable,
    NotAMember,
    NotAuthenticated,
)
from tilawa.models import (
    Community,
    CommunityDetails,
    CommunityMember,
    JuzAssignment,
    JuzSlot,
    MembershipSummary,
)
from tilawa.storage import Database, to_db_time, utc_now

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def require_identity(member_id: int | None) -> int:
    """Current user id, or NotAuthenticated when nobody is logged in."""
    if member_id is None:
        raise NotAuthenticated()
    return member_id


def clamp_percentage(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


class JuzLedger:
    """
    Community directory and juz assignments.

    Example:
        ledger = JuzLedger(db)
        community = ledger.create_community("Family khatmah", admin_id=1)
        assignment = ledger.join(community.id, member_id=2)
        assignment.juz_number  # 1
    """

    def __init__(
        self,
        db: Database,
        settings: TilawaSettings | None = None,
        clock: Clock | None = None,
    ):
        self.db = db
        self._settings = settings or get_settings()
        self._clock = clock or utc_now

    @property
    def modification_window(self) -> timedelta:
        return timedelta(hours=self._settings.modification_window_hours)

    def now(self) -> datetime:
        moment = self._clock()
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment

    # ============ Communities ============

    def create_community(
        self,
        name: str,
        admin_id: int | None,
        description: str = "",
        max_members: int | None = None,
    ) -> Community:
        admin_id = require_identity(admin_id)
        if not name or not name.strip():
            raise InvalidInputError("Community name is required")
        if max_members is None:
            max_members = self._settings.default_max_members
        if not 1 <= max_members <= 30:
            raise InvalidInputError(
                "max_members must be between 1 and 30", {"max_members": max_members}
            )

        community_id = self.db.execute(
            """
            INSERT INTO communities(name, description, admin_id, max_members, created_at)
            VALUES(?,?,?,?,?)
            """,
            (name.strip(), description.strip(), admin_id, max_members, to_db_time(self.now())),
        )
        logger.info("Member %s created community %s (%s)", admin_id, community_id, name)
        return self.get_community(community_id)

    def get_community(self, community_id: int) -> Community:
        row = self.db.fetch_one("SELECT * FROM communities WHERE id = ?", (community_id,))
        if row is None:
            raise CommunityNotFound(community_id)
        return Community.model_validate(dict(row))

    def list_communities(self) -> list[Community]:
        rows = self.db.fetch_all("SELECT * FROM communities ORDER BY id")
        return [Community.model_validate(dict(r)) for r in rows]

    def member_communities(self, member_id: int) -> list[MembershipSummary]:
        rows = self.db.fetch_all(
            """
            SELECT c.*,
                   (SELECT COUNT(*) FROM community_members cm2
                    WHERE cm2.community_id = c.id) AS member_count,
                   ja.juz_number AS juz_number
            FROM community_members cm
            JOIN communities c ON c.id = cm.community_id
            LEFT JOIN juz_assignments ja
                   ON ja.community_id = cm.community_id AND ja.member_id = cm.member_id
            WHERE cm.member_id = ?
            ORDER BY cm.joined_at, c.id
            """,
            (member_id,),
        )
        summaries = []
        for row in rows:
            data = dict(row)
            member_count = data.pop("member_count")
            juz_number = data.pop("juz_number")
            summaries.append(
                MembershipSummary(
                    community=Community.model_validate(data),
                    member_count=member_count,
                    juz_number=juz_number,
                )
            )
        return summaries

    def community_members(self, community_id: int) -> list[CommunityMember]:
        self.get_community(community_id)
        rows = self.db.fetch_all(
            "SELECT * FROM community_members WHERE community_id = ? ORDER BY joined_at, id",
            (community_id,),
        )
        return [CommunityMember.model_validate(dict(r)) for r in rows]

    # ============ Membership ============

    def join(self, community_id: int, member_id: int | None) -> JuzAssignment:
        """
        Add a member and give them the lowest-numbered free juz.

        Raises:
            AlreadyMember: member already belongs to the community
            CommunityFull: member count reached max_members
        """
        member_id = require_identity(member_id)
        now = self.now()

        with self.db.transaction() as conn:
            community = self.load_community(conn, community_id)
            if self.is_member(conn, community_id, member_id):
                raise AlreadyMember(community_id, member_id)

            count = conn.execute(
                "SELECT COUNT(*) AS c FROM community_members WHERE community_id = ?",
                (community_id,),
            ).fetchone()["c"]
            if count >= community.max_members:
                raise CommunityFull(community_id, community.max_members)

            free = self.available_in(conn, community_id)
            if not free:
                raise NoJuzAvailable(community_id)

            conn.execute(
                "INSERT INTO community_members(community_id, member_id, joined_at) VALUES(?,?,?)",
                (community_id, member_id, to_db_time(now)),
            )
            assignment = self._insert_assignment(conn, community_id, free[0], member_id, now)

        logger.info(
            "Member %s joined community %s with juz %s", member_id, community_id, assignment.juz_number
        )
        return assignment

    def leave(self, community_id: int, member_id: int | None) -> None:
        """Remove a member, free their juz and decline their open transfer requests."""
        member_id = require_identity(member_id)
        with self.db.transaction() as conn:
            self.load_community(conn, community_id)
            if not self.is_member(conn, community_id, member_id):
                raise NotAMember(community_id, member_id)

            conn.execute(
                "DELETE FROM juz_assignments WHERE community_id = ? AND member_id = ?",
                (community_id, member_id),
            )
            conn.execute(
                "DELETE FROM community_members WHERE community_id = ? AND member_id = ?",
                (community_id, member_id),
            )
            conn.execute(
                """
                UPDATE juz_transfer_requests SET status = 'declined', resolved_at = ?
                WHERE community_id = ? AND status = 'pending'
                  AND (from_member_id = ? OR to_member_id = ?)
                """,
                (to_db_time(self.now()), community_id, member_id, member_id),
            )
        logger.info("Member %s left community %s", member_id, community_id)

    # ============ Assignments ============

    def claim(self, community_id: int, member_id: int | None, juz_number: int) -> JuzAssignment:
        """
        Take a juz nobody holds.

        Raises:
            NotAuthenticated: no current user
            NotAMember: member has not joined the community
            JuzTaken: someone else holds the juz
            AlreadyHasJuz: member holds a juz already (use reassign or a transfer)
        """
        member_id = require_identity(member_id)
        check_juz_number(juz_number)
        now = self.now()

        with self.db.transaction() as conn:
            self.load_community(conn, community_id)
            if not self.is_member(conn, community_id, member_id):
                raise NotAMember(community_id, member_id)

            holder = self.holder_in(conn, community_id, juz_number)
            if holder is not None:
                if holder.member_id == member_id:
                    raise AlreadyHasJuz(community_id, member_id, juz_number)
                raise JuzTaken(community_id, juz_number)

            current = self.assignment_in(conn, community_id, member_id)
            if current is not None:
                raise AlreadyHasJuz(community_id, member_id, current.juz_number)

            assignment = self._insert_assignment(conn, community_id, juz_number, member_id, now)

        logger.info("Member %s claimed juz %s in community %s", member_id, juz_number, community_id)
        return assignment

    def reassign(self, community_id: int, member_id: int | None, juz_number: int) -> JuzAssignment:
        """
        Swap the member's juz for a free one while the change window is open.

        The assignment keeps its ``assigned_at`` so the window is not
        extended by switching; progress starts again at 0. A member without
        a juz simply takes the free one.
        """
        member_id = require_identity(member_id)
        check_juz_number(juz_number)

        with self.db.transaction() as conn:
            self.load_community(conn, community_id)
            if not self.is_member(conn, community_id, member_id):
                raise NotAMember(community_id, member_id)

            current = self.assignment_in(conn, community_id, member_id)
            if current is None:
                if self.holder_in(conn, community_id, juz_number) is not None:
                    raise JuzTaken(community_id, juz_number)
                return self._insert_assignment(conn, community_id, juz_number, member_id, self.now())
            if not self._within_window(current):
                raise ModificationWindowClosed(community_id, member_id)
            if current.juz_number == juz_number:
                return current

            holder = self.holder_in(conn, community_id, juz_number)
            if holder is not None:
                raise JuzTaken(community_id, juz_number)

            try:
                conn.execute(
                    """
                    UPDATE juz_assignments SET juz_number = ?, completion_percentage = 0
                    WHERE id = ?
                    """,
                    (juz_number, current.id),
                )
            except sqlite3.IntegrityError:
                raise JuzTaken(community_id, juz_number) from None
            self.decline_pending(conn, community_id, [current.juz_number])
            updated = self.assignment_in(conn, community_id, member_id)

        logger.info(
            "Member %s moved from juz %s to %s in community %s",
            member_id, current.juz_number, juz_number, community_id,
        )
        return updated

    def can_modify(self, community_id: int, member_id: int | None) -> bool:
        """True while the member's current assignment is younger than the change window."""
        if member_id is None:
            return False
        assignment = self.assignment_for(community_id, member_id)
        if assignment is None:
            return False
        return self._within_window(assignment)

    def update_progress(self, assignment_id: int, completion_percentage: float) -> JuzAssignment:
        """Store progress for an assignment, clamped to [0, 100]."""
        pct = clamp_percentage(completion_percentage)
        with self.db.transaction() as conn:
            cur = conn.execute(
                "UPDATE juz_assignments SET completion_percentage = ? WHERE id = ?",
                (pct, assignment_id),
            )
            if cur.rowcount == 0:
                raise AssignmentNotFound(assignment_id)
            row = conn.execute(
                "SELECT * FROM juz_assignments WHERE id = ?", (assignment_id,)
            ).fetchone()
        return JuzAssignment.model_validate(dict(row))

    def available_juz(self, community_id: int) -> list[int]:
        """Juz numbers without a holder, ascending."""
        self.get_community(community_id)
        rows = self.db.fetch_all(
            "SELECT juz_number FROM juz_assignments WHERE community_id = ?", (community_id,)
        )
        taken = {r["juz_number"] for r in rows}
        return [j for j in ALL_JUZ if j not in taken]

    def assignment_for(self, community_id: int, member_id: int) -> JuzAssignment | None:
        row = self.db.fetch_one(
            "SELECT * FROM juz_assignments WHERE community_id = ? AND member_id = ?",
            (community_id, member_id),
        )
        return JuzAssignment.model_validate(dict(row)) if row else None

    def holder_of(self, community_id: int, juz_number: int) -> JuzAssignment | None:
        check_juz_number(juz_number)
        row = self.db.fetch_one(
            "SELECT * FROM juz_assignments WHERE community_id = ? AND juz_number = ?",
            (community_id, juz_number),
        )
        return JuzAssignment.model_validate(dict(row)) if row else None

    def assignments(self, community_id: int) -> list[JuzAssignment]:
        rows = self.db.fetch_all(
            "SELECT * FROM juz_assignments WHERE community_id = ? ORDER BY juz_number",
            (community_id,),
        )
        return [JuzAssignment.model_validate(dict(r)) for r in rows]

    def details(self, community_id: int) -> CommunityDetails:
        """Community plus one slot per juz with its derived status."""
        community = self.get_community(community_id)
        by_juz = {a.juz_number: a for a in self.assignments(community_id)}
        return CommunityDetails(
            community=community,
            juz_data=[JuzSlot.from_assignment(j, by_juz.get(j)) for j in ALL_JUZ],
        )

    # ============ Used by the transfer protocol ============

    def hand_over(self, conn: sqlite3.Connection, community_id: int, juz_number: int,
                  to_member_id: int) -> JuzAssignment:
        """
        Give a held juz to another member inside the caller's transaction.

        The receiver's previous juz, if any, is released so they still hold
        exactly one. No change-window or JuzTaken check applies: the holder
        consented to the move.
        """
        previous = self.assignment_in(conn, community_id, to_member_id)
        conn.execute(
            "DELETE FROM juz_assignments WHERE community_id = ? AND juz_number = ?",
            (community_id, juz_number),
        )
        if previous is not None:
            conn.execute("DELETE FROM juz_assignments WHERE id = ?", (previous.id,))
            self.decline_pending(conn, community_id, [previous.juz_number])
        return self._insert_assignment(conn, community_id, juz_number, to_member_id, self.now())

    def decline_pending(self, conn: sqlite3.Connection, community_id: int,
                        juz_numbers: list[int], keep_request_id: int | None = None) -> int:
        """Decline open requests for juz whose holder just changed."""
        if not juz_numbers:
            return 0
        marks = ",".join("?" * len(juz_numbers))
        cur = conn.execute(
            f"""
            UPDATE juz_transfer_requests SET status = 'declined', resolved_at = ?
            WHERE community_id = ? AND status = 'pending' AND juz_number IN ({marks})
              AND id != ?
            """,
            (to_db_time(self.now()), community_id, *juz_numbers, keep_request_id or 0),
        )
        return cur.rowcount

    # ============ Helpers bound to an open transaction ============

    def _within_window(self, assignment: JuzAssignment) -> bool:
        return self.now() - assignment.assigned_at < self.modification_window

    def load_community(self, conn: sqlite3.Connection, community_id: int) -> Community:
        row = conn.execute("SELECT * FROM communities WHERE id = ?", (community_id,)).fetchone()
        if row is None:
            raise CommunityNotFound(community_id)
        return Community.model_validate(dict(row))

    @staticmethod
    def is_member(conn: sqlite3.Connection, community_id: int, member_id: int) -> bool:
        row = conn.execute(
            "SELECT 1 FROM community_members WHERE community_id = ? AND member_id = ?",
            (community_id, member_id),
        ).fetchone()
        return row is not None

    @staticmethod
    def assignment_in(conn: sqlite3.Connection, community_id: int, member_id: int) -> JuzAssignment | None:
        row = conn.execute(
            "SELECT * FROM juz_assignments WHERE community_id = ? AND member_id = ?",
            (community_id, member_id),
        ).fetchone()
        return JuzAssignment.model_validate(dict(row)) if row else None

    @staticmethod
    def holder_in(conn: sqlite3.Connection, community_id: int, juz_number: int) -> JuzAssignment | None:
        row = conn.execute(
            "SELECT * FROM juz_assignments WHERE community_id = ? AND juz_number = ?",
            (community_id, juz_number),
        ).fetchone()
        return JuzAssignment.model_validate(dict(row)) if row else None

    @staticmethod
    def available_in(conn: sqlite3.Connection, community_id: int) -> list[int]:
        rows = conn.execute(
            "SELECT juz_number FROM juz_assignments WHERE community_id = ?", (community_id,)
        ).fetchall()
        taken = {r["juz_number"] for r in rows}
        return [j for j in ALL_JUZ if j not in taken]

    @staticmethod
    def _insert_assignment(conn: sqlite3.Connection, community_id: int, juz_number: int,
                           member_id: int, now: datetime) -> JuzAssignment:
        try:
            cur = conn.execute(
                """
                INSERT INTO juz_assignments(community_id, juz_number, member_id, assigned_at,
                                            completion_percentage)
                VALUES(?,?,?,?,0)
                """,
                (community_id, juz_number, member_id, to_db_time(now)),
            )
        except sqlite3.IntegrityError:
            raise JuzTaken(community_id, juz_number) from None
        row = conn.execute("SELECT * FROM juz_assignments WHERE id = ?", (cur.lastrowid,)).fetchone()
        return JuzAssignment.model_validate(dict(row))
