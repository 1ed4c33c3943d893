"""
Unit tests for the juz assignment ledger.
"""

import threading

import pytest
from tilawa.exceptions import (
    AlreadyHasJuz,
    AlreadyMember,
    AssignmentNotFound,
    CommunityFull,
    CommunityNotFound,
    InvalidInputError,
    InvalidJuzNumber,
    JuzTaken,
    ModificationWindowClosed,
    NoJuzAvailable,
    NotAMember,
    NotAuthenticated,
)
from tilawa.models import JuzStatus


def release_juz(db, community_id, member_id):
    """Drop a member's assignment so they can claim directly."""
    db.execute(
        "DELETE FROM juz_assignments WHERE community_id = ? AND member_id = ?",
        (community_id, member_id),
    )


def assert_ledger_invariants(ledger, community_id):
    assignments = ledger.assignments(community_id)
    juz_numbers = [a.juz_number for a in assignments]
    holders = [a.member_id for a in assignments]
    assert len(juz_numbers) == len(set(juz_numbers))
    assert len(holders) == len(set(holders))


class TestCommunities:
    """Test the community directory."""

    def test_create_community(self, ledger):
        community = ledger.create_community("  Ramadan circle ", admin_id=1, max_members=10)
        assert community.name == "Ramadan circle"
        assert community.admin_id == 1
        assert community.max_members == 10
        assert ledger.get_community(community.id) == community

    def test_default_max_members_from_settings(self, community):
        assert community.max_members == 30

    @pytest.mark.parametrize("kwargs", [
        {"name": ""},
        {"name": "   "},
        {"name": "Group", "max_members": 0},
        {"name": "Group", "max_members": 31},
    ])
    def test_create_rejects_bad_input(self, ledger, kwargs):
        with pytest.raises(InvalidInputError):
            ledger.create_community(admin_id=1, **kwargs)

    def test_create_requires_identity(self, ledger):
        with pytest.raises(NotAuthenticated):
            ledger.create_community("Group", admin_id=None)

    def test_unknown_community(self, ledger):
        with pytest.raises(CommunityNotFound):
            ledger.get_community(999)
        with pytest.raises(CommunityNotFound):
            ledger.join(999, member_id=2)

    def test_member_communities(self, ledger, community):
        other = ledger.create_community("Second", admin_id=1)
        ledger.join(community.id, member_id=2)
        ledger.join(community.id, member_id=3)
        ledger.join(other.id, member_id=2)

        summaries = ledger.member_communities(2)
        assert [s.community.id for s in summaries] == [community.id, other.id]
        assert summaries[0].member_count == 2
        assert summaries[0].juz_number == 1
        assert summaries[1].member_count == 1

    def test_list_communities(self, ledger, community):
        ledger.create_community("Second", admin_id=2)
        assert [c.name for c in ledger.list_communities()] == ["Family khatmah", "Second"]


class TestJoin:
    """Test joining and leaving."""

    def test_join_assigns_lowest_free_juz(self, ledger, community):
        first = ledger.join(community.id, member_id=2)
        second = ledger.join(community.id, member_id=3)
        assert first.juz_number == 1
        assert second.juz_number == 2
        assert first.completion_percentage == 0

    def test_join_fills_gaps(self, ledger, db, community):
        ledger.join(community.id, member_id=2)
        ledger.join(community.id, member_id=3)
        release_juz(db, community.id, 2)
        assert ledger.join(community.id, member_id=4).juz_number == 1

    def test_join_twice(self, ledger, community):
        ledger.join(community.id, member_id=2)
        with pytest.raises(AlreadyMember):
            ledger.join(community.id, member_id=2)

    def test_join_full_community(self, ledger):
        small = ledger.create_community("Pair", admin_id=1, max_members=2)
        ledger.join(small.id, member_id=2)
        ledger.join(small.id, member_id=3)
        with pytest.raises(CommunityFull):
            ledger.join(small.id, member_id=4)
        assert len(ledger.community_members(small.id)) == 2

    def test_join_when_all_juz_taken(self, ledger, db, community):
        for member_id in range(100, 130):
            ledger.join(community.id, member_id=member_id)
        # free a seat without freeing a juz
        db.execute(
            "DELETE FROM community_members WHERE community_id = ? AND member_id = ?",
            (community.id, 100),
        )
        with pytest.raises(NoJuzAvailable):
            ledger.join(community.id, member_id=200)

    def test_join_requires_identity(self, ledger, community):
        with pytest.raises(NotAuthenticated):
            ledger.join(community.id, member_id=None)

    def test_leave_frees_juz(self, ledger, community):
        ledger.join(community.id, member_id=2)
        ledger.leave(community.id, member_id=2)
        assert ledger.available_juz(community.id)[0] == 1
        assert ledger.community_members(community.id) == []

    def test_leave_non_member(self, ledger, community):
        with pytest.raises(NotAMember):
            ledger.leave(community.id, member_id=2)


class TestClaim:
    """Test claiming a free juz."""

    def test_claim_free_juz(self, ledger, db, community):
        ledger.join(community.id, member_id=2)
        release_juz(db, community.id, 2)
        assignment = ledger.claim(community.id, member_id=2, juz_number=17)
        assert assignment.juz_number == 17
        assert ledger.holder_of(community.id, 17).member_id == 2

    def test_claim_taken_by_someone_else(self, ledger, db, community):
        ledger.join(community.id, member_id=2)
        ledger.join(community.id, member_id=3)
        release_juz(db, community.id, 3)
        with pytest.raises(JuzTaken):
            ledger.claim(community.id, member_id=3, juz_number=1)

    def test_claim_own_juz(self, ledger, community):
        ledger.join(community.id, member_id=2)
        with pytest.raises(AlreadyHasJuz):
            ledger.claim(community.id, member_id=2, juz_number=1)

    def test_claim_second_juz(self, ledger, community):
        ledger.join(community.id, member_id=2)
        with pytest.raises(AlreadyHasJuz) as exc_info:
            ledger.claim(community.id, member_id=2, juz_number=5)
        assert exc_info.value.details["juz_number"] == 1

    def test_claim_requires_membership(self, ledger, community):
        with pytest.raises(NotAMember):
            ledger.claim(community.id, member_id=2, juz_number=5)

    def test_claim_checks_identity_first(self, ledger, community):
        with pytest.raises(NotAuthenticated):
            ledger.claim(community.id, member_id=None, juz_number=99)

    @pytest.mark.parametrize("juz_number", [0, 31])
    def test_claim_invalid_juz(self, ledger, community, juz_number):
        ledger.join(community.id, member_id=2)
        with pytest.raises(InvalidJuzNumber):
            ledger.claim(community.id, member_id=2, juz_number=juz_number)

    def test_concurrent_claims(self, ledger, db, community):
        """Two members racing for one juz: one wins, the other gets JuzTaken."""
        for member_id in (2, 3):
            ledger.join(community.id, member_id=member_id)
            release_juz(db, community.id, member_id)

        barrier = threading.Barrier(2)
        results = {}

        def attempt(member_id):
            barrier.wait()
            try:
                results[member_id] = ledger.claim(community.id, member_id, juz_number=10)
            except JuzTaken as e:
                results[member_id] = e

        threads = [threading.Thread(target=attempt, args=(m,)) for m in (2, 3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        outcomes = list(results.values())
        assert sum(isinstance(o, JuzTaken) for o in outcomes) == 1
        winner = next(o for o in outcomes if not isinstance(o, JuzTaken))
        assert ledger.holder_of(community.id, 10).member_id == winner.member_id
        assert_ledger_invariants(ledger, community.id)


class TestModificationWindow:
    """Test the 48 hour change window."""

    def test_can_modify_right_after_assignment(self, ledger, community):
        ledger.join(community.id, member_id=2)
        assert ledger.can_modify(community.id, 2) is True

    def test_window_closes_after_48_hours(self, ledger, clock, community):
        ledger.join(community.id, member_id=2)
        clock.advance(hours=47, minutes=59)
        assert ledger.can_modify(community.id, 2) is True
        clock.advance(minutes=1)
        assert ledger.can_modify(community.id, 2) is False

    def test_window_is_per_assignment(self, ledger, clock, community):
        ledger.join(community.id, member_id=2)
        clock.advance(hours=47)
        ledger.join(community.id, member_id=3)
        clock.advance(hours=2)
        assert ledger.can_modify(community.id, 2) is False
        assert ledger.can_modify(community.id, 3) is True

    def test_can_modify_without_assignment(self, ledger, community):
        assert ledger.can_modify(community.id, 2) is False
        assert ledger.can_modify(community.id, None) is False

    def test_reassign_within_window(self, ledger, community):
        original = ledger.join(community.id, member_id=2)
        ledger.update_progress(original.id, 40)
        moved = ledger.reassign(community.id, member_id=2, juz_number=12)
        assert moved.id == original.id
        assert moved.juz_number == 12
        assert moved.completion_percentage == 0
        assert moved.assigned_at == original.assigned_at
        assert 1 in ledger.available_juz(community.id)

    def test_reassign_after_window(self, ledger, clock, community):
        ledger.join(community.id, member_id=2)
        clock.advance(hours=48)
        with pytest.raises(ModificationWindowClosed):
            ledger.reassign(community.id, member_id=2, juz_number=12)

    def test_reassign_does_not_extend_window(self, ledger, clock, community):
        ledger.join(community.id, member_id=2)
        clock.advance(hours=30)
        ledger.reassign(community.id, member_id=2, juz_number=12)
        clock.advance(hours=18)
        assert ledger.can_modify(community.id, 2) is False

    def test_reassign_to_taken_juz(self, ledger, community):
        ledger.join(community.id, member_id=2)
        ledger.join(community.id, member_id=3)
        with pytest.raises(JuzTaken):
            ledger.reassign(community.id, member_id=2, juz_number=2)

    def test_reassign_to_same_juz(self, ledger, community):
        original = ledger.join(community.id, member_id=2)
        assert ledger.reassign(community.id, member_id=2, juz_number=1) == original

    def test_reassign_without_juz_takes_free_one(self, ledger, db, clock, community):
        ledger.join(community.id, member_id=2)
        release_juz(db, community.id, 2)
        clock.advance(days=10)
        assignment = ledger.reassign(community.id, member_id=2, juz_number=4)
        assert assignment.juz_number == 4
        assert ledger.can_modify(community.id, 2) is True


class TestProgressAndDetails:
    """Test progress updates and the derived juz table."""

    @pytest.mark.parametrize("value,stored", [(-5, 0), (55.5, 55.5), (250, 100)])
    def test_progress_is_clamped(self, ledger, community, value, stored):
        assignment = ledger.join(community.id, member_id=2)
        assert ledger.update_progress(assignment.id, value).completion_percentage == stored

    def test_progress_unknown_assignment(self, ledger):
        with pytest.raises(AssignmentNotFound):
            ledger.update_progress(999, 10)

    def test_details_status(self, ledger, community):
        done = ledger.join(community.id, member_id=2)
        started = ledger.join(community.id, member_id=3)
        ledger.join(community.id, member_id=4)
        ledger.update_progress(done.id, 100)
        ledger.update_progress(started.id, 20)

        details = ledger.details(community.id)
        assert details.community.id == community.id
        assert len(details.juz_data) == 30

        statuses = {slot.juz_number: slot.status for slot in details.juz_data}
        assert statuses[1] == JuzStatus.COMPLETED
        assert statuses[2] == JuzStatus.IN_PROGRESS
        assert statuses[3] == JuzStatus.NOT_STARTED
        assert statuses[4] == JuzStatus.AVAILABLE

        slot = details.juz_data[0]
        assert slot.member_id == 2
        assert slot.assignment_id == done.id
        assert details.juz_data[3].member_id is None

    def test_available_juz(self, ledger, community):
        assert ledger.available_juz(community.id) == list(range(1, 31))
        ledger.join(community.id, member_id=2)
        assert ledger.available_juz(community.id) == list(range(2, 31))
