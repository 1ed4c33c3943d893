"""
Unit tests for juz transfer requests.
"""

import pytest
from tilawa.exceptions import (
    AlreadyResolved,
    JuzNotHeld,
    NotAMember,
    NotAuthenticated,
    NotAuthorized,
    RequestPending,
    SelfRequest,
    TransferRequestNotFound,
)
from tilawa.models import TransferAction, TransferStatus


@pytest.fixture
def members(ledger, community):
    """Members 2, 3 and 4 holding juz 1, 2 and 3."""
    return {m: ledger.join(community.id, member_id=m) for m in (2, 3, 4)}


class TestCreateRequest:
    """Test opening a transfer request."""

    def test_request_targets_current_holder(self, transfers, community, members):
        request = transfers.create_request(community.id, juz_number=1, requester_id=3)
        assert request.status == TransferStatus.PENDING
        assert request.from_member_id == 2
        assert request.to_member_id == 3
        assert request.resolved_at is None

    def test_request_unheld_juz(self, transfers, community, members):
        with pytest.raises(JuzNotHeld):
            transfers.create_request(community.id, juz_number=20, requester_id=3)

    def test_request_own_juz(self, transfers, community, members):
        with pytest.raises(SelfRequest):
            transfers.create_request(community.id, juz_number=1, requester_id=2)

    def test_duplicate_pending_request(self, transfers, community, members):
        first = transfers.create_request(community.id, juz_number=1, requester_id=3)
        with pytest.raises(RequestPending) as exc_info:
            transfers.create_request(community.id, juz_number=1, requester_id=3)
        assert exc_info.value.details["request_id"] == first.id

    def test_ask_again_after_decline(self, transfers, community, members):
        first = transfers.create_request(community.id, juz_number=1, requester_id=3)
        transfers.respond(first.id, responder_id=2, action="decline")
        second = transfers.create_request(community.id, juz_number=1, requester_id=3)
        assert second.id != first.id
        assert transfers.get_request(first.id).status == TransferStatus.DECLINED

    def test_requester_must_be_member(self, transfers, community, members):
        with pytest.raises(NotAMember):
            transfers.create_request(community.id, juz_number=1, requester_id=50)

    def test_requires_identity(self, transfers, community, members):
        with pytest.raises(NotAuthenticated):
            transfers.create_request(community.id, juz_number=1, requester_id=None)


class TestRespond:
    """Test accepting and declining."""

    def test_accept_moves_juz(self, ledger, transfers, community, members):
        request = transfers.create_request(community.id, juz_number=1, requester_id=4)
        resolved = transfers.respond(request.id, responder_id=2, action=TransferAction.ACCEPT)

        assert resolved.status == TransferStatus.ACCEPTED
        assert resolved.resolved_at is not None
        assert ledger.holder_of(community.id, 1).member_id == 4
        # the requester's old juz is released, the giver holds nothing
        assert ledger.holder_of(community.id, 3) is None
        assert ledger.assignment_for(community.id, 2) is None

    def test_accepted_juz_starts_fresh(self, ledger, transfers, community, members):
        ledger.update_progress(members[2].id, 60)
        request = transfers.create_request(community.id, juz_number=1, requester_id=3)
        transfers.respond(request.id, responder_id=2, action="accept")
        moved = ledger.assignment_for(community.id, 3)
        assert moved.juz_number == 1
        assert moved.completion_percentage == 0

    def test_accept_ignores_change_window(self, ledger, transfers, clock, community, members):
        clock.advance(days=5)
        request = transfers.create_request(community.id, juz_number=2, requester_id=4)
        transfers.respond(request.id, responder_id=3, action="accept")
        assert ledger.holder_of(community.id, 2).member_id == 4
        assert ledger.can_modify(community.id, 4) is True

    def test_decline_changes_nothing(self, ledger, transfers, community, members):
        request = transfers.create_request(community.id, juz_number=1, requester_id=3)
        resolved = transfers.respond(request.id, responder_id=2, action="decline")
        assert resolved.status == TransferStatus.DECLINED
        assert ledger.holder_of(community.id, 1).member_id == 2
        assert ledger.holder_of(community.id, 2).member_id == 3

    def test_only_holder_may_respond(self, transfers, community, members):
        request = transfers.create_request(community.id, juz_number=1, requester_id=3)
        with pytest.raises(NotAuthorized):
            transfers.respond(request.id, responder_id=4, action="accept")
        with pytest.raises(NotAuthorized):
            transfers.respond(request.id, responder_id=3, action="accept")

    @pytest.mark.parametrize("first,second", [
        ("accept", "accept"),
        ("accept", "decline"),
        ("decline", "accept"),
        ("decline", "decline"),
    ])
    def test_second_response_is_already_resolved(self, ledger, transfers, community, members,
                                                 first, second):
        """A terminal request never changes again, whoever retries."""
        request = transfers.create_request(community.id, juz_number=1, requester_id=3)
        transfers.respond(request.id, responder_id=2, action=first)
        holder_after_first = ledger.holder_of(community.id, 1).member_id

        with pytest.raises(AlreadyResolved):
            transfers.respond(request.id, responder_id=2, action=second)
        with pytest.raises(AlreadyResolved):
            transfers.respond(request.id, responder_id=holder_after_first, action=second)
        assert ledger.holder_of(community.id, 1).member_id == holder_after_first

    def test_unknown_request(self, transfers):
        with pytest.raises(TransferRequestNotFound):
            transfers.respond(999, responder_id=2, action="accept")

    def test_invalid_action(self, transfers, community, members):
        request = transfers.create_request(community.id, juz_number=1, requester_id=3)
        with pytest.raises(ValueError):
            transfers.respond(request.id, responder_id=2, action="maybe")

    def test_accept_declines_competing_requests(self, transfers, community, members):
        winner = transfers.create_request(community.id, juz_number=1, requester_id=3)
        loser = transfers.create_request(community.id, juz_number=1, requester_id=4)
        transfers.respond(winner.id, responder_id=2, action="accept")
        assert transfers.get_request(loser.id).status == TransferStatus.DECLINED
        assert transfers.pending_for_juz(community.id, 1) == []

    def test_requests_for_released_juz_are_declined(self, transfers, community, members):
        """Member 3 gives up juz 2 by taking juz 1, so asks for juz 2 lapse."""
        stale = transfers.create_request(community.id, juz_number=2, requester_id=4)
        request = transfers.create_request(community.id, juz_number=1, requester_id=3)
        transfers.respond(request.id, responder_id=2, action="accept")
        assert transfers.get_request(stale.id).status == TransferStatus.DECLINED

    def test_leaving_declines_open_requests(self, ledger, transfers, community, members):
        request = transfers.create_request(community.id, juz_number=1, requester_id=3)
        ledger.leave(community.id, member_id=3)
        assert transfers.get_request(request.id).status == TransferStatus.DECLINED

    def test_requester_left_before_accept(self, ledger, transfers, db, community, members):
        request = transfers.create_request(community.id, juz_number=1, requester_id=3)
        # membership removed behind the ledger's back, request still pending
        db.execute("DELETE FROM community_members WHERE member_id = 3")
        with pytest.raises(NotAMember):
            transfers.respond(request.id, responder_id=2, action="accept")
        assert transfers.get_request(request.id).status == TransferStatus.PENDING


class TestListing:
    """Test request listings."""

    def test_received_and_sent(self, transfers, community, members, clock):
        first = transfers.create_request(community.id, juz_number=1, requester_id=3)
        clock.advance(minutes=5)
        second = transfers.create_request(community.id, juz_number=3, requester_id=3)
        clock.advance(minutes=5)
        incoming = transfers.create_request(community.id, juz_number=2, requester_id=2)

        listing = transfers.list_requests(3)
        assert [r.id for r in listing.sent] == [second.id, first.id]
        assert [r.id for r in listing.received] == [incoming.id]

        assert [r.id for r in transfers.list_requests(2).received] == [first.id]
