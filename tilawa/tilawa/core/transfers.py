"""
Juz transfer requests.

A member asks the current holder of a juz to hand it over. Each request is a
tiny state machine::

    pending -> accepted   (ownership moves to the requester)
    pending -> declined   (nothing changes)

Both outcomes are final. Asking again after a decline creates a new record;
history is never overwritten. Pending requests do not expire.

Direction: ``from_member_id`` is always the holder at the time of the request
(looked up in the ledger, never taken from the caller) and ``to_member_id``
is the requester.
"""

from __future__ import annotations

import logging
import sqlite3

from tilawa.core.juz import check_juz_number
from tilawa.core.ledger import JuzLedger, require_identity
from tilawa.exceptions import (
    AlreadyResolved,
    JuzNotHeld,
    NotAMember,
    NotAuthorized,
    RequestPending,
    SelfRequest,
    TransferRequestNotFound,
)
from tilawa.models import (
    JuzTransferRequest,
    TransferAction,
    TransferRequestListing,
    TransferStatus,
)
from tilawa.storage import to_db_time

logger = logging.getLogger(__name__)


class TransferProtocol:
    """
    Request/accept/decline handshake on top of a ``JuzLedger``.

    Example:
        transfers = TransferProtocol(ledger)
        request = transfers.create_request(community_id, juz_number=3, requester_id=7)
        transfers.respond(request.id, responder_id=request.from_member_id, action="accept")
    """

    def __init__(self, ledger: JuzLedger):
        self.ledger = ledger
        self.db = ledger.db

    def create_request(self, community_id: int, juz_number: int,
                       requester_id: int | None) -> JuzTransferRequest:
        """
        Ask the current holder of ``juz_number`` to hand it over.

        Raises:
            JuzNotHeld: nobody holds the juz, claim it directly instead
            SelfRequest: the requester already holds it
            RequestPending: the requester already has an open request for it
        """
        requester_id = require_identity(requester_id)
        check_juz_number(juz_number)

        with self.db.transaction() as conn:
            self.ledger.load_community(conn, community_id)
            if not self.ledger.is_member(conn, community_id, requester_id):
                raise NotAMember(community_id, requester_id)

            holder = self.ledger.holder_in(conn, community_id, juz_number)
            if holder is None:
                raise JuzNotHeld(community_id, juz_number)
            if holder.member_id == requester_id:
                raise SelfRequest(juz_number)

            open_request = conn.execute(
                """
                SELECT id FROM juz_transfer_requests
                WHERE community_id = ? AND juz_number = ? AND to_member_id = ?
                  AND status = 'pending'
                """,
                (community_id, juz_number, requester_id),
            ).fetchone()
            if open_request is not None:
                raise RequestPending(open_request["id"])

            cur = conn.execute(
                """
                INSERT INTO juz_transfer_requests(community_id, juz_number, from_member_id,
                                                  to_member_id, status, created_at)
                VALUES(?,?,?,?, 'pending', ?)
                """,
                (community_id, juz_number, holder.member_id, requester_id,
                 to_db_time(self.ledger.now())),
            )
            request = self._load(conn, cur.lastrowid)

        logger.info(
            "Member %s requested juz %s from member %s in community %s",
            requester_id, juz_number, holder.member_id, community_id,
        )
        return request

    def respond(self, request_id: int, responder_id: int | None,
                action: TransferAction | str) -> JuzTransferRequest:
        """
        Accept or decline a pending request.

        Only the member currently holding the juz may answer. Accepting moves
        the juz to the requester in the same transaction that marks the
        request accepted; the change window does not apply.

        Raises:
            AlreadyResolved: the request is no longer pending (checked first,
                so a retried answer always reports this)
            NotAuthorized: responder does not hold the juz
        """
        responder_id = require_identity(responder_id)
        action = TransferAction(action)

        with self.db.transaction() as conn:
            request = self._load(conn, request_id)
            if request.status.is_terminal:
                raise AlreadyResolved(request_id, request.status.value)

            holder = self.ledger.holder_in(conn, request.community_id, request.juz_number)
            if holder is None or holder.member_id != responder_id:
                raise NotAuthorized(
                    "Only the current holder can answer this request",
                    {"request_id": request_id, "responder_id": responder_id},
                )

            if action is TransferAction.ACCEPT:
                if not self.ledger.is_member(conn, request.community_id, request.to_member_id):
                    raise NotAMember(request.community_id, request.to_member_id)
                self.ledger.hand_over(conn, request.community_id, request.juz_number,
                                      request.to_member_id)
                self.ledger.decline_pending(conn, request.community_id, [request.juz_number],
                                            keep_request_id=request_id)
                status = TransferStatus.ACCEPTED
            else:
                status = TransferStatus.DECLINED

            conn.execute(
                "UPDATE juz_transfer_requests SET status = ?, resolved_at = ? WHERE id = ?",
                (status.value, to_db_time(self.ledger.now()), request_id),
            )
            request = self._load(conn, request_id)

        logger.info(
            "Member %s %s transfer request %s (juz %s)",
            responder_id, status.value, request_id, request.juz_number,
        )
        return request

    def get_request(self, request_id: int) -> JuzTransferRequest:
        row = self.db.fetch_one("SELECT * FROM juz_transfer_requests WHERE id = ?", (request_id,))
        if row is None:
            raise TransferRequestNotFound(request_id)
        return JuzTransferRequest.model_validate(dict(row))

    def list_requests(self, member_id: int) -> TransferRequestListing:
        """All requests involving a member, across communities, newest first."""
        rows = self.db.fetch_all(
            """
            SELECT * FROM juz_transfer_requests
            WHERE from_member_id = ? OR to_member_id = ?
            ORDER BY created_at DESC, id DESC
            """,
            (member_id, member_id),
        )
        listing = TransferRequestListing()
        for row in rows:
            request = JuzTransferRequest.model_validate(dict(row))
            if request.from_member_id == member_id:
                listing.received.append(request)
            if request.to_member_id == member_id:
                listing.sent.append(request)
        return listing

    def pending_for_juz(self, community_id: int, juz_number: int) -> list[JuzTransferRequest]:
        rows = self.db.fetch_all(
            """
            SELECT * FROM juz_transfer_requests
            WHERE community_id = ? AND juz_number = ? AND status = 'pending'
            ORDER BY created_at, id
            """,
            (community_id, juz_number),
        )
        return [JuzTransferRequest.model_validate(dict(r)) for r in rows]

    @staticmethod
    def _load(conn: sqlite3.Connection, request_id: int) -> JuzTransferRequest:
        row = conn.execute(
            "SELECT * FROM juz_transfer_requests WHERE id = ?", (request_id,)
        ).fetchone()
        if row is None:
            raise TransferRequestNotFound(request_id)
        return JuzTransferRequest.model_validate(dict(row))
