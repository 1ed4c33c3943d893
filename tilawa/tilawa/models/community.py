"""
Community and juz rotation models.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TransferStatus(str, Enum):
    """Lifecycle of a juz transfer request."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"

    @property
    def is_terminal(self) -> bool:
        return self is not TransferStatus.PENDING


class TransferAction(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"


class JuzStatus(str, Enum):
    """Progress label shown for each juz on a community page."""

    COMPLETED = "completed"
    IN_PROGRESS = "in_progress"
    NOT_STARTED = "not_started"
    AVAILABLE = "available"


class Community(BaseModel):
    """
    A group of members sharing the 30 juz between them.

    Attributes:
        id: Community identifier
        name: Display name
        description: Free text shown on the community page
        admin_id: Member who created the community
        max_members: Member limit (at most one member per juz)
    """

    id: int
    name: str = Field(..., min_length=1)
    description: str = ""
    admin_id: int
    max_members: int = Field(default=30, ge=1, le=30)
    created_at: datetime


class CommunityMember(BaseModel):
    id: int
    community_id: int
    member_id: int
    joined_at: datetime


class JuzAssignment(BaseModel):
    """
    The member currently holding a juz in a community.

    Each (community_id, juz_number) and each (community_id, member_id)
    appears at most once.
    """

    id: int
    community_id: int
    juz_number: int = Field(..., ge=1, le=30)
    member_id: int
    assigned_at: datetime
    completion_percentage: float = Field(default=0.0, ge=0.0, le=100.0)


class JuzTransferRequest(BaseModel):
    """
    A request to take over a juz from its current holder.

    Attributes:
        from_member_id: Holder of the juz when the request was made
        to_member_id: Member asking for the juz
    """

    id: int
    community_id: int
    juz_number: int = Field(..., ge=1, le=30)
    from_member_id: int
    to_member_id: int
    status: TransferStatus = TransferStatus.PENDING
    created_at: datetime
    resolved_at: Optional[datetime] = None


class TransferRequestListing(BaseModel):
    """Requests a member must answer (received) and ones they made (sent)."""

    received: list[JuzTransferRequest] = Field(default_factory=list)
    sent: list[JuzTransferRequest] = Field(default_factory=list)


class JuzSlot(BaseModel):
    juz_number: int = Field(..., ge=1, le=30)
    member_id: Optional[int] = None
    completion_percentage: float = 0.0
    status: JuzStatus = JuzStatus.AVAILABLE
    assignment_id: Optional[int] = None

    @classmethod
    def from_assignment(cls, juz_number: int, assignment: JuzAssignment | None) -> "JuzSlot":
        if assignment is None:
            return cls(juz_number=juz_number)

        pct = assignment.completion_percentage
        if pct >= 100:
            status = JuzStatus.COMPLETED
        elif pct > 0:
            status = JuzStatus.IN_PROGRESS
        else:
            status = JuzStatus.NOT_STARTED

        return cls(
            juz_number=juz_number,
            member_id=assignment.member_id,
            completion_percentage=pct,
            status=status,
            assignment_id=assignment.id,
        )


class CommunityDetails(BaseModel):
    community: Community
    juz_data: list[JuzSlot]


class MembershipSummary(BaseModel):
    """A community as seen by one of its members."""

    community: Community
    member_count: int = Field(default=0, ge=0)
    juz_number: Optional[int] = None
