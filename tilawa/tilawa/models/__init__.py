"""
Pydantic data models for Tilawa.

These models represent the core data structures used throughout the library:
- Surah / Ayah: Quran reference data
- Community, JuzAssignment, JuzTransferRequest: juz rotation ledger
- RecitationSession, Bookmark, UserPreferences: listening history
"""

from tilawa.models.ayah import Ayah
from tilawa.models.surah import Surah, SURAH_AYAH_COUNTS, SURAH_NAMES
from tilawa.models.community import (
    Community,
    CommunityDetails,
    CommunityMember,
    JuzAssignment,
    JuzSlot,
    JuzStatus,
    JuzTransferRequest,
    MembershipSummary,
    TransferAction,
    TransferRequestListing,
    TransferStatus,
)
from tilawa.models.history import (
    Bookmark,
    PracticeCount,
    PracticeDay,
    PracticedAyah,
    RecitationSession,
    SessionStats,
    UserPreferences,
    WeeklyListening,
)

__all__ = [
    "Ayah",
    "Surah",
    "SURAH_AYAH_COUNTS",
    "SURAH_NAMES",
    "Community",
    "CommunityDetails",
    "CommunityMember",
    "JuzAssignment",
    "JuzSlot",
    "JuzStatus",
    "JuzTransferRequest",
    "MembershipSummary",
    "TransferAction",
    "TransferRequestListing",
    "TransferStatus",
    "Bookmark",
    "PracticeCount",
    "PracticeDay",
    "PracticedAyah",
    "RecitationSession",
    "SessionStats",
    "UserPreferences",
    "WeeklyListening",
]
