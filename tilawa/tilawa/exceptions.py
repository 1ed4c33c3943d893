"""
Exception hierarchy for Tilawa.

Every failure a caller can react to has its own class so that an outer
layer (HTTP routes, CLI, UI) can tell "already yours" apart from "taken by
someone else". ``http_status`` is the status an HTTP layer should map the
error to.
"""

from typing import Any


class TilawaError(Exception):
    """Base class for all Tilawa errors."""

    http_status: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": type(self).__name__, "message": self.message, **self.details}


# ============ Validation ============


class InvalidInputError(TilawaError):
    """Rejected input that never reaches storage."""

    http_status = 400


class InvalidJuzNumber(InvalidInputError):
    def __init__(self, juz_number: Any):
        super().__init__(
            f"Juz number must be between 1 and 30, got {juz_number!r}",
            {"juz_number": juz_number},
        )


class InvalidVerseRange(InvalidInputError):
    pass


class InvalidSetting(InvalidInputError):
    pass


# ============ Conflicts ============


class ConflictError(TilawaError):
    """The request contradicts the current ledger state."""

    http_status = 409


class CommunityFull(ConflictError):
    def __init__(self, community_id: int, max_members: int):
        super().__init__(
            f"Community {community_id} is full ({max_members} members)",
            {"community_id": community_id, "max_members": max_members},
        )


class AlreadyMember(ConflictError):
    def __init__(self, community_id: int, member_id: int):
        super().__init__(
            f"Member {member_id} already belongs to community {community_id}",
            {"community_id": community_id, "member_id": member_id},
        )


class JuzTaken(ConflictError):
    def __init__(self, community_id: int, juz_number: int):
        super().__init__(
            f"Juz {juz_number} is already assigned in community {community_id}",
            {"community_id": community_id, "juz_number": juz_number},
        )


class AlreadyHasJuz(ConflictError):
    def __init__(self, community_id: int, member_id: int, juz_number: int):
        super().__init__(
            f"Member {member_id} already holds juz {juz_number} in community {community_id}",
            {"community_id": community_id, "member_id": member_id, "juz_number": juz_number},
        )


class NoJuzAvailable(ConflictError):
    def __init__(self, community_id: int):
        super().__init__(
            f"All 30 juz are assigned in community {community_id}",
            {"community_id": community_id},
        )


class JuzNotHeld(ConflictError):
    def __init__(self, community_id: int, juz_number: int):
        super().__init__(
            f"Juz {juz_number} has no holder in community {community_id}; claim it instead",
            {"community_id": community_id, "juz_number": juz_number},
        )


class SelfRequest(ConflictError):
    def __init__(self, juz_number: int):
        super().__init__(f"You already hold juz {juz_number}", {"juz_number": juz_number})


class RequestPending(ConflictError):
    def __init__(self, request_id: int):
        super().__init__(
            f"Transfer request {request_id} for this juz is still pending",
            {"request_id": request_id},
        )


class AlreadyResolved(ConflictError):
    def __init__(self, request_id: int, status: str):
        super().__init__(
            f"Transfer request {request_id} is already {status}",
            {"request_id": request_id, "status": status},
        )


# ============ Authorization ============


class AuthorizationError(TilawaError):
    http_status = 403


class NotAuthenticated(AuthorizationError):
    http_status = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class NotAuthorized(AuthorizationError):
    pass


class ModificationWindowClosed(AuthorizationError):
    def __init__(self, community_id: int, member_id: int):
        super().__init__(
            "The juz change window has expired; request a transfer instead",
            {"community_id": community_id, "member_id": member_id},
        )


# ============ Not found ============


class NotFoundError(TilawaError):
    http_status = 404


class CommunityNotFound(NotFoundError):
    def __init__(self, community_id: int):
        super().__init__(f"Community {community_id} not found", {"community_id": community_id})


class NotAMember(NotFoundError):
    def __init__(self, community_id: int, member_id: int):
        super().__init__(
            f"Member {member_id} is not part of community {community_id}",
            {"community_id": community_id, "member_id": member_id},
        )


class AssignmentNotFound(NotFoundError):
    def __init__(self, assignment_id: int):
        super().__init__(f"Juz assignment {assignment_id} not found", {"assignment_id": assignment_id})


class TransferRequestNotFound(NotFoundError):
    def __init__(self, request_id: int):
        super().__init__(f"Transfer request {request_id} not found", {"request_id": request_id})


class RecitationSessionNotFound(NotFoundError):
    def __init__(self, session_id: int):
        super().__init__(f"Recitation session {session_id} not found", {"session_id": session_id})


class BookmarkNotFound(NotFoundError):
    def __init__(self, bookmark_id: int):
        super().__init__(f"Bookmark {bookmark_id} not found", {"bookmark_id": bookmark_id})


# ============ Playback ============


class PlaybackError(TilawaError):
    http_status = 409


class LoadingInProgress(PlaybackError):
    def __init__(self):
        super().__init__("Audio is still loading")


class NoAudioLoaded(PlaybackError):
    def __init__(self):
        super().__init__("No audio loaded")


class NoEventLoop(PlaybackError):
    http_status = 500

    def __init__(self):
        super().__init__(
            "No running event loop: create the scheduler inside a coroutine "
            "or pass loop= explicitly"
        )


class AudioUnavailable(PlaybackError):
    http_status = 503

    def __init__(self, surah_id: int, ayah_number: int, urls: list[str]):
        super().__init__(
            f"Audio for {surah_id}:{ayah_number} could not be loaded; "
            "check your connection or try again",
            {"surah_id": surah_id, "ayah_number": ayah_number, "urls": urls},
        )
