"""
Mirror playback progress into listening history.
"""

import logging

from tilawa.core.verses import VerseRef
from tilawa.exceptions import TilawaError
from tilawa.history import HistoryStore
from tilawa.models import RecitationSession
from tilawa.playback.scheduler import PlaybackListener, PlaybackScheduler

logger = logging.getLogger(__name__)


class SessionRecorder(PlaybackListener):
    """
    Creates a session record when playback starts and overwrites its
    progress on every verse change and on completion. Each finished verse
    also counts as one listen in the practice log.

    Example:
        recorder = SessionRecorder(history, user_id=1)
        scheduler = PlaybackScheduler(verses, media, listeners=[recorder])
    """

    def __init__(self, history: HistoryStore, user_id: int):
        self.history = history
        self.user_id = user_id
        self.session: RecitationSession | None = None

    def on_started(self, scheduler: PlaybackScheduler) -> None:
        first = scheduler.verses[0]
        same_surah = [v.ayah for v in scheduler.verses if v.surah == first.surah]
        self.session = self.history.create_session(
            self.user_id,
            first.surah,
            start_ayah=min(same_surah),
            end_ayah=max(same_surah),
            pause_duration=scheduler.pause_duration,
        )
        logger.debug("Recording session %s for user %s", self.session.id, self.user_id)

    def on_verse_change(self, scheduler: PlaybackScheduler, index: int) -> None:
        self._push(scheduler)

    def on_verse_completed(self, scheduler: PlaybackScheduler, verse: VerseRef,
                           duration: float) -> None:
        self.history.log_practice(self.user_id, verse.surah, verse.ayah, duration)

    def on_session_complete(self, scheduler: PlaybackScheduler) -> None:
        self._push(scheduler)

    def on_error(self, scheduler: PlaybackScheduler, error: TilawaError) -> None:
        logger.info("Playback stopped for user %s: %s", self.user_id, error.message)

    def _push(self, scheduler: PlaybackScheduler) -> None:
        if self.session is None:
            return
        self.session = self.history.update_session(
            self.session.id,
            completed_ayahs=scheduler.completed_count,
            session_time=scheduler.elapsed_session_seconds,
            is_completed=scheduler.session_completed,
        )
