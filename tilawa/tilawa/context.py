"""
Composition root.

One ``TilawaContext`` owns the database handle and the services built on
it. Pass it (or the services it exposes) to whatever needs them; nothing
in the library keeps its own global store.
"""

from typing import Iterable

from tilawa.config import TilawaSettings, get_settings
from tilawa.core.ledger import Clock, JuzLedger
from tilawa.core.transfers import TransferProtocol
from tilawa.core.verses import VerseRef
from tilawa.history import HistoryStore
from tilawa.playback.audio import AudioSource
from tilawa.playback.media import BaseMediaElement, TimerLoop
from tilawa.playback.recorder import SessionRecorder
from tilawa.playback.scheduler import PlaybackListener, PlaybackScheduler
from tilawa.storage import Database, utc_now


class TilawaContext:
    """
    Example:
        ctx = TilawaContext()
        ctx.initialize()
        ctx.ledger.join(community_id, member_id=5)
    """

    def __init__(self, settings: TilawaSettings | None = None, clock: Clock | None = None,
                 database: Database | None = None):
        self.settings = settings or get_settings()
        self.clock = clock or utc_now
        self.db = database or Database(settings=self.settings)
        self.ledger = JuzLedger(self.db, settings=self.settings, clock=self.clock)
        self.transfers = TransferProtocol(self.ledger)
        self.history = HistoryStore(self.db, clock=self.clock)
        self.audio = AudioSource(self.settings)

    def initialize(self) -> "TilawaContext":
        self.db.initialize()
        return self

    def scheduler(
        self,
        verses: Iterable[VerseRef],
        media: BaseMediaElement,
        user_id: int | None = None,
        loop: TimerLoop | None = None,
        listeners: Iterable[PlaybackListener] = (),
        **options,
    ) -> PlaybackScheduler:
        """
        Build a scheduler for ``verses``.

        With a ``user_id`` the session is recorded in history, and any
        option not given explicitly comes from the user's stored
        preferences.
        """
        listeners = list(listeners)
        if user_id is not None:
            prefs = self.history.preferences(user_id)
            options.setdefault("pause_duration", prefs.pause_duration)
            options.setdefault("auto_repeat", prefs.auto_repeat)
            options.setdefault("auto_repeat_verse", prefs.auto_repeat_ayah)
            listeners.append(SessionRecorder(self.history, user_id))

        return PlaybackScheduler(
            verses,
            media,
            loop=loop,
            audio=self.audio,
            settings=self.settings,
            listeners=listeners,
            **options,
        )
