"""
Playback scheduler.

Plays an ordered list of verses one recording at a time, with a countdown
pause between verses and optional repetition. The scheduler is a state
machine driven from a single event loop::

    IDLE -> LOADING -> READY -> PLAYING -> PAUSING -> LOADING (next verse)
                                   |  ^
                                   v  |
                                  PAUSED

    any state -> ERROR when both audio sources fail (resumable via
    retry() or use_fallback_source())

    PAUSING -> COMPLETED after the last verse when auto_repeat is off

Every load carries a token. Media events arriving with an older token
belong to a superseded load and are dropped, and every navigation cancels
the pending load timeout and countdown, so a stale timer can never advance
the session twice.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Iterable

from tilawa.config import TilawaSettings, get_settings
from tilawa.core.verses import VerseRef
from tilawa.exceptions import (
    AudioUnavailable,
    InvalidSetting,
    InvalidVerseRange,
    LoadingInProgress,
    NoAudioLoaded,
    NoEventLoop,
    TilawaError,
)
from tilawa.models import Ayah
from tilawa.playback.audio import AudioSource, SourceKind
from tilawa.playback.media import BaseMediaElement, TimerHandle, TimerLoop

logger = logging.getLogger(__name__)

COUNTDOWN_TICK_SECONDS = 1


def as_verse_refs(verses: Iterable[VerseRef | Ayah | tuple[int, int]]) -> list[VerseRef]:
    """Accept ``Ayah`` records as well as (surah, ayah) pairs."""
    return [
        VerseRef(v.surah_id, v.number) if isinstance(v, Ayah) else VerseRef(*v)
        for v in verses
    ]


class PlaybackState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    PAUSING = "pausing"
    COMPLETED = "completed"
    ERROR = "error"


class PlaybackListener:
    """
    Observer of scheduler progress. Override only the hooks you need.
    """

    def on_started(self, scheduler: "PlaybackScheduler") -> None:
        pass

    def on_verse_change(self, scheduler: "PlaybackScheduler", index: int) -> None:
        pass

    def on_verse_completed(self, scheduler: "PlaybackScheduler", verse: VerseRef,
                           duration: float) -> None:
        pass

    def on_session_complete(self, scheduler: "PlaybackScheduler") -> None:
        pass

    def on_error(self, scheduler: "PlaybackScheduler", error: TilawaError) -> None:
        pass


@dataclass(frozen=True)
class PlaybackSnapshot:
    """What a player UI needs to render one frame."""

    state: PlaybackState
    index: int
    verse: VerseRef
    current_time: float
    duration: float
    progress: float
    countdown_remaining: int
    last_verse_duration: int
    completed_count: int
    remaining_count: int
    elapsed_session_seconds: int
    session_completed: bool
    source: SourceKind
    error: str | None


class PlaybackScheduler:
    """
    Drives a ``BaseMediaElement`` through a list of verses.

    Timers run on ``loop``; without one the running asyncio loop is used,
    and building the scheduler outside a coroutine raises ``NoEventLoop``.

    Example:
        scheduler = PlaybackScheduler(verse_list(1), media, loop=loop)
        scheduler.start()           # loads 1:1 and plays it once ready
        ...
        scheduler.next_ayah()
        scheduler.close()
    """

    def __init__(
        self,
        verses: Iterable[VerseRef | Ayah],
        media: BaseMediaElement,
        loop: TimerLoop | None = None,
        audio: AudioSource | None = None,
        settings: TilawaSettings | None = None,
        pause_duration: int | None = None,
        auto_repeat: bool = False,
        auto_repeat_verse: bool = False,
        listeners: Iterable[PlaybackListener] = (),
    ):
        self._settings = settings or get_settings()
        self.verses = as_verse_refs(verses)
        if not self.verses:
            raise InvalidVerseRange("Nothing to play: the verse list is empty")

        self.media = media
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                raise NoEventLoop() from None
        self.loop = loop
        self.audio = audio or AudioSource(self._settings)
        self.listeners = list(listeners)

        self.pause_duration = self._settings.default_pause_duration
        if pause_duration is not None:
            self.set_pause_duration(pause_duration)
        self.auto_repeat = auto_repeat
        self.auto_repeat_verse = auto_repeat_verse

        self.state = PlaybackState.IDLE
        self.index = 0
        self.token = 0
        self.source = SourceKind.PRIMARY
        self.duration = 0.0
        self.current_time = 0.0
        self.countdown_remaining = 0
        self.last_verse_duration = 0
        self.session_completed = False
        self.error: TilawaError | None = None

        self._autoplay = False
        self._started_at: float | None = None
        self._stopped_at: float | None = None
        self._load_timer: TimerHandle | None = None
        self._countdown_timer: TimerHandle | None = None

    # ============ Settings ============

    def set_pause_duration(self, seconds: int) -> None:
        if isinstance(seconds, bool) or not isinstance(seconds, int) or not 0 <= seconds <= 30:
            raise InvalidSetting(
                f"Pause duration must be between 0 and 30 seconds, got {seconds!r}",
                {"pause_duration": seconds},
            )
        self.pause_duration = seconds

    def add_listener(self, listener: PlaybackListener) -> None:
        self.listeners.append(listener)

    # ============ Derived values ============

    @property
    def current_verse(self) -> VerseRef:
        return self.verses[self.index]

    @property
    def total(self) -> int:
        return len(self.verses)

    @property
    def progress(self) -> float:
        """Position within the current verse, in percent."""
        if self.duration <= 0:
            return 0.0
        return min(100.0, self.current_time / self.duration * 100)

    @property
    def completed_count(self) -> int:
        if self.session_completed:
            return self.total
        return self.index

    @property
    def remaining_count(self) -> int:
        return max(0, self.total - self.index - 1)

    @property
    def elapsed_session_seconds(self) -> int:
        if self._started_at is None:
            return 0
        end = self._stopped_at if self._stopped_at is not None else self.loop.time()
        return int(end - self._started_at)

    @property
    def is_playing(self) -> bool:
        return self.state is PlaybackState.PLAYING

    def snapshot(self) -> PlaybackSnapshot:
        return PlaybackSnapshot(
            state=self.state,
            index=self.index,
            verse=self.current_verse,
            current_time=self.current_time,
            duration=self.duration,
            progress=self.progress,
            countdown_remaining=self.countdown_remaining,
            last_verse_duration=self.last_verse_duration,
            completed_count=self.completed_count,
            remaining_count=self.remaining_count,
            elapsed_session_seconds=self.elapsed_session_seconds,
            session_completed=self.session_completed,
            source=self.source,
            error=self.error.message if self.error else None,
        )

    # ============ Loading ============

    def start(self, index: int = 0, autoplay: bool = True) -> None:
        """Begin the session at ``index`` and play as soon as audio is ready."""
        self._autoplay = autoplay
        self.session_completed = False
        self._stopped_at = None
        if autoplay:
            self._mark_started()
        self._go_to(self._clamp_index(index))

    def load_verse(self, index: int, source: SourceKind = SourceKind.PRIMARY) -> None:
        """
        Load the recording for ``verses[index]``.

        Supersedes any load in flight; its callbacks will be ignored.
        """
        self._cancel_timers()
        self.token += 1
        self.index = index
        self.source = source
        self.state = PlaybackState.LOADING
        self.error = None
        self.duration = 0.0
        self.current_time = 0.0
        self.countdown_remaining = 0

        verse = self.current_verse
        url = self.audio.url(verse, source)
        logger.debug("Loading %s from %s (token %s)", verse, url, self.token)
        self._load_timer = self.loop.call_later(
            self._settings.audio_load_timeout, partial(self._on_load_timeout, self.token)
        )
        self.media.load(url, self.token)

    def retry(self) -> None:
        """Reload the current verse from the primary source."""
        self.load_verse(self.index, SourceKind.PRIMARY)

    def use_fallback_source(self) -> None:
        """Reload the current verse from the fallback host."""
        self.load_verse(self.index, SourceKind.FALLBACK)

    def _on_load_timeout(self, token: int) -> None:
        if token != self.token or self.state is not PlaybackState.LOADING:
            return
        self._load_timer = None
        logger.debug("Load of %s timed out on %s source", self.current_verse, self.source.value)
        self._source_failed()

    def _source_failed(self) -> None:
        if self.source is SourceKind.PRIMARY:
            logger.debug("Falling back to %s for %s", self.audio.fallback_host, self.current_verse)
            self.load_verse(self.index, SourceKind.FALLBACK)
            return

        self._cancel_timers()
        verse = self.current_verse
        self.state = PlaybackState.ERROR
        self.error = AudioUnavailable(verse.surah, verse.ayah, self.audio.urls(verse))
        logger.warning("No audio source available for %s", verse)
        for listener in self.listeners:
            listener.on_error(self, self.error)

    # ============ Media events ============

    def handle_loaded(self, token: int, duration: float) -> None:
        if token != self.token or self.state is not PlaybackState.LOADING:
            return
        self._cancel_load_timer()
        self.duration = max(0.0, float(duration or 0))
        self.state = PlaybackState.READY
        if self._autoplay:
            self._play_media()

    def handle_load_error(self, token: int) -> None:
        if token != self.token or self.state is not PlaybackState.LOADING:
            return
        self._cancel_load_timer()
        logger.debug("Load of %s failed on %s source", self.current_verse, self.source.value)
        self._source_failed()

    def handle_time_update(self, token: int, position: float) -> None:
        if token != self.token:
            return
        self.current_time = position

    def handle_ended(self, token: int) -> None:
        if token != self.token or self.state is not PlaybackState.PLAYING:
            return

        verse = self.current_verse
        self.current_time = self.duration
        self.last_verse_duration = math.ceil(self.duration)
        for listener in self.listeners:
            listener.on_verse_completed(self, verse, self.duration)

        countdown = self.pause_duration
        if countdown and self._settings.pause_includes_verse_duration:
            countdown += self.last_verse_duration
        if countdown <= 0:
            self._after_pause()
            return

        self.state = PlaybackState.PAUSING
        self.countdown_remaining = countdown
        self._schedule_tick()

    # ============ Countdown ============

    def _schedule_tick(self) -> None:
        self._countdown_timer = self.loop.call_later(
            COUNTDOWN_TICK_SECONDS, partial(self._tick, self.token)
        )

    def _tick(self, token: int) -> None:
        if token != self.token or self.state is not PlaybackState.PAUSING:
            return
        self._countdown_timer = None
        self.countdown_remaining -= COUNTDOWN_TICK_SECONDS
        if self.countdown_remaining > 0:
            self._schedule_tick()
            return
        self.countdown_remaining = 0
        self._after_pause()

    def _after_pause(self) -> None:
        if self.auto_repeat_verse:
            self.load_verse(self.index, self.source)
        else:
            self._go_to(self.index + 1)

    # ============ Controls ============

    def play(self) -> None:
        """
        Start or resume playback.

        Raises:
            LoadingInProgress: a recording is still loading
            NoAudioLoaded: nothing is loaded (not started, or both sources failed)
        """
        if self.state is PlaybackState.LOADING:
            raise LoadingInProgress()
        if self.state in (PlaybackState.IDLE, PlaybackState.ERROR):
            raise NoAudioLoaded()

        self._autoplay = True
        self._mark_started()
        if self.state is PlaybackState.COMPLETED:
            self.start(0)
        elif self.state is PlaybackState.PAUSING:
            self._cancel_countdown()
            self.countdown_remaining = 0
            self._after_pause()
        elif self.state in (PlaybackState.READY, PlaybackState.PAUSED):
            self._play_media()

    def pause(self) -> None:
        """
        Pause the current verse. Pausing during the countdown cancels it and
        rewinds the verse that just finished, so ``play()`` replays it.
        """
        self._autoplay = False
        self._cancel_countdown()
        self.countdown_remaining = 0
        if self.state is PlaybackState.PAUSING:
            self.media.seek(0)
            self.current_time = 0.0
        if self.state in (PlaybackState.PLAYING, PlaybackState.PAUSING):
            self.media.pause()
            self.state = PlaybackState.PAUSED

    def stop(self) -> None:
        """Pause and rewind the current verse."""
        self.pause()
        if self.state in (PlaybackState.PAUSED, PlaybackState.READY):
            self.media.seek(0)
            self.current_time = 0.0

    def close(self) -> None:
        """
        Tear the session down. Pending loads, timeouts and countdowns are
        cancelled and late media events are ignored.
        """
        self._cancel_timers()
        self.token += 1
        self._autoplay = False
        if self._started_at is not None and self._stopped_at is None:
            self._stopped_at = self.loop.time()
        self.media.unload()
        self.state = PlaybackState.IDLE
        self.countdown_remaining = 0
        logger.debug("Playback closed at %s", self.current_verse)

    def replace_verses(self, verses: Iterable[VerseRef | Ayah]) -> None:
        """Switch to another verse range, discarding everything in flight."""
        new_verses = as_verse_refs(verses)
        if not new_verses:
            raise InvalidVerseRange("Nothing to play: the verse list is empty")
        self.close()
        self.verses = new_verses
        self.index = 0
        self.duration = 0.0
        self.current_time = 0.0
        self.last_verse_duration = 0
        self.session_completed = False
        self.error = None
        self._started_at = None
        self._stopped_at = None

    # ============ Seeking ============

    def seek(self, position: float) -> None:
        if self.state in (PlaybackState.IDLE, PlaybackState.LOADING, PlaybackState.ERROR):
            return
        position = min(max(0.0, position), self.duration)
        self.media.seek(position)
        self.current_time = position

    def rewind(self) -> None:
        self.seek(self.current_time - self._settings.seek_step_seconds)

    def forward(self) -> None:
        self.seek(self.current_time + self._settings.seek_step_seconds)

    def repeat_current(self) -> None:
        """Restart the current verse from 0 without moving the index."""
        if self.state in (PlaybackState.IDLE, PlaybackState.ERROR):
            raise NoAudioLoaded()
        if self.state is PlaybackState.LOADING:
            raise LoadingInProgress()

        self._cancel_countdown()
        self.countdown_remaining = 0
        self.session_completed = False
        self.media.seek(0)
        self.current_time = 0.0
        self._autoplay = True
        self._mark_started()
        self._play_media()

    # ============ Navigation ============

    def skip_to_ayah(self, index: int) -> None:
        self._go_to(self._clamp_index(index))

    def previous_ayah(self) -> None:
        self._go_to(max(0, self.index - 1))

    def next_ayah(self) -> None:
        self._go_to(self.index + 1)

    def _clamp_index(self, index: int) -> int:
        return min(max(0, index), self.total - 1)

    def _go_to(self, index: int) -> None:
        """Move to ``index``, applying the end-of-list policy past the last verse."""
        if index >= self.total:
            if not self.auto_repeat:
                self._complete()
                return
            index = 0

        changed = index != self.index or self.state in (PlaybackState.IDLE, PlaybackState.COMPLETED)
        self.session_completed = False
        self.load_verse(index)
        if changed:
            for listener in self.listeners:
                listener.on_verse_change(self, index)

    def _complete(self) -> None:
        self._cancel_timers()
        self._autoplay = False
        self.countdown_remaining = 0
        self.session_completed = True
        self.state = PlaybackState.COMPLETED
        if self._started_at is not None:
            self._stopped_at = self.loop.time()
        logger.debug("Session complete after %d verses", self.total)
        for listener in self.listeners:
            listener.on_session_complete(self)

    # ============ Internals ============

    def _play_media(self) -> None:
        self.media.play()
        self.state = PlaybackState.PLAYING

    def _mark_started(self) -> None:
        if self._started_at is None:
            self._started_at = self.loop.time()
            self._stopped_at = None
            for listener in self.listeners:
                listener.on_started(self)
        elif self._stopped_at is not None:
            # resuming a finished session keeps counting from its start
            self._stopped_at = None

    def _cancel_load_timer(self) -> None:
        if self._load_timer is not None:
            self._load_timer.cancel()
            self._load_timer = None

    def _cancel_countdown(self) -> None:
        if self._countdown_timer is not None:
            self._countdown_timer.cancel()
            self._countdown_timer = None

    def _cancel_timers(self) -> None:
        self._cancel_load_timer()
        self._cancel_countdown()
