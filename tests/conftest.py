"""
Shared fixtures and test configuration for Tilawa tests.
"""

import heapq
import itertools
from datetime import datetime, timedelta, timezone

import pytest
from tilawa.config import TilawaSettings
from tilawa.context import TilawaContext
from tilawa.core.verses import VerseRef
from tilawa.playback.media import BaseMediaElement


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


class FakeHandle:
    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeTimerLoop:
    """Deterministic stand-in for an asyncio loop's call_later/time."""

    def __init__(self):
        self.now = 0.0
        self._queue = []
        self._seq = itertools.count()

    def time(self) -> float:
        return self.now

    def call_later(self, delay, callback, *args):
        handle = FakeHandle()
        heapq.heappush(self._queue, (self.now + delay, next(self._seq), handle, callback, args))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for _, _, handle, _, _ in self._queue if not handle.cancelled)

    def advance(self, seconds: float) -> None:
        """Move time forward, running every callback that falls due."""
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            when, _, handle, callback, args = heapq.heappop(self._queue)
            self.now = when
            if not handle.cancelled:
                callback(*args)
        self.now = target


class FakeMediaElement(BaseMediaElement):
    """Records the scheduler's commands; tests fire the media events."""

    def __init__(self):
        self.loads = []
        self.play_calls = 0
        self.pause_calls = 0
        self.seeks = []
        self.playing = False

    @property
    def last_url(self):
        return self.loads[-1][0]

    @property
    def last_token(self):
        return self.loads[-1][1]

    def load(self, url, token):
        self.loads.append((url, token))
        self.playing = False

    def play(self):
        self.play_calls += 1
        self.playing = True

    def pause(self):
        self.pause_calls += 1
        self.playing = False

    def seek(self, position):
        self.seeks.append(position)


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a throwaway database."""
    return TilawaSettings(database_path=tmp_path / "tilawa.db", _env_file=None)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2024, 3, 15, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def ctx(settings, clock):
    """Initialized context on a temporary database."""
    return TilawaContext(settings=settings, clock=clock).initialize()


@pytest.fixture
def db(ctx):
    return ctx.db


@pytest.fixture
def ledger(ctx):
    return ctx.ledger


@pytest.fixture
def transfers(ctx):
    return ctx.transfers


@pytest.fixture
def history(ctx):
    return ctx.history


@pytest.fixture
def community(ledger):
    """A community with room for everyone, created by admin 1."""
    return ledger.create_community("Family khatmah", admin_id=1)


@pytest.fixture
def timer_loop():
    return FakeTimerLoop()


@pytest.fixture
def media():
    return FakeMediaElement()


@pytest.fixture
def three_verses():
    """First three ayahs of Al-Fatiha."""
    return [VerseRef(1, 1), VerseRef(1, 2), VerseRef(1, 3)]
