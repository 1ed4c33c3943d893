"""
Collaborators the playback scheduler drives.

The scheduler never talks to an audio backend directly. It issues commands
to a ``BaseMediaElement`` and receives the element's events back through
``PlaybackScheduler.handle_*`` methods, each tagged with the load token the
command carried. Timers come from an event loop: anything with
``call_later(delay, callback)`` and ``time()`` works, which includes every
``asyncio`` loop.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerLoop(Protocol):
    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...

    def time(self) -> float: ...


class BaseMediaElement(ABC):
    """
    Abstract audio element.

    Implementations load one URL at a time and report back asynchronously:

    - ``scheduler.handle_loaded(token, duration)`` once the source can play
    - ``scheduler.handle_load_error(token)`` if it cannot
    - ``scheduler.handle_time_update(token, position)`` while playing
    - ``scheduler.handle_ended(token)`` when playback reaches the end

    ``token`` is the value passed to ``load``; events for an older token
    are ignored by the scheduler.
    """

    @abstractmethod
    def load(self, url: str, token: int) -> None:
        """Start loading ``url``. Must not block."""

    @abstractmethod
    def play(self) -> None:
        pass

    @abstractmethod
    def pause(self) -> None:
        pass

    @abstractmethod
    def seek(self, position: float) -> None:
        """Jump to ``position`` seconds within the loaded source."""

    def unload(self) -> None:
        """Release the current source. Optional."""
        self.pause()
