"""
Verse-by-verse audio playback.

Primary API:
    from tilawa.playback import PlaybackScheduler

    scheduler = PlaybackScheduler(verse_list(1), media, loop=loop)
    scheduler.start()
"""

from tilawa.playback.audio import AudioSource, SourceKind, audio_filename
from tilawa.playback.media import BaseMediaElement, TimerHandle, TimerLoop
from tilawa.playback.recorder import SessionRecorder
from tilawa.playback.scheduler import (
    PlaybackListener,
    PlaybackScheduler,
    PlaybackSnapshot,
    PlaybackState,
)

__all__ = [
    "AudioSource",
    "SourceKind",
    "audio_filename",
    "BaseMediaElement",
    "TimerHandle",
    "TimerLoop",
    "SessionRecorder",
    "PlaybackListener",
    "PlaybackScheduler",
    "PlaybackSnapshot",
    "PlaybackState",
]
