"""
Guided Recitation Example for Tilawa

This example plays Surah Al-Ikhlas verse by verse on an asyncio loop:
1. Implement a media element (here a simulated player)
2. Build a scheduler that records the session for a user
3. Play to the end with a short pause between verses
4. Read back the session and listening statistics
"""

import asyncio
import tempfile
from pathlib import Path

from tilawa import TilawaContext, TilawaSettings
from tilawa.core import format_time, verse_list
from tilawa.playback import BaseMediaElement, PlaybackListener

VERSE_SECONDS = 1.5


class SimulatedPlayer(BaseMediaElement):
    """Pretends every recording loads instantly and lasts VERSE_SECONDS."""

    def __init__(self):
        self.scheduler = None
        self._token = None
        self._ending = None

    def load(self, url, token):
        print(f"    loading {url}")
        self._token = token
        asyncio.get_running_loop().call_soon(self.scheduler.handle_loaded, token, VERSE_SECONDS)

    def play(self):
        loop = asyncio.get_running_loop()
        self._ending = loop.call_later(VERSE_SECONDS, self.scheduler.handle_ended, self._token)

    def pause(self):
        if self._ending is not None:
            self._ending.cancel()

    def seek(self, position):
        pass


class Printer(PlaybackListener):
    def __init__(self):
        self.finished = asyncio.Event()

    def on_verse_change(self, scheduler, index):
        print(f"  Ayah {scheduler.current_verse} ({index + 1}/{scheduler.total})")

    def on_verse_completed(self, scheduler, verse, duration):
        print(f"    finished {verse} after {duration:.1f}s, pausing {scheduler.pause_duration}s")

    def on_session_complete(self, scheduler):
        self.finished.set()

    def on_error(self, scheduler, error):
        print(f"  Playback failed: {error.message}")
        self.finished.set()


async def recite(ctx, user_id):
    player = SimulatedPlayer()
    printer = Printer()
    scheduler = ctx.scheduler(verse_list(112), player, user_id=user_id,
                              listeners=[printer], pause_duration=1)
    player.scheduler = scheduler

    scheduler.start()
    await printer.finished.wait()
    return scheduler


def main():
    workdir = Path(tempfile.mkdtemp())
    ctx = TilawaContext(settings=TilawaSettings(database_path=workdir / "recite.db")).initialize()
    user_id = 7

    # Steps 1-3: Play the surah
    print("Reciting Surah 112...\n")
    scheduler = asyncio.run(recite(ctx, user_id))
    print(f"\nDone: {scheduler.completed_count}/{scheduler.total} ayahs "
          f"in {format_time(scheduler.elapsed_session_seconds)}\n")

    # Step 4: History
    print("=" * 48)
    print("Listening history")
    print("=" * 48)
    stats = ctx.history.session_stats(user_id)
    print(f"Sessions: {stats.total_sessions} ({stats.completed_sessions} completed)")
    print(f"Time listened: {format_time(stats.total_time)}")
    print(f"Most listened surah: {stats.most_listened_surah}")
    for practiced in ctx.history.most_practiced(user_id, limit=3):
        print(f"  {practiced.surah_name} {practiced.ayah_number}: {practiced.count}x")


if __name__ == "__main__":
    main()
