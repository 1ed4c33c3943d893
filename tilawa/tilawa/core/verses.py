"""
Verse references and range helpers.

A ``VerseRef`` is a ``(surah, ayah)`` pair ordered in reading order, so the
usual tuple comparison already answers "does this verse come first".
"""

from typing import NamedTuple

from tilawa.exceptions import InvalidVerseRange
from tilawa.models.surah import SURAH_AYAH_COUNTS, TOTAL_SURAHS

AVERAGE_AYAH_SECONDS = 10


class VerseRef(NamedTuple):
    surah: int
    ayah: int

    def __str__(self) -> str:
        return f"{self.surah}:{self.ayah}"

    def previous(self) -> "VerseRef | None":
        """The verse just before this one, or None for 1:1."""
        if self.ayah > 1:
            return VerseRef(self.surah, self.ayah - 1)
        if self.surah > 1:
            return VerseRef(self.surah - 1, SURAH_AYAH_COUNTS[self.surah - 1])
        return None

    def next(self) -> "VerseRef | None":
        """The verse just after this one, or None after the last verse."""
        if self.ayah < SURAH_AYAH_COUNTS[self.surah]:
            return VerseRef(self.surah, self.ayah + 1)
        if self.surah < TOTAL_SURAHS:
            return VerseRef(self.surah + 1, 1)
        return None


FIRST_VERSE = VerseRef(1, 1)
LAST_VERSE = VerseRef(TOTAL_SURAHS, SURAH_AYAH_COUNTS[TOTAL_SURAHS])


def is_valid_verse(surah: int, ayah: int) -> bool:
    return surah in SURAH_AYAH_COUNTS and 1 <= ayah <= SURAH_AYAH_COUNTS[surah]


def normalize_range(total_ayahs: int, start: int | None = None, end: int | None = None) -> tuple[int, int]:
    """
    Clamp a user-selected ayah range to a surah.

    A missing or non-positive start becomes 1, bounds beyond the surah
    become the last ayah, and reversed bounds are swapped.

    Examples:
        >>> normalize_range(7)
        (1, 7)
        >>> normalize_range(7, 5, 2)
        (2, 5)
        >>> normalize_range(7, 10)
        (7, 7)
    """
    start = min(start, total_ayahs) if start and start > 0 else 1
    end = end if end and 0 < end <= total_ayahs else total_ayahs
    return min(start, end), max(start, end)


def verse_list(surah_id: int, start: int | None = None, end: int | None = None) -> list[VerseRef]:
    """Ordered verses a playback session should go through."""
    if surah_id not in SURAH_AYAH_COUNTS:
        raise InvalidVerseRange(f"Unknown surah {surah_id}", {"surah_id": surah_id})

    first, last = normalize_range(SURAH_AYAH_COUNTS[surah_id], start, end)
    return [VerseRef(surah_id, ayah) for ayah in range(first, last + 1)]


def format_time(seconds: int) -> str:
    """Format seconds as m:ss."""
    mins, secs = divmod(int(seconds), 60)
    return f"{mins}:{secs:02d}"


def estimate_duration(number_of_ayahs: int, pause_duration: int) -> int:
    """Rough session length assuming about ten seconds per ayah."""
    return number_of_ayahs * (AVERAGE_AYAH_SECONDS + pause_duration)
