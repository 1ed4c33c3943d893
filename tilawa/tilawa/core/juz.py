"""
Juz boundary table.

The Quran is split into 30 juz. Each juz is identified by the verse it
starts at; it runs until the verse before the next juz starts, and juz 30
runs to the end of the text. Everything here is pure lookup over a fixed
table and safe to share between threads.
"""

from dataclasses import dataclass
from typing import Iterator

from tilawa.core.verses import LAST_VERSE, VerseRef
from tilawa.exceptions import InvalidJuzNumber
from tilawa.models.surah import SURAH_AYAH_COUNTS

TOTAL_JUZ = 30

# Start marker of each juz, index 0 is juz 1
JUZ_BOUNDARIES: tuple[VerseRef, ...] = (
    VerseRef(1, 1),
    VerseRef(2, 142),
    VerseRef(2, 253),
    VerseRef(3, 93),
    VerseRef(4, 24),
    VerseRef(4, 148),
    VerseRef(5, 82),
    VerseRef(6, 111),
    VerseRef(7, 88),
    VerseRef(8, 41),
    VerseRef(9, 93),
    VerseRef(11, 6),
    VerseRef(12, 53),
    VerseRef(15, 1),
    VerseRef(17, 1),
    VerseRef(18, 75),
    VerseRef(21, 1),
    VerseRef(23, 1),
    VerseRef(25, 21),
    VerseRef(27, 56),
    VerseRef(29, 46),
    VerseRef(33, 31),
    VerseRef(36, 28),
    VerseRef(39, 32),
    VerseRef(41, 47),
    VerseRef(46, 1),
    VerseRef(51, 31),
    VerseRef(58, 1),
    VerseRef(67, 1),
    VerseRef(78, 1),
)

ALL_JUZ: tuple[int, ...] = tuple(range(1, TOTAL_JUZ + 1))


@dataclass(frozen=True)
class JuzRange:
    """
    Span of a juz.

    ``end`` is the last verse of the juz, or None for juz 30 which runs to
    the end of the text.
    """

    juz_number: int
    start: VerseRef
    end: VerseRef | None

    @property
    def last_verse(self) -> VerseRef:
        return self.end if self.end is not None else LAST_VERSE

    def __contains__(self, verse: object) -> bool:
        if not isinstance(verse, tuple) or len(verse) != 2:
            return False
        return self.start <= tuple(verse) <= self.last_verse


def check_juz_number(juz_number: int) -> None:
    if isinstance(juz_number, bool) or not isinstance(juz_number, int) or not 1 <= juz_number <= TOTAL_JUZ:
        raise InvalidJuzNumber(juz_number)


def juz_of(surah: int, ayah: int) -> int:
    """
    Juz number (1-30) containing the given verse.

    Scans the boundaries from the last to the first and returns the first
    one at or before the verse. Input before every marker falls back to 1.

    Examples:
        >>> juz_of(2, 141)
        1
        >>> juz_of(2, 142)
        2
    """
    verse = VerseRef(surah, ayah)
    for index in range(TOTAL_JUZ - 1, -1, -1):
        if verse >= JUZ_BOUNDARIES[index]:
            return index + 1
    return 1


def juz_range(juz_number: int) -> JuzRange:
    """
    Start and end verse of a juz.

    Raises:
        InvalidJuzNumber: if juz_number is not in 1..30
    """
    check_juz_number(juz_number)

    start = JUZ_BOUNDARIES[juz_number - 1]
    end = None if juz_number == TOTAL_JUZ else JUZ_BOUNDARIES[juz_number].previous()
    return JuzRange(juz_number=juz_number, start=start, end=end)


def is_ayah_in_juz(surah: int, ayah: int, juz_number: int) -> bool:
    return juz_of(surah, ayah) == juz_number


def iter_juz_verses(juz_number: int) -> Iterator[VerseRef]:
    """Yield every verse of a juz in reading order."""
    span = juz_range(juz_number)
    last = span.last_verse
    verse: VerseRef | None = span.start
    while verse is not None and verse <= last:
        yield verse
        verse = verse.next()


def total_ayahs_in_juz(juz_number: int) -> int:
    """Number of verses in a juz, derived from the boundary table."""
    span = juz_range(juz_number)
    start, last = span.start, span.last_verse

    if start.surah == last.surah:
        return last.ayah - start.ayah + 1

    count = SURAH_AYAH_COUNTS[start.surah] - start.ayah + 1
    for surah in range(start.surah + 1, last.surah):
        count += SURAH_AYAH_COUNTS[surah]
    return count + last.ayah
