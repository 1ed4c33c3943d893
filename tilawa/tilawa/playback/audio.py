"""
Per-ayah audio sources.

Recordings are addressed by a zero-padded ``SSSAAA.mp3`` file name (three
digits of surah, three digits of ayah). The same name is looked up first in
the primary folder and then on the fallback host, so the file name is the
join key between a verse and its recording.
"""

import logging
from enum import Enum
from urllib.parse import urljoin

import requests

from tilawa.config import TilawaSettings, get_settings
from tilawa.core.verses import VerseRef, verse_list

logger = logging.getLogger(__name__)


class SourceKind(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


def audio_filename(surah_id: int, ayah_number: int) -> str:
    """
    File name of an ayah recording.

    Examples:
        >>> audio_filename(1, 1)
        '001001.mp3'
        >>> audio_filename(114, 6)
        '114006.mp3'
    """
    return f"{surah_id:03d}{ayah_number:03d}.mp3"


class AudioSource:
    """
    Builds recording URLs and checks whether they can be fetched.

    Example:
        source = AudioSource()
        source.url(VerseRef(1, 1))                      # '/audio/alafasy/001001.mp3'
        source.url(VerseRef(1, 1), SourceKind.FALLBACK)  # 'https://everyayah.com/.../001001.mp3'
    """

    def __init__(self, settings: TilawaSettings | None = None, session: requests.Session | None = None):
        self._settings = settings or get_settings()
        self._session = session or requests.Session()

    @property
    def base_path(self) -> str:
        return self._settings.audio_base_path

    @property
    def fallback_host(self) -> str:
        return self._settings.fallback_audio_host

    def primary_url(self, surah_id: int, ayah_number: int) -> str:
        return f"{self.base_path}/{audio_filename(surah_id, ayah_number)}"

    def fallback_url(self, surah_id: int, ayah_number: int) -> str:
        return f"{self.fallback_host}/{audio_filename(surah_id, ayah_number)}"

    def url(self, verse: VerseRef, kind: SourceKind = SourceKind.PRIMARY) -> str:
        if kind is SourceKind.FALLBACK:
            return self.fallback_url(verse.surah, verse.ayah)
        return self.primary_url(verse.surah, verse.ayah)

    def urls(self, verse: VerseRef) -> list[str]:
        """Primary then fallback URL for a verse."""
        return [self.url(verse, SourceKind.PRIMARY), self.url(verse, SourceKind.FALLBACK)]

    def probe(self, url: str, origin: str | None = None) -> bool:
        """
        Check that a recording can be fetched with an HTTP HEAD request.

        Relative URLs (the primary folder) are resolved against ``origin``;
        without one they cannot be checked and count as unavailable.
        """
        if origin:
            url = urljoin(origin.rstrip("/") + "/", url.lstrip("/"))
        if not url.startswith(("http://", "https://")):
            return False

        try:
            response = self._session.head(
                url, timeout=self._settings.audio_probe_timeout, allow_redirects=True
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.debug("Audio probe failed for %s: %s", url, e)
            return False
        return True

    def available_source(self, verse: VerseRef, origin: str | None = None) -> SourceKind | None:
        """First source that answers for a verse, or None if neither does."""
        for kind in SourceKind:
            if self.probe(self.url(verse, kind), origin=origin):
                return kind
        return None

    def missing_recordings(self, surah_id: int, origin: str | None = None) -> list[VerseRef]:
        """Verses of a surah with no reachable recording on either source."""
        missing = [v for v in verse_list(surah_id) if self.available_source(v, origin) is None]
        if missing:
            logger.warning("Surah %s has %d ayahs without audio", surah_id, len(missing))
        return missing
