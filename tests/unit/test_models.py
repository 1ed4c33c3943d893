"""
Unit tests for data models, configuration and errors.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError
from tilawa import config
from tilawa.config import TilawaSettings, configure, get_settings
from tilawa.exceptions import (
    AudioUnavailable,
    CommunityFull,
    ConflictError,
    JuzTaken,
    NotAuthenticated,
    NotFoundError,
    TransferRequestNotFound,
)
from tilawa.models import (
    Ayah,
    JuzAssignment,
    JuzSlot,
    JuzStatus,
    RecitationSession,
    Surah,
    TransferStatus,
    UserPreferences,
)
from tilawa.models.surah import get_all_surahs, get_ayah_count

NOW = datetime(2024, 3, 15, 9, 0, tzinfo=timezone.utc)


def assignment(pct):
    return JuzAssignment(id=1, community_id=1, juz_number=5, member_id=2,
                         assigned_at=NOW, completion_percentage=pct)


class TestSurah:
    """Test Surah reference data."""

    def test_from_id(self):
        surah = Surah.from_id(1)
        assert surah.total_ayahs == 7
        assert surah.name_arabic == "الفاتحة"
        assert str(surah) == "Surah 1: الفاتحة"

    @pytest.mark.parametrize("surah_id", [0, 115])
    def test_invalid_id(self, surah_id):
        with pytest.raises(ValueError):
            Surah.from_id(surah_id)
        with pytest.raises(ValueError):
            get_ayah_count(surah_id)

    def test_all_surahs(self):
        surahs = get_all_surahs()
        assert len(surahs) == 114
        assert sum(s.total_ayahs for s in surahs) == 6236

    def test_ayah_is_immutable(self):
        ayah = Ayah(surah_id=1, number=1, text="بسم الله الرحمن الرحيم")
        with pytest.raises(ValidationError):
            ayah.number = 2


class TestCommunityModels:
    """Test ledger records."""

    @pytest.mark.parametrize("pct,status", [
        (0, JuzStatus.NOT_STARTED),
        (0.5, JuzStatus.IN_PROGRESS),
        (99.9, JuzStatus.IN_PROGRESS),
        (100, JuzStatus.COMPLETED),
    ])
    def test_slot_status(self, pct, status):
        slot = JuzSlot.from_assignment(5, assignment(pct))
        assert slot.status == status
        assert slot.member_id == 2

    def test_free_slot(self):
        slot = JuzSlot.from_assignment(5, None)
        assert slot.status == JuzStatus.AVAILABLE
        assert slot.assignment_id is None

    def test_percentage_bounds(self):
        with pytest.raises(ValidationError):
            assignment(101)

    def test_terminal_states(self):
        assert not TransferStatus.PENDING.is_terminal
        assert TransferStatus.ACCEPTED.is_terminal
        assert TransferStatus.DECLINED.is_terminal


class TestHistoryModels:
    """Test history records."""

    def test_reversed_range_rejected(self):
        with pytest.raises(ValidationError):
            RecitationSession(id=1, user_id=1, surah_id=1, start_ayah=5, end_ayah=2,
                              created_at=NOW)

    def test_pause_duration_bounds(self):
        with pytest.raises(ValidationError):
            UserPreferences(user_id=1, pause_duration=31)


class TestSettings:
    """Test configuration."""

    def test_defaults(self):
        settings = TilawaSettings(_env_file=None)
        assert settings.audio_load_timeout == 8.0
        assert settings.default_pause_duration == 5
        assert settings.modification_window_hours == 48.0
        assert settings.audio_base_path == "/audio/alafasy"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("TILAWA_MODIFICATION_WINDOW_HOURS", "24")
        monkeypatch.setenv("TILAWA_DATABASE_PATH", "/tmp/x.db")
        settings = TilawaSettings(_env_file=None)
        assert settings.modification_window_hours == 24.0
        assert str(settings.database_path) == "/tmp/x.db"

    def test_trailing_slash_stripped(self):
        settings = TilawaSettings(fallback_audio_host="https://example.org/audio/", _env_file=None)
        assert settings.fallback_audio_host == "https://example.org/audio"

    def test_invalid_pause(self):
        with pytest.raises(ValidationError):
            TilawaSettings(default_pause_duration=31, _env_file=None)

    def test_configure_replaces_default(self, monkeypatch):
        monkeypatch.setattr(config, "_default_settings", None)
        configured = configure(seek_step_seconds=5, _env_file=None)
        assert get_settings() is configured
        assert get_settings().seek_step_seconds == 5


class TestErrors:
    """Test the error taxonomy."""

    def test_kinds_are_distinguishable(self):
        assert isinstance(JuzTaken(1, 3), ConflictError)
        assert isinstance(CommunityFull(1, 30), ConflictError)
        assert isinstance(TransferRequestNotFound(9), NotFoundError)
        assert NotAuthenticated().http_status == 401
        assert AudioUnavailable(1, 1, []).http_status == 503

    def test_to_dict(self):
        data = JuzTaken(4, 12).to_dict()
        assert data["error"] == "JuzTaken"
        assert data["juz_number"] == 12
        assert data["community_id"] == 4
