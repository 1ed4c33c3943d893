"""
Listening history, bookmarks and playback preferences.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class RecitationSession(BaseModel):
    """
    Progress snapshot of one playback session.

    Attributes:
        surah_id: Surah being recited
        start_ayah: First ayah of the selected range
        end_ayah: Last ayah of the selected range
        completed_ayahs: Ayahs finished so far
        session_time: Elapsed listening time in seconds
        is_completed: Whether the whole range was played
    """

    id: int
    user_id: int
    surah_id: int = Field(..., ge=1, le=114)
    start_ayah: int = Field(..., ge=1)
    end_ayah: int = Field(..., ge=1)
    pause_duration: int = Field(default=5, ge=0, le=30)
    completed_ayahs: int = Field(default=0, ge=0)
    session_time: int = Field(default=0, ge=0)
    is_completed: bool = False
    created_at: datetime

    @field_validator("end_ayah")
    @classmethod
    def end_after_start(cls, v: int, info) -> int:
        """Ensure the range is not reversed."""
        if "start_ayah" in info.data and v < info.data["start_ayah"]:
            raise ValueError("end_ayah must be >= start_ayah")
        return v

    @property
    def total_ayahs(self) -> int:
        return self.end_ayah - self.start_ayah + 1


class SessionStats(BaseModel):
    total_sessions: int = 0
    total_time: int = 0
    total_ayahs: int = 0
    completed_sessions: int = 0
    average_session_time: int = 0
    most_listened_surah: str = "None"
    weekly_progress: list[int] = Field(default_factory=lambda: [0] * 7)


class WeeklyListening(BaseModel):
    """Listening time for one Friday-to-Thursday rotation week."""

    week_start: date
    session_count: int = 0
    total_time: int = 0


class PracticeCount(BaseModel):
    surah_id: int
    ayah_number: int
    count: int = Field(default=0, ge=0)
    last_practiced: date


class Bookmark(BaseModel):
    id: int
    user_id: int
    surah_id: int = Field(..., ge=1, le=114)
    ayah_number: int = Field(..., ge=1)
    notes: Optional[str] = None
    created_at: datetime


class UserPreferences(BaseModel):
    user_id: int
    pause_duration: int = Field(default=5, ge=0, le=30)
    auto_repeat: bool = False
    auto_repeat_ayah: bool = False
    last_surah: int = Field(default=1, ge=1, le=114)
    last_ayah: int = Field(default=1, ge=1)


class PracticeDay(BaseModel):
    """Listens and listening seconds on one calendar day."""

    day: date
    count: int = 0
    duration: int = 0


class PracticedAyah(BaseModel):
    surah_id: int
    surah_name: str
    ayah_number: int
    count: int = 0
