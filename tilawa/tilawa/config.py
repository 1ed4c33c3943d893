"""
Configuration management for Tilawa.

Uses Pydantic Settings for type-safe configuration with environment variable support.
All settings can be overridden via environment variables with the TILAWA_ prefix.
"""

from typing import Literal
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TilawaSettings(BaseSettings):
    """
    Configuration settings for Tilawa.

    All settings can be overridden via environment variables with TILAWA_ prefix.

    Example:
        export TILAWA_DATABASE_PATH="/var/lib/tilawa/tilawa.db"
        export TILAWA_AUDIO_LOAD_TIMEOUT="5"
        export TILAWA_MODIFICATION_WINDOW_HOURS="24"
    """

    model_config = SettingsConfigDict(
        env_prefix="TILAWA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ============ Storage ============

    database_path: Path = Field(
        default=Path("tilawa.db"),
        description="SQLite database file",
    )

    database_timeout: float = Field(
        default=10.0,
        description="Seconds a writer waits for the database lock",
        ge=0.1,
        le=120.0,
    )

    # ============ Audio Sources ============

    audio_base_path: str = Field(
        default="/audio/alafasy",
        description="Folder serving the primary per-ayah recordings",
    )

    fallback_audio_host: str = Field(
        default="https://everyayah.com/data/Abdul_Basit_Murattal_192kbps",
        description="Remote host used when the primary recording fails",
    )

    audio_load_timeout: float = Field(
        default=8.0,
        description="Seconds to wait for a recording before trying the fallback",
        ge=0.5,
        le=60.0,
    )

    audio_probe_timeout: float = Field(
        default=5.0,
        description="Timeout for HTTP availability checks",
        ge=0.5,
        le=60.0,
    )

    # ============ Playback ============

    seek_step_seconds: float = Field(
        default=10.0,
        description="Offset used by rewind/forward",
        ge=1.0,
        le=60.0,
    )

    default_pause_duration: int = Field(
        default=5,
        description="Pause between ayahs in seconds (0 disables the pause)",
        ge=0,
        le=30,
    )

    pause_includes_verse_duration: bool = Field(
        default=False,
        description="Add the length of the finished ayah to the pause",
    )

    # ============ Communities ============

    modification_window_hours: float = Field(
        default=48.0,
        description="How long a member may change their juz after assignment",
        gt=0.0,
    )

    default_max_members: int = Field(
        default=30,
        description="Member limit for new communities",
        ge=1,
        le=30,
    )

    # ============ Logging ============

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Log level used by the CLI and examples",
    )

    # ============ Validators ============

    @field_validator("database_path", mode="before")
    @classmethod
    def convert_to_path(cls, v: str | Path) -> Path:
        """Convert string paths to Path objects."""
        if isinstance(v, str):
            return Path(v)
        return v

    @field_validator("audio_base_path", "fallback_audio_host")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


# Default settings instance
_default_settings: TilawaSettings | None = None


def get_settings() -> TilawaSettings:
    """
    Get the default settings instance (lazily created).

    Returns:
        TilawaSettings: The default settings
    """
    global _default_settings
    if _default_settings is None:
        _default_settings = TilawaSettings()
    return _default_settings


def configure(**kwargs) -> TilawaSettings:
    """
    Create and set new default settings.

    Args:
        **kwargs: Settings to override

    Returns:
        TilawaSettings: The new settings instance
    """
    global _default_settings
    _default_settings = TilawaSettings(**kwargs)
    return _default_settings
