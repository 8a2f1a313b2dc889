"""Application Settings and Configuration

Pydantic-based settings management using environment variables.
Settings are loaded from environment variables with support for .env files,
type validation, and sensible defaults. All nested settings are frozen and
immutable after initialization; ``reload`` swaps in a fresh ``Settings``.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..domain.shared.messages import ErrorMessages
from ..domain.shared.types import (
    AliasStr,
    CommandPrefixStr,
    DurationLimitSeconds,
    FileBytes,
    NonEmptyStr,
    NonNegativeFloat,
    PlaylistLimit,
    PositiveInt,
    UnitInterval,
    VolumeFloat,
)


class GeneralSettings(BaseModel):
    """Command prefix, skip ratios and queue limits."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    command_prefix: CommandPrefixStr = Field(
        default="!", validation_alias=AliasChoices("command_prefix", "prefix")
    )
    skip_ratio: UnitInterval = 0.5
    playlist_skip_ratio: UnitInterval = 0.5
    default_comment: str = ""
    max_song_duration: DurationLimitSeconds = Field(
        default=0, validation_alias=AliasChoices("max_song_duration", "max_duration")
    )
    max_song_per_playlist: PlaylistLimit = 50
    automatic_shuffle_on: bool = Field(
        default=False, validation_alias=AliasChoices("automatic_shuffle_on", "auto_shuffle")
    )
    admin_skip_bypasses_ratio: bool = True


class CacheSettings(BaseModel):
    """On-disk audio cache configuration."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    enabled: bool = False
    maximum_size: FileBytes = Field(
        default=512 * 1024 * 1024,
        validation_alias=AliasChoices("maximum_size", "max_size"),
    )
    expire_time: NonNegativeFloat = Field(
        default=24 * 3600.0,
        validation_alias=AliasChoices("expire_time", "ttl"),
    )
    directory: Path = Path("data/audio")


class VolumeSettings(BaseModel):
    """Playback volume bounds."""

    model_config = ConfigDict(frozen=True)

    default_volume: VolumeFloat = 0.2
    lowest_volume: VolumeFloat = 0.01
    highest_volume: VolumeFloat = 0.8

    @model_validator(mode="after")
    def _check_bounds(self) -> VolumeSettings:
        if not self.lowest_volume <= self.default_volume <= self.highest_volume:
            raise ValueError(ErrorMessages.INVALID_VOLUME_BOUNDS)
        return self

    def clamp(self, volume: float) -> float:
        return max(self.lowest_volume, min(self.highest_volume, volume))


class AliasSettings(BaseModel):
    """Chat aliases for each command."""

    model_config = ConfigDict(frozen=True)

    add_alias: AliasStr = "add"
    skip_alias: AliasStr = "skip"
    skip_playlist_alias: AliasStr = "skipplaylist"
    admin_skip_alias: AliasStr = "forceskip"
    admin_skip_playlist_alias: AliasStr = "forceskipplaylist"
    help_alias: AliasStr = "help"
    volume_alias: AliasStr = "volume"
    move_alias: AliasStr = "move"
    reload_alias: AliasStr = "reload"
    reset_alias: AliasStr = "reset"
    num_songs_alias: AliasStr = "numsongs"
    next_song_alias: AliasStr = "nextsong"
    current_song_alias: AliasStr = "currentsong"
    set_comment_alias: AliasStr = "setcomment"
    num_cached_alias: AliasStr = "numcached"
    cache_size_alias: AliasStr = "cachesize"
    kill_alias: AliasStr = "kill"
    shuffle_alias: AliasStr = "shuffle"
    shuffle_on_alias: AliasStr = "shuffleon"
    shuffle_off_alias: AliasStr = "shuffleoff"

    @model_validator(mode="after")
    def _check_unique(self) -> AliasSettings:
        aliases = [a.lower() for a in self.model_dump().values()]
        if len(aliases) != len(set(aliases)):
            raise ValueError(ErrorMessages.DUPLICATE_ALIAS)
        return self


class PermissionSettings(BaseModel):
    """Which commands are restricted to admins."""

    model_config = ConfigDict(frozen=True)

    admins_enabled: bool = True
    admins: tuple[NonEmptyStr, ...] = Field(default_factory=tuple)
    admin_add: bool = False
    admin_add_playlists: bool = False
    admin_skip: bool = True
    admin_help: bool = False
    admin_volume: bool = False
    admin_move: bool = True
    admin_reload: bool = True
    admin_reset: bool = True
    admin_num_songs: bool = False
    admin_next_song: bool = False
    admin_current_song: bool = False
    admin_set_comment: bool = True
    admin_num_cached: bool = True
    admin_cache_size: bool = True
    admin_kill: bool = True
    admin_shuffle: bool = True
    admin_shuffle_toggle: bool = True

    @field_validator("admins", mode="before")
    @classmethod
    def _split_admins(cls, v: object) -> object:
        """Accept a comma-separated string or a JSON array."""
        if isinstance(v, str):
            return tuple(name.strip() for name in v.split(",") if name.strip())
        if isinstance(v, list):
            return tuple(v)
        return v


class DiscordSettings(BaseModel):
    """Voice chat connection configuration."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    token: SecretStr = Field(
        default=SecretStr(""), validation_alias=AliasChoices("token", "bot_token", "discord_token")
    )
    default_channel: str = Field(
        default="", validation_alias=AliasChoices("default_channel", "channel")
    )
    guild_id: int | None = Field(default=None, gt=0)


class DownloadSettings(BaseModel):
    """yt-dlp download and transcode configuration."""

    model_config = ConfigDict(frozen=True)

    audio_format: Literal["opus", "mp3", "m4a", "vorbis"] = "opus"
    ytdlp_format: NonEmptyStr = "bestaudio/best"
    socket_timeout: PositiveInt = 15
    retries: PositiveInt = 3


class Settings(BaseSettings):
    """Application settings container.

    Environment variable naming:
    - ENVIRONMENT, DEBUG, LOG_LEVEL (top-level)
    - GENERAL__SKIP_RATIO, CACHE__ENABLED, VOLUME__HIGHEST_VOLUME, ... (nested)
    - PERMISSIONS__ADMINS (JSON array of user names)
    - DISCORD__TOKEN, DISCORD__DEFAULT_CHANNEL
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    general: GeneralSettings = Field(default_factory=GeneralSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    volume: VolumeSettings = Field(default_factory=VolumeSettings)
    aliases: AliasSettings = Field(default_factory=AliasSettings)
    permissions: PermissionSettings = Field(default_factory=PermissionSettings)
    discord: DiscordSettings = Field(default_factory=DiscordSettings)
    download: DownloadSettings = Field(default_factory=DownloadSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(
                ErrorMessages.INVALID_LOG_LEVEL.format(level=v, valid_levels=valid_levels)
            )
        return v_upper


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are automatically loaded from:
    1. .env file (if present)
    2. Environment variables
    3. Default values
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (used by the reload command and tests)."""
    get_settings.cache_clear()
