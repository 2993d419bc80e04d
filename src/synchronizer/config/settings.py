"""Application configuration settings."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SyncSettings(BaseSettings):
    """Source/destination endpoint configuration."""

    model_config = SettingsConfigDict(env_prefix="SYNC_")

    source_root: str = Field(default="", description="Directory to mirror from")
    dest_root: str = Field(default="", description="Directory to mirror into")
    state_file: Optional[str] = Field(default=None, description="Change record snapshot file")


class SchedulingSettings(BaseSettings):
    """Scheduling configuration."""

    model_config = SettingsConfigDict(env_prefix="SCHEDULE_")

    first_trigger: str = Field(default="12:00")
    second_trigger: str = Field(default="18:00")
    tick_interval_seconds: int = Field(default=60)
    trigger_window_seconds: int = Field(default=60)


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO")
    format: str = Field(default="console")
    file_path: Optional[str] = Field(default=None)


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    name: str = Field(default="File Synchronizer")
    version: str = Field(default="1.0.0")

    # Sub-settings
    sync: SyncSettings = Field(default_factory=SyncSettings)
    scheduling: SchedulingSettings = Field(default_factory=SchedulingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# Global settings instance
settings = AppSettings()


def get_settings() -> AppSettings:
    """Get application settings."""
    return settings


def reload_settings() -> AppSettings:
    """Re-read settings from the environment."""
    global settings
    settings = AppSettings()
    return settings
