"""Configuration schema definitions for endpoints and schedules."""

from datetime import time
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class TriggerTime(BaseModel):
    """A daily time-of-day trigger point."""

    hour: int = Field(..., ge=0, le=23, description="Hour of day (0-23)")
    minute: int = Field(default=0, ge=0, le=59, description="Minute of hour (0-59)")

    @model_validator(mode="before")
    @classmethod
    def parse_clock_string(cls, data: Any) -> Any:
        """Accept "HH:MM" strings and datetime.time values as well as mappings."""
        if isinstance(data, time):
            return {"hour": data.hour, "minute": data.minute}

        if isinstance(data, str):
            parts = data.strip().split(":")
            if len(parts) != 2 or not all(part.isdigit() for part in parts):
                raise ValueError(f"Trigger time must be formatted as HH:MM, got {data!r}")
            return {"hour": int(parts[0]), "minute": int(parts[1])}

        return data

    def to_time(self) -> time:
        return time(self.hour, self.minute)

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


class ScheduleConfig(BaseModel):
    """Configuration for the daily sync schedule."""

    trigger_times: List[TriggerTime] = Field(
        default_factory=lambda: [TriggerTime(hour=12), TriggerTime(hour=18)],
        description="Two daily trigger points"
    )
    tick_interval_seconds: int = Field(default=60, description="How often the schedule is re-evaluated")
    trigger_window_seconds: int = Field(default=60, description="How long after a trigger point a tick still fires")

    @field_validator("trigger_times")
    @classmethod
    def validate_trigger_count(cls, v):
        if len(v) != 2:
            raise ValueError("Exactly two trigger times are required")
        return v

    @field_validator("tick_interval_seconds", "trigger_window_seconds")
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("Interval must be at least 1 second")
        return v


class SynchronizerConfig(BaseModel):
    """Root configuration for the synchronizer."""

    version: str = Field(default="1.0.0", description="Configuration version")

    # Endpoints
    source_root: str = Field(default="", description="Directory to mirror from")
    dest_root: str = Field(default="", description="Directory to mirror into")

    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig, description="Schedule configuration")

    # Change record persistence; None keeps the record in memory only
    state_file: Optional[str] = Field(None, description="Path of the change record snapshot")

    # Logging configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="console", description="Logging format (json, console)")
    log_file: Optional[str] = Field(None, description="Optional rotating log file")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        if v.lower() not in ("json", "console"):
            raise ValueError("Log format must be 'json' or 'console'")
        return v.lower()

    @field_validator("source_root", "dest_root")
    @classmethod
    def strip_paths(cls, v):
        return v.strip()

    @property
    def is_configured(self) -> bool:
        """Whether both endpoints have been supplied."""
        return bool(self.source_root and self.dest_root)
