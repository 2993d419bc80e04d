"""Configuration package for the file synchronizer."""

from .settings import (
    SyncSettings,
    SchedulingSettings,
    LoggingSettings,
    AppSettings,
    get_settings
)

from .schema import (
    SynchronizerConfig,
    ScheduleConfig,
    TriggerTime
)

from .loader import (
    ConfigLoader,
    ConfigError,
    load_config_from_env
)

from .endpoints import (
    SyncEndpoints,
    ValidationError,
    validate_endpoints
)

__all__ = [
    "SyncSettings",
    "SchedulingSettings",
    "LoggingSettings",
    "AppSettings",
    "get_settings",

    "SynchronizerConfig",
    "ScheduleConfig",
    "TriggerTime",

    "ConfigLoader",
    "ConfigError",
    "load_config_from_env",

    "SyncEndpoints",
    "ValidationError",
    "validate_endpoints"
]
