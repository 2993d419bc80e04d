"""Configuration loader for JSON/YAML files and environment variables."""

import os
import json
import yaml
from pathlib import Path
from typing import Dict, Any, List, Union

from pydantic import ValidationError as PydanticValidationError

from .schema import SynchronizerConfig
from .settings import get_settings
from ..utils.logging import get_logger


class ConfigError(Exception):
    """Raised when configuration is missing, empty or cannot be loaded."""
    pass


class ConfigLoader:
    """Loads and validates configuration from various sources."""

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)

    def load_from_file(self, file_path: Union[str, Path]) -> SynchronizerConfig:
        """Load configuration from JSON or YAML file.

        Args:
            file_path: Path to configuration file

        Returns:
            Validated SynchronizerConfig object

        Raises:
            ConfigError: If file cannot be loaded or validated
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise ConfigError(f"Configuration file not found: {file_path}")

        self.logger.info("Loading configuration from file", file_path=str(file_path))

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                if file_path.suffix.lower() in ['.yaml', '.yml']:
                    data = yaml.safe_load(f)
                elif file_path.suffix.lower() == '.json':
                    data = json.load(f)
                else:
                    raise ConfigError(f"Unsupported file format: {file_path.suffix}")
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML format: {e}")
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON format: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to read configuration: {e}")

        return self.load_from_dict(data or {})

    def load_from_dict(self, data: Dict[str, Any], apply_env: bool = True) -> SynchronizerConfig:
        """Load configuration from dictionary.

        Args:
            data: Configuration data as dictionary
            apply_env: Overlay SYNCHRONIZER_* environment variables on top of data

        Returns:
            Validated SynchronizerConfig object
        """
        if not isinstance(data, dict):
            raise ConfigError("Configuration root must be a mapping")

        if apply_env:
            data = self._apply_env_overrides(data)

        try:
            config = SynchronizerConfig(**data)
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}")

        self.logger.info(
            "Configuration loaded",
            source_root=config.source_root,
            dest_root=config.dest_root,
            trigger_times=[str(t) for t in config.schedule.trigger_times]
        )

        return config

    def save_to_file(self, config: SynchronizerConfig, file_path: Union[str, Path], format: str = 'yaml'):
        """Save configuration to file.

        Args:
            config: Configuration to save
            file_path: Output file path
            format: Output format ('yaml' or 'json')
        """
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        data = config.model_dump()
        # Trigger times round-trip as "HH:MM" strings
        data['schedule']['trigger_times'] = [str(t) for t in config.schedule.trigger_times]

        try:
            with open(file_path, 'w', encoding='utf-8') as f:
                if format.lower() == 'yaml':
                    yaml.safe_dump(data, f, default_flow_style=False, indent=2, allow_unicode=True)
                elif format.lower() == 'json':
                    json.dump(data, f, indent=2, default=str)
                else:
                    raise ConfigError(f"Unsupported format: {format}")
        except OSError as e:
            raise ConfigError(f"Failed to save configuration: {e}")

        self.logger.info("Configuration saved successfully", file_path=str(file_path))

    def _apply_env_overrides(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration data.

        Environment variables use the format: SYNCHRONIZER_<KEY>
        For example: SYNCHRONIZER_SOURCE_ROOT, SYNCHRONIZER_LOG_LEVEL
        """
        env_overrides = {}

        for key in ('source_root', 'dest_root', 'state_file', 'log_level', 'log_format', 'log_file'):
            value = os.getenv(f"SYNCHRONIZER_{key.upper()}")
            if value:
                env_overrides[key] = value

        if env_overrides:
            self.logger.info("Applied environment variable overrides", overrides=list(env_overrides.keys()))
            data = {**data, **env_overrides}

        return data

    def validate_config(self, config: SynchronizerConfig) -> List[str]:
        """Validate configuration and return list of warnings/issues."""
        warnings = []

        if not config.is_configured:
            warnings.append("Source and destination paths are not both configured")

        first, second = config.schedule.trigger_times
        if first == second:
            warnings.append(f"Both trigger times are {first}; the schedule fires once a day")

        if config.schedule.trigger_window_seconds < config.schedule.tick_interval_seconds:
            warnings.append(
                "Trigger window is shorter than the tick interval; scheduled runs may be missed"
            )

        if not config.state_file:
            warnings.append("No state file configured; a restart re-copies every file once")

        if warnings:
            self.logger.warning("Configuration validation warnings", warnings=warnings)
        else:
            self.logger.info("Configuration validation passed")

        return warnings


def load_config_from_env() -> SynchronizerConfig:
    """Load configuration from environment variables and default files.

    Looks for configuration files in this order:
    1. SYNCHRONIZER_CONFIG_FILE environment variable
    2. ./config/synchronizer.yaml
    3. ./config/synchronizer.json
    4. ./synchronizer.yaml
    5. ./synchronizer.json

    If no file is found, the configuration is built from application settings
    (SYNC_*, SCHEDULE_* and LOG_* variables or .env). Either way the result
    then goes through load_from_dict, so SYNCHRONIZER_* variables override
    both the file and the application settings. Command line flags are
    merged last by main.build_config and override everything.
    """
    loader = ConfigLoader()
    logger = get_logger("load_config_from_env")

    config_file = os.getenv('SYNCHRONIZER_CONFIG_FILE')
    if config_file:
        if os.path.exists(config_file):
            return loader.load_from_file(config_file)
        logger.warning("Specified config file not found", file=config_file)

    possible_files = [
        './config/synchronizer.yaml',
        './config/synchronizer.yml',
        './config/synchronizer.json',
        './synchronizer.yaml',
        './synchronizer.yml',
        './synchronizer.json'
    ]

    for file_path in possible_files:
        if os.path.exists(file_path):
            logger.info("Found configuration file", file=file_path)
            return loader.load_from_file(file_path)

    logger.info("No configuration file found, using application settings")
    settings = get_settings()
    return loader.load_from_dict({
        "source_root": settings.sync.source_root,
        "dest_root": settings.sync.dest_root,
        "state_file": settings.sync.state_file,
        "schedule": {
            "trigger_times": [settings.scheduling.first_trigger, settings.scheduling.second_trigger],
            "tick_interval_seconds": settings.scheduling.tick_interval_seconds,
            "trigger_window_seconds": settings.scheduling.trigger_window_seconds,
        },
        "log_level": settings.logging.level,
        "log_format": settings.logging.format,
        "log_file": settings.logging.file_path,
    })
