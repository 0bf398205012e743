"""Simple YAML configuration loader for roomcorder."""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    "connection": {
        "timeout_seconds": 15.0,
        "max_retries": 2,
        "retry_delay_seconds": 2.0,
    },
    "capture": {
        "flush_grace_ms": 100,
    },
    "segments": {
        "merge_gap_ms": 750,
        "min_duration_ms": 1000,
    },
    "mixdown": {
        "bitrate": "192k",
        "ffmpeg_path": "ffmpeg",
        "ffprobe_path": "ffprobe",
        "cleanup_temp_files": True,
    },
    "timeline": {
        "enabled": False,
        "min_silence_gap_ms": 100,
        "bitrate": "128k",
    },
    "storage": {
        "recordings_directory": "recordings",
        "temp_directory": "temp",
        "max_age_hours": 24,
    },
    "logging": {
        "level": "INFO",
        "file_path": "logs/roomcorder.log",
        "console_output": True,
    },
}

VALID_BITRATES = ("64k", "128k", "192k", "256k", "320k")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class RoomcorderConfig:
    """roomcorder configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, built-in defaults
                        are used and relative paths resolve against the
                        current directory.
        """
        self.config_file = Path(config_path) if config_path else None

        if self.config_file is None:
            logger.info("No configuration file given, using defaults")
            self.config = copy.deepcopy(DEFAULT_CONFIG)
            self._validate(self.config)
            return

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")

        config = _deep_merge(DEFAULT_CONFIG, loaded)

        # Resolve relative paths
        self._resolve_paths(config)
        self._validate(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        for section, key in (
            ('storage', 'recordings_directory'),
            ('storage', 'temp_directory'),
            ('logging', 'file_path'),
        ):
            value = config.get(section, {}).get(key)
            if value and not os.path.isabs(value):
                config[section][key] = str(config_dir / value)

    def _validate(self, config: Dict[str, Any]) -> None:
        """Fall back to safe values for settings that are out of range."""
        for section in ('mixdown', 'timeline'):
            bitrate = config[section].get('bitrate')
            if bitrate not in VALID_BITRATES:
                fallback = DEFAULT_CONFIG[section]['bitrate']
                logger.warning(f"Invalid {section} bitrate '{bitrate}', using default '{fallback}'")
                config[section]['bitrate'] = fallback

        if int(config['connection']['max_retries']) < 0:
            raise ValueError("connection.max_retries must not be negative")
        if float(config['connection']['timeout_seconds']) <= 0:
            raise ValueError("connection.timeout_seconds must be positive")

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'segments.merge_gap_ms').

        Args:
            key_path: Dot-separated key path (e.g., 'mixdown.bitrate')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'mixdown.bitrate')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        # Navigate to the parent dictionary
        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        # Set the final value
        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_recordings_directory(self) -> str:
        """Get directory for final recordings."""
        return str(Path(self.get('storage.recordings_directory', 'recordings')).absolute())

    def get_temp_directory(self) -> str:
        """Get directory that holds per-session scratch directories."""
        return str(Path(self.get('storage.temp_directory', 'temp')).absolute())

    def get_bitrate(self) -> str:
        return self.get('mixdown.bitrate', '192k')
