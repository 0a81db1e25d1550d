#!/usr/bin/env python3
"""Hierarchical configuration manager for RuleSort.

This module provides configuration management with:
- 4-level precedence hierarchy
- Environment variable overrides
- Schema validation
- Thread-safe operations
- Merge strategies for nested configs
- Saving and resetting the user configuration file

Example:
    >>> config = ConfigManager()
    >>> config.load_file("~/.config/rulesort/config.yaml")
    >>> config.get("rulesort.source_folder", default="~/Downloads")
"""

import os
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from rulesort.core.constants import (
    APP_NAME,
    CONFIG_FILE_NAME,
    DEFAULT_LOGS_FOLDER,
    RULES_FILE_NAME,
    ConfigKey,
    ErrorCode,
)

ENV_PREFIX = "RULESORT_"
ENV_DATA_DIR = "RULESORT_DATA_DIR"
ENV_CONFIG_DIR = "RULESORT_CONFIG_DIR"


class ConfigSource(Enum):
    """Configuration source precedence levels."""

    COMPILED_DEFAULTS = 1  # Lowest precedence
    USER_CONFIG = 2
    ENVIRONMENT = 3
    RUNTIME = 4  # Highest precedence


class ConfigError(Exception):
    """Configuration error."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.INVALID_INPUT):
        self.message = message
        self.error_code = error_code
        super().__init__(message)


def default_config_path() -> Path:
    """Location of the user configuration file."""
    config_dir = os.environ.get(ENV_CONFIG_DIR)
    if config_dir:
        return Path(config_dir).expanduser() / CONFIG_FILE_NAME
    base = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(base) / APP_NAME / CONFIG_FILE_NAME


def default_data_dir() -> Path:
    """Folder holding the rules file and logs."""
    data_dir = os.environ.get(ENV_DATA_DIR)
    if data_dir:
        return Path(data_dir).expanduser()
    base = os.environ.get("XDG_DATA_HOME") or Path.home() / ".local" / "share"
    return Path(base) / APP_NAME


def build_default_config() -> Dict[str, Any]:
    """Compiled defaults, resolved against the current environment."""
    data_dir = default_data_dir()
    return {
        "rulesort": {
            "source_folder": str(Path.home() / "Downloads"),
            "rules_file": str(data_dir / RULES_FILE_NAME),
            "logs_folder": str(data_dir / DEFAULT_LOGS_FOLDER),
            "logging": {
                "level": "INFO",
            },
            "sort": {
                "max_workers": None,
            },
        }
    }


CONFIG_SCHEMA = {
    "rulesort": {
        "source_folder": str,
        "rules_file": str,
        "logs_folder": str,
        "logging": {"level": str},
        "sort": {"max_workers": int},
    }
}


class ConfigManager:
    """Thread-safe hierarchical configuration manager.

    Manages configuration from multiple sources with precedence:
    1. Compiled defaults (lowest)
    2. User config (~/.config/rulesort/config.yaml)
    3. Environment variables (RULESORT_*, ``__`` separates nesting)
    4. Runtime updates (highest)
    """

    def __init__(self, config_file: Optional[str] = None):
        """Initialize configuration manager.

        Args:
            config_file: Optional config file to load
        """
        self._config: Dict[ConfigSource, Dict[str, Any]] = {}
        self._lock = threading.RLock()
        self._config_file: Optional[Path] = None

        self._config[ConfigSource.COMPILED_DEFAULTS] = build_default_config()

        if config_file:
            self.load_file(config_file)

        self._load_environment()

    @property
    def config_file(self) -> Optional[Path]:
        """Path of the loaded user configuration file, if any."""
        return self._config_file

    def load_file(self, file_path: str, source: ConfigSource = ConfigSource.USER_CONFIG) -> None:
        """Load configuration from YAML file.

        Args:
            file_path: Path to YAML config file
            source: Configuration source level

        Raises:
            ConfigError: If file cannot be loaded or parsed
        """
        path = Path(file_path).expanduser().resolve()

        if not path.exists():
            raise ConfigError(f"Config file not found: {file_path}", ErrorCode.NOT_FOUND)

        try:
            with open(path, "r", encoding="utf-8") as f:
                config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"YAML parse error in {file_path}: {e}", ErrorCode.INVALID_INPUT)
        except OSError as e:
            raise ConfigError(f"Error loading config {file_path}: {e}", ErrorCode.IO_ERROR)

        if config_data is None:
            config_data = {}
        if not isinstance(config_data, dict):
            raise ConfigError(f"Invalid config format in {file_path}", ErrorCode.INVALID_INPUT)

        with self._lock:
            self._config[source] = config_data
            if source == ConfigSource.USER_CONFIG:
                self._config_file = path

    def load_or_create(self, file_path: Optional[str] = None) -> Path:
        """Load the user config file, writing the defaults first if it is missing.

        Args:
            file_path: Config file path (defaults to :func:`default_config_path`)

        Returns:
            Path of the loaded file
        """
        path = Path(file_path).expanduser() if file_path else default_config_path()
        if not path.exists():
            self.save(path, ConfigSource.COMPILED_DEFAULTS)
        self.load_file(str(path))
        return path

    def _load_environment(self) -> None:
        """Load configuration from environment variables.

        Environment variables in format: RULESORT_KEY or RULESORT_SECTION__KEY=value
        Example: RULESORT_SORT__MAX_WORKERS=8
        """
        env_config: Dict[str, Any] = {}

        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX) or key in (ENV_DATA_DIR, ENV_CONFIG_DIR):
                continue

            parts = [p for p in key[len(ENV_PREFIX):].lower().split("__") if p]
            if not parts:
                continue

            current = env_config
            for part in parts[:-1]:
                current = current.setdefault(part, {})
            current[parts[-1]] = self._parse_env_value(value)

        if env_config:
            with self._lock:
                self._config[ConfigSource.ENVIRONMENT] = {ConfigKey.ROOT: env_config}

    def _parse_env_value(self, value: str) -> Any:
        """Parse environment variable value.

        Args:
            value: String value from environment

        Returns:
            Parsed value (int, float, bool, or str)
        """
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key.

        Args:
            key: Dot-separated key path (e.g., "rulesort.source_folder")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        with self._lock:
            for source in sorted(self._config.keys(), key=lambda s: s.value, reverse=True):
                value = self._get_nested(self._config[source], key)
                if value is not None:
                    return value

            return default

    def get_path(self, key: str) -> Optional[Path]:
        """Get a configuration value as an expanded path."""
        value = self.get(key)
        return Path(value).expanduser() if value else None

    def _get_nested(self, config: Dict[str, Any], key: str) -> Optional[Any]:
        """Get value from nested dictionary using dot notation.

        Args:
            config: Configuration dictionary
            key: Dot-separated key path

        Returns:
            Value or None if not found
        """
        current: Any = config
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                return None
            current = current[part]
        return current

    def set(self, key: str, value: Any, source: ConfigSource = ConfigSource.RUNTIME) -> None:
        """Set configuration value.

        Args:
            key: Dot-separated key path
            value: Value to set
            source: Configuration source level
        """
        with self._lock:
            current = self._config.setdefault(source, {})
            parts = key.split(".")
            for part in parts[:-1]:
                current = current.setdefault(part, {})
            current[parts[-1]] = value

    def get_all(self) -> Dict[str, Any]:
        """Get merged configuration from all sources.

        Returns:
            Merged configuration dictionary
        """
        with self._lock:
            merged: Dict[str, Any] = {}
            for source in sorted(self._config.keys(), key=lambda s: s.value):
                merged = self._deep_merge(merged, self._config[source])
            return merged

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries.

        Args:
            base: Base dictionary
            override: Override dictionary

        Returns:
            Merged dictionary
        """
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def save(self, file_path: Optional[Path] = None, source: ConfigSource = ConfigSource.USER_CONFIG) -> Path:
        """Write a configuration layer to YAML.

        The user layer is merged over the defaults so the saved file is complete.

        Args:
            file_path: Target path (defaults to the loaded file or the default path)
            source: Layer to write

        Returns:
            Path written

        Raises:
            ConfigError: If the file cannot be written
        """
        path = Path(file_path) if file_path else (self._config_file or default_config_path())

        with self._lock:
            data = self._deep_merge(
                self._config[ConfigSource.COMPILED_DEFAULTS], self._config.get(source, {})
            )

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            raise ConfigError(f"Error writing config {path}: {e}", ErrorCode.IO_ERROR)
        return path

    def reset(self) -> Path:
        """Discard the user layer and write the defaults back to disk."""
        with self._lock:
            self._config[ConfigSource.COMPILED_DEFAULTS] = build_default_config()
            self._config[ConfigSource.USER_CONFIG] = {}
        return self.save()

    def to_yaml(self) -> str:
        """Return the merged configuration as YAML."""
        return yaml.safe_dump(self.get_all(), default_flow_style=False, sort_keys=False)

    def validate_schema(self, schema: Optional[Dict[str, Any]] = None) -> bool:
        """Validate configuration against schema.

        Args:
            schema: Schema dictionary (defaults to CONFIG_SCHEMA)

        Returns:
            True if valid

        Raises:
            ConfigError: If validation fails
        """
        return self._validate_dict(self.get_all(), schema or CONFIG_SCHEMA)

    def _validate_dict(self, config: Dict[str, Any], schema: Dict[str, Any]) -> bool:
        """Validate dictionary against schema.

        Args:
            config: Configuration to validate
            schema: Schema definition

        Returns:
            True if valid

        Raises:
            ConfigError: If validation fails
        """
        for key, expected_type in schema.items():
            if key not in config or config[key] is None:
                continue  # Optional fields

            value = config[key]

            if isinstance(expected_type, dict):
                if not isinstance(value, dict):
                    raise ConfigError(f"Expected dict for {key}, got {type(value).__name__}")
                self._validate_dict(value, expected_type)
            elif isinstance(expected_type, type):
                if not isinstance(value, expected_type) or isinstance(value, bool) and expected_type is int:
                    raise ConfigError(
                        f"Expected {expected_type.__name__} for {key}, "
                        f"got {type(value).__name__}"
                    )

        return True

