"""RuleSort Infrastructure Layer.

This layer provides core services used by the engine and the CLI:
- ConfigManager: Hierarchical configuration (defaults, file, environment, runtime)
- Logger: Structured logging system with a separate file-operations log
"""

from .config_manager import ConfigError
from .config_manager import ConfigManager as Config
from .config_manager import ConfigSource
from .logger import Logger, LogLevel, configure_file_logging, get_logger, log_file_operation

__all__ = [
    # Logger exports
    "Logger",
    "LogLevel",
    "get_logger",
    "configure_file_logging",
    "log_file_operation",
    # ConfigManager exports
    "ConfigSource",
    "ConfigError",
    "Config",
]
