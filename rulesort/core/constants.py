"""
RuleSort Core: Constants and Type Definitions

This module provides system-wide constants, error codes, and type definitions
shared by the rule engine, the action executor and the outer layers.
"""
from enum import Enum, IntEnum
from typing import TypeAlias

# Version information
RULESORT_VERSION = "1.0.0"
RULES_FILE_VERSION = 1

# Application naming
APP_NAME = "rulesort"
CONFIG_FILE_NAME = "config.yaml"
RULES_FILE_NAME = "rules.yaml"
DEFAULT_LOGS_FOLDER = "logs"
OPS_LOGGER_NAME = "rulesort.file_ops"


# Error codes (0-9 range)
class ErrorCode(IntEnum):
    """Standardized error codes for RuleSort operations."""

    SUCCESS = 0  # Operation completed successfully
    INVALID_INPUT = 1  # Bad path, invalid rule or configuration
    NOT_FOUND = 2  # File, rule or resource doesn't exist
    PERMISSION_DENIED = 3  # Insufficient permissions
    CONFLICT = 4  # Resource conflict (duplicate id, exists)
    DEPENDENCY_ERROR = 5  # External command or trash backend failed
    INTERNAL_ERROR = 6  # Bug in RuleSort
    IO_ERROR = 7  # Filesystem operation failed


# Type aliases for clarity
FilePath: TypeAlias = str
RuleId: TypeAlias = str
Pattern: TypeAlias = str


class ActionKind(str, Enum):
    """Kinds of actions a rule can perform on a file."""

    MOVE = "move"
    COPY = "copy"
    RENAME = "rename"
    DELETE = "delete"
    EXECUTE = "execute"
    SKIP = "skip"


# Marker used as new_path once a file has been deleted
DELETED_MARKER = "[deleted]"


# Resource limits and defaults
class Limits:
    """Resource limits and default values."""

    # Date range bounds for date conditions
    MIN_DATE = (1970, 1, 1)
    MAX_DATE = (9999, 12, 31)

    # Size conditions are expressed in KB
    BYTES_PER_KB = 1024

    # Log file rotation
    LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT = 10

    # Execute action
    DEFAULT_COMMAND_TIMEOUT = None  # seconds, None = wait for completion


# Date formats accepted by the template date filter
EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"


# Configuration keys
class ConfigKey:
    """Configuration key constants."""

    ROOT = "rulesort"
    SOURCE_FOLDER = "rulesort.source_folder"
    RULES_FILE = "rulesort.rules_file"
    LOGS_FOLDER = "rulesort.logs_folder"
    LOG_LEVEL = "rulesort.logging.level"
    MAX_WORKERS = "rulesort.sort.max_workers"


# Rule definition keys
class RuleKey:
    """Rule definition key constants."""

    RULES = "rules"
    ID = "id"
    NAME = "name"
    ENABLED = "enabled"
    DESCRIPTION = "description"
    PRIORITY = "priority"
    WHEN = "when"
    THEN = "then"
    ACTION = "action"


# Report output names
class ReportKind(str, Enum):
    """Supported report formats."""

    JSON = "json"
    CSV = "csv"


REPORT_BASENAME = "rulesort_report"
REPORT_FIELDS = ("file_name", "action", "matched_rule_id", "current_path", "new_path")
