"""
RuleSort Core: Date Parsing.

Date helpers shared by date-range conditions, rule validation and the
template date filter.

Supported inputs for :func:`parse_date`:
- RFC3339 timestamps ("2025-06-20T12:00:00Z")
- ISO 8601 dates ("2025-06-20", midnight UTC)
- "now"
- Relative offsets ("-7d", "+2w", "-1m", "+3y", "-12h", "+30s")
"""
import re
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from rulesort.core.constants import EXIF_DATETIME_FORMAT, Limits

_RELATIVE_RE = re.compile(r"^([+-])(\d+)([a-zA-Z])$")

_RELATIVE_UNITS = {
    "s": timedelta(seconds=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
    "m": timedelta(days=30),  # Approximate month
    "y": timedelta(days=365),  # Approximate year
}

MIN_DATE = date(*Limits.MIN_DATE)
MAX_DATE = date(*Limits.MAX_DATE)


def parse_rfc3339(value: str) -> datetime:
    """Parse an RFC3339 timestamp.

    Args:
        value: Timestamp string, e.g. "2025-06-20T12:00:00Z"

    Returns:
        Timezone-aware datetime

    Raises:
        ValueError: If the value is not a full RFC3339 timestamp
    """
    value = value.strip()
    if "T" not in value.upper() and " " not in value:
        raise ValueError(f"Not an RFC3339 timestamp: {value!r}")

    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        raise ValueError(f"RFC3339 timestamp requires an offset: {value!r}")
    return parsed


def parse_date(value: str, now: Optional[datetime] = None) -> datetime:
    """Parse an absolute or relative date into a UTC datetime.

    Args:
        value: Date string
        now: Reference time for "now" and relative offsets

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        ValueError: If the format is not recognised
    """
    value = value.strip()
    now = now or datetime.now(timezone.utc)

    if value.lower() == "now":
        return now

    try:
        return parse_rfc3339(value).astimezone(timezone.utc)
    except ValueError:
        pass

    try:
        day = date.fromisoformat(value)
        return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    except ValueError:
        pass

    match = _RELATIVE_RE.match(value)
    if match:
        sign, amount, unit = match.groups()
        step = _RELATIVE_UNITS.get(unit.lower())
        if step is None:
            raise ValueError(
                f"Invalid time unit {unit!r}. Supported units: "
                f"{', '.join(sorted(_RELATIVE_UNITS))}"
            )
        offset = step * int(amount)
        return now - offset if sign == "-" else now + offset

    raise ValueError(
        f"Invalid date format: {value!r}. Expected RFC3339, ISO 8601 (YYYY-MM-DD), "
        "or relative format (e.g. 'now', '-7d', '+2w')"
    )


def parse_date_or(value: Optional[str], fallback: date) -> date:
    """Parse a date bound, returning ``fallback`` when absent or invalid."""
    if value is None:
        return fallback
    try:
        return parse_date(value).date()
    except ValueError:
        return fallback


def timestamp_to_utc_date(timestamp: float) -> date:
    """Convert a POSIX timestamp to its UTC calendar date."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).date()


def timestamp_to_rfc3339(timestamp: float) -> str:
    """Convert a POSIX timestamp to a local-time RFC3339 string."""
    return datetime.fromtimestamp(timestamp).astimezone().isoformat()


def parse_template_datetime(value: str) -> datetime:
    """Parse a metadata value for the template date filter.

    Accepts RFC3339 timestamps and EXIF "YYYY:MM:DD HH:MM:SS" strings.

    Raises:
        ValueError: If neither format matches
    """
    try:
        return parse_rfc3339(value)
    except ValueError:
        return datetime.strptime(value.strip(), EXIF_DATETIME_FORMAT)
