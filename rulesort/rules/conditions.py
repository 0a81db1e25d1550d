#!/usr/bin/env python3
"""Condition evaluation for rule matching.

Evaluates a rule's ``when`` block against one file:
- filename regex (base name only)
- extension set, path glob, MIME type (exact or ``type/*``)
- size range in KB, created/modified date ranges
- symlink flag and EXIF metadata fields

Absent conditions are skipped. Present conditions are combined with AND, or
with OR when ``any`` is set. Evaluation never raises: a malformed pattern or
unreadable metadata makes that condition false, and a file that cannot be
stat-ed matches nothing.

Example:
    >>> evaluator = ConditionEvaluator()
    >>> evaluator.matches("/tmp/a.txt", Conditions(extensions=["txt"]))
    True
"""

import mimetypes
import os
import stat
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from rulesort.core.constants import Limits
from rulesort.core.dates import MAX_DATE, MIN_DATE, parse_date_or, timestamp_to_utc_date
from rulesort.files.metadata import lookup, read_exif
from rulesort.infrastructure.logger import get_logger
from rulesort.rules.models import Conditions, DateRange, MetadataField, SizeRange
from rulesort.rules.patterns import PatternError, compile_regex, match_glob


class FileView:
    """Facts about one file gathered once and shared across rules.

    The stat result is taken without following symlinks; EXIF fields are read
    on first use.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = str(path)
        self.name = os.path.basename(self.path)
        self.stat: Optional[os.stat_result]
        try:
            self.stat = os.lstat(self.path)
        except OSError:
            self.stat = None
        self._exif: Optional[Dict[str, str]] = None

    @property
    def exif(self) -> Dict[str, str]:
        if self._exif is None:
            self._exif = read_exif(self.path)
        return self._exif

    @property
    def created(self) -> Optional[float]:
        """Birth time, or None where the platform does not record one."""
        return getattr(self.stat, "st_birthtime", None)


class ConditionEvaluator:
    """Evaluates rule conditions against files."""

    def __init__(self):
        self._logger = get_logger()

    def matches(self, path: Union[str, Path], conditions: Conditions) -> bool:
        """Check whether a file satisfies a conditions block.

        Args:
            path: File path
            conditions: Conditions to evaluate

        Returns:
            True if the file matches
        """
        return self.evaluate(FileView(path), conditions)

    def evaluate(self, view: FileView, conditions: Conditions) -> bool:
        """Evaluate conditions against a prepared :class:`FileView`."""
        if view.stat is None:
            self._logger.debug("Cannot stat file, no rule matches", path=view.path)
            return False

        checks: List[Callable[[], bool]] = []
        if conditions.filename is not None:
            checks.append(lambda: self._match_filename(view, conditions.filename))
        if conditions.extensions is not None:
            checks.append(lambda: self._match_extension(view, conditions.extensions))
        if conditions.path is not None:
            checks.append(lambda: match_glob(conditions.path, view.path))
        if conditions.size_kb is not None:
            checks.append(lambda: self._match_size(view, conditions.size_kb))
        if conditions.mime_type is not None:
            checks.append(lambda: self._match_mime(view, conditions.mime_type))
        if conditions.created_date is not None:
            checks.append(lambda: self._match_date(view.created, conditions.created_date))
        if conditions.modified_date is not None:
            checks.append(lambda: self._match_date(view.stat.st_mtime, conditions.modified_date))
        if conditions.is_symlink is not None:
            checks.append(lambda: stat.S_ISLNK(view.stat.st_mode) == conditions.is_symlink)
        if conditions.metadata is not None:
            checks.append(lambda: self._match_metadata(view, conditions.metadata))

        if not checks:
            return True

        if conditions.any:
            return any(self._safe(check, view) for check in checks)
        return all(self._safe(check, view) for check in checks)

    def _safe(self, check: Callable[[], bool], view: FileView) -> bool:
        try:
            return bool(check())
        except (PatternError, OSError, ValueError, OverflowError) as e:
            self._logger.debug("Condition evaluation failed", path=view.path, error=str(e))
            return False

    def _match_filename(self, view: FileView, pattern: str) -> bool:
        return compile_regex(pattern).search(view.name) is not None

    def _match_extension(self, view: FileView, extensions: List[str]) -> bool:
        suffix = Path(view.name).suffix
        return bool(suffix) and suffix[1:] in extensions

    def _match_size(self, view: FileView, size_kb: SizeRange) -> bool:
        size = view.stat.st_size
        low = (size_kb.min or 0) * Limits.BYTES_PER_KB
        if size < low:
            return False
        if size_kb.max is not None and size > size_kb.max * Limits.BYTES_PER_KB:
            return False
        return True

    def _match_mime(self, view: FileView, expected: str) -> bool:
        guessed, _ = mimetypes.guess_type(view.name, strict=False)
        if guessed is None:
            return False
        if expected.endswith("/*"):
            return guessed.startswith(expected[:-1])
        return guessed == expected

    def _match_date(self, timestamp: Optional[float], date_range: DateRange) -> bool:
        if timestamp is None:
            return False
        day = timestamp_to_utc_date(timestamp)
        start = parse_date_or(date_range.from_, MIN_DATE)
        end = parse_date_or(date_range.to, MAX_DATE)
        return start <= day <= end

    def _match_metadata(self, view: FileView, fields: List[MetadataField]) -> bool:
        exif = view.exif
        if not exif:
            return False

        for metadata_field in fields:
            actual = lookup(exif, metadata_field.key)
            if actual is None:
                self._logger.debug(
                    "Metadata key not found", path=view.path, key=metadata_field.key
                )
                return False
            if metadata_field.value is not None and not match_glob(metadata_field.value, actual):
                return False
        return True


_default_evaluator: Optional[ConditionEvaluator] = None


def matches(path: Union[str, Path], conditions: Conditions) -> bool:
    """Evaluate conditions with a shared evaluator."""
    global _default_evaluator
    if _default_evaluator is None:
        _default_evaluator = ConditionEvaluator()
    return _default_evaluator.matches(path, conditions)
