#!/usr/bin/env python3
"""Sort pass reports.

Renders the MatchResults of a pass as JSON or CSV into an output directory
(``rulesort_report.json`` / ``rulesort_report.csv``).
"""

import csv
import io
import json
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Union

from rulesort.core.constants import REPORT_BASENAME, REPORT_FIELDS, ErrorCode, ReportKind
from rulesort.infrastructure.logger import get_logger
from rulesort.sorter import MatchResult


class ReportError(Exception):
    """Report could not be produced."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.IO_ERROR):
        self.message = message
        self.error_code = error_code
        super().__init__(message)


def to_json(results: Iterable[MatchResult]) -> str:
    """Render results as a pretty-printed JSON array."""
    return json.dumps([r.to_dict() for r in results], indent=2, ensure_ascii=False)


def to_csv(results: Iterable[MatchResult]) -> str:
    """Render results as CSV with a header row."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=REPORT_FIELDS, lineterminator="\n")
    writer.writeheader()
    for result in results:
        writer.writerow(result.to_dict())
    return buffer.getvalue()


_RENDERERS = {
    ReportKind.JSON: to_json,
    ReportKind.CSV: to_csv,
}


def group_results(results: Iterable[MatchResult]) -> Dict[str, List[MatchResult]]:
    """Group results by rule id, ordered by rule id then file name.

    Action order within a file is kept.
    """
    ordered = sorted(results, key=lambda r: (r.matched_rule_id, r.file_name))
    grouped: Dict[str, List[MatchResult]] = {}
    for result in ordered:
        grouped.setdefault(result.matched_rule_id, []).append(result)
    return grouped


def write_report(
    kind: Union[str, ReportKind], output_dir: Union[str, Path], results: Sequence[MatchResult]
) -> Path:
    """Write a report file.

    Args:
        kind: "json" or "csv"
        output_dir: Directory receiving the report (created if missing)
        results: Results of a sort pass

    Returns:
        Path of the written report

    Raises:
        ReportError: If the kind is unknown or the file can't be written
    """
    try:
        kind = ReportKind(kind.lower())
    except ValueError:
        valid = ", ".join(k.value for k in ReportKind)
        raise ReportError(
            f"Unknown report type: {kind}. Must be one of {valid}", ErrorCode.INVALID_INPUT
        )

    output_dir = Path(output_dir).expanduser()
    path = output_dir / f"{REPORT_BASENAME}.{kind.value}"
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(_RENDERERS[kind](results), encoding="utf-8")
    except OSError as e:
        raise ReportError(f"Cannot write report {path}: {e}")

    get_logger().info("Report written", path=str(path), kind=kind.value, entries=len(results))
    return path
