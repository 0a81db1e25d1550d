"""Tests for report rendering."""
import csv
import io
import json

import pytest

from rulesort.core.constants import REPORT_FIELDS, ErrorCode, ReportKind
from rulesort.report import ReportError, group_results, to_csv, to_json, write_report
from rulesort.sorter import MatchResult


@pytest.fixture
def results():
    return [
        MatchResult("b.txt", "move", "text", "/src/b.txt", "/out/b.txt"),
        MatchResult("b.txt", "rename", "text", "/out/b.txt", "/out/B.txt"),
        MatchResult("a.pdf", "delete", "pdfs", "/src/a.pdf", "[deleted]"),
        MatchResult("a.txt", "move", "text", "/src/a.txt", "/out/a.txt"),
    ]


class TestRenderers:
    """Tests for JSON and CSV output."""

    def test_json(self, results):
        data = json.loads(to_json(results))
        assert len(data) == 4
        assert data[2] == {
            "file_name": "a.pdf",
            "action": "delete",
            "matched_rule_id": "pdfs",
            "current_path": "/src/a.pdf",
            "new_path": "[deleted]",
        }

    def test_json_is_indented(self, results):
        assert to_json(results).startswith("[\n  {")

    def test_csv(self, results):
        text = to_csv(results)
        assert text.splitlines()[0] == ",".join(REPORT_FIELDS)
        rows = list(csv.DictReader(io.StringIO(text)))
        assert [row["new_path"] for row in rows] == ["/out/b.txt", "/out/B.txt", "[deleted]", "/out/a.txt"]

    def test_empty(self):
        assert json.loads(to_json([])) == []
        assert to_csv([]).splitlines() == [",".join(REPORT_FIELDS)]


def test_group_results(results):
    grouped = group_results(results)
    assert list(grouped) == ["pdfs", "text"]
    assert [(r.file_name, r.action) for r in grouped["text"]] == [
        ("a.txt", "move"),
        ("b.txt", "move"),
        ("b.txt", "rename"),
    ]


class TestWriteReport:
    """Tests for writing report files."""

    @pytest.mark.parametrize("kind", ["json", "CSV", ReportKind.JSON])
    def test_writes_named_file(self, temp_dir, results, kind):
        path = write_report(kind, temp_dir / "reports", results)
        suffix = ReportKind(kind.lower()).value
        assert path == temp_dir / "reports" / f"rulesort_report.{suffix}"
        assert path.read_text()

    def test_unknown_kind(self, temp_dir, results):
        with pytest.raises(ReportError) as exc_info:
            write_report("pdf", temp_dir, results)
        assert exc_info.value.error_code == ErrorCode.INVALID_INPUT

    def test_unwritable_directory(self, source_dir, results):
        with pytest.raises(ReportError) as exc_info:
            write_report("json", source_dir / "notes.txt", results)
        assert exc_info.value.error_code == ErrorCode.IO_ERROR
