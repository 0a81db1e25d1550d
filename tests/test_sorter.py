"""Tests for the sort orchestrator."""
import threading
from datetime import date
from pathlib import Path

import pytest

from rulesort.core.constants import DELETED_MARKER, ConfigKey, ErrorCode
from rulesort.infrastructure.config_manager import ConfigManager
from rulesort.rules.models import (
    Conditions,
    CopyAction,
    DeleteAction,
    ExecuteAction,
    MoveAction,
    RenameAction,
    Rule,
    SkipAction,
)
from rulesort.rules.rules_file import RulesFile, RulesFileError
from rulesort.sorter import (
    MatchResult,
    SortContext,
    Sorter,
    SortError,
    collect_files,
    prepare_sort,
    sort_files,
)


def rule(rule_id, then, priority=0, enabled=True, **conditions) -> Rule:
    return Rule(
        id=rule_id,
        name=rule_id,
        priority=priority,
        enabled=enabled,
        when=Conditions(**conditions),
        then=then,
    )


def snapshot(root: Path):
    return sorted(str(p.relative_to(root)) for p in root.rglob("*"))


@pytest.fixture
def many_files(temp_dir):
    source = temp_dir / "many"
    source.mkdir()
    for i in range(500):
        (source / f"doc{i:03d}.txt").write_text("t")
        (source / f"blob{i:03d}.dat").write_text("d")
    return source


class TestCollectFiles:
    """Tests for source enumeration."""

    def test_recursive_and_sorted(self, source_dir):
        names = [Path(p).relative_to(source_dir).as_posix() for p in collect_files(source_dir)]
        assert names == ["IMG_0042.png", "notes.txt", "photo.jpg", "report.pdf", "subdir/nested.txt"]

    def test_lists_symlinks(self, source_dir):
        (source_dir / "zlink").symlink_to(source_dir / "notes.txt")
        assert str(source_dir / "zlink") in collect_files(source_dir)

    def test_missing_root(self, temp_dir):
        with pytest.raises(SortError) as exc_info:
            collect_files(temp_dir / "missing")
        assert exc_info.value.error_code == ErrorCode.NOT_FOUND

    def test_root_is_a_file(self, source_dir):
        with pytest.raises(SortError) as exc_info:
            collect_files(source_dir / "notes.txt")
        assert exc_info.value.error_code == ErrorCode.INVALID_INPUT


class TestSort:
    """Tests for a full sort pass."""

    def test_moves_only_matching_files(self, many_files, out_dir):
        rules = [rule("txt", [MoveAction(to=str(out_dir))], extensions=["txt"])]
        results = sort_files(collect_files(many_files), many_files, rules, max_workers=8)

        assert len(results) == 500
        assert len(list(out_dir.iterdir())) == 500
        assert len(list(many_files.iterdir())) == 500
        assert all(r.matched_rule_id == "txt" and r.action == "move" for r in results)

    def test_dry_run_leaves_files_and_plans_same_paths(self, source_dir, out_dir):
        rules = [
            rule(
                "txt",
                [
                    MoveAction(to=str(out_dir), preserve_structure=True),
                    RenameAction(to="{{metadata.size}}_{{filename}}.txt"),
                ],
                extensions=["txt"],
            )
        ]
        files = collect_files(source_dir)
        before = snapshot(source_dir)

        planned = sort_files(files, source_dir, rules, dry_run=True)
        assert snapshot(source_dir) == before
        assert list(out_dir.iterdir()) == []

        applied = sort_files(files, source_dir, rules)
        assert [r.new_path for r in planned] == [r.new_path for r in applied]
        assert (out_dir / "11_notes.txt").exists()
        assert (out_dir / "subdir" / "14_nested.txt").exists()

    def test_chain_feeds_new_path_forward(self, source_dir, out_dir):
        rules = [
            rule(
                "pdf",
                [CopyAction(to=str(out_dir)), RenameAction(to="copy.pdf"), SkipAction()],
                extensions=["pdf"],
            )
        ]
        results = sort_files([source_dir / "report.pdf"], source_dir, rules)

        assert [r.action for r in results] == ["copy", "rename", "skip"]
        assert results[1].current_path == str(out_dir / "report.pdf")
        assert results[1].new_path == str(out_dir / "copy.pdf")
        assert results[2].current_path == results[2].new_path == str(out_dir / "copy.pdf")
        assert (source_dir / "report.pdf").exists()

    def test_delete_ends_chain(self, source_dir, out_dir):
        rules = [rule("rm", [DeleteAction(), MoveAction(to=str(out_dir))], extensions=["txt"])]
        results = sort_files([source_dir / "notes.txt"], source_dir, rules)

        assert len(results) == 1
        assert results[0] == MatchResult(
            file_name="notes.txt",
            action="delete",
            matched_rule_id="rm",
            current_path=str(source_dir / "notes.txt"),
            new_path=DELETED_MARKER,
        )
        assert list(out_dir.iterdir()) == []

    def test_no_match_produces_no_result(self, source_dir):
        rules = [rule("zip", [SkipAction()], extensions=["zip"])]
        assert sort_files(collect_files(source_dir), source_dir, rules) == []

    def test_empty_file_list(self, source_dir):
        assert sort_files([], source_dir, [rule("any", [SkipAction()])]) == []

    def test_results_follow_input_order(self, source_dir):
        files = list(reversed(collect_files(source_dir)))
        results = sort_files(files, source_dir, [rule("all", [SkipAction()])], max_workers=4)
        assert [r.current_path for r in results] == files

    def test_highest_priority_rule_runs(self, source_dir):
        rules = [
            rule("low", [SkipAction()], priority=1, extensions=["txt"]),
            rule("high", [SkipAction()], priority=5, filename="^notes"),
        ]
        results = sort_files([source_dir / "notes.txt"], source_dir, rules)
        assert [r.matched_rule_id for r in results] == ["high"]

    def test_disabled_rules_are_dropped(self, source_dir):
        rules = [rule("off", [SkipAction()], enabled=False)]
        assert sort_files(collect_files(source_dir), source_dir, rules) == []

    def test_date_tokens_use_context_day(self, source_dir, out_dir):
        rules = [rule("txt", [MoveAction(to=str(out_dir / "{year}-{month}"))], extensions=["txt"])]
        results = sort_files(
            [source_dir / "notes.txt"], source_dir, rules, dry_run=True, today=date(2021, 7, 4)
        )
        assert results[0].new_path == str(out_dir / "2021-07" / "notes.txt")


class TestProgress:
    """Tests for the progress callback."""

    def test_called_once_per_file(self, source_dir):
        calls = []
        files = collect_files(source_dir)
        rules = [rule("pdf", [SkipAction()], extensions=["pdf"])]
        sort_files(files, source_dir, rules, progress_cb=lambda: calls.append(1))
        assert len(calls) == len(files)

    def test_called_from_submitting_thread(self, source_dir):
        threads = set()
        sort_files(
            collect_files(source_dir),
            source_dir,
            [rule("all", [SkipAction()])],
            progress_cb=lambda: threads.add(threading.get_ident()),
            max_workers=4,
        )
        assert threads == {threading.get_ident()}


class TestFailFast:
    """Tests for abort on the first failing action."""

    def test_action_error_aborts_pass(self, many_files):
        rules = [rule("boom", [ExecuteAction(command="rulesort-no-such-command")])]
        with pytest.raises(SortError) as exc_info:
            sort_files(collect_files(many_files), many_files, rules, max_workers=4)
        assert exc_info.value.error_code == ErrorCode.DEPENDENCY_ERROR
        assert exc_info.value.path is not None

    def test_aborted_sorter_skips_files(self, source_dir):
        context = SortContext(source_root=source_dir, rules=[rule("all", [SkipAction()])])
        sorter = Sorter(context)
        sorter._abort.set()
        assert sorter.process_file(str(source_dir / "notes.txt")) == []

    def test_dry_run_never_fails_on_execute(self, source_dir):
        rules = [rule("run", [ExecuteAction(command="rulesort-no-such-command")])]
        results = sort_files(collect_files(source_dir), source_dir, rules, dry_run=True)
        assert len(results) == 5


class TestSortContext:
    """Tests for context defaults."""

    def test_workers_default_to_cpu_count(self, source_dir):
        context = SortContext(source_root=source_dir, rules=[])
        assert context.workers >= 1
        assert SortContext(source_root=source_dir, rules=[], max_workers=3).workers == 3

    def test_source_root_is_a_path(self, source_dir):
        assert isinstance(SortContext(source_root=str(source_dir), rules=[]).source_root, Path)


class TestPrepareSort:
    """Tests for building a pass from config and rules file."""

    @pytest.fixture
    def config(self, source_dir):
        config = ConfigManager()
        config.set(ConfigKey.SOURCE_FOLDER, str(source_dir))
        config.set(ConfigKey.MAX_WORKERS, 2)
        return config

    @pytest.fixture
    def rules_file(self, temp_dir, rules_yaml):
        rules_file = RulesFile.load(temp_dir / "data" / "rules.yaml")
        rules_file.add_from_file(rules_yaml)
        return rules_file

    def test_uses_configured_source(self, config, rules_file, source_dir):
        context, files = prepare_sort(config, rules_file, dry_run=True)
        assert context.source_root == source_dir
        assert context.dry_run is True
        assert context.workers == 2
        assert [r.id for r in context.rules] == ["text", "pdfs"]
        assert len(files) == 5

    def test_source_override(self, config, rules_file, temp_dir):
        other = temp_dir / "other"
        other.mkdir()
        context, files = prepare_sort(config, rules_file, source=other)
        assert context.source_root == other
        assert files == []

    def test_rule_ids(self, config, rules_file):
        context, _ = prepare_sort(config, rules_file, rule_ids=["pdfs"])
        assert [r.id for r in context.rules] == ["pdfs"]

    def test_unknown_rule_id(self, config, rules_file):
        with pytest.raises(RulesFileError):
            prepare_sort(config, rules_file, rule_ids=["nope"])

    def test_no_enabled_rules(self, config, rules_file):
        rules_file.toggle("text")
        rules_file.toggle("pdfs")
        with pytest.raises(SortError, match="No enabled rules"):
            prepare_sort(config, rules_file)

    def test_selected_disabled_rule_is_dropped(self, config, rules_file):
        rules_file.toggle("text")
        context, _ = prepare_sort(config, rules_file, rule_ids=["text", "pdfs"])
        assert [r.id for r in context.rules] == ["pdfs"]

    def test_missing_source(self, config, rules_file, temp_dir):
        with pytest.raises(SortError) as exc_info:
            prepare_sort(config, rules_file, source=temp_dir / "missing")
        assert exc_info.value.error_code == ErrorCode.NOT_FOUND
