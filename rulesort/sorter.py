#!/usr/bin/env python3
"""Sort orchestration.

This module drives one sort pass:
- Enumerate the files under a source directory
- Resolve the best rule for every file in parallel
- Run the rule's actions in order, each on the previous action's result
- Collect one MatchResult per executed action, in input file order

The first failing action aborts the pass: files not yet started are skipped,
pending work is cancelled and a SortError is raised. Mutations already
applied are not rolled back.

Example:
    >>> context = SortContext(source_root="/home/me/Downloads", rules=rules, dry_run=True)
    >>> results = Sorter(context).sort(collect_files(context.source_root))
"""

import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass, field
from datetime import date
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from rulesort.core.constants import ConfigKey, ErrorCode
from rulesort.files.actions import ActionError, ActionExecutor
from rulesort.files.metadata import extract_metadata
from rulesort.infrastructure.config_manager import ConfigManager
from rulesort.infrastructure.logger import Logger, get_logger
from rulesort.rules.engine import RuleEngine
from rulesort.rules.models import DeleteAction, ExecuteAction, RenameAction, Rule
from rulesort.rules.rules_file import RulesFile

ProgressCallback = Callable[[], None]


class SortError(Exception):
    """A sort pass could not start or was aborted."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.IO_ERROR,
        path: Optional[str] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.path = path
        super().__init__(message)


@dataclass(frozen=True)
class MatchResult:
    """One executed action for one file."""

    file_name: str
    action: str
    matched_rule_id: str
    current_path: str
    new_path: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass
class SortContext:
    """Everything one sort pass needs, built once per invocation."""

    source_root: Path
    rules: List[Rule]
    dry_run: bool = False
    max_workers: Optional[int] = None
    today: date = field(default_factory=date.today)
    logger: Logger = field(default_factory=get_logger)

    def __post_init__(self):
        self.source_root = Path(self.source_root).expanduser()

    @property
    def workers(self) -> int:
        return self.max_workers or os.cpu_count() or 1


def collect_files(source_root: Union[str, Path]) -> List[str]:
    """List the files under a directory, recursively and sorted.

    Symlinks are listed (not followed) so symlink conditions can see them.

    Raises:
        SortError: If the root is missing or not a directory
    """
    root = Path(source_root).expanduser()
    if not root.exists():
        raise SortError(f"Source folder does not exist: {root}", ErrorCode.NOT_FOUND, str(root))
    if not root.is_dir():
        raise SortError(
            f"Source path is not a directory: {root}", ErrorCode.INVALID_INPUT, str(root)
        )

    files = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for name in sorted(filenames):
            path = os.path.join(dirpath, name)
            if os.path.islink(path) or os.path.isfile(path):
                files.append(path)
    return files


class Sorter:
    """Runs rule resolution and actions over a list of files."""

    def __init__(
        self,
        context: SortContext,
        engine: Optional[RuleEngine] = None,
        executor: Optional[ActionExecutor] = None,
    ):
        """Initialize sorter.

        Args:
            context: Pass settings and rules
            engine: Rule engine (built from ``context.rules`` if omitted)
            executor: Action executor
        """
        self.context = context
        self._engine = engine or RuleEngine(context.rules)
        self._executor = executor or ActionExecutor()
        self._logger = context.logger
        self._abort = threading.Event()

    def process_file(self, path: str) -> List[MatchResult]:
        """Resolve and apply the best rule for one file.

        Returns:
            One MatchResult per executed action; empty when no rule matches

        Raises:
            ActionError: If an action fails
        """
        if self._abort.is_set():
            return []

        match = self._engine.resolve(path)
        if match is None:
            return []

        rule, _ = match
        ctx = self.context
        file_name = os.path.basename(path)

        # Templates see the original file, also after earlier actions moved it
        metadata = None
        if any(isinstance(a, (RenameAction, ExecuteAction)) for a in rule.then):
            metadata = extract_metadata(path)

        results: List[MatchResult] = []
        current = path
        with self._logger.add_context(rule_id=rule.id, file=file_name):
            for index, action in enumerate(rule.then):
                outcome = self._executor.execute(
                    current, action, ctx.dry_run, ctx.source_root, ctx.today, metadata
                )
                results.append(
                    MatchResult(
                        file_name=file_name,
                        action=outcome.action.value,
                        matched_rule_id=rule.id,
                        current_path=current,
                        new_path=outcome.new_path,
                    )
                )

                if isinstance(action, DeleteAction):
                    skipped = len(rule.then) - index - 1
                    if skipped:
                        self._logger.warning(
                            "File deleted, skipping remaining actions", skipped=skipped
                        )
                    break
                current = outcome.new_path

        return results

    def sort(
        self, files: Sequence[Union[str, Path]], progress_cb: Optional[ProgressCallback] = None
    ) -> List[MatchResult]:
        """Sort files in parallel.

        Args:
            files: Files to process
            progress_cb: Called once per completed file, from the calling thread

        Returns:
            MatchResults grouped by file in input order

        Raises:
            SortError: On the first failing action
        """
        files = [str(f) for f in files]
        if not files:
            self._logger.info("No files to sort")
            return []

        ctx = self.context
        self._abort.clear()
        per_file: List[List[MatchResult]] = [[] for _ in files]

        self._logger.info(
            "Starting sort",
            files=len(files),
            rules=len(ctx.rules),
            dry_run=ctx.dry_run,
            workers=ctx.workers,
        )

        with ThreadPoolExecutor(max_workers=ctx.workers) as pool:
            future_to_index = {
                pool.submit(self.process_file, path): index for index, path in enumerate(files)
            }
            try:
                for future in as_completed(future_to_index):
                    per_file[future_to_index[future]] = future.result()
                    if progress_cb:
                        progress_cb()
            except Exception as e:
                self._abort.set()
                for pending in future_to_index:
                    pending.cancel()
                if isinstance(e, ActionError):
                    self._logger.error("Sort aborted", path=e.path, error=e.message)
                    raise SortError(
                        f"Sort aborted: {e.message}", e.error_code, e.path
                    ) from e
                raise

        results = [result for file_results in per_file for result in file_results]
        matched = sum(1 for file_results in per_file if file_results)
        self._logger.info("Sort complete", files=len(files), matched=matched, actions=len(results))
        return results


def sort_files(
    files: Sequence[Union[str, Path]],
    source_root: Union[str, Path],
    rules: List[Rule],
    dry_run: bool = False,
    progress_cb: Optional[ProgressCallback] = None,
    max_workers: Optional[int] = None,
    today: Optional[date] = None,
) -> List[MatchResult]:
    """Run one sort pass over ``files`` with the enabled ``rules``."""
    context = SortContext(
        source_root=Path(source_root),
        rules=[rule for rule in rules if rule.enabled],
        dry_run=dry_run,
        max_workers=max_workers,
        today=today or date.today(),
    )
    return Sorter(context).sort(files, progress_cb)


def prepare_sort(
    config: ConfigManager,
    rules_file: RulesFile,
    source: Optional[Union[str, Path]] = None,
    rule_ids: Optional[Sequence[str]] = None,
    dry_run: bool = False,
) -> Tuple[SortContext, List[str]]:
    """Build the context and file list for a sort pass.

    Args:
        config: Configuration (source folder and worker count)
        rules_file: Loaded rules
        source: Source directory overriding the configured one
        rule_ids: Restrict the pass to these rules
        dry_run: Simulate instead of touching files

    Returns:
        (context, files)

    Raises:
        SortError: If no rule applies or the source folder is unusable
        RulesFileError: If a requested rule id is unknown
    """
    logger = get_logger()
    source_root = Path(source or config.get(ConfigKey.SOURCE_FOLDER)).expanduser()

    if rule_ids:
        selected = rules_file.filter_by_ids(rule_ids)
        for rule in selected:
            if not rule.enabled:
                logger.warning("Selected rule is disabled and will not run", rule_id=rule.id)
        rules = [rule for rule in selected if rule.enabled]
    else:
        rules = rules_file.enabled_rules()

    if not rules:
        raise SortError("No enabled rules to apply", ErrorCode.INVALID_INPUT)

    files = collect_files(source_root)
    context = SortContext(
        source_root=source_root,
        rules=rules,
        dry_run=dry_run,
        max_workers=config.get(ConfigKey.MAX_WORKERS),
        logger=logger,
    )
    logger.debug("Prepared sort", source=str(source_root), files=len(files), rules=len(rules))
    return context, files
