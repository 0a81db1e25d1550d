#!/usr/bin/env python3
"""File actions applied by matched rules.

This module provides the per-file action executor:
- Move / Copy under a destination root, optionally preserving structure
- Rename through a name template
- Delete, permanently or through the platform trash
- Execute an external command
- Skip

Every action has a dry-run mode that performs no I/O and returns the same
result the real action would.

Example:
    >>> executor = ActionExecutor()
    >>> result = executor.execute("/dl/a.txt", MoveAction(to="/out"), dry_run=True,
    ...                           source_root="/dl")
    >>> result.new_path
    '/out/a.txt'
"""

import errno
import os
import shutil
import subprocess
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional, Union

from send2trash import send2trash

from rulesort.core.constants import DELETED_MARKER, ActionKind, ErrorCode, Limits
from rulesort.files.metadata import extract_metadata
from rulesort.files.template import TemplateResolver, expand_date_tokens, get_resolver
from rulesort.infrastructure.logger import get_logger, log_file_operation
from rulesort.rules.models import (
    Action,
    CopyAction,
    DeleteAction,
    ExecuteAction,
    MoveAction,
    RenameAction,
)

PathLike = Union[str, Path]


class ActionError(Exception):
    """A file action failed."""

    def __init__(
        self,
        message: str,
        action: ActionKind,
        path: str,
        error_code: ErrorCode = ErrorCode.IO_ERROR,
    ):
        self.message = message
        self.action = action
        self.path = path
        self.error_code = error_code
        super().__init__(message)


@dataclass(frozen=True)
class ActionResult:
    """Outcome of one action: where the file ended up."""

    new_path: str
    action: ActionKind


def _error_code(error: OSError) -> ErrorCode:
    if error.errno == errno.ENOENT:
        return ErrorCode.NOT_FOUND
    if error.errno in (errno.EACCES, errno.EPERM):
        return ErrorCode.PERMISSION_DENIED
    return ErrorCode.IO_ERROR


def resolve_destination_root(to: str, today: Optional[date] = None) -> Path:
    """Turn an action's ``to`` into an absolute directory.

    ``{year}``, ``{month}`` and ``{day}`` are filled in first. ``~`` expands
    to the home directory and other relative paths resolve against the
    current working directory.
    """
    root = Path(expand_date_tokens(to, today)).expanduser()
    if not root.is_absolute():
        root = Path.cwd() / root
    return Path(os.path.normpath(root))


def compute_destination(
    path: PathLike,
    to: str,
    preserve_structure: bool,
    source_root: PathLike,
    today: Optional[date] = None,
) -> Path:
    """Compute where a Move or Copy puts a file.

    Args:
        path: Current file path
        to: Destination root template
        preserve_structure: Keep the path relative to ``source_root``
        source_root: Root of the sort pass
        today: Date for ``{year}/{month}/{day}``

    Returns:
        Destination file path; files outside ``source_root`` fall back to
        their base name
    """
    root = resolve_destination_root(to, today)
    path = Path(os.path.abspath(path))

    if preserve_structure:
        try:
            return root / path.relative_to(os.path.abspath(source_root))
        except ValueError:
            pass
    return root / path.name


class ActionExecutor:
    """Executes single actions against single files.

    Side effects are confined to the target file (and the parent directories
    of its destination). The executor holds no per-file state and is shared
    across worker threads.
    """

    def __init__(self, resolver: Optional[TemplateResolver] = None):
        self._resolver = resolver or get_resolver()
        self._logger = get_logger()
        self._handlers: Dict[type, Callable[..., str]] = {
            MoveAction: self._move,
            CopyAction: self._copy,
            RenameAction: self._rename,
            DeleteAction: self._delete,
            ExecuteAction: self._execute,
        }

    def execute(
        self,
        path: PathLike,
        action: Action,
        dry_run: bool,
        source_root: PathLike,
        today: Optional[date] = None,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> ActionResult:
        """Execute one action.

        Args:
            path: File the action applies to
            action: Action to perform
            dry_run: Compute the result without touching the filesystem
            source_root: Root of the sort pass (for ``preserve_structure``)
            today: Date for ``{year}/{month}/{day}`` (defaults to today)
            metadata: Metadata for templates (extracted from ``path`` if omitted)

        Returns:
            ActionResult with the file's new location

        Raises:
            ActionError: If a real (non dry-run) action fails
        """
        path = str(path)
        handler = self._handlers.get(type(action))
        if handler is None:
            new_path = path
        else:
            new_path = handler(path, action, dry_run, source_root, today, metadata)

        log_file_operation(
            f"{action.kind.value}: {path} -> {new_path}",
            action=action.kind.value,
            dry_run=dry_run,
        )
        return ActionResult(new_path=new_path, action=action.kind)

    def _move(self, path, action: MoveAction, dry_run, source_root, today, metadata) -> str:
        dest = compute_destination(path, action.to, action.preserve_structure, source_root, today)
        if not dry_run:
            try:
                dest.parent.mkdir(parents=True, exist_ok=True)
                shutil.move(path, dest)
            except OSError as e:
                raise ActionError(
                    f"Failed to move {path} to {dest}: {e}", action.kind, path, _error_code(e)
                )
            self._logger.info("Moved file", source=path, destination=str(dest))
        return str(dest)

    def _copy(self, path, action: CopyAction, dry_run, source_root, today, metadata) -> str:
        dest = compute_destination(path, action.to, action.preserve_structure, source_root, today)
        if not dry_run:
            try:
                dest.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(path, dest)
            except OSError as e:
                raise ActionError(
                    f"Failed to copy {path} to {dest}: {e}", action.kind, path, _error_code(e)
                )
            self._logger.info("Copied file", source=path, destination=str(dest))
        return str(dest)

    def _rename(self, path, action: RenameAction, dry_run, source_root, today, metadata) -> str:
        if metadata is None:
            metadata = extract_metadata(path)

        name = self._resolver.expand(action.to, path, metadata)
        name = name.replace("/", "_").replace("\\", "_").strip()
        current = Path(path)
        if not name:
            self._logger.warning("Rename template expanded to nothing, keeping name", path=path)
            name = current.name

        dest = current.with_name(name)
        if not dry_run and dest != current:
            try:
                current.rename(dest)
            except OSError as e:
                raise ActionError(
                    f"Failed to rename {path} to {name}: {e}", action.kind, path, _error_code(e)
                )
            self._logger.info("Renamed file", source=path, destination=str(dest))
        return str(dest)

    def _delete(self, path, action: DeleteAction, dry_run, source_root, today, metadata) -> str:
        if not dry_run:
            try:
                if action.trash:
                    send2trash(path)
                else:
                    os.remove(path)
            except OSError as e:
                target = "trash" if action.trash else "delete"
                raise ActionError(
                    f"Failed to {target} {path}: {e}", action.kind, path, _error_code(e)
                )
            self._logger.info("Deleted file", path=path, trash=action.trash)
        return DELETED_MARKER

    def _execute(self, path, action: ExecuteAction, dry_run, source_root, today, metadata) -> str:
        if dry_run:
            return path

        if metadata is None:
            metadata = extract_metadata(path)
        args = [self._resolver.expand(arg, path, metadata) for arg in action.args]

        try:
            result = subprocess.run(
                [action.command, *args],
                capture_output=True,
                text=True,
                timeout=Limits.DEFAULT_COMMAND_TIMEOUT,
            )
        except (subprocess.TimeoutExpired, OSError) as e:
            raise ActionError(
                f"Failed to run command '{action.command}': {e}",
                action.kind,
                path,
                ErrorCode.DEPENDENCY_ERROR,
            )

        if result.returncode != 0:
            raise ActionError(
                f"Command '{action.command}' exited with status {result.returncode}: "
                f"{result.stderr.strip()}",
                action.kind,
                path,
                ErrorCode.DEPENDENCY_ERROR,
            )

        self._logger.info("Executed command", path=path, command=action.command)
        return path


_default_executor: Optional[ActionExecutor] = None


def execute_action(
    path: PathLike,
    action: Action,
    dry_run: bool,
    source_root: PathLike,
    today: Optional[date] = None,
    metadata: Optional[Mapping[str, str]] = None,
) -> ActionResult:
    """Execute one action with a shared executor."""
    global _default_executor
    if _default_executor is None:
        _default_executor = ActionExecutor()
    return _default_executor.execute(path, action, dry_run, source_root, today, metadata)
