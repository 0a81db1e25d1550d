#!/usr/bin/env python3
"""Rule data model.

This module defines the declarative rule structures used by RuleSort:
- Rule: a named, prioritized binding of conditions to actions
- Conditions: optional predicates combined with AND (default) or OR
- Action variants: Move, Copy, Rename, Delete, Execute, Skip

Rules are parsed from plain mappings (as produced by a YAML loader). Unknown
fields are rejected at parse time so typos never silently disable a condition.

Example:
    >>> rule = Rule.from_dict({
    ...     "id": "txt",
    ...     "name": "Text files",
    ...     "priority": 1,
    ...     "when": {"extensions": ["txt"]},
    ...     "then": [{"action": "move", "to": "/out"}],
    ... })
    >>> rule.then[0].kind
    <ActionKind.MOVE: 'move'>
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Union

from rulesort.core.constants import ActionKind, ErrorCode, RuleKey


class RuleParseError(Exception):
    """Rule definition has the wrong shape (unknown field, wrong type)."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.INVALID_INPUT):
        self.message = message
        self.error_code = error_code
        super().__init__(message)


def _check_fields(data: Any, allowed: set, where: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise RuleParseError(f"{where} must be a mapping, got {type(data).__name__}")
    unknown = set(data) - allowed
    if unknown:
        raise RuleParseError(f"Unknown field(s) in {where}: {', '.join(sorted(map(str, unknown)))}")
    return data


def _opt_str(data: Mapping[str, Any], key: str, where: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise RuleParseError(f"{where}.{key} must be a string")
    return value


def _req_str(data: Mapping[str, Any], key: str, where: str) -> str:
    value = _opt_str(data, key, where)
    if value is None:
        raise RuleParseError(f"{where} is missing required field '{key}'")
    return value


def _opt_bool(data: Mapping[str, Any], key: str, where: str) -> Optional[bool]:
    value = data.get(key)
    if value is not None and not isinstance(value, bool):
        raise RuleParseError(f"{where}.{key} must be a boolean")
    return value


def _opt_uint(data: Mapping[str, Any], key: str, where: str) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise RuleParseError(f"{where}.{key} must be a non-negative integer")
    return value


def _opt_str_list(data: Mapping[str, Any], key: str, where: str) -> Optional[List[str]]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise RuleParseError(f"{where}.{key} must be a list of strings")
    return list(value)


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class SizeRange:
    """Inclusive file size range in KB."""

    min: Optional[int] = None
    max: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Any) -> "SizeRange":
        data = _check_fields(data, {"min", "max"}, "size_kb")
        return cls(min=_opt_uint(data, "min", "size_kb"), max=_opt_uint(data, "max", "size_kb"))

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({"min": self.min, "max": self.max})


@dataclass(frozen=True)
class DateRange:
    """Inclusive date range; bounds are date strings (RFC3339, ISO, relative)."""

    from_: Optional[str] = None
    to: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any, where: str = "date range") -> "DateRange":
        data = _check_fields(data, {"from", "to"}, where)
        return cls(from_=_opt_str(data, "from", where), to=_opt_str(data, "to", where))

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({"from": self.from_, "to": self.to})


@dataclass(frozen=True)
class MetadataField:
    """A metadata key that must exist, optionally matching a glob value."""

    key: str
    value: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "MetadataField":
        data = _check_fields(data, {"key", "value"}, "metadata field")
        return cls(
            key=_req_str(data, "key", "metadata field"),
            value=_opt_str(data, "value", "metadata field"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({"key": self.key, "value": self.value})


@dataclass(frozen=True)
class Conditions:
    """Matching criteria of a rule.

    Every condition is optional. Absent conditions are not evaluated; present
    conditions are combined with AND, or with OR when ``any`` is true.
    """

    FIELDS: ClassVar[set] = {
        "any",
        "filename",
        "extensions",
        "path",
        "size_kb",
        "mime_type",
        "created_date",
        "modified_date",
        "is_symlink",
        "metadata",
    }

    any: bool = False
    filename: Optional[str] = None
    extensions: Optional[List[str]] = None
    path: Optional[str] = None
    size_kb: Optional[SizeRange] = None
    mime_type: Optional[str] = None
    created_date: Optional[DateRange] = None
    modified_date: Optional[DateRange] = None
    is_symlink: Optional[bool] = None
    metadata: Optional[List[MetadataField]] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Conditions":
        if data is None:
            return cls()
        data = _check_fields(data, cls.FIELDS, "when")

        size_kb = data.get("size_kb")
        created = data.get("created_date")
        modified = data.get("modified_date")
        metadata = data.get("metadata")
        if metadata is not None and not isinstance(metadata, list):
            raise RuleParseError("when.metadata must be a list")

        return cls(
            any=bool(_opt_bool(data, "any", "when")),
            filename=_opt_str(data, "filename", "when"),
            extensions=_opt_str_list(data, "extensions", "when"),
            path=_opt_str(data, "path", "when"),
            size_kb=SizeRange.from_dict(size_kb) if size_kb is not None else None,
            mime_type=_opt_str(data, "mime_type", "when"),
            created_date=DateRange.from_dict(created, "created_date") if created is not None else None,
            modified_date=(
                DateRange.from_dict(modified, "modified_date") if modified is not None else None
            ),
            is_symlink=_opt_bool(data, "is_symlink", "when"),
            metadata=[MetadataField.from_dict(m) for m in metadata] if metadata is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none(
            {
                "any": self.any or None,
                "filename": self.filename,
                "extensions": self.extensions,
                "path": self.path,
                "size_kb": self.size_kb.to_dict() if self.size_kb else None,
                "mime_type": self.mime_type,
                "created_date": self.created_date.to_dict() if self.created_date else None,
                "modified_date": self.modified_date.to_dict() if self.modified_date else None,
                "is_symlink": self.is_symlink,
                "metadata": [m.to_dict() for m in self.metadata] if self.metadata is not None else None,
            }
        )


@dataclass(frozen=True)
class MoveAction:
    """Move the file under a destination directory."""

    kind: ClassVar[ActionKind] = ActionKind.MOVE

    to: str
    preserve_structure: bool = False


@dataclass(frozen=True)
class CopyAction:
    """Copy the file under a destination directory."""

    kind: ClassVar[ActionKind] = ActionKind.COPY

    to: str
    preserve_structure: bool = False


@dataclass(frozen=True)
class RenameAction:
    """Rename the file; ``to`` is a template."""

    kind: ClassVar[ActionKind] = ActionKind.RENAME

    to: str


@dataclass(frozen=True)
class DeleteAction:
    """Delete the file, optionally through the platform trash."""

    kind: ClassVar[ActionKind] = ActionKind.DELETE

    trash: bool = False


@dataclass(frozen=True)
class ExecuteAction:
    """Run an external command."""

    kind: ClassVar[ActionKind] = ActionKind.EXECUTE

    command: str
    args: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SkipAction:
    """Leave the file untouched."""

    kind: ClassVar[ActionKind] = ActionKind.SKIP


Action = Union[MoveAction, CopyAction, RenameAction, DeleteAction, ExecuteAction, SkipAction]


def action_from_dict(data: Any, where: str = "action") -> Action:
    """Parse one action mapping tagged by its ``action`` field.

    Raises:
        RuleParseError: If the tag is unknown or fields are invalid
    """
    if not isinstance(data, Mapping):
        raise RuleParseError(f"{where} must be a mapping, got {type(data).__name__}")

    tag = data.get(RuleKey.ACTION)
    try:
        kind = ActionKind(tag)
    except ValueError:
        valid = [k.value for k in ActionKind]
        raise RuleParseError(f"Invalid {where} type: {tag!r}. Must be one of {valid}")

    if kind in (ActionKind.MOVE, ActionKind.COPY):
        data = _check_fields(data, {"action", "to", "preserve_structure"}, where)
        cls = MoveAction if kind == ActionKind.MOVE else CopyAction
        return cls(
            to=_req_str(data, "to", where),
            preserve_structure=bool(_opt_bool(data, "preserve_structure", where)),
        )
    if kind == ActionKind.RENAME:
        data = _check_fields(data, {"action", "to"}, where)
        return RenameAction(to=_req_str(data, "to", where))
    if kind == ActionKind.DELETE:
        data = _check_fields(data, {"action", "trash"}, where)
        return DeleteAction(trash=bool(_opt_bool(data, "trash", where)))
    if kind == ActionKind.EXECUTE:
        data = _check_fields(data, {"action", "command", "args"}, where)
        return ExecuteAction(
            command=_req_str(data, "command", where),
            args=_opt_str_list(data, "args", where) or [],
        )

    _check_fields(data, {"action"}, where)
    return SkipAction()


def action_to_dict(action: Action) -> Dict[str, Any]:
    """Serialize an action back to its tagged mapping."""
    result: Dict[str, Any] = {RuleKey.ACTION: action.kind.value}
    if isinstance(action, (MoveAction, CopyAction)):
        result["to"] = action.to
        result["preserve_structure"] = action.preserve_structure
    elif isinstance(action, RenameAction):
        result["to"] = action.to
    elif isinstance(action, DeleteAction):
        result["trash"] = action.trash
    elif isinstance(action, ExecuteAction):
        result["command"] = action.command
        result["args"] = list(action.args)
    return result


@dataclass
class Rule:
    """A rule binding conditions to an ordered list of actions.

    Among all matching rules the highest ``priority`` wins; ties go to the
    rule declared first.
    """

    FIELDS: ClassVar[set] = {
        RuleKey.ID,
        RuleKey.NAME,
        RuleKey.ENABLED,
        RuleKey.DESCRIPTION,
        RuleKey.PRIORITY,
        RuleKey.WHEN,
        RuleKey.THEN,
    }

    id: str
    name: str
    when: Conditions = field(default_factory=Conditions)
    then: List[Action] = field(default_factory=list)
    enabled: bool = True
    priority: int = 0
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Rule":
        """Parse a rule mapping.

        Args:
            data: Mapping with id, name, enabled, priority, description, when, then

        Returns:
            Parsed rule (not yet validated, see ``rulesort.core.validators``)

        Raises:
            RuleParseError: If the mapping has unknown fields or wrong types
        """
        data = _check_fields(data, cls.FIELDS, "rule")
        rule_id = _req_str(data, RuleKey.ID, "rule")
        where = f"rule '{rule_id}'"

        then = data.get(RuleKey.THEN)
        if then is None:
            raise RuleParseError(f"{where} is missing required field 'then'")
        if not isinstance(then, list):
            raise RuleParseError(f"{where}.then must be a list of actions")

        enabled = _opt_bool(data, RuleKey.ENABLED, where)
        priority = _opt_uint(data, RuleKey.PRIORITY, where)

        return cls(
            id=rule_id,
            name=_req_str(data, RuleKey.NAME, where),
            enabled=True if enabled is None else enabled,
            priority=priority or 0,
            description=_opt_str(data, RuleKey.DESCRIPTION, where),
            when=Conditions.from_dict(data.get(RuleKey.WHEN)),
            then=[action_from_dict(a, f"{where} action {i}") for i, a in enumerate(then)],
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the rule to a plain mapping (YAML friendly)."""
        result: Dict[str, Any] = {
            RuleKey.ID: self.id,
            RuleKey.NAME: self.name,
            RuleKey.ENABLED: self.enabled,
            RuleKey.PRIORITY: self.priority,
        }
        if self.description is not None:
            result[RuleKey.DESCRIPTION] = self.description
        result[RuleKey.WHEN] = self.when.to_dict()
        result[RuleKey.THEN] = [action_to_dict(a) for a in self.then]
        return result


def parse_rules(data: Any) -> List[Rule]:
    """Parse either a single rule mapping or ``{rules: [...]}``.

    Raises:
        RuleParseError: If the document has the wrong shape
    """
    if isinstance(data, Mapping) and set(data) == {RuleKey.RULES}:
        rules = data[RuleKey.RULES] or []
        if not isinstance(rules, list):
            raise RuleParseError("'rules' must be a list")
        return [Rule.from_dict(r) for r in rules]
    return [Rule.from_dict(data)]
