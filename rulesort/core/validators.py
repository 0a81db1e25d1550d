"""
RuleSort Core: Input Validators.

This module provides validation functions for rules, patterns and date
bounds. Validation happens before a sort pass starts, never during one.
"""
import re
from typing import Iterable, List, Optional

from rulesort.core.constants import ErrorCode
from rulesort.core.dates import parse_date
from rulesort.rules.models import (
    CopyAction,
    DateRange,
    ExecuteAction,
    MoveAction,
    RenameAction,
    Rule,
)


class ValidationError(Exception):
    """Base exception for validation errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INVALID_INPUT,
        rule_id: Optional[str] = None,
    ):
        """Initialize ValidationError.

        Args:
            message: Error message
            error_code: Associated error code
            rule_id: Id of the offending rule, if any
        """
        super().__init__(message)
        self.error_code = error_code
        self.rule_id = rule_id


def validate_regex(pattern: str) -> bool:
    """Check that a regular expression compiles.

    Args:
        pattern: Regular expression

    Returns:
        True if the pattern compiles
    """
    if not isinstance(pattern, str):
        return False
    try:
        re.compile(pattern)
        return True
    except re.error:
        return False


def validate_glob(pattern: str) -> bool:
    """Check that a glob pattern is usable.

    Args:
        pattern: Glob pattern

    Returns:
        True if the pattern is a non-empty string with balanced brackets
    """
    if not isinstance(pattern, str) or not pattern:
        return False
    depth = 0
    for char in pattern:
        if char == "[":
            depth += 1
        elif char == "]" and depth:
            depth -= 1
    return depth == 0


def _validate_date_range(rule: Rule, label: str, date_range: Optional[DateRange]) -> None:
    if date_range is None:
        return
    for bound_name, bound in (("from", date_range.from_), ("to", date_range.to)):
        if bound is None:
            continue
        try:
            parse_date(bound)
        except ValueError as e:
            raise ValidationError(
                f"rule {rule.id}: invalid {label} '{bound_name}' date: {e}", rule_id=rule.id
            )


def validate_rule(rule: Rule) -> bool:
    """Validate a parsed rule's fields and consistency.

    Checks required fields, duplicate metadata keys, size range ordering,
    date formats and action configuration.

    Args:
        rule: Rule to validate

    Returns:
        True if valid

    Raises:
        ValidationError: If the rule is invalid
    """
    if not rule.id or not rule.id.strip():
        raise ValidationError("rule id is required")

    if not rule.name or not rule.name.strip():
        raise ValidationError(f"rule {rule.id}: name is required", rule_id=rule.id)

    if not rule.then:
        raise ValidationError(
            f"rule {rule.id}: at least one action is required", rule_id=rule.id
        )

    conditions = rule.when

    if conditions.metadata:
        seen = set()
        for metadata_field in conditions.metadata:
            if metadata_field.key in seen:
                raise ValidationError(
                    f"rule {rule.id}: duplicate metadata key '{metadata_field.key}'",
                    rule_id=rule.id,
                )
            seen.add(metadata_field.key)

    size = conditions.size_kb
    if size is not None and size.min is not None and size.max is not None and size.min > size.max:
        raise ValidationError(
            f"rule {rule.id}: invalid size_kb range: min > max", rule_id=rule.id
        )

    _validate_date_range(rule, "created_date", conditions.created_date)
    _validate_date_range(rule, "modified_date", conditions.modified_date)

    for i, action in enumerate(rule.then):
        if isinstance(action, (MoveAction, CopyAction)) and not action.to.strip():
            raise ValidationError(
                f"rule {rule.id}: action {i} invalid: missing destination path",
                rule_id=rule.id,
            )
        if isinstance(action, RenameAction) and not action.to.strip():
            raise ValidationError(
                f"rule {rule.id}: action {i} invalid: missing rename target",
                rule_id=rule.id,
            )
        if isinstance(action, ExecuteAction) and not action.command.strip():
            raise ValidationError(
                f"rule {rule.id}: action {i} invalid: missing command to execute",
                rule_id=rule.id,
            )

    return True


def validate_rules(rules: Iterable[Rule]) -> List[Rule]:
    """Validate a rule set: every rule plus id uniqueness.

    Args:
        rules: Rules in declaration order

    Returns:
        The rules as a list

    Raises:
        ValidationError: If any rule is invalid or an id repeats
    """
    rules = list(rules)
    seen = set()
    for rule in rules:
        validate_rule(rule)
        if rule.id in seen:
            raise ValidationError(
                f"Rule ID '{rule.id}' already exists", ErrorCode.CONFLICT, rule_id=rule.id
            )
        seen.add(rule.id)
    return rules
