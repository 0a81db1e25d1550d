#!/usr/bin/env python3
"""YAML persistence of the rule set.

The rules file is a YAML document of the form ``{rules: [...]}``. This module
loads it (creating an empty one when missing), validates rules before they
are stored, and provides the management operations used by the CLI: add,
remove, toggle, find, export and list.

Example:
    >>> rules_file = RulesFile.load("~/.local/share/rulesort/rules.yaml")
    >>> rules_file.add_from_file("photos.yaml", overwrite=True)
    >>> rules_file.toggle("photos")
    False
"""

from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

import yaml

from rulesort.core.constants import ErrorCode, RuleKey
from rulesort.core.validators import ValidationError, validate_rule, validate_rules
from rulesort.infrastructure.logger import get_logger
from rulesort.rules.models import (
    Conditions,
    DateRange,
    MetadataField,
    MoveAction,
    Rule,
    RuleParseError,
    SizeRange,
    parse_rules,
)


class RulesFileError(Exception):
    """Rules file could not be read, written or updated."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.IO_ERROR):
        self.message = message
        self.error_code = error_code
        super().__init__(message)


def dump_yaml(data: Any) -> str:
    """Serialize a mapping as block-style YAML preserving key order."""
    return yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)


def load_rules_text(text: str, source: str = "<string>") -> List[Rule]:
    """Parse and validate rules from YAML text.

    Args:
        text: YAML holding a single rule or ``{rules: [...]}``
        source: Name used in error messages

    Returns:
        Validated rules in declaration order

    Raises:
        RuleParseError: If the YAML or the rule shape is invalid
        ValidationError: If a rule fails validation
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise RuleParseError(f"YAML parse error in {source}: {e}")
    if data is None:
        return []
    return validate_rules(parse_rules(data))


def read_rules(path: Union[str, Path]) -> List[Rule]:
    """Read, parse and validate a rule document from disk.

    Raises:
        RulesFileError: If the file cannot be read
        RuleParseError: If the content is malformed
        ValidationError: If a rule is invalid
    """
    path = Path(path).expanduser()
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise RulesFileError(f"File not found: {path}", ErrorCode.NOT_FOUND)
    except OSError as e:
        raise RulesFileError(f"Cannot read {path}: {e}")
    return load_rules_text(text, str(path))


def rule_template() -> Rule:
    """Example rule showing the available fields."""
    return Rule(
        id="example_rule",
        name="Example Rule",
        enabled=True,
        description="Describe what this rule does",
        priority=1,
        when=Conditions(
            any=False,
            filename=r"^.*\.jpg$",
            extensions=["jpg", "jpeg"],
            size_kb=SizeRange(min=10, max=5000),
            mime_type="image/jpeg",
            created_date=DateRange(),
            metadata=[MetadataField(key="EXIF:DateTime")],
        ),
        then=[MoveAction(to="/path/to/destination")],
    )


class RulesFile:
    """Ordered rule set backed by a YAML file.

    Every mutating operation saves the file immediately.
    """

    def __init__(self, path: Union[str, Path], rules: Optional[List[Rule]] = None):
        """Initialize rules file.

        Args:
            path: Location of the YAML file
            rules: Rules in declaration order
        """
        self.path = Path(path).expanduser()
        self.rules: List[Rule] = list(rules or [])
        self._logger = get_logger()

    @classmethod
    def load(cls, path: Union[str, Path]) -> "RulesFile":
        """Load the rules file, creating an empty one when it does not exist.

        Raises:
            RulesFileError: If the path is not a regular file or can't be read
            RuleParseError: If the YAML is malformed
            ValidationError: If a stored rule is invalid
        """
        path = Path(path).expanduser()
        logger = get_logger()

        if not path.exists():
            logger.warning("Rules file does not exist, creating new one", path=str(path))
            rules_file = cls(path)
            rules_file.save()
            return rules_file

        if not path.is_file():
            raise RulesFileError(f"Rules file is not a regular file: {path}", ErrorCode.INVALID_INPUT)

        rules = read_rules(path)
        logger.debug("Loaded rules", path=str(path), count=len(rules))
        return cls(path, rules)

    def to_dict(self) -> dict:
        return {RuleKey.RULES: [rule.to_dict() for rule in self.rules]}

    def save(self) -> None:
        """Write the rule set to disk.

        Raises:
            RulesFileError: If the file cannot be written
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(dump_yaml(self.to_dict()), encoding="utf-8")
        except OSError as e:
            raise RulesFileError(f"Cannot write rules file {self.path}: {e}")
        self._logger.debug("Saved rules", path=str(self.path), count=len(self.rules))

    def _index_of(self, rule_id: str) -> Optional[int]:
        for index, rule in enumerate(self.rules):
            if rule.id == rule_id:
                return index
        return None

    def add_rules(self, rules: Sequence[Rule], overwrite: bool = False) -> None:
        """Add validated rules, replacing same-id rules when ``overwrite``.

        Nothing is stored unless every rule can be added.

        Raises:
            ValidationError: If a rule is invalid or its id already exists
        """
        updated = list(self.rules)
        for rule in rules:
            validate_rule(rule)
            index = next((i for i, r in enumerate(updated) if r.id == rule.id), None)
            if index is None:
                updated.append(rule)
            elif overwrite:
                updated[index] = rule
            else:
                raise ValidationError(
                    f"Rule ID '{rule.id}' already exists", ErrorCode.CONFLICT, rule_id=rule.id
                )

        self.rules = updated
        self.save()
        self._logger.info("Added rules", count=len(rules), overwrite=overwrite)

    def add_from_file(self, file_path: Union[str, Path], overwrite: bool = False) -> List[Rule]:
        """Add rule(s) from a YAML file holding one rule or ``{rules: [...]}``.

        Returns:
            The rules that were added
        """
        rules = read_rules(file_path)
        self.add_rules(rules, overwrite)
        return rules

    def remove(self, rule_id: str) -> Rule:
        """Remove a rule by id.

        Raises:
            RulesFileError: If the id is unknown
        """
        index = self._index_of(rule_id)
        if index is None:
            raise RulesFileError(f"Rule with id '{rule_id}' not found", ErrorCode.NOT_FOUND)
        rule = self.rules.pop(index)
        self.save()
        self._logger.info("Removed rule", rule_id=rule_id)
        return rule

    def toggle(self, rule_id: str) -> bool:
        """Flip a rule's enabled flag.

        Returns:
            The new enabled state

        Raises:
            RulesFileError: If the id is unknown
        """
        rule = self.find(rule_id)
        if rule is None:
            raise RulesFileError(f"Rule with id '{rule_id}' not found", ErrorCode.NOT_FOUND)
        rule.enabled = not rule.enabled
        self.save()
        self._logger.info("Toggled rule", rule_id=rule_id, enabled=rule.enabled)
        return rule.enabled

    def find(self, rule_id: str) -> Optional[Rule]:
        """Find a rule by id."""
        index = self._index_of(rule_id)
        return None if index is None else self.rules[index]

    def export(self, rule_id: str, out_path: Optional[Union[str, Path]] = None) -> str:
        """Export one rule as YAML, optionally writing it to ``out_path``.

        Returns:
            The rule's YAML text

        Raises:
            RulesFileError: If the id is unknown or the file can't be written
        """
        rule = self.find(rule_id)
        if rule is None:
            raise RulesFileError(f"Rule with id '{rule_id}' not found", ErrorCode.NOT_FOUND)

        text = dump_yaml(rule.to_dict())
        if out_path is not None:
            out_path = Path(out_path).expanduser()
            try:
                out_path.write_text(text, encoding="utf-8")
            except OSError as e:
                raise RulesFileError(f"Cannot write {out_path}: {e}")
            self._logger.info("Exported rule", rule_id=rule_id, path=str(out_path))
        return text

    def list(self) -> List[Rule]:
        """All rules in declaration order."""
        return list(self.rules)

    def enabled_rules(self) -> List[Rule]:
        """Enabled rules in declaration order."""
        return [rule for rule in self.rules if rule.enabled]

    def filter_by_ids(self, rule_ids: Sequence[str]) -> List[Rule]:
        """Select rules by id, in the order the ids are given.

        Raises:
            RulesFileError: If an id is unknown
        """
        selected = []
        for rule_id in rule_ids:
            rule = self.find(rule_id)
            if rule is None:
                raise RulesFileError(f"Rule with id '{rule_id}' not found", ErrorCode.NOT_FOUND)
            selected.append(rule)
        return selected

    def __len__(self) -> int:
        return len(self.rules)
