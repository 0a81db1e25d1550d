"""Tests for the rule data model and its parsing."""
import pytest
import yaml

from rulesort.core.constants import ActionKind
from rulesort.rules.models import (
    Conditions,
    CopyAction,
    DateRange,
    DeleteAction,
    ExecuteAction,
    MetadataField,
    MoveAction,
    RenameAction,
    Rule,
    RuleParseError,
    SizeRange,
    SkipAction,
    action_from_dict,
    action_to_dict,
    parse_rules,
)

FULL_RULE = """
id: photos
name: Sort photos
enabled: true
priority: 10
description: optional
when:
  any: false
  filename: "^IMG_.*"
  extensions: [jpg, jpeg]
  path: "**/camera/*"
  size_kb: {min: 5, max: 2048}
  mime_type: "image/*"
  created_date: {from: "2024-01-01T00:00:00Z", to: "2024-12-31T23:59:59Z"}
  modified_date: {from: "-30d"}
  is_symlink: false
  metadata:
    - key: "EXIF:Model"
      value: "*Canon*"
then:
  - action: move
    to: "~/Pictures/{year}/{month}"
    preserve_structure: false
  - action: rename
    to: "{{metadata.EXIF:DateTime|date:%Y-%m-%d}}_{{filename}}.jpg"
  - action: copy
    to: /backup
  - action: delete
    trash: true
  - action: execute
    command: echo
    args: ["{{filename}}"]
  - action: skip
"""


class TestRuleParsing:
    """Tests for Rule.from_dict."""

    def test_full_rule(self):
        rule = Rule.from_dict(yaml.safe_load(FULL_RULE))

        assert rule.id == "photos"
        assert rule.priority == 10
        assert rule.enabled is True
        assert rule.when.size_kb == SizeRange(min=5, max=2048)
        assert rule.when.created_date == DateRange(
            from_="2024-01-01T00:00:00Z", to="2024-12-31T23:59:59Z"
        )
        assert rule.when.modified_date == DateRange(from_="-30d")
        assert rule.when.metadata == [MetadataField(key="EXIF:Model", value="*Canon*")]
        assert rule.when.is_symlink is False
        assert [a.kind for a in rule.then] == [
            ActionKind.MOVE,
            ActionKind.RENAME,
            ActionKind.COPY,
            ActionKind.DELETE,
            ActionKind.EXECUTE,
            ActionKind.SKIP,
        ]
        assert rule.then[3] == DeleteAction(trash=True)
        assert rule.then[4] == ExecuteAction(command="echo", args=["{{filename}}"])

    def test_defaults(self):
        rule = Rule.from_dict({"id": "a", "name": "A", "then": [{"action": "skip"}]})
        assert rule.enabled is True
        assert rule.priority == 0
        assert rule.description is None
        assert rule.when == Conditions()

    def test_unknown_rule_field(self):
        with pytest.raises(RuleParseError, match="Unknown field"):
            Rule.from_dict({"id": "a", "name": "A", "then": [], "colour": "red"})

    def test_unknown_condition_field(self):
        with pytest.raises(RuleParseError, match="when"):
            Rule.from_dict({"id": "a", "name": "A", "when": {"extension": ["txt"]}, "then": []})

    def test_unknown_action_field(self):
        with pytest.raises(RuleParseError, match="Unknown field"):
            Rule.from_dict(
                {"id": "a", "name": "A", "then": [{"action": "move", "to": "/x", "force": True}]}
            )

    def test_unknown_action_type(self):
        with pytest.raises(RuleParseError, match="Invalid"):
            action_from_dict({"action": "teleport"})

    def test_missing_id(self):
        with pytest.raises(RuleParseError, match="'id'"):
            Rule.from_dict({"name": "A", "then": []})

    def test_missing_then(self):
        with pytest.raises(RuleParseError, match="'then'"):
            Rule.from_dict({"id": "a", "name": "A"})

    @pytest.mark.parametrize("priority", [-1, "high", 1.5, True])
    def test_bad_priority(self, priority):
        with pytest.raises(RuleParseError, match="priority"):
            Rule.from_dict({"id": "a", "name": "A", "priority": priority, "then": []})

    def test_bad_extensions_type(self):
        with pytest.raises(RuleParseError, match="extensions"):
            Conditions.from_dict({"extensions": "txt"})

    def test_missing_move_destination(self):
        with pytest.raises(RuleParseError, match="'to'"):
            action_from_dict({"action": "move"})

    def test_null_required_field(self):
        with pytest.raises(RuleParseError, match="missing required field 'name'"):
            Rule.from_dict({"id": "a", "name": None, "then": []})

    def test_required_field_must_be_string(self):
        with pytest.raises(RuleParseError, match=r"rule\.id must be a string"):
            Rule.from_dict({"id": 7, "name": "A", "then": []})


class TestRuleSerialization:
    """Tests for to_dict."""

    def test_round_trip(self):
        rule = Rule.from_dict(yaml.safe_load(FULL_RULE))
        assert Rule.from_dict(rule.to_dict()) == rule

    def test_absent_conditions_are_omitted(self):
        data = Conditions(extensions=["txt"]).to_dict()
        assert data == {"extensions": ["txt"]}

    def test_action_to_dict(self):
        assert action_to_dict(SkipAction()) == {"action": "skip"}
        assert action_to_dict(MoveAction(to="/x")) == {
            "action": "move",
            "to": "/x",
            "preserve_structure": False,
        }
        assert action_to_dict(RenameAction(to="{{filename}}")) == {
            "action": "rename",
            "to": "{{filename}}",
        }
        assert action_to_dict(CopyAction(to="/y", preserve_structure=True))["preserve_structure"]


class TestParseRules:
    """Tests for parse_rules."""

    def test_single_rule(self):
        rules = parse_rules({"id": "a", "name": "A", "then": [{"action": "skip"}]})
        assert [r.id for r in rules] == ["a"]

    def test_rule_list(self):
        rules = parse_rules(
            {
                "rules": [
                    {"id": "a", "name": "A", "then": [{"action": "skip"}]},
                    {"id": "b", "name": "B", "then": [{"action": "skip"}]},
                ]
            }
        )
        assert [r.id for r in rules] == ["a", "b"]

    def test_empty_rule_list(self):
        assert parse_rules({"rules": None}) == []

    def test_rules_not_a_list(self):
        with pytest.raises(RuleParseError):
            parse_rules({"rules": {"id": "a"}})
