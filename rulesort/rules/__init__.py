"""RuleSort Rules System.

This module provides the rule model and rule matching:
- Rule, Conditions and the action variants
- ConditionEvaluator: evaluates a rule's conditions against a file
- RuleEngine: picks the single best-matching rule for a file
- Glob and regex pattern matching

Rule persistence lives in ``rulesort.rules.rules_file``.
"""

from .conditions import ConditionEvaluator, FileView
from .engine import RuleEngine
from .models import (
    Action,
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
    parse_rules,
)
from .patterns import PatternError, compile_glob, compile_regex, match_glob

__all__ = [
    # Model
    "Rule",
    "Conditions",
    "SizeRange",
    "DateRange",
    "MetadataField",
    "Action",
    "MoveAction",
    "CopyAction",
    "RenameAction",
    "DeleteAction",
    "ExecuteAction",
    "SkipAction",
    "RuleParseError",
    "parse_rules",
    # Matching
    "ConditionEvaluator",
    "FileView",
    "RuleEngine",
    # Patterns
    "PatternError",
    "compile_glob",
    "compile_regex",
    "match_glob",
]
