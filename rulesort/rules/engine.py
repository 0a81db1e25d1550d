#!/usr/bin/env python3
"""Rule engine selecting the rule that applies to a file.

This module provides rule resolution for RuleSort:
- Condition evaluation of every enabled rule against a file
- Highest-priority-wins selection
- Declaration order as the tie-breaker (first declared wins)
- Diagnostics listing every matching rule

Example:
    >>> engine = RuleEngine(rules)
    >>> match = engine.resolve("/home/me/Downloads/report.pdf")
    >>> if match:
    ...     rule, index = match
"""

from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from rulesort.infrastructure.logger import get_logger
from rulesort.rules.conditions import ConditionEvaluator, FileView
from rulesort.rules.models import Rule

RuleMatch = Tuple[Rule, int]


class RuleEngine:
    """Resolves the single best-matching rule for a file.

    Rules are held in declaration order and never reordered; priority is
    applied at resolution time so the declaration index stays meaningful.
    The engine is read-only after construction and safe to share across
    worker threads.
    """

    def __init__(self, rules: Iterable[Rule], evaluator: Optional[ConditionEvaluator] = None):
        """Initialize rule engine.

        Args:
            rules: Rules in declaration order (disabled rules are ignored)
            evaluator: Condition evaluator to use
        """
        self._rules: List[Rule] = [rule for rule in rules if rule.enabled]
        self._evaluator = evaluator or ConditionEvaluator()
        self._logger = get_logger()

    @property
    def rules(self) -> List[Rule]:
        """Enabled rules in declaration order."""
        return list(self._rules)

    def matching_rules(self, path: Union[str, Path]) -> List[RuleMatch]:
        """Get every rule that matches the file.

        Args:
            path: File path

        Returns:
            (rule, declaration index) pairs in declaration order
        """
        view = FileView(path)
        return [
            (rule, index)
            for index, rule in enumerate(self._rules)
            if self._evaluator.evaluate(view, rule.when)
        ]

    def resolve(self, path: Union[str, Path]) -> Optional[RuleMatch]:
        """Pick the rule to apply to a file.

        The highest priority wins. Among equal priorities the rule declared
        first wins.

        Args:
            path: File path

        Returns:
            (rule, declaration index), or None when no rule matches
        """
        best: Optional[RuleMatch] = None
        for rule, index in self.matching_rules(path):
            # Strictly greater keeps the earlier declaration on ties
            if best is None or rule.priority > best[0].priority:
                best = (rule, index)

        if best is None:
            self._logger.debug("No matching rule", path=str(path))
        else:
            self._logger.debug(
                "Matched rule", path=str(path), rule_id=best[0].id, priority=best[0].priority
            )
        return best

    def __len__(self) -> int:
        """Return number of enabled rules."""
        return len(self._rules)


def resolve(path: Union[str, Path], rules: Iterable[Rule]) -> Optional[RuleMatch]:
    """Resolve the best rule for one file against a rule list."""
    return RuleEngine(rules).resolve(path)
