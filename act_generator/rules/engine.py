"""
Rule Engine - evaluates user-defined rules against data rows.

Flow per row:
  1. Take enabled rules, sorted ascending by priority (stable)
  2. Evaluate each rule's ConditionGroup against the original row
  3. For a match, run its actions in order into a RowEffects accumulator
  4. A skip action stops everything for that row (remaining actions included)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence

from ..logging_config import setup_logging
from .actions import Action, RowEffects, SkipAction, apply_action
from .conditions import Condition, ConditionEvaluator, ConditionGroup

logger = setup_logging(__name__)


@dataclass
class Rule:
    id: str
    name: str
    condition_group: ConditionGroup = field(default_factory=ConditionGroup)
    actions: List[Action] = field(default_factory=list)
    enabled: bool = True
    priority: int = 0                   # lower = evaluated first


@dataclass
class RuleTestResult:
    """Outcome of test_rule() for one row."""
    matched: bool
    effects: RowEffects


class RuleEngine:
    """
    Applies rules to rows. Stateless between rows; safe to reuse.
    """

    def __init__(self, case_insensitive: bool = True):
        self.evaluator = ConditionEvaluator(case_insensitive=case_insensitive)

    # ─────────────────────────────────────────────────────────
    # Conditions
    # ─────────────────────────────────────────────────────────
    def evaluate_condition(self, condition: Condition, row: Mapping[str, Any]) -> bool:
        return self.evaluator.evaluate_condition(condition, row)

    def evaluate_condition_group(self, group: ConditionGroup, row: Mapping[str, Any]) -> bool:
        return self.evaluator.evaluate_group(group, row)

    @staticmethod
    def sorted_rules(rules: Sequence[Rule]) -> List[Rule]:
        """Enabled rules in ascending priority; ties keep input order."""
        return sorted((r for r in rules if r.enabled), key=lambda r: r.priority)

    def evaluate_rules(self, rules: Sequence[Rule], row: Mapping[str, Any]) -> List[Rule]:
        """Enabled rules whose conditions match the row, in application order."""
        return [
            r for r in self.sorted_rules(rules)
            if self.evaluate_condition_group(r.condition_group, row)
        ]

    # ─────────────────────────────────────────────────────────
    # Processing
    # ─────────────────────────────────────────────────────────
    def _run(self, ordered: Sequence[Rule], row: Mapping[str, Any]) -> RowEffects:
        effects = RowEffects()
        for rule in ordered:
            if not self.evaluate_condition_group(rule.condition_group, row):
                continue
            effects.matched_rule_ids.append(rule.id)
            for action in rule.actions:
                apply_action(action, row, effects)
                if effects.skipped:
                    logger.debug(f"Row {row.get('id')} skipped by rule {rule.id}")
                    return effects
        return effects

    def process_row(self, rules: Sequence[Rule], row: Mapping[str, Any]) -> RowEffects:
        """Apply all enabled rules to one row."""
        return self._run(self.sorted_rules(rules), row)

    def process_dataset(
        self,
        rules: Sequence[Rule],
        rows: Sequence[Mapping[str, Any]],
    ) -> List[RowEffects]:
        """RowEffects for each row, in row order."""
        ordered = self.sorted_rules(rules)
        results = [self._run(ordered, row) for row in rows]
        skipped = sum(1 for r in results if r.skipped)
        logger.info(f"Processed {len(rows)} rows with {len(ordered)} rules ({skipped} skipped)")
        return results

    def will_skip(self, rules: Sequence[Rule], row: Mapping[str, Any]) -> bool:
        """Skip decision only; stops at the first matching skip."""
        for rule in self.sorted_rules(rules):
            if not any(isinstance(a, SkipAction) for a in rule.actions):
                continue
            if self.evaluate_condition_group(rule.condition_group, row):
                return True
        return False

    def count_matches(
        self,
        rules: Sequence[Rule],
        rows: Sequence[Mapping[str, Any]],
    ) -> Dict[str, int]:
        """Rule id -> number of rows its conditions match (ignores skips)."""
        counts: Dict[str, int] = {r.id: 0 for r in rules}
        for rule in rules:
            for row in rows:
                if self.evaluate_condition_group(rule.condition_group, row):
                    counts[rule.id] += 1
        return counts

    def test_rule(self, rule: Rule, row: Mapping[str, Any]) -> RuleTestResult:
        """Evaluate a single rule against a row, ignoring its enabled flag."""
        matched = self.evaluate_condition_group(rule.condition_group, row)
        effects = RowEffects()
        if matched:
            effects.matched_rule_ids.append(rule.id)
            for action in rule.actions:
                apply_action(action, row, effects)
                if effects.skipped:
                    break
        return RuleTestResult(matched=matched, effects=effects)

