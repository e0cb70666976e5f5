"""
Condition tree - Condition (leaf) and ConditionGroup (AND/OR node).

Operators:
  equals, not_equals, contains, not_contains, starts_with, ends_with,
  greater_than, less_than, greater_than_or_equal, less_than_or_equal,
  regex, in, not_in, is_empty, is_not_empty

String comparisons are case-insensitive unless the evaluator is built with
case_insensitive=False. An empty ConditionGroup matches every row.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Tuple, Union

from ..filters import parse_number
from ..logging_config import setup_logging
from ..variable_engine import value_to_string

logger = setup_logging(__name__)

OPERATORS = frozenset({
    "equals",
    "not_equals",
    "contains",
    "not_contains",
    "starts_with",
    "ends_with",
    "greater_than",
    "less_than",
    "greater_than_or_equal",
    "less_than_or_equal",
    "regex",
    "in",
    "not_in",
    "is_empty",
    "is_not_empty",
})

MAX_REGEX_LENGTH = 100

# Patterns that indicate potential catastrophic backtracking
_REDOS_CHECKS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"\([^)]*[+*][^)]*\)[+*?]"), "Nested quantifiers detected"),
    (re.compile(r"\([^|)]*\|[^|)]*\)[+*]"), "Overlapping alternation detected"),
    (re.compile(r"\([^)]*\?\)[+*]"), "Repetition of optional group detected"),
    (re.compile(r"[+*]{2,}"), "Multiple consecutive quantifiers detected"),
]


@dataclass
class Condition:
    field: str
    operator: str
    value: Any = None
    id: Optional[str] = None


@dataclass
class ConditionGroup:
    logic: str = "AND"  # AND | OR
    conditions: List[Union[Condition, "ConditionGroup"]] = field(default_factory=list)
    id: Optional[str] = None


def check_regex_safety(pattern: str) -> Tuple[bool, Optional[str]]:
    """Return (safe, reason) for a user-supplied regex."""
    if len(pattern) > MAX_REGEX_LENGTH:
        return False, "Pattern exceeds maximum length"
    for check, reason in _REDOS_CHECKS:
        if check.search(pattern):
            return False, reason
    try:
        re.compile(pattern)
    except re.error:
        return False, "Invalid regex syntax"
    return True, None


def _to_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if isinstance(value, float) and math.isnan(value) else float(value)
    return parse_number(str(value))


class ConditionEvaluator:
    """Pure, recursive evaluation of condition trees against a row."""

    def __init__(self, case_insensitive: bool = True):
        self.case_insensitive = case_insensitive

    def _norm(self, value: Any) -> str:
        text = value_to_string(value)
        return text.lower() if self.case_insensitive else text

    # ─────────────────────────────────────────────────────────
    # Operators
    # ─────────────────────────────────────────────────────────
    def _equals(self, field_value: Any, expected: Any) -> bool:
        if field_value is None:
            return expected == "" or expected is None

        if isinstance(expected, bool):
            if isinstance(field_value, bool):
                return field_value == expected
            return expected == (value_to_string(field_value).lower() in ("true", "1"))

        if isinstance(expected, (int, float)):
            num = _to_number(field_value)
            return num is not None and num == expected

        return self._norm(field_value) == self._norm(expected)

    def _in(self, field_value: Any, expected: Any) -> bool:
        if not isinstance(expected, (list, tuple, set, frozenset)):
            return self._equals(field_value, expected)
        return any(self._equals(field_value, item) for item in expected)

    def _compare(self, field_value: Any, expected: Any, op: str) -> bool:
        a = _to_number(field_value)
        b = _to_number(expected)
        if a is None or b is None:
            return False
        if op == "greater_than":
            return a > b
        if op == "less_than":
            return a < b
        if op == "greater_than_or_equal":
            return a >= b
        return a <= b

    def _regex(self, field_value: Any, pattern: Any) -> bool:
        if not isinstance(pattern, str):
            return False
        safe, reason = check_regex_safety(pattern)
        if not safe:
            logger.warning(f'Regex pattern "{pattern}" rejected: {reason}')
            return False
        flags = re.IGNORECASE if self.case_insensitive else 0
        return re.search(pattern, value_to_string(field_value), flags) is not None

    @staticmethod
    def _is_empty(field_value: Any) -> bool:
        if field_value is None:
            return True
        if isinstance(field_value, str):
            return field_value.strip() == ""
        if isinstance(field_value, (list, tuple, dict, set)):
            return len(field_value) == 0
        return False

    def evaluate_operator(self, operator: str, field_value: Any, expected: Any) -> bool:
        if operator == "equals":
            return self._equals(field_value, expected)
        if operator == "not_equals":
            return not self._equals(field_value, expected)
        if operator == "contains":
            return self._norm(expected) in self._norm(field_value)
        if operator == "not_contains":
            return self._norm(expected) not in self._norm(field_value)
        if operator == "starts_with":
            return self._norm(field_value).startswith(self._norm(expected))
        if operator == "ends_with":
            return self._norm(field_value).endswith(self._norm(expected))
        if operator in ("greater_than", "less_than", "greater_than_or_equal", "less_than_or_equal"):
            return self._compare(field_value, expected, operator)
        if operator == "regex":
            return self._regex(field_value, expected)
        if operator == "in":
            return self._in(field_value, expected)
        if operator == "not_in":
            return not self._in(field_value, expected)
        if operator == "is_empty":
            return self._is_empty(field_value)
        if operator == "is_not_empty":
            return not self._is_empty(field_value)

        logger.warning(f'Unknown operator "{operator}" in rule condition - treating as non-match')
        return False

    # ─────────────────────────────────────────────────────────
    # Tree
    # ─────────────────────────────────────────────────────────
    def evaluate_condition(self, condition: Condition, row: Mapping[str, Any]) -> bool:
        return self.evaluate_operator(condition.operator, row.get(condition.field), condition.value)

    def evaluate_group(self, group: ConditionGroup, row: Mapping[str, Any]) -> bool:
        if not group.conditions:
            return True
        results = (self.evaluate_item(item, row) for item in group.conditions)
        if str(group.logic).upper() == "OR":
            return any(results)
        return all(results)

    def evaluate_item(self, item: Union[Condition, ConditionGroup], row: Mapping[str, Any]) -> bool:
        if isinstance(item, ConditionGroup):
            return self.evaluate_group(item, row)
        return self.evaluate_condition(item, row)
