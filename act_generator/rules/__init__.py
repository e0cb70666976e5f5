from .actions import (
    Action,
    AddTagAction,
    AddToGroupAction,
    ModifyFieldAction,
    RemoveFromGroupAction,
    RowEffects,
    SetFieldAction,
    SetTargetingAction,
    SkipAction,
    apply_action,
)
from .conditions import OPERATORS, Condition, ConditionEvaluator, ConditionGroup, check_regex_safety
from .engine import Rule, RuleEngine, RuleTestResult

__all__ = [
    "Action",
    "AddTagAction",
    "AddToGroupAction",
    "ModifyFieldAction",
    "RemoveFromGroupAction",
    "RowEffects",
    "SetFieldAction",
    "SetTargetingAction",
    "SkipAction",
    "apply_action",
    "OPERATORS",
    "Condition",
    "ConditionEvaluator",
    "ConditionGroup",
    "check_regex_safety",
    "Rule",
    "RuleEngine",
    "RuleTestResult",
]
