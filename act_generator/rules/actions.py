"""
Rule actions and the per-row effect accumulator.

Action kinds (closed set):
  skip               drop the row; halts rule processing for that row
  set_field          field_overrides[field] = value ('{field}' tokens filled from the row)
  modify_field       append / prepend / replace (optionally regex) on a field
  add_to_group       append group name (insertion-ordered, no duplicates)
  remove_from_group  drop a group name added by an earlier rule
  add_tag            append tag (insertion-ordered, no duplicates)
  set_targeting      merge a targeting dict

apply_action() is the single dispatcher. Objects that are not one of the
action classes are ignored.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Union

from ..logging_config import setup_logging
from ..rendering import merge_context
from ..variable_engine import value_to_string
from .conditions import check_regex_safety

logger = setup_logging(__name__)

_ACTION_TOKEN = re.compile(r"\{([^{}]+)\}")


@dataclass(frozen=True)
class SkipAction:
    id: Optional[str] = None
    type: ClassVar[str] = "skip"


@dataclass(frozen=True)
class SetFieldAction:
    field: str
    value: Any
    id: Optional[str] = None
    type: ClassVar[str] = "set_field"


@dataclass(frozen=True)
class ModifyFieldAction:
    field: str
    operation: str  # append | prepend | replace
    value: str
    pattern: Optional[str] = None
    id: Optional[str] = None
    type: ClassVar[str] = "modify_field"


@dataclass(frozen=True)
class AddToGroupAction:
    group_name: str
    id: Optional[str] = None
    type: ClassVar[str] = "add_to_group"


@dataclass(frozen=True)
class RemoveFromGroupAction:
    group_name: str
    id: Optional[str] = None
    type: ClassVar[str] = "remove_from_group"


@dataclass(frozen=True)
class AddTagAction:
    tag: str
    id: Optional[str] = None
    type: ClassVar[str] = "add_tag"


@dataclass(frozen=True)
class SetTargetingAction:
    targeting: Dict[str, Any]
    id: Optional[str] = None
    type: ClassVar[str] = "set_targeting"


Action = Union[
    SkipAction,
    SetFieldAction,
    ModifyFieldAction,
    AddToGroupAction,
    RemoveFromGroupAction,
    AddTagAction,
    SetTargetingAction,
]


@dataclass
class RowEffects:
    """Everything the matched rules did to one row."""
    skipped: bool = False
    field_overrides: Dict[str, Any] = field(default_factory=dict)
    tags: List[str] = field(default_factory=list)
    groups: List[str] = field(default_factory=list)
    targeting: Dict[str, Any] = field(default_factory=dict)
    matched_rule_ids: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def substitute_action_value(template: Any, row: Mapping[str, Any]) -> Any:
    """Fill '{field}' tokens in a string action value; other types pass through."""
    if not isinstance(template, str):
        return template
    return _ACTION_TOKEN.sub(lambda m: value_to_string(row.get(m.group(1).strip())), template)


def _modify(action: ModifyFieldAction, current_row: Mapping[str, Any], effects: RowEffects) -> None:
    current = value_to_string(current_row.get(action.field))
    new_value = substitute_action_value(action.value, current_row)

    if action.operation == "append":
        effects.field_overrides[action.field] = current + new_value
    elif action.operation == "prepend":
        effects.field_overrides[action.field] = new_value + current
    elif action.operation == "replace":
        if not action.pattern:
            effects.field_overrides[action.field] = new_value
            return
        safe, reason = check_regex_safety(action.pattern)
        if not safe:
            effects.errors.append(f"modify_field {action.field}: unsafe regex ({reason})")
            logger.warning(f'modify_field pattern "{action.pattern}" rejected: {reason}')
            return
        effects.field_overrides[action.field] = re.sub(
            action.pattern, lambda _m: new_value, current
        )
    else:
        effects.errors.append(f"modify_field {action.field}: unknown operation {action.operation!r}")


def apply_action(action: Action, row: Mapping[str, Any], effects: RowEffects) -> None:
    """Apply one action to the accumulator. `row` is the original row."""
    if isinstance(action, SkipAction):
        effects.skipped = True
    elif isinstance(action, SetFieldAction):
        current_row = merge_context(row, effects.field_overrides)
        effects.field_overrides[action.field] = substitute_action_value(action.value, current_row)
    elif isinstance(action, ModifyFieldAction):
        _modify(action, merge_context(row, effects.field_overrides), effects)
    elif isinstance(action, AddToGroupAction):
        if action.group_name not in effects.groups:
            effects.groups.append(action.group_name)
    elif isinstance(action, RemoveFromGroupAction):
        if action.group_name in effects.groups:
            effects.groups.remove(action.group_name)
    elif isinstance(action, AddTagAction):
        if action.tag not in effects.tags:
            effects.tags.append(action.tag)
    elif isinstance(action, SetTargetingAction):
        effects.targeting.update(action.targeting)
    else:
        logger.debug(f"Ignoring unknown action {action!r}")
