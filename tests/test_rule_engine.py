import pytest

from act_generator.rules import (
    AddTagAction,
    AddToGroupAction,
    Condition,
    ConditionEvaluator,
    ConditionGroup,
    ModifyFieldAction,
    RemoveFromGroupAction,
    RowEffects,
    Rule,
    RuleEngine,
    SetFieldAction,
    SetTargetingAction,
    SkipAction,
    apply_action,
    check_regex_safety,
)


def _rule(rule_id, actions, conditions=None, priority=0, enabled=True, logic="AND"):
    return Rule(
        id=rule_id,
        name=rule_id,
        condition_group=ConditionGroup(logic=logic, conditions=conditions or []),
        actions=actions,
        priority=priority,
        enabled=enabled,
    )


@pytest.fixture
def engine():
    return RuleEngine()


# ─────────────────────────────────────────────────────────────
# Operators
# ─────────────────────────────────────────────────────────────
_MISSING = object()


@pytest.mark.parametrize(
    "operator, field_value, value, expected",
    [
        ("equals", "Nike", "nike", True),
        ("equals", "99.99", 99.99, True),
        ("equals", 10, 11, False),
        ("equals", True, True, True),
        ("equals", "true", True, True),
        ("equals", _MISSING, "", True),
        ("not_equals", "Nike", "Adidas", True),
        ("contains", "Air Max 90", "air", True),
        ("not_contains", "Air Max 90", "boost", True),
        ("starts_with", "ABC-1", "abc", True),
        ("ends_with", "ABC-1", "-1", True),
        ("greater_than", 100, 50, True),
        ("greater_than", "abc", 50, False),
        ("less_than", "$5", 10, False),
        ("less_than", "5", 10, True),
        ("greater_than_or_equal", 50, 50, True),
        ("less_than_or_equal", 50, "50", True),
        ("in", "Shoes", ["shoes", "hats"], True),
        ("in", "Bags", ["shoes", "hats"], False),
        ("not_in", "Bags", ["shoes", "hats"], True),
        ("is_empty", "  ", None, True),
        ("is_empty", _MISSING, None, True),
        ("is_empty", 0, None, False),
        ("is_not_empty", "a", None, True),
        ("regex", "ABC-123", r"^abc-\d+$", True),
        ("regex", "ABC-123", r"^\d+$", False),
    ],
)
def test_operators(operator, field_value, value, expected):
    row = {} if field_value is _MISSING else {"f": field_value}
    assert ConditionEvaluator().evaluate_condition(Condition("f", operator, value), row) is expected


def test_case_sensitive_mode():
    evaluator = ConditionEvaluator(case_insensitive=False)
    assert evaluator.evaluate_operator("equals", "Nike", "nike") is False
    assert evaluator.evaluate_operator("equals", "Nike", "Nike") is True


def test_unknown_operator_is_non_match():
    assert ConditionEvaluator().evaluate_operator("looks_like", "a", "a") is False


@pytest.mark.parametrize(
    "pattern, safe",
    [
        ("^abc$", True),
        ("(a+)+", False),
        ("(a|a)*", False),
        ("(a?)+", False),
        ("a**", False),
        ("a" * 101, False),
        ("[", False),
    ],
)
def test_regex_safety(pattern, safe):
    ok, reason = check_regex_safety(pattern)
    assert ok is safe
    assert (reason is None) is safe


def test_unsafe_regex_never_matches():
    assert ConditionEvaluator().evaluate_operator("regex", "aaaa", "(a+)+") is False


# ─────────────────────────────────────────────────────────────
# Condition tree
# ─────────────────────────────────────────────────────────────
def test_empty_group_matches_everything(engine):
    assert engine.evaluate_condition_group(ConditionGroup(), {}) is True


def test_nested_groups():
    tree = ConditionGroup(
        logic="AND",
        conditions=[
            Condition("brand", "equals", "Nike"),
            ConditionGroup(
                logic="OR",
                conditions=[
                    Condition("price", "less_than", 50),
                    Condition("category", "equals", "sale"),
                ],
            ),
        ],
    )
    evaluator = ConditionEvaluator()
    assert evaluator.evaluate_group(tree, {"brand": "Nike", "price": 80, "category": "sale"}) is True
    assert evaluator.evaluate_group(tree, {"brand": "Nike", "price": 80, "category": "new"}) is False
    assert evaluator.evaluate_group(tree, {"brand": "Puma", "price": 10}) is False


# ─────────────────────────────────────────────────────────────
# Processing
# ─────────────────────────────────────────────────────────────
def test_later_priority_overwrites_set_field(engine):
    rules = [
        _rule("second", [SetFieldAction("headline", "B")], priority=2),
        _rule("first", [SetFieldAction("headline", "A")], priority=1),
    ]
    effects = engine.process_row(rules, {"id": "1"})
    assert effects.field_overrides["headline"] == "B"
    assert effects.matched_rule_ids == ["first", "second"]


def test_equal_priorities_keep_input_order(engine):
    rules = [
        _rule("a", [SetFieldAction("x", "a")], priority=1),
        _rule("b", [SetFieldAction("x", "b")], priority=1),
    ]
    assert engine.process_row(rules, {}).field_overrides["x"] == "b"


def test_skip_halts_lower_priority_rules(engine):
    rules = [
        _rule("tag", [AddTagAction("late")], priority=2),
        _rule("skip", [SkipAction()], conditions=[Condition("stock", "equals", 0)], priority=1),
    ]
    effects = engine.process_row(rules, {"stock": 0})
    assert effects.skipped is True
    assert effects.tags == []
    assert effects.matched_rule_ids == ["skip"]


def test_skip_halts_remaining_actions_of_same_rule(engine):
    rules = [_rule("r", [AddTagAction("a"), SkipAction(), AddTagAction("b")])]
    effects = engine.process_row(rules, {})
    assert effects.skipped is True
    assert effects.tags == ["a"]


def test_disabled_rules_are_ignored(engine):
    rules = [_rule("off", [SkipAction()], enabled=False)]
    assert engine.process_row(rules, {}).skipped is False


def test_tags_and_groups_are_insertion_ordered_sets(engine):
    rules = [
        _rule("r1", [AddTagAction("x"), AddToGroupAction("G1")], priority=1),
        _rule("r2", [AddTagAction("y"), AddTagAction("x"), AddToGroupAction("G1")], priority=2),
    ]
    effects = engine.process_row(rules, {})
    assert effects.tags == ["x", "y"]
    assert effects.groups == ["G1"]


def test_later_rule_removes_group_added_earlier(engine):
    rules = [
        _rule("add", [AddToGroupAction("Sale"), AddToGroupAction("Shoes")], priority=1),
        _rule("drop", [RemoveFromGroupAction("Sale"), RemoveFromGroupAction("Never-added")], priority=2),
    ]
    effects = engine.process_row(rules, {})
    assert effects.groups == ["Shoes"]
    assert effects.matched_rule_ids == ["add", "drop"]


def test_remove_then_add_group_keeps_it(engine):
    rules = [
        _rule("drop", [RemoveFromGroupAction("Sale")], priority=1),
        _rule("add", [AddToGroupAction("Sale")], priority=2),
    ]
    assert engine.process_row(rules, {}).groups == ["Sale"]


def test_conditions_read_the_original_row(engine):
    rules = [
        _rule("rename", [SetFieldAction("status", "gone")], priority=1),
        _rule("check", [AddTagAction("active")], conditions=[Condition("status", "equals", "active")], priority=2),
    ]
    effects = engine.process_row(rules, {"status": "active"})
    assert effects.tags == ["active"]


def test_set_field_substitutes_row_values(engine):
    rules = [_rule("r", [SetFieldAction("headline", "{brand} deal"), SetFieldAction("count", 3)])]
    effects = engine.process_row(rules, {"brand": "Nike"})
    assert effects.field_overrides == {"headline": "Nike deal", "count": 3}


def test_modify_field_operations():
    row = {"title": "Red Shoes"}

    effects = RowEffects()
    apply_action(ModifyFieldAction("title", "append", " Sale"), row, effects)
    assert effects.field_overrides["title"] == "Red Shoes Sale"

    effects = RowEffects()
    apply_action(ModifyFieldAction("title", "prepend", "New "), row, effects)
    assert effects.field_overrides["title"] == "New Red Shoes"

    effects = RowEffects()
    apply_action(ModifyFieldAction("title", "replace", "Blue", pattern="Red"), row, effects)
    assert effects.field_overrides["title"] == "Blue Shoes"


def test_modify_field_reads_earlier_overrides():
    effects = RowEffects()
    apply_action(SetFieldAction("title", "X"), {"title": "orig"}, effects)
    apply_action(ModifyFieldAction("title", "append", "Y"), {"title": "orig"}, effects)
    assert effects.field_overrides["title"] == "XY"


def test_modify_field_rejects_unsafe_pattern():
    effects = RowEffects()
    apply_action(ModifyFieldAction("title", "replace", "x", pattern="(a+)+"), {"title": "aaa"}, effects)
    assert "title" not in effects.field_overrides
    assert effects.errors


def test_set_targeting_merges():
    effects = RowEffects()
    apply_action(SetTargetingAction({"geo": "US"}), {}, effects)
    apply_action(SetTargetingAction({"age": "18-34"}), {}, effects)
    assert effects.targeting == {"geo": "US", "age": "18-34"}


def test_unknown_action_is_ignored():
    effects = RowEffects()
    apply_action(object(), {}, effects)
    assert effects == RowEffects()


def test_process_dataset_count_matches_and_will_skip(engine):
    rules = [
        _rule("skip-puma", [SkipAction()], conditions=[Condition("brand", "equals", "Puma")]),
        _rule("tag-all", [AddTagAction("all")], priority=5),
    ]
    rows = [{"brand": "Nike"}, {"brand": "Puma"}, {"brand": "Adidas"}]

    results = engine.process_dataset(rules, rows)
    assert [r.skipped for r in results] == [False, True, False]
    assert results[0].tags == ["all"]

    assert engine.count_matches(rules, rows) == {"skip-puma": 1, "tag-all": 3}
    assert [engine.will_skip(rules, r) for r in rows] == [False, True, False]


def test_test_rule_ignores_enabled_flag(engine):
    rule = _rule("r", [AddTagAction("t")], conditions=[Condition("a", "equals", 1)], enabled=False)
    result = engine.test_rule(rule, {"a": 1})
    assert result.matched is True
    assert result.effects.tags == ["t"]
    assert engine.test_rule(rule, {"a": 2}).matched is False


def test_evaluate_rules_returns_matching_in_priority_order(engine):
    rules = [
        _rule("b", [], priority=2),
        _rule("a", [], priority=1),
        _rule("never", [], conditions=[Condition("x", "equals", "y")]),
    ]
    assert [r.id for r in engine.evaluate_rules(rules, {})] == ["a", "b"]
