"""Tests for resolving the rule list of a field or section."""

from __future__ import annotations

from formlogic.rules import SECTION_SCOPE, evaluation_order, resolve
from formlogic.template_model import Field, LogicCondition, LogicRule


def _rule(rule_id, action, *conditions, operator="and", **extra):
    return LogicRule(id=rule_id, action=action, conditions=tuple(conditions), operator=operator, **extra)


def test_rule_without_conditions_always_fires():
    """A rule with no conditions always applies."""

    resolved = resolve([_rule("r1", "require")], {}, owner_id="f")

    assert resolved.required is True
    assert resolved.fired_rule_ids == ("r1",)


def test_and_requires_all_conditions_or_requires_any():
    """``and`` needs every condition, ``or`` needs one."""

    conditions = (LogicCondition("a", "equals", "1"), LogicCondition("b", "equals", "2"))
    answers = {"a": "1", "b": "x"}

    assert resolve([_rule("r", "require", *conditions)], answers).required is False
    assert resolve([_rule("r", "require", *conditions, operator="or")], answers).required is True


def test_later_action_overrides_earlier_in_same_category():
    """The last fired rule of a category decides."""

    rules = [_rule("show", "show"), _rule("hide", "hide")]
    assert resolve(rules, {}).visible is False

    rules = [_rule("hide", "hide"), _rule("show", "show")]
    assert resolve(rules, {}).visible is True


def test_require_composes_with_show():
    """Requiredness and visibility are resolved independently."""

    rules = [
        _rule("show", "show", LogicCondition("a", "equals", "yes")),
        _rule("req", "require", LogicCondition("a", "equals", "yes")),
    ]
    resolved = resolve(rules, {"a": "yes"})

    assert resolved.visible is True
    assert resolved.required is True


def test_show_gated_owner_is_hidden_until_rule_fires():
    """An item with a show rule starts hidden."""

    rules = [_rule("show", "show", LogicCondition("a", "equals", "yes"))]

    assert resolve(rules, {}).visible is False
    assert resolve(rules, {"a": "yes"}).visible is True
    assert resolve([], {}).visible is True


def test_set_value_is_collected_not_applied():
    """Resolving rules only proposes values."""

    answers = {"qty": 10}
    rules = [_rule("set", "setValue", LogicCondition("qty", "equals", 10), target_field_id="total", value=100)]
    resolved = resolve(rules, answers, owner_id="qty")

    assert resolved.value_sets == {"total": 100}
    assert answers == {"qty": 10}


def test_set_value_without_target_applies_to_owner():
    """``setValue`` without a target sets its own field."""

    rules = [_rule("set", "setValue", value="fallback")]
    assert resolve(rules, {}, owner_id="notes").value_sets == {"notes": "fallback"}


def test_section_rules_apply_by_descending_priority():
    """Section rules run from highest to lowest priority."""

    rules = [
        _rule("low", "jumpToSection", target_section_id="s_low", priority=1),
        _rule("high", "jumpToSection", target_section_id="s_high", priority=5),
        _rule("tie", "jumpToSection", target_section_id="s_tie", priority=1),
    ]

    ordered = [rule.id for rule in evaluation_order(rules, SECTION_SCOPE)]
    assert ordered == ["high", "low", "tie"]
    assert resolve(rules, {}, scope=SECTION_SCOPE).jump_targets == ("s_high", "s_low", "s_tie")


def test_priority_decides_conflicting_section_visibility():
    """The higher priority rule decides section visibility."""

    rules = [
        _rule("hide", "hideSection", priority=10),
        _rule("show", "showSection", priority=1),
    ]
    # Lower priority runs later and therefore wins the visibility category.
    assert resolve(rules, {}, scope=SECTION_SCOPE).visible is True


def test_unknown_field_reference_makes_condition_false():
    """Conditions on unknown fields never match."""

    fields = {"a": Field(id="a", type="text")}
    rules = [_rule("r", "require", LogicCondition("ghost", "isEmpty"))]

    resolved = resolve(rules, {}, owner_id="a", fields=fields)

    assert resolved.required is False
    assert [ref.field_id for ref in resolved.invalid_references] == ["ghost"]


def test_actions_outside_scope_are_ignored(caplog):
    """Section actions on fields and field actions on sections are ignored."""

    resolved = resolve([_rule("r", "showSection")], {}, owner_id="f")

    assert resolved.visible is True
    assert resolved.fired_rule_ids == ()
    assert "Ignoring action" in caplog.text
