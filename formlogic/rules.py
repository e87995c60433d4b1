"""Resolve the conditional-logic rules of one field or section.

Rules fire when their combined condition holds (``and`` = all, ``or`` = any,
no conditions = always). Fired rules are applied in evaluation order and a
later action overrides an earlier one of the same category, while actions of
different categories compose independently:

* visibility: ``show``/``hide`` (fields), ``showSection``/``hideSection``
  (sections)
* requiredness: ``require`` (can only raise, never lower, requiredness)
* value: ``setValue`` (collected, never applied here)
* navigation: ``jumpToSection`` (all fired targets kept in order)

Section rules are evaluated by descending ``priority``; ties keep declaration
order. Field rules keep declaration order.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from formlogic.conditions import evaluate
from formlogic.errors import InvalidConditionReference
from formlogic.template_model import FIELD_ACTIONS, SECTION_ACTIONS, Field, LogicRule

logger = logging.getLogger(__name__)

FIELD_SCOPE = "field"
SECTION_SCOPE = "section"

_SHOW_ACTIONS = {"show", "showSection"}
_HIDE_ACTIONS = {"hide", "hideSection"}


@dataclass(frozen=True)
class ResolvedActions:
    """Combined outcome of every fired rule for one field or section."""

    visible: bool = True
    required: bool = False
    value_sets: Dict[str, Any] = field(default_factory=dict)
    jump_targets: Tuple[str, ...] = ()
    fired_rule_ids: Tuple[str, ...] = ()
    invalid_references: Tuple[InvalidConditionReference, ...] = ()


def evaluation_order(rules: Sequence[LogicRule], scope: str = FIELD_SCOPE) -> List[LogicRule]:
    """Return ``rules`` in the order they are applied for ``scope``."""

    if scope == SECTION_SCOPE:
        indexed = sorted(enumerate(rules), key=lambda item: (-item[1].priority, item[0]))
        return [rule for _, rule in indexed]
    return list(rules)


def rule_fires(
    rule: LogicRule,
    answers: Mapping[str, Any],
    *,
    fields: Optional[Mapping[str, Field]] = None,
    owner_id: str = "",
    invalid: Optional[List[InvalidConditionReference]] = None,
) -> bool:
    """Return whether the combined conditions of ``rule`` hold.

    When ``fields`` is given, a condition on a field it does not contain is
    false and is recorded in ``invalid``.
    """

    results: List[bool] = []
    for condition in rule.conditions:
        if fields is not None and condition.field_id not in fields:
            logger.debug(
                "Rule %s on %s references unknown field %s", rule.id, owner_id, condition.field_id
            )
            if invalid is not None:
                invalid.append(InvalidConditionReference(owner_id, rule.id, condition.field_id))
            results.append(False)
            continue
        numeric = fields is not None and fields[condition.field_id].numeric
        results.append(evaluate(condition, answers, numeric=numeric))

    if not results:
        return True
    if rule.operator == "or":
        return any(results)
    if rule.operator != "and":
        logger.warning("Unsupported rule operator %r on %s, treating as 'and'", rule.operator, rule.id)
    return all(results)


def resolve(
    rules: Sequence[LogicRule],
    answers: Mapping[str, Any],
    *,
    owner_id: str = "",
    fields: Optional[Mapping[str, Field]] = None,
    scope: str = FIELD_SCOPE,
) -> ResolvedActions:
    """Resolve ``rules`` attached to ``owner_id`` against ``answers``."""

    allowed = SECTION_ACTIONS if scope == SECTION_SCOPE else FIELD_ACTIONS
    ordered = evaluation_order(rules, scope)

    # A field or section gated by a show rule stays hidden until one fires.
    visible = not any(rule.action in _SHOW_ACTIONS for rule in ordered if rule.action in allowed)
    required = False
    value_sets: Dict[str, Any] = {}
    jump_targets: List[str] = []
    fired: List[str] = []
    invalid: List[InvalidConditionReference] = []

    for rule in ordered:
        if rule.action not in allowed:
            logger.warning("Ignoring action %r of rule %s on %s", rule.action, rule.id, owner_id)
            continue
        if not rule_fires(rule, answers, fields=fields, owner_id=owner_id, invalid=invalid):
            continue

        fired.append(rule.id)
        if rule.action in _SHOW_ACTIONS:
            visible = True
        elif rule.action in _HIDE_ACTIONS:
            visible = False
        elif rule.action == "require":
            required = True
        elif rule.action == "setValue":
            value_sets[rule.target_field_id or owner_id] = rule.value
        elif rule.action == "jumpToSection" and rule.target_section_id:
            jump_targets.append(rule.target_section_id)

    return ResolvedActions(
        visible=visible,
        required=required,
        value_sets=value_sets,
        jump_targets=tuple(jump_targets),
        fired_rule_ids=tuple(fired),
        invalid_references=tuple(invalid),
    )


__all__ = [
    "FIELD_SCOPE",
    "SECTION_SCOPE",
    "ResolvedActions",
    "evaluation_order",
    "resolve",
    "rule_fires",
]
