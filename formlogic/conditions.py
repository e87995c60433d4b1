"""Evaluate a single logic condition against the current answers."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from formlogic.answers import AnswerKind, AnswerValue, classify, is_empty, to_number
from formlogic.template_model import LogicCondition

logger = logging.getLogger(__name__)


def _stringify(value: Any) -> str:
    """Render a rule value the way a text answer would hold it."""

    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if value is None:
        return ""
    return str(value)


def _as_bool(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text == "true":
            return True
        if text == "false":
            return False
    return None


def _equals(answer: AnswerValue, expected: Any, numeric: bool) -> bool:
    if answer.is_empty:
        return is_empty(expected)

    if answer.kind is AnswerKind.NUMBER or (numeric and answer.kind is AnswerKind.STRING):
        left = answer.as_number()
        right = to_number(expected)
        return left is not None and right is not None and left == right
    if answer.kind is AnswerKind.BOOLEAN:
        return _as_bool(expected) is answer.value
    if answer.kind is AnswerKind.STRING_LIST:
        if not isinstance(expected, (list, tuple)):
            return False
        return answer.value == tuple(_stringify(item) for item in expected)
    if answer.kind is AnswerKind.FILE_REF:
        return isinstance(expected, Mapping) and dict(expected) == answer.value
    if isinstance(expected, (list, tuple, Mapping)):
        return False
    return answer.value == _stringify(expected)


def _contains(answer: AnswerValue, expected: Any) -> bool:
    if isinstance(expected, (list, tuple)):
        wanted = [_stringify(item) for item in expected]
        return bool(wanted) and all(item in answer.value for item in wanted)
    return _stringify(expected) in answer.value


def _compare(answer: AnswerValue, expected: Any) -> Any:
    left = answer.as_number()
    right = to_number(expected)
    if left is None or right is None:
        return None
    return left - right


def evaluate(condition: LogicCondition, answers: Mapping[str, Any], *, numeric: bool = False) -> bool:
    """Return whether ``condition`` holds for ``answers``.

    ``numeric`` switches equality to a numeric comparison, for conditions on
    number-like fields. Mismatched types never raise; they simply make the
    condition false.
    """

    operator = condition.operator
    answer = classify(answers.get(condition.field_id))
    expected = condition.value

    if operator == "isEmpty":
        return answer.is_empty
    if operator == "notEmpty":
        return not answer.is_empty
    if operator == "equals":
        return _equals(answer, expected, numeric)
    if operator == "notEquals":
        return not _equals(answer, expected, numeric)
    if operator == "contains":
        if answer.kind is not AnswerKind.STRING_LIST:
            return False
        return _contains(answer, expected)
    if operator == "notContains":
        if answer.kind is not AnswerKind.STRING_LIST:
            return False
        return not _contains(answer, expected)
    if operator == "greaterThan":
        difference = _compare(answer, expected)
        return difference is not None and difference > 0
    if operator == "lessThan":
        difference = _compare(answer, expected)
        return difference is not None and difference < 0

    logger.warning("Unsupported operator: %s", operator)
    return False


__all__ = ["evaluate"]
