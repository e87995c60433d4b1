"""Tagged answer values shared by the condition evaluator and the session."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple


class AnswerKind(str, Enum):
    """Closed set of shapes an answer can take."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING_LIST = "string_list"
    FILE_REF = "file_ref"
    EMPTY = "empty"


@dataclass(frozen=True)
class AnswerValue:
    """An answer classified into one of the :class:`AnswerKind` variants.

    ``value`` holds the normalised payload: ``str`` for strings, ``float`` for
    numbers, ``bool`` for booleans, a tuple of strings for lists, a plain dict
    for file references and ``None`` for empty answers.
    """

    kind: AnswerKind
    value: Any = None

    @property
    def is_empty(self) -> bool:
        return self.kind is AnswerKind.EMPTY

    def as_number(self) -> Optional[float]:
        """Return the answer as a float, or ``None`` when it is not numeric."""

        if self.kind is AnswerKind.NUMBER:
            return self.value
        if self.kind is AnswerKind.STRING:
            return to_number(self.value)
        return None


EMPTY = AnswerValue(AnswerKind.EMPTY)


def to_number(value: Any) -> Optional[float]:
    """Coerce ``value`` to a finite float, returning ``None`` on failure.

    Booleans are never treated as numbers even though ``bool`` subclasses
    ``int``.
    """

    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _string_items(value: Sequence[Any]) -> Tuple[str, ...]:
    return tuple(item if isinstance(item, str) else str(item) for item in value if item is not None)


def classify(raw: Any) -> AnswerValue:
    """Return the tagged form of a raw answer value.

    ``None``, empty or whitespace-only strings, empty lists and empty mappings
    are all the same "no answer".
    """

    if isinstance(raw, AnswerValue):
        return raw
    if raw is None:
        return EMPTY
    if isinstance(raw, bool):
        return AnswerValue(AnswerKind.BOOLEAN, raw)
    if isinstance(raw, (int, float)):
        number = to_number(raw)
        if number is None:
            return EMPTY
        return AnswerValue(AnswerKind.NUMBER, number)
    if isinstance(raw, str):
        if not raw.strip():
            return EMPTY
        return AnswerValue(AnswerKind.STRING, raw)
    if isinstance(raw, Mapping):
        if not raw:
            return EMPTY
        return AnswerValue(AnswerKind.FILE_REF, dict(raw))
    if isinstance(raw, (list, tuple, set, frozenset)):
        items = _string_items(sorted(raw, key=str) if isinstance(raw, (set, frozenset)) else raw)
        if not items:
            return EMPTY
        return AnswerValue(AnswerKind.STRING_LIST, items)
    return AnswerValue(AnswerKind.STRING, str(raw))


def is_empty(raw: Any) -> bool:
    """Return ``True`` when ``raw`` counts as "no answer"."""

    return classify(raw).is_empty


__all__ = [
    "EMPTY",
    "AnswerKind",
    "AnswerValue",
    "classify",
    "is_empty",
    "to_number",
]
