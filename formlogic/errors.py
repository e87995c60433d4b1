"""Error types for the form evaluation engine.

Only template loading and persistence raise. Everything a respondent can
trigger is reported as a value so a malformed rule never crashes a form in
progress.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple


class FormLogicError(Exception):
    """Base class for exceptions raised by this package."""


class TemplateError(FormLogicError):
    """Raised when a stored template cannot be read or is structurally invalid."""

    def __init__(self, message: str, *, problems: Optional[Sequence[str]] = None) -> None:
        super().__init__(message)
        self.problems: List[str] = list(problems or [])


class PersistenceError(FormLogicError):
    """Raised by persistence collaborators when a draft or submission is not stored."""


@dataclass(frozen=True)
class InvalidConditionReference:
    """A rule condition pointing at a field the template does not define."""

    owner_id: str
    rule_id: str
    field_id: str


@dataclass(frozen=True)
class NavigationError:
    """An illegal navigation request; the current section is left unchanged."""

    reason: str
    target: Optional[str] = None

    BACK_DISABLED = "back_navigation_disabled"
    HIDDEN_SECTION = "hidden_section"
    UNKNOWN_SECTION = "unknown_section"
    AT_START = "at_start"
    UNKNOWN_DIRECTION = "unknown_direction"
    SUBMITTED = "submitted"


@dataclass(frozen=True)
class MissingField:
    field_id: str
    label: str
    section_id: str


@dataclass(frozen=True)
class ValidationError:
    """Every visible, required field that is still empty at submit time."""

    missing: Tuple[MissingField, ...]

    @property
    def field_ids(self) -> List[str]:
        return [item.field_id for item in self.missing]

    def __str__(self) -> str:
        labels = ", ".join(item.label or item.field_id for item in self.missing)
        return f"Please answer all required questions before submitting: {labels}"


__all__ = [
    "FormLogicError",
    "InvalidConditionReference",
    "MissingField",
    "NavigationError",
    "PersistenceError",
    "TemplateError",
    "ValidationError",
]
