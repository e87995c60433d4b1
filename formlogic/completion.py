"""Completion percentage over the fields a respondent can currently see."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, List, Tuple

from formlogic.answers import is_empty
from formlogic.template_model import Field, Section, Template
from formlogic.visibility import VisibilitySnapshot


def counted_fields(snapshot: VisibilitySnapshot, template: Template) -> List[Field]:
    """Visible, answerable fields in template order."""

    return [
        item
        for section, item in template.iter_fields()
        if item.answerable and snapshot.is_section_visible(section.id) and snapshot.is_field_visible(item.id)
    ]


def completion_counts(
    snapshot: VisibilitySnapshot, template: Template, answers: Mapping[str, Any]
) -> Tuple[int, int]:
    """Return ``(answered, total)`` over the counted fields."""

    fields = counted_fields(snapshot, template)
    answered = sum(1 for item in fields if not is_empty(answers.get(item.id)))
    return answered, len(fields)


def completion(snapshot: VisibilitySnapshot, template: Template, answers: Mapping[str, Any]) -> int:
    """Return the completion percentage in ``[0, 100]``, rounded half up."""

    answered, total = completion_counts(snapshot, template, answers)
    if total == 0:
        return 0
    return (200 * answered + total) // (2 * total)


def section_complete(snapshot: VisibilitySnapshot, section: Section, answers: Mapping[str, Any]) -> bool:
    """Return ``True`` when every visible answerable field of ``section`` has an answer."""

    fields = [item for item in snapshot.visible_fields(section) if item.answerable]
    return bool(fields) and all(not is_empty(answers.get(item.id)) for item in fields)


__all__ = ["completion", "completion_counts", "counted_fields", "section_complete"]
