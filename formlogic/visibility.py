"""Compute the visibility/requiredness snapshot of a whole template."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from formlogic.errors import InvalidConditionReference
from formlogic.rules import FIELD_SCOPE, SECTION_SCOPE, resolve
from formlogic.template_model import Field, Section, Template

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VisibilitySnapshot:
    """Show/hide/require state of every section and field at one moment.

    ``pending_value_sets`` holds the values proposed by fired ``setValue``
    rules; they are applied by the caller, never here. ``jump_targets`` maps
    a section id to the targets of fired ``jumpToSection`` rules owned by the
    section or by its visible fields, highest priority first.
    """

    section_visibility: Dict[str, bool] = field(default_factory=dict)
    field_visibility: Dict[str, bool] = field(default_factory=dict)
    field_required: Dict[str, bool] = field(default_factory=dict)
    pending_value_sets: Dict[str, Any] = field(default_factory=dict)
    jump_targets: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    invalid_references: Tuple[InvalidConditionReference, ...] = ()

    def is_section_visible(self, section_id: str) -> bool:
        return self.section_visibility.get(section_id, False)

    def is_field_visible(self, field_id: str) -> bool:
        return self.field_visibility.get(field_id, False)

    def is_field_required(self, field_id: str) -> bool:
        return self.field_required.get(field_id, False)

    def visible_section_ids(self, template: Template) -> List[str]:
        """Return ids of visible sections in template order."""

        return [section.id for section in template.ordered_sections if self.is_section_visible(section.id)]

    def visible_fields(self, section: Section) -> List[Field]:
        return [item for item in section.fields if self.is_field_visible(item.id)]


def compute_snapshot(template: Template, answers: Mapping[str, Any]) -> VisibilitySnapshot:
    """Resolve every field and section rule of ``template`` against ``answers``.

    A field inside a hidden section is hidden whatever its own rules say.
    The function is pure: identical inputs give equal snapshots.
    """

    fields_by_id = template.fields_by_id
    invalid: List[InvalidConditionReference] = []

    own_visibility: Dict[str, bool] = {}
    field_required: Dict[str, bool] = {}
    pending: Dict[str, Any] = {}
    field_jumps: Dict[str, Tuple[str, ...]] = {}

    for _, item in template.iter_fields():
        resolved = resolve(
            item.conditional_logic,
            answers,
            owner_id=item.id,
            fields=fields_by_id,
            scope=FIELD_SCOPE,
        )
        invalid.extend(resolved.invalid_references)
        own_visibility[item.id] = resolved.visible
        # Requiredness only ever goes up: a rule cannot un-require a field.
        field_required[item.id] = item.answerable and (item.required or resolved.required)
        for target, value in resolved.value_sets.items():
            target_field = fields_by_id.get(target)
            if target_field is None or not target_field.answerable:
                logger.warning("Ignoring setValue from %s on unusable field %s", item.id, target)
                continue
            pending[target] = value
        if resolved.jump_targets:
            field_jumps[item.id] = resolved.jump_targets

    section_visibility: Dict[str, bool] = {}
    field_visibility: Dict[str, bool] = {}
    jump_targets: Dict[str, Tuple[str, ...]] = {}

    for section in template.ordered_sections:
        resolved = resolve(
            section.conditional_logic,
            answers,
            owner_id=section.id,
            fields=fields_by_id,
            scope=SECTION_SCOPE,
        )
        invalid.extend(resolved.invalid_references)
        section_visibility[section.id] = resolved.visible

        targets = list(resolved.jump_targets)
        for item in section.fields:
            visible = resolved.visible and own_visibility[item.id]
            field_visibility[item.id] = visible
            if visible:
                targets.extend(field_jumps.get(item.id, ()))
        if targets:
            jump_targets[section.id] = tuple(targets)

    return VisibilitySnapshot(
        section_visibility=section_visibility,
        field_visibility=field_visibility,
        field_required=field_required,
        pending_value_sets=pending,
        jump_targets=jump_targets,
        invalid_references=tuple(invalid),
    )


__all__ = ["VisibilitySnapshot", "compute_snapshot"]
