"""Pick the next active section from a visibility snapshot."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from formlogic.errors import NavigationError
from formlogic.template_model import Template
from formlogic.visibility import VisibilitySnapshot

logger = logging.getLogger(__name__)

END = "end"
NEXT = "next"
PREVIOUS = "previous"


@dataclass(frozen=True)
class NavigationResult:
    """Where navigation lands.

    ``section_id`` is a section id or :data:`END`. On an illegal request
    ``error`` is set and ``section_id`` is where the respondent stays.
    ``no_content`` flags that no section is visible at all.
    """

    section_id: str
    error: Optional[NavigationError] = None
    no_content: bool = False
    jumped: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def at_end(self) -> bool:
        return self.section_id == END


def _section_ids(template: Template) -> List[str]:
    return [section.id for section in template.ordered_sections]


def _no_content() -> NavigationResult:
    return NavigationResult(END, no_content=True)


def _first_visible_after(snapshot: VisibilitySnapshot, ordered: List[str], position: int) -> Optional[str]:
    for section_id in ordered[position + 1:]:
        if snapshot.is_section_visible(section_id):
            return section_id
    return None


def _last_visible_before(snapshot: VisibilitySnapshot, ordered: List[str], position: int) -> Optional[str]:
    for section_id in reversed(ordered[:position]):
        if snapshot.is_section_visible(section_id):
            return section_id
    return None


def initial_section(snapshot: VisibilitySnapshot, template: Template) -> NavigationResult:
    """Return the section a fresh session opens on."""

    default = template.default_section()
    if default is None:
        return _no_content()
    return resolve_current(snapshot, template, default.id)


def resolve_current(
    snapshot: VisibilitySnapshot, template: Template, current_section_id: Optional[str]
) -> NavigationResult:
    """Keep ``current_section_id`` if visible, otherwise move off it.

    A hidden current section falls forward to the next visible section after
    its position, then back to the closest visible one before it.
    """

    if not snapshot.visible_section_ids(template):
        return _no_content()

    ordered = _section_ids(template)
    if current_section_id not in ordered:
        return NavigationResult(snapshot.visible_section_ids(template)[0])
    if snapshot.is_section_visible(current_section_id):
        return NavigationResult(current_section_id)

    position = ordered.index(current_section_id)
    target = _first_visible_after(snapshot, ordered, position) or _last_visible_before(
        snapshot, ordered, position
    )
    return NavigationResult(target or END)


def _advance(snapshot: VisibilitySnapshot, template: Template, current_section_id: Optional[str]) -> NavigationResult:
    ordered = _section_ids(template)
    if current_section_id not in ordered:
        return resolve_current(snapshot, template, current_section_id)

    if snapshot.is_section_visible(current_section_id) and template.navigation.honours_jumps:
        for target in snapshot.jump_targets.get(current_section_id, ()):
            if target != current_section_id and snapshot.is_section_visible(target):
                return NavigationResult(target, jumped=True)

    target = _first_visible_after(snapshot, ordered, ordered.index(current_section_id))
    return NavigationResult(target or END)


def _retreat(snapshot: VisibilitySnapshot, template: Template, current_section_id: Optional[str]) -> NavigationResult:
    ordered = _section_ids(template)
    if not template.navigation.allow_back_navigation:
        return NavigationResult(
            current_section_id or END,
            error=NavigationError(NavigationError.BACK_DISABLED),
        )
    if current_section_id not in ordered:
        return resolve_current(snapshot, template, current_section_id)

    target = _last_visible_before(snapshot, ordered, ordered.index(current_section_id))
    if target is None:
        stay = resolve_current(snapshot, template, current_section_id)
        return NavigationResult(stay.section_id, error=NavigationError(NavigationError.AT_START))
    return NavigationResult(target)


def jump_to(
    snapshot: VisibilitySnapshot,
    template: Template,
    current_section_id: Optional[str],
    target_section_id: str,
) -> NavigationResult:
    """Navigate directly to ``target_section_id`` when it is visible."""

    ordered = _section_ids(template)
    stay = current_section_id or END
    if target_section_id not in ordered:
        return NavigationResult(stay, error=NavigationError(NavigationError.UNKNOWN_SECTION, target_section_id))
    if not snapshot.is_section_visible(target_section_id):
        return NavigationResult(stay, error=NavigationError(NavigationError.HIDDEN_SECTION, target_section_id))
    if (
        not template.navigation.allow_back_navigation
        and current_section_id in ordered
        and ordered.index(target_section_id) < ordered.index(current_section_id)
    ):
        return NavigationResult(stay, error=NavigationError(NavigationError.BACK_DISABLED, target_section_id))
    return NavigationResult(target_section_id, jumped=True)


def next_section(
    snapshot: VisibilitySnapshot,
    template: Template,
    current_section_id: Optional[str],
    direction: str = NEXT,
) -> NavigationResult:
    """Return where ``direction`` leads from ``current_section_id``.

    ``direction`` is :data:`NEXT`, :data:`PREVIOUS` or a section id to jump
    to. Reaching past the last visible section yields :data:`END`.
    """

    if not snapshot.visible_section_ids(template):
        return _no_content()
    if direction == NEXT:
        return _advance(snapshot, template, current_section_id)
    if direction == PREVIOUS:
        return _retreat(snapshot, template, current_section_id)
    if isinstance(direction, str) and direction:
        return jump_to(snapshot, template, current_section_id, direction)

    logger.warning("Unknown navigation direction %r", direction)
    return NavigationResult(
        current_section_id or END,
        error=NavigationError(NavigationError.UNKNOWN_DIRECTION, str(direction)),
    )


__all__ = [
    "END",
    "NEXT",
    "PREVIOUS",
    "NavigationResult",
    "initial_section",
    "jump_to",
    "next_section",
    "resolve_current",
]
