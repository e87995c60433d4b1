"""Form template types and helpers for turning stored payloads into them.

Templates are stored as JSON using the camelCase keys of the form builder
(``conditionalLogic``, ``targetSectionId``, ``isDefault`` ...). The engine
works on the frozen dataclasses defined here and never mutates them, so one
parsed :class:`Template` can be shared by any number of sessions.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Dict, Iterator, List, Optional, Tuple

from formlogic.schema_defaults import (
    DEFAULT_ALLOW_BACK_NAVIGATION,
    DEFAULT_AUTO_ADVANCE,
    DEFAULT_NAVIGATION_TYPE,
    DEFAULT_SECTION_ID,
    DEFAULT_SHOW_PROGRESS_BAR,
)

logger = logging.getLogger(__name__)

FIELD_TYPES = frozenset(
    {
        "text", "textarea", "email", "phone", "number", "select", "radio",
        "checkbox", "checkboxGroup", "date", "time", "file", "rating",
        "currency", "url", "password", "divider", "heading", "paragraph",
        "payment", "signature", "repeater", "address", "image", "multiselect",
        "datetime", "location", "media", "qr-scan", "drawing",
        "repeatable-group",
    }
)
LAYOUT_FIELD_TYPES = frozenset({"divider", "heading", "paragraph"})
NUMERIC_FIELD_TYPES = frozenset({"number", "currency", "rating"})

FIELD_ACTIONS = frozenset({"show", "hide", "require", "setValue", "jumpToSection"})
SECTION_ACTIONS = frozenset({"showSection", "hideSection", "jumpToSection"})

OPERATORS = (
    "equals",
    "notEquals",
    "contains",
    "notContains",
    "greaterThan",
    "lessThan",
    "isEmpty",
    "notEmpty",
)
OPERATOR_ALIASES: Dict[str, str] = {
    "not_equals": "notEquals",
    "not_contains": "notContains",
    "greater_than": "greaterThan",
    "less_than": "lessThan",
    "is_empty": "isEmpty",
    "empty": "isEmpty",
    "not_empty": "notEmpty",
    "is_not_empty": "notEmpty",
}

NAVIGATION_TYPES = ("linear", "conditional", "freeform")
_NAVIGATION_ALIASES = {"free": "freeform"}


@dataclass(frozen=True)
class LogicCondition:
    """``field_id <operator> value`` test against the answer set."""

    field_id: str
    operator: str
    value: Any = None


@dataclass(frozen=True)
class LogicRule:
    """Conditional rule attached to a field or a section."""

    id: str
    action: str
    conditions: Tuple[LogicCondition, ...] = ()
    operator: str = "and"
    target_section_id: Optional[str] = None
    target_field_id: Optional[str] = None
    value: Any = None
    priority: int = 0

    def referenced_fields(self) -> List[str]:
        return [condition.field_id for condition in self.conditions]


@dataclass(frozen=True)
class FieldOption:
    value: str
    label: str


@dataclass(frozen=True)
class Field:
    """Atomic input unit of a template."""

    id: str
    type: str
    label: str = ""
    required: bool = False
    options: Tuple[FieldOption, ...] = ()
    conditional_logic: Tuple[LogicRule, ...] = ()

    @property
    def answerable(self) -> bool:
        """Layout fields (dividers, headings, paragraphs) take no answer."""

        return self.type not in LAYOUT_FIELD_TYPES

    @property
    def numeric(self) -> bool:
        return self.type in NUMERIC_FIELD_TYPES


@dataclass(frozen=True)
class Section:
    """Ordered container of fields."""

    id: str
    title: str = ""
    order: int = 0
    is_default: bool = False
    fields: Tuple[Field, ...] = ()
    conditional_logic: Tuple[LogicRule, ...] = ()


@dataclass(frozen=True)
class NavigationSettings:
    type: str = DEFAULT_NAVIGATION_TYPE
    allow_back_navigation: bool = DEFAULT_ALLOW_BACK_NAVIGATION
    show_progress_bar: bool = DEFAULT_SHOW_PROGRESS_BAR
    auto_advance: bool = DEFAULT_AUTO_ADVANCE

    @property
    def honours_jumps(self) -> bool:
        return self.type != "linear"


@dataclass(frozen=True)
class Template:
    """Immutable snapshot of a form definition."""

    id: str
    name: str = ""
    sections: Tuple[Section, ...] = ()
    navigation: NavigationSettings = field(default_factory=NavigationSettings)
    version: int = 1

    @cached_property
    def ordered_sections(self) -> Tuple[Section, ...]:
        """Sections sorted by ``order``; ties keep declaration order."""

        indexed = sorted(enumerate(self.sections), key=lambda item: (item[1].order, item[0]))
        return tuple(section for _, section in indexed)

    @cached_property
    def fields_by_id(self) -> Dict[str, Field]:
        return {item.id: item for _, item in self.iter_fields()}

    @cached_property
    def section_of_field(self) -> Dict[str, str]:
        return {item.id: section.id for section, item in self.iter_fields()}

    @cached_property
    def sections_by_id(self) -> Dict[str, Section]:
        return {section.id: section for section in self.sections}

    def iter_fields(self) -> Iterator[Tuple[Section, Field]]:
        """Yield ``(section, field)`` pairs in evaluation order."""

        for section in self.ordered_sections:
            for item in section.fields:
                yield section, item

    def default_section(self) -> Optional[Section]:
        """Return the section flagged as default, else the first by order."""

        for section in self.ordered_sections:
            if section.is_default:
                return section
        return self.ordered_sections[0] if self.ordered_sections else None


def _ensure_mapping(value: Any) -> Dict[str, Any]:
    """Return ``value`` if it is a mapping, otherwise an empty dict."""

    return dict(value) if isinstance(value, Mapping) else {}


def _ensure_list(value: Any, *, context: str = "") -> List[Any]:
    """Return ``value`` as a list, decoding JSON-encoded strings."""

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        try:
            value = json.loads(text)
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed JSON list in %s: %r", context or "template", value)
            return []
    return list(value) if isinstance(value, (list, tuple)) else []


def _clean_text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if value is None:
        return ""
    return str(value).strip()


def _as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return default


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def normalise_operator(operator: Any) -> str:
    """Return the canonical camelCase name of a condition operator."""

    text = _clean_text(operator) or "equals"
    return OPERATOR_ALIASES.get(text, OPERATOR_ALIASES.get(text.lower(), text))


def parse_condition(payload: Any) -> Optional[LogicCondition]:
    data = _ensure_mapping(payload)
    if not data:
        return None
    field_id = _clean_text(data.get("fieldId", data.get("field")))
    return LogicCondition(
        field_id=field_id,
        operator=normalise_operator(data.get("operator")),
        value=data.get("value"),
    )


def parse_rule(payload: Any, *, owner_id: str, index: int) -> Optional[LogicRule]:
    data = _ensure_mapping(payload)
    if not data:
        return None

    conditions = tuple(
        condition
        for condition in (
            parse_condition(item)
            for item in _ensure_list(data.get("conditions"), context=f"{owner_id} conditions")
        )
        if condition is not None
    )
    bool_operator = _clean_text(data.get("operator")).lower() or "and"
    target_section = _clean_text(data.get("targetSectionId")) or None
    target_field = _clean_text(data.get("targetFieldId")) or None

    return LogicRule(
        id=_clean_text(data.get("id")) or f"{owner_id}_rule_{index + 1}",
        action=_clean_text(data.get("action")),
        conditions=conditions,
        operator=bool_operator,
        target_section_id=target_section,
        target_field_id=target_field,
        value=data.get("value"),
        priority=_as_int(data.get("priority"), 0),
    )


def _parse_rules(value: Any, owner_id: str) -> Tuple[LogicRule, ...]:
    rules = []
    for index, item in enumerate(_ensure_list(value, context=f"{owner_id} conditionalLogic")):
        rule = parse_rule(item, owner_id=owner_id, index=index)
        if rule is not None:
            rules.append(rule)
    return tuple(rules)


def _parse_options(payload: Dict[str, Any]) -> Tuple[FieldOption, ...]:
    raw_options = _ensure_list(payload.get("options"), context="options")
    if not raw_options:
        properties = _ensure_mapping(payload.get("properties"))
        raw_options = _ensure_list(properties.get("options"), context="properties.options")

    options: List[FieldOption] = []
    for item in raw_options:
        if isinstance(item, Mapping):
            value = _clean_text(item.get("value", item.get("id")))
            label = _clean_text(item.get("label")) or value
        else:
            value = label = _clean_text(item)
        if value:
            options.append(FieldOption(value=value, label=label))
    return tuple(options)


def parse_field(payload: Any) -> Field:
    data = _ensure_mapping(payload)
    field_id = _clean_text(data.get("id"))
    field_type = _clean_text(data.get("type")) or "text"
    return Field(
        id=field_id,
        type=field_type,
        label=_clean_text(data.get("label")) or field_id,
        required=_as_bool(data.get("required"), False) and field_type not in LAYOUT_FIELD_TYPES,
        options=_parse_options(data),
        conditional_logic=_parse_rules(data.get("conditionalLogic"), field_id or "field"),
    )


_LEGACY_SECTION_CONDITIONS = {
    "equals": "equals",
    "not_equals": "notEquals",
    "contains": "contains",
    "empty": "isEmpty",
    "not_empty": "notEmpty",
}


def _legacy_section_rule(section_id: str, data: Dict[str, Any]) -> Optional[LogicRule]:
    """Translate the older ``dependsOn``/``condition``/``value`` triple."""

    depends_on = _clean_text(data.get("dependsOn"))
    if not depends_on:
        return None
    condition = _clean_text(data.get("condition")) or "equals"
    operator = _LEGACY_SECTION_CONDITIONS.get(condition, normalise_operator(condition))
    return LogicRule(
        id=f"{section_id}_legacy",
        action="showSection",
        conditions=(LogicCondition(depends_on, operator, data.get("value")),),
    )


def parse_section(payload: Any, *, index: int = 0) -> Section:
    data = _ensure_mapping(payload)
    section_id = _clean_text(data.get("id"))
    rules = _parse_rules(data.get("conditionalLogic"), section_id or "section")
    if not rules:
        legacy = _legacy_section_rule(section_id, data)
        if legacy is not None:
            rules = (legacy,)
    return Section(
        id=section_id,
        title=_clean_text(data.get("title")) or section_id,
        order=_as_int(data.get("order"), index),
        is_default=_as_bool(data.get("isDefault"), False),
        fields=tuple(parse_field(item) for item in _ensure_list(data.get("fields"), context="fields")),
        conditional_logic=rules,
    )


def parse_navigation(payload: Dict[str, Any]) -> NavigationSettings:
    data = _ensure_mapping(payload.get("navigation")) or _ensure_mapping(payload.get("sectionNavigation"))
    settings = _ensure_mapping(payload.get("settings"))

    nav_type = _clean_text(data.get("type")).lower() or DEFAULT_NAVIGATION_TYPE
    nav_type = _NAVIGATION_ALIASES.get(nav_type, nav_type)
    if nav_type not in NAVIGATION_TYPES:
        logger.warning("Unknown navigation type %r, using %r", nav_type, DEFAULT_NAVIGATION_TYPE)
        nav_type = DEFAULT_NAVIGATION_TYPE

    return NavigationSettings(
        type=nav_type,
        allow_back_navigation=_as_bool(data.get("allowBackNavigation"), DEFAULT_ALLOW_BACK_NAVIGATION),
        show_progress_bar=_as_bool(
            data.get("showProgressBar", settings.get("showProgressBar")),
            DEFAULT_SHOW_PROGRESS_BAR,
        ),
        auto_advance=_as_bool(data.get("autoAdvance"), DEFAULT_AUTO_ADVANCE),
    )


def parse_template(payload: Mapping[str, Any], *, template_id: Optional[str] = None) -> Template:
    """Build a :class:`Template` from a stored JSON payload.

    Templates that only carry a flat ``fields`` list are wrapped in a single
    default section.
    """

    data = _ensure_mapping(payload)
    identifier = template_id or _clean_text(data.get("id", data.get("_id"))) or _clean_text(data.get("key"))
    name = _clean_text(data.get("name", data.get("label"))) or identifier

    raw_sections = _ensure_list(data.get("sections"), context="sections")
    if raw_sections:
        sections = tuple(parse_section(item, index=index) for index, item in enumerate(raw_sections))
    else:
        flat_fields = tuple(parse_field(item) for item in _ensure_list(data.get("fields"), context="fields"))
        sections = (
            (Section(id=DEFAULT_SECTION_ID, title=name, is_default=True, fields=flat_fields),)
            if flat_fields
            else ()
        )

    return Template(
        id=identifier,
        name=name,
        sections=sections,
        navigation=parse_navigation(data),
        version=_as_int(data.get("version"), 1),
    )


def validate_template(template: Template) -> List[str]:
    """Return structural problems that make ``template`` unusable."""

    errors: List[str] = []

    seen_sections = set()
    for section in template.sections:
        if not section.id:
            errors.append("All sections must define an id.")
            continue
        if section.id in seen_sections:
            errors.append(f"Duplicate section id detected: {section.id}")
        seen_sections.add(section.id)

    seen_fields = set()
    for section in template.sections:
        for item in section.fields:
            if not item.id:
                errors.append(f"Section '{section.id}' has a field without an id.")
                continue
            if item.id in seen_fields:
                errors.append(f"Duplicate field id detected: {item.id}")
            seen_fields.add(item.id)
            if item.type not in FIELD_TYPES:
                errors.append(f"Field '{item.id}' has unsupported type '{item.type}'.")

    for owner_id, rules, allowed in _iter_rule_owners(template):
        for rule in rules:
            if rule.action not in allowed:
                errors.append(f"Rule '{rule.id}' on '{owner_id}' uses invalid action '{rule.action}'.")
            if rule.operator not in {"and", "or"}:
                errors.append(f"Rule '{rule.id}' on '{owner_id}' uses invalid operator '{rule.operator}'.")
            if rule.action == "jumpToSection" and rule.target_section_id not in seen_sections:
                errors.append(
                    f"Rule '{rule.id}' on '{owner_id}' jumps to unknown section '{rule.target_section_id}'."
                )
            if rule.action == "setValue":
                target = rule.target_field_id or owner_id
                if target not in seen_fields:
                    errors.append(f"Rule '{rule.id}' on '{owner_id}' sets unknown field '{target}'.")
                if rule.value is None:
                    errors.append(f"Rule '{rule.id}' on '{owner_id}' has no value to set.")
            for condition in rule.conditions:
                if condition.operator not in OPERATORS:
                    errors.append(
                        f"Rule '{rule.id}' on '{owner_id}' uses unsupported operator '{condition.operator}'."
                    )

    return errors


def dependency_warnings(template: Template) -> List[str]:
    """Return authoring warnings about rule references.

    A condition should only reference the field that owns it or a field
    evaluated before the field or section it gates. Unknown references never break evaluation (the
    condition is simply false) but are reported here.
    """

    warnings: List[str] = []
    positions = {item.id: index for index, (_, item) in enumerate(template.iter_fields())}
    section_positions = {section.id: index for index, section in enumerate(template.ordered_sections)}
    section_of = template.section_of_field

    for section in template.ordered_sections:
        for rule in section.conditional_logic:
            for field_id in rule.referenced_fields():
                if field_id not in positions:
                    warnings.append(f"Section '{section.id}' rule '{rule.id}' references unknown field '{field_id}'.")
                elif section_positions[section_of[field_id]] >= section_positions[section.id]:
                    warnings.append(
                        f"Section '{section.id}' rule '{rule.id}' depends on '{field_id}' "
                        "which is not answered before the section."
                    )
        for item in section.fields:
            for rule in item.conditional_logic:
                for field_id in rule.referenced_fields():
                    if field_id not in positions:
                        warnings.append(f"Field '{item.id}' rule '{rule.id}' references unknown field '{field_id}'.")
                    elif positions[field_id] > positions[item.id]:
                        warnings.append(
                            f"Field '{item.id}' rule '{rule.id}' depends on '{field_id}' "
                            "which is not answered before it."
                        )

    return warnings


def _iter_rule_owners(template: Template) -> Iterator[Tuple[str, Tuple[LogicRule, ...], frozenset]]:
    for section in template.sections:
        yield section.id, section.conditional_logic, SECTION_ACTIONS
        for item in section.fields:
            yield item.id, item.conditional_logic, FIELD_ACTIONS


__all__ = [
    "FIELD_ACTIONS",
    "FIELD_TYPES",
    "LAYOUT_FIELD_TYPES",
    "NUMERIC_FIELD_TYPES",
    "OPERATORS",
    "SECTION_ACTIONS",
    "Field",
    "FieldOption",
    "LogicCondition",
    "LogicRule",
    "NavigationSettings",
    "Section",
    "Template",
    "dependency_warnings",
    "normalise_operator",
    "parse_template",
    "validate_template",
]
