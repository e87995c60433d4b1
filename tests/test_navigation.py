"""Tests for choosing the next active section."""

from __future__ import annotations

from conftest import build, cond, field_payload, rule_payload

from formlogic.errors import NavigationError
from formlogic.navigation import END, NEXT, PREVIOUS, initial_section, next_section, resolve_current
from formlogic.visibility import compute_snapshot


def _linear(**navigation):
    return build(
        [
            {"id": "s1", "order": 0, "fields": [field_payload("a")]},
            {"id": "s2", "order": 1, "fields": [field_payload("b")]},
            {"id": "s3", "order": 2, "fields": [field_payload("c")]},
        ],
        navigation=navigation,
    )


def test_next_and_previous_walk_visible_sections():
    """Next and previous step through sections in order."""

    template = _linear()
    snapshot = compute_snapshot(template, {})

    assert next_section(snapshot, template, "s1", NEXT).section_id == "s2"
    assert next_section(snapshot, template, "s3", PREVIOUS).section_id == "s2"


def test_next_past_last_section_is_end():
    """Advancing from the last section reaches the end."""

    template = _linear()
    result = next_section(compute_snapshot(template, {}), template, "s3", NEXT)

    assert result.section_id == END
    assert result.at_end and result.ok and not result.no_content


def test_previous_is_refused_when_back_navigation_disabled():
    """Back navigation can be switched off."""

    template = _linear(allowBackNavigation=False)
    result = next_section(compute_snapshot(template, {}), template, "s2", PREVIOUS)

    assert result.section_id == "s2"
    assert result.error == NavigationError(NavigationError.BACK_DISABLED)


def test_previous_from_first_section_reports_at_start():
    """Going back from the first section is an error value."""

    template = _linear()
    result = next_section(compute_snapshot(template, {}), template, "s1", PREVIOUS)

    assert result.section_id == "s1"
    assert result.error.reason == NavigationError.AT_START


def test_hidden_sections_are_skipped(consent_template):
    """Sequential movement skips hidden sections."""

    snapshot = compute_snapshot(consent_template, {"hasConsent": False})

    assert next_section(snapshot, consent_template, "s1", NEXT).section_id == "s3"
    assert next_section(snapshot, consent_template, "s3", PREVIOUS).section_id == "s1"


def test_hidden_current_section_falls_forward_then_back(consent_template):
    """A hidden current section moves forward, else back."""

    snapshot = compute_snapshot(consent_template, {"hasConsent": False})

    assert resolve_current(snapshot, consent_template, "s2").section_id == "s3"
    assert next_section(snapshot, consent_template, "s2", NEXT).section_id == "s3"

    template = build(
        [
            {"id": "s1", "fields": [field_payload("flag", "checkbox")]},
            {
                "id": "s2",
                "conditionalLogic": [rule_payload("hideSection", [cond("flag", "equals", True)])],
                "fields": [field_payload("b")],
            },
        ]
    )
    snapshot = compute_snapshot(template, {"flag": True})
    assert resolve_current(snapshot, template, "s2").section_id == "s1"


def _jumping(nav_type=None):
    extra = {"navigation": {"type": nav_type}} if nav_type else {}
    return build(
        [
            {
                "id": "s1",
                "fields": [
                    field_payload(
                        "skip",
                        "checkbox",
                        conditionalLogic=[
                            rule_payload("jumpToSection", [cond("skip", "equals", True)], targetSectionId="s3")
                        ],
                    )
                ],
            },
            {"id": "s2", "fields": [field_payload("b")]},
            {"id": "s3", "fields": [field_payload("c")]},
        ],
        **extra,
    )


def test_jump_rule_takes_precedence_over_sequential_advance():
    """A fired jump beats the next section in order."""

    template = _jumping("conditional")
    result = next_section(compute_snapshot(template, {"skip": True}), template, "s1", NEXT)

    assert result.section_id == "s3"
    assert result.jumped is True


def test_linear_navigation_ignores_jump_rules():
    """Explicit linear navigation steps through in order."""

    template = _jumping("linear")
    result = next_section(compute_snapshot(template, {"skip": True}), template, "s1", NEXT)

    assert result.section_id == "s2"


def test_jump_rules_apply_without_navigation_settings():
    """A template with no navigation block still follows jump rules."""

    template = _jumping()
    result = next_section(compute_snapshot(template, {"skip": True}), template, "s1", NEXT)

    assert template.navigation.type == "conditional"
    assert result.section_id == "s3"


def test_highest_priority_jump_wins():
    """The highest priority jump rule picks the target."""

    template = build(
        [
            {
                "id": "s1",
                "conditionalLogic": [
                    rule_payload("jumpToSection", targetSectionId="s2", priority=1),
                    rule_payload("jumpToSection", targetSectionId="s3", priority=9),
                ],
                "fields": [field_payload("a")],
            },
            {"id": "s2", "fields": [field_payload("b")]},
            {"id": "s3", "fields": [field_payload("c")]},
        ],
        navigation={"type": "conditional"},
    )

    assert next_section(compute_snapshot(template, {}), template, "s1", NEXT).section_id == "s3"


def test_jump_to_hidden_target_falls_back_to_sequence():
    """Jumps to hidden sections fall back to the next section."""

    template = build(
        [
            {
                "id": "s1",
                "conditionalLogic": [rule_payload("jumpToSection", targetSectionId="s3")],
                "fields": [field_payload("a")],
            },
            {"id": "s2", "fields": [field_payload("b")]},
            {"id": "s3", "conditionalLogic": [rule_payload("hideSection")], "fields": [field_payload("c")]},
        ],
        navigation={"type": "conditional"},
    )

    assert next_section(compute_snapshot(template, {}), template, "s1", NEXT).section_id == "s2"


def test_direct_jump_checks_target(consent_template):
    """Jumps by id must name a visible section."""

    snapshot = compute_snapshot(consent_template, {"hasConsent": False})

    hidden = next_section(snapshot, consent_template, "s1", "s2")
    unknown = next_section(snapshot, consent_template, "s1", "nowhere")
    direct = next_section(snapshot, consent_template, "s1", "s3")

    assert hidden.error.reason == NavigationError.HIDDEN_SECTION
    assert hidden.section_id == "s1"
    assert unknown.error.reason == NavigationError.UNKNOWN_SECTION
    assert direct.section_id == "s3" and direct.ok


def test_zero_visible_sections_signals_no_content():
    """No visible sections ends the form with no content."""

    template = build([{"id": "s1", "conditionalLogic": [rule_payload("hideSection")], "fields": [field_payload("a")]}])
    snapshot = compute_snapshot(template, {})

    result = next_section(snapshot, template, "s1", NEXT)

    assert result.section_id == END
    assert result.no_content is True
    assert initial_section(snapshot, template).no_content is True


def test_initial_section_prefers_default_flag():
    """The section flagged as default opens first."""

    template = build(
        [
            {"id": "s1", "order": 0, "fields": [field_payload("a")]},
            {"id": "s2", "order": 1, "isDefault": True, "fields": [field_payload("b")]},
        ]
    )

    assert initial_section(compute_snapshot(template, {}), template).section_id == "s2"
