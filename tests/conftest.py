"""Shared fixtures for the form engine tests."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from formlogic.template_model import Template, parse_template  # noqa: E402


def field_payload(field_id: str, field_type: str = "text", **extra: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"id": field_id, "type": field_type, "label": field_id.replace("_", " ").title()}
    payload.update(extra)
    return payload


def rule_payload(
    action: str,
    conditions: Optional[List[Dict[str, Any]]] = None,
    **extra: Any,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"action": action, "conditions": conditions or []}
    payload.update(extra)
    return payload


def cond(field_id: str, operator: str, value: Any = None) -> Dict[str, Any]:
    return {"fieldId": field_id, "operator": operator, "value": value}


def build(sections: List[Dict[str, Any]], **extra: Any) -> Template:
    payload: Dict[str, Any] = {"id": "tpl", "name": "Test form", "sections": sections}
    payload.update(extra)
    return parse_template(payload)


class DummyPersistence:
    """Records every payload handed to it."""

    def __init__(self, *, fail: Optional[Exception] = None) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.fail = fail

    def persist_response(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self.fail is not None:
            raise self.fail
        self.calls.append(payload)
        return {"id": payload["id"], "status": payload["status"]}


@pytest.fixture
def country_template() -> Template:
    """One section: ``country`` select and ``state`` shown only for the US."""

    return build(
        [
            {
                "id": "s1",
                "title": "Location",
                "fields": [
                    field_payload(
                        "country",
                        "select",
                        required=True,
                        options=[{"value": "US", "label": "United States"}, {"value": "CA", "label": "Canada"}],
                    ),
                    field_payload(
                        "state",
                        conditionalLogic=[
                            rule_payload("show", [cond("country", "equals", "US")]),
                            rule_payload("require", [cond("country", "equals", "US")]),
                        ],
                    ),
                ],
            }
        ]
    )


@pytest.fixture
def consent_template() -> Template:
    """Three sections where ``s2`` hides itself when consent is refused."""

    return build(
        [
            {"id": "s1", "title": "Start", "order": 0, "fields": [field_payload("name")]},
            {
                "id": "s2",
                "title": "Consent",
                "order": 1,
                "fields": [field_payload("hasConsent", "checkbox")],
                "conditionalLogic": [rule_payload("hideSection", [cond("hasConsent", "equals", False)])],
            },
            {"id": "s3", "title": "Finish", "order": 2, "fields": [field_payload("comments", "textarea")]},
        ]
    )


@pytest.fixture
def pricing_template() -> Template:
    """``total`` is set to 100 whenever ``qty`` equals 10."""

    return build(
        [
            {
                "id": "order",
                "title": "Order",
                "fields": [
                    field_payload(
                        "qty",
                        "number",
                        conditionalLogic=[
                            rule_payload("setValue", [cond("qty", "equals", 10)], targetFieldId="total", value=100)
                        ],
                    ),
                    field_payload("total", "number"),
                ],
            }
        ]
    )
