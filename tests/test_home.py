"""Tests for the table rows built by the home screen."""

from __future__ import annotations

import importlib.util
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SPEC = importlib.util.spec_from_file_location("home_module", REPO_ROOT / "Home.py")
if SPEC is None or SPEC.loader is None:  # pragma: no cover
    raise RuntimeError("Could not load Home.py for testing.")
HOME = importlib.util.module_from_spec(SPEC)
SPEC.loader.exec_module(HOME)


def test_response_rows_flatten_payloads():
    """Stored payloads become table rows with placeholders for gaps."""

    rows = HOME._response_rows(
        [
            {
                "id": "r1",
                "templateId": "event_registration",
                "status": "draft",
                "completionPercentage": 40,
                "updatedAt": "2024-02-01T10:00:00Z",
            },
            {"id": "r2", "templateId": "event_registration", "status": "submitted", "submittedAt": "2024-02-02T09:00:00Z"},
        ]
    )

    assert rows[0] == {
        "Response ID": "r1",
        "Form": "event_registration",
        "Status": "draft",
        "Completion": "40%",
        "Updated at": "2024-02-01T10:00:00+00:00",
        "Submitted at": "—",
    }
    assert rows[1]["Completion"] == "—"
    assert rows[1]["Submitted at"] == "2024-02-02T09:00:00+00:00"
    assert list(rows[0]) == list(HOME.TABLE_COLUMNS)


def test_streamlit_app_entrypoint_runs_home_screen():
    """The hosted entrypoint renders the same home screen as Home.py."""

    import streamlit_app

    assert streamlit_app.main.__module__ == "Home"
    assert streamlit_app.main.__name__ == "main"
