"""Streamlit home screen listing stored drafts and submitted responses."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import pandas as pd
import streamlit as st
from streamlit.errors import StreamlitAPIException

from formlogic.config import configure_logging, responses_directory
from formlogic.errors import PersistenceError
from formlogic.response_store import LocalResponseStore, parse_timestamp
from formlogic.ui_theme import apply_app_theme, page_header

RUNNER_PAGE = "pages/01_Form_Runner.py"
RESUME_STATE_KEY = "form_runner_resume_payload"
SELECTED_FORM_STATE_KEY = "form_runner_selected_form"
HOME_SELECTED_RESPONSE_KEY = "home_selected_response_id"
TABLE_COLUMNS = ("Response ID", "Form", "Status", "Completion", "Updated at", "Submitted at")


def _response_rows(payloads: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Flatten persisted payloads into table rows."""

    rows: List[Dict[str, Any]] = []
    for payload in payloads:
        updated_at, _ = parse_timestamp(payload.get("updatedAt"))
        submitted_at, _ = parse_timestamp(payload.get("submittedAt"))
        completion = payload.get("completionPercentage")
        rows.append(
            {
                "Response ID": str(payload.get("id", "")),
                "Form": str(payload.get("templateId", "")),
                "Status": str(payload.get("status", "draft")),
                "Completion": f"{completion}%" if isinstance(completion, int) else "—",
                "Updated at": updated_at or "—",
                "Submitted at": submitted_at or "—",
            }
        )
    return rows


def _resume_draft(payload: Dict[str, Any]) -> None:
    """Open the form runner with ``payload`` loaded into a session."""

    st.session_state[RESUME_STATE_KEY] = payload
    st.session_state[SELECTED_FORM_STATE_KEY] = payload.get("templateId")
    try:
        st.switch_page(RUNNER_PAGE)
    except StreamlitAPIException:
        st.info("Use the navigation menu to open the Form runner page.")


def main() -> None:
    """Render the home screen."""

    configure_logging()
    apply_app_theme(page_title="Forms home", page_icon="🏠")
    page_header(
        "Forms home",
        "Resume saved drafts and review submitted responses.",
        icon="🏠",
    )

    store = LocalResponseStore(responses_directory())
    payloads = store.list_responses()
    drafts = [payload for payload in payloads if payload.get("status", "draft") == "draft"]

    metric_col1, metric_col2, metric_col3 = st.columns(3)
    metric_col1.metric("Stored responses", len(payloads) or "0")
    metric_col2.metric("Drafts", len(drafts) or "0")
    metric_col3.metric("Submitted", (len(payloads) - len(drafts)) or "0")

    st.markdown("---")

    if not payloads:
        st.info("No responses stored yet. Open the form runner to start one.")
        st.page_link(RUNNER_PAGE, label="Open form runner", icon="🗒️")
        return

    by_id = {str(payload.get("id", "")): payload for payload in payloads}
    table_df = pd.DataFrame(_response_rows(payloads), columns=list(TABLE_COLUMNS))
    table_df.insert(0, "Select", False)
    selected_id = st.session_state.get(HOME_SELECTED_RESPONSE_KEY)
    if selected_id:
        table_df.loc[table_df["Response ID"] == selected_id, "Select"] = True

    edited_df = st.data_editor(
        table_df,
        hide_index=True,
        column_order=["Select", *TABLE_COLUMNS],
        num_rows="fixed",
        key="home_responses_table",
        column_config={
            "Select": st.column_config.CheckboxColumn(
                "Select",
                help="Choose a draft before resuming it.",
            ),
            **{column: st.column_config.Column(column, disabled=True) for column in TABLE_COLUMNS},
        },
    )

    selected_rows = edited_df.loc[edited_df["Select"].astype(bool)] if not edited_df.empty else edited_df
    candidate: Optional[Dict[str, Any]] = None
    if not selected_rows.empty:
        if len(selected_rows) > 1:
            st.warning("Select only one response at a time.")
        else:
            candidate_id = str(selected_rows.iloc[0]["Response ID"])
            st.session_state[HOME_SELECTED_RESPONSE_KEY] = candidate_id
            candidate = by_id.get(candidate_id)

    resume_col, delete_col = st.columns(2)
    is_draft = candidate is not None and candidate.get("status", "draft") == "draft"
    if resume_col.button("Resume draft", type="primary", disabled=not is_draft):
        try:
            payload = store.load_response(str(candidate["id"])) or candidate
        except PersistenceError as exc:
            st.error(str(exc))
        else:
            _resume_draft(payload)

    if delete_col.button("Delete response", disabled=candidate is None):
        removed, failed = store.delete_response(str(candidate["id"]))
        if failed:
            st.error("Failed to delete: " + ", ".join(path.name for path in failed))
        elif removed:
            st.session_state.pop(HOME_SELECTED_RESPONSE_KEY, None)
            st.success(f"Deleted response {candidate['id']}.")
            st.rerun()

    st.page_link(RUNNER_PAGE, label="Start a new response", icon="🗒️")


if __name__ == "__main__":
    main()
