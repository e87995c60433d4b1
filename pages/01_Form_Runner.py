"""Streamlit page letting a respondent fill out a conditional form."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date
from typing import Any, Dict, List

import streamlit as st

from formlogic.answers import is_empty
from formlogic.config import configure_logging, github_settings, responses_directory, schemas_directory
from formlogic.errors import PersistenceError, TemplateError
from formlogic.form_store import GitHubTemplateSource, LocalTemplateSource
from formlogic.navigation import NEXT, PREVIOUS
from formlogic.response_store import GitHubResponseStore, LocalResponseStore
from formlogic.schema_defaults import (
    DEFAULT_NO_CONTENT_MESSAGE,
    DEFAULT_PAGE_TITLE,
    DEFAULT_SAVE_LABEL,
    DEFAULT_SUBMIT_LABEL,
    DEFAULT_SUBMIT_SUCCESS_MESSAGE,
    intro_paragraphs_list,
)
from formlogic.session import ResponseSession
from formlogic.template_model import Field, Template
from formlogic.ui_theme import apply_app_theme, missing_fields_markup, page_header, section_heading

logger = logging.getLogger(__name__)

SESSIONS_STATE_KEY = "form_runner_sessions"
SELECTED_FORM_STATE_KEY = "form_runner_selected_form"
RESUME_STATE_KEY = "form_runner_resume_payload"
FORM_QUERY_PARAM = "form"
UNSELECTED_LABEL = "— Select an option —"
TEXT_FIELD_TYPES = {"text", "email", "phone", "url", "password", "address", "signature", "location"}
NUMBER_FIELD_TYPES = {"number", "currency", "rating"}
CHOICE_FIELD_TYPES = {"select", "radio"}
MULTI_CHOICE_FIELD_TYPES = {"multiselect", "checkboxGroup"}


def _github_settings() -> Dict[str, Any]:
    try:
        return github_settings(st.secrets)
    except FileNotFoundError:  # no secrets.toml present
        return {}


def _template_source():
    settings = _github_settings()
    if settings:
        return GitHubTemplateSource.from_settings(settings)
    return LocalTemplateSource(schemas_directory())


def _persistence():
    store = GitHubResponseStore.from_settings(_github_settings())
    return store or LocalResponseStore(responses_directory())


@st.cache_data(ttl=60, show_spinner=False)
def load_template(form_key: str) -> Template:
    """Fetch and parse a template; cached for a minute."""

    return _template_source().load_template(form_key)


def available_forms() -> List[str]:
    source = _template_source()
    if isinstance(source, LocalTemplateSource):
        return source.available()
    return list(_github_settings().get("forms") or LocalTemplateSource(schemas_directory()).available())


def get_session(form_key: str, template: Template) -> ResponseSession:
    """Return the session for ``form_key``, creating or resuming it."""

    sessions: Dict[str, ResponseSession] = st.session_state.setdefault(SESSIONS_STATE_KEY, {})
    resume_payload = st.session_state.pop(RESUME_STATE_KEY, None)
    if isinstance(resume_payload, Mapping) and resume_payload.get("templateId") == template.id:
        sessions[form_key] = ResponseSession.resume(template, resume_payload, persistence=_persistence())
    elif form_key not in sessions or sessions[form_key].template.version != template.version:
        sessions[form_key] = ResponseSession(template, persistence=_persistence())
    return sessions[form_key]


def _widget_value(item: Field, current: Any, widget_key: str) -> Any:
    """Render the widget for ``item`` and return its current value."""

    label = item.label + (" *" if item.required else "")
    if item.type in NUMBER_FIELD_TYPES:
        return st.number_input(label, value=current if isinstance(current, (int, float)) else None, key=widget_key)
    if item.type in CHOICE_FIELD_TYPES:
        values = [option.value for option in item.options]
        labels = {option.value: option.label for option in item.options}
        choices = [UNSELECTED_LABEL, *values]
        index = choices.index(current) if current in values else 0
        selection = st.selectbox(
            label,
            choices,
            index=index,
            key=widget_key,
            format_func=lambda value: labels.get(value, value),
        )
        return None if selection == UNSELECTED_LABEL else selection
    if item.type in MULTI_CHOICE_FIELD_TYPES:
        values = [option.value for option in item.options]
        labels = {option.value: option.label for option in item.options}
        default = [value for value in current or [] if value in values] if isinstance(current, list) else []
        return st.multiselect(
            label,
            options=values,
            default=default,
            key=widget_key,
            format_func=lambda value: labels.get(value, value),
        )
    if item.type == "checkbox":
        checked = st.checkbox(label, value=bool(current), key=widget_key)
        # An untouched box stays unanswered; unticking a ticked box records False.
        return checked if checked or current is not None else None
    if item.type == "textarea":
        return st.text_area(label, value="" if current is None else str(current), key=widget_key)
    if item.type == "date":
        default_date = date.fromisoformat(current) if isinstance(current, str) and current else None
        picked = st.date_input(label, value=default_date, key=widget_key)
        return picked.isoformat() if isinstance(picked, date) else None
    if item.type == "file":
        if isinstance(current, Mapping):
            st.caption(f"Uploaded: {current.get('originalName') or current.get('name')}")
        uploaded = st.file_uploader(label, key=widget_key)
        if uploaded is None:
            return current
        # Upload storage is handled elsewhere; the engine only keeps a reference.
        return {"originalName": uploaded.name, "size": uploaded.size, "mimetype": uploaded.type}
    if item.type not in TEXT_FIELD_TYPES:
        logger.debug("Rendering field %s of type %s as text", item.id, item.type)
    return st.text_input(label, value="" if current is None else str(current), key=widget_key)


def _widget_key(session: ResponseSession, field_id: str) -> str:
    return f"{session.session_id}_field_{field_id}"


def render_field(session: ResponseSession, item: Field) -> None:
    """Render one visible field and push changes into the session."""

    if item.type == "heading":
        st.subheader(item.label)
        return
    if item.type == "paragraph":
        st.write(item.label)
        return
    if item.type == "divider":
        st.divider()
        return

    current = session.answers.get(item.id)
    value = _widget_value(item, current, _widget_key(session, item.id))
    if is_empty(value) and is_empty(current):
        return
    if value != current:
        result = session.set_answer(item.id, value)
        # Drop stale widget state so fields filled by rules show their new value.
        for field_id in result.applied_values:
            st.session_state.pop(_widget_key(session, field_id), None)
        st.rerun()


def render_navigation(session: ResponseSession) -> None:
    """Render previous/next/save/submit controls."""

    nav = session.template.navigation
    previous_col, next_col, save_col, submit_col = st.columns(4)

    if nav.allow_back_navigation and previous_col.button("Previous", key="nav_previous"):
        result = session.navigate(PREVIOUS)
        if result.error is not None:
            st.info("You are already on the first section.")
        else:
            st.rerun()

    if next_col.button("Next", key="nav_next"):
        result = session.navigate(NEXT)
        if result.at_end:
            st.info("You have reached the end of the form. Submit when ready.")
        else:
            st.rerun()

    if save_col.button(DEFAULT_SAVE_LABEL, key="nav_save"):
        try:
            session.save()
        except PersistenceError as exc:
            st.error(f"Failed to save progress: {exc}")
        else:
            st.success("Your progress has been saved.")

    if submit_col.button(DEFAULT_SUBMIT_LABEL, type="primary", key="nav_submit"):
        try:
            outcome = session.submit()
        except PersistenceError as exc:
            st.error(f"Failed to submit form: {exc}")
            return
        if outcome.validation is not None:
            st.error("Please answer all required questions before submitting.")
            st.markdown(
                missing_fields_markup([item.label or item.field_id for item in outcome.validation.missing]),
                unsafe_allow_html=True,
            )
        elif outcome.ok:
            st.success(DEFAULT_SUBMIT_SUCCESS_MESSAGE)


def main() -> None:
    """Render the form runner page."""

    configure_logging()
    apply_app_theme(page_title="Form runner", page_icon="🗒️")
    header_placeholder = st.empty()
    page_header("Form runner", "Choose a form to start.", icon="🗒️", container=header_placeholder)

    form_keys = available_forms()
    if not form_keys:
        st.error("No forms configured. Add form_schemas/<name>/form_schema.json to continue.")
        return

    requested = st.query_params.get(FORM_QUERY_PARAM) or st.session_state.get(SELECTED_FORM_STATE_KEY)
    index = form_keys.index(requested) if requested in form_keys else 0
    form_key = st.selectbox("Form", options=form_keys, index=index) if len(form_keys) > 1 else form_keys[0]
    st.session_state[SELECTED_FORM_STATE_KEY] = form_key
    st.query_params[FORM_QUERY_PARAM] = form_key

    try:
        template = load_template(form_key)
    except TemplateError as exc:
        st.error(str(exc))
        for problem in exc.problems:
            st.markdown(f"- {problem}")
        return

    session = get_session(form_key, template)
    page_header(
        template.name or DEFAULT_PAGE_TITLE,
        " ".join(intro_paragraphs_list()),
        icon="🗒️",
        container=header_placeholder,
    )

    if template.navigation.show_progress_bar:
        st.progress(session.completion_percentage / 100, text=f"{session.completion_percentage}% complete")

    if session.submitted:
        st.success(DEFAULT_SUBMIT_SUCCESS_MESSAGE)
        st.json(session.to_payload())
        return

    if session.no_content or session.current_section_id is None:
        st.warning(DEFAULT_NO_CONTENT_MESSAGE)
        return

    visible_ids = session.snapshot.visible_section_ids(template)
    section = template.sections_by_id[session.current_section_id]
    if template.navigation.type == "freeform" and len(visible_ids) > 1:
        titles = {section_id: template.sections_by_id[section_id].title for section_id in visible_ids}
        picked = st.radio(
            "Sections",
            visible_ids,
            index=visible_ids.index(section.id),
            horizontal=True,
            format_func=lambda section_id: titles.get(section_id, section_id),
        )
        if picked != section.id and session.navigate(picked).ok:
            st.rerun()

    section_heading(section.title, visible_ids.index(section.id) + 1, len(visible_ids))
    for item in session.snapshot.visible_fields(section):
        render_field(session, item)

    render_navigation(session)


if __name__ == "__main__":
    main()
