"""Shared visual identity for the streamlit form runner pages."""

from __future__ import annotations

from html import escape as html_escape
from typing import Any, Optional, Sequence

import streamlit as st


_THEME_CSS = """
<style>
:root {
    --form-primary: #2563EB;
    --form-primary-tint: #EFF4FF;
    --form-ink: #111827;
    --form-subtle: #6B7280;
    --form-danger: #B91C1C;
    --form-border: rgba(37, 99, 235, 0.16);
}

section.main .block-container {
    max-width: 860px;
}

.form-banner {
    display: grid;
    grid-template-columns: auto 1fr;
    align-items: center;
    column-gap: 1rem;
    padding: 1.25rem 1.5rem;
    border-radius: 1rem;
    border: 1px solid var(--form-border);
    background: linear-gradient(120deg, var(--form-primary-tint), #FFFFFF 70%);
    margin-bottom: 1.5rem;
}

.form-banner__icon {
    font-size: 2.2rem;
}

.form-banner__title {
    margin: 0;
    color: var(--form-ink);
    font-size: 1.75rem;
}

.form-banner__lead {
    margin: 0.3rem 0 0;
    color: var(--form-subtle);
}

.form-step {
    display: block;
    color: var(--form-primary);
    font-size: 0.75rem;
    letter-spacing: 0.06em;
    text-transform: uppercase;
}

.form-step__title {
    margin: 0.1rem 0 0.75rem;
    color: var(--form-ink);
}

.form-missing {
    margin-top: 0.5rem;
    padding: 0.6rem 1rem;
    border-left: 3px solid var(--form-danger);
    background: #FEF2F2;
    color: var(--form-danger);
}

.form-missing ul {
    margin: 0;
}
</style>
"""


def apply_app_theme(page_title: str, page_icon: Optional[str] = None) -> None:
    """Configure the page and load the form stylesheet. Call once per page run."""

    st.set_page_config(page_title=page_title, page_icon=page_icon, layout="centered")
    st.markdown(_THEME_CSS, unsafe_allow_html=True)


def page_header(
    title: str,
    subtitle: Optional[str] = None,
    icon: Optional[str] = None,
    *,
    container: Optional[Any] = None,
) -> None:
    """Draw the banner at the top of a page, optionally into ``container``."""

    parts = []
    if icon:
        parts.append(f"<span class='form-banner__icon'>{icon}</span>")
    text = f"<h1 class='form-banner__title'>{html_escape(title)}</h1>"
    if subtitle:
        text += f"<p class='form-banner__lead'>{html_escape(subtitle)}</p>"
    parts.append(f"<div>{text}</div>")

    write = st.markdown if container is None else container.markdown
    write(f"<div class='form-banner'>{''.join(parts)}</div>", unsafe_allow_html=True)


def section_heading(title: str, position: int, total: int) -> None:
    """Render the title of the active section with its position."""

    st.markdown(
        f"<span class='form-step'>Section {position} of {total}</span>"
        f"<h3 class='form-step__title'>{html_escape(title)}</h3>",
        unsafe_allow_html=True,
    )


def missing_fields_markup(labels: Sequence[str]) -> str:
    """Return HTML listing the labels of unanswered required fields."""

    items = "".join(f"<li>{html_escape(label)}</li>" for label in labels)
    return f"<div class='form-missing'><ul>{items}</ul></div>"
