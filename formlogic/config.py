"""Runtime configuration read from streamlit secrets and the environment."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, Optional

from formlogic.github_backend import DEFAULT_API_URL

LOG_LEVEL_ENV = "FORMLOGIC_LOG_LEVEL"
RESPONSES_DIR_ENV = "FORMLOGIC_RESPONSES_DIR"
SCHEMAS_DIR_ENV = "FORMLOGIC_SCHEMAS_DIR"

DEFAULT_RESPONSES_DIR = Path("responses")
DEFAULT_SCHEMAS_DIR = Path("form_schemas")
DEFAULT_TEMPLATE_PATH = "form_schemas/{form_key}/form_schema.json"
DEFAULT_RESPONSES_PATH = "responses/{response_id}.json"


def _secrets_dict(secrets: Mapping[str, Any], name: str) -> Dict[str, Any]:
    """Return a mapping stored under ``name`` in ``secrets``."""

    value = secrets.get(name, {})
    if isinstance(value, Mapping):
        return dict(value)
    return {}


def github_settings(secrets: Mapping[str, Any]) -> Dict[str, Any]:
    """Return GitHub configuration in a normalised structure.

    The ``[github]`` table is preferred; flat ``github_*`` keys are used as a
    fallback. An empty dict means GitHub is not configured.
    """

    table = _secrets_dict(secrets, "github")
    repo = table.get("repo") or secrets.get("github_repo")
    path = table.get("path") or secrets.get("github_file_path") or DEFAULT_TEMPLATE_PATH
    branch = table.get("branch") or secrets.get("github_branch") or "main"
    token = table.get("token") or secrets.get("github_token")
    api_url = table.get("api_url") or secrets.get("github_api_url") or DEFAULT_API_URL
    responses_path = (
        table.get("responses_path") or secrets.get("github_responses_path") or DEFAULT_RESPONSES_PATH
    )

    forms = table.get("forms") or secrets.get("github_forms") or []
    if isinstance(forms, str):
        forms = [item.strip() for item in forms.split(",") if item.strip()]

    if not repo:
        return {}
    return {
        "repo": repo,
        "forms": list(forms),
        "path": path,
        "branch": branch,
        "token": token,
        "api_url": api_url,
        "responses_path": responses_path,
    }


def responses_directory(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Directory holding locally stored drafts and submissions."""

    env = os.environ if environ is None else environ
    value = env.get(RESPONSES_DIR_ENV)
    return Path(value) if value else DEFAULT_RESPONSES_DIR


def schemas_directory(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Directory holding ``<form_key>/form_schema.json`` templates."""

    env = os.environ if environ is None else environ
    value = env.get(SCHEMAS_DIR_ENV)
    return Path(value) if value else DEFAULT_SCHEMAS_DIR


def configure_logging(level: Optional[str] = None) -> None:
    """Install a basic root handler for the streamlit app."""

    name = (level or os.environ.get(LOG_LEVEL_ENV) or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


__all__ = [
    "configure_logging",
    "github_settings",
    "responses_directory",
    "schemas_directory",
]
