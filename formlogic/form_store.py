"""Template sources: local form schema files and files stored on GitHub."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from formlogic.config import DEFAULT_SCHEMAS_DIR, DEFAULT_TEMPLATE_PATH
from formlogic.errors import TemplateError
from formlogic.github_backend import fetch_raw_file
from formlogic.template_model import Template, dependency_warnings, parse_template, validate_template

logger = logging.getLogger(__name__)

FORM_SCHEMA_FILENAME = "form_schema.json"
LEGACY_SCHEMA_PATH = Path("form_schema.json")
LEGACY_FORM_KEY = "default"


def discover_local_forms(root: Path = DEFAULT_SCHEMAS_DIR, legacy_path: Path = LEGACY_SCHEMA_PATH) -> Dict[str, Path]:
    """Return a mapping of ``form_key -> path`` for local schema files."""

    forms: Dict[str, Path] = {}
    if root.exists():
        for entry in sorted(root.iterdir()):
            if not entry.is_dir():
                continue
            schema_path = entry / FORM_SCHEMA_FILENAME
            if schema_path.exists():
                forms[entry.name] = schema_path
    if not forms and legacy_path.exists():
        forms[LEGACY_FORM_KEY] = legacy_path
    return forms


def _unwrap_payload(payload: Any) -> Dict[str, Any]:
    """Accept both a bare template and one nested under ``template``."""

    if not isinstance(payload, Mapping):
        return {}
    nested = payload.get("template")
    if isinstance(nested, Mapping):
        return dict(nested)
    return dict(payload)


def build_template(payload: Any, form_key: str) -> Template:
    """Parse and validate ``payload``, raising :class:`TemplateError` on problems."""

    data = _unwrap_payload(payload)
    if not data:
        raise TemplateError(f"Template '{form_key}' is not a JSON object.")

    template = parse_template(data, template_id=str(data.get("id") or data.get("_id") or form_key))
    problems = validate_template(template)
    if problems:
        raise TemplateError(f"Template '{form_key}' is invalid.", problems=problems)
    for warning in dependency_warnings(template):
        logger.warning("Template %s: %s", form_key, warning)
    return template


def resolve_remote_form_path(base_path: str, form_key: str) -> str:
    """Return the remote path for ``form_key`` using ``base_path`` template."""

    if "{form_key}" in base_path:
        return base_path.format(form_key=form_key)
    if "{template_id}" in base_path:
        return base_path.format(template_id=form_key)
    if base_path.endswith(".json"):
        return base_path
    return f"{base_path.rstrip('/')}/{form_key}/{FORM_SCHEMA_FILENAME}"


class LocalTemplateSource:
    """Loads templates from ``<root>/<form_key>/form_schema.json``."""

    def __init__(self, root: Path = DEFAULT_SCHEMAS_DIR, legacy_path: Path = LEGACY_SCHEMA_PATH) -> None:
        self.root = Path(root)
        self.legacy_path = Path(legacy_path)

    def available(self) -> List[str]:
        return list(discover_local_forms(self.root, self.legacy_path).keys())

    def load_template(self, form_key: str) -> Template:
        forms = discover_local_forms(self.root, self.legacy_path)
        path = forms.get(form_key)
        if path is None:
            raise TemplateError(f"No form schema found for '{form_key}'.")
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise TemplateError(f"Could not read form schema {path}: {exc}") from exc
        return build_template(payload, form_key)


class GitHubTemplateSource:
    """Loads templates from a GitHub repository through the raw endpoint."""

    def __init__(
        self,
        repo: str,
        *,
        path: str = DEFAULT_TEMPLATE_PATH,
        branch: str = "main",
        token: Optional[str] = None,
    ) -> None:
        self.repo = repo
        self.path = path
        self.branch = branch
        self.token = token

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> "GitHubTemplateSource":
        return cls(
            settings["repo"],
            path=settings.get("path") or DEFAULT_TEMPLATE_PATH,
            branch=settings.get("branch") or "main",
            token=settings.get("token"),
        )

    def load_template(self, form_key: str) -> Template:
        remote_path = resolve_remote_form_path(self.path, form_key)
        try:
            contents = fetch_raw_file(self.repo, remote_path, ref=self.branch, token=self.token)
            payload = json.loads(contents)
        except requests.RequestException as exc:
            raise TemplateError(f"Unable to load '{form_key}' from GitHub: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise TemplateError(f"The schema file for '{form_key}' on GitHub is not valid JSON.") from exc
        return build_template(payload, form_key)


__all__ = [
    "GitHubTemplateSource",
    "LocalTemplateSource",
    "build_template",
    "discover_local_forms",
    "resolve_remote_form_path",
]
