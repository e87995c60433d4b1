"""Tests for loading templates from local files and GitHub."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import requests

import formlogic.form_store as form_store
from formlogic.errors import TemplateError
from formlogic.form_store import (
    GitHubTemplateSource,
    LocalTemplateSource,
    build_template,
    discover_local_forms,
    resolve_remote_form_path,
)

REPO_ROOT = Path(__file__).resolve().parents[1]


def _write_schema(root: Path, key: str, payload) -> Path:
    target = root / key / "form_schema.json"
    target.parent.mkdir(parents=True)
    target.write_text(json.dumps(payload), encoding="utf-8")
    return target


def _payload(template_id: str = "demo"):
    return {
        "id": template_id,
        "name": "Demo",
        "sections": [{"id": "s1", "fields": [{"id": "a", "type": "text", "label": "A"}]}],
    }


def test_discover_local_forms_lists_subdirectories(tmp_path):
    """Each schema subdirectory is offered as a form."""

    _write_schema(tmp_path, "beta", _payload("beta"))
    _write_schema(tmp_path, "alpha", _payload("alpha"))
    (tmp_path / "empty").mkdir()

    forms = discover_local_forms(tmp_path, tmp_path / "missing.json")

    assert list(forms) == ["alpha", "beta"]


def test_discover_local_forms_falls_back_to_legacy_file(tmp_path):
    """A lone root schema file is offered as the default form."""

    legacy = tmp_path / "form_schema.json"
    legacy.write_text(json.dumps(_payload()), encoding="utf-8")

    assert discover_local_forms(tmp_path / "none", legacy) == {"default": legacy}


def test_local_source_loads_nested_template(tmp_path):
    """Local templates load from ``<key>/form_schema.json``."""

    _write_schema(tmp_path, "demo", {"template": _payload("nested")})

    template = LocalTemplateSource(tmp_path, tmp_path / "missing.json").load_template("demo")

    assert template.id == "nested"
    assert list(template.fields_by_id) == ["a"]


def test_local_source_rejects_unknown_and_broken_forms(tmp_path):
    """Unknown keys and unreadable files raise ``TemplateError``."""

    source = LocalTemplateSource(tmp_path, tmp_path / "missing.json")
    with pytest.raises(TemplateError):
        source.load_template("nope")

    broken = tmp_path / "broken" / "form_schema.json"
    broken.parent.mkdir()
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(TemplateError):
        source.load_template("broken")


def test_build_template_raises_with_problems():
    """Structural problems stop a template from loading."""

    payload = _payload()
    payload["sections"].append({"id": "s1", "fields": []})

    with pytest.raises(TemplateError) as excinfo:
        build_template(payload, "demo")

    assert excinfo.value.problems == ["Duplicate section id detected: s1"]


def test_build_template_rejects_non_mapping():
    """Only JSON objects can become templates."""

    with pytest.raises(TemplateError):
        build_template(["not", "a", "template"], "demo")


def test_build_template_logs_dependency_warnings(caplog):
    """Dependency warnings are logged without failing the load."""

    payload = _payload()
    payload["sections"][0]["fields"][0]["conditionalLogic"] = [
        {"action": "hide", "conditions": [{"fieldId": "ghost", "operator": "isEmpty"}]}
    ]

    build_template(payload, "demo")

    assert "references unknown field 'ghost'" in caplog.text


def test_bundled_example_schema_is_valid():
    """The shipped example form parses without problems."""

    source = LocalTemplateSource(REPO_ROOT / "form_schemas", REPO_ROOT / "missing.json")

    assert "event_registration" in source.available()
    template = source.load_template("event_registration")
    assert template.navigation.type == "conditional"


@pytest.mark.parametrize(
    "base, expected",
    [
        ("forms/{form_key}/schema.json", "forms/demo/schema.json"),
        ("templates/{template_id}.json", "templates/demo.json"),
        ("single.json", "single.json"),
        ("form_schemas/", "form_schemas/demo/form_schema.json"),
    ],
)
def test_resolve_remote_form_path(base, expected):
    """Remote schema paths are built from the form key."""

    assert resolve_remote_form_path(base, "demo") == expected


def test_github_source_fetches_raw_file(monkeypatch):
    """GitHub templates are read through the raw endpoint."""

    calls = {}

    def fake_fetch(repo, path, *, ref, token):
        calls.update(repo=repo, path=path, ref=ref, token=token)
        return json.dumps(_payload("remote"))

    monkeypatch.setattr(form_store, "fetch_raw_file", fake_fetch)
    source = GitHubTemplateSource.from_settings({"repo": "org/forms", "branch": "dev", "token": "t"})

    template = source.load_template("demo")

    assert template.id == "remote"
    assert calls == {
        "repo": "org/forms",
        "path": "form_schemas/demo/form_schema.json",
        "ref": "dev",
        "token": "t",
    }


def test_github_source_wraps_request_errors(monkeypatch):
    """HTTP failures surface as ``TemplateError``."""

    def failing_fetch(*args, **kwargs):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(form_store, "fetch_raw_file", failing_fetch)

    with pytest.raises(TemplateError, match="Unable to load 'demo'"):
        GitHubTemplateSource("org/forms").load_template("demo")


def test_github_source_rejects_invalid_json(monkeypatch):
    """A malformed remote schema raises ``TemplateError``."""

    monkeypatch.setattr(form_store, "fetch_raw_file", lambda *args, **kwargs: "<html>")

    with pytest.raises(TemplateError, match="not valid JSON"):
        GitHubTemplateSource("org/forms").load_template("demo")
