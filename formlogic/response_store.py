"""Persistence collaborators for drafts and submitted responses.

Both stores remember the last ``(id, revision, status)`` they wrote for each
response and skip an identical repeated write, handing back the previous
acknowledgement.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from formlogic.config import DEFAULT_RESPONSES_DIR, DEFAULT_RESPONSES_PATH
from formlogic.errors import PersistenceError
from formlogic.github_backend import DEFAULT_API_URL, GitHubBackend

logger = logging.getLogger(__name__)


def _write_key(payload: Mapping[str, Any]) -> Tuple[Any, Any, Any]:
    return payload.get("id"), payload.get("revision"), payload.get("status")


def parse_timestamp(value: Any) -> Tuple[str, float]:
    """Normalise an ISO timestamp string, returning text and a sort key."""

    if isinstance(value, str) and value.strip():
        raw = value.strip()
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return raw, 0.0
        return parsed.isoformat(), parsed.timestamp()
    return "", 0.0


class _IdempotentStore(ABC):
    def __init__(self) -> None:
        self._last_writes: Dict[Any, Tuple[Tuple[Any, Any, Any], Dict[str, Any]]] = {}

    def persist_response(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Store ``payload``; an identical repeated write is skipped."""

        response_id = str(payload.get("id") or "").strip()
        if not response_id:
            raise PersistenceError("Response payload has no id.")

        key = _write_key(payload)
        previous = self._last_writes.get(response_id)
        if previous is not None and previous[0] == key:
            logger.debug("Skipping repeated write of response %s revision %s", response_id, key[1])
            return previous[1]

        ack = self._write(response_id, payload)
        self._last_writes[response_id] = (key, ack)
        return ack

    @abstractmethod
    def _write(self, response_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Write ``payload`` and return the acknowledgement."""


class LocalResponseStore(_IdempotentStore):
    """Stores each response as ``<directory>/<id>.json``."""

    def __init__(self, directory: Path = DEFAULT_RESPONSES_DIR) -> None:
        super().__init__()
        self.directory = Path(directory)

    def _path(self, response_id: str) -> Path:
        return self.directory / f"{response_id}.json"

    def _write(self, response_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        path = self._path(response_id)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
        except (OSError, TypeError) as exc:
            raise PersistenceError(f"Failed to store response {response_id}: {exc}") from exc
        return {"id": response_id, "status": payload.get("status"), "path": str(path)}

    def load_response(self, response_id: str) -> Optional[Dict[str, Any]]:
        path = self._path(response_id)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Failed to read response {response_id}: {exc}") from exc
        return payload if isinstance(payload, dict) else None

    def list_responses(self, *, template_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Return stored responses, most recently updated first.

        Unreadable files are skipped.
        """

        if not self.directory.exists():
            return []

        records: List[Tuple[float, Dict[str, Any]]] = []
        for response_file in sorted(self.directory.glob("*.json")):
            try:
                with response_file.open("r", encoding="utf-8") as handle:
                    payload = json.load(handle)
            except (OSError, json.JSONDecodeError):
                logger.warning("Skipping unreadable response file %s", response_file.name)
                continue
            if not isinstance(payload, dict):
                continue
            if template_id and payload.get("templateId") != template_id:
                continue
            payload.setdefault("id", response_file.stem)
            _, sort_key = parse_timestamp(payload.get("updatedAt"))
            records.append((sort_key, payload))

        records.sort(key=lambda item: (-item[0], str(item[1].get("id"))))
        return [payload for _, payload in records]

    def delete_response(
        self,
        response_id: str,
        *,
        skip_paths: Sequence[Path] | None = None,
    ) -> Tuple[List[Path], List[Path]]:
        """Delete files matching ``response_id``.

        Returns the paths removed and the ones that could not be deleted
        because of an ``OSError``.
        """

        normalized_id = str(response_id or "").strip()
        if not normalized_id or not self.directory.exists():
            return [], []

        skipped = {Path(item).resolve() for item in skip_paths or ()}
        removed: List[Path] = []
        failed: List[Path] = []

        for candidate in self.directory.glob("*.json"):
            if candidate.resolve() in skipped:
                continue

            matches = candidate.stem == normalized_id
            if not matches:
                try:
                    with candidate.open("r", encoding="utf-8") as handle:
                        payload = json.load(handle)
                except (OSError, json.JSONDecodeError):
                    continue
                matches = isinstance(payload, dict) and str(payload.get("id") or "").strip() == normalized_id

            if not matches:
                continue

            try:
                candidate.unlink()
            except OSError:
                failed.append(candidate)
            else:
                removed.append(candidate)

        self._last_writes.pop(normalized_id, None)
        return removed, failed


class GitHubResponseStore(_IdempotentStore):
    """Commits each response to a GitHub repository."""

    def __init__(
        self,
        *,
        token: str,
        repo: str,
        path: str = DEFAULT_RESPONSES_PATH,
        branch: str = "main",
        api_url: str = DEFAULT_API_URL,
    ) -> None:
        super().__init__()
        self.token = token
        self.repo = repo
        self.path = path
        self.branch = branch
        self.api_url = api_url

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> Optional["GitHubResponseStore"]:
        """Build a store from :func:`formlogic.config.github_settings` output."""

        if not settings.get("token") or not settings.get("repo"):
            return None
        return cls(
            token=settings["token"],
            repo=settings["repo"],
            path=settings.get("responses_path") or DEFAULT_RESPONSES_PATH,
            branch=settings.get("branch") or "main",
            api_url=settings.get("api_url") or DEFAULT_API_URL,
        )

    def storage_path(self, response_id: str) -> str:
        try:
            return self.path.format(response_id=response_id)
        except KeyError as exc:
            raise PersistenceError(f"Invalid responses path template; missing placeholder: {exc}.") from exc

    def _backend(self) -> GitHubBackend:
        return GitHubBackend(token=self.token, repo=self.repo, branch=self.branch, api_url=self.api_url)

    def _write(self, response_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        status = payload.get("status")
        if status == "submitted":
            message = f"Add submitted response {response_id}"
        else:
            message = f"Save draft response {response_id}"
        path = self.storage_path(response_id)
        try:
            result = self._backend().write_json(path, payload, message=message)
        except (requests.RequestException, TypeError, ValueError) as exc:
            raise PersistenceError(f"Failed to store response {response_id}: {exc}") from exc
        commit = result.get("commit", {}) if isinstance(result, dict) else {}
        return {"id": response_id, "status": status, "path": path, "commit": commit.get("sha")}

    def load_response(self, response_id: str) -> Optional[Dict[str, Any]]:
        try:
            return self._backend().read_json(self.storage_path(response_id))
        except (requests.RequestException, ValueError) as exc:
            raise PersistenceError(f"Failed to read response {response_id}: {exc}") from exc


__all__ = ["GitHubResponseStore", "LocalResponseStore", "parse_timestamp"]
