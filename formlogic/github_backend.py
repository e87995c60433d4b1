"""Small client for the GitHub Contents and raw file endpoints."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

DEFAULT_API_URL = "https://api.github.com"
RAW_CONTENT_URL = "https://raw.githubusercontent.com"
REQUEST_TIMEOUT = 10


@dataclass
class GitHubBackend:
    """Reads and commits JSON documents on one branch of a repository."""

    token: str
    repo: str
    branch: str = "main"
    api_url: str = DEFAULT_API_URL

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "Content-Type": "application/json",
        }

    def contents_url(self, path: str) -> str:
        return f"{self.api_url.rstrip('/')}/repos/{self.repo}/contents/{path.lstrip('/')}"

    def _fetch(self, path: str) -> Optional[Dict[str, Any]]:
        """Return the contents API entry for ``path``; ``None`` on 404."""

        response = requests.get(
            self.contents_url(path),
            headers=self._headers(),
            params={"ref": self.branch},
            timeout=REQUEST_TIMEOUT,
        )
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    def file_sha(self, path: str) -> Optional[str]:
        entry = self._fetch(path)
        return entry.get("sha") if entry else None

    def read_json(self, path: str) -> Optional[Dict[str, Any]]:
        """Decode the JSON document at ``path``, or ``None`` if it does not exist."""

        entry = self._fetch(path)
        if entry is None:
            return None
        if entry.get("encoding", "base64") != "base64":
            raise ValueError(f"Unsupported encoding for {path}: {entry.get('encoding')}")
        return json.loads(base64.b64decode(entry.get("content", "")).decode("utf-8"))

    def write_json(self, path: str, data: Dict[str, Any], *, message: str) -> Dict[str, Any]:
        """Commit ``data`` to ``path``, replacing any existing document."""

        body: Dict[str, Any] = {
            "message": message,
            "branch": self.branch,
            "content": base64.b64encode(json.dumps(data, indent=2).encode("utf-8")).decode("utf-8"),
        }
        sha = self.file_sha(path)
        if sha:
            body["sha"] = sha

        response = requests.put(
            self.contents_url(path),
            headers=self._headers(),
            json=body,
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        return response.json()


def fetch_raw_file(repo: str, path: str, *, ref: str = "main", token: Optional[str] = None) -> str:
    """Download a file through the raw content endpoint."""

    headers = {"Accept": "application/vnd.github.v3.raw"}
    if token:
        headers["Authorization"] = f"Bearer {token}"

    response = requests.get(f"{RAW_CONTENT_URL}/{repo}/{ref}/{path}", headers=headers, timeout=REQUEST_TIMEOUT)
    response.raise_for_status()
    return response.text


__all__ = ["DEFAULT_API_URL", "GitHubBackend", "fetch_raw_file"]
