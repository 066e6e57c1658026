from __future__ import annotations

import logging
from pathlib import Path
from typing import Any
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
GITHUB_RAW_URL = "https://raw.githubusercontent.com"
DEFAULT_TIMEOUT_SECONDS = 10
DEFAULT_USER_AGENT = "roadmap-status-engine"
_SKIPPED_DIRS = {".git", "node_modules", "__pycache__", ".venv"}


class ContentSource:
    """Read access to files of a repository at a ref."""

    def get_file(self, owner: str, repo: str, path: str, ref: str, credential: str | None = None) -> str | None:
        raise NotImplementedError

    def file_exists(self, owner: str, repo: str, path: str, ref: str, credential: str | None = None) -> bool:
        return self.get_file(owner, repo, path, ref, credential) is not None

    def list_paths(self, owner: str, repo: str, ref: str, credential: str | None = None) -> list[str]:
        raise NotImplementedError

    def default_branch(self, owner: str, repo: str, credential: str | None = None) -> str | None:
        return None


class GitHubContentSource(ContentSource):
    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        api_url: str = GITHUB_API_URL,
        raw_url: str = GITHUB_RAW_URL,
    ) -> None:
        self._timeout = timeout_seconds if timeout_seconds and timeout_seconds > 0 else DEFAULT_TIMEOUT_SECONDS
        self._user_agent = user_agent or DEFAULT_USER_AGENT
        self._api_url = api_url.rstrip("/")
        self._raw_url = raw_url.rstrip("/")

    def _headers(self, credential: str | None, *, accept: str) -> dict[str, str]:
        headers = {"Accept": accept, "User-Agent": self._user_agent}
        if credential:
            headers["Authorization"] = f"Bearer {credential}"
        return headers

    def _get(self, url: str, *, headers: dict[str, str], params: dict[str, Any] | None = None) -> requests.Response | None:
        try:
            return requests.get(url, headers=headers, params=params, timeout=self._timeout)
        except requests.Timeout:
            logger.warning("content request timed out url=%s timeout=%s", url, self._timeout)
        except requests.RequestException as exc:
            logger.warning("content request failed url=%s error=%s", url, exc)
        return None

    def get_file(self, owner: str, repo: str, path: str, ref: str, credential: str | None = None) -> str | None:
        clean_path = quote(path.lstrip("/"))
        if credential:
            response = self._get(
                f"{self._api_url}/repos/{owner}/{repo}/contents/{clean_path}",
                headers=self._headers(credential, accept="application/vnd.github.raw"),
                params={"ref": ref} if ref else None,
            )
            if response is not None and response.status_code == 200:
                return response.text
        response = self._get(
            f"{self._raw_url}/{owner}/{repo}/{quote(ref or 'HEAD')}/{clean_path}",
            headers=self._headers(None, accept="text/plain"),
        )
        if response is not None and response.status_code == 200:
            return response.text
        return None

    def list_paths(self, owner: str, repo: str, ref: str, credential: str | None = None) -> list[str]:
        response = self._get(
            f"{self._api_url}/repos/{owner}/{repo}/git/trees/{quote(ref or 'HEAD')}",
            headers=self._headers(credential, accept="application/vnd.github+json"),
            params={"recursive": "1"},
        )
        if response is None or response.status_code != 200:
            return []
        try:
            payload = response.json()
        except ValueError:
            return []
        tree = payload.get("tree") if isinstance(payload, dict) else None
        if not isinstance(tree, list):
            return []
        return [
            str(entry["path"])
            for entry in tree
            if isinstance(entry, dict) and entry.get("type") == "blob" and entry.get("path")
        ]

    def default_branch(self, owner: str, repo: str, credential: str | None = None) -> str | None:
        response = self._get(
            f"{self._api_url}/repos/{owner}/{repo}",
            headers=self._headers(credential, accept="application/vnd.github+json"),
        )
        if response is None or response.status_code != 200:
            return None
        try:
            payload = response.json()
        except ValueError:
            return None
        branch = payload.get("default_branch") if isinstance(payload, dict) else None
        return branch if isinstance(branch, str) and branch else None


class LocalContentSource(ContentSource):
    """Serves a checked-out working tree; owner, repo and ref are ignored."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def _resolve(self, path: str) -> Path | None:
        candidate = (self.root / path.lstrip("/")).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            return None
        return candidate

    def get_file(self, owner: str, repo: str, path: str, ref: str, credential: str | None = None) -> str | None:
        target = self._resolve(path)
        if target is None or not target.is_file():
            return None
        return target.read_text(encoding="utf-8", errors="replace")

    def file_exists(self, owner: str, repo: str, path: str, ref: str, credential: str | None = None) -> bool:
        target = self._resolve(path)
        return target is not None and target.is_file()

    def list_paths(self, owner: str, repo: str, ref: str, credential: str | None = None) -> list[str]:
        paths: list[str] = []
        for entry in sorted(self.root.rglob("*")):
            relative = entry.relative_to(self.root)
            if any(part in _SKIPPED_DIRS for part in relative.parts):
                continue
            if entry.is_file():
                paths.append(relative.as_posix())
        return paths
