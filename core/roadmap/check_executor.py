from __future__ import annotations

import fnmatch
import logging
import re
import threading
from typing import Any, Callable

import requests

from core.roadmap.content_source import DEFAULT_TIMEOUT_SECONDS, DEFAULT_USER_AGENT, ContentSource
from core.roadmap.errors import CheckTransportError, MissingVerifierConfiguration, UnknownCheckKind
from core.roadmap.schema import CheckContext, CheckResult, CheckStatus
from core.roadmap.verifier import interpret_response, resolve_verifier_url

logger = logging.getLogger(__name__)

_GLOB_CHARS = re.compile(r"[*?\[]")
_URL_PREFIX = re.compile(r"^https?://", re.IGNORECASE)


def _strings(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, list):
        return [entry.strip() for entry in value if isinstance(entry, str) and entry.strip()]
    return []


def check_paths(check: dict[str, Any]) -> list[str]:
    """files ∪ globs ∪ every token of the comma separated legacy detail."""
    paths = _strings(check.get("files")) + _strings(check.get("globs"))
    detail = check.get("detail")
    if isinstance(detail, str):
        paths.extend(token.strip() for token in detail.split(",") if token.strip())
    seen: set[str] = set()
    ordered: list[str] = []
    for path in paths:
        if path and path not in seen:
            seen.add(path)
            ordered.append(path)
    return ordered


def check_query(check: dict[str, Any]) -> str | None:
    for candidate in (check.get("query"), check.get("queries"), check.get("detail")):
        values = _strings(candidate)
        if values:
            return values[0]
    return None


def check_url(check: dict[str, Any]) -> str | None:
    url = check.get("url")
    if isinstance(url, str) and url.strip():
        return url.strip()
    detail = check.get("detail")
    if isinstance(detail, str) and _URL_PREFIX.match(detail.strip()):
        return detail.strip()
    return None


class CheckExecutor:
    """Runs one check against live state and reports pass, fail or skip.

    Failures never escape `run`: transport problems become `fail` with the
    error message, unknown kinds and missing verifier configuration become
    `skip` with an explanatory note.
    """

    def __init__(
        self,
        content_source: ContentSource,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        fallback_verifier_url: str | None = None,
        verifier_headers: dict[str, str] | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._content = content_source
        self._timeout = timeout_seconds if timeout_seconds and timeout_seconds > 0 else DEFAULT_TIMEOUT_SECONDS
        self._fallback_verifier_url = fallback_verifier_url
        self._verifier_headers = dict(verifier_headers or {})
        self._user_agent = user_agent or DEFAULT_USER_AGENT
        self._listings: dict[tuple[str, str, str], list[str]] = {}
        self._listing_lock = threading.Lock()
        self._handlers: dict[str, Callable[[dict[str, Any], CheckContext], CheckResult]] = {
            "files_exist": self._files_exist,
            "http_ok": self._http_ok,
            "sql_exists": self._sql_exists,
        }

    def run(self, check: dict[str, Any], context: CheckContext) -> CheckResult:
        kind = str(check.get("type") or "").strip() if isinstance(check, dict) else ""
        handler = self._handlers.get(kind)
        if handler is None:
            result = CheckResult(CheckStatus.SKIP, str(UnknownCheckKind(kind)))
        else:
            try:
                result = handler(check, context)
            except CheckTransportError as exc:
                logger.warning("check transport failure repo=%s/%s kind=%s error=%s", context.owner, context.repo, kind, exc)
                result = CheckResult(CheckStatus.FAIL, str(exc))
        logger.debug("check repo=%s/%s kind=%s status=%s note=%s", context.owner, context.repo, kind, result.status.value, result.note)
        return result

    def _listing(self, context: CheckContext) -> list[str]:
        key = (context.owner, context.repo, context.ref)
        with self._listing_lock:
            if key not in self._listings:
                self._listings[key] = self._content.list_paths(context.owner, context.repo, context.ref, context.credential)
            return self._listings[key]

    def _path_present(self, path: str, context: CheckContext) -> bool:
        if _GLOB_CHARS.search(path):
            pattern = path.lstrip("/")
            return any(fnmatch.fnmatchcase(candidate, pattern) for candidate in self._listing(context))
        return self._content.file_exists(context.owner, context.repo, path, context.ref, context.credential)

    def _files_exist(self, check: dict[str, Any], context: CheckContext) -> CheckResult:
        paths = check_paths(check)
        if not paths:
            return CheckResult(CheckStatus.SKIP, "no paths provided")
        for path in paths:
            if not self._path_present(path, context):
                return CheckResult(CheckStatus.FAIL, f"missing: {path}")
        return CheckResult(CheckStatus.PASS, f"{len(paths)} file(s) present")

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        send = requests.post if method == "POST" else requests.get
        try:
            return send(url, timeout=self._timeout, **kwargs)
        except requests.Timeout as exc:
            raise CheckTransportError(f"timeout after {self._timeout:g}s") from exc
        except requests.RequestException as exc:
            raise CheckTransportError(str(exc) or exc.__class__.__name__) from exc

    def _http_ok(self, check: dict[str, Any], context: CheckContext) -> CheckResult:
        url = check_url(check)
        if not url:
            return CheckResult(CheckStatus.SKIP, "no url")
        response = self._request(
            "GET",
            url,
            headers={"Cache-Control": "no-cache", "Pragma": "no-cache", "User-Agent": self._user_agent},
        )
        if not 200 <= response.status_code < 300:
            return CheckResult(CheckStatus.FAIL, f"HTTP {response.status_code}")
        body = response.text or ""
        missing = [needle for needle in _strings(check.get("must_match")) if needle not in body]
        if missing:
            return CheckResult(CheckStatus.FAIL, f"missing substrings: {', '.join(missing)}")
        return CheckResult(CheckStatus.PASS, f"HTTP {response.status_code}")

    def _sql_exists(self, check: dict[str, Any], context: CheckContext) -> CheckResult:
        verifier_url = resolve_verifier_url(context.verifier_url, self._fallback_verifier_url, rc=context.rc)
        if not verifier_url:
            return CheckResult(CheckStatus.SKIP, str(MissingVerifierConfiguration()))
        query = check_query(check)
        if not query:
            return CheckResult(CheckStatus.SKIP, "no query")

        headers = {"Content-Type": "application/json", "User-Agent": self._user_agent}
        headers.update(self._verifier_headers)
        headers.update(context.verifier_headers)
        response = self._request("POST", verifier_url, json={"query": query}, headers=headers)
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        passed, error = interpret_response(response.status_code, payload)
        if passed:
            return CheckResult(CheckStatus.PASS, "ok")
        return CheckResult(CheckStatus.FAIL, error)
