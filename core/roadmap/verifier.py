from __future__ import annotations

import json
import re
from typing import Any


SYMBOL_PATTERN = re.compile(
    r"^(ext:[a-z0-9_]+"
    r"|table:[a-z0-9_]+:[a-z0-9_]+"
    r"|rls:[a-z0-9_]+:[a-z0-9_]+"
    r"|policy:[a-z0-9_]+:[a-z0-9_]+:[a-z0-9_]+)$"
)
RC_ENVIRONMENTS = ("dev", "prod")
_PAIR_SEPARATORS = re.compile(r"[\n;,]+")


def is_valid_symbol(query: Any) -> bool:
    return isinstance(query, str) and bool(SYMBOL_PATTERN.match(query.strip()))


def parse_probe_headers(raw: Any) -> dict[str, str]:
    """Extra headers for the invariant verifier.

    Accepts a mapping, a JSON object string, or `key: value` pairs separated
    by newlines, semicolons or commas. Anything unparseable yields no headers.
    """
    if isinstance(raw, dict):
        headers: dict[str, str] = {}
        for key, value in raw.items():
            if isinstance(value, str) and value.strip() and str(key).strip():
                headers[str(key).strip()] = value.strip()
        return headers
    if not isinstance(raw, str) or not raw.strip():
        return {}

    text = raw.strip()
    try:
        parsed = json.loads(text)
    except ValueError:
        parsed = None
    if parsed is not None:
        return parse_probe_headers(parsed)

    headers = {}
    for pair in _PAIR_SEPARATORS.split(text):
        key, sep, value = pair.partition(":")
        if sep and key.strip() and value.strip():
            headers[key.strip()] = value.strip()
    return headers


def verifier_url_from_rc(rc: Any) -> str | None:
    if not isinstance(rc, dict):
        return None
    envs = rc.get("envs")
    if not isinstance(envs, dict):
        return None
    for env_name in RC_ENVIRONMENTS:
        env = envs.get(env_name)
        if isinstance(env, dict):
            value = env.get("READ_ONLY_CHECKS_URL")
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


def resolve_verifier_url(*candidates: Any, rc: Any = None) -> str | None:
    for candidate in candidates:
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return verifier_url_from_rc(rc)


def interpret_response(status_code: int, payload: Any) -> tuple[bool, str | None]:
    """Map a verifier response to (passed, error)."""
    body = payload if isinstance(payload, dict) else {}
    if 200 <= status_code < 300 and (body.get("ok") is True or body.get("exists") is True):
        return True, None
    error = body.get("error")
    if isinstance(error, str) and error.strip():
        return False, f"verifier returned {status_code}: {error.strip()}"
    return False, f"verifier returned {status_code}"
