from __future__ import annotations

import pytest

from core.roadmap.verifier import (
    interpret_response,
    is_valid_symbol,
    parse_probe_headers,
    resolve_verifier_url,
    verifier_url_from_rc,
)


@pytest.mark.parametrize(
    ("query", "expected"),
    [
        ("ext:pgcrypto", True),
        ("table:public:users", True),
        ("rls:public:users", True),
        ("policy:public:users:owner_read", True),
        ("table:public", False),
        ("EXT:pgcrypto", False),
        ("ext:pg-crypto", False),
        ("select 1", False),
        (None, False),
    ],
)
def test_is_valid_symbol(query, expected) -> None:
    assert is_valid_symbol(query) is expected


def test_parse_probe_headers_from_json_and_pairs() -> None:
    assert parse_probe_headers('{"apikey": "abc", "x-count": 3}') == {"apikey": "abc"}
    assert parse_probe_headers("apikey: abc; Authorization: Bearer t\nbroken") == {
        "apikey": "abc",
        "Authorization": "Bearer t",
    }
    assert parse_probe_headers({" apikey ": " abc "}) == {"apikey": "abc"}


@pytest.mark.parametrize("raw", [None, "", "   ", "no separator here", "[1, 2]", 42])
def test_parse_probe_headers_ignores_unusable_values(raw) -> None:
    assert parse_probe_headers(raw) == {}


def test_verifier_url_from_rc_prefers_dev() -> None:
    rc = {"envs": {"prod": {"READ_ONLY_CHECKS_URL": "https://prod"}, "dev": {"READ_ONLY_CHECKS_URL": "https://dev"}}}

    assert verifier_url_from_rc(rc) == "https://dev"
    assert verifier_url_from_rc({"envs": {"prod": {"READ_ONLY_CHECKS_URL": "https://prod"}}}) == "https://prod"
    assert verifier_url_from_rc({"envs": "nope"}) is None
    assert verifier_url_from_rc(None) is None


def test_resolve_verifier_url_order() -> None:
    rc = {"envs": {"dev": {"READ_ONLY_CHECKS_URL": "https://dev"}}}

    assert resolve_verifier_url(None, " ", "https://settings", rc=rc) == "https://settings"
    assert resolve_verifier_url(None, rc=rc) == "https://dev"
    assert resolve_verifier_url(None) is None


@pytest.mark.parametrize(
    ("status", "payload", "expected"),
    [
        (200, {"ok": True}, (True, None)),
        (200, {"exists": True}, (True, None)),
        (200, {"ok": False, "error": "no such table"}, (False, "verifier returned 200: no such table")),
        (500, {"ok": True}, (False, "verifier returned 500")),
        (404, None, (False, "verifier returned 404")),
    ],
)
def test_interpret_response(status, payload, expected) -> None:
    assert interpret_response(status, payload) == expected
