from __future__ import annotations

import pytest

from core.memory.schema import create_session_factory
from core.roadmap.ingestion import ALREADY_PROCESSED, NEEDS_RUN, STALE_UPDATE, CommitMetadata
from core.services.ingestion_state_service import (
    delete_state,
    get_state,
    handle_manual_edit,
    list_states,
    record_commit,
    record_manual_edit,
    record_run_complete,
)


@pytest.fixture
def session(tmp_path):
    factory = create_session_factory(f"sqlite:///{tmp_path / 'ingestion.db'}")
    session = factory()
    try:
        yield session
    finally:
        session.close()


def test_missing_state_is_synthesized(session) -> None:
    state = get_state(session, "Acme", "Widgets")

    assert state["owner"] == "acme"
    assert state["repo"] == "widgets"
    assert state["project_id"] == ""
    assert state["last_commit_sha"] is None
    assert list_states(session) == []


def test_record_commit_keeps_manual_fields(session) -> None:
    record_manual_edit(session, "acme", "widgets", None, "2024-05-01T10:00:00Z")

    state = record_commit(
        session,
        "acme",
        "widgets",
        None,
        CommitMetadata("abc123", message="update roadmap", author="dev", paths=["docs/roadmap.yml", "docs/roadmap.yml"]),
    )

    assert state["last_commit_sha"] == "abc123"
    assert state["last_commit_message"] == "update roadmap"
    assert state["last_commit_paths"] == ["docs/roadmap.yml"]
    assert state["last_manual_state_at"] == "2024-05-01T10:00:00Z"
    assert state["updated_at"] is not None


def test_record_commit_requires_sha(session) -> None:
    with pytest.raises(ValueError):
        record_commit(session, "acme", "widgets", None, CommitMetadata(None))


def test_run_complete_clears_needs_run(session) -> None:
    record_commit(session, "acme", "widgets", None, CommitMetadata("abc123"))
    record_manual_edit(session, "acme", "widgets", None, "2024-05-01T10:00:00Z")

    state = record_run_complete(
        session,
        "acme",
        "widgets",
        None,
        commit_sha="abc123",
        manual_state_at="2024-05-01T10:00:00Z",
        run_at="2024-05-01T10:05:00Z",
    )

    assert state["last_run_sha"] == "abc123"
    assert state["last_run_at"] == "2024-05-01T10:05:00Z"
    assert state["last_commit_sha"] == "abc123"


def test_projects_are_tracked_separately(session) -> None:
    record_commit(session, "acme", "widgets", None, CommitMetadata("root-sha"))
    record_commit(session, "acme", "widgets", "web", CommitMetadata("web-sha"))
    record_commit(session, "other", "repo", None, CommitMetadata("other-sha"))

    states = list_states(session, owner="ACME")

    assert [(state["project_id"], state["last_commit_sha"]) for state in states] == [("", "root-sha"), ("web", "web-sha")]
    assert len(list_states(session)) == 3


def test_handle_manual_edit_decisions(session) -> None:
    first = handle_manual_edit(session, "acme", "widgets", None, "2024-05-01T10:00:00Z")
    assert first["decision"] == NEEDS_RUN
    assert first["needs_run"] is True
    assert first["up_to_date"] is False

    record_run_complete(session, "acme", "widgets", None, commit_sha=None, manual_state_at="2024-05-01T10:00:00Z")

    repeat = handle_manual_edit(session, "acme", "widgets", None, "2024-05-01T10:00:00Z")
    assert repeat["decision"] == ALREADY_PROCESSED
    assert repeat["needs_run"] is False
    assert repeat["up_to_date"] is True


def test_stale_manual_edit_does_not_move_ledger_backwards(session) -> None:
    handle_manual_edit(session, "acme", "widgets", None, "2024-05-01T10:00:00Z")
    record_run_complete(session, "acme", "widgets", None, commit_sha=None, manual_state_at="2024-05-01T10:00:00Z")

    stale = handle_manual_edit(session, "acme", "widgets", None, "2024-05-01T09:00:00Z")

    assert stale["decision"] == STALE_UPDATE
    assert stale["state"]["last_manual_state_at"] == "2024-05-01T10:00:00Z"
    assert get_state(session, "acme", "widgets")["last_manual_state_at"] == "2024-05-01T10:00:00Z"


def test_delete_state(session) -> None:
    record_commit(session, "acme", "widgets", None, CommitMetadata("abc"))

    assert delete_state(session, "acme", "widgets") is True
    assert delete_state(session, "acme", "widgets") is False
    assert get_state(session, "acme", "widgets")["last_commit_sha"] is None
