from __future__ import annotations

import pytest

from core.roadmap.ingestion import (
    ALREADY_PROCESSED,
    NEEDS_RUN,
    STALE_UPDATE,
    CommitMetadata,
    compare_timestamps,
    empty_state,
    is_up_to_date,
    manual_edit_decision,
    merge_state,
    needs_run,
    parse_timestamp,
)


def test_empty_state_is_up_to_date() -> None:
    state = empty_state("acme", "widgets", "")

    assert state["owner"] == "acme"
    assert state["project_id"] == ""
    assert state["last_commit_sha"] is None
    assert state["last_commit_paths"] == []
    assert is_up_to_date(state)


def test_new_commit_needs_run_until_recorded() -> None:
    state = merge_state(empty_state("acme", "widgets", ""), CommitMetadata("abc123", paths=["docs/roadmap.yml"]).as_patch())

    assert needs_run(state)

    state = merge_state(state, {"last_run_sha": "abc123"})
    assert is_up_to_date(state)


def test_manual_edit_marks_stale_until_run_covers_it() -> None:
    state = merge_state(empty_state("acme", "widgets", ""), {"last_manual_state_at": "2024-05-01T10:00:00Z"})

    assert needs_run(state)
    assert is_up_to_date(merge_state(state, {"last_run_manual_state_at": "2024-05-01T10:00:00Z"}))


def test_merge_state_ignores_unknown_fields_and_cleans_paths() -> None:
    merged = merge_state(
        empty_state("acme", "widgets", ""),
        {"owner": "evil", "bogus": 1, "last_commit_paths": [" a.md ", "a.md", 3, "b.md"]},
    )

    assert merged["owner"] == "acme"
    assert "bogus" not in merged
    assert merged["last_commit_paths"] == ["a.md", "b.md"]


def test_commit_patch_leaves_manual_fields_alone() -> None:
    patch = CommitMetadata("abc", message="msg", author="dev", url="https://x", committed_at="2024-01-01T00:00:00Z").as_patch()

    assert set(patch) == {
        "last_commit_sha",
        "last_commit_message",
        "last_commit_author",
        "last_commit_url",
        "last_commit_at",
        "last_commit_paths",
    }


def test_parse_timestamp_accepts_z_and_naive_values() -> None:
    assert parse_timestamp("2024-05-01T10:00:00Z") == parse_timestamp("2024-05-01T10:00:00+00:00")
    assert parse_timestamp("2024-05-01T10:00:00").tzinfo is not None
    assert parse_timestamp("not a time") is None
    assert parse_timestamp(None) is None


@pytest.mark.parametrize(
    ("left", "right", "expected"),
    [
        ("2024-05-01T10:00:00Z", "2024-05-01T09:00:00Z", 1),
        ("2024-05-01T09:00:00Z", "2024-05-01T10:00:00Z", -1),
        ("2024-05-01T12:00:00+02:00", "2024-05-01T10:00:00Z", 0),
        (None, None, 0),
        (None, "2024-05-01T10:00:00Z", -1),
        ("2024-05-01T10:00:00Z", None, 1),
        ("garbage", "2024-05-01T10:00:00Z", -1),
    ],
)
def test_compare_timestamps(left, right, expected) -> None:
    assert compare_timestamps(left, right) == expected


def test_manual_edit_decision() -> None:
    before = merge_state(empty_state("acme", "widgets", ""), {"last_run_manual_state_at": "2024-05-01T10:00:00Z"})

    assert manual_edit_decision(before, "2024-05-01T10:00:00Z") == ALREADY_PROCESSED
    assert manual_edit_decision(before, "2024-05-01T11:00:00Z") == NEEDS_RUN
    assert manual_edit_decision(before, "2024-05-01T09:00:00Z") == STALE_UPDATE
    assert manual_edit_decision(empty_state("acme", "widgets", ""), "2024-05-01T09:00:00Z") == NEEDS_RUN
