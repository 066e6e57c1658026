from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from core.roadmap.schema import INGESTION_FIELDS

ALREADY_PROCESSED = "already_processed"
STALE_UPDATE = "stale_update"
NEEDS_RUN = "needs_run"


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


@dataclass
class CommitMetadata:
    sha: str | None
    message: str | None = None
    author: str | None = None
    url: str | None = None
    committed_at: str | None = None
    paths: list[str] = field(default_factory=list)

    def as_patch(self) -> dict[str, Any]:
        return {
            "last_commit_sha": self.sha,
            "last_commit_message": self.message,
            "last_commit_author": self.author,
            "last_commit_url": self.url,
            "last_commit_at": self.committed_at,
            "last_commit_paths": normalize_paths(self.paths),
        }


def normalize_paths(paths: Any) -> list[str]:
    if not isinstance(paths, list):
        return []
    ordered: list[str] = []
    for entry in paths:
        if isinstance(entry, str) and entry.strip() and entry.strip() not in ordered:
            ordered.append(entry.strip())
    return ordered


def empty_state(owner: str, repo: str, project: str) -> dict[str, Any]:
    state: dict[str, Any] = {"owner": owner, "repo": repo, "project_id": project}
    for name in INGESTION_FIELDS:
        state[name] = None
    state["last_commit_paths"] = []
    return state


def merge_state(current: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Field-by-field merge; only known fields present in `patch` change."""
    merged = dict(current)
    for name, value in patch.items():
        if name not in INGESTION_FIELDS:
            continue
        merged[name] = normalize_paths(value) if name == "last_commit_paths" else value
    return merged


def is_up_to_date(state: dict[str, Any]) -> bool:
    # absent values match absent values
    return (
        state.get("last_run_sha") == state.get("last_commit_sha")
        and state.get("last_run_manual_state_at") == state.get("last_manual_state_at")
    )


def needs_run(state: dict[str, Any]) -> bool:
    return not is_up_to_date(state)


def parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def compare_timestamps(left: Any, right: Any) -> int:
    """-1, 0 or 1; a missing or unparseable side sorts first."""
    left_time = parse_timestamp(left) if left else None
    right_time = parse_timestamp(right) if right else None
    if not left and not right:
        return 0
    if not left:
        return -1
    if not right:
        return 1
    if left_time is None and right_time is None:
        return 0
    if left_time is None:
        return -1
    if right_time is None:
        return 1
    if left_time == right_time:
        return 0
    return 1 if left_time > right_time else -1


def manual_edit_decision(before: dict[str, Any], updated_at: str) -> str:
    covered = before.get("last_run_manual_state_at")
    if covered == updated_at:
        return ALREADY_PROCESSED
    if compare_timestamps(updated_at, covered) > 0:
        return NEEDS_RUN
    return STALE_UPDATE
