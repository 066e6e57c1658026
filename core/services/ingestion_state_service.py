from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from core.memory.schema import RoadmapIngestionState
from core.roadmap.ingestion import (
    NEEDS_RUN,
    CommitMetadata,
    compare_timestamps,
    empty_state,
    is_up_to_date,
    manual_edit_decision,
    merge_state,
    normalize_paths,
    utc_now_iso,
)
from core.roadmap.schema import INGESTION_FIELDS
from core.services.record_store import record_key, storage_guard

logger = logging.getLogger(__name__)


def _find_row(session: Session, owner: str, repo: str, project_id: str) -> RoadmapIngestionState | None:
    return (
        session.query(RoadmapIngestionState)
        .filter(
            RoadmapIngestionState.owner == owner,
            RoadmapIngestionState.repo == repo,
            RoadmapIngestionState.project_id == project_id,
        )
        .one_or_none()
    )


def _row_to_state(row: RoadmapIngestionState) -> dict[str, Any]:
    state = empty_state(row.owner, row.repo, row.project_id)
    for name in INGESTION_FIELDS:
        value = getattr(row, name)
        if name == "last_commit_paths":
            state[name] = normalize_paths(value)
        elif isinstance(value, str):
            state[name] = value
    return state


def get_state(session: Session, owner: str, repo: str, project: str | None = None) -> dict[str, Any]:
    owner_key, repo_key, project_id = record_key(owner, repo, project)
    with storage_guard(session, "load ingestion state"):
        row = _find_row(session, owner_key, repo_key, project_id)
    if row is None:
        return empty_state(owner_key, repo_key, project_id)
    return _row_to_state(row)


def list_states(session: Session, owner: str | None = None, repo: str | None = None) -> list[dict[str, Any]]:
    with storage_guard(session, "list ingestion state"):
        query = session.query(RoadmapIngestionState)
        if owner:
            query = query.filter(RoadmapIngestionState.owner == owner.strip().lower())
        if repo:
            query = query.filter(RoadmapIngestionState.repo == repo.strip().lower())
        rows = query.order_by(
            RoadmapIngestionState.owner,
            RoadmapIngestionState.repo,
            RoadmapIngestionState.project_id,
        ).all()
    return [_row_to_state(row) for row in rows]


def _patch(session: Session, owner: str, repo: str, project: str | None, patch: dict[str, Any]) -> dict[str, Any]:
    """load -> merge-patch -> store; only the patched columns are written."""
    owner_key, repo_key, project_id = record_key(owner, repo, project)
    with storage_guard(session, "update ingestion state"):
        row = _find_row(session, owner_key, repo_key, project_id)
        if row is None:
            row = RoadmapIngestionState(owner=owner_key, repo=repo_key, project_id=project_id, last_commit_paths=[])
            session.add(row)
        merged = merge_state(_row_to_state(row), {**patch, "updated_at": utc_now_iso()})
        for name in patch.keys() | {"updated_at"}:
            if name in INGESTION_FIELDS:
                setattr(row, name, merged[name])
        session.commit()
        state = _row_to_state(row)
    return state


def record_commit(session: Session, owner: str, repo: str, project: str | None, meta: CommitMetadata) -> dict[str, Any]:
    if not meta.sha:
        raise ValueError("commit sha is required")
    state = _patch(session, owner, repo, project, meta.as_patch())
    logger.info("commit recorded owner=%s repo=%s project=%s sha=%s", state["owner"], state["repo"], state["project_id"], meta.sha)
    return state


def record_manual_edit(session: Session, owner: str, repo: str, project: str | None, updated_at: str | None = None) -> dict[str, Any]:
    return _patch(session, owner, repo, project, {"last_manual_state_at": updated_at or utc_now_iso()})


def record_run_complete(
    session: Session,
    owner: str,
    repo: str,
    project: str | None,
    *,
    commit_sha: str | None,
    manual_state_at: str | None,
    run_at: str | None = None,
) -> dict[str, Any]:
    return _patch(
        session,
        owner,
        repo,
        project,
        {
            "last_run_sha": commit_sha,
            "last_run_manual_state_at": manual_state_at,
            "last_run_at": run_at or utc_now_iso(),
        },
    )


def delete_state(session: Session, owner: str, repo: str, project: str | None = None) -> bool:
    owner_key, repo_key, project_id = record_key(owner, repo, project)
    with storage_guard(session, "delete ingestion state"):
        row = _find_row(session, owner_key, repo_key, project_id)
        if row is None:
            return False
        session.delete(row)
        session.commit()
    return True


def handle_manual_edit(session: Session, owner: str, repo: str, project: str | None, updated_at: str | None = None) -> dict[str, Any]:
    """Record an overlay edit and report whether a resolution pass is needed."""
    timestamp = updated_at or utc_now_iso()
    before = get_state(session, owner, repo, project)
    decision = manual_edit_decision(before, timestamp)
    if compare_timestamps(timestamp, before.get("last_manual_state_at")) >= 0:
        state = record_manual_edit(session, owner, repo, project, timestamp)
    else:
        # an older edit must not move the ledger backwards
        logger.info("ignoring stale manual edit owner=%s repo=%s at=%s", before["owner"], before["repo"], timestamp)
        state = before
    return {
        "decision": decision,
        "needs_run": decision == NEEDS_RUN,
        "updated_at": timestamp,
        "up_to_date": is_up_to_date(state),
        "state": state,
    }
