from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from core.memory.schema import RoadmapManualState
from core.roadmap.ingestion import utc_now_iso
from core.roadmap.overlay import apply_overlay_edit, overlay_is_empty, sanitize_overlay
from core.roadmap.schema import ManualOverlay
from core.services.record_store import record_key, storage_guard

logger = logging.getLogger(__name__)


def _find_row(session: Session, owner: str, repo: str, project_id: str) -> RoadmapManualState | None:
    return (
        session.query(RoadmapManualState)
        .filter(
            RoadmapManualState.owner == owner,
            RoadmapManualState.repo == repo,
            RoadmapManualState.project_id == project_id,
        )
        .one_or_none()
    )


def load_overlay(session: Session, owner: str, repo: str, project: str | None = None) -> ManualOverlay:
    owner_key, repo_key, project_id = record_key(owner, repo, project)
    with storage_guard(session, "load overlay"):
        row = _find_row(session, owner_key, repo_key, project_id)
    if row is None:
        return {}
    return sanitize_overlay(row.state)


def save_overlay(
    session: Session,
    owner: str,
    repo: str,
    project: str | None,
    overlay: Any,
    *,
    updated_at: str | None = None,
) -> ManualOverlay:
    """Replace the stored overlay; an overlay that sanitizes to empty is deleted."""
    owner_key, repo_key, project_id = record_key(owner, repo, project)
    state = sanitize_overlay(overlay)
    with storage_guard(session, "save overlay"):
        row = _find_row(session, owner_key, repo_key, project_id)
        if overlay_is_empty(state):
            if row is not None:
                session.delete(row)
                logger.info("overlay cleared owner=%s repo=%s project=%s", owner_key, repo_key, project_id)
        else:
            if row is None:
                row = RoadmapManualState(owner=owner_key, repo=repo_key, project_id=project_id)
                session.add(row)
            row.state = state
            row.updated_at = updated_at or utc_now_iso()
        session.commit()
    return state


def edit_overlay(
    session: Session,
    owner: str,
    repo: str,
    project: str | None,
    week_key: str,
    action: str,
    *,
    key: str,
    name: str | None = None,
    note: str | None = None,
    done: bool | None = None,
    updated_at: str | None = None,
) -> ManualOverlay:
    current = load_overlay(session, owner, repo, project)
    updated = apply_overlay_edit(current, week_key, action, key=key, name=name, note=note, done=done)
    return save_overlay(session, owner, repo, project, updated, updated_at=updated_at)


def delete_overlay(session: Session, owner: str, repo: str, project: str | None = None) -> bool:
    owner_key, repo_key, project_id = record_key(owner, repo, project)
    with storage_guard(session, "delete overlay"):
        row = _find_row(session, owner_key, repo_key, project_id)
        if row is None:
            return False
        session.delete(row)
        session.commit()
    return True
