from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from core.memory.schema import RoadmapStatusSnapshot
from core.roadmap.ingestion import utc_now_iso
from core.services.record_store import record_key, storage_guard


def _serialize(row: RoadmapStatusSnapshot) -> dict[str, Any]:
    return {
        "owner": row.owner,
        "repo": row.repo,
        "project": row.project_id,
        "branch": row.branch,
        "commit_sha": row.commit_sha,
        "source": row.source,
        "generated_at": row.generated_at,
        "document": row.payload if isinstance(row.payload, dict) else {"weeks": []},
    }


def store_snapshot(
    session: Session,
    owner: str,
    repo: str,
    project: str | None,
    branch: str,
    document: dict[str, Any],
    *,
    commit_sha: str | None = None,
    source: str = "live",
    generated_at: str | None = None,
) -> dict[str, Any]:
    owner_key, repo_key, project_id = record_key(owner, repo, project)
    row = RoadmapStatusSnapshot(
        owner=owner_key,
        repo=repo_key,
        project_id=project_id,
        branch=branch,
        commit_sha=commit_sha,
        source=source,
        payload=document,
        generated_at=generated_at or utc_now_iso(),
    )
    with storage_guard(session, "store status snapshot"):
        session.add(row)
        session.commit()
        return _serialize(row)


def latest_snapshot(
    session: Session,
    owner: str,
    repo: str,
    project: str | None = None,
    branch: str | None = None,
) -> dict[str, Any] | None:
    owner_key, repo_key, project_id = record_key(owner, repo, project)
    with storage_guard(session, "load status snapshot"):
        query = session.query(RoadmapStatusSnapshot).filter(
            RoadmapStatusSnapshot.owner == owner_key,
            RoadmapStatusSnapshot.repo == repo_key,
            RoadmapStatusSnapshot.project_id == project_id,
        )
        if branch:
            query = query.filter(RoadmapStatusSnapshot.branch == branch)
        row = query.order_by(RoadmapStatusSnapshot.id.desc()).first()
    return _serialize(row) if row is not None else None
