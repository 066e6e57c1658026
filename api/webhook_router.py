from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Header, HTTPException, Request

from api.config import settings
from api.roadmap_errors import to_http_exception
from core.memory.schema import create_session_factory
from core.roadmap.ingestion import CommitMetadata, normalize_paths
from core.roadmap.keys import infer_projects_from_paths
from core.services.ingestion_state_service import record_commit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhook"])
session_factory = create_session_factory(settings.db_path)


def _changed_paths(payload: dict[str, Any]) -> list[str]:
    commits = payload.get("commits") if isinstance(payload.get("commits"), list) else []
    head = payload.get("head_commit")
    paths: list[str] = []
    for commit in [*commits, head]:
        if not isinstance(commit, dict):
            continue
        for field_name in ("added", "modified", "removed"):
            values = commit.get(field_name)
            if isinstance(values, list):
                paths.extend(value for value in values if isinstance(value, str))
    return normalize_paths(paths)


def _commit_metadata(payload: dict[str, Any], paths: list[str]) -> CommitMetadata:
    head = payload.get("head_commit") if isinstance(payload.get("head_commit"), dict) else {}
    author = head.get("author") if isinstance(head.get("author"), dict) else {}
    return CommitMetadata(
        sha=str(head.get("id") or payload.get("after") or "").strip() or None,
        message=head.get("message") if isinstance(head.get("message"), str) else None,
        author=author.get("username") or author.get("name"),
        url=head.get("url") if isinstance(head.get("url"), str) else None,
        committed_at=head.get("timestamp") if isinstance(head.get("timestamp"), str) else None,
        paths=paths,
    )


def _repository(payload: dict[str, Any]) -> tuple[str, str]:
    repository = payload.get("repository") if isinstance(payload.get("repository"), dict) else {}
    owner = repository.get("owner") if isinstance(repository.get("owner"), dict) else {}
    owner_name = str(owner.get("login") or owner.get("name") or "").strip()
    repo_name = str(repository.get("name") or "").strip()
    if (not owner_name or not repo_name) and isinstance(repository.get("full_name"), str):
        owner_name, _, repo_name = repository["full_name"].partition("/")
    return owner_name, repo_name


@router.post("/github")
async def github_webhook(request: Request, x_github_event: str | None = Header(default=None)):
    event = (x_github_event or "unknown").strip().lower()
    if event == "ping":
        return {"ok": True, "ping": True}
    if event != "push":
        return {"ok": True, "skipped": True, "reason": f"ignored_event:{event}"}

    try:
        payload = await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="invalid_json") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="invalid_payload")

    owner, repo = _repository(payload)
    if not owner or not repo:
        return {"ok": True, "skipped": True, "reason": "missing_repo"}

    paths = _changed_paths(payload)
    projects = infer_projects_from_paths(paths)
    if not projects:
        return {"ok": True, "skipped": True, "reason": "no_roadmap_changes"}

    meta = _commit_metadata(payload, paths)
    if not meta.sha:
        return {"ok": True, "skipped": True, "reason": "missing_sha"}

    session = session_factory()
    try:
        for project in projects:
            record_commit(session, owner, repo, project, meta)
        logger.info("push recorded owner=%s repo=%s projects=%s sha=%s", owner, repo, projects, meta.sha)
        return {"ok": True, "owner": owner.lower(), "repo": repo.lower(), "projects": projects, "sha": meta.sha}
    except HTTPException:
        raise
    except Exception as exc:
        raise to_http_exception(exc) from exc
    finally:
        session.close()
