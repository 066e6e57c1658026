from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from api.config import settings
from api.roadmap_errors import to_http_exception
from core.memory.schema import create_session_factory
from core.roadmap.content_source import ContentSource, GitHubContentSource
from core.roadmap.enrichment import summarize_document
from core.roadmap.verifier import parse_probe_headers
from core.services.roadmap_resolution_service import RoadmapResolutionService
from core.services.record_store import record_key
from core.services.status_snapshot_service import latest_snapshot

router = APIRouter(tags=["status"])
session_factory = create_session_factory(settings.db_path)
content_source: ContentSource = GitHubContentSource(
    timeout_seconds=settings.check_timeout_seconds,
    user_agent=settings.user_agent,
)


class RunRequest(BaseModel):
    owner: str = Field(min_length=1, max_length=255)
    repo: str = Field(min_length=1, max_length=255)
    project: str | None = Field(default=None, max_length=128)
    branch: str | None = Field(default=None, max_length=255)
    force: bool = False


def build_resolution_service() -> RoadmapResolutionService:
    return RoadmapResolutionService(
        content_source,
        default_branch=settings.default_branch,
        timeout_seconds=settings.check_timeout_seconds,
        fallback_verifier_url=settings.read_only_checks_url or None,
        verifier_headers=parse_probe_headers(settings.read_only_checks_headers),
        user_agent=settings.user_agent,
        max_concurrency=settings.check_max_concurrency,
    )


def _with_summary(snapshot: dict[str, Any]) -> dict[str, Any]:
    return {**snapshot, "summary": summarize_document(snapshot["document"])}


@router.get("/status-live/{owner}/{repo}")
def status_live(owner: str, repo: str, project: str | None = None, branch: str | None = None):
    try:
        record_key(owner, repo, project)
        resolution = build_resolution_service().resolve(
            owner,
            repo,
            project=project,
            branch=branch,
            credential=settings.github_token or None,
        )
        return {"ok": True, **resolution.as_dict()}
    except HTTPException:
        raise
    except Exception as exc:
        raise to_http_exception(exc) from exc


@router.post("/run")
def run_roadmap(payload: RunRequest):
    session = session_factory()
    try:
        snapshot = build_resolution_service().run(
            session,
            payload.owner,
            payload.repo,
            project=payload.project,
            branch=payload.branch,
            credential=settings.github_token or None,
            force=payload.force,
        )
        return {"ok": True, **_with_summary(snapshot)}
    except HTTPException:
        raise
    except Exception as exc:
        raise to_http_exception(exc) from exc
    finally:
        session.close()


@router.get("/status/{owner}/{repo}")
async def stored_status(owner: str, repo: str, project: str | None = None, branch: str | None = None):
    session = session_factory()
    try:
        snapshot = latest_snapshot(session, owner, repo, project, branch)
        if snapshot is None:
            raise HTTPException(status_code=404, detail="snapshot_not_found")
        return {"ok": True, **_with_summary(snapshot)}
    except HTTPException:
        raise
    except Exception as exc:
        raise to_http_exception(exc) from exc
    finally:
        session.close()
