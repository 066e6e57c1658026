from __future__ import annotations

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from api.config import settings
from api.roadmap_errors import to_http_exception
from core.memory.schema import create_session_factory
from core.roadmap.ingestion import CommitMetadata, is_up_to_date
from core.services.ingestion_state_service import (
    delete_state,
    get_state,
    handle_manual_edit,
    list_states,
    record_commit,
    record_run_complete,
)

router = APIRouter(prefix="/ingestion", tags=["ingestion"])
session_factory = create_session_factory(settings.db_path)


class CommitRequest(BaseModel):
    sha: str = Field(min_length=1, max_length=64)
    message: str | None = None
    author: str | None = Field(default=None, max_length=255)
    url: str | None = None
    committed_at: str | None = Field(default=None, max_length=64)
    paths: list[str] = Field(default_factory=list)


class ManualEditRequest(BaseModel):
    updated_at: str | None = Field(default=None, max_length=64)


class RunCompleteRequest(BaseModel):
    commit_sha: str | None = Field(default=None, max_length=64)
    manual_state_at: str | None = Field(default=None, max_length=64)
    run_at: str | None = Field(default=None, max_length=64)


def _state_response(state: dict) -> dict:
    return {"ok": True, "state": state, "up_to_date": is_up_to_date(state)}


@router.get("")
async def list_ingestion_states(owner: str | None = None, repo: str | None = None):
    session = session_factory()
    try:
        states = list_states(session, owner, repo)
        return {"ok": True, "items": [{**state, "up_to_date": is_up_to_date(state)} for state in states]}
    except HTTPException:
        raise
    except Exception as exc:
        raise to_http_exception(exc) from exc
    finally:
        session.close()


@router.get("/{owner}/{repo}")
async def get_ingestion_state(owner: str, repo: str, project: str | None = None):
    session = session_factory()
    try:
        return _state_response(get_state(session, owner, repo, project))
    except HTTPException:
        raise
    except Exception as exc:
        raise to_http_exception(exc) from exc
    finally:
        session.close()


@router.post("/{owner}/{repo}/commit")
async def post_commit(owner: str, repo: str, payload: CommitRequest, project: str | None = None):
    session = session_factory()
    try:
        meta = CommitMetadata(
            sha=payload.sha.strip(),
            message=payload.message,
            author=payload.author,
            url=payload.url,
            committed_at=payload.committed_at,
            paths=list(payload.paths),
        )
        return _state_response(record_commit(session, owner, repo, project, meta))
    except HTTPException:
        raise
    except Exception as exc:
        raise to_http_exception(exc) from exc
    finally:
        session.close()


@router.post("/{owner}/{repo}/manual-edit")
async def post_manual_edit(owner: str, repo: str, payload: ManualEditRequest, project: str | None = None):
    session = session_factory()
    try:
        result = handle_manual_edit(session, owner, repo, project, payload.updated_at)
        return {"ok": True, **result}
    except HTTPException:
        raise
    except Exception as exc:
        raise to_http_exception(exc) from exc
    finally:
        session.close()


@router.post("/{owner}/{repo}/run-complete")
async def post_run_complete(owner: str, repo: str, payload: RunCompleteRequest, project: str | None = None):
    session = session_factory()
    try:
        state = record_run_complete(
            session,
            owner,
            repo,
            project,
            commit_sha=payload.commit_sha,
            manual_state_at=payload.manual_state_at,
            run_at=payload.run_at,
        )
        return _state_response(state)
    except HTTPException:
        raise
    except Exception as exc:
        raise to_http_exception(exc) from exc
    finally:
        session.close()


@router.delete("/{owner}/{repo}")
async def remove_ingestion_state(owner: str, repo: str, project: str | None = None):
    session = session_factory()
    try:
        return {"ok": True, "deleted": delete_state(session, owner, repo, project)}
    except HTTPException:
        raise
    except Exception as exc:
        raise to_http_exception(exc) from exc
    finally:
        session.close()
