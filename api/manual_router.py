from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from api.config import settings
from api.roadmap_errors import to_http_exception
from core.memory.schema import create_session_factory
from core.roadmap.ingestion import utc_now_iso
from core.roadmap.overlay import OVERLAY_EDIT_ACTIONS
from core.services.ingestion_state_service import handle_manual_edit
from core.services.overlay_store_service import edit_overlay, load_overlay, save_overlay
from core.services.record_store import record_key

router = APIRouter(prefix="/manual", tags=["manual"])
session_factory = create_session_factory(settings.db_path)


class ManualStateRequest(BaseModel):
    state: dict[str, Any] = Field(default_factory=dict)


class ManualEditRequest(BaseModel):
    week_key: str = Field(min_length=1, max_length=255)
    action: str = Field(min_length=1, max_length=32)
    key: str = Field(min_length=1, max_length=255)
    name: str | None = Field(default=None, max_length=500)
    note: str | None = Field(default=None, max_length=2000)
    done: bool | None = None


def _response(owner: str, repo: str, project: str | None, state: dict[str, Any], edit: dict[str, Any] | None = None) -> dict[str, Any]:
    owner_key, repo_key, project_id = record_key(owner, repo, project)
    payload: dict[str, Any] = {"ok": True, "owner": owner_key, "repo": repo_key, "project": project_id, "state": state}
    if edit is not None:
        payload["ingestion"] = {key: value for key, value in edit.items() if key != "state"}
    return payload


@router.get("/{owner}/{repo}")
async def get_manual_state(owner: str, repo: str, project: str | None = None):
    session = session_factory()
    try:
        return _response(owner, repo, project, load_overlay(session, owner, repo, project))
    except HTTPException:
        raise
    except Exception as exc:
        raise to_http_exception(exc) from exc
    finally:
        session.close()


@router.post("/{owner}/{repo}")
async def replace_manual_state(owner: str, repo: str, payload: ManualStateRequest, project: str | None = None):
    session = session_factory()
    try:
        updated_at = utc_now_iso()
        state = save_overlay(session, owner, repo, project, payload.state, updated_at=updated_at)
        edit = handle_manual_edit(session, owner, repo, project, updated_at)
        return _response(owner, repo, project, state, edit)
    except HTTPException:
        raise
    except Exception as exc:
        raise to_http_exception(exc) from exc
    finally:
        session.close()


@router.post("/{owner}/{repo}/edit")
async def edit_manual_state(owner: str, repo: str, payload: ManualEditRequest, project: str | None = None):
    if payload.action not in OVERLAY_EDIT_ACTIONS:
        raise HTTPException(status_code=400, detail=f"unknown overlay action: {payload.action}")
    session = session_factory()
    try:
        updated_at = utc_now_iso()
        state = edit_overlay(
            session,
            owner,
            repo,
            project,
            payload.week_key,
            payload.action,
            key=payload.key,
            name=payload.name,
            note=payload.note,
            done=payload.done,
            updated_at=updated_at,
        )
        edit = handle_manual_edit(session, owner, repo, project, updated_at)
        return _response(owner, repo, project, state, edit)
    except HTTPException:
        raise
    except Exception as exc:
        raise to_http_exception(exc) from exc
    finally:
        session.close()
