from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.roadmap.errors import StorageUnavailable
from core.roadmap.keys import normalize_owner, normalize_project_key, normalize_repo

logger = logging.getLogger(__name__)


def record_key(owner: str | None, repo: str | None, project: str | None = None) -> tuple[str, str, str]:
    owner_key = normalize_owner(owner)
    repo_key = normalize_repo(repo)
    if not owner_key or not repo_key:
        raise ValueError("owner and repo are required")
    return owner_key, repo_key, normalize_project_key(project)


@contextmanager
def storage_guard(session: Session, action: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("storage failure during %s: %s", action, exc)
        raise StorageUnavailable(f"{action} failed: {exc}") from exc
