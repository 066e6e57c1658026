from __future__ import annotations

import logging

from fastapi import HTTPException

from core.roadmap.errors import InvalidDocument, ResolutionCancelled, RoadmapSourceNotFound, StorageUnavailable

logger = logging.getLogger(__name__)


def to_http_exception(exc: Exception) -> HTTPException:
    if isinstance(exc, InvalidDocument):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, RoadmapSourceNotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, StorageUnavailable):
        return HTTPException(status_code=503, detail=str(exc))
    if isinstance(exc, ResolutionCancelled):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ValueError):
        return HTTPException(status_code=400, detail=str(exc))
    logger.exception("unexpected roadmap API failure")
    return HTTPException(status_code=500, detail=str(exc))
