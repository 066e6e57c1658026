from __future__ import annotations

import logging

import requests
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from api.config import settings
from core.roadmap.verifier import interpret_response, is_valid_symbol, parse_probe_headers

logger = logging.getLogger(__name__)

router = APIRouter(tags=["verify"])


class VerifyRequest(BaseModel):
    query: str = Field(min_length=1, max_length=255)


@router.post("/verify")
def verify_symbol(payload: VerifyRequest):
    query = payload.query.strip()
    if not is_valid_symbol(query):
        raise HTTPException(status_code=400, detail="invalid symbol")
    url = settings.read_only_checks_url.strip()
    if not url:
        raise HTTPException(status_code=503, detail="READ_ONLY_CHECKS_URL not configured")

    headers = {"Content-Type": "application/json", "User-Agent": settings.user_agent}
    headers.update(parse_probe_headers(settings.read_only_checks_headers))
    try:
        response = requests.post(url, json={"query": query}, headers=headers, timeout=settings.check_timeout_seconds)
    except requests.Timeout as exc:
        raise HTTPException(status_code=504, detail="verifier request timed out") from exc
    except requests.RequestException as exc:
        logger.warning("verifier unreachable url=%s error=%s", url, exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    try:
        body = response.json()
    except ValueError:
        body = {}
    passed, error = interpret_response(response.status_code, body)
    result = {"ok": passed, "query": query}
    if error:
        result["error"] = error
    return result
