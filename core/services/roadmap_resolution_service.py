from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from sqlalchemy.orm import Session

from core.roadmap.check_executor import CheckExecutor
from core.roadmap.content_source import DEFAULT_TIMEOUT_SECONDS, DEFAULT_USER_AGENT, ContentSource
from core.roadmap.enrichment import enrich, summarize_document
from core.roadmap.errors import RoadmapSourceNotFound
from core.roadmap.ingestion import is_up_to_date, utc_now_iso
from core.roadmap.keys import normalize_project_key, project_aware_path
from core.roadmap.normalizer import normalize_source
from core.roadmap.overlay import apply_overlay
from core.roadmap.schema import CheckContext
from core.services.ingestion_state_service import get_state, record_run_complete
from core.services.overlay_store_service import load_overlay
from core.services.status_snapshot_service import latest_snapshot, store_snapshot

logger = logging.getLogger(__name__)

STATUS_ARTIFACT_PATH = "docs/roadmap-status.json"
ROADMAP_PATH = "docs/roadmap.yml"
RC_PATH = ".roadmaprc.json"


@dataclass
class Resolution:
    owner: str
    repo: str
    project: str
    branch: str
    source: str
    document: dict[str, Any]
    meta: dict[str, Any] = field(default_factory=dict)
    generated_at: str = field(default_factory=utc_now_iso)

    def as_dict(self) -> dict[str, Any]:
        return {
            "owner": self.owner,
            "repo": self.repo,
            "project": self.project,
            "branch": self.branch,
            "source": self.source,
            "generated_at": self.generated_at,
            "meta": dict(self.meta),
            "document": self.document,
            "summary": summarize_document(self.document),
        }


class RoadmapResolutionService:
    """Builds the resolved roadmap for one repository and drives run passes."""

    def __init__(
        self,
        content_source: ContentSource,
        *,
        default_branch: str = "main",
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        fallback_verifier_url: str | None = None,
        verifier_headers: dict[str, str] | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        max_concurrency: int = 1,
    ) -> None:
        self.content_source = content_source
        self.default_branch = default_branch or "main"
        self.timeout_seconds = timeout_seconds
        self.fallback_verifier_url = fallback_verifier_url
        self.verifier_headers = dict(verifier_headers or {})
        self.user_agent = user_agent
        self.max_concurrency = max_concurrency

    def _executor(self) -> CheckExecutor:
        return CheckExecutor(
            self.content_source,
            timeout_seconds=self.timeout_seconds,
            fallback_verifier_url=self.fallback_verifier_url,
            verifier_headers=self.verifier_headers,
            user_agent=self.user_agent,
        )

    def _read_json(self, owner: str, repo: str, path: str, ref: str, credential: str | None) -> Any:
        text = self.content_source.get_file(owner, repo, path, ref, credential)
        if text is None:
            return None
        try:
            return json.loads(text)
        except ValueError as exc:
            logger.warning("ignoring unparseable %s in %s/%s: %s", path, owner, repo, exc)
            return None

    def resolve(
        self,
        owner: str,
        repo: str,
        *,
        project: str | None = None,
        branch: str | None = None,
        credential: str | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ) -> Resolution:
        """Resolve the roadmap without overlay or persistence.

        A committed status artifact wins over the roadmap source. Raises
        RoadmapSourceNotFound when neither exists and InvalidDocument when the
        roadmap cannot be normalized.
        """
        project_key = normalize_project_key(project)
        ref = (branch or "").strip() or self.content_source.default_branch(owner, repo, credential) or self.default_branch

        artifact_path = project_aware_path(STATUS_ARTIFACT_PATH, project_key)
        artifact = self._read_json(owner, repo, artifact_path, ref, credential)
        if isinstance(artifact, dict) and isinstance(artifact.get("weeks"), list):
            document = enrich({"version": artifact.get("version", 1), "weeks": artifact["weeks"]}, "artifact")
            logger.info("resolved %s/%s@%s from artifact %s", owner, repo, ref, artifact_path)
            return Resolution(
                owner=owner,
                repo=repo,
                project=project_key,
                branch=ref,
                source="artifact",
                document=document,
                meta={"artifact": artifact_path, "artifact_generated_at": artifact.get("generated_at")},
            )

        rc = self._read_json(owner, repo, RC_PATH, ref, credential)
        rc = rc if isinstance(rc, dict) else None
        roadmap_path = project_aware_path(ROADMAP_PATH, project_key)
        if rc and isinstance(rc.get("roadmapFile"), str) and rc["roadmapFile"].strip():
            roadmap_path = rc["roadmapFile"].strip()

        text = self.content_source.get_file(owner, repo, roadmap_path, ref, credential)
        if text is None:
            raise RoadmapSourceNotFound(owner, repo, roadmap_path, branch=ref)

        document = normalize_source(text)
        context = CheckContext(owner=owner, repo=repo, ref=ref, credential=credential, rc=rc)
        document = enrich(
            document,
            "live",
            self._executor(),
            context=context,
            max_concurrency=self.max_concurrency,
            should_cancel=should_cancel,
        )
        logger.info("resolved %s/%s@%s live from %s", owner, repo, ref, roadmap_path)
        return Resolution(
            owner=owner,
            repo=repo,
            project=project_key,
            branch=ref,
            source="live",
            document=document,
            meta={"roadmap": roadmap_path, "rc": rc is not None},
        )

    def run(
        self,
        session: Session,
        owner: str,
        repo: str,
        *,
        project: str | None = None,
        branch: str | None = None,
        credential: str | None = None,
        force: bool = False,
        should_cancel: Callable[[], bool] | None = None,
    ) -> dict[str, Any]:
        """One resolution pass with overlay, snapshot and ingestion bookkeeping.

        The commit sha and manual-edit timestamp are read before resolving, so
        anything recorded while the pass runs leaves the ledger needing a rerun.
        """
        before = get_state(session, owner, repo, project)
        if not force and is_up_to_date(before):
            existing = latest_snapshot(session, owner, repo, project, branch)
            if existing is not None:
                logger.info("run skipped, ledger up to date owner=%s repo=%s", owner, repo)
                return {**existing, "reused": True}

        resolution = self.resolve(
            owner,
            repo,
            project=project,
            branch=branch,
            credential=credential,
            should_cancel=should_cancel,
        )
        view = apply_overlay(resolution.document, load_overlay(session, owner, repo, project))
        snapshot = store_snapshot(
            session,
            owner,
            repo,
            project,
            resolution.branch,
            view,
            commit_sha=before.get("last_commit_sha"),
            source=resolution.source,
            generated_at=resolution.generated_at,
        )
        record_run_complete(
            session,
            owner,
            repo,
            project,
            commit_sha=before.get("last_commit_sha"),
            manual_state_at=before.get("last_manual_state_at"),
            run_at=resolution.generated_at,
        )
        return {**snapshot, "reused": False}
