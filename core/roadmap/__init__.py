from core.roadmap.check_executor import CheckExecutor
from core.roadmap.content_source import ContentSource, GitHubContentSource, LocalContentSource
from core.roadmap.enrichment import enrich, infer_ok, summarize_document, summarize_item, summarize_week
from core.roadmap.errors import (
    CheckTransportError,
    InvalidDocument,
    MissingVerifierConfiguration,
    OverlayCorruption,
    ResolutionCancelled,
    RoadmapError,
    RoadmapSourceNotFound,
    StorageUnavailable,
    UnknownCheckKind,
)
from core.roadmap.normalizer import dump_document, normalize, normalize_source
from core.roadmap.overlay import apply_overlay, apply_overlay_edit, sanitize_overlay
from core.roadmap.schema import CheckContext, CheckResult, CheckStatus

__all__ = [
    "CheckContext",
    "CheckExecutor",
    "CheckResult",
    "CheckStatus",
    "CheckTransportError",
    "ContentSource",
    "GitHubContentSource",
    "InvalidDocument",
    "LocalContentSource",
    "MissingVerifierConfiguration",
    "OverlayCorruption",
    "ResolutionCancelled",
    "RoadmapError",
    "RoadmapSourceNotFound",
    "StorageUnavailable",
    "UnknownCheckKind",
    "apply_overlay",
    "apply_overlay_edit",
    "dump_document",
    "enrich",
    "infer_ok",
    "normalize",
    "normalize_source",
    "sanitize_overlay",
    "summarize_document",
    "summarize_item",
    "summarize_week",
]
