from __future__ import annotations

import re

_PROJECT_KEY_INVALID = re.compile(r"[^a-z0-9-]+")
_ROOT_ROADMAP_PATTERNS = (
    re.compile(r"^docs/roadmap(?:[./]|$)", re.IGNORECASE),
    re.compile(r"^docs/roadmap-status\.json$", re.IGNORECASE),
    re.compile(r"^docs/project-plan\.md$", re.IGNORECASE),
)
_WORKFLOW_PATTERN = re.compile(r"^\.github/workflows/roadmap(?:-(?P<project>[^./]+))?\.ya?ml$", re.IGNORECASE)


def normalize_owner(value: str | None) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


def normalize_repo(value: str | None) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


def normalize_project_key(value: str | None) -> str:
    """Slug used to partition records; "" means the repository's default project."""
    if not isinstance(value, str):
        return ""
    lowered = value.strip().lower()
    if not lowered:
        return ""
    collapsed = _PROJECT_KEY_INVALID.sub("-", lowered)
    collapsed = re.sub(r"-+", "-", collapsed).strip("-")
    return collapsed[:64]


def project_aware_path(path: str, project: str | None) -> str:
    key = normalize_project_key(project)
    if not key:
        return path
    if path.startswith("docs/"):
        return f"docs/projects/{key}/{path[len('docs/'):]}"
    if path == ".github/workflows/roadmap.yml":
        return f".github/workflows/roadmap-{key}.yml"
    return path


def infer_project_from_path(path: str) -> str | None:
    """Project key touched by a changed path.

    Returns "" for the default project and None when the path does not
    belong to any roadmap.
    """
    normalized = str(path or "").strip().lstrip("/")
    if not normalized:
        return None
    if normalized.lower().startswith("docs/projects/"):
        segment = normalized[len("docs/projects/") :].split("/", 1)[0]
        key = normalize_project_key(segment)
        return key or None
    if any(pattern.match(normalized) for pattern in _ROOT_ROADMAP_PATTERNS):
        return ""
    match = _WORKFLOW_PATTERN.match(normalized)
    if match:
        return normalize_project_key(match.group("project"))
    return None


def infer_projects_from_paths(paths: list[str]) -> list[str]:
    found: set[str] = set()
    for path in paths:
        project = infer_project_from_path(path)
        if project is not None:
            found.add(project)
    return sorted(found)
