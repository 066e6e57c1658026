from __future__ import annotations

import pytest

from core.roadmap.keys import (
    infer_project_from_path,
    infer_projects_from_paths,
    normalize_owner,
    normalize_project_key,
    project_aware_path,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, ""),
        ("", ""),
        ("   ", ""),
        ("Mobile App", "mobile-app"),
        ("--API__v2--", "api-v2"),
        ("x" * 80, "x" * 64),
    ],
)
def test_normalize_project_key(raw, expected) -> None:
    assert normalize_project_key(raw) == expected


def test_normalize_owner_lowercases() -> None:
    assert normalize_owner("  Acme ") == "acme"
    assert normalize_owner(None) == ""


def test_project_aware_path() -> None:
    assert project_aware_path("docs/roadmap.yml", None) == "docs/roadmap.yml"
    assert project_aware_path("docs/roadmap.yml", "Mobile") == "docs/projects/mobile/roadmap.yml"
    assert project_aware_path(".github/workflows/roadmap.yml", "mobile") == ".github/workflows/roadmap-mobile.yml"
    assert project_aware_path(".roadmaprc.json", "mobile") == ".roadmaprc.json"


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("docs/roadmap.yml", ""),
        ("docs/roadmap-status.json", ""),
        ("/docs/project-plan.md", ""),
        ("docs/projects/Mobile/roadmap.yml", "mobile"),
        (".github/workflows/roadmap.yml", ""),
        (".github/workflows/roadmap-web.yaml", "web"),
        ("src/app.py", None),
        ("docs/roadmapping-notes.md", None),
        ("", None),
    ],
)
def test_infer_project_from_path(path, expected) -> None:
    assert infer_project_from_path(path) == expected


def test_infer_projects_from_paths_is_sorted_and_unique() -> None:
    paths = ["docs/projects/web/roadmap.yml", "docs/roadmap.yml", "docs/projects/web/notes.md", "README.md"]

    assert infer_projects_from_paths(paths) == ["", "web"]
    assert infer_projects_from_paths(["README.md"]) == []
