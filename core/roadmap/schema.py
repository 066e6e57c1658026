from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, TypedDict

DOCUMENT_VERSION = 1

CheckKind = Literal["files_exist", "http_ok", "sql_exists"]
KNOWN_CHECK_KINDS: tuple[str, ...] = ("files_exist", "http_ok", "sql_exists")

EnrichMode = Literal["live", "artifact"]


class CheckStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    SKIP = "skip"


class FilesExistCheck(TypedDict, total=False):
    type: Literal["files_exist"]
    files: list[str]
    globs: list[str]
    detail: str


class HttpOkCheck(TypedDict, total=False):
    type: Literal["http_ok"]
    url: str
    must_match: list[str]
    detail: str


class SqlExistsCheck(TypedDict, total=False):
    type: Literal["sql_exists"]
    query: str
    detail: str


Check = FilesExistCheck | HttpOkCheck | SqlExistsCheck


class Item(TypedDict, total=False):
    id: str
    name: str
    checks: list[dict[str, Any]]
    manual: bool
    done: bool
    note: str
    manualKey: str


class Week(TypedDict):
    id: str
    title: str
    items: list[Item]


class Document(TypedDict):
    version: int
    weeks: list[Week]


class ManualItem(TypedDict, total=False):
    key: str
    name: str
    note: str
    done: bool


class ManualOverride(TypedDict, total=False):
    key: str
    done: bool
    note: str


class ManualWeekState(TypedDict):
    added: list[ManualItem]
    removed: list[str]
    overrides: list[ManualOverride]


# weekKey -> edits for that week
ManualOverlay = dict[str, ManualWeekState]


INGESTION_FIELDS: tuple[str, ...] = (
    "last_commit_sha",
    "last_commit_message",
    "last_commit_author",
    "last_commit_url",
    "last_commit_at",
    "last_commit_paths",
    "last_manual_state_at",
    "last_run_sha",
    "last_run_at",
    "last_run_manual_state_at",
    "updated_at",
)


@dataclass
class CheckResult:
    status: CheckStatus
    note: str | None = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"status": self.status.value}
        if self.note is not None:
            payload["note"] = self.note
        return payload


@dataclass
class CheckContext:
    owner: str
    repo: str
    ref: str
    credential: str | None = None
    verifier_url: str | None = None
    verifier_headers: dict[str, str] = field(default_factory=dict)
    # parsed .roadmaprc.json of the target repository, when present
    rc: dict[str, Any] | None = None
