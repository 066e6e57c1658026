from __future__ import annotations

import pytest

from core.roadmap.enrichment import (
    enrich,
    infer_ok,
    item_status,
    merge_detail,
    summarize_document,
    summarize_item,
)
from core.roadmap.errors import ResolutionCancelled
from core.roadmap.schema import CheckContext, CheckResult, CheckStatus


class _ScriptedExecutor:
    """Returns a fixed outcome per check type and records the call order."""

    def __init__(self, outcomes):
        self.outcomes = outcomes
        self.calls: list[str] = []

    def run(self, check, context):
        self.calls.append((check.get("files") or [check["type"]])[0])
        status, note = self.outcomes[check["type"]]
        return CheckResult(status, note)


def _context() -> CheckContext:
    return CheckContext(owner="acme", repo="widgets", ref="main")


def _document() -> dict:
    return {
        "version": 1,
        "weeks": [
            {
                "id": "week-1",
                "title": "Week 1",
                "items": [
                    {
                        "id": "files",
                        "name": "Files",
                        "checks": [
                            {"type": "files_exist", "files": ["a.txt"]},
                            {"type": "files_exist", "files": ["b.txt"]},
                        ],
                    },
                    {"id": "health", "name": "Health", "checks": [{"type": "http_ok", "url": "https://x", "detail": "homepage"}]},
                    {"id": "manual", "name": "Manual", "checks": [], "manual": True, "done": True},
                ],
            }
        ],
    }


@pytest.mark.parametrize(
    ("status", "explicit", "expected"),
    [
        ("pass", None, True),
        ("Completed", None, True),
        ("missing", None, False),
        ("skipped", None, None),
        ("something-else", None, None),
        (None, None, None),
        ("fail", True, True),
        ("pass", False, False),
    ],
)
def test_infer_ok_vocabulary_and_explicit_flag(status, explicit, expected) -> None:
    assert infer_ok(status, explicit) is expected


def test_merge_detail_joins_distinct_parts() -> None:
    assert merge_detail("homepage", "HTTP 200") == "homepage – HTTP 200"
    assert merge_detail("same", "same") == "same"
    assert merge_detail(None, "HTTP 200") == "HTTP 200"
    assert merge_detail("  ", None) is None


def test_live_enrichment_stamps_checks_and_derives_done() -> None:
    executor = _ScriptedExecutor(
        {
            "files_exist": (CheckStatus.PASS, "1 file(s) present"),
            "http_ok": (CheckStatus.FAIL, "HTTP 503"),
        }
    )
    document = _document()

    enriched = enrich(document, "live", executor, context=_context())

    files, health, manual = enriched["weeks"][0]["items"]
    assert [check["status"] for check in files["checks"]] == ["pass", "pass"]
    assert files["checks"][0]["ok"] is True
    assert files["checks"][0]["result"] == "pass"
    assert files["checks"][0]["detail"] == "1 file(s) present"
    assert files["checks"][0]["note"] == "1 file(s) present"
    assert files["results"] == files["checks"]
    assert files["done"] is True

    assert health["checks"][0]["detail"] == "homepage – HTTP 503"
    assert health["checks"][0]["note"] == "HTTP 503"
    assert health["checks"][0]["ok"] is False
    assert health["done"] is False

    assert manual["done"] is True
    assert manual["checks"] == []
    assert executor.calls == ["a.txt", "b.txt", "http_ok"]


def test_live_enrichment_without_note_keeps_detail_and_omits_note() -> None:
    executor = _ScriptedExecutor({"files_exist": (CheckStatus.PASS, None), "http_ok": (CheckStatus.PASS, None)})

    enriched = enrich(_document(), "live", executor, context=_context())

    files, health, _ = enriched["weeks"][0]["items"]
    assert "note" not in files["checks"][0]
    assert "detail" not in files["checks"][0]
    assert health["checks"][0]["detail"] == "homepage"


def test_live_enrichment_does_not_mutate_input() -> None:
    executor = _ScriptedExecutor({"files_exist": (CheckStatus.PASS, None), "http_ok": (CheckStatus.PASS, None)})
    document = _document()

    enrich(document, "live", executor, context=_context())

    assert "status" not in document["weeks"][0]["items"][0]["checks"][0]
    assert "results" not in document["weeks"][0]["items"][0]


def test_skipped_check_has_no_ok_and_leaves_item_pending() -> None:
    executor = _ScriptedExecutor({"files_exist": (CheckStatus.SKIP, "no paths provided"), "http_ok": (CheckStatus.PASS, "HTTP 200")})

    enriched = enrich(_document(), "live", executor, context=_context())

    files = enriched["weeks"][0]["items"][0]
    assert "ok" not in files["checks"][0]
    assert files["done"] is False
    assert item_status(files) == "pending"


def test_parallel_enrichment_matches_sequential() -> None:
    outcomes = {"files_exist": (CheckStatus.PASS, "ok"), "http_ok": (CheckStatus.FAIL, "HTTP 500")}

    sequential = enrich(_document(), "live", _ScriptedExecutor(outcomes), context=_context())
    parallel = enrich(_document(), "live", _ScriptedExecutor(outcomes), context=_context(), max_concurrency=4)

    assert parallel == sequential


def test_artifact_mode_reconciles_without_executor() -> None:
    artifact = {
        "weeks": [
            {
                "id": "w",
                "title": "W",
                "items": [
                    {"id": "a", "name": "A", "results": [{"type": "files_exist", "result": "passed"}]},
                    {"id": "b", "name": "B", "checks": [{"type": "http_ok", "ok": False}]},
                    {"id": "c", "name": "C", "checks": [{"type": "http_ok", "status": "skip"}]},
                    {
                        "id": "d",
                        "name": "D",
                        "checks": [
                            {"type": "http_ok", "status": "fail", "detail": "homepage", "note": "HTTP 503"},
                            {"type": "files_exist", "status": "pass", "note": "2 file(s) present"},
                            {"type": "http_ok", "status": "pass", "detail": "HTTP 200", "note": "HTTP 200"},
                        ],
                    },
                ],
            }
        ]
    }

    enriched = enrich(artifact, "artifact")

    a, b, c, d = enriched["weeks"][0]["items"]
    assert a["checks"][0]["ok"] is True
    assert a["checks"][0]["status"] == "passed"
    assert a["done"] is True
    assert b["checks"][0]["status"] == "fail"
    assert b["done"] is False
    assert "ok" not in c["checks"][0]
    assert [check["detail"] for check in d["checks"]] == ["homepage – HTTP 503", "2 file(s) present", "HTTP 200"]
    assert d["checks"][0]["note"] == "HTTP 503"
    assert d["done"] is False


def test_enrich_rejects_bad_mode_and_missing_executor() -> None:
    with pytest.raises(ValueError):
        enrich(_document(), "sideways")
    with pytest.raises(ValueError):
        enrich(_document(), "live")


def test_cancellation_stops_between_items() -> None:
    executor = _ScriptedExecutor({"files_exist": (CheckStatus.PASS, None), "http_ok": (CheckStatus.PASS, None)})
    polls = {"count": 0}

    def _should_cancel() -> bool:
        polls["count"] += 1
        return polls["count"] > 1

    with pytest.raises(ResolutionCancelled):
        enrich(_document(), "live", executor, context=_context(), should_cancel=_should_cancel)

    assert executor.calls == ["a.txt", "b.txt"]


def test_item_status_prefers_manual_override() -> None:
    item = {"checks": [{"ok": False}], "manualOverride": {"done": True}}

    assert item_status(item) == "pass"
    assert item_status({"checks": [{"ok": True}, {"ok": False}]}) == "fail"
    assert item_status({"checks": [], "done": False}) == "fail"
    assert item_status({"checks": []}) == "pending"


def test_summaries_count_items_and_checks() -> None:
    executor = _ScriptedExecutor({"files_exist": (CheckStatus.PASS, None), "http_ok": (CheckStatus.FAIL, None)})
    enriched = enrich(_document(), "live", executor, context=_context())

    summary = summarize_document(enriched)

    assert summary["status"] == "fail"
    assert (summary["passed"], summary["failed"], summary["pending"], summary["total"]) == (2, 1, 0, 3)
    assert summary["progressPercent"] == 67
    assert summary["weeks"][0]["id"] == "week-1"
    assert summary["weeks"][0]["total"] == 3

    files_summary = summarize_item(enriched["weeks"][0]["items"][0])
    assert files_summary["total"] == 2
    assert files_summary["progressPercent"] == 100


def test_empty_document_summary_is_pending() -> None:
    summary = summarize_document({"weeks": []})

    assert summary["status"] == "pending"
    assert summary["total"] == 0
    assert summary["progressPercent"] == 0
    assert summary["weeks"] == []
