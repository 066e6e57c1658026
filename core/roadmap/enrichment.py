from __future__ import annotations

import copy
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable

from core.roadmap.check_executor import CheckExecutor
from core.roadmap.errors import ResolutionCancelled
from core.roadmap.schema import CheckContext, CheckResult, EnrichMode

logger = logging.getLogger(__name__)

ENRICH_MODES: tuple[str, ...] = ("live", "artifact")

# lowercase status word -> ok
STATUS_VOCABULARY: dict[str, bool | None] = {
    "pass": True,
    "passed": True,
    "ok": True,
    "success": True,
    "succeeded": True,
    "complete": True,
    "completed": True,
    "done": True,
    "fail": False,
    "failed": False,
    "error": False,
    "missing": False,
    "skip": None,
    "skipped": None,
    "pending": None,
}

ITEM_PASS = "pass"
ITEM_FAIL = "fail"
ITEM_PENDING = "pending"


def infer_ok(status: Any, explicit_ok: Any = None) -> bool | None:
    if isinstance(explicit_ok, bool):
        return explicit_ok
    if not isinstance(status, str):
        return None
    return STATUS_VOCABULARY.get(status.strip().lower())


def merge_detail(original: Any, note: Any) -> str | None:
    base = original.strip() if isinstance(original, str) else ""
    extra = note.strip() if isinstance(note, str) else ""
    if base and extra and base != extra:
        return f"{base} – {extra}"
    return base or extra or None


def _set_optional(target: dict[str, Any], key: str, value: Any) -> None:
    if value is None:
        target.pop(key, None)
    else:
        target[key] = value


def stamp_check(check: dict[str, Any], result: CheckResult) -> dict[str, Any]:
    stamped = dict(check)
    status = result.status.value
    stamped["status"] = status
    stamped["result"] = status
    if result.note is not None:
        stamped["note"] = result.note
    _set_optional(stamped, "detail", merge_detail(check.get("detail"), result.note))
    _set_optional(stamped, "ok", infer_ok(status))
    return stamped


def reconcile_check(check: dict[str, Any]) -> dict[str, Any]:
    reconciled = dict(check)
    explicit_ok = check.get("ok") if isinstance(check.get("ok"), bool) else None
    status: str | None = None
    for candidate in (check.get("result"), check.get("status")):
        if isinstance(candidate, str) and candidate.strip():
            status = candidate.strip()
            break
    if status is None and explicit_ok is not None:
        status = "pass" if explicit_ok else "fail"
    _set_optional(reconciled, "status", status)
    _set_optional(reconciled, "result", status)
    _set_optional(reconciled, "detail", merge_detail(check.get("detail"), check.get("note")))
    _set_optional(reconciled, "ok", infer_ok(status, explicit_ok))
    return reconciled


def _item_checks(item: dict[str, Any]) -> list[dict[str, Any]]:
    for field_name in ("checks", "results"):
        value = item.get(field_name)
        if isinstance(value, list):
            return [entry for entry in value if isinstance(entry, dict)]
    return []


def derive_done(item: dict[str, Any], checks: list[dict[str, Any]]) -> bool | None:
    if checks:
        return all(check.get("ok") is True for check in checks)
    authored = item.get("done")
    return authored if isinstance(authored, bool) else None


def enrich(
    document: dict[str, Any],
    mode: EnrichMode = "live",
    executor: CheckExecutor | None = None,
    *,
    context: CheckContext | None = None,
    max_concurrency: int = 1,
    should_cancel: Callable[[], bool] | None = None,
) -> dict[str, Any]:
    """Return a copy of `document` with check outcomes and item completion.

    live mode runs every check through `executor`; artifact mode only
    reconciles results that were computed elsewhere. Checks inside one item
    always run in order. Items run one at a time unless `max_concurrency`
    is raised, and `should_cancel` is polled before each item.
    """
    if mode not in ENRICH_MODES:
        raise ValueError(f"unsupported enrich mode: {mode}")
    if mode == "live" and (executor is None or context is None):
        raise ValueError("live enrichment requires an executor and a check context")

    enriched = copy.deepcopy(document) if isinstance(document, dict) else {}
    weeks = enriched.get("weeks")
    if not isinstance(weeks, list):
        weeks = []
        enriched["weeks"] = weeks

    items: list[dict[str, Any]] = []
    for week in weeks:
        if not isinstance(week, dict) or not isinstance(week.get("items"), list):
            continue
        items.extend(item for item in week["items"] if isinstance(item, dict))

    def process(item: dict[str, Any]) -> None:
        if should_cancel is not None and should_cancel():
            raise ResolutionCancelled("resolution cancelled before all items were checked")
        if mode == "live":
            checks = [stamp_check(check, executor.run(check, context)) for check in _item_checks(item)]
        else:
            checks = [reconcile_check(check) for check in _item_checks(item)]
        item["checks"] = checks
        item["results"] = checks
        _set_optional(item, "done", derive_done(item, checks))

    workers = max(1, int(max_concurrency or 1))
    if mode == "live" and workers > 1 and len(items) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            # list() re-raises the first failure, cancellation included
            list(pool.map(process, items))
    else:
        for item in items:
            process(item)

    logger.debug("enriched roadmap mode=%s items=%s", mode, len(items))
    return enriched


def item_status(item: dict[str, Any]) -> str:
    override = item.get("manualOverride")
    if isinstance(override, dict) and isinstance(override.get("done"), bool):
        return ITEM_PASS if override["done"] else ITEM_FAIL

    checks = _item_checks(item)
    if checks:
        outcomes = [check.get("ok") for check in checks]
        if any(outcome is None for outcome in outcomes):
            return ITEM_PENDING
        if any(outcome is False for outcome in outcomes):
            return ITEM_FAIL
        return ITEM_PASS

    done = item.get("done")
    if done is True:
        return ITEM_PASS
    if done is False:
        return ITEM_FAIL
    return ITEM_PENDING


def fold_statuses(statuses: list[str]) -> str:
    if not statuses or ITEM_PENDING in statuses:
        return ITEM_PENDING
    if ITEM_FAIL in statuses:
        return ITEM_FAIL
    return ITEM_PASS


def _summary(status: str, outcomes: list[str]) -> dict[str, Any]:
    total = len(outcomes)
    passed = outcomes.count(ITEM_PASS)
    failed = outcomes.count(ITEM_FAIL)
    return {
        "status": status,
        "passed": passed,
        "failed": failed,
        "pending": total - passed - failed,
        "total": total,
        "progressPercent": round(passed * 100 / total) if total else 0,
    }


def summarize_item(item: dict[str, Any]) -> dict[str, Any]:
    status = item_status(item)
    checks = _item_checks(item)
    if not checks:
        return _summary(status, [status])
    outcomes = []
    for check in checks:
        ok = check.get("ok")
        outcomes.append(ITEM_PASS if ok is True else ITEM_FAIL if ok is False else ITEM_PENDING)
    return _summary(status, outcomes)


def _week_items(week: dict[str, Any]) -> list[dict[str, Any]]:
    items = week.get("items")
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


def summarize_week(week: dict[str, Any]) -> dict[str, Any]:
    statuses = [item_status(item) for item in _week_items(week)]
    return _summary(fold_statuses(statuses), statuses)


def summarize_document(document: dict[str, Any]) -> dict[str, Any]:
    weeks = [week for week in document.get("weeks") or [] if isinstance(week, dict)]
    statuses = [item_status(item) for week in weeks for item in _week_items(week)]
    summary = _summary(fold_statuses(statuses), statuses)
    summary["weeks"] = [{"id": week.get("id"), **summarize_week(week)} for week in weeks]
    return summary
