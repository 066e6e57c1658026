from __future__ import annotations

import copy
import logging
from typing import Any

from core.roadmap.errors import OverlayCorruption
from core.roadmap.schema import ManualItem, ManualOverlay, ManualOverride, ManualWeekState

logger = logging.getLogger(__name__)

OVERLAY_EDIT_ACTIONS: tuple[str, ...] = ("add", "remove", "restore", "override", "clear_override", "delete_added")


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _drop(week_key: str, reason: str) -> None:
    logger.debug("%s", OverlayCorruption(week_key, reason))


def _sanitize_added(week_key: str, raw: Any) -> list[ManualItem]:
    added: list[ManualItem] = []
    seen: set[str] = set()
    for entry in raw if isinstance(raw, list) else []:
        if not isinstance(entry, dict):
            _drop(week_key, "added entry is not an object")
            continue
        key = _clean(entry.get("key"))
        name = _clean(entry.get("name"))
        if not key or not name:
            _drop(week_key, "added entry without key or name")
            continue
        if key in seen:
            continue
        seen.add(key)
        item: ManualItem = {"key": key, "name": name}
        note = _clean(entry.get("note"))
        if note:
            item["note"] = note
        if isinstance(entry.get("done"), bool):
            item["done"] = entry["done"]
        added.append(item)
    return added


def _sanitize_removed(raw: Any) -> list[str]:
    removed: list[str] = []
    for entry in raw if isinstance(raw, list) else []:
        key = _clean(entry)
        if key and key not in removed:
            removed.append(key)
    return removed


def _sanitize_overrides(week_key: str, raw: Any) -> list[ManualOverride]:
    overrides: dict[str, ManualOverride] = {}
    for entry in raw if isinstance(raw, list) else []:
        if not isinstance(entry, dict):
            _drop(week_key, "override is not an object")
            continue
        key = _clean(entry.get("key"))
        if not key:
            _drop(week_key, "override without key")
            continue
        override: ManualOverride = {"key": key}
        if isinstance(entry.get("done"), bool):
            override["done"] = entry["done"]
        note = _clean(entry.get("note"))
        if note:
            override["note"] = note
        if len(override) > 1:
            overrides[key] = override
    return list(overrides.values())


def sanitize_overlay(value: Any) -> ManualOverlay:
    """Re-validate a stored overlay, dropping anything malformed.

    Weeks left with no added, removed or overridden items are pruned, so an
    overlay made only of empty weeks comes back as {}.
    """
    safe: ManualOverlay = {}
    if not isinstance(value, dict):
        if value is not None:
            logger.debug("overlay is not an object; treating as empty")
        return safe

    for week_key, raw_week in value.items():
        if not isinstance(week_key, str) or not week_key.strip():
            _drop(str(week_key), "week key must be a non-empty string")
            continue
        if not isinstance(raw_week, dict):
            _drop(week_key, "week entry is not an object")
            continue
        week: ManualWeekState = {
            "added": _sanitize_added(week_key, raw_week.get("added")),
            "removed": _sanitize_removed(raw_week.get("removed")),
            "overrides": _sanitize_overrides(week_key, raw_week.get("overrides")),
        }
        if week["added"] or week["removed"] or week["overrides"]:
            safe[week_key] = week
    return safe


def overlay_is_empty(overlay: ManualOverlay) -> bool:
    return not overlay


def derive_week_key(week: dict[str, Any], index: int) -> str:
    return _clean(week.get("id")) or _clean(week.get("title")) or f"week-{index + 1}"


def derive_item_key(item: dict[str, Any], index: int) -> str:
    return (
        _clean(item.get("manualKey"))
        or _clean(item.get("id"))
        or _clean(item.get("name"))
        or f"item-{index + 1}"
    )


def _synthetic_item(entry: ManualItem) -> dict[str, Any]:
    item: dict[str, Any] = {
        "id": entry["key"],
        "name": entry["name"],
        "manual": True,
        "manualKey": entry["key"],
        "checks": [],
        "results": [],
    }
    if "note" in entry:
        item["note"] = entry["note"]
    if "done" in entry:
        item["done"] = entry["done"]
    return item


def apply_overlay(document: dict[str, Any], overlay: Any) -> dict[str, Any]:
    """Layer manual edits over an enriched document, returning a new view.

    Check results are never touched and the input document is not modified,
    so the same document and overlay always produce the same view. Added
    items are appended after the canonical ones even when their keys match.
    """
    view = copy.deepcopy(document) if isinstance(document, dict) else {"weeks": []}
    state = sanitize_overlay(overlay)
    if overlay_is_empty(state):
        return view

    weeks = view.get("weeks") if isinstance(view.get("weeks"), list) else []
    for week_index, week in enumerate(weeks):
        if not isinstance(week, dict):
            continue
        entry = state.get(derive_week_key(week, week_index))
        if entry is None:
            continue

        removed = set(entry["removed"])
        overrides = {override["key"]: override for override in entry["overrides"]}

        items: list[dict[str, Any]] = []
        raw_items = week.get("items") if isinstance(week.get("items"), list) else []
        for item_index, item in enumerate(raw_items):
            if not isinstance(item, dict):
                continue
            key = derive_item_key(item, item_index)
            if key in removed:
                continue
            item["manualKey"] = key
            override = overrides.get(key)
            if override is None:
                item.pop("manualOverride", None)
            else:
                item["manualOverride"] = {name: value for name, value in override.items() if name != "key"}
                if "done" in override:
                    item["done"] = override["done"]
            items.append(item)

        items.extend(_synthetic_item(added) for added in entry["added"])
        week["items"] = items
    return view


def apply_overlay_edit(
    overlay: Any,
    week_key: str,
    action: str,
    *,
    key: str,
    name: str | None = None,
    note: str | None = None,
    done: bool | None = None,
) -> ManualOverlay:
    """Apply one incremental edit and return the sanitized overlay.

    Raises ValueError for an unknown action or missing week/item key.
    """
    week_key = _clean(week_key)
    key = _clean(key)
    if action not in OVERLAY_EDIT_ACTIONS:
        raise ValueError(f"unknown overlay action: {action}")
    if not week_key:
        raise ValueError("week key is required")
    if not key:
        raise ValueError("item key is required")

    state = copy.deepcopy(sanitize_overlay(overlay))
    week = state.setdefault(week_key, {"added": [], "removed": [], "overrides": []})

    if action == "add":
        clean_name = _clean(name)
        if not clean_name:
            raise ValueError("name is required to add an item")
        item: ManualItem = {"key": key, "name": clean_name}
        if _clean(note):
            item["note"] = _clean(note)
        if isinstance(done, bool):
            item["done"] = done
        existing = [index for index, added in enumerate(week["added"]) if added["key"] == key]
        if existing:
            week["added"][existing[0]] = item
        else:
            week["added"].append(item)
    elif action == "remove":
        if key not in week["removed"]:
            week["removed"].append(key)
    elif action == "restore":
        week["removed"] = [removed for removed in week["removed"] if removed != key]
    elif action == "override":
        override: ManualOverride = {"key": key}
        if isinstance(done, bool):
            override["done"] = done
        if _clean(note):
            override["note"] = _clean(note)
        week["overrides"] = [entry for entry in week["overrides"] if entry["key"] != key]
        if len(override) > 1:
            week["overrides"].append(override)
    elif action == "clear_override":
        week["overrides"] = [entry for entry in week["overrides"] if entry["key"] != key]
    elif action == "delete_added":
        week["added"] = [added for added in week["added"] if added["key"] != key]

    return sanitize_overlay(state)
