from __future__ import annotations

import hashlib
import logging
import math
import re
from typing import Any, Callable

import yaml

from core.roadmap.errors import InvalidDocument
from core.roadmap.schema import DOCUMENT_VERSION, KNOWN_CHECK_KINDS, Document, Item, Week

logger = logging.getLogger(__name__)

MAX_SLUG_LENGTH = 64
HASH_SUFFIX_LENGTH = 6

NAME_FIELDS = ("name", "title", "task", "summary", "goal", "description")
ITEM_ID_FIELDS = ("id", "key", "slug", "manualKey", "manual_key")
ITEM_NOTE_FIELDS = ("note", "notes", "description", "detail")
MANUAL_KEY_FIELDS = ("manualKey", "manual_key", "key")
DONE_FIELDS = ("done", "complete", "completed", "finished", "status", "state")
CHECK_LIST_FIELDS = ("checks", "verifications", "validation")
CHECK_KIND_FIELDS = ("type", "kind", "check")

FILE_FIELDS = ("files", "file", "paths", "path")
GLOB_FIELDS = ("globs", "glob", "patterns")
URL_DETECT_FIELDS = ("url", "endpoint", "href", "link")
URL_FIELDS = (*URL_DETECT_FIELDS, "target")
QUERY_FIELDS = ("query", "queries", "sql", "statement")
MUST_MATCH_FIELDS = ("must_match", "mustMatch", "contains", "expect", "matches")
CHECK_DETAIL_FIELDS = ("detail", "note", "description")

WEEK_PHASE_FIELDS = ("__phaseLabel", "phase", "phaseLabel", "phase_title", "phaseName")
WEEK_LABEL_FIELDS = ("title", "name", "label", "summary", "heading", "week")
WEEK_ID_FIELDS = ("id", "slug", "key", "week")
ITEM_COLLECTION_FIELDS = ("items", "tasks", "entries", "deliverables", "goals")
PHASE_LABEL_FIELDS = ("phase", "title", "name", "label")
MILESTONE_FIELDS = ("milestones", "weeks")

TRUE_WORDS = frozenset({"true", "yes", "y", "done", "complete", "completed", "finished", "launched", "live"})
FALSE_WORDS = frozenset({"false", "no", "n", "todo", "pending", "blocked", "tbd", "hold", "paused", "stalled"})

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_KIND_SEPARATORS = re.compile(r"[-\s]+")
_LIST_SEPARATORS = re.compile(r"[\n,]+")
_URL_PREFIX = re.compile(r"^https?://", re.IGNORECASE)
_PATH_LIKE = re.compile(r"[./]")


def content_hash(value: str, length: int = HASH_SUFFIX_LENGTH) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:length]


def _with_suffix(base: str, suffix: str) -> str:
    head = base[: MAX_SLUG_LENGTH - len(suffix) - 1].rstrip("-")
    return f"{head}-{suffix}" if head else suffix


def slugify(value: str, fallback: str) -> str:
    normalized = _NON_ALNUM.sub("-", str(value or "").lower()).strip("-")
    if not normalized:
        return fallback
    if len(normalized) <= MAX_SLUG_LENGTH:
        return normalized
    # Long titles keep a hash of the full slug so near-identical prefixes stay distinct.
    return _with_suffix(normalized, content_hash(normalized))


def pick_string(*candidates: Any) -> str | None:
    for candidate in candidates:
        if isinstance(candidate, str):
            trimmed = candidate.strip()
            if trimmed:
                return trimmed
        elif isinstance(candidate, list):
            for entry in candidate:
                if isinstance(entry, str) and entry.strip():
                    return entry.strip()
    return None


def collect_strings(value: Any) -> list[str]:
    if isinstance(value, list):
        out: list[str] = []
        for entry in value:
            out.extend(collect_strings(entry))
        return out
    if isinstance(value, str):
        return [part.strip() for part in _LIST_SEPARATORS.split(value) if part.strip()]
    if isinstance(value, dict):
        return collect_strings(list(value.values()))
    return []


def dedupe_strings(values: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        trimmed = value.strip()
        if not trimmed or trimmed in seen:
            continue
        seen.add(trimmed)
        out.append(trimmed)
    return out


def coerce_boolean(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        if value <= 0:
            return False
        if value >= 1:
            return True
        return None
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_WORDS:
            return True
        if lowered in FALSE_WORDS:
            return False
    return None


def _first_present(record: dict[str, Any], fields: tuple[str, ...]) -> Any:
    for field_name in fields:
        value = record.get(field_name)
        if value is not None:
            return value
    return None


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value
    if value is None:
        return []
    return [value]


def _collect_fields(record: dict[str, Any], fields: tuple[str, ...]) -> list[str]:
    values: list[str] = []
    for field_name in fields:
        values.extend(collect_strings(record.get(field_name)))
    return dedupe_strings(values)


def _pick_fields(record: dict[str, Any], fields: tuple[str, ...]) -> str | None:
    return pick_string(*(record.get(field_name) for field_name in fields))


def detect_check_kind(record: dict[str, Any]) -> str:
    raw_kind = _pick_fields(record, CHECK_KIND_FIELDS)
    if raw_kind:
        kind = _KIND_SEPARATORS.sub("_", raw_kind.lower())
        if kind in KNOWN_CHECK_KINDS:
            return kind
    if any(record.get(name) for name in URL_DETECT_FIELDS):
        return "http_ok"
    if any(record.get(name) for name in QUERY_FIELDS):
        return "sql_exists"
    if any(record.get(name) for name in (*FILE_FIELDS, *GLOB_FIELDS)):
        return "files_exist"
    return ""


def normalize_check(entry: Any) -> dict[str, Any] | None:
    if isinstance(entry, str):
        trimmed = entry.strip()
        if not trimmed:
            return None
        if _URL_PREFIX.match(trimmed):
            return {"type": "http_ok", "url": trimmed}
        return {"type": "files_exist", "files": [trimmed]}
    if not isinstance(entry, dict):
        return None

    kind = detect_check_kind(entry)
    detail = _pick_fields(entry, CHECK_DETAIL_FIELDS)

    if kind == "files_exist":
        files = _collect_fields(entry, FILE_FIELDS)
        globs = _collect_fields(entry, GLOB_FIELDS)
        if detail:
            for token in collect_strings(detail):
                if token not in files and token not in globs and _PATH_LIKE.search(token):
                    files.append(token)
        if not files and not globs and not detail:
            return None
        payload: dict[str, Any] = {"type": "files_exist"}
        if files:
            payload["files"] = files
        if globs:
            payload["globs"] = globs
        if detail:
            payload["detail"] = detail
        return payload

    if kind == "http_ok":
        url = _pick_fields(entry, URL_FIELDS)
        if not url:
            return None
        payload = {"type": "http_ok", "url": url}
        must_match = _collect_fields(entry, MUST_MATCH_FIELDS)
        if must_match:
            payload["must_match"] = must_match
        if detail:
            payload["detail"] = detail
        return payload

    if kind == "sql_exists":
        # `query` wins over the legacy `queries` list; only its first entry is used.
        query = _pick_fields(entry, QUERY_FIELDS)
        if not query:
            return None
        payload = {"type": "sql_exists", "query": query}
        if detail:
            payload["detail"] = detail
        return payload

    return None


def normalize_checks(record: dict[str, Any]) -> list[dict[str, Any]]:
    raw_checks = _as_list(_first_present(record, CHECK_LIST_FIELDS))

    if not raw_checks:
        files = _collect_fields(record, FILE_FIELDS)
        globs = _collect_fields(record, GLOB_FIELDS)
        url = _pick_fields(record, URL_FIELDS)
        query = _pick_fields(record, QUERY_FIELDS)
        detail = pick_string(record.get("detail"))
        if files or globs:
            raw_checks = [{"type": "files_exist", "files": files, "globs": globs, "detail": detail}]
        elif url:
            raw_checks = [{"type": "http_ok", "url": url, "detail": detail}]
        elif query:
            raw_checks = [{"type": "sql_exists", "query": query, "detail": detail}]

    checks: list[dict[str, Any]] = []
    for entry in raw_checks:
        check = normalize_check(entry)
        if check is None:
            logger.debug("dropping unrecognized check shape: %r", entry)
            continue
        checks.append(check)
    return checks


def canonicalize_item(entry: Any, *, week_id: str, week_index: int, item_index: int) -> Item | None:
    fallback_id = f"item-{week_index + 1}-{item_index + 1}"

    if isinstance(entry, str):
        name = entry.strip()
        if not name:
            return None
        return {"id": slugify(f"{week_id}-{name}", fallback_id), "name": name, "checks": [], "manual": True}

    if not isinstance(entry, dict):
        return None

    name = _pick_fields(entry, NAME_FIELDS) or pick_string(entry.get("id"))
    if not name:
        return None

    id_source = _pick_fields(entry, ITEM_ID_FIELDS) or f"{week_id}-{name}"
    checks = normalize_checks(entry)
    item: Item = {"id": slugify(id_source, fallback_id), "name": name, "checks": checks}

    done = coerce_boolean(_first_present(entry, DONE_FIELDS))
    if done is not None:
        item["done"] = done
    if entry.get("manual") is True or not checks:
        item["manual"] = True
    note = _pick_fields(entry, ITEM_NOTE_FIELDS)
    if note:
        item["note"] = note
    manual_key = _pick_fields(entry, MANUAL_KEY_FIELDS)
    if manual_key:
        item["manualKey"] = manual_key
    return item


def _dedupe_ids(entries: list[dict[str, Any]]) -> None:
    taken: set[str] = set()
    occurrences: dict[str, int] = {}
    for entry in entries:
        base = entry["id"]
        if base not in taken:
            taken.add(base)
            continue
        ordinal = occurrences.get(base, 1)
        candidate = _with_suffix(base, content_hash(f"{base}#{ordinal}"))
        while candidate in taken:
            ordinal += 1
            candidate = _with_suffix(base, content_hash(f"{base}#{ordinal}"))
        occurrences[base] = ordinal + 1
        taken.add(candidate)
        entry["id"] = candidate


def canonicalize_week(entry: Any, index: int) -> Week | None:
    if not isinstance(entry, dict):
        return None

    phase_label = _pick_fields(entry, WEEK_PHASE_FIELDS)
    week_label = _pick_fields(entry, WEEK_LABEL_FIELDS)
    title = " — ".join(label for label in (phase_label, week_label) if label) or f"Week {index + 1}"
    id_source = _pick_fields(entry, WEEK_ID_FIELDS) or title
    week_id = slugify(id_source, f"week-{index + 1}")

    raw_items: list[Any] = []
    for field_name in ITEM_COLLECTION_FIELDS:
        raw_items.extend(_as_list(entry.get(field_name)))

    items: list[Item] = []
    for item_index, raw in enumerate(raw_items):
        item = canonicalize_item(raw, week_id=week_id, week_index=index, item_index=item_index)
        if item is not None:
            items.append(item)

    if not items:
        logger.debug("dropping week without coercible items: %s", title)
        return None

    _dedupe_ids(items)
    return {"id": week_id, "title": title, "items": items}


def _looks_like_week(entry: Any) -> bool:
    return isinstance(entry, dict) and any(field_name in entry for field_name in ITEM_COLLECTION_FIELDS)


def _flatten_phases(phases: list[Any]) -> list[Any]:
    weeks: list[Any] = []
    for phase_index, phase in enumerate(phases):
        if not isinstance(phase, dict):
            continue
        label = _pick_fields(phase, PHASE_LABEL_FIELDS) or f"Phase {phase_index + 1}"
        milestones = _first_present(phase, MILESTONE_FIELDS)
        if milestones is None and any(_looks_like_week(entry) for entry in _as_list(phase.get("items"))):
            milestones = phase.get("items")
        if milestones is None:
            # a phase that lists its tasks directly is a week of its own
            week = {name: phase[name] for name in ("id", *ITEM_COLLECTION_FIELDS) if name in phase}
            week["title"] = label
            weeks.append(week)
            continue
        for milestone in _as_list(milestones):
            if isinstance(milestone, dict):
                weeks.append({**milestone, "__phaseLabel": label})
    return weeks


def _weeks_from_canonical(raw: Any) -> list[Any] | None:
    if isinstance(raw, dict) and isinstance(raw.get("weeks"), list):
        return raw["weeks"]
    return None


def _weeks_from_phases(raw: Any) -> list[Any] | None:
    if not isinstance(raw, dict):
        return None
    for field_name in ("roadmap", "phases"):
        if isinstance(raw.get(field_name), list):
            return _flatten_phases(raw[field_name])
    return None


def _weeks_from_list(raw: Any) -> list[Any] | None:
    return raw if isinstance(raw, list) else None


WEEK_SOURCES: tuple[Callable[[Any], list[Any] | None], ...] = (
    _weeks_from_canonical,
    _weeks_from_phases,
    _weeks_from_list,
)


def normalize(raw: Any) -> Document:
    if not isinstance(raw, (dict, list)):
        raise InvalidDocument("Roadmap must parse into an object or a list of weeks")

    candidates: list[Any] = []
    for source in WEEK_SOURCES:
        found = source(raw)
        if found is not None:
            candidates = found
            break

    weeks: list[Week] = []
    for index, entry in enumerate(candidates):
        week = canonicalize_week(entry, index)
        if week is not None:
            weeks.append(week)

    if not weeks:
        raise InvalidDocument("Roadmap must include at least one week with items")

    _dedupe_ids(weeks)
    logger.debug(
        "normalized roadmap weeks=%s items=%s",
        len(weeks),
        sum(len(week["items"]) for week in weeks),
    )
    return {"version": DOCUMENT_VERSION, "weeks": weeks}


def normalize_source(text: str) -> Document:
    try:
        parsed = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise InvalidDocument(f"Roadmap YAML parse failed: {exc}") from exc
    return normalize(parsed)


def dump_document(document: Document) -> str:
    text = yaml.safe_dump(document, sort_keys=False, allow_unicode=True, width=1000)
    return text.rstrip() + "\n"
