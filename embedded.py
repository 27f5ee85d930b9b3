"""
=============================================================================
EMBEDDED.PY — Embedded collection manager
=============================================================================
Tasks, journal entries, food logs, triggers and workouts are NOT tables:
they are JSON lists living inside the User row. This module is the only
place that touches them.

Every kind follows the same life cycle, so the operations are written once
and parameterised by CollectionKind. What changes between kinds (schema,
cap, date field, what can be filtered or searched) lives in the COLLECTIONS
table below.

Mutations:
  append / update / remove / toggle / bulk_complete / bulk_delete_completed
  → each one loads the user, works on a COPY of the list, writes the new
    list back with store.write_list and is committed by store.atomic
    (replayed if another request wrote the same user in between)

Reads:
  list_items / search / recent / get_by_id
  → load the whole list, filter + sort in memory, slice a page
    (fine while the caps hold: the largest list is 10000 items)
"""

import enum
import logging
import uuid
from datetime import date, datetime, time
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

import store
from errors import NotFoundError, ValidationError
from pagination import paginate, parse_pagination
from schemas import FoodLogCreate, JournalEntryCreate, TaskCreate, TriggerCreate, WorkoutItem

logger = logging.getLogger("shukuma.embedded")


class CollectionKind(str, enum.Enum):
    tasks = "tasks"
    journal = "journal"
    food_logs = "foodLogs"
    triggers = "triggers"
    workout_history = "workoutHistory"


# =============================================================================
# ===================== PER-KIND RULES ========================================
# =============================================================================
# field         → attribute on User holding the JSON list
# label         → used in messages ("Task not found")
# schema        → Pydantic model every stored item must satisfy
# max_items     → cap of the list
# date_field    → the timestamp used for sorting and date ranges
# server_dated  → the timestamp is set by the server and can never change
# filter_fields → fields allowed as equality filters
# search_fields → fields scanned by the case-insensitive text search

COLLECTIONS = {
    CollectionKind.tasks: {
        "field": "tasks",
        "label": "Task",
        "schema": TaskCreate,
        "max_items": 1000,
        "date_field": "createdAt",
        "server_dated": True,
        "filter_fields": ("completed",),
        "search_fields": ("title",),
    },
    CollectionKind.journal: {
        "field": "journal",
        "label": "Journal entry",
        "schema": JournalEntryCreate,
        "max_items": 5000,
        "date_field": "date",
        "server_dated": True,
        "filter_fields": ("mood",),
        "search_fields": ("title", "content"),
    },
    CollectionKind.food_logs: {
        "field": "food_logs",
        "label": "Food log",
        "schema": FoodLogCreate,
        "max_items": 5000,
        "date_field": "date",
        "server_dated": False,
        "filter_fields": (),
        "search_fields": ("notes",),
    },
    CollectionKind.triggers: {
        "field": "triggers",
        "label": "Trigger",
        "schema": TriggerCreate,
        "max_items": 2000,
        "date_field": "date",
        "server_dated": True,
        "filter_fields": (),
        "search_fields": ("trigger", "notes"),
    },
    CollectionKind.workout_history: {
        "field": "workout_history",
        "label": "Workout",
        "schema": WorkoutItem,
        "max_items": 10000,
        "date_field": "date",
        "server_dated": True,
        "filter_fields": ("exerciseId", "completed"),
        "search_fields": ("notes",),
    },
}


def rules_for(kind) -> dict:
    return COLLECTIONS[CollectionKind(kind)]


def new_item_id() -> str:
    return uuid.uuid4().hex


def parse_timestamp(value) -> datetime:
    """Stored timestamps are ISO strings; tolerate datetimes too"""
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def items_of(user, kind) -> list[dict]:
    """Copy of the list: callers mutate it freely and write it back"""
    return [dict(item) for item in (getattr(user, rules_for(kind)["field"]) or [])]


def _validate(kind, data: dict) -> dict:
    schema = rules_for(kind)["schema"]
    try:
        item = schema.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc)
    return item.model_dump(mode="json", by_alias=True)


def _find_index(items: list[dict], item_id: str, label: str) -> int:
    for index, item in enumerate(items):
        if item.get("id") == item_id:
            return index
    raise NotFoundError(label)


def _immutable_fields(rules: dict) -> set:
    fields = {"id"}
    if rules["server_dated"]:
        fields.add(rules["date_field"])
    return fields


# =============================================================================
# ===================== MUTATIONS =============================================
# =============================================================================

def add_item(user, kind, data: dict, now: Optional[datetime] = None) -> dict:
    """
    Validates and appends one item to an already loaded user, without
    committing. Used by append() and by operations that change more than
    the list in the same write (gamification.log_workout).
    """
    rules = rules_for(kind)
    items = items_of(user, kind)

    if len(items) >= rules["max_items"]:
        raise ValidationError(
            f"{rules['label']} limit reached ({rules['max_items']})",
            [{"field": CollectionKind(kind).value, "message": f"maximum {rules['max_items']} items"}],
        )

    clean = {k: v for k, v in data.items() if k not in _immutable_fields(rules)}
    item = {"id": new_item_id(), **_validate(kind, clean)}
    if rules["server_dated"]:
        item[rules["date_field"]] = (now or datetime.utcnow()).isoformat()

    items.append(item)
    store.write_list(user, rules["field"], items)
    return item


def append(db: Session, user_id: int, kind, data: dict, now: Optional[datetime] = None) -> dict:
    return store.atomic(db, _append, user_id, CollectionKind(kind), data, now)


def _append(db: Session, user_id: int, kind: CollectionKind, data: dict, now: Optional[datetime]) -> dict:
    user = store.load_user(db, user_id)
    item = add_item(user, kind, data, now)
    logger.info(f"➕ {rules_for(kind)['label']} {item['id']} added for user {user_id}")
    return item


def update(db: Session, user_id: int, kind, item_id: str, fields: dict) -> dict:
    """Partial update: only the provided fields change, the merged item is re-validated"""
    return store.atomic(db, _update, user_id, CollectionKind(kind), item_id, fields)


def _update(db: Session, user_id: int, kind: CollectionKind, item_id: str, fields: dict) -> dict:
    rules = rules_for(kind)
    user = store.load_user(db, user_id)
    items = items_of(user, kind)
    index = _find_index(items, item_id, rules["label"])
    current = items[index]

    immutable = _immutable_fields(rules)
    merged = {k: v for k, v in current.items() if k not in immutable}
    merged.update({k: v for k, v in fields.items() if k not in immutable})

    updated = {"id": current["id"], **_validate(kind, merged)}
    if rules["server_dated"]:
        updated[rules["date_field"]] = current[rules["date_field"]]

    items[index] = updated
    store.write_list(user, rules["field"], items)
    logger.info(f"✏️ {rules['label']} {item_id} updated for user {user_id}")
    return updated


def remove(db: Session, user_id: int, kind, item_id: str) -> dict:
    return store.atomic(db, _remove, user_id, CollectionKind(kind), item_id)


def _remove(db: Session, user_id: int, kind: CollectionKind, item_id: str) -> dict:
    rules = rules_for(kind)
    user = store.load_user(db, user_id)
    items = items_of(user, kind)
    removed = items.pop(_find_index(items, item_id, rules["label"]))
    store.write_list(user, rules["field"], items)
    logger.info(f"🗑️ {rules['label']} {item_id} removed for user {user_id}")
    return removed


# ─────────────────────────────────────────────────────────────────────────────
# Task-only operations
# ─────────────────────────────────────────────────────────────────────────────

def toggle(db: Session, user_id: int, item_id: str) -> dict:
    return store.atomic(db, _toggle, user_id, item_id)


def _toggle(db: Session, user_id: int, item_id: str) -> dict:
    user = store.load_user(db, user_id)
    items = items_of(user, CollectionKind.tasks)
    index = _find_index(items, item_id, "Task")
    items[index]["completed"] = not items[index].get("completed", False)
    store.write_list(user, "tasks", items)
    logger.info(f"🔁 Task {item_id} toggled for user {user_id}")
    return items[index]


def bulk_complete(db: Session, user_id: int) -> int:
    """Marks every pending task as completed. Returns how many changed."""
    return store.atomic(db, _bulk_complete, user_id)


def _bulk_complete(db: Session, user_id: int) -> int:
    user = store.load_user(db, user_id)
    items = items_of(user, CollectionKind.tasks)
    changed = 0
    for item in items:
        if not item.get("completed"):
            item["completed"] = True
            changed += 1
    if changed:
        store.write_list(user, "tasks", items)
    logger.info(f"✅ {changed} tasks completed for user {user_id}")
    return changed


def bulk_delete_completed(db: Session, user_id: int) -> int:
    """Deletes every completed task. Returns how many were removed."""
    return store.atomic(db, _bulk_delete_completed, user_id)


def _bulk_delete_completed(db: Session, user_id: int) -> int:
    user = store.load_user(db, user_id)
    items = items_of(user, CollectionKind.tasks)
    remaining = [item for item in items if not item.get("completed")]
    deleted = len(items) - len(remaining)
    if deleted:
        store.write_list(user, "tasks", remaining)
    logger.info(f"🧹 {deleted} completed tasks deleted for user {user_id}")
    return deleted


# =============================================================================
# ===================== READS =================================================
# =============================================================================

DateLike = Union[date, datetime, None]


def _range_start(value: DateLike) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def _range_end(value: DateLike) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.combine(value, time.max)


def sort_items(items: list[dict], kind, sort: str = "newest") -> list[dict]:
    """Stable sort by the kind's date field. newest (default) or oldest."""
    if sort not in ("newest", "oldest"):
        raise ValidationError("Sort must be 'newest' or 'oldest'",
                              [{"field": "sortBy", "message": "newest | oldest"}])
    date_field = rules_for(kind)["date_field"]
    return sorted(items, key=lambda item: parse_timestamp(item[date_field]), reverse=(sort == "newest"))


def filter_items(items: list[dict], kind, filters: Optional[dict] = None, search: Optional[str] = None,
                 start_date: DateLike = None, end_date: DateLike = None,
                 on_date: Optional[date] = None) -> list[dict]:
    rules = rules_for(kind)

    for field, value in (filters or {}).items():
        if value is None:
            continue
        if field not in rules["filter_fields"]:
            raise ValidationError(f"Cannot filter {rules['label'].lower()}s by '{field}'")
        if isinstance(value, enum.Enum):
            value = value.value
        items = [item for item in items if item.get(field) == value]

    if search:
        needle = search.lower()
        items = [
            item for item in items
            if any(needle in (item.get(field) or "").lower() for field in rules["search_fields"])
        ]

    start, end = _range_start(start_date), _range_end(end_date)
    if start and end and end < start:
        raise ValidationError("End date must be after start date",
                              [{"field": "endDate", "message": "must be after startDate"}])
    if start or end:
        date_field = rules["date_field"]
        items = [
            item for item in items
            if (start is None or parse_timestamp(item[date_field]) >= start)
            and (end is None or parse_timestamp(item[date_field]) <= end)
        ]

    if on_date:
        date_field = rules["date_field"]
        items = [item for item in items if parse_timestamp(item[date_field]).date() == on_date]

    return items


def list_items(db: Session, user_id: int, kind, *, filters: Optional[dict] = None,
               search: Optional[str] = None, start_date: DateLike = None, end_date: DateLike = None,
               on_date: Optional[date] = None, sort: str = "newest",
               page: Optional[int] = None, limit: Optional[int] = None) -> tuple[list[dict], dict]:
    """
    Filter → sort → paginate over the whole embedded list.
    Returns (page_items, pagination_meta).
    """
    page, limit, _ = parse_pagination(page, limit)
    user = store.load_user(db, user_id)
    items = filter_items(items_of(user, kind), kind, filters, search, start_date, end_date, on_date)
    return paginate(sort_items(items, kind, sort), page, limit)


def search(db: Session, user_id: int, kind, term: str) -> list[dict]:
    """Every item matching the text, newest first (no pagination)"""
    user = store.load_user(db, user_id)
    return sort_items(filter_items(items_of(user, kind), kind, search=term), kind)


def recent(db: Session, user_id: int, kind, limit: int = 5) -> list[dict]:
    user = store.load_user(db, user_id)
    return sort_items(items_of(user, kind), kind)[:limit]


def get_by_id(db: Session, user_id: int, kind, item_id: str) -> dict:
    rules = rules_for(kind)
    user = store.load_user(db, user_id)
    items = items_of(user, kind)
    return items[_find_index(items, item_id, rules["label"])]
