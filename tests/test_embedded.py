from datetime import date, datetime, timedelta

import pytest

import embedded
from embedded import COLLECTIONS, CollectionKind
from errors import NotFoundError, ValidationError


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.mark.parametrize("title", ["a", "Buy groceries", "x" * 200])
def test_append_then_get(db, user, title):
    task = embedded.append(db, user.id, CollectionKind.tasks, {"title": title})

    found = embedded.get_by_id(db, user.id, CollectionKind.tasks, task["id"])
    assert found["title"] == title
    assert found["completed"] is False
    assert "createdAt" in found


@pytest.mark.parametrize("title", ["", "   ", "x" * 201])
def test_append_rejects_invalid_titles(db, user, title):
    with pytest.raises(ValidationError):
        embedded.append(db, user.id, CollectionKind.tasks, {"title": title})
    db.refresh(user)
    assert user.tasks == []


def test_item_ids_are_unique(db, user):
    ids = {embedded.append(db, user.id, "tasks", {"title": f"task {i}"})["id"] for i in range(5)}
    assert len(ids) == 5


def test_client_supplied_id_and_date_are_ignored(db, user):
    entry = embedded.append(db, user.id, CollectionKind.journal, {
        "id": "mine", "content": "Felt strong today", "mood": "great", "date": "2001-01-01T00:00:00",
    })
    assert entry["id"] != "mine"
    assert not entry["date"].startswith("2001")


def test_append_past_the_cap_fails_and_size_stays(db, user, monkeypatch):
    monkeypatch.setitem(COLLECTIONS[CollectionKind.tasks], "max_items", 3)
    for i in range(3):
        embedded.append(db, user.id, CollectionKind.tasks, {"title": f"task {i}"})

    with pytest.raises(ValidationError):
        embedded.append(db, user.id, CollectionKind.tasks, {"title": "one too many"})

    db.refresh(user)
    assert len(user.tasks) == 3


def test_partial_update_changes_only_named_fields(db, user):
    task = embedded.append(db, user.id, CollectionKind.tasks, {"title": "Stretch"})

    updated = embedded.update(db, user.id, CollectionKind.tasks, task["id"], {"completed": True})

    assert updated["completed"] is True
    assert updated["title"] == "Stretch"
    assert updated["createdAt"] == task["createdAt"]
    assert updated["id"] == task["id"]


def test_update_ignores_immutable_fields(db, user):
    task = embedded.append(db, user.id, CollectionKind.tasks, {"title": "Stretch"})
    updated = embedded.update(db, user.id, CollectionKind.tasks, task["id"],
                              {"createdAt": "2001-01-01T00:00:00", "id": "other"})
    assert updated["createdAt"] == task["createdAt"]
    assert updated["id"] == task["id"]


def test_update_revalidates_the_merged_item(db, user):
    entry = embedded.append(db, user.id, CollectionKind.journal, {"content": "Good session"})
    with pytest.raises(ValidationError):
        embedded.update(db, user.id, CollectionKind.journal, entry["id"], {"mood": "ecstatic"})


def test_remove_then_get_and_remove_again(db, user):
    task = embedded.append(db, user.id, CollectionKind.tasks, {"title": "Run 5k"})
    embedded.remove(db, user.id, CollectionKind.tasks, task["id"])

    with pytest.raises(NotFoundError):
        embedded.get_by_id(db, user.id, CollectionKind.tasks, task["id"])
    with pytest.raises(NotFoundError):
        embedded.remove(db, user.id, CollectionKind.tasks, task["id"])


def test_unknown_user_is_not_found(db):
    with pytest.raises(NotFoundError):
        embedded.append(db, 999, CollectionKind.tasks, {"title": "ghost"})


def test_toggle_and_bulk_operations(db, user):
    first = embedded.append(db, user.id, CollectionKind.tasks, {"title": "one"})
    embedded.append(db, user.id, CollectionKind.tasks, {"title": "two"})
    embedded.append(db, user.id, CollectionKind.tasks, {"title": "three"})

    assert embedded.toggle(db, user.id, first["id"])["completed"] is True
    assert embedded.bulk_complete(db, user.id) == 2
    assert embedded.bulk_complete(db, user.id) == 0
    assert embedded.bulk_delete_completed(db, user.id) == 3

    db.refresh(user)
    assert user.tasks == []


def test_list_filters_search_and_sorts_newest_first(db, user):
    base = datetime(2024, 5, 1, 9, 0)
    for i, (title, done) in enumerate([("Morning run", True), ("Buy oats", False), ("Evening run", False)]):
        embedded.append(db, user.id, CollectionKind.tasks, {"title": title, "completed": done},
                        now=base + timedelta(hours=i))

    items, meta = embedded.list_items(db, user.id, CollectionKind.tasks, search="RUN")
    assert [t["title"] for t in items] == ["Evening run", "Morning run"]
    assert meta["totalItems"] == 2

    items, _ = embedded.list_items(db, user.id, CollectionKind.tasks, filters={"completed": False}, sort="oldest")
    assert [t["title"] for t in items] == ["Buy oats", "Evening run"]


def test_list_paginates(db, user):
    for i in range(25):
        embedded.append(db, user.id, CollectionKind.tasks, {"title": f"task {i}"})

    items, meta = embedded.list_items(db, user.id, CollectionKind.tasks, page=3, limit=10)
    assert len(items) == 5
    assert meta["totalPages"] == 3
    assert meta["hasNextPage"] is False


def test_list_rejects_unknown_filter_and_sort(db, user):
    with pytest.raises(ValidationError):
        embedded.list_items(db, user.id, CollectionKind.tasks, filters={"title": "x"})
    with pytest.raises(ValidationError):
        embedded.list_items(db, user.id, CollectionKind.tasks, sort="sideways")


def test_journal_date_range_is_inclusive(db, user):
    for day in (1, 2, 3):
        embedded.append(db, user.id, CollectionKind.journal, {"content": f"day {day}", "mood": "good"},
                        now=datetime(2024, 5, day, 20, 0))

    items, _ = embedded.list_items(db, user.id, CollectionKind.journal,
                                   start_date=date(2024, 5, 2), end_date=date(2024, 5, 3))
    assert [e["content"] for e in items] == ["day 3", "day 2"]

    with pytest.raises(ValidationError):
        embedded.list_items(db, user.id, CollectionKind.journal,
                            start_date=date(2024, 5, 3), end_date=date(2024, 5, 1))


def test_food_log_keeps_the_given_date_and_rejects_future(db, user):
    log = embedded.append(db, user.id, CollectionKind.food_logs,
                          {"date": "2024-05-01T12:00:00", "meals": ["Oatmeal", "Salad"]})
    assert log["date"].startswith("2024-05-01")

    tomorrow = (datetime.utcnow() + timedelta(days=1)).isoformat()
    with pytest.raises(ValidationError):
        embedded.append(db, user.id, CollectionKind.food_logs, {"date": tomorrow, "meals": ["Cake"]})

    items, _ = embedded.list_items(db, user.id, CollectionKind.food_logs, on_date=date(2024, 5, 1))
    assert [i["id"] for i in items] == [log["id"]]


def test_food_log_meal_bounds(db, user):
    with pytest.raises(ValidationError):
        embedded.append(db, user.id, CollectionKind.food_logs, {"date": "2024-05-01", "meals": []})
    with pytest.raises(ValidationError):
        embedded.append(db, user.id, CollectionKind.food_logs,
                        {"date": "2024-05-01", "meals": [f"meal {i}" for i in range(11)]})


def test_search_and_recent(db, user):
    for i in range(7):
        embedded.append(db, user.id, CollectionKind.journal, {"title": f"Entry {i}", "content": "leg day"},
                        now=datetime(2024, 5, 1 + i, 8, 0))

    assert len(embedded.search(db, user.id, CollectionKind.journal, "LEG")) == 7
    assert [e["title"] for e in embedded.recent(db, user.id, CollectionKind.journal, 2)] == ["Entry 6", "Entry 5"]
