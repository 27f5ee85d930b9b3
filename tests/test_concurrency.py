"""
Two requests appending to the same user at the same time.

The interleaving is forced: right after request A has read the user, request
B (another session) appends and commits. A's write is then stale and must be
replayed on top of B's version instead of overwriting it.
"""

import pytest

import embedded
import store
from embedded import CollectionKind
from errors import ConflictError
from models import User


@pytest.fixture
def sessions(session_factory):
    db_a, db_b = session_factory(), session_factory()
    yield db_a, db_b
    db_a.close()
    db_b.close()


def _interleave_after_load(monkeypatch, db_a, db_b, times):
    real_load_user = store.load_user
    calls = {"interleaved": 0}

    def load_user(db, user_id):
        user = real_load_user(db, user_id)
        if db is db_a and calls["interleaved"] < times:
            calls["interleaved"] += 1
            embedded.append(db_b, user_id, CollectionKind.tasks, {"title": f"from B #{calls['interleaved']}"})
        return user

    monkeypatch.setattr(store, "load_user", load_user)
    return calls


def test_racing_appends_both_survive(make_user, sessions, session_factory, monkeypatch):
    user_id = make_user().id
    db_a, db_b = sessions
    calls = _interleave_after_load(monkeypatch, db_a, db_b, times=1)

    embedded.append(db_a, user_id, CollectionKind.tasks, {"title": "from A"})

    assert calls["interleaved"] == 1
    check = session_factory()
    try:
        titles = sorted(task["title"] for task in check.get(User, user_id).tasks)
    finally:
        check.close()
    assert titles == ["from A", "from B #1"]


def test_gives_up_with_conflict_when_always_stale(make_user, sessions, session_factory, monkeypatch):
    user_id = make_user().id
    db_a, db_b = sessions
    _interleave_after_load(monkeypatch, db_a, db_b, times=store.MAX_WRITE_ATTEMPTS)

    with pytest.raises(ConflictError):
        embedded.append(db_a, user_id, CollectionKind.tasks, {"title": "from A"})

    check = session_factory()
    try:
        titles = [task["title"] for task in check.get(User, user_id).tasks]
    finally:
        check.close()
    assert "from A" not in titles
    assert len(titles) == store.MAX_WRITE_ATTEMPTS
