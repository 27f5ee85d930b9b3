"""
=============================================================================
STORE.PY — Aggregate store
=============================================================================
Thin layer between the engines (embedded, friends, challenges) and
SQLAlchemy. Three jobs:

  1. load_*        → fetch one aggregate by id or raise NotFoundError
  2. write_list    → put a new version of an embedded list on the aggregate
  3. atomic        → run one mutation and commit it as a single write,
                     replaying it if somebody else wrote the same document
                     in the meantime

Why the replay?
  Every mutation is "read whole document → change it in memory → write
  whole document". Two requests doing that at the same time on the same
  user would make the last writer win and silently drop the other change.
  The version_id column (see models.py) makes the second UPDATE fail with
  StaleDataError instead; we roll back, reload, and apply the change again
  on top of the fresh document.
"""

import logging
from typing import Callable, Iterable, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from errors import ConflictError, NotFoundError
from models import Challenge, ExerciseCard, User

logger = logging.getLogger("shukuma.store")

MAX_WRITE_ATTEMPTS = 3

T = TypeVar("T")


# ─────────────────────────────────────────────────────────────────────────────
# LOAD
# ─────────────────────────────────────────────────────────────────────────────

def load_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User")
    return user


def load_users(db: Session, user_ids: Iterable[int]) -> list[User]:
    """Loads several users at once. Missing ids are simply skipped."""
    ids = list(user_ids)
    if not ids:
        return []
    return db.query(User).filter(User.id.in_(ids)).all()


def load_challenge(db: Session, challenge_id: int) -> Challenge:
    challenge = db.get(Challenge, challenge_id)
    if challenge is None:
        raise NotFoundError("Challenge")
    return challenge


def load_exercise(db: Session, exercise_id: int) -> ExerciseCard:
    exercise = db.get(ExerciseCard, exercise_id)
    if exercise is None:
        raise NotFoundError("Exercise")
    return exercise


# ─────────────────────────────────────────────────────────────────────────────
# SEARCH
# ─────────────────────────────────────────────────────────────────────────────

LIKE_ESCAPE = "\\"


def contains_pattern(text: str) -> str:
    """LIKE pattern matching `text` anywhere, with its wildcards taken literally"""
    for char in (LIKE_ESCAPE, "%", "_"):
        text = text.replace(char, LIKE_ESCAPE + char)
    return f"%{text}%"


# ─────────────────────────────────────────────────────────────────────────────
# WRITE
# ─────────────────────────────────────────────────────────────────────────────

def write_list(aggregate, field: str, items: list) -> None:
    """
    Replaces an embedded JSON list on the aggregate.

    JSON columns do not track in-place changes, so the list is always
    replaced and explicitly flagged as modified (this also bumps version_id
    on flush).
    """
    setattr(aggregate, field, list(items))
    flag_modified(aggregate, field)


def atomic(db: Session, operation: Callable[..., T], *args, **kwargs) -> T:
    """
    Runs operation(db, *args, **kwargs) and commits it.

    The operation must load what it needs through the session every time it
    is called: on a stale write the session is rolled back (which expires
    every loaded aggregate) and the operation runs again from scratch.
    """
    for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
        try:
            result = operation(db, *args, **kwargs)
            db.commit()
            return result
        except StaleDataError:
            db.rollback()
            logger.warning(
                f"⚠️ Concurrent write detected in {operation.__name__} "
                f"(attempt {attempt}/{MAX_WRITE_ATTEMPTS}), replaying"
            )
        except Exception:
            db.rollback()
            raise

    raise ConflictError("The record was modified by another request, please retry")
