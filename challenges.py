"""
=============================================================================
CHALLENGES.PY — Challenge participation engine
=============================================================================
A challenge has a time window [start_date, end_date] and two lists that
always move together:
  participants → [user_id, ...]
  progress     → [{userId, value, updatedAt}, ...]   (one per participant)

Rules:
  join      → only while the window is open, once per user
  leave     → only if participating, removes from both lists
  progress  → value >= 0, only participants, only while open
  delete    → only the creator

Status (expired / upcoming / ongoing / days remaining) is NEVER stored:
challenge_status() derives it from (now, start, end) on every read.
"""

import logging
import math
from datetime import datetime
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func
from sqlalchemy.orm import Session

import store
from errors import ForbiddenError, InvalidStateError, ValidationError, ConflictError
from models import Challenge
from pagination import pagination_meta, parse_pagination
from schemas import ChallengeCreate, ChallengeResponse

logger = logging.getLogger("shukuma.challenges")

LEADERBOARD_SIZE = 10
LIST_STATUSES = ("active", "upcoming", "expired", "all")
MY_STATUSES = ("active", "upcoming", "completed", "all")


# =============================================================================
# ===================== DERIVED STATUS ========================================
# =============================================================================

def challenge_status(start_date: datetime, end_date: datetime, now: datetime) -> dict:
    seconds_left = (end_date - now).total_seconds()
    return {
        "isExpired": now > end_date,
        "isUpcoming": now < start_date,
        "isOngoing": start_date <= now <= end_date,
        "daysRemaining": max(0, math.ceil(seconds_left / 86400)),
    }


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def progress_percentage(value: float, goal: int) -> int:
    return _round_half_up(value / goal * 100) if goal else 0


def user_progress(challenge: Challenge, user_id: int) -> float:
    for entry in challenge.progress or []:
        if entry["userId"] == user_id:
            return entry["value"]
    return 0


def serialize_challenge(challenge: Challenge, now: Optional[datetime] = None,
                        viewer_id: Optional[int] = None) -> dict:
    now = now or datetime.utcnow()
    data = ChallengeResponse.model_validate(challenge).model_dump(mode="json", by_alias=True)
    data.update(challenge_status(challenge.start_date, challenge.end_date, now))
    data["participantCount"] = len(challenge.participants or [])
    if viewer_id is not None:
        data["isParticipating"] = viewer_id in (challenge.participants or [])
        data["userProgress"] = user_progress(challenge, viewer_id)
        data["progressPercentage"] = progress_percentage(data["userProgress"], challenge.goal)
    return data


def _check_window(challenge: Challenge, now: datetime, action: str) -> None:
    if now < challenge.start_date:
        raise InvalidStateError(f"Cannot {action} a challenge that has not started yet")
    if now > challenge.end_date:
        raise InvalidStateError(f"Cannot {action} a challenge that has already ended")


# =============================================================================
# ===================== CATALOG ===============================================
# =============================================================================

def create_challenge(db: Session, creator_id: int, data: dict) -> Challenge:
    try:
        payload = ChallengeCreate.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc)

    if payload.start_date >= payload.end_date:
        raise ValidationError("End date must be after start date",
                              [{"field": "endDate", "message": "must be after startDate"}])

    values = payload.model_dump()
    for field in ("type", "difficulty", "category"):
        values[field] = values[field].value

    challenge = Challenge(**values, created_by=creator_id, participants=[], progress=[])
    db.add(challenge)
    db.commit()
    db.refresh(challenge)
    logger.info(f"🏁 Challenge {challenge.id} '{challenge.title}' created by user {creator_id}")
    return challenge


def _status_filter(query, status: str, now: datetime):
    if status == "active":
        return query.filter(Challenge.start_date <= now, Challenge.end_date >= now)
    if status == "upcoming":
        return query.filter(Challenge.start_date > now)
    if status == "expired":
        return query.filter(Challenge.end_date < now)
    return query


def list_challenges(db: Session, *, type: Optional[str] = None, difficulty: Optional[str] = None,
                    category: Optional[str] = None, status: str = "active",
                    page: Optional[int] = None, limit: Optional[int] = None,
                    now: Optional[datetime] = None) -> tuple[list[Challenge], dict]:
    """Public, active challenges. Filters and pagination run in SQL."""
    if status not in LIST_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(LIST_STATUSES)}")
    now = now or datetime.utcnow()
    page, limit, skip = parse_pagination(page, limit)

    query = db.query(Challenge).filter(Challenge.is_active.is_(True), Challenge.is_public.is_(True))
    if type:
        query = query.filter(Challenge.type == type)
    if difficulty:
        query = query.filter(Challenge.difficulty == difficulty)
    if category:
        query = query.filter(Challenge.category == category)
    query = _status_filter(query, status, now)

    total = query.count()
    challenges = query.order_by(Challenge.created_at.desc(), Challenge.id.desc()).offset(skip).limit(limit).all()
    return challenges, pagination_meta(page, limit, total)


def get_challenge(db: Session, challenge_id: int) -> Challenge:
    return store.load_challenge(db, challenge_id)


def active_challenges(db: Session, now: Optional[datetime] = None, limit: int = 10) -> list[Challenge]:
    """Ongoing challenges, most popular first"""
    now = now or datetime.utcnow()
    challenges = (
        _status_filter(db.query(Challenge), "active", now)
        .filter(Challenge.is_active.is_(True), Challenge.is_public.is_(True))
        .all()
    )
    challenges.sort(key=lambda c: len(c.participants or []), reverse=True)
    return challenges[:limit]


def upcoming_challenges(db: Session, now: Optional[datetime] = None, limit: int = 10) -> list[Challenge]:
    now = now or datetime.utcnow()
    return (
        _status_filter(db.query(Challenge), "upcoming", now)
        .filter(Challenge.is_active.is_(True), Challenge.is_public.is_(True))
        .order_by(Challenge.start_date.asc())
        .limit(limit)
        .all()
    )


def delete_challenge(db: Session, challenge_id: int, user_id: int) -> None:
    challenge = store.load_challenge(db, challenge_id)
    if challenge.created_by != user_id:
        raise ForbiddenError("Only the creator can delete this challenge")
    db.delete(challenge)
    db.commit()
    logger.info(f"🗑️ Challenge {challenge_id} deleted by user {user_id}")


# =============================================================================
# ===================== PARTICIPATION =========================================
# =============================================================================

def join(db: Session, challenge_id: int, user_id: int, now: Optional[datetime] = None) -> Challenge:
    return store.atomic(db, _join, challenge_id, user_id, now or datetime.utcnow())


def _join(db: Session, challenge_id: int, user_id: int, now: datetime) -> Challenge:
    challenge = store.load_challenge(db, challenge_id)
    _check_window(challenge, now, "join")
    if user_id in (challenge.participants or []):
        raise ConflictError("You are already participating in this challenge")

    store.write_list(challenge, "participants", [*(challenge.participants or []), user_id])
    store.write_list(challenge, "progress", [
        *(challenge.progress or []),
        {"userId": user_id, "value": 0, "updatedAt": now.isoformat()},
    ])
    logger.info(f"🙋 User {user_id} joined challenge {challenge_id}")
    return challenge


def leave(db: Session, challenge_id: int, user_id: int) -> Challenge:
    return store.atomic(db, _leave, challenge_id, user_id)


def _leave(db: Session, challenge_id: int, user_id: int) -> Challenge:
    challenge = store.load_challenge(db, challenge_id)
    if user_id not in (challenge.participants or []):
        raise InvalidStateError("You are not participating in this challenge")

    store.write_list(challenge, "participants", [p for p in challenge.participants if p != user_id])
    store.write_list(challenge, "progress", [e for e in (challenge.progress or []) if e["userId"] != user_id])
    logger.info(f"👋 User {user_id} left challenge {challenge_id}")
    return challenge


def update_progress(db: Session, challenge_id: int, user_id: int, value: float,
                    now: Optional[datetime] = None) -> dict:
    return store.atomic(db, _update_progress, challenge_id, user_id, value, now or datetime.utcnow())


def _update_progress(db: Session, challenge_id: int, user_id: int, value: float, now: datetime) -> dict:
    if not math.isfinite(value) or value < 0:
        raise ValidationError("Progress value must be a non-negative number",
                              [{"field": "value", "message": "must be a finite number >= 0"}])

    challenge = store.load_challenge(db, challenge_id)
    if user_id not in (challenge.participants or []):
        raise ForbiddenError("You must join the challenge before updating progress")
    _check_window(challenge, now, "update progress on")

    entry = {"userId": user_id, "value": value, "updatedAt": now.isoformat()}
    progress = [dict(e) for e in (challenge.progress or [])]
    for index, existing in enumerate(progress):
        if existing["userId"] == user_id:
            progress[index] = entry
            break
    else:
        progress.append(entry)

    store.write_list(challenge, "progress", progress)
    logger.info(f"📈 User {user_id} progress on challenge {challenge_id}: {value}")
    return {
        "progress": value,
        "goal": challenge.goal,
        "percentage": progress_percentage(value, challenge.goal),
    }


def rank_progress(progress: list[dict], goal: int, limit: int = LEADERBOARD_SIZE) -> list[dict]:
    """Highest value first; ties keep their original order"""
    ranked = sorted(progress or [], key=lambda entry: entry["value"], reverse=True)[:limit]
    return [
        {"userId": entry["userId"], "progress": entry["value"], "percentage": progress_percentage(entry["value"], goal)}
        for entry in ranked
    ]


def leaderboard(db: Session, challenge_id: int, limit: int = LEADERBOARD_SIZE) -> list[dict]:
    challenge = store.load_challenge(db, challenge_id)
    ranked = rank_progress(challenge.progress, challenge.goal, limit)
    users = {user.id: user for user in store.load_users(db, [entry["userId"] for entry in ranked])}

    board = []
    for rank, entry in enumerate(ranked, start=1):
        user = users.get(entry["userId"])
        board.append({
            "rank": rank,
            "user": {"id": entry["userId"], "name": user.name if user else None},
            "progress": entry["progress"],
            "percentage": entry["percentage"],
        })
    return board


def purge_participant(db: Session, user_id: int) -> int:
    """
    Removes user_id from every challenge's participants / progress.
    Does not commit: runs inside the account deletion transaction.
    """
    touched = 0
    for challenge in db.query(Challenge).all():
        if user_id in (challenge.participants or []):
            store.write_list(challenge, "participants", [p for p in challenge.participants if p != user_id])
            store.write_list(challenge, "progress",
                             [e for e in (challenge.progress or []) if e["userId"] != user_id])
            touched += 1
    return touched


# =============================================================================
# ===================== PER-USER VIEWS ========================================
# =============================================================================

def _joined_by(db: Session, user_id: int) -> list[Challenge]:
    # participants is a JSON list, membership is checked in Python
    return [c for c in db.query(Challenge).order_by(Challenge.start_date.desc()).all()
            if user_id in (c.participants or [])]


def my_challenges(db: Session, user_id: int, status: str = "all",
                  now: Optional[datetime] = None) -> list[dict]:
    if status not in MY_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(MY_STATUSES)}")
    now = now or datetime.utcnow()

    result = []
    for challenge in _joined_by(db, user_id):
        data = serialize_challenge(challenge, now, viewer_id=user_id)
        if status == "active" and not data["isOngoing"]:
            continue
        if status == "upcoming" and not data["isUpcoming"]:
            continue
        if status == "completed" and not data["isExpired"]:
            continue
        result.append(data)
    return result


def challenge_stats(db: Session, user_id: int, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    joined = _joined_by(db, user_id)

    completed = active = reached_goal = 0
    for challenge in joined:
        status = challenge_status(challenge.start_date, challenge.end_date, now)
        if status["isExpired"]:
            completed += 1
        elif status["isOngoing"]:
            active += 1
        if user_progress(challenge, user_id) >= challenge.goal:
            reached_goal += 1

    created = db.query(func.count(Challenge.id)).filter(Challenge.created_by == user_id).scalar()
    return {
        "totalJoined": len(joined),
        "activeChallenges": active,
        "completedChallenges": completed,
        "goalsReached": reached_goal,
        "challengesCreated": created or 0,
    }
