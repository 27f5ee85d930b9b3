"""
=============================================================================
GAMIFICATION.PY — Workouts, streaks and achievements
=============================================================================
Manages:
  - Workout logging (workoutHistory + streak + exercise completion count)
  - Streaks (consecutive days with at least one workout)
  - Achievements (derived from totals, never stored)
  - Progress, summary, stats and calendar views

Streak rule, evaluated when a workout is logged:
  last workout today      → unchanged
  last workout yesterday  → streak + 1
  anything else           → streak = 1
"""

import logging
from collections import Counter, defaultdict
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

import embedded
import store
from embedded import CollectionKind, items_of, parse_timestamp
from models import ExerciseCard, User

logger = logging.getLogger("shukuma.gamification")

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


# =============================================================================
# ===================== STREAKS ===============================================
# =============================================================================

def worked_out_on(user: User, day: date) -> bool:
    return user.last_workout_date is not None and user.last_workout_date.date() == day


def next_streak(streak_count: int, last_workout_date: Optional[datetime], today: date) -> int:
    """
    Streak after a workout logged `today`.

    Returns:
      same value  if the last workout was already today
      value + 1   if it was yesterday
      1           otherwise (first workout or broken streak)
    """
    if last_workout_date is None:
        return 1
    gap = (today - last_workout_date.date()).days
    if gap == 0:
        return streak_count
    if gap == 1:
        return streak_count + 1
    return 1


def current_streak(user: User, today: date) -> int:
    """The stored streak, or 0 if it was broken (no workout today or yesterday)"""
    if user.last_workout_date is None:
        return 0
    if (today - user.last_workout_date.date()).days > 1:
        return 0
    return user.streak_count or 0


# =============================================================================
# ===================== WORKOUT LOGGING =======================================
# =============================================================================

def log_workout(db: Session, user_id: int, data: dict, now: Optional[datetime] = None) -> dict:
    """
    Logs a workout for the user:
      1. the exercise must exist
      2. streak advanced (once per day)
      3. workout appended to workoutHistory (duration defaults to the card's)
      4. exercise completion count + 1
    Everything is committed together.
    """
    return store.atomic(db, _log_workout, user_id, data, now or datetime.utcnow())


def _log_workout(db: Session, user_id: int, data: dict, now: datetime) -> dict:
    user = store.load_user(db, user_id)
    exercise = store.load_exercise(db, data["exerciseId"])

    if not worked_out_on(user, now.date()):
        user.streak_count = next_streak(user.streak_count or 0, user.last_workout_date, now.date())
        user.last_workout_date = now

    duration = data.get("duration")
    item = embedded.add_item(user, CollectionKind.workout_history, {
        "exerciseId": exercise.id,
        "completed": True,
        "duration": duration if duration is not None else exercise.duration,
        "notes": data.get("notes"),
    }, now)

    exercise.completion_count = ExerciseCard.completion_count + 1

    logger.info(f"💪 User {user_id} logged '{exercise.name}' (streak {user.streak_count})")
    return {"workout": item, "streakCount": user.streak_count}


# =============================================================================
# ===================== ACHIEVEMENTS ==========================================
# =============================================================================
# Derived on every read from the workout totals and the streak.

ACHIEVEMENTS_DEFINITIONS = [
    # ── Workouts ──
    {"code": "first_workout", "name": "First step 👣", "description": "Complete your first workout", "kind": "workouts", "threshold": 1},
    {"code": "workouts_10", "name": "Getting started 🌱", "description": "Complete 10 workouts", "kind": "workouts", "threshold": 10},
    {"code": "workouts_50", "name": "Half century ✨", "description": "Complete 50 workouts", "kind": "workouts", "threshold": 50},
    {"code": "workouts_100", "name": "Centurion 💯", "description": "Complete 100 workouts", "kind": "workouts", "threshold": 100},

    # ── Streaks ──
    {"code": "streak_7", "name": "Week on fire 🔥", "description": "Work out 7 days in a row", "kind": "streak", "threshold": 7},
    {"code": "streak_30", "name": "Month of steel 🛡️", "description": "Work out 30 days in a row", "kind": "streak", "threshold": 30},
]


def unlocked_achievements(total_workouts: int, streak: int) -> list[dict]:
    values = {"workouts": total_workouts, "streak": streak}
    return [
        {key: ach[key] for key in ("code", "name", "description")}
        for ach in ACHIEVEMENTS_DEFINITIONS
        if values[ach["kind"]] >= ach["threshold"]
    ]


# =============================================================================
# ===================== VIEWS =================================================
# =============================================================================

def _workouts(user: User) -> list[dict]:
    return items_of(user, CollectionKind.workout_history)


def _days_ago(now: datetime, days: int) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0) - timedelta(days=days - 1)


def workout_frequency(user: User, days: int = 30, now: Optional[datetime] = None) -> list[dict]:
    """Workouts per day over the last `days` days (days without workouts included)"""
    now = now or datetime.utcnow()
    since = _days_ago(now, days)
    counts = Counter(
        parse_timestamp(w["date"]).date() for w in _workouts(user)
        if parse_timestamp(w["date"]) >= since
    )
    return [
        {"date": (since + timedelta(days=offset)).date().isoformat(),
         "count": counts.get((since + timedelta(days=offset)).date(), 0)}
        for offset in range(days)
    ]


def workout_progress(user: User, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    workouts = _workouts(user)
    streak = current_streak(user, now.date())
    recent = sorted(workouts, key=lambda w: parse_timestamp(w["date"]), reverse=True)[:10]

    return {
        "totalWorkouts": len(workouts),
        "streakCount": streak,
        "lastWorkoutDate": user.last_workout_date.isoformat() if user.last_workout_date else None,
        "achievements": unlocked_achievements(len(workouts), max(streak, user.streak_count or 0)),
        "workoutFrequency": workout_frequency(user, 30, now),
        "recentWorkouts": recent,
    }


def workout_summary(user: User, now: Optional[datetime] = None) -> dict:
    """Totals, favourite weekday and average per week since the first workout"""
    now = now or datetime.utcnow()
    workouts = _workouts(user)
    if not workouts:
        return {
            "totalWorkouts": 0,
            "totalMinutes": 0,
            "favoriteDay": None,
            "averagePerWeek": 0,
            "firstWorkout": None,
            "lastWorkout": None,
        }

    dates = sorted(parse_timestamp(w["date"]) for w in workouts)
    weekday_counts = Counter(d.weekday() for d in dates)
    favorite = max(sorted(weekday_counts), key=lambda day: weekday_counts[day])
    weeks = max(1, -(-(now - dates[0]).days // 7))

    return {
        "totalWorkouts": len(workouts),
        "totalMinutes": sum(w.get("duration") or 0 for w in workouts),
        "favoriteDay": WEEKDAYS[favorite],
        "averagePerWeek": round(len(workouts) / weeks, 1),
        "firstWorkout": dates[0].isoformat(),
        "lastWorkout": dates[-1].isoformat(),
    }


def workout_stats(db: Session, user: User, days: int = 30, now: Optional[datetime] = None) -> dict:
    """Totals over the last `days` days plus category breakdown"""
    now = now or datetime.utcnow()
    since = _days_ago(now, days)
    workouts = [w for w in _workouts(user) if parse_timestamp(w["date"]) >= since]

    exercise_ids = {w["exerciseId"] for w in workouts}
    categories = {}
    if exercise_ids:
        categories = {
            card.id: card.category
            for card in db.query(ExerciseCard).filter(ExerciseCard.id.in_(exercise_ids)).all()
        }
    by_category = Counter(categories.get(w["exerciseId"], "Unknown") for w in workouts)
    total_minutes = sum(w.get("duration") or 0 for w in workouts)

    return {
        "period": f"{days} days",
        "totalWorkouts": len(workouts),
        "totalMinutes": total_minutes,
        "averageDuration": round(total_minutes / len(workouts)) if workouts else 0,
        "activeDays": len({parse_timestamp(w["date"]).date() for w in workouts}),
        "byCategory": dict(by_category),
        "streakCount": current_streak(user, now.date()),
    }


def workout_calendar(user: User, start: date, end: date) -> dict:
    """{ 'YYYY-MM-DD': [workout, ...] } for every day in [start, end] with workouts"""
    calendar = defaultdict(list)
    for workout in _workouts(user):
        day = parse_timestamp(workout["date"]).date()
        if start <= day <= end:
            calendar[day.isoformat()].append(workout)
    return dict(sorted(calendar.items()))


def user_stats(user: User, now: Optional[datetime] = None) -> dict:
    """Overview for the profile page: one counter per collection"""
    now = now or datetime.utcnow()
    tasks = items_of(user, CollectionKind.tasks)
    return {
        "totalWorkouts": len(user.workout_history or []),
        "streakCount": current_streak(user, now.date()),
        "totalTasks": len(tasks),
        "completedTasks": sum(1 for t in tasks if t.get("completed")),
        "journalEntries": len(user.journal or []),
        "foodLogs": len(user.food_logs or []),
        "triggers": len(user.triggers or []),
        "friends": len(user.friends or []),
        "pendingFriendRequests": len(user.friend_requests or []),
        "memberSince": user.created_at.isoformat() if user.created_at else None,
    }
