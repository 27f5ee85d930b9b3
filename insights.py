"""
=============================================================================
INSIGHTS.PY — Read-only summaries over the embedded collections
=============================================================================
Nothing here writes. Every function takes an already loaded User (plus an
explicit `now` where time matters) and returns a plain dict ready to be
sent as JSON.

  Tasks      → summary, stats (completion rate, last 7 days)
  Journal    → stats per mood, mood trends (score per day)
  Nutrition  → stats over N days, static meal guides
  Triggers   → stats, top 5 most common
"""

from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Optional

from embedded import CollectionKind, items_of, parse_timestamp
from models import Mood, User

# Scores used for mood trends: the higher, the better
MOOD_SCORES = {
    Mood.terrible.value: 1,
    Mood.bad.value: 2,
    Mood.okay.value: 3,
    Mood.good.value: 4,
    Mood.great.value: 5,
}


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _start_of_week(moment: datetime) -> datetime:
    """Weeks start on Sunday"""
    days_since_sunday = (moment.weekday() + 1) % 7
    return _start_of_day(moment) - timedelta(days=days_since_sunday)


def _start_of_month(moment: datetime) -> datetime:
    return _start_of_day(moment).replace(day=1)


def _count_since(items: list[dict], date_field: str, since: datetime) -> int:
    return sum(1 for item in items if parse_timestamp(item[date_field]) >= since)


# =============================================================================
# ===================== TASKS =================================================
# =============================================================================

def task_summary(user: User) -> dict:
    tasks = items_of(user, CollectionKind.tasks)
    completed = sum(1 for task in tasks if task.get("completed"))
    return {"total": len(tasks), "completed": completed, "pending": len(tasks) - completed}


def task_stats(user: User, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    tasks = items_of(user, CollectionKind.tasks)
    summary = task_summary(user)
    week_ago = now - timedelta(days=7)
    recent = [task for task in tasks if parse_timestamp(task["createdAt"]) >= week_ago]

    return {
        "totalTasks": summary["total"],
        "completedTasks": summary["completed"],
        "pendingTasks": summary["pending"],
        "completionRate": round(summary["completed"] / summary["total"] * 100) if summary["total"] else 0,
        "recentActivity": {
            "created": len(recent),
            "completed": sum(1 for task in recent if task.get("completed")),
        },
    }


# =============================================================================
# ===================== JOURNAL ===============================================
# =============================================================================

def journal_stats(user: User, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    entries = items_of(user, CollectionKind.journal)

    mood_counts = {mood.value: 0 for mood in Mood}
    for entry in entries:
        if entry.get("mood") in mood_counts:
            mood_counts[entry["mood"]] += 1

    average_per_week = 0.0
    if entries:
        oldest = min(parse_timestamp(entry["date"]) for entry in entries)
        weeks = max(1, -(-(now - oldest).days // 7))
        average_per_week = round(len(entries) / weeks, 1)

    most_common = None
    if any(mood_counts.values()):
        most_common = max(mood_counts, key=lambda mood: mood_counts[mood])

    return {
        "totalEntries": len(entries),
        "entriesThisWeek": _count_since(entries, "date", _start_of_week(now)),
        "entriesThisMonth": _count_since(entries, "date", _start_of_month(now)),
        "averageEntriesPerWeek": average_per_week,
        "moodDistribution": mood_counts,
        "mostCommonMood": most_common,
    }


def mood_trends(user: User, days: int = 30, now: Optional[datetime] = None) -> dict:
    """Average mood score per day over the last `days` days (days without mood are skipped)"""
    now = now or datetime.utcnow()
    since = _start_of_day(now) - timedelta(days=days - 1)

    scores = defaultdict(list)
    for entry in items_of(user, CollectionKind.journal):
        moment = parse_timestamp(entry["date"])
        if moment >= since and entry.get("mood") in MOOD_SCORES:
            scores[moment.date().isoformat()].append(MOOD_SCORES[entry["mood"]])

    trend = [
        {"date": day, "averageScore": round(sum(values) / len(values), 2), "entries": len(values)}
        for day, values in sorted(scores.items())
    ]
    return {"period": f"{days} days", "trends": trend}


# =============================================================================
# ===================== NUTRITION =============================================
# =============================================================================

MEAL_GUIDES = [
    {
        "id": "balanced-breakfast",
        "title": "Balanced breakfast",
        "category": "Breakfast",
        "description": "Start the day with protein, fibre and a portion of fruit.",
        "examples": ["Oatmeal with berries and nuts", "Greek yoghurt with granola", "Eggs on wholegrain toast"],
    },
    {
        "id": "pre-workout",
        "title": "Pre-workout fuel",
        "category": "Workout",
        "description": "Easy to digest carbohydrates 30 to 60 minutes before training.",
        "examples": ["Banana with peanut butter", "Rice cakes with honey", "A small smoothie"],
    },
    {
        "id": "post-workout",
        "title": "Post-workout recovery",
        "category": "Workout",
        "description": "Protein plus carbohydrates within two hours after training.",
        "examples": ["Chicken with rice and vegetables", "Protein shake and fruit", "Tuna wrap"],
    },
    {
        "id": "light-dinner",
        "title": "Light dinner",
        "category": "Dinner",
        "description": "Vegetables first, lean protein, moderate carbohydrates.",
        "examples": ["Grilled fish with salad", "Vegetable stir fry with tofu", "Lentil soup"],
    },
    {
        "id": "healthy-snacks",
        "title": "Healthy snacks",
        "category": "Snacks",
        "description": "Keep hunger under control between meals.",
        "examples": ["A handful of almonds", "Carrot sticks with hummus", "An apple"],
    },
]


def nutrition_stats(user: User, days: int = 7, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    since = _start_of_day(now) - timedelta(days=days - 1)
    logs = [log for log in items_of(user, CollectionKind.food_logs) if parse_timestamp(log["date"]) >= since]
    total_meals = sum(len(log.get("meals") or []) for log in logs)
    logged_days = {parse_timestamp(log["date"]).date() for log in logs}

    return {
        "period": f"{days} days",
        "totalLogs": len(logs),
        "totalMeals": total_meals,
        "daysLogged": len(logged_days),
        "averageMealsPerLog": round(total_meals / len(logs), 1) if logs else 0,
    }


# =============================================================================
# ===================== TRIGGERS ==============================================
# =============================================================================

def trigger_stats(user: User, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    triggers = items_of(user, CollectionKind.triggers)
    counts = Counter(item["trigger"].strip().lower() for item in triggers)

    return {
        "totalTriggers": len(triggers),
        "triggersThisWeek": _count_since(triggers, "date", _start_of_week(now)),
        "triggersThisMonth": _count_since(triggers, "date", _start_of_month(now)),
        "mostCommonTriggers": [{"trigger": text, "count": count} for text, count in counts.most_common(5)],
    }
