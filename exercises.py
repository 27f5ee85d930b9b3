"""
=============================================================================
EXERCISES.PY — Exercise card catalog
=============================================================================
The catalog is a regular table: filters, sorting and pagination are done in
SQL, unlike the embedded collections.

Inactive cards (is_active = False) never show up in listings, searches or
random picks, but workouts that reference them keep working.
"""

import logging
import random
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import store
from errors import ConflictError, ValidationError
from models import ExerciseCard
from pagination import pagination_meta, parse_pagination
from schemas import ExerciseCreate, ExerciseResponse

logger = logging.getLogger("shukuma.exercises")

SORT_FIELDS = {
    "name": ExerciseCard.name,
    "difficulty": ExerciseCard.difficulty,
    "duration": ExerciseCard.duration,
    "popularity": ExerciseCard.completion_count,
    "createdAt": ExerciseCard.created_at,
}


def calories_per_minute(card: ExerciseCard) -> int:
    if not card.calories_burned or not card.duration:
        return 0
    return round(card.calories_burned / card.duration)


def serialize_exercise(card: ExerciseCard) -> dict:
    data = ExerciseResponse.model_validate(card).model_dump(mode="json", by_alias=True)
    data["caloriesPerMinute"] = calories_per_minute(card)
    return data


def _active(db: Session):
    return db.query(ExerciseCard).filter(ExerciseCard.is_active.is_(True))


def _matches(pattern: str):
    return or_(ExerciseCard.name.ilike(pattern, escape=store.LIKE_ESCAPE),
               ExerciseCard.description.ilike(pattern, escape=store.LIKE_ESCAPE))


# =============================================================================
# ===================== QUERIES ===============================================
# =============================================================================

def list_exercises(db: Session, *, difficulty: Optional[str] = None, category: Optional[str] = None,
                   muscle_group: Optional[str] = None, goal: Optional[str] = None,
                   search: Optional[str] = None, sort_by: str = "name", order: str = "asc",
                   page: Optional[int] = None, limit: Optional[int] = None) -> tuple[list[ExerciseCard], dict]:
    if sort_by not in SORT_FIELDS:
        raise ValidationError(f"sortBy must be one of: {', '.join(SORT_FIELDS)}")
    if order not in ("asc", "desc"):
        raise ValidationError("order must be 'asc' or 'desc'")
    page, limit, skip = parse_pagination(page, limit)

    query = _active(db)
    if difficulty:
        query = query.filter(ExerciseCard.difficulty == difficulty)
    if category:
        query = query.filter(ExerciseCard.category == category)
    if goal:
        query = query.filter(ExerciseCard.goal == goal)
    if search:
        pattern = store.contains_pattern(search)
        query = query.filter(_matches(pattern))

    column = SORT_FIELDS[sort_by]
    query = query.order_by(column.desc() if order == "desc" else column.asc(), ExerciseCard.id.asc())

    if muscle_group:
        # muscle_groups is a JSON list: membership is checked in Python
        matching = [card for card in query.all() if muscle_group in (card.muscle_groups or [])]
        return matching[skip:skip + limit], pagination_meta(page, limit, len(matching))

    total = query.count()
    return query.offset(skip).limit(limit).all(), pagination_meta(page, limit, total)


def get_exercise(db: Session, exercise_id: int) -> ExerciseCard:
    return store.load_exercise(db, exercise_id)


def random_exercise(db: Session, difficulty: Optional[str] = None,
                    category: Optional[str] = None) -> Optional[ExerciseCard]:
    """One random active card matching the filters, or None"""
    query = _active(db)
    if difficulty:
        query = query.filter(ExerciseCard.difficulty == difficulty)
    if category:
        query = query.filter(ExerciseCard.category == category)
    cards = query.all()
    return random.choice(cards) if cards else None


def by_category(db: Session, category: str) -> list[ExerciseCard]:
    return _active(db).filter(ExerciseCard.category == category).order_by(ExerciseCard.name).all()


def by_difficulty(db: Session, difficulty: str) -> list[ExerciseCard]:
    return _active(db).filter(ExerciseCard.difficulty == difficulty).order_by(ExerciseCard.name).all()


def search_exercises(db: Session, term: str, limit: int = 20) -> list[ExerciseCard]:
    pattern = store.contains_pattern(term)
    return (
        _active(db)
        .filter(_matches(pattern))
        .order_by(ExerciseCard.name)
        .limit(limit)
        .all()
    )


def popular_exercises(db: Session, limit: int = 10) -> list[ExerciseCard]:
    return (
        _active(db)
        .order_by(ExerciseCard.completion_count.desc(), ExerciseCard.name)
        .limit(limit)
        .all()
    )


def exercise_stats(db: Session) -> dict:
    def grouped(column):
        rows = (
            db.query(column, func.count(ExerciseCard.id))
            .filter(ExerciseCard.is_active.is_(True))
            .group_by(column)
            .all()
        )
        return {key: count for key, count in rows}

    return {
        "totalExercises": _active(db).count(),
        "byCategory": grouped(ExerciseCard.category),
        "byDifficulty": grouped(ExerciseCard.difficulty),
        "totalCompletions": db.query(func.coalesce(func.sum(ExerciseCard.completion_count), 0)).scalar(),
    }


# =============================================================================
# ===================== CREATE ================================================
# =============================================================================

def create_exercise(db: Session, data: dict) -> ExerciseCard:
    try:
        payload = ExerciseCreate.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc)

    if db.query(ExerciseCard).filter(func.lower(ExerciseCard.name) == payload.name.lower()).first():
        raise ConflictError("An exercise with this name already exists")

    values = payload.model_dump(mode="json")
    card = ExerciseCard(**values, is_active=True, completion_count=0)
    db.add(card)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("An exercise with this name already exists")
    db.refresh(card)
    logger.info(f"🏋️ Exercise card '{card.name}' created")
    return card


# =============================================================================
# ===================== SEED DATA =============================================
# =============================================================================

DEFAULT_EXERCISES = [
    {
        "name": "Jumping Jacks", "description": "Full body warm-up that raises the heart rate.",
        "difficulty": "Beginner", "category": "Cardio", "duration": 5, "reps": "30 seconds", "sets": 3,
        "calories_burned": 50, "muscle_groups": ["Full Body", "Cardio"], "goal": "Endurance",
        "instructions": ["Stand with feet together", "Jump while raising arms overhead", "Return to start"],
    },
    {
        "name": "Push-ups", "description": "Classic upper body strength exercise.",
        "difficulty": "Beginner", "category": "Strength", "duration": 10, "reps": "10-15", "sets": 3,
        "calories_burned": 70, "muscle_groups": ["Chest", "Triceps", "Shoulders"], "goal": "Muscle Gain",
        "instructions": ["Start in a plank position", "Lower your chest to the floor", "Push back up"],
    },
    {
        "name": "Bodyweight Squats", "description": "Lower body basic movement.",
        "difficulty": "Beginner", "category": "Strength", "duration": 10, "reps": "15-20", "sets": 3,
        "calories_burned": 80, "muscle_groups": ["Legs", "Glutes", "Quadriceps"], "goal": "General Fitness",
        "instructions": ["Feet shoulder width apart", "Sit back and down", "Drive up through the heels"],
    },
    {
        "name": "Plank", "description": "Isometric core hold.",
        "difficulty": "Beginner", "category": "Strength", "duration": 5, "reps": "45 seconds", "sets": 3,
        "calories_burned": 25, "muscle_groups": ["Core", "Abs"], "goal": "General Fitness",
        "instructions": ["Forearms on the floor", "Keep the body in a straight line", "Hold"],
    },
    {
        "name": "Burpees", "description": "High intensity full body movement.",
        "difficulty": "Intermediate", "category": "HIIT", "duration": 10, "reps": "10-12", "sets": 4,
        "calories_burned": 120, "muscle_groups": ["Full Body"], "goal": "Weight Loss",
        "instructions": ["Squat down", "Jump feet back to a plank", "Push-up", "Jump up"],
    },
    {
        "name": "Mountain Climbers", "description": "Cardio and core in one move.",
        "difficulty": "Intermediate", "category": "HIIT", "duration": 8, "reps": "40 seconds", "sets": 3,
        "calories_burned": 90, "muscle_groups": ["Core", "Shoulders", "Cardio"], "goal": "Weight Loss",
        "instructions": ["Start in a plank", "Drive knees to chest alternately", "Keep hips low"],
    },
    {
        "name": "Downward Dog", "description": "Yoga pose that stretches the whole posterior chain.",
        "difficulty": "Beginner", "category": "Yoga", "duration": 5, "reps": "5 breaths", "sets": 3,
        "calories_burned": 15, "muscle_groups": ["Hamstrings", "Calves", "Shoulders"], "goal": "Flexibility",
        "instructions": ["Hands and knees on the floor", "Lift hips up and back", "Press heels down"],
    },
    {
        "name": "Single Leg Balance", "description": "Stability and ankle strength.",
        "difficulty": "Beginner", "category": "Balance", "duration": 5, "reps": "30 seconds per leg", "sets": 2,
        "calories_burned": 10, "muscle_groups": ["Legs", "Core"], "goal": "General Fitness",
        "instructions": ["Stand on one leg", "Keep the knee soft", "Switch legs"],
    },
    {
        "name": "Hundred", "description": "Pilates core endurance classic.",
        "difficulty": "Intermediate", "category": "Pilates", "duration": 5, "reps": "100 pumps", "sets": 1,
        "calories_burned": 30, "muscle_groups": ["Core", "Abs"], "goal": "Endurance",
        "instructions": ["Lie on your back, legs at tabletop", "Curl head and shoulders up", "Pump arms 100 times"],
    },
    {
        "name": "Pistol Squats", "description": "Advanced single leg squat.",
        "difficulty": "Advanced", "category": "Strength", "duration": 15, "reps": "5-8 per leg", "sets": 3,
        "calories_burned": 100, "muscle_groups": ["Legs", "Glutes", "Core"], "goal": "Muscle Gain",
        "instructions": ["Stand on one leg", "Extend the other leg forward", "Squat down and stand up"],
    },
    {
        "name": "Hamstring Stretch", "description": "Seated forward fold.",
        "difficulty": "Beginner", "category": "Flexibility", "duration": 5, "reps": "30 seconds", "sets": 2,
        "calories_burned": 8, "muscle_groups": ["Hamstrings"], "goal": "Flexibility",
        "instructions": ["Sit with legs extended", "Hinge at the hips", "Reach for your toes"],
    },
]


def seed_exercises(db: Session):
    """
    Inserts the default cards that do not exist yet.
    Runs at startup.
    """
    existing = {name for (name,) in db.query(ExerciseCard.name).all()}
    added = 0
    for definition in DEFAULT_EXERCISES:
        if definition["name"] in existing:
            continue
        db.add(ExerciseCard(**definition, is_active=True, completion_count=0))
        added += 1
    db.commit()
    logger.info(f"✅ {len(DEFAULT_EXERCISES)} exercise cards checked ({added} added)")
