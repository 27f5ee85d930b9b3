"""
=============================================================================
SCHEMAS.PY — Validation schemas (Pydantic)
=============================================================================
Models (SQLAlchemy) define the TABLES, schemas (Pydantic) define what
DATA the API accepts and returns.

The embedded item schemas (TaskCreate, JournalEntryCreate, FoodLogCreate,
TriggerCreate, WorkoutItem) do double duty: embedded.py validates every
new or merged sub-document against them, so the rules live in one place.

Wire format is camelCase (createdAt, exerciseId, startDate...) because the
front end reads the stored documents as they are. CamelModel takes care of
the aliases; Python code keeps using snake_case attribute names.

Naming convention:
  XxxCreate   → create something (POST)
  XxxUpdate   → partial update (PUT/PATCH), every field optional
  XxxResponse → what the API returns
"""

import re
from datetime import datetime, timezone
from typing import Annotated, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from models import (
    ChallengeCategory, ChallengeDifficulty, ChallengeType, ExerciseCategory,
    ExerciseDifficulty, ExerciseGoal, Mood, MuscleGroup, Privacy, Theme,
)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """All timestamps are stored as naive UTC"""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class CamelModel(BaseModel):
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "from_attributes": True,
        "str_strip_whitespace": True,
    }


# =============================================================================
# ===================== AUTH ==================================================
# =============================================================================

class UserRegister(CamelModel):
    """Data to create an account"""
    model_config = {"str_strip_whitespace": False}

    email: EmailStr
    password: str = Field(min_length=8, description="At least 8 chars, lower + upper + digit")
    name: str = Field(min_length=2, max_length=50, pattern=r"^[a-zA-Z\s]+$")
    username: Optional[str] = Field(None, min_length=3, max_length=30, pattern=r"^[a-zA-Z0-9_]+$")

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        if not re.search(r"[a-z]", value):
            raise ValueError("Password must contain at least one lowercase letter")
        if not re.search(r"[A-Z]", value):
            raise ValueError("Password must contain at least one uppercase letter")
        if not re.search(r"[0-9]", value):
            raise ValueError("Password must contain at least one number")
        return value

class UserLogin(CamelModel):
    model_config = {"str_strip_whitespace": False}

    email: EmailStr
    password: str = Field(min_length=1)

class TokenResponse(BaseModel):
    """JWT returned by signup / login"""
    access_token: str
    token_type: str = "bearer"
    user_id: int
    name: str

class SettingsUpdate(CamelModel):
    notifications: Optional[bool] = None
    theme: Optional[Theme] = None
    privacy: Optional[Privacy] = None

class UserUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=50, pattern=r"^[a-zA-Z\s]+$")
    username: Optional[str] = Field(None, min_length=3, max_length=30, pattern=r"^[a-zA-Z0-9_]+$")
    settings: Optional[SettingsUpdate] = None

class UserResponse(CamelModel):
    """Public profile of the authenticated user (no hashes, no embedded lists)"""
    id: int
    email: str
    name: str
    username: Optional[str] = None
    verified: bool
    settings: dict
    streak_count: int
    last_workout_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

class AccountDelete(CamelModel):
    model_config = {"str_strip_whitespace": False}

    password: str = Field(min_length=1, description="Required to delete the account")


# =============================================================================
# ===================== EMBEDDED ITEMS ========================================
# =============================================================================

class TaskCreate(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    completed: bool = False

class TaskUpdate(CamelModel):
    title: Optional[str] = None
    completed: Optional[bool] = None


class JournalEntryCreate(CamelModel):
    title: Optional[str] = Field(None, max_length=200)
    content: str = Field(min_length=1, max_length=5000)
    mood: Optional[Mood] = None

class JournalEntryUpdate(CamelModel):
    title: Optional[str] = None
    content: Optional[str] = None
    mood: Optional[Mood] = None


MealName = Annotated[str, Field(min_length=1, max_length=100)]

class FoodLogCreate(CamelModel):
    date: datetime
    meals: list[MealName] = Field(min_length=1, max_length=10)
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("date")
    @classmethod
    def not_in_future(cls, value: datetime) -> datetime:
        value = to_naive_utc(value)
        if value > datetime.utcnow():
            raise ValueError("Date cannot be in the future")
        return value

class FoodLogUpdate(CamelModel):
    date: Optional[datetime] = None
    meals: Optional[list[str]] = None
    notes: Optional[str] = None


class TriggerCreate(CamelModel):
    trigger: str = Field(min_length=1, max_length=300)
    notes: Optional[str] = Field(None, max_length=1000)

class TriggerUpdate(CamelModel):
    trigger: Optional[str] = None
    notes: Optional[str] = None


class WorkoutItem(CamelModel):
    """A workoutHistory sub-document (date is assigned by the server)"""
    exercise_id: int
    completed: bool = True
    duration: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=500)

class WorkoutLogCreate(CamelModel):
    exercise_id: int
    duration: Optional[int] = Field(None, ge=1, le=300)
    notes: Optional[str] = Field(None, max_length=500)


# =============================================================================
# ===================== EXERCISES =============================================
# =============================================================================

HttpUrl = Annotated[str, Field(pattern=r"^https?://.+")]

class ExerciseCreate(CamelModel):
    name: str = Field(min_length=3, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    difficulty: ExerciseDifficulty
    category: ExerciseCategory
    duration: int = Field(ge=1, le=120)
    reps: Optional[str] = Field(None, max_length=100)
    sets: Optional[int] = Field(None, ge=1, le=10)
    calories_burned: Optional[int] = Field(None, ge=0)
    image_url: Optional[HttpUrl] = None
    video_url: Optional[HttpUrl] = None
    instructions: list[str] = Field(default_factory=list, max_length=20)
    muscle_groups: list[MuscleGroup] = Field(default_factory=list)
    goal: Optional[ExerciseGoal] = None

class ExerciseResponse(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    difficulty: str
    category: str
    duration: int
    reps: Optional[str] = None
    sets: Optional[int] = None
    calories_burned: Optional[int] = None
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    instructions: list[str] = []
    muscle_groups: list[str] = []
    goal: Optional[str] = None
    is_active: bool
    completion_count: int
    calories_per_minute: int = 0
    created_at: datetime


# =============================================================================
# ===================== CHALLENGES ============================================
# =============================================================================

class ChallengeCreate(CamelModel):
    type: ChallengeType
    title: str = Field(min_length=5, max_length=100)
    description: str = Field(min_length=1, max_length=1000)
    rules: Optional[str] = Field(None, max_length=2000)
    difficulty: ChallengeDifficulty = ChallengeDifficulty.medium
    goal: int = Field(ge=1)
    start_date: datetime
    end_date: datetime
    reward: Optional[str] = Field(None, max_length=200)
    badge: Optional[str] = Field(None, max_length=100)
    category: ChallengeCategory = ChallengeCategory.fitness
    is_public: bool = True

    @field_validator("start_date", "end_date")
    @classmethod
    def as_utc(cls, value: datetime) -> datetime:
        return to_naive_utc(value)

class ProgressUpdate(CamelModel):
    value: float = Field(..., ge=0, allow_inf_nan=False)

class ChallengeResponse(CamelModel):
    id: int
    type: str
    title: str
    description: str
    rules: Optional[str] = None
    difficulty: str
    category: str
    goal: int
    start_date: datetime
    end_date: datetime
    reward: Optional[str] = None
    badge: Optional[str] = None
    is_active: bool
    is_public: bool
    created_by: Optional[int] = None
    participants: list[int] = []
    progress: list[dict] = []
    created_at: datetime
