"""
=============================================================================
MODELS.PY — Aggregates (tables) of the database
=============================================================================
Each class here = one table. Each row = one aggregate "document".

AGGREGATES:
  USER
  ├── tasks[]            (JSON, max 1000)
  ├── journal[]          (JSON, max 5000)
  ├── foodLogs[]         (JSON, max 5000)
  ├── triggers[]         (JSON, max 2000)
  ├── workoutHistory[]   (JSON, max 10000) ──→ ExerciseCard.id
  ├── friends[]          (user ids, max 500)
  └── friendRequests[]   (user ids, max 100, inbound only)

  CHALLENGE
  ├── participants[]     (user ids)
  └── progress[]         ({userId, value, updatedAt}, one per participant)

  EXERCISE_CARD          (catalog, queried with SQL filters + pagination)

The embedded lists are NOT separate tables on purpose: they are only ever
read and written together with their owner. version_id is the optimistic
concurrency counter: every UPDATE checks it, so two writers can never
silently overwrite each other's copy of the same document.
"""

from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, Text, DateTime, ForeignKey, JSON
)
from database import Base
import enum


# =============================================================================
# ===================== ENUMS =================================================
# =============================================================================

class Mood(str, enum.Enum):
    """Journal mood, from best to worst"""
    great = "great"
    good = "good"
    okay = "okay"
    bad = "bad"
    terrible = "terrible"

class Theme(str, enum.Enum):
    light = "light"
    dark = "dark"
    auto = "auto"

class Privacy(str, enum.Enum):
    public = "public"
    private = "private"
    friends = "friends"

class ChallengeType(str, enum.Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    streak = "streak"
    most_cards = "most-cards"
    time_based = "time-based"
    group = "group"
    custom = "custom"

class ChallengeDifficulty(str, enum.Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"

class ChallengeCategory(str, enum.Enum):
    fitness = "Fitness"
    nutrition = "Nutrition"
    wellness = "Wellness"
    mental_health = "Mental Health"
    productivity = "Productivity"

class ExerciseDifficulty(str, enum.Enum):
    beginner = "Beginner"
    intermediate = "Intermediate"
    advanced = "Advanced"

class ExerciseCategory(str, enum.Enum):
    cardio = "Cardio"
    strength = "Strength"
    flexibility = "Flexibility"
    balance = "Balance"
    hiit = "HIIT"
    yoga = "Yoga"
    pilates = "Pilates"

class MuscleGroup(str, enum.Enum):
    chest = "Chest"
    back = "Back"
    shoulders = "Shoulders"
    arms = "Arms"
    legs = "Legs"
    core = "Core"
    full_body = "Full Body"
    cardio = "Cardio"
    glutes = "Glutes"
    hamstrings = "Hamstrings"
    quadriceps = "Quadriceps"
    calves = "Calves"
    biceps = "Biceps"
    triceps = "Triceps"
    forearms = "Forearms"
    abs = "Abs"

class ExerciseGoal(str, enum.Enum):
    weight_loss = "Weight Loss"
    muscle_gain = "Muscle Gain"
    endurance = "Endurance"
    flexibility = "Flexibility"
    general_fitness = "General Fitness"


DEFAULT_SETTINGS = {"notifications": True, "theme": Theme.light.value, "privacy": Privacy.private.value}


# =============================================================================
# ===================== TABLE 1: USERS ========================================
# =============================================================================

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # ── Account ──
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(100), nullable=False)
    username = Column(String(30), unique=True, nullable=True, index=True)
    verified = Column(Boolean, default=False)
    settings = Column(JSON, default=lambda: dict(DEFAULT_SETTINGS))

    # ── Workout streak ──
    streak_count = Column(Integer, default=0, nullable=False)
    last_workout_date = Column(DateTime, nullable=True)

    # ── Embedded collections (see embedded.py) ──
    tasks = Column(JSON, default=list, nullable=False)
    journal = Column(JSON, default=list, nullable=False)
    food_logs = Column(JSON, default=list, nullable=False)
    triggers = Column(JSON, default=list, nullable=False)
    workout_history = Column(JSON, default=list, nullable=False)

    # ── Social graph (see friends.py) ──
    friends = Column(JSON, default=list, nullable=False)
    friend_requests = Column(JSON, default=list, nullable=False)
    # friend_requests → ids of users who asked US (the recipient holds it)

    # ── Timestamps ──
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    version_id = Column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version_id}


# =============================================================================
# ===================== TABLE 2: EXERCISE_CARDS ===============================
# =============================================================================
# The exercise catalog. Shared by everybody, referenced by workoutHistory.

class ExerciseCard(Base):
    __tablename__ = "exercise_cards"

    id = Column(Integer, primary_key=True, autoincrement=True)

    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(String(500), nullable=True)
    difficulty = Column(String(20), nullable=False, index=True)
    category = Column(String(20), nullable=False, index=True)

    duration = Column(Integer, nullable=False)
    # duration → minutes, 1..120
    reps = Column(String(100), nullable=True)
    # reps → free text ("12-15", "30 seconds")
    sets = Column(Integer, nullable=True)
    calories_burned = Column(Integer, nullable=True)

    image_url = Column(Text, nullable=True)
    video_url = Column(Text, nullable=True)
    instructions = Column(JSON, default=list)
    muscle_groups = Column(JSON, default=list)
    goal = Column(String(30), nullable=True)

    is_active = Column(Boolean, default=True, index=True)
    completion_count = Column(Integer, default=0)
    # completion_count → how many workouts were logged with this card

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# =============================================================================
# ===================== TABLE 3: CHALLENGES ===================================
# =============================================================================

class Challenge(Base):
    __tablename__ = "challenges"

    id = Column(Integer, primary_key=True, autoincrement=True)

    type = Column(String(20), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    description = Column(String(1000), nullable=False)
    rules = Column(Text, nullable=True)
    difficulty = Column(String(10), default=ChallengeDifficulty.medium.value)
    category = Column(String(20), default=ChallengeCategory.fitness.value)

    goal = Column(Integer, nullable=False)
    start_date = Column(DateTime, nullable=False, index=True)
    end_date = Column(DateTime, nullable=False, index=True)
    # Hard rule: start_date < end_date (checked in challenges.create_challenge)

    reward = Column(String(200), nullable=True)
    badge = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, index=True)
    is_public = Column(Boolean, default=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    participants = Column(JSON, default=list, nullable=False)
    progress = Column(JSON, default=list, nullable=False)
    # progress and participants move in lockstep: one entry per participant

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    version_id = Column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version_id}
