"""
=============================================================================
MAIN.PY — The Shukuma API
=============================================================================
Defines ALL the REST endpoints. Routes stay thin: authenticate, call ONE
core function, shape the JSON. The rules live in the core modules.

Sections:
  1. AUTH        → signup, login, me
  2. USERS       → profile, stats, progress, account deletion
  3. TASKS       → embedded tasks
  4. JOURNAL     → embedded journal entries
  5. NUTRITION   → embedded food logs + meal guides
  6. TRIGGERS    → embedded triggers
  7. WORKOUTS    → workout log, history, streaks
  8. EXERCISES   → exercise card catalog
  9. CHALLENGES  → challenges, participation, leaderboard
  10. SOCIAL     → friends, requests, feed, user search

Every list answers with the same envelope:
  {"<collection>": [...], "pagination": {currentPage, totalPages, ...}}
"""

import os
import logging
import traceback
from datetime import datetime, date, timedelta
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

import challenges
import embedded
import exercises
import friends
import gamification
import insights
import store
from auth import hash_password, verify_password, create_access_token, get_current_user
from database import get_db, init_db, SessionLocal
from embedded import CollectionKind
from errors import ShukumaError, ConflictError, NotFoundError, UnauthorizedError, ValidationError
from models import (
    User, Challenge, DEFAULT_SETTINGS, Mood, ChallengeType, ChallengeDifficulty,
    ChallengeCategory, ExerciseCategory, ExerciseDifficulty, ExerciseGoal, MuscleGroup,
)
from schemas import (
    UserRegister, UserLogin, TokenResponse, UserUpdate, UserResponse, AccountDelete,
    TaskCreate, TaskUpdate, JournalEntryCreate, JournalEntryUpdate, FoodLogCreate, FoodLogUpdate,
    TriggerCreate, TriggerUpdate, WorkoutLogCreate, ExerciseCreate, ChallengeCreate, ProgressUpdate,
)

# ─────────────────────────────────────────────────────────────────────────────
# LOGGING
# ─────────────────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s"
)
logger = logging.getLogger("shukuma.api")

# ─────────────────────────────────────────────────────────────────────────────
# CONFIGURATION
# ─────────────────────────────────────────────────────────────────────────────

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
PORT = int(os.getenv("PORT", "5000"))
SEED_EXERCISES = os.getenv("SEED_EXERCISES", "true").lower() in ("1", "true", "yes")
MIN_SEARCH_LENGTH = 2

# Rate limits per client IP, in the "<count> per <period>" notation of slowapi
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() in ("1", "true", "yes")
API_RATE_LIMIT = os.getenv("API_RATE_LIMIT", "100 per 15 minutes")
AUTH_RATE_LIMIT = os.getenv("AUTH_RATE_LIMIT", "5 per 15 minutes")


# ─────────────────────────────────────────────────────────────────────────────
# LIFESPAN (startup and shutdown)
# ─────────────────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      1. Create the tables if they do not exist
      2. Seed the exercise catalog
    """
    logger.info("🚀 Starting Shukuma API...")

    init_db()
    logger.info("✅ Database initialised")

    if SEED_EXERCISES:
        db = SessionLocal()
        try:
            exercises.seed_exercises(db)
        finally:
            db.close()

    logger.info("🎉 Shukuma API ready")

    yield  # ← the application is running

    logger.info("👋 Shutdown complete")


# ─────────────────────────────────────────────────────────────────────────────
# FASTAPI APPLICATION
# ─────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="Shukuma API",
    description="Backend of the Shukuma fitness tracker",
    version="1.0.0",
    lifespan=lifespan,
)

# RATE LIMITING → every route gets API_RATE_LIMIT, signup/login AUTH_RATE_LIMIT
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[API_RATE_LIMIT],
    enabled=RATE_LIMIT_ENABLED,
)
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

# CORS → lets the front end call this API
app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─────────────────────────────────────────────────────────────────────────────
# ERROR HANDLERS
# ─────────────────────────────────────────────────────────────────────────────
# Domain errors carry their own status; request validation answers 400 with
# the same shape; anything else is logged with its traceback and answers 500.

@app.exception_handler(ShukumaError)
async def domain_error_handler(request: Request, exc: ShukumaError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RateLimitExceeded)
def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(f"🚦 Rate limit hit by {get_remote_address(request)} on {request.url.path}")
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many requests, please try again later", "type": "rate_limited"},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"detail": "Validation failed", "type": "validation", "errors": errors},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catches unhandled errors and answers with a JSON body"""
    error_trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(f"❌ Unhandled error on {request.url}: {exc}\n{error_trace}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "type": type(exc).__name__,
            "path": str(request.url)
        }
    )


# ─────────────────────────────────────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────────────────────────────────────

def _search_term(term: Optional[str], required: bool = False) -> Optional[str]:
    """Search texts need at least 2 characters. A blank optional one means no search."""
    term = (term or "").strip()
    if not term and not required:
        return None
    if len(term) < MIN_SEARCH_LENGTH:
        raise ValidationError(
            f"Search query must be at least {MIN_SEARCH_LENGTH} characters",
            [{"field": "q", "message": f"min length {MIN_SEARCH_LENGTH}"}],
        )
    return term


def _changes(data) -> dict:
    """Only the fields the client actually sent, with their wire names"""
    return data.model_dump(exclude_unset=True, by_alias=True)


# =============================================================================
# ===================== HEALTH CHECK ==========================================
# =============================================================================

@app.get("/", tags=["Health"])
@app.get("/health", tags=["Health"])
def health_check():
    """Checks the API is alive"""
    return {
        "status": "ok",
        "app": "Shukuma",
        "version": "1.0.0",
        "timestamp": datetime.utcnow().isoformat()
    }


# =============================================================================
# ===================== SECTION 1: AUTH =======================================
# =============================================================================

@app.post("/api/auth/signup", response_model=TokenResponse, status_code=201, tags=["Auth"])
@limiter.limit(AUTH_RATE_LIMIT)
def signup(request: Request, data: UserRegister, db: Session = Depends(get_db)):
    """
    Registers a new user.

    Flow:
      1. Check the email (and username) are free
      2. Hash the password
      3. Create the user with empty collections
      4. Return a JWT
    """
    email = data.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise ConflictError("User already exists with this email")
    if data.username and db.query(User).filter(User.username == data.username).first():
        raise ConflictError("Username is already taken")

    user = User(
        email=email,
        password_hash=hash_password(data.password),
        name=data.name,
        username=data.username,
        settings=dict(DEFAULT_SETTINGS),
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"👤 New user registered: {user.name} ({user.email})")
    return TokenResponse(
        access_token=create_access_token(user.id, user.email),
        user_id=user.id,
        name=user.name
    )


@app.post("/api/auth/login", response_model=TokenResponse, tags=["Auth"])
@limiter.limit(AUTH_RATE_LIMIT)
def login(request: Request, data: UserLogin, db: Session = Depends(get_db)):
    """Logs in with email and password"""
    user = db.query(User).filter(User.email == data.email.lower()).first()

    if not user or not verify_password(data.password, user.password_hash):
        raise UnauthorizedError("Invalid email or password")

    return TokenResponse(
        access_token=create_access_token(user.id, user.email),
        user_id=user.id,
        name=user.name
    )


@app.get("/api/auth/me", response_model=UserResponse, tags=["Auth"])
def me(user: User = Depends(get_current_user)):
    return user


# =============================================================================
# ===================== SECTION 2: USERS ======================================
# =============================================================================

@app.get("/api/users/profile", response_model=UserResponse, tags=["Users"])
def get_profile(user: User = Depends(get_current_user)):
    return user


def _update_profile(db: Session, user_id: int, changes: dict) -> User:
    user = store.load_user(db, user_id)

    username = changes.get("username")
    if username and username != user.username:
        taken = db.query(User).filter(User.username == username, User.id != user_id).first()
        if taken:
            raise ConflictError("Username is already taken")
        user.username = username

    if changes.get("name"):
        user.name = changes["name"]

    if changes.get("settings"):
        new_settings = {k: v for k, v in changes["settings"].items() if v is not None}
        user.settings = {**DEFAULT_SETTINGS, **(user.settings or {}), **new_settings}

    return user


@app.put("/api/users/profile", response_model=UserResponse, tags=["Users"])
def update_profile(data: UserUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Updates name, username and/or settings (settings are merged, not replaced)"""
    updated = store.atomic(db, _update_profile, user.id, data.model_dump(exclude_unset=True, mode="json"))
    logger.info(f"✏️ Profile updated for user {user.id}")
    return updated


@app.get("/api/users/stats", tags=["Users"])
def get_user_stats(user: User = Depends(get_current_user)):
    return {"stats": gamification.user_stats(user)}


@app.get("/api/users/progress", tags=["Users"])
def get_user_progress(user: User = Depends(get_current_user)):
    return {"progress": gamification.workout_progress(user)}


@app.get("/api/users/workout-summary", tags=["Users"])
def get_workout_summary(user: User = Depends(get_current_user)):
    return {"summary": gamification.workout_summary(user)}


def _delete_account(db: Session, user_id: int, password: str) -> None:
    user = store.load_user(db, user_id)
    if not verify_password(password, user.password_hash):
        raise UnauthorizedError("Incorrect password")

    friends.purge_user_references(db, user_id)
    challenges.purge_participant(db, user_id)
    for challenge in db.query(Challenge).filter(Challenge.created_by == user_id).all():
        challenge.created_by = None
    db.delete(user)


@app.delete("/api/users/account", tags=["Users"])
def delete_account(data: AccountDelete, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Deletes the account. Requires the password.
    The user also disappears from every friend list, pending request and
    challenge, in the same transaction.
    """
    user_id = user.id
    store.atomic(db, _delete_account, user_id, data.password)
    logger.info(f"🗑️ Account {user_id} deleted")
    return {"message": "Account deleted successfully"}


# =============================================================================
# ===================== SECTION 3: TASKS ======================================
# =============================================================================

@app.post("/api/tasks", status_code=201, tags=["Tasks"])
def create_task(data: TaskCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    task = embedded.append(db, user.id, CollectionKind.tasks, _changes(data))
    return {"message": "Task created successfully", "task": task}


@app.get("/api/tasks", tags=["Tasks"])
def list_tasks(
    completed: Optional[bool] = None,
    search: Optional[str] = None,
    sort_by: str = Query("newest", alias="sortBy"),
    page: Optional[int] = None,
    limit: Optional[int] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Lists tasks (newest first) with optional filters"""
    tasks, pagination = embedded.list_items(
        db, user.id, CollectionKind.tasks,
        filters={"completed": completed}, search=_search_term(search),
        sort=sort_by, page=page, limit=limit,
    )
    return {"tasks": tasks, "pagination": pagination, "summary": insights.task_summary(user)}


@app.get("/api/tasks/stats", tags=["Tasks"])
def get_task_stats(user: User = Depends(get_current_user)):
    return {"stats": insights.task_stats(user)}


@app.patch("/api/tasks/complete/all", tags=["Tasks"])
def complete_all_tasks(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    count = embedded.bulk_complete(db, user.id)
    return {"message": f"{count} tasks marked as completed", "count": count}


@app.delete("/api/tasks/completed/all", tags=["Tasks"])
def delete_completed_tasks(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    count = embedded.bulk_delete_completed(db, user.id)
    return {"message": f"{count} completed tasks deleted", "count": count}


@app.get("/api/tasks/{task_id}", tags=["Tasks"])
def get_task(task_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"task": embedded.get_by_id(db, user.id, CollectionKind.tasks, task_id)}


@app.put("/api/tasks/{task_id}", tags=["Tasks"])
def update_task(task_id: str, data: TaskUpdate,
                user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    task = embedded.update(db, user.id, CollectionKind.tasks, task_id, _changes(data))
    return {"message": "Task updated successfully", "task": task}


@app.patch("/api/tasks/{task_id}/toggle", tags=["Tasks"])
def toggle_task(task_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    task = embedded.toggle(db, user.id, task_id)
    return {"message": "Task toggled successfully", "task": task}


@app.delete("/api/tasks/{task_id}", tags=["Tasks"])
def delete_task(task_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    embedded.remove(db, user.id, CollectionKind.tasks, task_id)
    return {"message": "Task deleted successfully"}


# =============================================================================
# ===================== SECTION 4: JOURNAL ====================================
# =============================================================================

@app.post("/api/journals", status_code=201, tags=["Journal"])
def create_entry(data: JournalEntryCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    entry = embedded.append(db, user.id, CollectionKind.journal, _changes(data))
    return {"message": "Journal entry created successfully", "entry": entry}


@app.get("/api/journals", tags=["Journal"])
def list_entries(
    mood: Optional[Mood] = None,
    search: Optional[str] = None,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    sort_by: str = Query("newest", alias="sortBy"),
    page: Optional[int] = None,
    limit: Optional[int] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    entries, pagination = embedded.list_items(
        db, user.id, CollectionKind.journal,
        filters={"mood": mood}, search=_search_term(search),
        start_date=start_date, end_date=end_date, sort=sort_by, page=page, limit=limit,
    )
    return {"entries": entries, "pagination": pagination}


@app.get("/api/journals/stats", tags=["Journal"])
def get_journal_stats(user: User = Depends(get_current_user)):
    return {"stats": insights.journal_stats(user)}


@app.get("/api/journals/mood-trends", tags=["Journal"])
def get_mood_trends(days: int = Query(30, ge=1, le=365), user: User = Depends(get_current_user)):
    return insights.mood_trends(user, days)


@app.get("/api/journals/search", tags=["Journal"])
def search_entries(q: Optional[str] = None, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    term = _search_term(q, required=True)
    entries = embedded.search(db, user.id, CollectionKind.journal, term)
    return {"entries": entries, "count": len(entries), "query": term}


@app.get("/api/journals/recent", tags=["Journal"])
def get_recent_entries(limit: int = Query(5, ge=1, le=50),
                       user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"entries": embedded.recent(db, user.id, CollectionKind.journal, limit)}


@app.get("/api/journals/{entry_id}", tags=["Journal"])
def get_entry(entry_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"entry": embedded.get_by_id(db, user.id, CollectionKind.journal, entry_id)}


@app.put("/api/journals/{entry_id}", tags=["Journal"])
def update_entry(entry_id: str, data: JournalEntryUpdate,
                 user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    entry = embedded.update(db, user.id, CollectionKind.journal, entry_id, _changes(data))
    return {"message": "Journal entry updated successfully", "entry": entry}


@app.delete("/api/journals/{entry_id}", tags=["Journal"])
def delete_entry(entry_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    embedded.remove(db, user.id, CollectionKind.journal, entry_id)
    return {"message": "Journal entry deleted successfully"}


# =============================================================================
# ===================== SECTION 5: NUTRITION ==================================
# =============================================================================

@app.get("/api/nutrition/guides", tags=["Nutrition"])
def get_meal_guides():
    return {"guides": insights.MEAL_GUIDES}


@app.get("/api/nutrition/stats", tags=["Nutrition"])
def get_nutrition_stats(days: int = Query(7, ge=1, le=365), user: User = Depends(get_current_user)):
    return {"stats": insights.nutrition_stats(user, days)}


@app.post("/api/nutrition/logs", status_code=201, tags=["Nutrition"])
def create_food_log(data: FoodLogCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    food_log = embedded.append(db, user.id, CollectionKind.food_logs, _changes(data))
    return {"message": "Food log created successfully", "foodLog": food_log}


@app.get("/api/nutrition/logs", tags=["Nutrition"])
def list_food_logs(
    on_date: Optional[date] = Query(None, alias="date"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    sort_by: str = Query("newest", alias="sortBy"),
    page: Optional[int] = None,
    limit: Optional[int] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    food_logs, pagination = embedded.list_items(
        db, user.id, CollectionKind.food_logs,
        on_date=on_date, start_date=start_date, end_date=end_date,
        sort=sort_by, page=page, limit=limit,
    )
    return {"foodLogs": food_logs, "pagination": pagination}


@app.get("/api/nutrition/logs/{log_id}", tags=["Nutrition"])
def get_food_log(log_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"foodLog": embedded.get_by_id(db, user.id, CollectionKind.food_logs, log_id)}


@app.put("/api/nutrition/logs/{log_id}", tags=["Nutrition"])
def update_food_log(log_id: str, data: FoodLogUpdate,
                    user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    food_log = embedded.update(db, user.id, CollectionKind.food_logs, log_id, _changes(data))
    return {"message": "Food log updated successfully", "foodLog": food_log}


@app.delete("/api/nutrition/logs/{log_id}", tags=["Nutrition"])
def delete_food_log(log_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    embedded.remove(db, user.id, CollectionKind.food_logs, log_id)
    return {"message": "Food log deleted successfully"}


# =============================================================================
# ===================== SECTION 6: TRIGGERS ===================================
# =============================================================================

@app.post("/api/triggers", status_code=201, tags=["Triggers"])
def create_trigger(data: TriggerCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    trigger = embedded.append(db, user.id, CollectionKind.triggers, _changes(data))
    return {"message": "Trigger logged successfully", "trigger": trigger}


@app.get("/api/triggers", tags=["Triggers"])
def list_triggers(
    search: Optional[str] = None,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    sort_by: str = Query("newest", alias="sortBy"),
    page: Optional[int] = None,
    limit: Optional[int] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    triggers, pagination = embedded.list_items(
        db, user.id, CollectionKind.triggers,
        search=_search_term(search), start_date=start_date, end_date=end_date,
        sort=sort_by, page=page, limit=limit,
    )
    return {"triggers": triggers, "pagination": pagination}


@app.get("/api/triggers/stats", tags=["Triggers"])
def get_trigger_stats(user: User = Depends(get_current_user)):
    return {"stats": insights.trigger_stats(user)}


@app.get("/api/triggers/{trigger_id}", tags=["Triggers"])
def get_trigger(trigger_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"trigger": embedded.get_by_id(db, user.id, CollectionKind.triggers, trigger_id)}


@app.put("/api/triggers/{trigger_id}", tags=["Triggers"])
def update_trigger(trigger_id: str, data: TriggerUpdate,
                   user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    trigger = embedded.update(db, user.id, CollectionKind.triggers, trigger_id, _changes(data))
    return {"message": "Trigger updated successfully", "trigger": trigger}


@app.delete("/api/triggers/{trigger_id}", tags=["Triggers"])
def delete_trigger(trigger_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    embedded.remove(db, user.id, CollectionKind.triggers, trigger_id)
    return {"message": "Trigger deleted successfully"}


# =============================================================================
# ===================== SECTION 7: WORKOUTS ===================================
# =============================================================================

@app.post("/api/workouts/log", status_code=201, tags=["Workouts"])
def log_workout(data: WorkoutLogCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Logs a workout, advances the streak and counts the exercise completion"""
    result = gamification.log_workout(db, user.id, _changes(data))
    return {"message": "Workout logged successfully", **result}


@app.get("/api/workouts/history", tags=["Workouts"])
def get_workout_history(
    exercise_id: Optional[int] = Query(None, alias="exerciseId"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    sort_by: str = Query("newest", alias="sortBy"),
    page: Optional[int] = None,
    limit: Optional[int] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    workouts, pagination = embedded.list_items(
        db, user.id, CollectionKind.workout_history,
        filters={"exerciseId": exercise_id}, start_date=start_date, end_date=end_date,
        sort=sort_by, page=page, limit=limit,
    )
    return {"workouts": workouts, "pagination": pagination}


@app.get("/api/workouts/stats", tags=["Workouts"])
def get_workout_stats(days: int = Query(30, ge=1, le=365),
                      user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"stats": gamification.workout_stats(db, user, days)}


@app.get("/api/workouts/calendar", tags=["Workouts"])
def get_workout_calendar(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    user: User = Depends(get_current_user)
):
    """Workouts grouped per day. Defaults to the current month."""
    today = datetime.utcnow().date()
    start = start_date or today.replace(day=1)
    end = end_date or (start.replace(day=28) + timedelta(days=4)).replace(day=1) - timedelta(days=1)
    if end < start:
        raise ValidationError("End date must be after start date")
    return {
        "calendar": gamification.workout_calendar(user, start, end),
        "startDate": start.isoformat(),
        "endDate": end.isoformat(),
    }


@app.delete("/api/workouts/{workout_id}", tags=["Workouts"])
def delete_workout(workout_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    embedded.remove(db, user.id, CollectionKind.workout_history, workout_id)
    return {"message": "Workout deleted successfully"}


# =============================================================================
# ===================== SECTION 8: EXERCISES ==================================
# =============================================================================

@app.get("/api/exercises", tags=["Exercises"])
def list_exercises(
    difficulty: Optional[ExerciseDifficulty] = None,
    category: Optional[ExerciseCategory] = None,
    muscle_group: Optional[MuscleGroup] = Query(None, alias="muscleGroup"),
    goal: Optional[ExerciseGoal] = None,
    search: Optional[str] = None,
    sort_by: str = Query("name", alias="sortBy"),
    order: str = "asc",
    page: Optional[int] = None,
    limit: Optional[int] = None,
    db: Session = Depends(get_db)
):
    cards, pagination = exercises.list_exercises(
        db,
        difficulty=difficulty.value if difficulty else None,
        category=category.value if category else None,
        muscle_group=muscle_group.value if muscle_group else None,
        goal=goal.value if goal else None,
        search=_search_term(search), sort_by=sort_by, order=order, page=page, limit=limit,
    )
    return {"exercises": [exercises.serialize_exercise(c) for c in cards], "pagination": pagination}


@app.get("/api/exercises/random", tags=["Exercises"])
def get_random_exercise(
    difficulty: Optional[ExerciseDifficulty] = None,
    category: Optional[ExerciseCategory] = None,
    db: Session = Depends(get_db)
):
    card = exercises.random_exercise(
        db, difficulty.value if difficulty else None, category.value if category else None
    )
    if card is None:
        raise NotFoundError("Exercise")
    return {"exercise": exercises.serialize_exercise(card)}


@app.get("/api/exercises/search", tags=["Exercises"])
def search_exercises(q: Optional[str] = None, db: Session = Depends(get_db)):
    term = _search_term(q, required=True)
    cards = exercises.search_exercises(db, term)
    return {"exercises": [exercises.serialize_exercise(c) for c in cards], "count": len(cards), "query": term}


@app.get("/api/exercises/popular", tags=["Exercises"])
def get_popular_exercises(limit: int = Query(10, ge=1, le=50), db: Session = Depends(get_db)):
    return {"exercises": [exercises.serialize_exercise(c) for c in exercises.popular_exercises(db, limit)]}


@app.get("/api/exercises/stats", tags=["Exercises"])
def get_exercise_stats(db: Session = Depends(get_db)):
    return {"stats": exercises.exercise_stats(db)}


@app.get("/api/exercises/category/{category}", tags=["Exercises"])
def get_exercises_by_category(category: ExerciseCategory, db: Session = Depends(get_db)):
    cards = exercises.by_category(db, category.value)
    return {"exercises": [exercises.serialize_exercise(c) for c in cards], "count": len(cards)}


@app.get("/api/exercises/difficulty/{difficulty}", tags=["Exercises"])
def get_exercises_by_difficulty(difficulty: ExerciseDifficulty, db: Session = Depends(get_db)):
    cards = exercises.by_difficulty(db, difficulty.value)
    return {"exercises": [exercises.serialize_exercise(c) for c in cards], "count": len(cards)}


@app.get("/api/exercises/{exercise_id}", tags=["Exercises"])
def get_exercise(exercise_id: int, db: Session = Depends(get_db)):
    return {"exercise": exercises.serialize_exercise(exercises.get_exercise(db, exercise_id))}


@app.post("/api/exercises", status_code=201, tags=["Exercises"])
def create_exercise(data: ExerciseCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    card = exercises.create_exercise(db, data.model_dump())
    logger.info(f"🏋️ User {user.id} added exercise '{card.name}'")
    return {"message": "Exercise created successfully", "exercise": exercises.serialize_exercise(card)}


# =============================================================================
# ===================== SECTION 9: CHALLENGES =================================
# =============================================================================

@app.get("/api/challenges", tags=["Challenges"])
def list_challenges(
    type: Optional[ChallengeType] = None,
    difficulty: Optional[ChallengeDifficulty] = None,
    category: Optional[ChallengeCategory] = None,
    status: str = "active",
    page: Optional[int] = None,
    limit: Optional[int] = None,
    db: Session = Depends(get_db)
):
    """Public challenges. status: active (default), upcoming, expired or all"""
    items, pagination = challenges.list_challenges(
        db,
        type=type.value if type else None,
        difficulty=difficulty.value if difficulty else None,
        category=category.value if category else None,
        status=status, page=page, limit=limit,
    )
    now = datetime.utcnow()
    return {"challenges": [challenges.serialize_challenge(c, now) for c in items], "pagination": pagination}


@app.get("/api/challenges/active", tags=["Challenges"])
def get_active_challenges(db: Session = Depends(get_db)):
    now = datetime.utcnow()
    return {"challenges": [challenges.serialize_challenge(c, now) for c in challenges.active_challenges(db, now)]}


@app.get("/api/challenges/upcoming", tags=["Challenges"])
def get_upcoming_challenges(db: Session = Depends(get_db)):
    now = datetime.utcnow()
    return {"challenges": [challenges.serialize_challenge(c, now) for c in challenges.upcoming_challenges(db, now)]}


@app.get("/api/challenges/stats", tags=["Challenges"])
def get_challenge_stats(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"stats": challenges.challenge_stats(db, user.id)}


@app.get("/api/challenges/my-challenges", tags=["Challenges"])
def get_my_challenges(status: str = "all", user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Challenges the user joined. status: active, upcoming, completed or all"""
    items = challenges.my_challenges(db, user.id, status)
    return {"challenges": items, "count": len(items)}


@app.post("/api/challenges", status_code=201, tags=["Challenges"])
def create_challenge(data: ChallengeCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    challenge = challenges.create_challenge(db, user.id, data.model_dump())
    return {
        "message": "Challenge created successfully",
        "challenge": challenges.serialize_challenge(challenge, viewer_id=user.id),
    }


@app.get("/api/challenges/{challenge_id}", tags=["Challenges"])
def get_challenge(challenge_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    challenge = challenges.get_challenge(db, challenge_id)
    return {"challenge": challenges.serialize_challenge(challenge, viewer_id=user.id)}


@app.post("/api/challenges/{challenge_id}/join", tags=["Challenges"])
def join_challenge(challenge_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    challenge = challenges.join(db, challenge_id, user.id)
    return {
        "message": "Successfully joined the challenge",
        "challenge": challenges.serialize_challenge(challenge, viewer_id=user.id),
    }


@app.post("/api/challenges/{challenge_id}/leave", tags=["Challenges"])
def leave_challenge(challenge_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    challenges.leave(db, challenge_id, user.id)
    return {"message": "Successfully left the challenge"}


@app.post("/api/challenges/{challenge_id}/progress", tags=["Challenges"])
def update_challenge_progress(challenge_id: int, data: ProgressUpdate,
                              user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    result = challenges.update_progress(db, challenge_id, user.id, data.value)
    return {"message": "Progress updated successfully", **result}


@app.get("/api/challenges/{challenge_id}/leaderboard", tags=["Challenges"])
def get_leaderboard(challenge_id: int, limit: int = Query(10, ge=1, le=100), db: Session = Depends(get_db)):
    return {"leaderboard": challenges.leaderboard(db, challenge_id, limit)}


@app.delete("/api/challenges/{challenge_id}", tags=["Challenges"])
def delete_challenge(challenge_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    challenges.delete_challenge(db, challenge_id, user.id)
    return {"message": "Challenge deleted successfully"}


# =============================================================================
# ===================== SECTION 10: SOCIAL ====================================
# =============================================================================

@app.get("/api/social/friends", tags=["Social"])
def get_friends(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    items = friends.list_friends(db, user.id)
    return {"friends": items, "count": len(items)}


@app.get("/api/social/friend-requests", tags=["Social"])
def get_friend_requests(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    items = friends.list_requests(db, user.id)
    return {"requests": items, "count": len(items)}


@app.get("/api/social/feed", tags=["Social"])
def get_activity_feed(limit: int = Query(20, ge=1, le=100),
                      user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"feed": friends.activity_feed(db, user.id, limit)}


@app.get("/api/social/search", tags=["Social"])
def search_users(q: Optional[str] = None, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    items = friends.search_users(db, user.id, _search_term(q, required=True))
    return {"users": items, "count": len(items)}


@app.get("/api/social/friendship/{user_id}", tags=["Social"])
def get_friendship_state(user_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"state": friends.get_state(db, user.id, user_id).value}


@app.post("/api/social/friend-request/{user_id}", tags=["Social"])
def send_friend_request(user_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    state = friends.send_request(db, user.id, user_id)
    return {"message": "Friend request sent successfully", "state": state.value}


@app.post("/api/social/accept-friend/{user_id}", tags=["Social"])
def accept_friend_request(user_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    state = friends.accept_request(db, user.id, user_id)
    return {"message": "Friend request accepted", "state": state.value}


@app.post("/api/social/reject-friend/{user_id}", tags=["Social"])
def reject_friend_request(user_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    state = friends.reject_request(db, user.id, user_id)
    return {"message": "Friend request rejected", "state": state.value}


@app.delete("/api/social/friends/{user_id}", tags=["Social"])
def remove_friend(user_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    state = friends.remove_friend(db, user.id, user_id)
    return {"message": "Friend removed successfully", "state": state.value}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=PORT, reload=False)
