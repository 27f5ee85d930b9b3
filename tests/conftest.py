import itertools
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from auth import create_access_token, hash_password
from database import build_engine, get_db, init_db
from main import app, limiter
from models import DEFAULT_SETTINGS, Challenge, ExerciseCard, User

PASSWORD = "Passw0rd"


@pytest.fixture(scope="session")
def password_hash():
    return hash_password(PASSWORD)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'shukuma-test.db'}")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(db, password_hash):
    counter = itertools.count(1)

    def _make(name="Test User", **fields):
        n = next(counter)
        user = User(
            email=fields.pop("email", f"user{n}@example.com"),
            password_hash=password_hash,
            name=name,
            settings=dict(DEFAULT_SETTINGS),
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def exercise(db):
    card = ExerciseCard(
        name="Push-ups", description="Classic upper body exercise", difficulty="Beginner",
        category="Strength", duration=10, calories_burned=70, muscle_groups=["Chest", "Triceps"],
        instructions=["Plank", "Lower", "Push"], is_active=True, completion_count=0,
    )
    db.add(card)
    db.commit()
    db.refresh(card)
    return card


@pytest.fixture
def make_challenge(db):
    def _make(creator, start=None, end=None, goal=50, **fields):
        now = datetime.utcnow()
        challenge = Challenge(
            type=fields.pop("type", "daily"),
            title=fields.pop("title", "Fifty push-ups a day"),
            description=fields.pop("description", "Do fifty push-ups every day"),
            goal=goal,
            start_date=start or now - timedelta(days=1),
            end_date=end or now + timedelta(days=10),
            created_by=creator.id,
            participants=[],
            progress=[],
            **fields,
        )
        db.add(challenge)
        db.commit()
        db.refresh(challenge)
        return challenge

    return _make


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    limiter.reset()
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}
    return _headers
