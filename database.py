"""
=============================================================================
DATABASE.PY — Database setup
=============================================================================
Configures the connection to the aggregate store.

In DEVELOPMENT: SQLite (a local .db file)
In PRODUCTION: PostgreSQL

How does it pick one?
→ If the DATABASE_URL environment variable exists, it is used as is.
→ Otherwise we fall back to a local SQLite file.

Every User / Challenge row is a whole "document": its embedded lists
(tasks, journal, friends, progress...) live in JSON columns of that row,
so reading or writing one row reads or writes the entire aggregate.
"""

import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

# ─────────────────────────────────────────────────────────────────────────────
# CONNECTION
# ─────────────────────────────────────────────────────────────────────────────

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./shukuma.db")

# Hosting providers hand out "postgres://" URLs, SQLAlchemy wants the driver
# spelled out. We use psycopg (v3).
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql+psycopg://", 1)
elif DATABASE_URL.startswith("postgresql://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql://", "postgresql+psycopg://", 1)


def build_engine(url: str):
    """
    Creates an engine for the given URL.

    connect_args={"check_same_thread": False} is only needed for SQLite,
    which by default refuses connections shared across threads
    (FastAPI runs sync endpoints in a thread pool).
    """
    engine_args = {}
    if url.startswith("sqlite"):
        engine_args["connect_args"] = {"check_same_thread": False}
    return create_engine(url, echo=False, **engine_args)


engine = build_engine(DATABASE_URL)

# ─────────────────────────────────────────────────────────────────────────────
# SESSION
# ─────────────────────────────────────────────────────────────────────────────
# A session is one "conversation" with the DB. SessionLocal is the factory.
# expire_on_commit stays True: after a commit the next access reloads the
# aggregate, so nobody keeps working on a stale copy of a document.

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# ─────────────────────────────────────────────────────────────────────────────
# BASE
# ─────────────────────────────────────────────────────────────────────────────

Base = declarative_base()


def get_db():
    """
    Yields a session and closes it when the request is done.

    Used as a FastAPI dependency:
      @app.get("/something")
      def endpoint(db: Session = Depends(get_db)):
          ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """
    Creates every table that does not exist yet.
    Called once when the application starts.
    """
    import models  # noqa: F401  (registers the tables on Base.metadata)
    Base.metadata.create_all(bind=bind or engine)
