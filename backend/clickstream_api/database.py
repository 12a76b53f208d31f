"""Database session and base configuration.

WHAT:
    Provides the SQLAlchemy engine and session factory for the pipeline
    registry, and the `get_db` FastAPI dependency.

WHY:
    The attribution service only reads pipeline metadata (project -> pipeline,
    app -> timezone). Event data lives in the external warehouse and is never
    queried through this engine.

USAGE:
    from clickstream_api.database import SessionLocal, get_db

    @router.get("/pipelines")
    def list_pipelines(db: Session = Depends(get_db)):
        return db.query(Pipeline).all()
"""

import os
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker


# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================

def _get_database_url() -> str:
    """Get DATABASE_URL from environment, loading .env if needed.

    Raises:
        RuntimeError: If DATABASE_URL is not configured
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        from clickstream_api.utils.env import load_env_file
        load_env_file()
        database_url = os.getenv("DATABASE_URL")

    if not database_url:
        raise RuntimeError(
            "DATABASE_URL is not set. "
            "Export it or add it to backend/.env."
        )

    return database_url


DATABASE_URL = _get_database_url()


# =============================================================================
# ENGINE
# =============================================================================

# SQLite engines (tests, local dev) do not support pool_size/max_overflow.
if DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
    )
else:
    engine = create_engine(
        DATABASE_URL,
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,      # Recycle connections every hour
        pool_pre_ping=True,     # Validate connections before use
    )

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


# Base is defined in clickstream_api.models to keep a single registry
from .models import Base  # noqa: E402


# =============================================================================
# SESSIONS
# =============================================================================

def get_db() -> Generator[Session, None, None]:
    """Yield a database session for FastAPI dependency injection."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_sync_session() -> Generator[Session, None, None]:
    """Context manager for sessions outside FastAPI (scripts, seeding).

    Example:
        with get_sync_session() as db:
            pipelines = db.query(Pipeline).all()
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
