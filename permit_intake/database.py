"""
Database configuration using SQLAlchemy.

SQLite is the default for local development; set DATABASE_URL to point at
PostgreSQL (or any SQLAlchemy URL) in a deployment.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from permit_intake.config.settings import get_settings

DATABASE_URL = get_settings().database_url


def create_db_engine(url: str):
    """Create an engine; SQLite connections are shared across the threadpool."""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=False, connect_args=connect_args)


engine = create_db_engine(DATABASE_URL)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for ORM models
Base = declarative_base()


def get_db():
    """Dependency for FastAPI - yields database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Create the sessions and applications tables if they do not exist."""
    from permit_intake.models import db_models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def get_session_factory():
    """Dependency for WebSocket handlers that open their own short-lived sessions."""
    return SessionLocal
