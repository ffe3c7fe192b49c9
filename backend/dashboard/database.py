"""Database engine and helpers.

This module configures the SQLModel/SQLAlchemy engine from
`settings.DATABASE_URL` (a local SQLite file by default) and provides
small helpers used by the application and tests.
"""

from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from .config import settings


def make_engine(url: str):
    """Build an engine for `url`.

    SQLite connections are shared across threads (FastAPI runs sync
    handlers in a threadpool); an in-memory URL keeps a single static
    connection so every session sees the same database.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, echo=False, pool_pre_ping=True)
    kwargs = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return create_engine(url, echo=False, **kwargs)


engine = make_engine(settings.DATABASE_URL)


def create_db_and_tables(bind=None):
    """Create database tables using SQLModel metadata.

    This function is intended for local development and tests;
    deployments can bootstrap the schema with `run_migrations.py`
    instead.
    """
    from . import models  # noqa: F401  (registers the tables)
    SQLModel.metadata.create_all(bind or engine)


def get_session():
    """Yield a database `Session` for FastAPI dependency injection.

    The generator yields a session and ensures it is closed when the
    request scope finishes.
    """
    with Session(engine) as session:
        yield session
