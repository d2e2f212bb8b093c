"""Database engine and session factory setup."""

from sqlalchemy import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Import models so their tables are registered with SQLModel metadata
from autoposter import models  # noqa: F401


def create_db_engine(db_url: str) -> Engine:
    """Create the engine and ensure tables exist.

    Args:
        db_url: SQLAlchemy connection URL (sqlite:///autoposter.db, sqlite:// for memory)

    Returns:
        Engine with the documents table created
    """
    engine_kwargs: dict = {"echo": False}  # Don't log SQL queries (use structlog instead)
    if db_url.startswith("sqlite"):
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every session sees an empty database
            engine_kwargs["poolclass"] = StaticPool

    engine = create_engine(db_url, **engine_kwargs)
    SQLModel.metadata.create_all(engine)
    return engine


def setup_db_session(engine: Engine) -> sessionmaker[Session]:
    """Create database session factory.

    Args:
        engine: Engine from create_db_engine()

    Returns:
        Session factory for creating database sessions
    """
    return sessionmaker(
        engine,
        class_=Session,
        expire_on_commit=False,  # Prevent lazy loading issues after commit
    )
