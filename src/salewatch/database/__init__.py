"""Database module for SaleWatch.

Provides the SQLite connection and session helpers.
"""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from salewatch.database.models import Base

# Global engine and session factory
_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def get_engine(database_path: Path | None = None) -> Engine:
    """Get or create the SQLAlchemy engine for SQLite.

    Args:
        database_path: Optional path to the database file.
                      If None, uses the path from settings.

    Returns:
        SQLAlchemy Engine instance.
    """
    global _engine

    if _engine is not None:
        return _engine

    if database_path is None:
        from salewatch.config import get_settings

        database_path = get_settings().database.path

    database_path.parent.mkdir(parents=True, exist_ok=True)

    _engine = create_engine(
        f"sqlite:///{database_path}",
        echo=False,
    )

    return _engine


def get_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    """Get or create the session factory.

    Args:
        engine: Optional SQLAlchemy engine. If None, uses get_engine().

    Returns:
        Session factory for creating database sessions.
    """
    global _session_factory

    if _session_factory is not None:
        return _session_factory

    if engine is None:
        engine = get_engine()

    _session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    return _session_factory


def get_session() -> Session:
    """Create a new database session."""
    factory = get_session_factory()
    return factory()


def init_database(engine: Engine | None = None) -> None:
    """Create all tables that do not exist yet.

    Args:
        engine: Optional SQLAlchemy engine. If None, uses get_engine().

    Raises:
        sqlalchemy.exc.SQLAlchemyError: If the schema cannot be created.
    """
    if engine is None:
        engine = get_engine()

    Base.metadata.create_all(engine)


def reset_database(engine: Engine | None = None) -> None:
    """Drop and recreate all tables. USE WITH CAUTION.

    Args:
        engine: Optional SQLAlchemy engine. If None, uses get_engine().
    """
    if engine is None:
        engine = get_engine()

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)


def close_database() -> None:
    """Close the database connection and reset global state."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _session_factory = None


__all__ = [
    "Base",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_database",
    "reset_database",
    "close_database",
]
