"""
Database connection and initialization module.

Manages SQLite database creation, connection pooling, and schema initialization.
"""

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

# Base class for all models
Base = declarative_base()

# Default database path (can be overridden by environment variable)
DEFAULT_DB_PATH = Path.home() / ".exchange-desk" / "data.db"

# Global engine and session factory
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker[Session]] = None


def resolve_db_path(db_path: Optional[Path] = None) -> Path:
    """
    Resolve the database path from argument, environment or default.

    Args:
        db_path: Optional explicit path

    Returns:
        Path to the SQLite database file
    """
    if db_path is not None:
        return db_path

    env_db_path = os.environ.get("EXCHANGE_DESK_DB_PATH")
    if env_db_path:
        return Path(env_db_path)

    return DEFAULT_DB_PATH


def get_engine(db_path: Optional[Path] = None) -> Engine:
    """
    Get or create the SQLAlchemy engine.

    Args:
        db_path: Optional custom database path. Defaults to ~/.exchange-desk/data.db
                 Can also be set via EXCHANGE_DESK_DB_PATH environment variable.

    Returns:
        SQLAlchemy Engine instance
    """
    global _engine

    if _engine is None:
        db_path = resolve_db_path(db_path)

        # Ensure directory exists
        db_path.parent.mkdir(parents=True, exist_ok=True)

        db_url = f"sqlite:///{db_path}"
        _engine = create_engine(
            db_url,
            echo=False,  # Set to True for SQL debugging
            connect_args={"check_same_thread": False},
        )

    return _engine


def reset_engine() -> None:
    """Reset the global engine and session factory.

    This is used for testing to ensure a fresh database connection.
    **WARNING: Only use this in tests!**
    """
    global _engine, _SessionLocal

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionLocal = None


def get_session() -> Session:
    """
    Get a new database session.

    Returns:
        SQLAlchemy Session instance
    """
    global _SessionLocal

    if _SessionLocal is None:
        engine = get_engine()
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    return _SessionLocal()


@contextmanager
def db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic commit/rollback.

    Provides transactional safety by automatically:
    - Committing on successful completion
    - Rolling back on exceptions
    - Closing the session in all cases

    Usage:
        with db_session() as session:
            # ... database operations ...
            # Automatic commit on success, rollback on exception

    Yields:
        SQLAlchemy Session instance
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(db_path: Optional[Path] = None) -> None:
    """
    Initialize the database by creating all tables.

    Args:
        db_path: Optional custom database path. Defaults to ~/.exchange-desk/data.db
    """
    engine = get_engine(db_path)

    # Import all models to ensure they're registered with Base
    from exchange_desk.models import StoreEntry  # noqa: F401

    Base.metadata.create_all(bind=engine)


def reset_db(db_path: Optional[Path] = None) -> None:
    """
    Drop all tables and recreate them. **WARNING: This deletes all data!**

    Args:
        db_path: Optional custom database path
    """
    engine = get_engine(db_path)

    from exchange_desk.models import StoreEntry  # noqa: F401

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


def db_exists(db_path: Optional[Path] = None) -> bool:
    """
    Check if the database file exists.

    Args:
        db_path: Optional custom database path

    Returns:
        True if database file exists
    """
    return resolve_db_path(db_path).exists()
