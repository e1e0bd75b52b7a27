"""Database engine and schema setup using SQLModel."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine


def create_sqlite_engine(db_path: Path) -> Engine:
    """Return an engine for the SQLite file at db_path."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    # check_same_thread=False: the store serializes access with its own lock
    return create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})


def init_db(engine: Engine) -> None:
    """Create database tables."""
    # Import models to ensure they are registered with SQLModel.metadata
    from . import models  # noqa: F401

    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA journal_mode=WAL;")

    SQLModel.metadata.create_all(engine)


def reset_database(db_path: Path) -> Engine:
    """Delete the database file and recreate it."""
    if db_path.exists():
        db_path.unlink()
    engine = create_sqlite_engine(db_path)
    init_db(engine)
    return engine
