"""
Database Session Management
===========================

One lazily-built engine per DATABASE_URL (SQLite file by default).

The engine is rebuilt whenever DATABASE_URL changes, which is how the tests
point each case at its own database file. SQLite connections get foreign
keys switched on and a busy timeout, so document deletes cascade at the
database level and concurrent quota updates wait instead of failing.
"""

import os
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool

from .models import Base

DEFAULT_DATABASE_URL = "sqlite:///./doc_checker.db"
SQLITE_BUSY_TIMEOUT_SECONDS = 15

_engine = None
_engine_url = None

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False)


def _database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


def _sql_echo() -> bool:
    return os.environ.get("SQL_ECHO", "false").lower() == "true"


def _sqlite_engine(database_url: str):
    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_SECONDS},
        echo=_sql_echo(),
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def _server_engine(database_url: str):
    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        connect_args={"connect_timeout": int(os.environ.get("DB_CONNECT_TIMEOUT", "5"))},
        echo=_sql_echo(),
    )


def get_engine():
    """Engine for the current DATABASE_URL"""
    global _engine, _engine_url
    database_url = _database_url()
    if _engine is None or _engine_url != database_url:
        if _engine is not None:
            _engine.dispose()
        if database_url.startswith("sqlite"):
            _engine = _sqlite_engine(database_url)
        else:
            _engine = _server_engine(database_url)
        _engine_url = database_url
        SessionLocal.configure(bind=_engine)
    return _engine


def reset_engine():
    """Drop the cached engine (tests switch databases between cases)"""
    global _engine, _engine_url
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _engine_url = None
    SessionLocal.configure(bind=None)


def init_db():
    """Create any missing tables"""
    Base.metadata.create_all(bind=get_engine())


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Unit-of-work session: commit on clean exit, roll back on error.

    Usage:
        with get_db_session() as db:
            db.query(Document).filter(Document.user_id == user_id).all()
    """
    get_engine()
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
