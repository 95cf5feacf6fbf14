"""Database session management with connection pooling"""

from contextlib import contextmanager
from functools import lru_cache
from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sinkfund.config import settings


@lru_cache(maxsize=None)
def get_engine(database_url: str | None = None) -> Engine:
    """Engine for the configured database, created on first use"""
    url = database_url or settings.database_url
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})

    # Connection pool: max 20 connections, recycle after 1 hour to avoid stale connections
    return create_engine(
        url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=10,
        max_overflow=10,
        pool_recycle=3600,
    )


def get_session_factory(database_url: str | None = None) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine(database_url))


@contextmanager
def session_scope(database_url: str | None = None) -> Generator[Session, None, None]:
    """Session for scheduled jobs: commit on success, roll back on error"""
    db = get_session_factory(database_url)()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
