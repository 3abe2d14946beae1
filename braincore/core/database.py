"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults (SQLite uses a static pool)
- Test database support
- Table definitions for the per-user state the access engine reads
"""
from typing import Optional
from contextlib import contextmanager
import logging
import os

from sqlalchemy import create_engine, MetaData, Table, Column, Integer, String, DateTime, JSON, Text, Index
from sqlalchemy.exc import ArgumentError
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql import func

from braincore.core.config import settings


logger = logging.getLogger(__name__)

# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour

# Global engine and session factory
_engine = None
_SessionLocal = None


def get_database_url() -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL") or settings.TEST_DATABASE_URL
    if test_url:
        return test_url

    return settings.DATABASE_URL


def init_engine(database_url: Optional[str] = None):
    """
    Initialize the SQLAlchemy engine.

    Args:
        database_url: Optional override for DATABASE_URL

    Raises:
        ArgumentError: If no database URL is configured
    """
    global _engine, _SessionLocal

    url = database_url or get_database_url()

    if not url:
        raise ArgumentError(
            "DATABASE_URL is not configured. "
            "Set DATABASE_URL in environment or .env file."
        )

    if _engine is not None:
        _engine.dispose()

    if url.startswith("sqlite"):
        # One shared connection so in-memory databases survive across sessions
        _engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )
    else:
        _engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            pool_recycle=POOL_RECYCLE,
            echo=False,  # Set to True for SQL query logging
        )

    # Create session factory
    _SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=_engine
    )

    return _engine


def get_engine():
    """Get the current SQLAlchemy engine."""
    global _engine
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    """Get the session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


def dispose_engine() -> None:
    """Drop the current engine so the next call re-reads configuration."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.

    Usage:
        with get_db_session() as session:
            session.execute(...)
    """
    SessionLocal = get_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables():
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    engine = get_engine()
    metadata.create_all(bind=engine)


# Per-user state consumed by the access engine
user_states = Table(
    'brain_user_states',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('plan', String(50), nullable=False, server_default='free'),
    # Quota counters, each for the period key stored beside it
    Column('uploads_this_period', Integer, nullable=False, server_default='0'),
    Column('queries_this_period', Integer, nullable=False, server_default='0'),
    Column('period_start', String(20), nullable=True),
    Column('query_period_start', String(20), nullable=True),
    # Brain access workflow
    Column('brain_access_status', String(20), nullable=False, server_default='none'),
    Column('brain_access_requested_at', DateTime(timezone=True), nullable=True),
    Column('brain_access_approved_at', DateTime(timezone=True), nullable=True),
    Column('brain_access_rejected_at', DateTime(timezone=True), nullable=True),
    Column('brain_access_rejection_reason', Text, nullable=True),
    Column('brain_access_reviewer_id', String(100), nullable=True),
    Column('brain_access_notes', Text, nullable=True),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_brain_user_states_access_status', 'brain_access_status'),
)

# Append-only trail of brain access transitions
brain_access_audit = Table(
    'brain_access_audit',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), nullable=False),
    Column('action', String(50), nullable=False),
    Column('from_status', String(20), nullable=True),
    Column('to_status', String(20), nullable=False),
    Column('actor_id', String(100), nullable=True),
    Column('correlation_id', String(100), nullable=True),
    Column('metadata', JSON, nullable=True),
    Column('ts', DateTime(timezone=True), nullable=False),
    Index('idx_brain_access_audit_user_ts', 'user_id', 'ts'),
)
