"""Database engine and session factory with connection pooling"""

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from rental_engine.config import settings


@lru_cache
def get_engine() -> Engine:
    # Connection pool: max 20 connections, recycle after 1 hour to avoid stale connections
    return create_engine(
        settings.database_url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=10,
        max_overflow=10,
        pool_recycle=3600,
    )


@lru_cache
def get_session_factory() -> sessionmaker:
    """One unit of work per session; services open and close their own"""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=get_engine())
