"""
Database engine and session management with SQLAlchemy async
"""

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from typing import Optional
from core.config import Settings, get_settings
import logging

logger = logging.getLogger(__name__)


def create_engine(settings: Optional[Settings] = None) -> AsyncEngine:
    """Create the async engine for the destination database"""
    settings = settings or get_settings()
    return create_async_engine(
        settings.DATABASE_URL,
        echo=False,
        pool_pre_ping=True,
        future=True
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory; every unit of work opens and closes its own session"""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


def create_test_engine(url: str) -> AsyncEngine:
    """Engine without pooling, for tests and one-off scripts"""
    return create_async_engine(url, echo=False, poolclass=NullPool)
