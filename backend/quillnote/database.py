# @TASK P0-T0.3 - SQLAlchemy 2.x async engine factory

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from quillnote.config import Settings


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""


def create_engine_for(settings: Settings) -> AsyncEngine:
    """Build the async engine for the primary store.

    An in-memory SQLite database only lives as long as its connection, so it
    is pinned to a single shared connection with ``StaticPool``.
    """
    if settings.is_memory_database:
        return create_async_engine(
            settings.async_database_url,
            echo=settings.DATABASE_ECHO,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(
        settings.async_database_url,
        echo=settings.DATABASE_ECHO,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
