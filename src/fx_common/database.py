"""Async SQLAlchemy engine, session factory and the store error boundary."""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from config.settings import settings
from src.fx_common.errors import StoreUnavailableError

engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=20,
    max_overflow=10,
)

# Anything returning an AsyncSession usable as `async with factory() as db`
SessionFactory = Callable[[], AsyncSession]

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@asynccontextmanager
async def store_guard() -> AsyncIterator[None]:
    """Translate driver/connection failures into StoreUnavailableError.

    Application errors (AppError subclasses) raised inside the block pass through untouched.
    """
    try:
        yield
    except (SQLAlchemyError, OSError) as exc:
        raise StoreUnavailableError(str(exc)) from exc
