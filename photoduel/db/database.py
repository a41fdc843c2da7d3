"""
Card store connections.

The process shares one async engine. Every request gets its own session,
committed when the handler returns and rolled back on database errors.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from photoduel.config import settings
from photoduel.models.db import Base


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for a card store URL.

    Only server databases get a liveness check on connection checkout;
    SQLite files and in-memory databases have no connection to lose.
    """
    return create_async_engine(
        database_url,
        echo=echo,
        pool_pre_ping=not database_url.startswith("sqlite"),
    )


engine = build_engine(settings.database_url, echo=settings.debug)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a per-request session."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine | None = None) -> None:
    """
    Create the card tables if they do not exist yet.

    Safe to call on every startup. Defaults to the process engine.
    """
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
