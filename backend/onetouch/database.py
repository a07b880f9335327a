"""Database engine, session factory, and declarative base.

All tenant data lives in one schema; company/office isolation is row-level
and enforced by the scoping engine (`onetouch.auth.scope`), not by the
database.

Session dependency for FastAPI:
  - get_db()  → one session per request; commits on success, rolls back
                on any exception so a request is a single transaction
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from onetouch.config import settings


def _engine_kwargs(url: str) -> dict:
    # SQLite (local dev / tests) does not accept pool sizing arguments
    if url.startswith("sqlite"):
        return {}
    return {"pool_size": 20, "max_overflow": 10}


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug and settings.environment == "development",
    **_engine_kwargs(settings.database_url),
)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    """Base class for every OneTouch table."""
    pass


async def get_db() -> AsyncSession:
    """Yield a request-scoped session wrapped in a single transaction."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
