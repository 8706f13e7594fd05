"""Database engine, session factory, and declarative base.

All cooperatives share one schema; cooperative scoping is done in queries
(see ``kopitrace.auth.deps.get_accessible_cooperative_ids``).

Session dependency for FastAPI:
  - get_db()  → one AsyncSession per request, committed on success and
                rolled back when the route raises
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from kopitrace.config import settings


def _engine_kwargs(url: str) -> dict:
    # SQLite (tests, local demos) does not take pool sizing arguments
    if url.startswith("sqlite"):
        return {}
    return {"pool_size": 20, "max_overflow": 10, "pool_pre_ping": True}


engine = create_async_engine(
    settings.database_url,
    echo=False,
    **_engine_kwargs(settings.database_url),
)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    """Base class for every KopiTrace table."""
    pass


async def get_db() -> AsyncSession:
    """Yield a request-scoped session."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
