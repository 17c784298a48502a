"""Database setup with async SQLAlchemy."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from semantic_triage.config import settings


def make_engine(url: str, **kwargs) -> AsyncEngine:
    """Create an async engine for the given URL."""
    return create_async_engine(url, echo=False, **kwargs)


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = make_engine(settings.database_url)

async_session = make_session_factory(engine)


class Base(DeclarativeBase):
    pass


async def init_db(bind: AsyncEngine = None):
    """Create all tables (dev convenience — use migrations in production)."""
    # Register the mapped tables on Base.metadata
    import semantic_triage.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
