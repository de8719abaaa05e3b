from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from restaurant_orders.config import settings


def _engine_kwargs(database_url: str) -> dict:
    # SQLite (tests, local runs) has no pool sizing or server-side timeouts.
    if database_url.startswith("sqlite"):
        return {}
    return {
        "pool_size": settings.db_pool_size,
        "pool_timeout": settings.db_pool_timeout,
        "connect_args": {
            "server_settings": {"statement_timeout": str(settings.statement_timeout_ms)}
        },
    }


engine = create_async_engine(settings.database_url, echo=False, **_engine_kwargs(settings.database_url))

AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncIterator[AsyncSession]:
    """One session per request; closed (and any open transaction rolled back) on exit."""
    async with AsyncSessionLocal() as db:
        yield db
