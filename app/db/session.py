from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.settings import settings
from app.db.url import is_sqlite_url, normalize_database_url


def _engine_kwargs(url: str) -> dict:
    kwargs: dict = {"future": True, "echo": False}
    if is_sqlite_url(url):
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_pre_ping"] = True
    return kwargs


database_url = normalize_database_url(settings.database_url)
engine = create_async_engine(database_url, **_engine_kwargs(database_url))
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
