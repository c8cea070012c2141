from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from config import settings


def _is_sqlite(url: str) -> bool:
    return "sqlite" in url.split(":")[0].lower()


def make_engine(url: str) -> AsyncEngine:
    """Engine with dialect-specific options; SQLite (file or in-memory) shares one connection."""
    kwargs = {"echo": settings.debug}
    if _is_sqlite(url):
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}
    return create_async_engine(url, **kwargs)


def make_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = make_engine(settings.database_url)

AsyncSessionLocal = make_sessionmaker(engine)


class Base(DeclarativeBase):
    pass


async def get_db():
    """One session per request: committed if the handler returns, rolled back if it raises."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine | None = None):
    """Create all tables on the given engine (defaults to the app engine)."""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
