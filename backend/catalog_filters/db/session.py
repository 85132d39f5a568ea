from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from catalog_filters.core.config import settings


def async_database_url(url: str) -> str:
    # Convert postgresql:// to postgresql+asyncpg:// for async driver
    return url.replace("postgresql://", "postgresql+asyncpg://", 1)


@lru_cache(maxsize=1)
def get_engine() -> AsyncEngine:
    return create_async_engine(
        async_database_url(settings.DATABASE_URL),
        echo=settings.DATABASE_ECHO,
        future=True,
        pool_pre_ping=True,
        connect_args={
            "statement_cache_size": 0
        }
    )


@lru_cache(maxsize=1)
def get_session_factory() -> async_sessionmaker:
    return async_sessionmaker(
        get_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

