"""
Database setup and session management.
"""

from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from rlscat.config import DatabaseConfig


# sync scheme -> async scheme
_ASYNC_DRIVERS = {
    "sqlite": "sqlite+aiosqlite",
    "postgresql": "postgresql+asyncpg",
}

# libpq accepts both; SQLAlchemy only knows postgresql://
_SCHEME_ALIASES = {
    "postgres": "postgresql",
}


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


def _canonical_url(url: str) -> str:
    for alias, scheme in _SCHEME_ALIASES.items():
        if url.startswith(f"{alias}://"):
            return scheme + url[len(alias):]
    return url


def get_database_url(config: DatabaseConfig) -> str:
    """Return the URL with any async driver swapped for its sync default.

    sqlite+aiosqlite:// -> sqlite://
    postgresql+asyncpg:// -> postgresql://
    postgres:// -> postgresql://
    """
    url = _canonical_url(config.url)
    for sync_scheme, async_scheme in _ASYNC_DRIVERS.items():
        if url.startswith(f"{async_scheme}://"):
            return sync_scheme + url[len(async_scheme):]
    return url


def get_async_database_url(config: DatabaseConfig) -> str:
    """Return the URL with a sync scheme swapped for its async driver."""
    url = _canonical_url(config.url)
    for sync_scheme, async_scheme in _ASYNC_DRIVERS.items():
        if url.startswith(f"{sync_scheme}://"):
            return async_scheme + url[len(sync_scheme):]
    return url


def is_postgres_url(config: DatabaseConfig) -> bool:
    return _canonical_url(config.url).startswith("postgresql")


def _ensure_sqlite_parent_dir(url: str) -> None:
    """Create the directory holding a file-based SQLite database."""
    if not url.startswith("sqlite"):
        return
    path = make_url(url).database
    if path and path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)


def create_db_engine(config: DatabaseConfig):
    """Create a synchronous database engine."""
    return create_engine(get_database_url(config), echo=False)


def create_async_db_engine(config: DatabaseConfig):
    """Create an async database engine."""
    url = get_async_database_url(config)
    _ensure_sqlite_parent_dir(url)
    return create_async_engine(url, echo=False)


def create_session_factory(engine):
    """Create a synchronous session factory."""
    return sessionmaker(bind=engine)


def create_async_session_factory(engine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory."""
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine) -> None:
    """Create any missing tables on an async engine."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
