"""Database connection helpers."""

import os

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from dotenv import load_dotenv


# Load environment variables from .env file
load_dotenv()

Base = declarative_base()

ASYNC_POSTGRES_SCHEME = "postgresql+psycopg://"


def get_database_url() -> str:
    """Get the database URL from environment variables.

    ``DATABASE_URL`` wins when set; plain ``postgresql://`` and
    ``postgres://`` URLs are switched to the psycopg async driver. Otherwise
    the URL is assembled from the ``POSTGRE_*`` variables.

    Returns:
        str: SQLAlchemy async database URL

    Raises:
        ValueError: If required environment variables are not set
    """
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        for prefix in ("postgresql://", "postgres://"):
            if database_url.startswith(prefix):
                return ASYNC_POSTGRES_SCHEME + database_url[len(prefix) :]
        return database_url

    postgre_host = os.getenv("POSTGRE_HOST")
    if not postgre_host:
        msg = "POSTGRE_HOST is not set"
        raise ValueError(msg)

    postgre_port = os.getenv("POSTGRE_PORT", "5432")

    postgre_user = os.getenv("POSTGRE_USER")
    if not postgre_user:
        msg = "POSTGRE_USER is not set"
        raise ValueError(msg)

    postgre_password = os.getenv("POSTGRE_PASSWORD")
    if not postgre_password:
        msg = "POSTGRE_PASSWORD is not set"
        raise ValueError(msg)

    postgre_db = os.getenv("POSTGRE_DB")
    if not postgre_db:
        msg = "POSTGRE_DB is not set"
        raise ValueError(msg)

    return (
        ASYNC_POSTGRES_SCHEME
        + f"{postgre_user}:{postgre_password}"
        + f"@{postgre_host}:{postgre_port}"
        + f"/{postgre_db}"
    )


def create_session_factory(
    database_url: str | None = None, **engine_kwargs: object
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create an async engine and its session factory.

    Args:
        database_url: Explicit URL; defaults to ``get_database_url()``
        **engine_kwargs: Extra ``create_async_engine`` arguments

    Returns:
        The engine (owned by the caller, dispose it on shutdown) and a
        session factory bound to it
    """
    engine = create_async_engine(
        database_url or get_database_url(), echo=False, **engine_kwargs
    )
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    return engine, session_factory


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables registered on ``Base`` if they don't exist."""
    # Register the competition tables on Base.metadata
    import bitmemes.competition.db  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


__all__ = [
    "Base",
    "create_session_factory",
    "create_tables",
    "get_database_url",
]
