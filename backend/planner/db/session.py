"""Async SQLAlchemy engine and session factory."""

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from planner.config import settings

engine = create_async_engine(
    settings.database_url,
    pool_size=settings.db_pool_size,
    pool_pre_ping=True,
    # Server-side backstop for geometry queries that outlive their request
    connect_args={
        "server_settings": {"statement_timeout": str(settings.db_statement_timeout_ms)},
    },
)

async_session = async_sessionmaker(engine, expire_on_commit=False)
