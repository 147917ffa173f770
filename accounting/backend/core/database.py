"""
Database Engine and Sessions.

The engine is built on first use from database.yaml, so importing this
module never touches config/.env. Two ways to get a session:

    get_db_session()  FastAPI dependency, one transaction per request
    session_scope()   same unit of work for startup hooks and the CLI
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from accounting.backend.core.logging import get_logger

logger = get_logger(__name__)

_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _create_engine() -> AsyncEngine:
    from accounting.backend.core.config import get_app_config, get_database_url

    db_config = get_app_config().database
    url = get_database_url()

    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=db_config.echo)
        # SQLite ignores ON DELETE rules unless foreign keys are switched on per connection
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    else:
        engine = create_async_engine(
            url,
            echo=db_config.echo,
            pool_pre_ping=True,
            pool_size=db_config.pool_size,
            max_overflow=db_config.max_overflow,
            pool_timeout=db_config.pool_timeout,
            pool_recycle=db_config.pool_recycle,
        )

    logger.debug(
        "Database engine created",
        extra={"dialect": engine.dialect.name, "host": db_config.host, "db": db_config.name},
    )
    return engine


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = _create_engine()
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _async_session_factory


@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    """
    Open a session that commits on success and rolls back on error.

    Services only flush; whoever opens the session owns the transaction.
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session dependency.

    The whole request is one transaction, so multi-step writes such as the
    module revoke cascade land completely or not at all.
    """
    async with session_scope() as session:
        yield session


async def dispose_engine() -> None:
    """Close pooled connections. Safe to call when no engine was created."""
    global _engine, _async_session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _async_session_factory = None
