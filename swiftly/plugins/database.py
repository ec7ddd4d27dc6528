"""
Swiftly: Database Plugin
=========================

What:  Async SQLAlchemy engine and session factory, exposed as `ctx.database`.
How:   On init the engine is created from DATABASE_URL and pinged with
       `SELECT 1`; transient connection failures are retried with
       exponential backoff (tenacity). The engine is disposed on shutdown.
       An empty DATABASE_URL disables the plugin (`ctx.database` is None).
Who:   Handlers that need persistence:

           async def list_users(data, ctx):
               async with ctx.database.session() as session:
                   rows = await session.execute(select(User))
                   return [row.to_dict() for row in rows.scalars()]

Query building and models are the application's business; this plugin only
owns the connection lifecycle.

Connection Pooling:
    pool_size / max_overflow:  from settings (server databases only)
    pool_pre_ping:             validate connections before use
    pool_recycle=3600:         recycle hourly to avoid stale connections
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from swiftly.plugins.base import Plugin

logger = logging.getLogger(__name__)


class Database:
    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        # expire_on_commit=False: attributes stay readable after commit
        self.session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Yield a session that commits on success and rolls back on error.

        The exception is re-raised so the dispatcher maps it to an envelope.
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def dispose(self) -> None:
        await self.engine.dispose()


def create_engine_from_settings(config) -> AsyncEngine:
    options = {
        "pool_pre_ping": config.db_pool_pre_ping,
        "echo": config.log_level == "DEBUG",
    }
    # SQLite uses a single-connection pool without sizing options
    if not config.database_url.startswith("sqlite"):
        options.update(
            pool_size=config.db_pool_size,
            max_overflow=config.db_max_overflow,
            pool_recycle=3600,
        )
    return create_async_engine(config.database_url, **options)


class DatabasePlugin(Plugin):
    name = "database"
    order = 0

    async def on_init(self, app_ctx) -> Optional[Database]:
        config = app_ctx.config
        if not config.database_url:
            logger.info("DATABASE_URL is empty; database plugin disabled")
            return None

        database = Database(create_engine_from_settings(config))
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type((OperationalError, ConnectionError, OSError)),
                stop=stop_after_attempt(config.db_connect_attempts),
                wait=wait_exponential_jitter(initial=0.5, max=5),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    await database.ping()
        except Exception:
            await database.dispose()
            raise

        logger.info("Database connected (%s)", database.engine.url.render_as_string(hide_password=True))
        return database

    async def on_shutdown(self, database: Optional[Database]) -> None:
        if database is not None:
            await database.dispose()
            logger.info("Database engine disposed")
