import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator, Optional

from fastapi import Request
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import Settings
from .models import Base

logger = logging.getLogger(__name__)


def engine_options(database_url: str) -> dict:
    """Pool and driver options for the given backend"""
    backend = make_url(database_url).get_backend_name()
    if backend == "postgresql":
        return {
            "pool_size": 5,
            "max_overflow": 10,
            "pool_timeout": 20,
            "pool_recycle": 300,
            "pool_pre_ping": True,
            "connect_args": {"server_settings": {"application_name": "task_api"}},
        }
    return {}


class Database:
    """
    Owns the async engine and session factory for one application.

    Lifecycle: construct, await connect(), hand out sessions, await close().
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    async def connect(self) -> None:
        """Create the engine and the schema, retrying on connection failure"""
        settings = self._settings
        self.engine = create_async_engine(
            settings.database_url,
            echo=settings.db_echo,
            **engine_options(settings.database_url),
        )
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

        attempts = settings.db_connect_retries
        for attempt in range(1, attempts + 1):
            try:
                logger.info("Database connection attempt %d/%d", attempt, attempts)
                async with self.engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
                logger.info("Database ready (%s)", self.engine.url.render_as_string(hide_password=True))
                return
            except Exception as e:
                logger.warning("Database connection attempt %d failed: %s", attempt, e)
                if attempt < attempts:
                    logger.info("Retrying in %s seconds...", settings.db_retry_delay)
                    await asyncio.sleep(settings.db_retry_delay)
                else:
                    logger.error("All database connection attempts failed")
                    await self.close()
                    raise

    async def close(self) -> None:
        """Dispose of pooled connections"""
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("Database connections closed")
        self.engine = None
        self.session_factory = None

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        if self.session_factory is None:
            raise RuntimeError("Database not available")

        async with self.session_factory() as session:
            yield session


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get a database session for the current request"""
    database: Database = request.app.state.database
    async with database.session() as session:
        yield session
