"""
Process-wide database handle.

The engine and session factory are built once, on first use, behind an
asyncio lock so concurrent first requests do not race to create two
engines. `close_db()` disposes the pool on shutdown; a later `init_db()`
starts a fresh one.
"""
import asyncio

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from shared.config import settings

logger = structlog.get_logger(__name__)

Base = declarative_base()

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker | None = None
_init_lock = asyncio.Lock()


async def init_db(url: str | None = None, **engine_kwargs) -> AsyncEngine:
    """Create the engine if it does not exist yet and return it."""
    global _engine, _session_factory

    if _engine is not None:
        return _engine

    async with _init_lock:
        # Another coroutine may have finished initialising while we waited.
        if _engine is None:
            engine_kwargs.setdefault("echo", settings.DB_ECHO)
            engine = create_async_engine(url or settings.DATABASE_URL, **engine_kwargs)
            _session_factory = async_sessionmaker(engine, expire_on_commit=False)
            _engine = engine
            logger.info("database_initialised", dialect=engine.dialect.name)
    return _engine


async def create_tables() -> None:
    engine = await init_db()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    global _engine, _session_factory

    async with _init_lock:
        if _engine is not None:
            await _engine.dispose()
            logger.info("database_closed")
        _engine = None
        _session_factory = None


async def get_db():
    if _session_factory is None:
        await init_db()
    async with _session_factory() as session:
        yield session

