"""PostgreSQL connection for the progress store.

With DATABASE_URL set, the module builds one asyncpg-backed engine and a
session factory; each request gets a PgStore over its own session, and the
session's outer transaction is the request's unit of work (savepoints for
nested ``Store.transaction()`` blocks, advisory locks released on commit).

Without DATABASE_URL both are None and requests share an InMemoryStore.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from lms.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for the rows in lms/db/tables.py."""


# --- engine (None: in-memory store) ---

if SETTINGS.database_url:
    engine = create_async_engine(
        SETTINGS.database_url,
        echo=SETTINGS.is_dev,  # log SQL in dev only
        pool_size=5,
        max_overflow=10,
    )
    async_session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
else:
    engine = None
    async_session_factory = None


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Session backing one PgStore: committed when the request succeeds.

    Any exception rolls back every progress, credential and path write
    made through it, and releases the advisory locks taken on the way.
    """
    if async_session_factory is None:
        raise RuntimeError(
            "DATABASE_URL is not configured; the in-memory store has no sessions"
        )
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def lifespan_db():
    """Dispose of the pool on shutdown; used by the app lifespan."""
    if engine is None:
        logger.info("Progress store: in-memory (no DATABASE_URL)")
        yield
        return

    logger.info(
        "Progress store: PostgreSQL at %s", engine.url.render_as_string(hide_password=True)
    )
    yield
    await engine.dispose()
    logger.info("Progress store connections closed")
