# Copyright (C) 2024 FlowPlay Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Database connection and session management."""

import logging
from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from flowplay_server.models.base import Base

logger = logging.getLogger(__name__)


class Database:
    """Owns the async engine and session factory for one application.

    The engine is created on first use and kept for the life of the process;
    it is only disposed when the application shuts down.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.echo = echo
        self._engine: AsyncEngine | None = None
        self._session_maker: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            options: dict = {"echo": self.echo, "pool_pre_ping": True}
            if not self.url.startswith("sqlite"):
                options.update(pool_size=10, max_overflow=20)
            self._engine = create_async_engine(self.url, **options)
            logger.info("Database engine created for %s", make_url(self.url).render_as_string(hide_password=True))
        return self._engine

    @property
    def session_maker(self) -> async_sessionmaker[AsyncSession]:
        if self._session_maker is None:
            self._session_maker = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
        return self._session_maker

    def session(self) -> AsyncSession:
        return self.session_maker()

    async def init_models(self) -> None:
        """Create all tables. Call at startup."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> bool:
        """Return True when the database answers a trivial query."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("Database ping failed: %s", e)
            return False

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_maker = None


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency for FastAPI that yields a database session."""
    database: Database = request.app.state.db
    async with database.session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
