import logging
from pathlib import Path
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

logger = logging.getLogger(__name__)

Base = declarative_base()


def _normalize_url(raw_url: str) -> str:
    if raw_url.startswith("sqlite:///"):
        # if someone provided a sync URL by mistake, upgrade it to async
        return raw_url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return raw_url


def _set_sqlite_pragmas(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


class Database:
    """Owns the engine and session factory for one running application."""

    def __init__(self, url: str, *, echo: bool = False):
        self.url = _normalize_url(url)
        self._ensure_parent_dir()
        self.engine: AsyncEngine = create_async_engine(self.url, echo=echo, future=True)
        event.listen(self.engine.sync_engine, "connect", _set_sqlite_pragmas)
        self.session_maker = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

    def _ensure_parent_dir(self) -> None:
        db_path = make_url(self.url).database
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    def session(self) -> AsyncSession:
        return self.session_maker()

    async def create_all(self) -> None:
        from . import models  # noqa: F401  registers every table on Base.metadata

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("Database engine disposed")


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    database: Database = request.app.state.db
    async with database.session() as session:
        yield session
