from __future__ import annotations

from pathlib import Path
from typing import AsyncIterator, Iterator

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from src.config import get_settings

settings = get_settings()


class Base(DeclarativeBase):
    pass


engine = create_async_engine(settings.database_url, echo=settings.debug)
async_session_factory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

# 同步版本的資料庫連線（給排程與 CLI 使用）
sync_engine = create_engine(settings.sync_database_url)
SessionLocal = sessionmaker(bind=sync_engine, expire_on_commit=False)


def _ensure_sqlite_dir(url: str) -> None:
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite" and parsed.database not in (None, "", ":memory:"):
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)


async def init_db() -> None:
    import src.models  # noqa: F401  registers tables on Base.metadata

    _ensure_sqlite_dir(settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized")


def init_db_sync() -> None:
    import src.models  # noqa: F401

    _ensure_sqlite_dir(settings.sync_database_url)
    Base.metadata.create_all(sync_engine)
    logger.info("Database initialized")


async def get_db() -> AsyncIterator[AsyncSession]:
    async with async_session_factory() as session:
        yield session


def get_sync_session() -> Session:
    return SessionLocal()


def get_sync_db() -> Iterator[Session]:
    with SessionLocal() as session:
        yield session
