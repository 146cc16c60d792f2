import logging
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncAttrs, AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from tenacity import before_sleep_log, retry, stop_after_attempt, wait_exponential

from config import DATABASE_URL, DB_CONNECT_ATTEMPTS, SQL_ECHO
from logger import logger


class Base(AsyncAttrs, DeclarativeBase):
    pass


engine = create_async_engine(DATABASE_URL, echo=SQL_ECHO)
SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@retry(
    stop=stop_after_attempt(DB_CONNECT_ATTEMPTS),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def wait_for_db() -> AsyncEngine:
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("Database connection successful", extra={"url": engine.url.render_as_string(hide_password=True)})
    return engine


async def init_models(bind: AsyncEngine = engine) -> None:
    import models  # noqa: F401  registers the mappers on Base.metadata

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready", extra={"tables": sorted(Base.metadata.tables)})


async def get_session() -> AsyncIterator[AsyncSession]:
    async with SessionLocal() as session:
        yield session
