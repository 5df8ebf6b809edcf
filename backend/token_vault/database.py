"""Async SQLAlchemy engine and session factory."""
import logging
import time

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from token_vault.config import settings

logger = logging.getLogger(__name__)

SLOW_QUERY_THRESHOLD_MS = 500


def _install_slow_query_logging(target: AsyncEngine) -> None:
    sync_engine = target.sync_engine

    @event.listens_for(sync_engine, "before_cursor_execute")
    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info["query_start_time"] = time.perf_counter()

    @event.listens_for(sync_engine, "after_cursor_execute")
    def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start = conn.info.pop("query_start_time", None)
        if start is None:
            return
        elapsed_ms = (time.perf_counter() - start) * 1000
        if elapsed_ms >= SLOW_QUERY_THRESHOLD_MS:
            # Statement text only; bound parameters carry ciphertext and tokens
            logger.warning("Slow query detected: %.1fms - %s", elapsed_ms, statement[:200])


def create_engine(url: str | None = None, **kwargs) -> AsyncEngine:
    """Engine for the credential store; the API, Celery workers and the CLI share this setup."""
    kwargs.setdefault("pool_size", 5)
    kwargs.setdefault("max_overflow", 5)
    new_engine = create_async_engine(url or settings.DATABASE_URL, echo=False, pool_pre_ping=True, **kwargs)
    _install_slow_query_logging(new_engine)
    return new_engine


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = create_engine()
async_session_factory = create_session_factory(engine)
