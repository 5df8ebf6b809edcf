"""Retry with exponential backoff for transient record-store errors.

Only I/O failures are retried. Authentication failures are deterministic for
the same inputs and are never passed through here.
"""
import asyncio
import logging
from typing import Any, Callable

from sqlalchemy.exc import InterfaceError, OperationalError

logger = logging.getLogger(__name__)

TRANSIENT_STORE_ERRORS: tuple = (OperationalError, InterfaceError)


async def retry_with_backoff(
    func: Callable[..., Any],
    *args: Any,
    max_retries: int = 3,
    backoff_base: float = 0.5,
    backoff_factor: float = 2.0,
    retryable_exceptions: tuple = TRANSIENT_STORE_ERRORS,
    **kwargs: Any,
) -> Any:
    """Execute func with exponential backoff retry on retryable errors.

    Delay: backoff_base * (backoff_factor ** attempt)
        → 0.5s, 1s, 2s by default
    """
    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)
        except retryable_exceptions as exc:
            if attempt >= max_retries:
                logger.error("Max retries (%d) exceeded: %s", max_retries, exc)
                raise
            delay = backoff_base * (backoff_factor ** attempt)
            logger.warning(
                "Retry %d/%d after %.1fs: %s",
                attempt + 1, max_retries, delay, exc,
            )
            await asyncio.sleep(delay)
