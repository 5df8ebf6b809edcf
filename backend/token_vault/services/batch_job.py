"""Shared plumbing for administrative batch jobs over the credential store."""
import logging
from typing import Any, Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from token_vault.config import settings
from token_vault.utils.encryption import DualTokenCodec
from token_vault.utils.resilience import TRANSIENT_STORE_ERRORS, retry_with_backoff

logger = logging.getLogger(__name__)


class BatchJob:
    """Processes records sequentially on one session, committing per record.

    Each record write is its own transaction so an interrupted run keeps the
    progress it made and a failing record never poisons the rest of the batch.
    """

    name = "batch"

    def __init__(
        self,
        db: AsyncSession,
        codec: DualTokenCodec,
        *,
        max_retries: int | None = None,
        backoff_base: float = 0.5,
    ):
        self.db = db
        self.codec = codec
        self.max_retries = settings.VAULT_STORE_MAX_RETRIES if max_retries is None else max_retries
        self.backoff_base = backoff_base

    @staticmethod
    def _check_batch_limit(batch_limit: int) -> None:
        if batch_limit < 1:
            raise ValueError("batch_limit must be a positive integer")

    async def _commit_write(self, write: Callable[..., Awaitable[bool]], *args: Any, **kwargs: Any) -> bool:
        async def attempt() -> bool:
            try:
                written = await write(self.db, *args, **kwargs)
                await self.db.commit()
                return written
            except TRANSIENT_STORE_ERRORS:
                await self.db.rollback()
                raise

        return await retry_with_backoff(
            attempt, max_retries=self.max_retries, backoff_base=self.backoff_base,
        )

    async def _abandon(self) -> None:
        await self.db.rollback()
