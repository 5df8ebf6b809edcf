"""Plaintext → encrypted migration of stored Gmail tokens."""
import logging
import time

from token_vault.middleware.metrics import record_job_summary
from token_vault.repositories import gmail_config_repository as repo
from token_vault.schemas.vault import MigrationSummary
from token_vault.services.batch_job import BatchJob

logger = logging.getLogger(__name__)


class MigrationJob(BatchJob):
    """Encrypts records that still hold legacy plaintext tokens.

    The encrypted columns are written and the plaintext columns cleared in the
    same UPDATE. Re-running over a migrated dataset migrates nothing and
    reports every record as skipped.
    """

    name = "migrate"

    async def run(self, batch_limit: int) -> MigrationSummary:
        self._check_batch_limit(batch_limit)
        started = time.perf_counter()
        # Fail before touching any record when there is no usable active key
        active = self.codec.key_provider.active_key()

        candidates = await repo.list_migration_candidates(self.db, batch_limit)
        summary = MigrationSummary(total=len(candidates))
        logger.info("Found %d gmail_config records to process (key v%d)", summary.total, active.version)

        for record in candidates:
            try:
                if record.has_encrypted_tokens:
                    if record.access_token:
                        logger.warning("Record %s is encrypted but still holds legacy plaintext", record.id)
                    summary.skipped += 1
                    continue

                if not record.access_token:
                    logger.debug("Skipping record %s - no plaintext token", record.id)
                    summary.skipped += 1
                    continue

                pair = self.codec.encrypt_pair(record.access_token, record.refresh_token)
                if await self._commit_write(repo.mark_migrated, record.id, pair):
                    summary.migrated += 1
                    logger.info("Migrated record %s to key v%d", record.id, pair.key_version)
                else:
                    logger.info("Record %s was encrypted by another writer, skipping", record.id)
                    summary.skipped += 1

            except Exception as exc:
                logger.error("Error migrating record %s: %s", record.id, exc)
                summary.add_error(record.id, str(exc) or type(exc).__name__)
                await self._abandon()

        logger.info(
            "Migration complete: %d migrated, %d skipped, %d errors of %d",
            summary.migrated, summary.skipped, len(summary.errors), summary.total,
        )
        record_job_summary(
            self.name, time.perf_counter() - started,
            migrated=summary.migrated, skipped=summary.skipped, errors=len(summary.errors),
        )
        return summary
