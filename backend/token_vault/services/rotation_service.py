"""Re-encryption of stored Gmail tokens under the newest key version."""
import logging
import time

from token_vault.exceptions import AuthenticationFailure, ConfigurationError
from token_vault.middleware.metrics import record_job_summary
from token_vault.repositories import gmail_config_repository as repo
from token_vault.repositories.gmail_config_repository import CredentialSnapshot
from token_vault.schemas.vault import RotationSummary
from token_vault.services.batch_job import BatchJob

logger = logging.getLogger(__name__)


class RotationJob(BatchJob):
    """Moves records sealed under an older key version to the active one.

    Each record is decrypted with its own (retiring) key and re-sealed with a
    fresh nonce under the active key. The write only lands if the record still
    carries the key version and nonce that were read; otherwise a concurrent
    token refresh won and the record is skipped.

    Only records on decryptable older versions are selected; records on
    retired or unconfigured versions show up in the key inventory instead.
    Records that fail to decrypt are reported but do not count against
    ``batch_limit``: the scan pages past them on (key_version, id), so a run
    always reaches the rotatable records behind them.
    """

    name = "rotate"

    async def run(self, batch_limit: int) -> RotationSummary:
        self._check_batch_limit(batch_limit)
        started = time.perf_counter()

        provider = self.codec.key_provider
        current_version = provider.active_version()
        provider.active_key()
        source_versions = [v for v in provider.decryptable_versions() if v < current_version]
        if not source_versions:
            raise ConfigurationError(
                f"No key version configured beyond v{current_version}; nothing to rotate to"
            )

        summary = RotationSummary(key_version=current_version)
        logger.info("Rotating records on key v%s to v%d", source_versions, current_version)

        budget = batch_limit
        cursor = None
        while budget > 0:
            page = await repo.list_rotation_candidates(self.db, source_versions, budget, after=cursor)
            if not page:
                break
            for record in page:
                summary.total += 1
                if await self._rotate(record, summary):
                    budget -= 1
            cursor = (page[-1].token_key_version, page[-1].id)

        logger.info(
            "Rotation complete: %d rotated, %d skipped, %d failed of %d",
            summary.rotated, summary.skipped, summary.failed, summary.total,
        )
        record_job_summary(
            self.name, time.perf_counter() - started,
            rotated=summary.rotated, skipped=summary.skipped, errors=summary.failed,
        )
        return summary

    async def _rotate(self, record: CredentialSnapshot, summary: RotationSummary) -> bool:
        """Rotate one record; False when it failed."""
        old_version = record.token_key_version
        try:
            tokens = self.codec.decrypt_pair(
                record.access_token_enc,
                record.refresh_token_enc,
                record.token_nonce,
                old_version,
            )
            pair = self.codec.encrypt_pair(tokens.access, tokens.refresh)

            written = await self._commit_write(
                repo.replace_encrypted,
                record.id,
                pair,
                expected_key_version=old_version,
                expected_nonce=record.token_nonce,
            )
            if written:
                summary.rotated += 1
                logger.info("Rotated record %s from v%d to v%d", record.label, old_version, pair.key_version)
            else:
                summary.skipped += 1
                logger.info("Record %s changed during rotation, skipping", record.label)
            return True

        except (AuthenticationFailure, ConfigurationError) as exc:
            logger.error("Cannot decrypt record %s under key v%s: %s", record.label, old_version, exc)
            summary.failed += 1
            summary.add_error(record.id, str(exc))
        except Exception as exc:
            logger.error("Error rotating record %s: %s", record.label, exc)
            summary.failed += 1
            summary.add_error(record.id, str(exc) or type(exc).__name__)
            await self._abandon()
        return False
