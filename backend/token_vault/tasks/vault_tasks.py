"""Token vault batch jobs - LOW queue.

Migration and rotation run out-of-band from request handling. Both are
resumable: a rerun skips records that already converged.
"""
import asyncio
import logging

from token_vault.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


async def _run_job(job_cls, batch_limit: int) -> dict:
    from token_vault.config import settings
    from token_vault.database import async_session_factory, engine
    from token_vault.utils.encryption import DualTokenCodec
    from token_vault.utils.keys import KeyProvider, KeyringConfig

    codec = DualTokenCodec(KeyProvider(KeyringConfig.from_settings(settings)))
    try:
        async with async_session_factory() as db:
            summary = await job_cls(db, codec).run(batch_limit)
    finally:
        # Pooled connections are bound to this event loop
        await engine.dispose()
    return summary.model_dump()


@celery_app.task(name="token_vault.tasks.vault_tasks.migrate_gmail_tokens")
def migrate_gmail_tokens(batch_limit: int | None = None) -> dict:
    """Encrypt records still holding legacy plaintext tokens."""
    from token_vault.config import settings
    from token_vault.services.migration_service import MigrationJob

    result = asyncio.run(_run_job(MigrationJob, batch_limit or settings.VAULT_JOB_BATCH_LIMIT))
    logger.info("Gmail token migration: %d of %d migrated", result["migrated"], result["total"])
    return result


@celery_app.task(name="token_vault.tasks.vault_tasks.rotate_gmail_tokens")
def rotate_gmail_tokens(batch_limit: int | None = None) -> dict:
    """Periodic task (daily 03:30 UTC): re-encrypt records under the newest key."""
    from token_vault.config import settings
    from token_vault.exceptions import ConfigurationError
    from token_vault.services.rotation_service import RotationJob

    try:
        result = asyncio.run(_run_job(RotationJob, batch_limit or settings.VAULT_JOB_BATCH_LIMIT))
    except ConfigurationError as exc:
        logger.info("Gmail token rotation not run: %s", exc)
        return {"status": "skipped", "reason": str(exc)}

    logger.info(
        "Gmail token rotation: %d rotated, %d failed of %d",
        result["rotated"], result["failed"], result["total"],
    )
    return {"status": "completed", **result}
