"""Administrative Gmail token vault API - 3 endpoints.

Every endpoint requires the X-Internal-Secret header; callers are cron
jobs and operators, never end users.
"""
import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from token_vault.config import settings
from token_vault.dependencies import get_codec, get_db, get_key_provider, require_internal_secret
from token_vault.schemas.common import APIResponse
from token_vault.services.key_service import build_inventory
from token_vault.services.migration_service import MigrationJob
from token_vault.services.rotation_service import RotationJob
from token_vault.utils.encryption import DualTokenCodec
from token_vault.utils.keys import KeyProvider

logger = structlog.get_logger()

router = APIRouter(dependencies=[Depends(require_internal_secret)])


def _batch_limit(batch_limit: int | None = Query(None, ge=1, le=10_000)) -> int:
    return batch_limit or settings.VAULT_JOB_BATCH_LIMIT


# POST /admin/gmail-tokens/migrate
@router.post("/migrate", response_model=APIResponse)
async def migrate_tokens(
    batch_limit: int = Depends(_batch_limit),
    db: AsyncSession = Depends(get_db),
    codec: DualTokenCodec = Depends(get_codec),
):
    logger.info("token_migration_started", batch_limit=batch_limit)
    summary = await MigrationJob(db, codec).run(batch_limit)
    logger.info(
        "token_migration_finished",
        total=summary.total, migrated=summary.migrated,
        skipped=summary.skipped, errors=len(summary.errors),
    )
    return APIResponse(
        status="success",
        data=summary.model_dump(),
        message=f"Migration complete. Migrated {summary.migrated} of {summary.total} records.",
    )


# POST /admin/gmail-tokens/rotate
@router.post("/rotate", response_model=APIResponse)
async def rotate_tokens(
    batch_limit: int = Depends(_batch_limit),
    db: AsyncSession = Depends(get_db),
    codec: DualTokenCodec = Depends(get_codec),
):
    logger.info("token_rotation_started", batch_limit=batch_limit)
    summary = await RotationJob(db, codec).run(batch_limit)
    logger.info(
        "token_rotation_finished",
        total=summary.total, rotated=summary.rotated, skipped=summary.skipped,
        failed=summary.failed, key_version=summary.key_version,
    )
    return APIResponse(
        status="success",
        data=summary.model_dump(),
        message=f"Rotation complete: {summary.rotated} rotated, {summary.failed} failed",
    )


# GET /admin/gmail-tokens/keys
@router.get("/keys", response_model=APIResponse)
async def key_inventory(
    db: AsyncSession = Depends(get_db),
    provider: KeyProvider = Depends(get_key_provider),
):
    inventory = await build_inventory(db, provider)
    return APIResponse(status="success", data=inventory.model_dump(mode="json"))
