"""FastAPI dependency injection utilities."""
import secrets
from collections.abc import AsyncGenerator

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from token_vault.config import settings
from token_vault.database import async_session_factory
from token_vault.middleware.error_handler import AppException
from token_vault.services.token_service import CompatibilityReader
from token_vault.utils.encryption import DualTokenCodec
from token_vault.utils.keys import KeyProvider, KeyringConfig


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_key_provider() -> KeyProvider:
    """Key provider over the current settings."""
    return KeyProvider(KeyringConfig.from_settings(settings))


def get_codec(provider: KeyProvider = Depends(get_key_provider)) -> DualTokenCodec:
    return DualTokenCodec(provider)


def get_reader(codec: DualTokenCodec = Depends(get_codec)) -> CompatibilityReader:
    return CompatibilityReader(codec, strict=settings.GMAIL_TOKEN_STRICT_DECRYPT)


async def require_internal_secret(
    x_internal_secret: str | None = Header(default=None),
) -> None:
    """Reject administrative calls lacking the shared internal secret."""
    expected = settings.INTERNAL_CRON_SECRET
    if not expected or not x_internal_secret or not secrets.compare_digest(
        x_internal_secret.encode(), expected.encode()
    ):
        raise AppException(401, "Unauthorized", "vault/unauthorized")
