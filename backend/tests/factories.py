"""Fixture keys and record factories shared across test modules."""
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from token_vault.models.gmail_config import GmailConfig
from token_vault.utils.encryption import DualTokenCodec
from token_vault.utils.keys import KeyProvider, KeyringConfig

KEY_V1 = "0" * 64
KEY_V2 = "1f" * 32
KEY_V3 = "a5" * 32
INTERNAL_SECRET = "test-internal-secret"


def make_codec(**entries: str) -> DualTokenCodec:
    """Codec over keys given as v1=..., v2=... keyword arguments."""
    keyring = {int(name.lstrip("v")): key_hex for name, key_hex in entries.items()}
    return DualTokenCodec(KeyProvider(KeyringConfig(entries=keyring)))


def _email() -> str:
    return f"user_{uuid.uuid4().hex[:8]}@test.com"


async def create_legacy_record(
    db: AsyncSession, access: str | None = "legacy-access", refresh: str | None = "legacy-refresh",
) -> GmailConfig:
    """Create a plaintext-only record as written before encryption existed."""
    record = GmailConfig(user_id=uuid.uuid4(), user_email=_email(), access_token=access, refresh_token=refresh)
    db.add(record)
    await db.commit()
    await db.refresh(record)
    return record


async def create_encrypted_record(
    db: AsyncSession,
    codec: DualTokenCodec,
    access: str = "enc-access",
    refresh: str | None = "enc-refresh",
    legacy_access: str | None = None,
) -> GmailConfig:
    pair = codec.encrypt_pair(access, refresh)
    record = GmailConfig(
        user_id=uuid.uuid4(),
        user_email=_email(),
        access_token_enc=pair.access_ciphertext,
        refresh_token_enc=pair.refresh_ciphertext,
        token_nonce=pair.base_nonce,
        token_key_version=pair.key_version,
        access_token=legacy_access,
    )
    db.add(record)
    await db.commit()
    await db.refresh(record)
    return record
