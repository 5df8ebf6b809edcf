"""Gmail credential record data access layer."""
import uuid as _uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, case, func, or_, select, tuple_, update
from sqlalchemy.ext.asyncio import AsyncSession

from token_vault.models.gmail_config import GmailConfig
from token_vault.utils.encryption import EncryptedTokenPair


@dataclass(frozen=True)
class CredentialSnapshot:
    """Detached copy of the token columns of one record, safe across rollbacks."""

    id: _uuid.UUID
    user_email: str | None
    access_token_enc: bytes | None
    refresh_token_enc: bytes | None
    token_nonce: bytes | None
    token_key_version: int | None
    access_token: str | None
    refresh_token: str | None

    @property
    def has_encrypted_tokens(self) -> bool:
        return (
            self.access_token_enc is not None
            and self.token_nonce is not None
            and self.token_key_version is not None
        )

    @property
    def label(self) -> str:
        return self.user_email or str(self.id)


_SNAPSHOT_COLUMNS = (
    GmailConfig.id,
    GmailConfig.user_email,
    GmailConfig.access_token_enc,
    GmailConfig.refresh_token_enc,
    GmailConfig.token_nonce,
    GmailConfig.token_key_version,
    GmailConfig.access_token,
    GmailConfig.refresh_token,
)


def _snapshots(rows) -> list[CredentialSnapshot]:
    return [CredentialSnapshot(*row) for row in rows]


def _encrypted_values(pair: EncryptedTokenPair) -> dict:
    return {
        "access_token_enc": pair.access_ciphertext,
        "refresh_token_enc": pair.refresh_ciphertext,
        "token_nonce": pair.base_nonce,
        "token_key_version": pair.key_version,
    }


async def get_by_user_id(db: AsyncSession, user_id: _uuid.UUID) -> GmailConfig | None:
    return (await db.execute(select(GmailConfig).where(GmailConfig.user_id == user_id))).scalar_one_or_none()


async def create(db: AsyncSession, record: GmailConfig) -> GmailConfig:
    db.add(record)
    await db.flush()
    return record


async def list_migration_candidates(db: AsyncSession, limit: int) -> list[CredentialSnapshot]:
    """Records carrying any token material, those still needing migration first."""
    pending_first = case(
        (and_(GmailConfig.access_token_enc.is_(None), GmailConfig.access_token.isnot(None)), 0),
        else_=1,
    )
    q = (
        select(*_SNAPSHOT_COLUMNS)
        .where((GmailConfig.access_token.isnot(None)) | (GmailConfig.access_token_enc.isnot(None)))
        .order_by(pending_first, GmailConfig.created_at, GmailConfig.id)
        .limit(limit)
    )
    return _snapshots((await db.execute(q)).all())


async def list_rotation_candidates(
    db: AsyncSession,
    versions: list[int],
    limit: int,
    after: tuple[int, _uuid.UUID] | None = None,
) -> list[CredentialSnapshot]:
    """Encrypted records sealed under one of ``versions``, in (key_version, id) order.

    ``after`` is the (key_version, id) of the last record already seen; pages
    resume strictly after it.
    """
    q = select(*_SNAPSHOT_COLUMNS).where(
        GmailConfig.access_token_enc.isnot(None),
        GmailConfig.token_key_version.in_(versions),
    )
    if after is not None:
        cols = GmailConfig.__table__.c
        q = q.where(
            tuple_(cols.token_key_version, cols.id)
            > tuple_(*after, types=[cols.token_key_version.type, cols.id.type])
        )
    q = q.order_by(GmailConfig.token_key_version, GmailConfig.id).limit(limit)
    return _snapshots((await db.execute(q)).all())


async def mark_migrated(db: AsyncSession, record_id: _uuid.UUID, pair: EncryptedTokenPair) -> bool:
    """Write the encrypted fields and clear the legacy plaintext in one UPDATE.

    Returns False when another writer encrypted the record first.
    """
    result = await db.execute(
        update(GmailConfig)
        .where(GmailConfig.id == record_id, GmailConfig.access_token_enc.is_(None))
        .values(**_encrypted_values(pair), access_token=None, refresh_token=None)
    )
    return result.rowcount == 1


async def replace_encrypted(
    db: AsyncSession,
    record_id: _uuid.UUID,
    pair: EncryptedTokenPair,
    *,
    expected_key_version: int,
    expected_nonce: bytes,
) -> bool:
    """Swap in a re-sealed pair if the record still holds the pair that was read.

    Every encrypted write draws a new nonce, so (key_version, nonce) identifies
    the exact ciphertext read before re-sealing.
    """
    result = await db.execute(
        update(GmailConfig)
        .where(
            GmailConfig.id == record_id,
            GmailConfig.token_key_version == expected_key_version,
            GmailConfig.token_nonce == expected_nonce,
        )
        .values(**_encrypted_values(pair))
    )
    return result.rowcount == 1


async def write_tokens(
    db: AsyncSession,
    record_id: _uuid.UUID,
    pair: EncryptedTokenPair,
    expiry: datetime | None,
    user_email: str | None = None,
) -> bool:
    """Write a freshly sealed pair and clear the legacy plaintext.

    The UPDATE only lands while the stored key version is not newer than the
    pair's; returns False otherwise.
    """
    values = {**_encrypted_values(pair), "access_token": None, "refresh_token": None, "token_expiry": expiry}
    if user_email:
        values["user_email"] = user_email
    result = await db.execute(
        update(GmailConfig)
        .where(
            GmailConfig.id == record_id,
            or_(GmailConfig.token_key_version.is_(None), GmailConfig.token_key_version <= pair.key_version),
        )
        .values(**values)
    )
    return result.rowcount == 1


async def count_by_key_version(db: AsyncSession) -> dict[int, int]:
    q = (
        select(GmailConfig.token_key_version, func.count())
        .where(GmailConfig.access_token_enc.isnot(None))
        .group_by(GmailConfig.token_key_version)
    )
    return {version: count for version, count in (await db.execute(q)).all()}


async def count_legacy(db: AsyncSession) -> int:
    q = select(func.count()).select_from(GmailConfig).where(GmailConfig.access_token.isnot(None))
    return (await db.execute(q)).scalar() or 0
