"""Gmail token read/write paths used by the OAuth callback and token refresh."""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from token_vault.exceptions import AuthenticationFailure, ConfigurationError, NotFoundError
from token_vault.models.gmail_config import GmailConfig
from token_vault.repositories import gmail_config_repository as repo
from token_vault.utils.encryption import DualTokenCodec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenReadResult:
    access: str | None = None
    refresh: str | None = None
    was_encrypted: bool = False
    key_version: int | None = None

    @property
    def is_empty(self) -> bool:
        """No usable access token: the account must be re-authorized."""
        return not self.access


class CompatibilityReader:
    """Returns usable plaintext tokens from a persisted record.

    The encrypted representation wins when it decrypts. On a decryption or
    key-resolution failure the legacy plaintext columns are used instead,
    so ``was_encrypted`` is the only signal separating the two outcomes.
    With ``strict=True`` the fallback only applies to records that carry no
    ciphertext at all.
    """

    def __init__(self, codec: DualTokenCodec, strict: bool = False):
        self.codec = codec
        self.strict = strict

    def read(self, record) -> TokenReadResult:
        if record.access_token_enc is not None and record.token_nonce is not None:
            try:
                pair = self.codec.decrypt_pair(
                    record.access_token_enc,
                    record.refresh_token_enc,
                    record.token_nonce,
                    record.token_key_version,
                )
                return TokenReadResult(
                    access=pair.access,
                    refresh=pair.refresh,
                    was_encrypted=True,
                    key_version=record.token_key_version,
                )
            except (AuthenticationFailure, ConfigurationError) as exc:
                if self.strict:
                    raise
                logger.warning(
                    "Failed to decrypt tokens for record %s (key v%s), falling back to plaintext: %s",
                    record.id, record.token_key_version, exc,
                )

        if record.access_token:
            return TokenReadResult(
                access=record.access_token,
                refresh=record.refresh_token,
                was_encrypted=False,
            )

        return TokenReadResult()


async def load_tokens(db: AsyncSession, reader: CompatibilityReader, user_id: uuid.UUID) -> TokenReadResult:
    record = await repo.get_by_user_id(db, user_id)
    if record is None:
        raise NotFoundError(str(user_id))
    result = reader.read(record)
    if result.is_empty:
        logger.info("No usable Gmail tokens for user %s, re-authorization required", user_id)
    return result


async def store_tokens(
    db: AsyncSession,
    codec: DualTokenCodec,
    user_id: uuid.UUID,
    access_token: str,
    refresh_token: str | None = None,
    *,
    expires_at: datetime | None = None,
    user_email: str | None = None,
) -> GmailConfig:
    """Encrypt and persist a token pair, creating the record on first authorization.

    The write is refused with ConfigurationError when the stored pair is sealed
    under a newer key version than the active one, for example after a rotation
    by a worker with newer key configuration.
    """
    pair = codec.encrypt_pair(access_token, refresh_token)

    record = await repo.get_by_user_id(db, user_id)
    if record is None:
        record = await repo.create(db, GmailConfig(user_id=user_id, user_email=user_email))

    if not await repo.write_tokens(db, record.id, pair, expires_at, user_email=user_email):
        raise ConfigurationError(
            f"Record for user {user_id} is sealed under a key newer than the active key v{pair.key_version}"
        )
    logger.info("Stored encrypted Gmail tokens for user %s (key v%d)", user_id, pair.key_version)
    return record


async def renew_access_token(
    db: AsyncSession,
    reader: CompatibilityReader,
    user_id: uuid.UUID,
    access_token: str,
    expires_in: int,
    refresh_token: str | None = None,
) -> GmailConfig:
    """Persist a refreshed access token, keeping the stored refresh token when none is issued."""
    record = await repo.get_by_user_id(db, user_id)
    if record is None:
        raise NotFoundError(str(user_id))

    if refresh_token is None:
        # Strict read: an undecryptable stored refresh token must not be replaced by None
        refresh_token = CompatibilityReader(reader.codec, strict=True).read(record).refresh

    expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
    return await store_tokens(
        db, reader.codec, user_id, access_token, refresh_token, expires_at=expires_at,
    )
