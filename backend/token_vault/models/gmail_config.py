"""Gmail credential record ORM model."""
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, Integer, LargeBinary, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from token_vault.models.base import Base, TimestampMixin, UUIDMixin


class EncryptionState(str, enum.Enum):
    PLAINTEXT_ONLY = "plaintext_only"
    ENCRYPTED = "encrypted"
    EMPTY = "empty"


class GmailConfig(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "gmail_config"
    __table_args__ = (
        CheckConstraint(
            "access_token_enc IS NULL OR (token_nonce IS NOT NULL AND token_key_version IS NOT NULL)",
            name="encrypted_fields_complete",
        ),
        CheckConstraint("token_nonce IS NULL OR length(token_nonce) = 12", name="nonce_length"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), unique=True, nullable=False)
    user_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Encrypted representation
    access_token_enc: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    refresh_token_enc: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    token_nonce: Mapped[bytes | None] = mapped_column(LargeBinary(12), nullable=True)
    token_key_version: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)

    # Deprecated plaintext representation, cleared by migration
    access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)

    token_expiry: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def has_encrypted_tokens(self) -> bool:
        return (
            self.access_token_enc is not None
            and self.token_nonce is not None
            and self.token_key_version is not None
        )

    @property
    def has_legacy_tokens(self) -> bool:
        return bool(self.access_token)

    @property
    def encryption_state(self) -> EncryptionState:
        if self.has_encrypted_tokens:
            return EncryptionState.ENCRYPTED
        if self.has_legacy_tokens:
            return EncryptionState.PLAINTEXT_ONLY
        return EncryptionState.EMPTY

    def is_token_expired(self, now: datetime | None = None) -> bool:
        if self.token_expiry is None:
            return True
        now = now or datetime.now(timezone.utc)
        expiry = self.token_expiry
        # SQLite drops tzinfo on round trip
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        return expiry <= now
