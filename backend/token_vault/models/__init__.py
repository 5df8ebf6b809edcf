"""SQLAlchemy ORM models."""
from token_vault.models.base import Base, TimestampMixin, UUIDMixin
from token_vault.models.gmail_config import EncryptionState, GmailConfig

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "GmailConfig",
    "EncryptionState",
]
