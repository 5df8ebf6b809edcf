"""Gmail credential table with encrypted and legacy plaintext token columns.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "gmail_config",
        sa.Column("id", UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", UUID(as_uuid=True), nullable=False),
        sa.Column("user_email", sa.String(255), nullable=True),
        sa.Column("access_token_enc", sa.LargeBinary, nullable=True),
        sa.Column("refresh_token_enc", sa.LargeBinary, nullable=True),
        sa.Column("token_nonce", sa.LargeBinary(12), nullable=True),
        sa.Column("token_key_version", sa.Integer, nullable=True),
        sa.Column("access_token", sa.Text, nullable=True),
        sa.Column("refresh_token", sa.Text, nullable=True),
        sa.Column("token_expiry", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "access_token_enc IS NULL OR (token_nonce IS NOT NULL AND token_key_version IS NOT NULL)",
            name="ck_gmail_config_encrypted_fields_complete",
        ),
        sa.CheckConstraint(
            "token_nonce IS NULL OR length(token_nonce) = 12", name="ck_gmail_config_nonce_length",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_gmail_config"),
        sa.UniqueConstraint("user_id", name="uq_gmail_config_user_id"),
    )
    op.create_index("ix_gmail_config_token_key_version", "gmail_config", ["token_key_version"])


def downgrade() -> None:
    op.drop_index("ix_gmail_config_token_key_version", table_name="gmail_config")
    op.drop_table("gmail_config")
