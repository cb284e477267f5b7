"""Create accounts and timestamps tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Initial schema: `accounts` (credentials, one-time token digests) and
       `timestamps` (notes pinned to a moment of a video).

Rollback: downgrade() drops both tables (destructive, all data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False, server_default=sa.text("''")),
        sa.Column("email", sa.String(320), nullable=False, comment="Lowercased"),
        sa.Column(
            "password_hash",
            sa.String(255),
            nullable=True,
            comment="bcrypt hash; NULL for Google-only accounts",
        ),
        sa.Column("google_id", sa.String(255), nullable=True, comment="Google 'sub' claim"),
        sa.Column(
            "email_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column(
            "email_verification_token",
            sa.String(64),
            nullable=True,
            comment="SHA-256 hex of the emailed token",
        ),
        sa.Column("email_verification_expiry", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "password_reset_token",
            sa.String(64),
            nullable=True,
            comment="SHA-256 hex of the emailed token",
        ),
        sa.Column("password_reset_expiry", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
        sa.UniqueConstraint("google_id"),
    )
    op.create_index(
        "idx_accounts_password_reset_token", "accounts", ["password_reset_token"]
    )
    op.create_index(
        "idx_accounts_email_verification_token", "accounts", ["email_verification_token"]
    )

    op.create_table(
        "timestamps",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("video_id", sa.String(64), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("timestamp", sa.Float(), nullable=False, comment="Seconds into the video"),
        sa.Column("title", sa.String(255), nullable=False, server_default=sa.text("''")),
        sa.Column("note", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column(
            "tags",
            postgresql.ARRAY(sa.String(64)),
            nullable=False,
            server_default=sa.text("'{}'"),
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column("deleted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["accounts.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "idx_timestamps_user_video", "timestamps", ["user_id", "video_id", "timestamp"]
    )


def downgrade() -> None:
    op.drop_index("idx_timestamps_user_video", table_name="timestamps")
    op.drop_table("timestamps")
    op.drop_index("idx_accounts_email_verification_token", table_name="accounts")
    op.drop_index("idx_accounts_password_reset_token", table_name="accounts")
    op.drop_table("accounts")
