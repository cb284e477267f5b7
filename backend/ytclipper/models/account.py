"""
ytclipper Backend — Account SQLAlchemy Model
==============================================

What:  ORM model representing the `accounts` table.
Why:   One row per person: identity, credentials, and outstanding one-time tokens.
Who:   Read and written only through CredentialStore.

Credential columns:
    password_hash  NULL  → password login disabled for this account
    google_id      NULL  → no Google identity linked
    An account may carry both (dual login). Absence is always NULL, never an
    empty string, so "has a password" is a plain `is not None` check.

One-time tokens:
    email_verification_token / password_reset_token hold a SHA-256 digest of
    the emailed token, never the token itself. Each pair (token, expiry) is
    set together and cleared together; issuing a new token overwrites the old.
"""

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Boolean, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID, TIMESTAMP

from ytclipper.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Account(Base):
    """
    A user account with optional password and optional Google identity.

    Lifecycle:
        1. Created by password registration (email_verified=False, verification
           token outstanding) or by first Google sign-in (email_verified=True).
        2. Verification / reset tokens come and go; each is single-use.
        3. add-password turns a Google-only account into a dual-login account.
    """

    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    # Stored lowercase; the unique index makes lookups case-insensitive in practice
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)

    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Google "sub" claim
    google_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, unique=True
    )

    email_verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    email_verification_token: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True
    )
    email_verification_expiry: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    password_reset_token: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True
    )
    password_reset_expiry: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        Index("idx_accounts_password_reset_token", "password_reset_token"),
        Index("idx_accounts_email_verification_token", "email_verification_token"),
    )

    @property
    def has_password(self) -> bool:
        return self.password_hash is not None

    @property
    def auth_methods(self) -> List[str]:
        """Login methods usable for this account, in display order."""
        methods = []
        if self.google_id is not None:
            methods.append("google")
        if self.password_hash is not None:
            methods.append("password")
        return methods

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, email='{self.email}', methods={self.auth_methods})>"
