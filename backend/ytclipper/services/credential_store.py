"""
ytclipper Backend — Credential Store
======================================

What:  Every read and write of `accounts` rows.
Why:   Keeps SQL out of the account flows; flows see a narrow contract.
How:   Wraps the request's AsyncSession. Writes are flushed, not committed:
       get_db_session commits once at the end of the request.

Contract:
    find_*   → Account, or None when nothing matches (never raises for "absent")
    insert   → ConflictError if the email or Google id is already taken
    update   → flushes pending attribute changes on a loaded Account
    Any other database failure → DatabaseError (details logged, not returned)

Query plans:
    find_by_email               unique index on accounts.email
    find_by_reset_token         idx_accounts_password_reset_token + expiry filter
    find_by_verification_token  idx_accounts_email_verification_token + expiry filter
"""

import logging
import uuid
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ytclipper.exceptions import ConflictError, DatabaseError
from ytclipper.models.account import Account

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CredentialStore:
    """Account persistence bound to one request's session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _first(self, stmt, operation: str) -> Optional[Account]:
        try:
            result = await self.db.execute(stmt)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error in %s: %s", operation, str(e))
            raise DatabaseError(context={"operation": operation}) from e

    async def find_by_email(self, email: str) -> Optional[Account]:
        stmt = select(Account).where(Account.email == normalize_email(email))
        return await self._first(stmt, "find_by_email")

    async def find_by_id(self, account_id: Union[str, uuid.UUID]) -> Optional[Account]:
        if not isinstance(account_id, uuid.UUID):
            try:
                account_id = uuid.UUID(str(account_id))
            except ValueError:
                return None
        stmt = select(Account).where(Account.id == account_id)
        return await self._first(stmt, "find_by_id")

    async def find_by_google_id(self, google_id: str) -> Optional[Account]:
        stmt = select(Account).where(Account.google_id == google_id)
        return await self._first(stmt, "find_by_google_id")

    async def find_by_reset_token(
        self, token_digest: str, not_expired_at: datetime
    ) -> Optional[Account]:
        """Match the token and its freshness in one predicate."""
        stmt = select(Account).where(
            Account.password_reset_token == token_digest,
            Account.password_reset_expiry > not_expired_at,
        )
        return await self._first(stmt, "find_by_reset_token")

    async def find_by_verification_token(
        self, token_digest: str, not_expired_at: datetime
    ) -> Optional[Account]:
        stmt = select(Account).where(
            Account.email_verification_token == token_digest,
            Account.email_verification_expiry > not_expired_at,
        )
        return await self._first(stmt, "find_by_verification_token")

    async def insert(self, account: Account) -> Account:
        account.email = normalize_email(account.email)
        self.db.add(account)
        try:
            await self.db.flush()
        except IntegrityError as e:
            # Lost a race with a concurrent registration for the same email
            await self.db.rollback()
            raise ConflictError(
                message="User with this email already exists",
                code="USER_EXISTS",
            ) from e
        except SQLAlchemyError as e:
            logger.error("Database error inserting account: %s", str(e))
            raise DatabaseError(
                message="Failed to create user",
                context={"operation": "insert"},
            ) from e
        logger.info("Account created: %s", account.id)
        return account

    async def update(self, account: Account) -> Account:
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            logger.error("Database error updating account %s: %s", account.id, str(e))
            raise DatabaseError(context={"operation": "update", "account_id": str(account.id)}) from e
        return account
