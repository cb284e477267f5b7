"""
ytclipper Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy (all function-scoped):
    ├── mock_db_session: AsyncMock standing in for AsyncSession
    ├── fake_store: in-memory CredentialStore
    ├── fake_mailer: EmailService that records instead of sending
    ├── hasher / token_issuer: real services, cheap bcrypt cost
    ├── account_service: AccountService wired from the fixtures above
    └── test_client: httpx AsyncClient against a fresh create_app()
"""

import os

# Override settings BEFORE any ytclipper import
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["JWT_SECRET"] = "test-secret-with-at-least-thirty-two-characters"
os.environ["EMAIL_API_KEY"] = ""
os.environ["GOOGLE_CLIENT_ID"] = ""
os.environ["GOOGLE_CLIENT_SECRET"] = ""
os.environ["RATE_LIMIT_REQUESTS"] = "10000"
os.environ["LOG_LEVEL"] = "WARNING"

import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from fastapi import Depends
from httpx import ASGITransport, AsyncClient

from ytclipper.database import get_db_session
from ytclipper.exceptions import ConflictError, EmailDeliveryError
from ytclipper.models.account import Account
from ytclipper.routes.deps import (
    get_account_service,
    get_credential_store,
    get_email_service,
    get_token_issuer,
)
from ytclipper.services.account_service import AccountService
from ytclipper.services.credential_store import normalize_email
from ytclipper.services.one_time_tokens import OneTimeTokenGenerator
from ytclipper.services.password_hasher import PasswordHasher
from ytclipper.services.token_issuer import TokenIssuer

TEST_SECRET = os.environ["JWT_SECRET"]


# ══════════════════════════════════════════════════════════════════════════
# Fakes
# ══════════════════════════════════════════════════════════════════════════


class FakeCredentialStore:
    """
    Dict-backed stand-in for CredentialStore with the same contract.

    Fills in the column defaults the database would apply on flush.
    """

    def __init__(self):
        self.accounts: Dict[uuid.UUID, Account] = {}

    def _match(self, predicate) -> Optional[Account]:
        return next((a for a in self.accounts.values() if predicate(a)), None)

    async def find_by_email(self, email: str) -> Optional[Account]:
        email = normalize_email(email)
        return self._match(lambda a: a.email == email)

    async def find_by_id(self, account_id) -> Optional[Account]:
        try:
            return self.accounts.get(uuid.UUID(str(account_id)))
        except ValueError:
            return None

    async def find_by_google_id(self, google_id: str) -> Optional[Account]:
        return self._match(lambda a: a.google_id == google_id)

    async def find_by_reset_token(self, token_digest, not_expired_at) -> Optional[Account]:
        return self._match(
            lambda a: a.password_reset_token == token_digest
            and a.password_reset_expiry is not None
            and a.password_reset_expiry > not_expired_at
        )

    async def find_by_verification_token(self, token_digest, not_expired_at) -> Optional[Account]:
        return self._match(
            lambda a: a.email_verification_token == token_digest
            and a.email_verification_expiry is not None
            and a.email_verification_expiry > not_expired_at
        )

    async def insert(self, account: Account) -> Account:
        account.email = normalize_email(account.email)
        if await self.find_by_email(account.email) is not None:
            raise ConflictError(message="User with this email already exists", code="USER_EXISTS")
        if account.google_id and await self.find_by_google_id(account.google_id):
            raise ConflictError(message="User with this email already exists", code="USER_EXISTS")
        now = datetime.now(timezone.utc)
        account.id = account.id or uuid.uuid4()
        account.created_at = now
        account.updated_at = now
        if account.email_verified is None:
            account.email_verified = False
        self.accounts[account.id] = account
        return account

    async def update(self, account: Account) -> Account:
        account.updated_at = datetime.now(timezone.utc)
        self.accounts[account.id] = account
        return account


class FakeEmailService:
    """Records (kind, email, token) instead of calling the provider."""

    def __init__(self):
        self.sent: List[Tuple[str, str, str]] = []
        self.fail = False

    async def _record(self, kind: str, email: str, token: str) -> None:
        if self.fail:
            raise EmailDeliveryError(context={"kind": kind})
        self.sent.append((kind, email, token))

    async def send_verification_email(self, email: str, token: str) -> None:
        await self._record("verification", email, token)

    async def send_password_reset_email(self, email: str, token: str) -> None:
        await self._record("password_reset", email, token)

    def last_token(self, kind: str) -> str:
        return [token for k, _, token in self.sent if k == kind][-1]


def make_account(**overrides) -> Account:
    """A persisted-looking Account with every column populated."""
    now = datetime.now(timezone.utc)
    fields = {
        "id": uuid.uuid4(),
        "name": "Ada",
        "email": "ada@example.com",
        "password_hash": None,
        "google_id": None,
        "email_verified": False,
        "email_verification_token": None,
        "email_verification_expiry": None,
        "password_reset_token": None,
        "password_reset_expiry": None,
        "created_at": now,
        "updated_at": now,
    }
    fields.update(overrides)
    return Account(**fields)


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = account
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def fake_store():
    return FakeCredentialStore()


@pytest.fixture
def fake_mailer():
    return FakeEmailService()


@pytest.fixture
def hasher():
    # Minimum bcrypt cost keeps the suite fast
    return PasswordHasher(min_length=8, rounds=4)


@pytest.fixture
def token_issuer():
    return TokenIssuer(
        secret=TEST_SECRET,
        access_ttl=timedelta(minutes=15),
        refresh_ttl=timedelta(days=7),
    )


def build_account_service(store, issuer, mailer, hasher) -> AccountService:
    return AccountService(
        store=store,
        hasher=hasher,
        issuer=issuer,
        verification_tokens=OneTimeTokenGenerator(timedelta(hours=24)),
        reset_tokens=OneTimeTokenGenerator(timedelta(hours=4)),
        mailer=mailer,
    )


@pytest.fixture
def account_service(fake_store, token_issuer, fake_mailer, hasher):
    return build_account_service(fake_store, token_issuer, fake_mailer, hasher)


@pytest.fixture
def app(fake_store, fake_mailer, hasher, mock_db_session):
    """
    A fresh application per test (own rate-limit window and app.state),
    with persistence and email replaced by the fakes.
    """
    from ytclipper.main import create_app

    application = create_app()

    def _account_service(issuer: TokenIssuer = Depends(get_token_issuer)) -> AccountService:
        return build_account_service(fake_store, issuer, fake_mailer, hasher)

    async def _db_session():
        yield mock_db_session

    application.dependency_overrides[get_credential_store] = lambda: fake_store
    application.dependency_overrides[get_email_service] = lambda: fake_mailer
    application.dependency_overrides[get_account_service] = _account_service
    application.dependency_overrides[get_db_session] = _db_session
    return application


@pytest_asyncio.fixture
async def test_client(app):
    """
    Async HTTP client talking to the app in-process.

    Cookies set by responses persist in client.cookies, like a browser.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
