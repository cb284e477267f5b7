"""
ytclipper Backend — Route Dependencies
========================================

What:  FastAPI dependencies that assemble services per request and resolve
       the signed-in account (RequireAuth).
Why:   Route handlers declare what they need; tests swap any piece with
       app.dependency_overrides.

Lifetimes:
    TokenIssuer, GoogleOAuthBridge   one per app (app.state)
    EmailService                     module singleton
    CredentialStore, AccountService  one per request (bound to the DB session)
"""

from datetime import timedelta
from typing import Annotated, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ytclipper.config import settings
from ytclipper.database import get_db_session
from ytclipper.exceptions import AuthenticationError
from ytclipper.models.account import Account
from ytclipper.services.account_service import AccountService
from ytclipper.services.credential_store import CredentialStore
from ytclipper.services.email_service import EmailService, email_service
from ytclipper.services.google_oauth import GoogleOAuthBridge
from ytclipper.services.one_time_tokens import OneTimeTokenGenerator
from ytclipper.services.password_hasher import PasswordHasher
from ytclipper.services.token_issuer import TokenIssuer


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


def get_oauth_bridge(request: Request) -> GoogleOAuthBridge:
    return request.app.state.oauth_bridge


def get_email_service() -> EmailService:
    return email_service


def get_credential_store(
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> CredentialStore:
    return CredentialStore(db)


def get_account_service(
    store: Annotated[CredentialStore, Depends(get_credential_store)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
    mailer: Annotated[EmailService, Depends(get_email_service)],
) -> AccountService:
    return AccountService(
        store=store,
        hasher=PasswordHasher(min_length=settings.password_min_length),
        issuer=issuer,
        verification_tokens=OneTimeTokenGenerator(
            timedelta(hours=settings.email_verification_ttl_hours),
            num_bytes=settings.one_time_token_bytes,
        ),
        reset_tokens=OneTimeTokenGenerator(
            timedelta(hours=settings.password_reset_ttl_hours),
            num_bytes=settings.one_time_token_bytes,
        ),
        mailer=mailer,
    )


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


async def get_current_account(
    request: Request,
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
    store: Annotated[CredentialStore, Depends(get_credential_store)],
) -> Account:
    """
    Resolve the account behind the access token.

    The cookie wins over an Authorization: Bearer header when both are sent.

    Raises:
        AuthenticationError (401 UNAUTHORIZED): no token, or it failed verification
        AuthenticationError (401 NO_USER): token is valid but the account is gone
    """
    token = request.cookies.get(issuer.cookies.access_name) or _bearer_token(request)
    if not token:
        raise AuthenticationError(message="Authentication required")

    subject_id = issuer.verify_access_token(token)
    account = await store.find_by_id(subject_id)
    if account is None:
        raise AuthenticationError(message="No user found", code="NO_USER")

    request.state.account_id = str(account.id)
    return account


RequireAuth = Annotated[Account, Depends(get_current_account)]
