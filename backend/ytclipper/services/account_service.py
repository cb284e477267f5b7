"""
ytclipper Backend — Account Service (Account Flow Orchestrator)
=================================================================

What:  The account flows: register, login, refresh, forgot/reset password,
       verify email, add password, current user, Google sign-in.
Why:   Encapsulates every account rule in one place, independent of HTTP.
How:   Composes CredentialStore, PasswordHasher, TokenIssuer, two
       OneTimeTokenGenerators (verification, reset) and EmailService.
Who:   Built per request by routes/deps.get_account_service.

Flow outcomes:
    Every flow ends in exactly one result record or exactly one exception.

    flow             failure                         error (HTTP, code)
    register         email taken                     ConflictError (409 USER_EXISTS)
                     weak password                   ValidationError (400 INVALID_PASSWORD)
                     email not sent                  (ignored; account stands)
    login            unknown email                   NotFoundError (404 USER_NOT_FOUND)
                     no password on account          ValidationError (400 OAUTH_ONLY)
                     wrong password                  AuthenticationError (401 INVALID_CREDENTIALS)
    refresh          no cookie                       AuthenticationError (401 NO_REFRESH_TOKEN)
                     bad / expired token             Invalid/ExpiredTokenError (401 REFRESH_ERROR)
    forgot-password  unknown email                   (same response as success)
                     email not sent                  EmailDeliveryError (500)
    reset-password   wrong or expired token          ExpiredOrInvalidTokenError (400 INVALID_TOKEN)
    verify-email     wrong or expired token          ExpiredOrInvalidTokenError (400 INVALID_TOKEN)
    add-password     account already has one         ValidationError (400 PASSWORD_EXISTS)
    google sign-in   email has another Google id     ConflictError (409 USER_EXISTS)

Concurrency:
    Two concurrent forgot-password requests for one account both overwrite the
    reset columns; the last write wins and only that token remains usable.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

from fastapi.concurrency import run_in_threadpool

from ytclipper.exceptions import (
    AuthenticationError,
    ConflictError,
    EmailDeliveryError,
    ExpiredOrInvalidTokenError,
    NotFoundError,
    ValidationError,
)
from ytclipper.models.account import Account
from ytclipper.schemas.auth import (
    CurrentUserResult,
    LoginRequest,
    LoginResult,
    MessageResponse,
    RegisterRequest,
    RegisterResult,
    TokenPair,
    UserResponse,
)
from ytclipper.services.credential_store import CredentialStore
from ytclipper.services.email_service import EmailService
from ytclipper.services.google_oauth import ProviderIdentity
from ytclipper.services.one_time_tokens import OneTimeTokenGenerator, digest
from ytclipper.services.password_hasher import PasswordHasher
from ytclipper.services.token_issuer import TokenIssuer

logger = logging.getLogger(__name__)

# Identical for registered and unknown emails
FORGOT_PASSWORD_MESSAGE = "If the email exists, a password reset link has been sent."


class AccountService:
    """Stateless per request; all state lives in the store and the tokens."""

    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        issuer: TokenIssuer,
        verification_tokens: OneTimeTokenGenerator,
        reset_tokens: OneTimeTokenGenerator,
        mailer: EmailService,
    ):
        self.store = store
        self.hasher = hasher
        self.issuer = issuer
        self.verification_tokens = verification_tokens
        self.reset_tokens = reset_tokens
        self.mailer = mailer

    async def _hash_new_password(self, password: str) -> str:
        """Policy check, then bcrypt off the event loop."""
        self.hasher.validate_password(password)
        return await run_in_threadpool(self.hasher.hash, password)

    # ── Register ──────────────────────────────────────────────────────────

    async def register(self, request: RegisterRequest) -> RegisterResult:
        if await self.store.find_by_email(request.email) is not None:
            raise ConflictError(
                message="User with this email already exists", code="USER_EXISTS"
            )

        password_hash = await self._hash_new_password(request.password)
        token = self.verification_tokens.generate_token()

        account = Account(
            name=request.name.strip(),
            email=request.email,
            password_hash=password_hash,
            email_verified=False,
            email_verification_token=digest(token),
            email_verification_expiry=self.verification_tokens.get_token_expiry(),
        )
        account = await self.store.insert(account)
        logger.info("Registered account %s", account.id)

        # Best effort: the user can ask for a new link if this one is lost
        try:
            await self.mailer.send_verification_email(account.email, token)
        except EmailDeliveryError as e:
            logger.warning(
                "Verification email for account %s not sent: %s", account.id, e.context
            )

        return RegisterResult(user=UserResponse.model_validate(account))

    # ── Login / Refresh ───────────────────────────────────────────────────

    async def login(self, request: LoginRequest) -> LoginResult:
        account = await self.store.find_by_email(request.email)
        if account is None:
            raise NotFoundError(
                resource="user", code="USER_NOT_FOUND", message="user not found"
            )

        if account.password_hash is None:
            raise ValidationError(
                message=(
                    "This account uses OAuth login. Please use Google login "
                    "or add a password first."
                ),
                code="OAUTH_ONLY",
            )

        matches = await run_in_threadpool(
            self.hasher.verify, request.password, account.password_hash
        )
        if not matches:
            logger.info("Failed login for account %s", account.id)
            raise AuthenticationError(message="Invalid credentials", code="INVALID_CREDENTIALS")

        # Login does not require a verified email
        pair = self.issuer.issue_pair(account.id)
        logger.info("Login for account %s", account.id)
        return LoginResult(
            user=UserResponse.model_validate(account),
            auth_methods=account.auth_methods,
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            access_token_expiry=pair.access_token_expiry,
            refresh_token_expiry=pair.refresh_token_expiry,
        )

    def refresh(self, refresh_token: Optional[str]) -> TokenPair:
        """Rotate the session; on failure the client must sign in again."""
        if not refresh_token:
            raise AuthenticationError(
                message="No refresh token found", code="NO_REFRESH_TOKEN"
            )
        return self.issuer.refresh_access_token(refresh_token)

    # ── Password Reset ────────────────────────────────────────────────────

    async def forgot_password(self, email: str) -> MessageResponse:
        account = await self.store.find_by_email(email)
        if account is None:
            return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)

        token = self.reset_tokens.generate_token()
        account.password_reset_token = digest(token)
        account.password_reset_expiry = self.reset_tokens.get_token_expiry()
        await self.store.update(account)

        # Not best effort: without the email there is no way to reset
        await self.mailer.send_password_reset_email(account.email, token)
        logger.info("Password reset requested for account %s", account.id)
        return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)

    async def reset_password(self, token: str, new_password: str) -> MessageResponse:
        account = await self.store.find_by_reset_token(
            digest(token), datetime.now(timezone.utc)
        )
        if account is None:
            raise ExpiredOrInvalidTokenError(message="Invalid or expired reset token")

        account.password_hash = await self._hash_new_password(new_password)
        account.password_reset_token = None
        account.password_reset_expiry = None
        await self.store.update(account)

        logger.info("Password reset for account %s", account.id)
        return MessageResponse(
            message="Password reset successful. You can now login with your new password."
        )

    # ── Email Verification ────────────────────────────────────────────────

    async def verify_email(self, token: str) -> MessageResponse:
        account = await self.store.find_by_verification_token(
            digest(token), datetime.now(timezone.utc)
        )
        if account is None:
            raise ExpiredOrInvalidTokenError(
                message="Invalid or expired verification token"
            )

        account.email_verified = True
        account.email_verification_token = None
        account.email_verification_expiry = None
        await self.store.update(account)

        logger.info("Email verified for account %s", account.id)
        return MessageResponse(message="Email verified successfully. You can now login.")

    # ── Add Password ──────────────────────────────────────────────────────

    async def add_password(self, account: Account, password: str) -> MessageResponse:
        """Add password login to a Google-only account. Never replaces one."""
        current = await self.store.find_by_id(account.id)
        if current is None:
            raise AuthenticationError(message="No user found", code="NO_USER")

        if current.password_hash is not None:
            raise ValidationError(
                message="User already has a password", code="PASSWORD_EXISTS"
            )

        current.password_hash = await self._hash_new_password(password)
        await self.store.update(current)

        logger.info("Password added to account %s", current.id)
        return MessageResponse(
            message="Password added successfully. You can now login with email and password."
        )

    # ── Current User ──────────────────────────────────────────────────────

    def _expiry(self, token: Optional[str]) -> int:
        return (self.issuer.peek_expiry(token) if token else None) or 0

    def current_user(
        self,
        account: Account,
        access_token: Optional[str],
        refresh_token: Optional[str],
    ) -> CurrentUserResult:
        """Read-only view of the signed-in account and its cookie tokens."""
        return CurrentUserResult(
            user=UserResponse.model_validate(account),
            auth_methods=account.auth_methods,
            access_token=access_token or "",
            refresh_token=refresh_token or "",
            access_token_expiry=self._expiry(access_token),
            refresh_token_expiry=self._expiry(refresh_token),
        )

    # ── Google Sign-In ────────────────────────────────────────────────────

    async def login_with_google(self, identity: ProviderIdentity) -> Tuple[Account, TokenPair]:
        """
        Resolve a Google identity to an account and open a session.

        Resolution order:
            1. account already linked to this Google subject
            2. account with the same email → link it (email now verified)
            3. new Google-only account, email verified

        When linking, a password set on an account whose email was never
        verified is dropped, along with any pending reset token.
        """
        account = await self.store.find_by_google_id(identity.subject_id)

        if account is None:
            account = await self.store.find_by_email(identity.email)
            if account is not None:
                await self._link_google(account, identity)
            else:
                account = Account(
                    name=identity.name or identity.email.split("@", 1)[0],
                    email=identity.email,
                    google_id=identity.subject_id,
                    email_verified=True,
                )
                account = await self.store.insert(account)
                logger.info("Registered account %s via Google", account.id)

        return account, self.issuer.issue_pair(account.id)

    async def _link_google(self, account: Account, identity: ProviderIdentity) -> None:
        if account.google_id and account.google_id != identity.subject_id:
            logger.warning(
                "Account %s is linked to another Google identity; refusing to relink",
                account.id,
            )
            raise ConflictError(
                message="This email is already linked to a different Google account",
                code="USER_EXISTS",
            )

        if not account.email_verified and account.password_hash is not None:
            logger.warning(
                "Dropping unverified password on account %s while linking Google",
                account.id,
            )
            account.password_hash = None
            account.password_reset_token = None
            account.password_reset_expiry = None

        account.google_id = identity.subject_id
        account.email_verified = True
        account.email_verification_token = None
        account.email_verification_expiry = None
        await self.store.update(account)
        logger.info("Linked Google identity to account %s", account.id)
