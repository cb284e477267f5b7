"""
ytclipper Backend — Account Service Unit Tests
================================================

What:  Each account flow against the in-memory store and recording mailer.
Why:   Every flow must end in exactly one result or exactly one error.

What we test:
    ✅ register / login / refresh outcomes and codes
    ✅ forgot-password response identical for unknown emails
    ✅ reset and verification tokens: stored as digests, single-use, expiring
    ✅ add-password never replaces an existing password
    ✅ Google sign-in: existing link, link by email, new account
    ✅ Google sign-in never keeps a password nobody verified
"""

from datetime import datetime, timedelta, timezone

import pytest

from ytclipper.exceptions import (
    AuthenticationError,
    ConflictError,
    EmailDeliveryError,
    ExpiredOrInvalidTokenError,
    InvalidTokenError,
    NotFoundError,
    ValidationError,
)
from ytclipper.schemas.auth import LoginRequest, RegisterRequest
from ytclipper.services.account_service import FORGOT_PASSWORD_MESSAGE
from ytclipper.services.google_oauth import ProviderIdentity
from ytclipper.services.one_time_tokens import digest

from conftest import make_account

EMAIL = "a@x.com"
PASSWORD = "longenough1"


async def register(service, email=EMAIL, password=PASSWORD):
    return await service.register(RegisterRequest(name="Ada", email=email, password=password))


class TestRegister:

    @pytest.mark.asyncio
    async def test_creates_unverified_account(self, account_service, fake_store, fake_mailer):
        result = await register(account_service)

        assert result.user.email == EMAIL
        assert result.user.email_verified is False
        account = await fake_store.find_by_email(EMAIL)
        assert account.password_hash and account.password_hash != PASSWORD

        kind, to, token = fake_mailer.sent[0]
        assert (kind, to) == ("verification", EMAIL)
        # Only the digest is stored
        assert account.email_verification_token == digest(token)
        assert account.email_verification_expiry > datetime.now(timezone.utc) + timedelta(hours=23)

    @pytest.mark.asyncio
    async def test_duplicate_email(self, account_service):
        await register(account_service)
        with pytest.raises(ConflictError) as exc_info:
            await register(account_service, email="A@X.com")
        assert exc_info.value.code == "USER_EXISTS"

    @pytest.mark.asyncio
    async def test_weak_password_creates_nothing(self, account_service, fake_store):
        with pytest.raises(ValidationError) as exc_info:
            await register(account_service, password="short")

        assert exc_info.value.code == "INVALID_PASSWORD"
        assert fake_store.accounts == {}

    @pytest.mark.asyncio
    async def test_email_failure_keeps_account(self, account_service, fake_store, fake_mailer):
        fake_mailer.fail = True

        result = await register(account_service)

        assert result.user.email == EMAIL
        assert await fake_store.find_by_email(EMAIL) is not None


class TestLogin:

    @pytest.mark.asyncio
    async def test_unverified_account_can_log_in(self, account_service, token_issuer):
        registered = await register(account_service)

        result = await account_service.login(LoginRequest(email=EMAIL, password=PASSWORD))

        assert result.user.id == registered.user.id
        assert result.auth_methods == ["password"]
        assert token_issuer.verify_access_token(result.access_token) == str(registered.user.id)
        assert token_issuer.verify_refresh_token(result.refresh_token) == str(registered.user.id)

    @pytest.mark.asyncio
    async def test_unknown_email(self, account_service):
        with pytest.raises(NotFoundError) as exc_info:
            await account_service.login(LoginRequest(email="nobody@x.com", password=PASSWORD))
        assert exc_info.value.code == "USER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_wrong_password(self, account_service):
        await register(account_service)
        with pytest.raises(AuthenticationError) as exc_info:
            await account_service.login(LoginRequest(email=EMAIL, password="wrongpass1"))
        assert exc_info.value.code == "INVALID_CREDENTIALS"
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_oauth_only_account(self, account_service, fake_store):
        await fake_store.insert(make_account(email=EMAIL, google_id="g-1"))
        with pytest.raises(ValidationError) as exc_info:
            await account_service.login(LoginRequest(email=EMAIL, password=PASSWORD))
        assert exc_info.value.code == "OAUTH_ONLY"


class TestRefresh:

    def test_missing_cookie(self, account_service):
        with pytest.raises(AuthenticationError) as exc_info:
            account_service.refresh(None)
        assert exc_info.value.code == "NO_REFRESH_TOKEN"

    def test_rotates(self, account_service, token_issuer):
        pair = token_issuer.issue_pair("abc")
        new = account_service.refresh(pair.refresh_token)
        assert new.refresh_token != pair.refresh_token

    def test_access_token_refused(self, account_service, token_issuer):
        pair = token_issuer.issue_pair("abc")
        with pytest.raises(InvalidTokenError) as exc_info:
            account_service.refresh(pair.access_token)
        assert exc_info.value.code == "REFRESH_ERROR"


class TestPasswordReset:

    @pytest.mark.asyncio
    async def test_unknown_email_same_response(self, account_service, fake_mailer):
        await register(account_service)
        fake_mailer.sent.clear()

        known = await account_service.forgot_password(EMAIL)
        unknown = await account_service.forgot_password("nobody@x.com")

        assert known == unknown
        assert known.message == FORGOT_PASSWORD_MESSAGE
        assert [kind for kind, _, _ in fake_mailer.sent] == ["password_reset"]

    @pytest.mark.asyncio
    async def test_email_failure_surfaces(self, account_service, fake_mailer):
        await register(account_service)
        fake_mailer.fail = True
        with pytest.raises(EmailDeliveryError):
            await account_service.forgot_password(EMAIL)

    @pytest.mark.asyncio
    async def test_reset_is_single_use(self, account_service, fake_store, fake_mailer):
        await register(account_service)
        await account_service.forgot_password(EMAIL)
        token = fake_mailer.last_token("password_reset")

        await account_service.reset_password(token, "brandnew22")

        account = await fake_store.find_by_email(EMAIL)
        assert account.password_reset_token is None
        assert account.password_reset_expiry is None
        assert (await account_service.login(LoginRequest(email=EMAIL, password="brandnew22"))).user
        with pytest.raises(AuthenticationError):
            await account_service.login(LoginRequest(email=EMAIL, password=PASSWORD))

        with pytest.raises(ExpiredOrInvalidTokenError) as exc_info:
            await account_service.reset_password(token, "another333")
        assert exc_info.value.code == "INVALID_TOKEN"
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_expired_token(self, account_service, fake_store, fake_mailer):
        await register(account_service)
        await account_service.forgot_password(EMAIL)
        account = await fake_store.find_by_email(EMAIL)
        account.password_reset_expiry = datetime.now(timezone.utc) - timedelta(seconds=1)

        with pytest.raises(ExpiredOrInvalidTokenError):
            await account_service.reset_password(fake_mailer.last_token("password_reset"), "brandnew22")

    @pytest.mark.asyncio
    async def test_second_request_supersedes_first(self, account_service, fake_mailer):
        await register(account_service)
        await account_service.forgot_password(EMAIL)
        first = fake_mailer.last_token("password_reset")
        await account_service.forgot_password(EMAIL)

        with pytest.raises(ExpiredOrInvalidTokenError):
            await account_service.reset_password(first, "brandnew22")
        await account_service.reset_password(fake_mailer.last_token("password_reset"), "brandnew22")

    @pytest.mark.asyncio
    async def test_weak_new_password_keeps_token(self, account_service, fake_store, fake_mailer):
        await register(account_service)
        await account_service.forgot_password(EMAIL)
        token = fake_mailer.last_token("password_reset")

        with pytest.raises(ValidationError):
            await account_service.reset_password(token, "weak")
        assert (await fake_store.find_by_email(EMAIL)).password_reset_token == digest(token)


class TestVerifyEmail:

    @pytest.mark.asyncio
    async def test_verifies_once(self, account_service, fake_store, fake_mailer):
        await register(account_service)
        token = fake_mailer.last_token("verification")

        await account_service.verify_email(token)

        account = await fake_store.find_by_email(EMAIL)
        assert account.email_verified is True
        assert account.email_verification_token is None
        with pytest.raises(ExpiredOrInvalidTokenError):
            await account_service.verify_email(token)

    @pytest.mark.asyncio
    async def test_expired(self, account_service, fake_store, fake_mailer):
        await register(account_service)
        account = await fake_store.find_by_email(EMAIL)
        account.email_verification_expiry = datetime.now(timezone.utc) - timedelta(minutes=1)

        with pytest.raises(ExpiredOrInvalidTokenError):
            await account_service.verify_email(fake_mailer.last_token("verification"))
        assert account.email_verified is False


class TestAddPassword:

    @pytest.mark.asyncio
    async def test_google_account_gains_password(self, account_service, fake_store):
        account = await fake_store.insert(make_account(email=EMAIL, google_id="g-1", email_verified=True))

        await account_service.add_password(account, PASSWORD)

        result = await account_service.login(LoginRequest(email=EMAIL, password=PASSWORD))
        assert result.auth_methods == ["google", "password"]

    @pytest.mark.asyncio
    async def test_existing_password_kept(self, account_service, fake_store):
        await register(account_service)
        account = await fake_store.find_by_email(EMAIL)
        original = account.password_hash

        with pytest.raises(ValidationError) as exc_info:
            await account_service.add_password(account, "otherpass9")

        assert exc_info.value.code == "PASSWORD_EXISTS"
        assert account.password_hash == original

    @pytest.mark.asyncio
    async def test_vanished_account(self, account_service):
        with pytest.raises(AuthenticationError) as exc_info:
            await account_service.add_password(make_account(), PASSWORD)
        assert exc_info.value.code == "NO_USER"


class TestCurrentUser:

    def test_reports_cookie_expiries(self, account_service, token_issuer):
        account = make_account(password_hash="x")
        pair = token_issuer.issue_pair(account.id)

        result = account_service.current_user(account, pair.access_token, pair.refresh_token)

        assert result.user.id == account.id
        assert result.auth_methods == ["password"]
        assert result.access_token_expiry == pair.access_token_expiry
        assert result.refresh_token_expiry == pair.refresh_token_expiry

    def test_missing_cookies(self, account_service):
        result = account_service.current_user(make_account(), None, None)
        assert result.access_token == ""
        assert result.access_token_expiry == 0
        assert result.refresh_token_expiry == 0

    def test_unreadable_cookie_expiry_is_zero(self, account_service, token_issuer):
        pair = token_issuer.issue_pair("abc")
        result = account_service.current_user(make_account(), "garbage", pair.refresh_token)
        assert result.access_token == "garbage"
        assert result.access_token_expiry == 0
        assert result.refresh_token_expiry == pair.refresh_token_expiry


class TestGoogleSignIn:

    @pytest.mark.asyncio
    async def test_new_account_is_verified(self, account_service, fake_store, token_issuer):
        identity = ProviderIdentity(subject_id="g-9", email="Grace@Example.com", name="Grace")

        account, pair = await account_service.login_with_google(identity)

        assert account.email == "grace@example.com"
        assert account.email_verified is True
        assert account.password_hash is None
        assert account.auth_methods == ["google"]
        assert token_issuer.verify_access_token(pair.access_token) == str(account.id)

    @pytest.mark.asyncio
    async def test_links_verified_account_and_keeps_password(self, account_service, fake_mailer):
        await register(account_service)
        await account_service.verify_email(fake_mailer.last_token("verification"))

        account, _ = await account_service.login_with_google(ProviderIdentity("g-9", EMAIL))

        assert account.google_id == "g-9"
        assert account.auth_methods == ["google", "password"]
        assert (await account_service.login(LoginRequest(email=EMAIL, password=PASSWORD))).user

    @pytest.mark.asyncio
    async def test_linking_unverified_account_drops_password(self, account_service, fake_store):
        # Someone else registered this address with a password and never verified it
        await register(account_service)
        await account_service.forgot_password(EMAIL)

        account, _ = await account_service.login_with_google(ProviderIdentity("g-9", EMAIL))

        assert len(fake_store.accounts) == 1
        assert account.google_id == "g-9"
        assert account.email_verified is True
        assert account.email_verification_token is None
        assert account.password_hash is None
        assert account.password_reset_token is None
        assert account.auth_methods == ["google"]
        with pytest.raises(ValidationError) as exc_info:
            await account_service.login(LoginRequest(email=EMAIL, password=PASSWORD))
        assert exc_info.value.code == "OAUTH_ONLY"

    @pytest.mark.asyncio
    async def test_email_linked_to_other_subject(self, account_service, fake_store):
        await fake_store.insert(make_account(email=EMAIL, google_id="g-1", email_verified=True))

        with pytest.raises(ConflictError) as exc_info:
            await account_service.login_with_google(ProviderIdentity("g-2", EMAIL))

        assert exc_info.value.code == "USER_EXISTS"
        assert (await fake_store.find_by_email(EMAIL)).google_id == "g-1"

    @pytest.mark.asyncio
    async def test_returning_user_found_by_subject(self, account_service, fake_store):
        first, _ = await account_service.login_with_google(ProviderIdentity("g-9", "grace@example.com"))
        # Email changed at Google; the subject id still identifies the account
        again, _ = await account_service.login_with_google(ProviderIdentity("g-9", "new@example.com"))

        assert again.id == first.id
        assert len(fake_store.accounts) == 1
