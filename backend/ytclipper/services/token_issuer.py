"""
ytclipper Backend — Session Token Issuer
==========================================

What:  Mints, verifies and rotates signed session tokens (access + refresh),
       and moves them to and from the browser as cookies.
Why:   Sessions are stateless: a token is valid iff its signature verifies and
       its `exp` is in the future. No server-side session table exists.
How:   PyJWT, HS256. Claims: sub (account id), iat, exp, jti.
Who:   Built once from settings in main.create_app() and stored on
       app.state; AccountService and the auth dependencies use that instance.

Token kinds:
    Access and refresh tokens are signed with different keys derived from the
    one configured secret (HMAC-SHA256(secret, kind)). An access token therefore
    never verifies as a refresh token and vice versa, without adding a type claim.

    kind      lifetime            used for
    access    minutes (15)        authorizing API calls
    refresh   days (7)            minting a new pair, nothing else

Rotation:
    refresh_access_token() returns a brand-new access AND refresh token. The
    old refresh token stays cryptographically valid until its own exp; there
    is no deny-list to consult.

Verified vs unverified parsing:
    verify_access_token / verify_refresh_token check signature and expiry and
    are the only calls allowed to feed an authorization decision.
    peek_expiry() reads `exp` WITHOUT checking the signature and exists only to
    tell the client when its cookies run out.
"""

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import jwt
from fastapi import Response

from ytclipper.config import Settings
from ytclipper.exceptions import (
    ExpiredTokenError,
    InvalidTokenError,
    TokenGenerationError,
)
from ytclipper.schemas.auth import TokenPair

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"

_REQUIRED_CLAIMS = ["sub", "exp", "iat"]


@dataclass(frozen=True)
class CookieOptions:
    """Cookie attributes shared by both session cookies."""

    access_name: str = "access_token"
    refresh_name: str = "refresh_token"
    secure: bool = False
    samesite: str = "lax"
    domain: Optional[str] = None


class TokenIssuer:
    """
    Issues and validates session tokens for one signing secret.

    The instance holds only immutable configuration, so it is shared across
    concurrent requests without locking.
    """

    def __init__(
        self,
        secret: str,
        access_ttl: timedelta,
        refresh_ttl: timedelta,
        algorithm: str = "HS256",
        cookies: CookieOptions = CookieOptions(),
    ):
        if not secret:
            raise ValueError("TokenIssuer requires a non-empty signing secret")
        self._keys = {
            ACCESS: self._derive_key(secret, ACCESS),
            REFRESH: self._derive_key(secret, REFRESH),
        }
        self._ttls = {ACCESS: access_ttl, REFRESH: refresh_ttl}
        self.algorithm = algorithm
        self.cookies = cookies

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenIssuer":
        return cls(
            secret=settings.jwt_secret,
            access_ttl=timedelta(minutes=settings.access_token_ttl_minutes),
            refresh_ttl=timedelta(days=settings.refresh_token_ttl_days),
            algorithm=settings.jwt_algorithm,
            cookies=CookieOptions(
                access_name=settings.access_cookie_name,
                refresh_name=settings.refresh_cookie_name,
                secure=settings.cookie_secure,
                samesite=settings.cookie_samesite,
                domain=settings.cookie_domain or None,
            ),
        )

    @staticmethod
    def _derive_key(secret: str, kind: str) -> str:
        return hmac.new(secret.encode(), kind.encode(), hashlib.sha256).hexdigest()

    # ── Minting ───────────────────────────────────────────────────────────

    def _generate(self, subject_id: Any, kind: str) -> Tuple[str, int]:
        issued_at = int(datetime.now(timezone.utc).timestamp())
        expiry = issued_at + int(self._ttls[kind].total_seconds())
        payload = {
            "sub": str(subject_id),
            "iat": issued_at,
            "exp": expiry,
            # Two tokens minted in the same second must still differ
            "jti": secrets.token_hex(16),
        }
        try:
            token = jwt.encode(payload, self._keys[kind], algorithm=self.algorithm)
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            logger.error("Failed to sign %s token: %s", kind, type(e).__name__)
            raise TokenGenerationError(
                message=f"Failed to generate {kind} token",
                context={"kind": kind, "error_type": type(e).__name__},
            ) from e
        return token, expiry

    def generate_access_token(self, subject_id: Any) -> Tuple[str, int]:
        """Returns (token, expiry as UNIX seconds)."""
        return self._generate(subject_id, ACCESS)

    def generate_refresh_token(self, subject_id: Any) -> Tuple[str, int]:
        """Returns (token, expiry as UNIX seconds)."""
        return self._generate(subject_id, REFRESH)

    def issue_pair(self, subject_id: Any) -> TokenPair:
        access_token, access_expiry = self.generate_access_token(subject_id)
        refresh_token, refresh_expiry = self.generate_refresh_token(subject_id)
        logger.debug("Issued token pair for subject %s", subject_id)
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            access_token_expiry=access_expiry,
            refresh_token_expiry=refresh_expiry,
        )

    # ── Verification ──────────────────────────────────────────────────────

    def _verify(self, token: str, kind: str, code: str, message: str) -> Dict[str, Any]:
        try:
            return jwt.decode(
                token,
                self._keys[kind],
                algorithms=[self.algorithm],
                options={"require": _REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as e:
            raise ExpiredTokenError(
                message=message, code=code, status_code=401, context={"kind": kind}
            ) from e
        except jwt.InvalidTokenError as e:
            logger.info("Rejected %s token: %s", kind, type(e).__name__)
            raise InvalidTokenError(
                message=message, code=code, status_code=401, context={"kind": kind}
            ) from e

    def verify_access_token(self, token: str) -> str:
        """
        Verify an access token and return its subject (account id).

        Raises:
            InvalidTokenError / ExpiredTokenError (401 UNAUTHORIZED)
        """
        payload = self._verify(token, ACCESS, "UNAUTHORIZED", "Authentication required")
        return payload["sub"]

    def verify_refresh_token(self, token: str) -> str:
        """
        Verify a refresh token and return its subject (account id).

        Raises:
            InvalidTokenError / ExpiredTokenError (401 REFRESH_ERROR)
        """
        payload = self._verify(token, REFRESH, "REFRESH_ERROR", "Failed to refresh token")
        return payload["sub"]

    def refresh_access_token(self, refresh_token: str) -> TokenPair:
        """
        Rotate a session: verify the refresh token, mint a brand-new pair.

        Pure function of the token, the secret and the clock. No store is
        consulted, so a refresh token cannot be revoked before it expires.
        """
        subject_id = self.verify_refresh_token(refresh_token)
        return self.issue_pair(subject_id)

    @staticmethod
    def peek_expiry(token: str) -> Optional[int]:
        """
        Read the `exp` claim WITHOUT verifying the signature.

        Display only: never use the result to grant access.
        Returns None when the token cannot be decoded or carries no expiry.
        """
        try:
            claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.PyJWTError:
            return None
        exp = claims.get("exp")
        if isinstance(exp, (int, float)):
            return int(exp)
        return None

    # ── Cookie Transport ──────────────────────────────────────────────────

    def _cookie_kwargs(self, name: str, value: str, expiry: int) -> Dict[str, Any]:
        now = int(datetime.now(timezone.utc).timestamp())
        return {
            "key": name,
            "value": value,
            "expires": datetime.fromtimestamp(expiry, tz=timezone.utc),
            "max_age": max(expiry - now, 0),
            "path": "/",
            "domain": self.cookies.domain,
            "secure": self.cookies.secure,
            "httponly": True,
            "samesite": self.cookies.samesite,
        }

    def set_token_cookies(self, response: Response, pair: TokenPair) -> None:
        """
        Attach both tokens as cookies, each expiring with its token.

        Both cookie definitions are built before either header is written,
        so the response gets both cookies or neither.
        """
        prepared: List[Dict[str, Any]] = [
            self._cookie_kwargs(
                self.cookies.access_name, pair.access_token, pair.access_token_expiry
            ),
            self._cookie_kwargs(
                self.cookies.refresh_name, pair.refresh_token, pair.refresh_token_expiry
            ),
        ]
        for kwargs in prepared:
            response.set_cookie(**kwargs)

    def clear_token_cookies(self, response: Response) -> None:
        for name in (self.cookies.access_name, self.cookies.refresh_name):
            response.delete_cookie(
                key=name,
                path="/",
                domain=self.cookies.domain,
                secure=self.cookies.secure,
                httponly=True,
                samesite=self.cookies.samesite,
            )
