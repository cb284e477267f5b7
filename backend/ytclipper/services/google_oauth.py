"""
ytclipper Backend — Google Identity-Provider Bridge
=====================================================

What:  Turns a Google authorization code into a verified identity
       (provider subject id + email + display name).
How:   Standard OAuth 2.0 authorization-code flow over httpx:
       1. authorization_url(state)  → consent screen URL
       2. exchange_code(code)       → token endpoint, then userinfo endpoint
Who:   Auth routes (login / callback). Only identities whose email Google
       reports as verified are returned to AccountService.

CSRF protection:
    The callback must carry the same `state` the login step generated. The
    state travels in a short-lived HS256-signed cookie (create_state_cookie)
    so no server-side storage is needed.
"""

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import httpx
import jwt

from ytclipper.config import Settings
from ytclipper.exceptions import IdentityProviderError, ValidationError

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"

_OAUTH_HTTP_TIMEOUT = 10.0


@dataclass(frozen=True)
class ProviderIdentity:
    subject_id: str
    email: str
    name: str = ""


class GoogleOAuthBridge:
    """Google OAuth client bound to one set of credentials."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_url: str,
        state_secret: str,
        state_ttl_seconds: int = 600,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_url = redirect_url
        self._state_secret = state_secret
        self.state_ttl_seconds = state_ttl_seconds
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "GoogleOAuthBridge":
        return cls(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            redirect_url=settings.google_redirect_url,
            state_secret=settings.jwt_secret + "-oauth-state",
            state_ttl_seconds=settings.oauth_state_ttl_seconds,
        )

    @property
    def enabled(self) -> bool:
        return bool(self.client_id and self.client_secret)

    # ── State ─────────────────────────────────────────────────────────────

    @staticmethod
    def new_state() -> str:
        return secrets.token_urlsafe(32)

    def create_state_cookie(self, state: str) -> str:
        payload = {"state": state, "exp": int(time.time()) + self.state_ttl_seconds}
        return jwt.encode(payload, self._state_secret, algorithm="HS256")

    def verify_state(self, cookie_value: Optional[str], state: Optional[str]) -> None:
        """
        Raises:
            ValidationError (400 INVALID_STATE) when the cookie is missing,
            forged, expired, or carries a different state.
        """
        if not cookie_value or not state:
            raise ValidationError(message="Missing OAuth state", code="INVALID_STATE")
        try:
            payload = jwt.decode(cookie_value, self._state_secret, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            raise ValidationError(message="Invalid OAuth state", code="INVALID_STATE") from e
        if not secrets.compare_digest(str(payload.get("state", "")), state):
            raise ValidationError(message="Invalid OAuth state", code="INVALID_STATE")

    # ── Flow ──────────────────────────────────────────────────────────────

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_url,
            "response_type": "code",
            "scope": "openid email profile",
            "state": state,
            "access_type": "online",
            "prompt": "select_account",
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> ProviderIdentity:
        """
        Exchange an authorization code for the user's Google identity.

        Raises:
            IdentityProviderError (502): token exchange or userinfo failed,
                a response body was not a JSON object, Google returned no
                subject/email, or Google has not verified the email.
        """
        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=_OAUTH_HTTP_TIMEOUT
            ) as client:
                token_resp = await client.post(
                    GOOGLE_TOKEN_URL,
                    data={
                        "grant_type": "authorization_code",
                        "code": code,
                        "redirect_uri": self.redirect_url,
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                    },
                )
                token_resp.raise_for_status()
                access_token = _json_object(token_resp, "token").get("access_token")
                if not access_token:
                    raise IdentityProviderError(context={"step": "token"})

                info_resp = await client.get(
                    GOOGLE_USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                info_resp.raise_for_status()
                info = _json_object(info_resp, "userinfo")
        except httpx.HTTPError as e:
            logger.error("Google OAuth exchange failed: %s", type(e).__name__)
            raise IdentityProviderError(context={"error_type": type(e).__name__}) from e

        subject_id = info.get("sub")
        email = info.get("email")
        if not subject_id or not email:
            logger.error("Google userinfo missing sub/email")
            raise IdentityProviderError(context={"step": "userinfo"})

        # Only a Google-verified address may be matched against local accounts
        if info.get("email_verified") is not True:
            logger.warning("Google userinfo for subject %s has an unverified email", subject_id)
            raise IdentityProviderError(
                message="Google account email is not verified",
                context={"step": "userinfo", "reason": "email_unverified"},
            )

        return ProviderIdentity(
            subject_id=str(subject_id),
            email=str(email),
            name=str(info.get("name") or ""),
        )


def _json_object(response: httpx.Response, step: str) -> dict:
    """Decode a provider response that must be a JSON object."""
    try:
        payload = response.json()
    except ValueError as e:
        logger.error("Google %s response is not JSON", step)
        raise IdentityProviderError(context={"step": step, "reason": "invalid_json"}) from e
    if not isinstance(payload, dict):
        logger.error("Google %s response is not a JSON object", step)
        raise IdentityProviderError(context={"step": step, "reason": "invalid_json"})
    return payload
