"""
ytclipper Backend — Auth Request/Response Schemas
===================================================

What:  Pydantic models defining the wire contract of every account flow.
Why:   One explicit record per flow instead of ad hoc dicts, so the shape of
       each response is checked and documented in OpenAPI.
Who:   Request models are bound by route handlers; result models are built by
       AccountService and TokenIssuer and returned as-is.

Security:
    UserResponse is the only view of an Account that leaves the server. It has
    no password hash, provider id, or one-time token fields.
"""

import uuid
from datetime import datetime
from typing import List

from pydantic import BaseModel, EmailStr, Field


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════
# Password length/composition is NOT checked here: PasswordHasher.validate_password
# owns the policy and reports it as INVALID_PASSWORD rather than INVALID_REQUEST.


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(max_length=256)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=256)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1, max_length=256)
    password: str = Field(max_length=256)


class VerifyEmailRequest(BaseModel):
    token: str = Field(min_length=1, max_length=256)


class AddPasswordRequest(BaseModel):
    password: str = Field(max_length=256)


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class TokenPair(BaseModel):
    """
    A freshly minted session: both tokens and their UNIX-epoch expiries.

    Returned by POST /refresh and embedded (flattened) in LoginResult.
    """
    access_token: str
    refresh_token: str
    access_token_expiry: int = Field(description="Access token expiry (UNIX seconds)")
    refresh_token_expiry: int = Field(description="Refresh token expiry (UNIX seconds)")


class UserResponse(BaseModel):
    """Public profile of an account."""
    id: uuid.UUID
    name: str
    email: str
    email_verified: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    message: str


class RegisterResult(BaseModel):
    message: str = "User created successfully. Please check your email to verify your account."
    user: UserResponse


class LoginResult(BaseModel):
    """
    Response of POST /login.

    auth_methods lists every way this account can sign in ("google", "password").
    """
    message: str = "Login successful"
    user: UserResponse
    auth_methods: List[str]
    access_token: str
    refresh_token: str
    access_token_expiry: int
    refresh_token_expiry: int

    def token_pair(self) -> TokenPair:
        return TokenPair(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            access_token_expiry=self.access_token_expiry,
            refresh_token_expiry=self.refresh_token_expiry,
        )


class CurrentUserResult(BaseModel):
    """
    Response of GET /me.

    Token values come from the request cookies; their expiries are read
    without signature verification and are informational only (0 when absent
    or unreadable).
    """
    user: UserResponse
    auth_methods: List[str]
    access_token: str = ""
    refresh_token: str = ""
    access_token_expiry: int = 0
    refresh_token_expiry: int = 0


class AccessTokenResponse(BaseModel):
    access_token: str


class GoogleLoginResponse(BaseModel):
    auth_url: str = Field(description="Google consent screen URL to redirect the browser to")
