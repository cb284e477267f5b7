"""
ytclipper Backend — Custom Exception Hierarchy
================================================

What:  Application-specific exceptions for every failure a request can end in.
Why:   Each exception knows its HTTP status and a stable machine-readable code,
       so flows raise and a single set of global handlers renders the response.
How:   Each exception carries `code`, `message`, `status_code` and an optional
       context dict (logged server-side, returned only for client errors).
Who:   Raised by services, dependencies and middleware; caught by handlers in main.py.

Exception Hierarchy:
    YtClipperError (base)
    ├── ValidationError                → 400 INVALID_REQUEST / INVALID_PASSWORD / ...
    ├── ConflictError                  → 409 USER_EXISTS
    ├── AuthenticationError            → 401 INVALID_CREDENTIALS / UNAUTHORIZED / ...
    ├── ForbiddenError                 → 403 FORBIDDEN
    ├── NotFoundError                  → 404 USER_NOT_FOUND / NOT_FOUND
    ├── ExpiredOrInvalidTokenError     → 400 INVALID_TOKEN (one-time) / 401 (session)
    │   ├── InvalidTokenError
    │   └── ExpiredTokenError
    ├── DependencyError                → 500 (store / hashing / signing / email)
    │   ├── DatabaseError
    │   ├── HashingError
    │   ├── TokenGenerationError
    │   ├── EmailDeliveryError
    │   └── IdentityProviderError      → 502
    └── RateLimitExceededError         → 429

Token errors:
    "Wrong token" and "expired token" share one response.
    InvalidTokenError / ExpiredTokenError exist so the TokenIssuer can be
    precise for logging and tests; both render identically on the wire.
"""

from typing import Any, Dict, Optional


class YtClipperError(Exception):
    """
    Base exception for all ytclipper application errors.

    Attributes:
        code:         Stable machine-readable error code (e.g. "USER_EXISTS")
        message:      User-facing error description (safe to return)
        status_code:  HTTP status the global handler responds with
        context:      Additional debug info
    """

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(YtClipperError):
    """
    Raised when client input fails validation.

    HTTP:  400 Bad Request
    When:  Malformed payload, password policy violation, bad OAuth state.
    """

    status_code = 400
    code = "INVALID_REQUEST"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, code=code, context=ctx)
        self.field = field


class ConflictError(YtClipperError):
    """Raised when creating a resource that already exists (duplicate email)."""

    status_code = 409
    code = "USER_EXISTS"


class AuthenticationError(YtClipperError):
    """
    Raised when the caller's identity cannot be established.

    HTTP:  401 Unauthorized
    When:  Wrong password, missing/invalid session, missing refresh cookie.
    """

    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(
        self,
        message: str = "Authentication required",
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, context=context)


class ForbiddenError(YtClipperError):
    """Identity is known but not allowed to touch the resource."""

    status_code = 403
    code = "FORBIDDEN"

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(YtClipperError):
    """
    Raised when a requested resource does not exist.

    The store returns None for missing rows; services convert that None into
    NotFoundError so the 404 never leaks into store code.
    """

    status_code = 404
    code = "NOT_FOUND"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        code: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"The requested {resource} was not found"
            if resource_id:
                message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, code=code, context=ctx)


class ExpiredOrInvalidTokenError(YtClipperError):
    """
    Raised when a session, reset or verification token is forged or stale.

    HTTP:  400 for one-time tokens (INVALID_TOKEN), 401 for session tokens.
    Why one class: callers and clients must not be able to tell a wrong
    token from an expired one.
    """

    status_code = 400
    code = "INVALID_TOKEN"

    def __init__(
        self,
        message: str = "Invalid or expired token",
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message, code=code, context=context, status_code=status_code
        )


class InvalidTokenError(ExpiredOrInvalidTokenError):
    """Signature did not verify, claims are missing, or the token is malformed."""


class ExpiredTokenError(ExpiredOrInvalidTokenError):
    """Signature verified but the `exp` claim is in the past."""


class DependencyError(YtClipperError):
    """
    Raised when a collaborator (store, hasher, signer, mailer) fails.

    HTTP:  500 Internal Server Error
    Security: the response message is always generic; context is logged only.
    """

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str = "A server error occurred. Please try again later.",
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, context=context)


class DatabaseError(DependencyError):
    """A query, insert or update failed."""

    code = "DB_ERROR"

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class HashingError(DependencyError):
    """bcrypt refused to hash the secret."""

    code = "HASHING_ERROR"

    def __init__(
        self,
        message: str = "Failed to hash password",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class TokenGenerationError(DependencyError):
    """Signing a session token or drawing random bytes failed."""

    code = "TOKEN_GENERATION_ERROR"

    def __init__(
        self,
        message: str = "Failed to generate token",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class EmailDeliveryError(DependencyError):
    """
    The email provider rejected or never received the message.

    Registration swallows this (account creation stands); forgot-password
    surfaces it because the email is the user's only way forward.
    """

    code = "EMAIL_SENDING_ERROR"

    def __init__(
        self,
        message: str = "Failed to send email",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class IdentityProviderError(DependencyError):
    """The Google token/userinfo exchange failed."""

    status_code = 502
    code = "OAUTH_ERROR"

    def __init__(
        self,
        message: str = "Could not complete sign-in with Google. Please try again.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(YtClipperError):
    """
    Raised when a client exceeds the per-IP request rate limit.

    Response includes a Retry-After header for HTTP-compliant clients.
    """

    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
