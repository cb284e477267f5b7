"""
ytclipper Backend — One-Time Token Generator
==============================================

What:  Random capability tokens for email verification and password reset.
Why:   Whoever holds the link holds the account action, so the token must be
       unguessable: 32 bytes from the OS CSPRNG, url-safe encoded.
How:   `secrets.token_urlsafe`. Expiry = now + a fixed window per generator.

The generator knows nothing about purpose or account. AccountService scopes a
token by storing its digest on one account row, in the verification or the
reset column.

Storage:
    Only `digest(token)` (SHA-256 hex) is persisted. A database leak then
    yields no usable links; lookups digest the submitted token and match exactly.
"""

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone

from ytclipper.exceptions import TokenGenerationError

logger = logging.getLogger(__name__)


def digest(token: str) -> str:
    """SHA-256 hex digest of a one-time token, as stored in the database."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class OneTimeTokenGenerator:
    """Mints tokens with a fixed validity window."""

    def __init__(self, window: timedelta, num_bytes: int = 32):
        self.window = window
        self.num_bytes = num_bytes

    def generate_token(self) -> str:
        try:
            return secrets.token_urlsafe(self.num_bytes)
        except (OSError, NotImplementedError) as e:
            # No entropy source available
            logger.error("Random source unavailable: %s", e)
            raise TokenGenerationError(
                message="Failed to generate one-time token",
                context={"error_type": type(e).__name__},
            ) from e

    def get_token_expiry(self) -> datetime:
        """Absolute expiry for a token minted now (UTC)."""
        return datetime.now(timezone.utc) + self.window
