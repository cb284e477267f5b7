"""
ytclipper Backend — Password Hasher
=====================================

What:  Password policy, one-way hashing and verification.
How:   bcrypt with a fresh salt per call (cost factor from `rounds`).
       bcrypt.checkpw compares in constant time.

Policy (pure, no I/O):
    - at least `min_length` characters
    - at most 72 bytes once UTF-8 encoded (bcrypt ignores/refuses anything longer)
    - at least one letter and one digit

Hashing is CPU-bound (~250ms at cost 12). AccountService runs it in the
threadpool so the event loop keeps serving other requests.
"""

import logging
import re

import bcrypt

from ytclipper.exceptions import HashingError, ValidationError

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of the secret
BCRYPT_MAX_BYTES = 72


class PasswordHasher:
    """Stateless apart from its configuration; safe to share across requests."""

    def __init__(self, min_length: int = 8, rounds: int = 12):
        self.min_length = min_length
        self.rounds = rounds

    def validate_password(self, candidate: str) -> None:
        """
        Enforce the password policy before anything is hashed.

        Raises:
            ValidationError (400 INVALID_PASSWORD) naming the first rule broken.
        """
        if len(candidate) < self.min_length:
            raise self._policy_violation(
                f"Password must be at least {self.min_length} characters"
            )
        if len(candidate.encode("utf-8")) > BCRYPT_MAX_BYTES:
            raise self._policy_violation(
                f"Password must be at most {BCRYPT_MAX_BYTES} bytes"
            )
        if not re.search(r"[A-Za-z]", candidate):
            raise self._policy_violation("Password must contain at least one letter")
        if not re.search(r"\d", candidate):
            raise self._policy_violation("Password must contain at least one number")

    @staticmethod
    def _policy_violation(reason: str) -> ValidationError:
        return ValidationError(
            message="Invalid password",
            field="password",
            code="INVALID_PASSWORD",
            context={"reason": reason},
        )

    def hash(self, plaintext: str) -> str:
        """
        Salted bcrypt hash of `plaintext`.

        Two calls on the same input return different strings; both verify.

        Raises:
            HashingError (500) if bcrypt rejects the input.
        """
        try:
            hashed = bcrypt.hashpw(
                plaintext.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)
            )
        except (ValueError, TypeError) as e:
            logger.error("bcrypt hashing failed: %s", type(e).__name__)
            raise HashingError(context={"error_type": type(e).__name__}) from e
        return hashed.decode("utf-8")

    def verify(self, plaintext: str, hashed: str) -> bool:
        """
        True iff `plaintext` matches `hashed`.

        A malformed stored hash counts as a mismatch (logged) rather than a
        server error, so a corrupted row cannot be told apart from a bad password.
        """
        try:
            return bcrypt.checkpw(plaintext.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            logger.warning("Stored password hash is malformed")
            return False
