"""
ytclipper Backend — Email Dispatcher
======================================

What:  Sends verification and password-reset emails through an HTTP email
       provider (Resend-compatible JSON API).
Why:   Both one-time tokens travel to the user only by email.
How:   httpx.AsyncClient POST, bearer-authenticated. Connection-level failures
       (reset, timeout) are retried with tenacity; an HTTP error status is final.
Who:   AccountService. It decides whether a failure matters:
       register   → logged and ignored (the account already exists)
       forgot     → surfaced as EmailDeliveryError (500)

Development mode:
    With no EMAIL_API_KEY configured the link is logged at WARNING instead of
    sent, so flows can be exercised locally without a provider account.
"""

import logging
from typing import Optional
from urllib.parse import quote, urlencode

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from ytclipper.config import settings
from ytclipper.exceptions import EmailDeliveryError

logger = logging.getLogger(__name__)


class EmailService:
    """Fire-and-report email delivery."""

    def __init__(
        self,
        api_url: str = settings.email_api_url,
        api_key: str = settings.email_api_key,
        sender: str = settings.email_from,
        frontend_url: str = settings.frontend_url,
        timeout: float = settings.email_timeout_seconds,
        max_attempts: int = settings.email_retry_max_attempts,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self.frontend_url = frontend_url.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max_attempts
        # Tests inject httpx.MockTransport here
        self._transport = transport

    def _link(self, path: str, token: str) -> str:
        return f"{self.frontend_url}/{path}?{urlencode({'token': token}, quote_via=quote)}"

    async def send_verification_email(self, email: str, token: str) -> None:
        link = self._link("verify-email", token)
        await self._send(
            to=email,
            subject="Verify your ytclipper email address",
            text=(
                f"Welcome to ytclipper!\n\nConfirm your email address:\n\n{link}\n\n"
                "If you didn't create an account, you can ignore this email."
            ),
            kind="verification",
        )

    async def send_password_reset_email(self, email: str, token: str) -> None:
        link = self._link("reset-password", token)
        await self._send(
            to=email,
            subject="Reset your ytclipper password",
            text=(
                f"Someone asked to reset the password for this account.\n\n{link}\n\n"
                "If it wasn't you, ignore this email; your password stays the same."
            ),
            kind="password_reset",
        )

    async def _send(self, to: str, subject: str, text: str, kind: str) -> None:
        """
        Deliver one message.

        Raises:
            EmailDeliveryError: provider rejected the message, or every
                transport attempt failed.
        """
        if not self.api_key:
            logger.warning("EMAIL_API_KEY unset; %s email for %s not sent:\n%s", kind, to, text)
            return

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(httpx.TransportError),
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential_jitter(
                    initial=settings.email_retry_min_wait,
                    max=settings.email_retry_max_wait,
                    jitter=1,
                ),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=False,
            ):
                with attempt:
                    await self._post(to, subject, text)
        except RetryError as e:
            cause = e.last_attempt.exception() if e.last_attempt else None
            logger.error("Email provider unreachable for %s email: %s", kind, cause)
            raise EmailDeliveryError(
                context={"kind": kind, "error_type": type(cause).__name__},
            ) from e
        except httpx.HTTPStatusError as e:
            logger.error(
                "Email provider rejected %s email: HTTP %d",
                kind,
                e.response.status_code,
            )
            raise EmailDeliveryError(
                context={"kind": kind, "status": e.response.status_code},
            ) from e

        logger.info("Sent %s email", kind)

    async def _post(self, to: str, subject: str, text: str) -> None:
        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            response = await client.post(
                self.api_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"from": self.sender, "to": to, "subject": subject, "text": text},
            )
            response.raise_for_status()


email_service = EmailService()
