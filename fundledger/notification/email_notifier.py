"""Email delivery for client statements and operator alerts."""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from email.mime.text import MIMEText
from typing import TYPE_CHECKING, Protocol

import aiosmtplib

from fundledger.errors import NotificationFailure

if TYPE_CHECKING:
    from fundledger.config import EmailConfig

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """Anything that can deliver a rendered document to one recipient."""

    async def send(self, recipient: str, subject: str, document: str) -> None:
        """Deliver or raise NotificationFailure."""
        ...


@dataclass
class EmailMessage:
    """Email message to be sent."""

    recipient: str
    subject: str
    body: str
    cc: list[str]


class EmailNotifier:
    """
    SMTP notification sink.

    Features:
    - Retry with exponential backoff (1s, 2s, 4s)
    - Rate limiting (max 10 emails/minute) for bulk month-end runs
    - Operator alerts that never raise
    """

    RATE_LIMIT_PER_MINUTE = 10
    RATE_WINDOW = timedelta(minutes=1)
    BACKOFF_BASE_SECONDS = 1.0

    def __init__(self, config: "EmailConfig") -> None:
        self._config = config
        # Send times within the last RATE_WINDOW, oldest first
        self._send_timestamps: deque[datetime] = deque()

    async def send(self, recipient: str, subject: str, document: str) -> None:
        """Send a client statement, CC'ing the configured addresses.

        Raises:
            NotificationFailure: delivery disabled, or every attempt failed.
        """
        if not self._config.enabled:
            raise NotificationFailure(
                "Email delivery is disabled",
                code="EMAIL_DISABLED",
                recipient=recipient,
            )

        message = EmailMessage(
            recipient=recipient,
            subject=subject,
            body=document,
            cc=[a for a in self._config.cc_addresses if a.lower() != recipient.lower()],
        )
        await self._wait_for_rate_limit()
        await self._send_with_retry(message)

    async def send_admin_alert(self, subject: str, body: str) -> bool:
        """Best-effort alert to operators. Returns True if delivered."""
        if not self._config.enabled or not self._config.admin_addresses:
            logger.debug("Admin alert not sent (disabled or no recipients): %s", subject)
            return False

        env_prefix = f"[{self._config.environment.upper()}] "
        message = EmailMessage(
            recipient=", ".join(self._config.admin_addresses),
            subject=f"{env_prefix}{subject}",
            body=body,
            cc=[],
        )
        try:
            await self._send_with_retry(message)
        except NotificationFailure as e:
            logger.error("Admin alert failed: %s - %s", subject, e)
            return False
        return True

    def _prune(self, now: datetime) -> None:
        horizon = now - self.RATE_WINDOW
        while self._send_timestamps and self._send_timestamps[0] <= horizon:
            self._send_timestamps.popleft()

    async def _wait_for_rate_limit(self) -> None:
        """Block until another send fits in the per-minute budget."""
        self._prune(datetime.now())
        while len(self._send_timestamps) >= self.RATE_LIMIT_PER_MINUTE:
            oldest = self._send_timestamps[0]
            delay = max((oldest + self.RATE_WINDOW - datetime.now()).total_seconds(), 0.0)
            logger.debug("Email rate limit reached, sleeping %.1fs", delay)
            await asyncio.sleep(delay)
            self._prune(datetime.now())

    async def _send_with_retry(self, message: EmailMessage) -> None:
        attempts = self._config.max_retries + 1
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                await self._send_email(message)
            except (aiosmtplib.SMTPException, OSError, asyncio.TimeoutError) as e:
                last_error = e
                if attempt < attempts:
                    delay = self.BACKOFF_BASE_SECONDS * 2 ** (attempt - 1)
                    logger.warning(
                        "SMTP attempt %d/%d to %s failed (%s), retrying in %.1fs",
                        attempt,
                        attempts,
                        message.recipient,
                        e,
                        delay,
                    )
                    await asyncio.sleep(delay)
                continue

            self._send_timestamps.append(datetime.now())
            logger.info("Email sent to %s: %s", message.recipient, message.subject)
            return

        logger.error(
            "Giving up on %r to %s after %d attempts: %s",
            message.subject,
            message.recipient,
            attempts,
            last_error,
        )
        raise NotificationFailure(
            f"Delivery to {message.recipient} failed: {last_error}",
            code="SMTP_FAILED",
            recipient=message.recipient,
            attempts=attempts,
        ) from last_error

    async def _send_email(self, message: EmailMessage) -> None:
        """Send a single email via SMTP."""
        msg = MIMEText(message.body, "plain", "utf-8")
        msg["Subject"] = message.subject
        msg["From"] = self._config.from_address
        msg["To"] = message.recipient
        if message.cc:
            msg["Cc"] = ", ".join(message.cc)

        await aiosmtplib.send(
            msg,
            hostname=self._config.smtp_host,
            port=self._config.smtp_port,
            username=self._config.smtp_user or None,
            password=self._config.smtp_password or None,
            start_tls=self._config.use_tls,
            timeout=self._config.send_timeout_seconds,
        )
