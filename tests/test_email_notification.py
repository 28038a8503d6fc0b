"""
Test email delivery with a mocked SMTP transport.

Tests:
- Successful send and message headers
- Retry with backoff, then NotificationFailure
- Disabled delivery
- Admin alerts never raise
"""

from datetime import datetime
from unittest.mock import AsyncMock, patch

import aiosmtplib
import pytest

from fundledger.errors import NotificationFailure
from fundledger.notification.email_notifier import EmailNotifier


class MockEmailConfig:
    """Mock email configuration for testing."""

    enabled = True
    smtp_host = "smtp.test.com"
    smtp_port = 587
    smtp_user = "test@test.com"
    smtp_password = "password"
    use_tls = True
    from_address = "reports@test.com"
    cc_addresses = ["ops@test.com"]
    admin_addresses = ["admin@test.com"]
    environment = "test"
    send_timeout_seconds = 5.0
    max_retries = 2


@pytest.fixture
def notifier():
    n = EmailNotifier(MockEmailConfig())
    n.BACKOFF_BASE_SECONDS = 0
    return n


class TestSend:
    @pytest.mark.asyncio
    async def test_builds_message(self, notifier):
        with patch("aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            await notifier.send("client@test.com", "Your March 2026 Report", "body text")

        mock_send.assert_awaited_once()
        msg = mock_send.call_args.args[0]
        assert msg["To"] == "client@test.com"
        assert msg["Cc"] == "ops@test.com"
        assert msg["From"] == "reports@test.com"
        assert msg["Subject"] == "Your March 2026 Report"
        assert mock_send.call_args.kwargs["hostname"] == "smtp.test.com"
        assert mock_send.call_args.kwargs["start_tls"] is True

    @pytest.mark.asyncio
    async def test_recipient_not_duplicated_in_cc(self, notifier):
        with patch("aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            await notifier.send("OPS@test.com", "s", "b")

        assert mock_send.call_args.args[0]["Cc"] is None

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, notifier):
        side_effects = [aiosmtplib.SMTPException("temporary"), None]

        with patch("aiosmtplib.send", new_callable=AsyncMock, side_effect=side_effects) as mock_send:
            await notifier.send("client@test.com", "s", "b")

        assert mock_send.await_count == 2

    @pytest.mark.asyncio
    async def test_raises_after_all_attempts(self, notifier):
        with patch(
            "aiosmtplib.send",
            new_callable=AsyncMock,
            side_effect=aiosmtplib.SMTPException("down"),
        ) as mock_send:
            with pytest.raises(NotificationFailure) as exc_info:
                await notifier.send("client@test.com", "s", "b")

        assert mock_send.await_count == 3
        assert exc_info.value.attempts == 3
        assert exc_info.value.recipient == "client@test.com"

    @pytest.mark.asyncio
    async def test_connection_error_is_retried(self, notifier):
        with patch(
            "aiosmtplib.send",
            new_callable=AsyncMock,
            side_effect=[ConnectionRefusedError("refused"), None],
        ) as mock_send:
            await notifier.send("client@test.com", "s", "b")

        assert mock_send.await_count == 2

    @pytest.mark.asyncio
    async def test_disabled_raises_without_sending(self):
        config = MockEmailConfig()
        config.enabled = False
        notifier = EmailNotifier(config)

        with patch("aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            with pytest.raises(NotificationFailure) as exc_info:
                await notifier.send("client@test.com", "s", "b")

        mock_send.assert_not_awaited()
        assert exc_info.value.code == "EMAIL_DISABLED"


class TestAdminAlert:
    @pytest.mark.asyncio
    async def test_alert_has_environment_prefix(self, notifier):
        with patch("aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            delivered = await notifier.send_admin_alert("Monthly report problems", "details")

        assert delivered
        assert mock_send.call_args.args[0]["Subject"] == "[TEST] Monthly report problems"
        assert mock_send.call_args.args[0]["To"] == "admin@test.com"

    @pytest.mark.asyncio
    async def test_alert_failure_is_logged_not_raised(self, notifier):
        with patch(
            "aiosmtplib.send",
            new_callable=AsyncMock,
            side_effect=aiosmtplib.SMTPException("down"),
        ):
            delivered = await notifier.send_admin_alert("subject", "body")

        assert delivered is False


class TestRateLimit:
    @pytest.mark.asyncio
    async def test_waits_when_limit_reached(self, notifier):
        notifier._send_timestamps.extend([datetime.now()] * notifier.RATE_LIMIT_PER_MINUTE)

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            async def fake_sleep(_):
                notifier._send_timestamps.clear()

            mock_sleep.side_effect = fake_sleep
            with patch("aiosmtplib.send", new_callable=AsyncMock):
                await notifier.send("client@test.com", "s", "b")

        mock_sleep.assert_awaited()
