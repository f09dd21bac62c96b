"""Unit tests for notification services."""
from __future__ import annotations

import smtplib
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from origins_recommender.config import EmailConfig, TelegramConfig
from origins_recommender.notifications.email import REPORT_SUBJECT, EmailNotifier
from origins_recommender.notifications.telegram import (
    MAX_MESSAGE_LENGTH,
    REQUEST_TIMEOUT,
    TelegramNotifier,
)


def _telegram_session(status: int) -> AsyncMock:
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)

    mock_session = AsyncMock()
    mock_session.post = MagicMock(return_value=mock_response)
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=None)
    return mock_session


# ---------------------------------------------------------------------------
# TelegramNotifier
# ---------------------------------------------------------------------------


@pytest.fixture()
def telegram_notifier() -> TelegramNotifier:
    return TelegramNotifier(
        TelegramConfig(
            enabled=True,
            alert_bot_token="alert-tok",
            log_bot_token="log-tok",
            chat_id="12345",
        )
    )


@pytest.fixture()
def telegram_notifier_unconfigured() -> TelegramNotifier:
    return TelegramNotifier(
        TelegramConfig(enabled=True, alert_bot_token="", log_bot_token="", chat_id="")
    )


class TestTelegramNotifier:
    @pytest.mark.asyncio
    async def test_send_alert_success(self, telegram_notifier: TelegramNotifier) -> None:
        mock_session = _telegram_session(200)

        with patch("origins_recommender.notifications.telegram.aiohttp.ClientSession", return_value=mock_session):
            with patch("origins_recommender.notifications.telegram.aiohttp.TCPConnector"):
                result = await telegram_notifier.send_alert("body", subject="Cycle failed")

        assert result is True
        url = mock_session.post.call_args[0][0]
        payload = mock_session.post.call_args.kwargs["json"]
        assert "botalert-tok" in url
        assert payload["text"].startswith("Cycle failed")
        assert payload["disable_notification"] is False

    @pytest.mark.asyncio
    async def test_send_alert_failure(self, telegram_notifier: TelegramNotifier) -> None:
        mock_session = _telegram_session(403)

        with patch("origins_recommender.notifications.telegram.aiohttp.ClientSession", return_value=mock_session):
            with patch("origins_recommender.notifications.telegram.aiohttp.TCPConnector"):
                result = await telegram_notifier.send_alert("test alert")

        assert result is False

    @pytest.mark.asyncio
    async def test_send_report_uses_report_bot(
        self, telegram_notifier: TelegramNotifier
    ) -> None:
        mock_session = _telegram_session(200)

        with patch("origins_recommender.notifications.telegram.aiohttp.ClientSession", return_value=mock_session):
            with patch("origins_recommender.notifications.telegram.aiohttp.TCPConnector"):
                result = await telegram_notifier.send_report("<report>", silent=True)

        assert result is True
        url = mock_session.post.call_args[0][0]
        payload = mock_session.post.call_args.kwargs["json"]
        assert "botlog-tok" in url
        assert payload["disable_notification"] is True
        assert payload["text"] == "&lt;report&gt;"

    @pytest.mark.asyncio
    async def test_long_message_truncated(self, telegram_notifier: TelegramNotifier) -> None:
        mock_session = _telegram_session(200)

        with patch("origins_recommender.notifications.telegram.aiohttp.ClientSession", return_value=mock_session):
            with patch("origins_recommender.notifications.telegram.aiohttp.TCPConnector"):
                await telegram_notifier.send_report("x" * 10_000)

        payload = mock_session.post.call_args.kwargs["json"]
        assert len(payload["text"]) == MAX_MESSAGE_LENGTH

    @pytest.mark.asyncio
    async def test_truncation_never_splits_entities(
        self, telegram_notifier: TelegramNotifier
    ) -> None:
        mock_session = _telegram_session(200)

        with patch("origins_recommender.notifications.telegram.aiohttp.ClientSession", return_value=mock_session):
            with patch("origins_recommender.notifications.telegram.aiohttp.TCPConnector"):
                await telegram_notifier.send_report("&" * 5000)

        text = mock_session.post.call_args.kwargs["json"]["text"]
        assert len(text) <= MAX_MESSAGE_LENGTH
        assert text.endswith("&amp;…")
        assert text[:-1] == "&amp;" * 819
        assert mock_session.post.call_args.kwargs["timeout"] is REQUEST_TIMEOUT

    @pytest.mark.asyncio
    async def test_unconfigured_returns_false(
        self, telegram_notifier_unconfigured: TelegramNotifier
    ) -> None:
        result = await telegram_notifier_unconfigured.send_alert("test")
        assert result is False

        result = await telegram_notifier_unconfigured.send_report("test")
        assert result is False


# ---------------------------------------------------------------------------
# EmailNotifier
# ---------------------------------------------------------------------------


@pytest.fixture()
def email_notifier() -> EmailNotifier:
    return EmailNotifier(
        EmailConfig(
            enabled=True,
            alert_email="test@example.com",
            smtp_server="smtp.example.com",
            smtp_port=587,
            sender_email="sender@example.com",
            sender_password="password123",
        )
    )


@pytest.fixture()
def email_notifier_unconfigured() -> EmailNotifier:
    return EmailNotifier(EmailConfig(enabled=True))


class TestEmailNotifier:
    @pytest.mark.asyncio
    async def test_send_alert_success(self, email_notifier: EmailNotifier) -> None:
        mock_smtp = MagicMock()
        with patch("origins_recommender.notifications.email.smtplib.SMTP", return_value=mock_smtp):
            result = await email_notifier.send_alert("test body", subject="Test")
        assert result is True
        mock_smtp.starttls.assert_called_once()
        mock_smtp.login.assert_called_once()
        mock_smtp.send_message.assert_called_once()
        mock_smtp.quit.assert_called_once()
        assert mock_smtp.send_message.call_args[0][0]["Subject"] == "Test"

    @pytest.mark.asyncio
    async def test_send_alert_smtp_error(self, email_notifier: EmailNotifier) -> None:
        with patch(
            "origins_recommender.notifications.email.smtplib.SMTP",
            side_effect=ConnectionError("SMTP down"),
        ):
            result = await email_notifier.send_alert("test body", subject="Test")
        assert result is False

    @pytest.mark.asyncio
    async def test_quit_called_when_login_fails(self, email_notifier: EmailNotifier) -> None:
        mock_smtp = MagicMock()
        mock_smtp.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad")
        with patch("origins_recommender.notifications.email.smtplib.SMTP", return_value=mock_smtp):
            result = await email_notifier.send_alert("test body")
        assert result is False
        mock_smtp.quit.assert_called_once()

    @pytest.mark.asyncio
    async def test_no_alert_email_returns_false(
        self, email_notifier_unconfigured: EmailNotifier
    ) -> None:
        result = await email_notifier_unconfigured.send_alert("test")
        assert result is False

    @pytest.mark.asyncio
    async def test_no_credentials_returns_false(self) -> None:
        notifier = EmailNotifier(
            EmailConfig(enabled=True, alert_email="test@example.com")
        )
        result = await notifier.send_alert("test")
        assert result is False

    @pytest.mark.asyncio
    async def test_silent_report_is_noop(self, email_notifier: EmailNotifier) -> None:
        with patch("origins_recommender.notifications.email.smtplib.SMTP") as smtp_cls:
            result = await email_notifier.send_report("test", silent=True)
        assert result is False
        smtp_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_loud_report_is_mailed(self, email_notifier: EmailNotifier) -> None:
        mock_smtp = MagicMock()
        with patch("origins_recommender.notifications.email.smtplib.SMTP", return_value=mock_smtp):
            result = await email_notifier.send_report("test", silent=False)
        assert result is True
        assert mock_smtp.send_message.call_args[0][0]["Subject"] == REPORT_SUBJECT
