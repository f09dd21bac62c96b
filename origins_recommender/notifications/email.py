"""Email notification service."""
import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from ..config import EmailConfig

logger = logging.getLogger(__name__)

REPORT_SUBJECT = "📋 Position Recommendations"


class EmailNotifier:
    """Send cycle reports and failure alerts via email."""

    def __init__(self, config: EmailConfig) -> None:
        self.alert_email = config.alert_email
        self.smtp_server = config.smtp_server
        self.smtp_port = config.smtp_port
        self.sender_email = config.sender_email
        self.sender_password = config.sender_password

    def _deliver(self, msg: MIMEMultipart) -> None:
        server = smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=30)
        try:
            server.starttls()
            server.login(self.sender_email, self.sender_password)
            server.send_message(msg)
        finally:
            server.quit()

    async def _send(self, message: str, subject: str) -> bool:
        if not self.alert_email:
            logger.debug("No alert email configured, skipping email")
            return False

        if not self.sender_email or not self.sender_password:
            logger.warning("Email credentials not configured")
            return False

        msg = MIMEMultipart()
        msg["From"] = self.sender_email
        msg["To"] = self.alert_email
        msg["Subject"] = subject

        msg.attach(MIMEText(message, "plain"))

        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email: %s", e)
            return False

        logger.info("Email sent to %s", self.alert_email)
        return True

    async def send_alert(self, message: str, subject: str = "") -> bool:
        """Send a failure alert email."""
        return await self._send(message, subject)

    async def send_report(self, message: str, silent: bool = True) -> bool:
        """Email a recommendation report. Silent reports are not mailed."""
        if silent:
            return False
        return await self._send(message, REPORT_SUBJECT)
