"""Telegram notification service."""
import html
import logging
import ssl

import aiohttp
import certifi

from ..config import TelegramConfig

logger = logging.getLogger(__name__)

# Telegram rejects messages longer than this.
MAX_MESSAGE_LENGTH = 4096

REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=10)


def escape_truncated(message: str, limit: int = MAX_MESSAGE_LENGTH) -> str:
    """HTML-escape ``message``, cutting on a character boundary to fit ``limit``."""
    text = html.escape(message)
    if len(text) <= limit:
        return text
    pieces = []
    size = 0
    for char in message:
        piece = html.escape(char)
        if size + len(piece) > limit - 1:
            break
        pieces.append(piece)
        size += len(piece)
    return "".join(pieces) + "…"


class TelegramNotifier:
    """Send cycle reports and failure alerts via Telegram bots.

    Reports go through the (usually muted) report bot, failures through the
    alert bot.
    """

    def __init__(self, config: TelegramConfig) -> None:
        self.alert_bot_token = config.alert_bot_token
        self.report_bot_token = config.log_bot_token
        self.chat_id = config.chat_id

    async def _send_message(
        self, message: str, bot_token: str, silent: bool = False
    ) -> bool:
        """Send Telegram message using specified bot."""
        if not bot_token or not self.chat_id:
            logger.warning("Telegram credentials not configured")
            return False

        text = escape_truncated(message)

        url = f"https://api.telegram.org/bot{bot_token}/sendMessage"
        payload = {
            "chat_id": self.chat_id,
            "text": text,
            "parse_mode": "HTML",
            "disable_notification": silent,
        }

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.post(
                url, json=payload, timeout=REQUEST_TIMEOUT
            ) as response:
                if response.status == 200:
                    return True
                logger.error("Failed to send Telegram message: %s", response.status)
                return False

    async def send_alert(self, message: str, subject: str = "") -> bool:
        """Send a failure alert (unmuted bot), prefixed with the subject line."""
        body = f"{subject}\n\n{message}" if subject else message
        if await self._send_message(body, self.alert_bot_token, silent=False):
            logger.info("Telegram alert sent")
            return True
        return False

    async def send_report(self, message: str, silent: bool = True) -> bool:
        """Send a recommendation report (report bot)."""
        if await self._send_message(message, self.report_bot_token, silent=silent):
            logger.info("Telegram report sent")
            return True
        return False
