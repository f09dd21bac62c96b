"""Notifier protocol — output channel for cycle reports and failure alerts."""
from typing import Protocol


class Notifier(Protocol):
    """Deliver rendered recommendation reports and cycle-failure alerts."""

    async def send_report(self, message: str, silent: bool = True) -> bool: ...

    async def send_alert(self, message: str, subject: str = "") -> bool: ...
