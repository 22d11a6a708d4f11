"""
Notification Sinks
"""
import logging
from typing import List, Optional, Tuple

import httpx

from calldesk.domain.interfaces.notification_sink import NotificationSink

logger = logging.getLogger(__name__)


class LogNotificationSink(NotificationSink):
    """Writes reminders to the log. Always permitted."""

    def __init__(self):
        self.shown: List[Tuple[str, str]] = []

    @property
    def name(self) -> str:
        return "log"

    async def request_permission(self) -> bool:
        return True

    async def show(self, title: str, body: str) -> None:
        self.shown.append((title, body))
        logger.info(f"[{title}] {body}")


class WebhookNotificationSink(NotificationSink):
    """
    Posts reminders as JSON to a webhook (desktop agent, chat hook...).

    Permission is granted when a URL is configured.
    """

    def __init__(
        self,
        url: Optional[str],
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.url = url
        self.timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return "webhook"

    async def request_permission(self) -> bool:
        return bool(self.url)

    async def show(self, title: str, body: str) -> None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self.url, json={"title": title, "body": body})
            response.raise_for_status()
