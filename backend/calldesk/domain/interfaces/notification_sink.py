"""
Notification Sink Interface
Best-effort delivery of operator alerts (desktop, browser push, webhook)
"""
from abc import ABC, abstractmethod


class NotificationSink(ABC):
    """
    Abstract base class for notification sinks.

    Both operations are best-effort: callers swallow any exception a sink
    raises, so implementations may fail freely (permission denied, endpoint
    down) without affecting the worklist.
    """

    @abstractmethod
    async def request_permission(self) -> bool:
        """Ask the delivery channel for permission; returns whether alerts may be shown"""
        pass

    @abstractmethod
    async def show(self, title: str, body: str) -> None:
        """Deliver one alert"""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Sink name"""
        pass
