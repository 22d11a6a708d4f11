"""
Notification Sink Factory
"""
from typing import Optional

from calldesk.core.config import Settings
from calldesk.domain.interfaces.notification_sink import NotificationSink
from calldesk.infrastructure.notifications.sinks import LogNotificationSink, WebhookNotificationSink


def create_notification_sink(settings: Settings) -> Optional[NotificationSink]:
    """Sink for the configured channel; None disables reminders."""
    sink = settings.notification_sink.lower()
    if sink == "log":
        return LogNotificationSink()
    if sink == "webhook":
        return WebhookNotificationSink(settings.notification_webhook_url)
    if sink == "none":
        return None
    raise ValueError(f"Unknown notification sink: {sink}. Available: log, webhook, none")
