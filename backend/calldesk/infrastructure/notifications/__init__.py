"""
Notification sinks for operator reminders
"""
from calldesk.infrastructure.notifications.sinks import LogNotificationSink, WebhookNotificationSink
from calldesk.infrastructure.notifications.factory import create_notification_sink

__all__ = [
    "LogNotificationSink",
    "WebhookNotificationSink",
    "create_notification_sink",
]
