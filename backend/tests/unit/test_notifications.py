"""
Unit Tests for notification sinks and factories
"""
import json

import httpx
import pytest

from calldesk.core.config import Settings
from calldesk.infrastructure.notifications import (
    LogNotificationSink,
    WebhookNotificationSink,
    create_notification_sink,
)
from calldesk.infrastructure.stores import InMemoryLeadStore, StoreFactory


class TestWebhookSink:

    @pytest.mark.asyncio
    async def test_posts_alert(self):
        """Test that the alert is delivered as JSON"""
        received = []

        def handler(request):
            received.append(json.loads(request.content))
            return httpx.Response(204)

        sink = WebhookNotificationSink("http://hook.test/alerts", transport=httpx.MockTransport(handler))

        assert await sink.request_permission() is True
        await sink.show("Call Reminder", "Ada in 15 minutes")

        assert received == [{"title": "Call Reminder", "body": "Ada in 15 minutes"}]

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        sink = WebhookNotificationSink(
            "http://hook.test/alerts",
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )

        with pytest.raises(httpx.HTTPStatusError):
            await sink.show("t", "b")

    @pytest.mark.asyncio
    async def test_no_url_no_permission(self):
        assert await WebhookNotificationSink(None).request_permission() is False


class TestFactories:

    def test_notification_sink_by_name(self):
        assert isinstance(create_notification_sink(Settings(_env_file=None)), LogNotificationSink)
        assert create_notification_sink(Settings(_env_file=None, notification_sink="none")) is None

        webhook = create_notification_sink(
            Settings(_env_file=None, notification_sink="webhook", notification_webhook_url="http://x")
        )
        assert webhook.name == "webhook"

    def test_unknown_sink(self):
        with pytest.raises(ValueError):
            create_notification_sink(Settings(_env_file=None, notification_sink="pager"))

    def test_memory_stores(self):
        lead_store, call_store = StoreFactory.create(Settings(_env_file=None))

        assert isinstance(lead_store, InMemoryLeadStore)
        assert call_store is not None

    def test_unknown_store_backend(self):
        with pytest.raises(ValueError):
            StoreFactory.create(Settings(_env_file=None, store_backend="mongo"))
