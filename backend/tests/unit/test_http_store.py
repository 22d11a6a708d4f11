"""
Unit Tests for the REST-backed stores
Uses httpx.MockTransport in place of the leads API
"""
import json

import httpx
import pytest

from calldesk.domain.interfaces.store_errors import StoreError
from calldesk.domain.models.scheduled_call import AUTO_SCHEDULED_NOTE, CallOrigin
from calldesk.infrastructure.stores.http_store import HttpLeadStore, HttpScheduledCallStore

from tests.unit.helpers import T0

BASE_URL = "http://leads.test"


class RecordingHandler:
    """Returns canned responses and records every request"""

    def __init__(self, responses):
        self.responses = responses
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        status, body = self.responses.get(key, (404, {"message": "not found"}))
        return httpx.Response(status, json=body)


def make_transport(responses):
    handler = RecordingHandler(responses)
    return handler, httpx.MockTransport(handler)


class TestHttpLeadStore:

    @pytest.mark.asyncio
    async def test_list_leads_requests_everything(self):
        """Test the page limit, auth header and response parsing"""
        handler, transport = make_transport({
            ("GET", "/api/leads"): (200, {"leads": [
                {"_id": "L1", "name": "Ada", "status": "New"},
                {"_id": "L2", "name": "Grace", "status": "Qualified"},
            ]}),
        })
        store = HttpLeadStore(BASE_URL, token="secret", transport=transport)

        leads = await store.list_leads()

        assert [lead.id for lead in leads] == ["L1", "L2"]
        request = handler.requests[0]
        assert request.url.params["limit"] == "10000"
        assert request.headers["Authorization"] == "Bearer secret"
        await store.close()

    @pytest.mark.asyncio
    async def test_update_status_sends_patch(self):
        handler, transport = make_transport({
            ("PATCH", "/api/leads/L1/status"): (200, {"success": True}),
        })
        store = HttpLeadStore(BASE_URL, transport=transport)

        await store.update_lead_status("L1", "Closed")

        assert json.loads(handler.requests[0].content) == {"status": "Closed"}
        assert "Authorization" not in handler.requests[0].headers

    @pytest.mark.asyncio
    async def test_complete_call(self):
        _, transport = make_transport({
            ("PUT", "/api/leads/L1/complete-call"): (200, {"lead": {"_id": "L1", "name": "Ada"}}),
        })
        store = HttpLeadStore(BASE_URL, transport=transport)

        lead = await store.complete_call("L1")

        assert lead.id == "L1"
        assert lead.name == "Ada"

    @pytest.mark.asyncio
    async def test_server_error_is_store_error(self):
        """Test that HTTP failures surface as StoreError with the status"""
        _, transport = make_transport({
            ("GET", "/api/leads"): (500, {"message": "boom"}),
        })
        store = HttpLeadStore(BASE_URL, transport=transport)

        with pytest.raises(StoreError) as exc_info:
            await store.list_leads()

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_connection_error_is_store_error(self):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        store = HttpLeadStore(BASE_URL, transport=httpx.MockTransport(refuse))

        with pytest.raises(StoreError):
            await store.list_leads()


class TestHttpScheduledCallStore:

    @pytest.mark.asyncio
    async def test_list_by_lead_parses_documents(self):
        """Test camelCase parsing and origin recovered from the notes tag"""
        _, transport = make_transport({
            ("GET", "/api/scheduled-calls/lead/L1"): (200, {"scheduledCalls": [
                {
                    "_id": "c1",
                    "leadId": "L1",
                    "scheduledTime": "2026-03-02T16:00:00.000Z",
                    "status": "pending",
                    "notes": AUTO_SCHEDULED_NOTE,
                },
                {
                    "_id": "c2",
                    "leadId": {"_id": "L1"},
                    "scheduledTime": "2026-03-03T09:00:00.000Z",
                    "status": "completed",
                    "notes": "demo",
                },
            ]}),
        })
        store = HttpScheduledCallStore(BASE_URL, transport=transport)

        calls = await store.list_by_lead("L1")

        assert [call.id for call in calls] == ["c1", "c2"]
        assert calls[0].origin == CallOrigin.AUTO
        assert calls[0].is_pending
        assert calls[1].origin == CallOrigin.MANUAL
        assert not calls[1].is_pending

    @pytest.mark.asyncio
    async def test_create_posts_payload(self):
        """Test the create payload and the wrapped response"""
        handler, transport = make_transport({
            ("POST", "/api/scheduled-calls"): (201, {"scheduledCall": {
                "_id": "c9",
                "leadId": "L1",
                "scheduledTime": "2026-03-02T16:00:00.000Z",
                "notes": "",
            }}),
        })
        store = HttpScheduledCallStore(BASE_URL, transport=transport)

        call = await store.create("L1", T0, notes="", origin=CallOrigin.AUTO)

        body = json.loads(handler.requests[0].content)
        assert body["leadId"] == "L1"
        assert body["origin"] == "auto"
        assert body["scheduledTime"].startswith("2026-03-02T14:00:00")
        assert call.id == "c9"
        # the API dropped origin; the requested one is kept
        assert call.origin == CallOrigin.AUTO

    @pytest.mark.asyncio
    async def test_create_without_record_fails(self):
        _, transport = make_transport({
            ("POST", "/api/scheduled-calls"): (200, {"success": True}),
        })
        store = HttpScheduledCallStore(BASE_URL, transport=transport)

        with pytest.raises(StoreError):
            await store.create("L1", T0)

    @pytest.mark.asyncio
    async def test_update_and_delete(self):
        handler, transport = make_transport({
            ("PUT", "/api/scheduled-calls/c1"): (200, {"scheduledCall": {
                "_id": "c1", "leadId": "L1", "scheduledTime": "2026-03-02T18:00:00Z", "notes": "moved",
            }}),
            ("DELETE", "/api/scheduled-calls/c1"): (200, {"success": True}),
        })
        store = HttpScheduledCallStore(BASE_URL, transport=transport)

        updated = await store.update("c1", T0, "moved")
        await store.delete("c1")

        assert updated.notes == "moved"
        assert [r.method for r in handler.requests] == ["PUT", "DELETE"]

    @pytest.mark.asyncio
    async def test_delete_missing_call(self):
        _, transport = make_transport({})
        store = HttpScheduledCallStore(BASE_URL, transport=transport)

        with pytest.raises(StoreError) as exc_info:
            await store.delete("missing")

        assert exc_info.value.status_code == 404
