"""
REST Stores
Lead and scheduled-call stores backed by the leads REST API.

Endpoints:
    GET    /api/leads?limit=10000                -> {"leads": [...]}
    PATCH  /api/leads/{id}/status
    PUT    /api/leads/{id}/complete-call
    GET    /api/scheduled-calls/lead/{lead_id}   -> {"scheduledCalls": [...]}
    POST   /api/scheduled-calls                  -> {"scheduledCall": {...}}
    PUT    /api/scheduled-calls/{id}
    DELETE /api/scheduled-calls/{id}
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from calldesk.domain.interfaces.lead_store import LeadStore
from calldesk.domain.interfaces.scheduled_call_store import ScheduledCallStore
from calldesk.domain.interfaces.store_errors import StoreError
from calldesk.domain.models.lead import Lead
from calldesk.domain.models.scheduled_call import CallOrigin, ScheduledCall

logger = logging.getLogger(__name__)


# The API pages leads; the worklist wants all of them at once
LEADS_PAGE_LIMIT = 10000


class _RestClient:
    """Shared httpx client with bearer auth and error translation."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport
        )

    async def request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise StoreError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            logger.debug(f"{method} {path} -> {response.status_code}: {response.text}")
            raise StoreError(
                f"{method} {path} returned {response.status_code}",
                status_code=response.status_code
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise StoreError(f"{method} {path} returned invalid JSON") from e

    async def close(self) -> None:
        await self._client.aclose()


class HttpLeadStore(LeadStore):
    """LeadStore over the leads REST API"""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._rest = _RestClient(base_url, token, timeout, transport)

    async def list_leads(self, filters: Optional[Dict[str, Any]] = None) -> List[Lead]:
        params = {"limit": LEADS_PAGE_LIMIT, **(filters or {})}
        data = await self._rest.request("GET", "/api/leads", params=params)
        return [Lead.from_store_dict(item) for item in data.get("leads") or []]

    async def update_lead_status(self, lead_id: str, status: str) -> None:
        await self._rest.request("PATCH", f"/api/leads/{lead_id}/status", json={"status": status})

    async def complete_call(self, lead_id: str) -> Lead:
        data = await self._rest.request("PUT", f"/api/leads/{lead_id}/complete-call")
        record = data.get("lead") or data
        if not record.get("_id") and not record.get("id"):
            record = {**record, "_id": lead_id}
        return Lead.from_store_dict(record)

    async def close(self) -> None:
        await self._rest.close()


class HttpScheduledCallStore(ScheduledCallStore):
    """ScheduledCallStore over the scheduled-calls REST API"""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._rest = _RestClient(base_url, token, timeout, transport)

    @staticmethod
    def _parse_call(data: Dict[str, Any]) -> ScheduledCall:
        record = data.get("scheduledCall") or data
        if not (record.get("_id") or record.get("id")):
            raise StoreError("Response did not include the scheduled call")
        try:
            return ScheduledCall.from_store_dict(record)
        except ValueError as e:
            raise StoreError(f"Malformed scheduled call record: {e}") from e

    async def list_by_lead(self, lead_id: str) -> List[ScheduledCall]:
        data = await self._rest.request("GET", f"/api/scheduled-calls/lead/{lead_id}")
        calls = []
        for item in data.get("scheduledCalls") or []:
            try:
                calls.append(ScheduledCall.from_store_dict(item))
            except ValueError as e:
                logger.warning(f"Skipping malformed scheduled call for lead {lead_id}: {e}")
        return calls

    async def create(
        self,
        lead_id: str,
        scheduled_time: datetime,
        notes: str = "",
        origin: CallOrigin = CallOrigin.MANUAL
    ) -> ScheduledCall:
        payload = {
            "leadId": lead_id,
            "scheduledTime": scheduled_time.isoformat(),
            "notes": notes,
            "origin": origin.value,
        }
        data = await self._rest.request("POST", "/api/scheduled-calls", json=payload)
        call = self._parse_call(data)
        if call.origin != origin:
            # Older API versions drop unknown fields
            call = call.model_copy(update={"origin": origin})
        return call

    async def update(self, call_id: str, scheduled_time: datetime, notes: str) -> ScheduledCall:
        payload = {"scheduledTime": scheduled_time.isoformat(), "notes": notes}
        data = await self._rest.request("PUT", f"/api/scheduled-calls/{call_id}", json=payload)
        return self._parse_call(data)

    async def delete(self, call_id: str) -> None:
        await self._rest.request("DELETE", f"/api/scheduled-calls/{call_id}")

    async def close(self) -> None:
        await self._rest.close()
