"""HTTP clients for the notification feed and order lookup APIs.

Both clients read the bearer token from the session provider on every request,
so a logout or token refresh is picked up without rebuilding the client.
"""

import httpx

from pickersync.common.config import settings
from pickersync.services.notification_sync.schemas import FeedPage, RawNotificationRecord


class FeedFetchError(Exception):
    """Transport, status or parse failure while talking to the feed API."""


class OrderLookupError(Exception):
    """Order status could not be resolved."""


class _ApiClient:
    def __init__(self, session, base_url: str | None = None, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.session = session
        self._http = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=settings.http_timeout_seconds,
            transport=transport,
        )

    def _headers(self) -> dict[str, str]:
        token = self.session.get_auth_token()
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    async def _request_json(self, method: str, path: str, **kwargs):
        resp = await self._http.request(method, path, headers=self._headers(), **kwargs)
        resp.raise_for_status()
        if not resp.content:
            return None
        return resp.json()

    async def close(self) -> None:
        await self._http.aclose()


class NotificationFeedClient(_ApiClient):
    """Reads `GET /notifications` pages and writes read-state."""

    async def fetch_page(self, page: int = 1, limit: int = 20) -> FeedPage:
        """Fetch one page as the server orders it (most recent first)."""

        if page < 1:
            raise ValueError("page must be >= 1")
        if limit <= 0:
            raise ValueError("limit must be > 0")
        try:
            body = await self._request_json("GET", "/notifications", params={"page": page, "limit": limit})
        except (httpx.HTTPError, ValueError) as exc:
            raise FeedFetchError(f"notifications page={page} limit={limit}: {exc}") from exc
        if not isinstance(body, dict):
            raise FeedFetchError(f"notifications page={page}: unexpected body type {type(body).__name__}")
        rows = body.get("data") or []
        pagination = body.get("pagination") or {}
        if not isinstance(rows, list) or not isinstance(pagination, dict):
            raise FeedFetchError(f"notifications page={page}: malformed envelope")
        records = [RawNotificationRecord.model_validate(row) for row in rows if isinstance(row, dict)]
        return FeedPage(records=records, has_more=pagination.get("has_more") is True)

    async def fetch_all(self, limit: int = 100, max_pages: int = 10) -> list[RawNotificationRecord]:
        """Walk pages while the server reports more, up to `max_pages`."""

        records: list[RawNotificationRecord] = []
        page = 1
        while page <= max_pages:
            result = await self.fetch_page(page, limit)
            if not result.records:
                break
            records.extend(result.records)
            if not result.has_more:
                break
            page += 1
        return records

    async def mark_read(self, notification_id: str) -> None:
        try:
            await self._request_json("PUT", f"/notifications/{notification_id}/read", json={})
        except (httpx.HTTPError, ValueError) as exc:
            raise FeedFetchError(f"mark read id={notification_id}: {exc}") from exc


class OrderStatusResolver(_ApiClient):
    """Looks up the current lifecycle status of one order."""

    async def resolve_status(self, order_id: str) -> str:
        if not order_id:
            raise OrderLookupError("missing order id")
        try:
            body = await self._request_json("GET", f"/orders/{order_id}")
        except (httpx.HTTPError, ValueError) as exc:
            raise OrderLookupError(f"order {order_id}: {exc}") from exc
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            body = body["data"]
        status = body.get("status") if isinstance(body, dict) else None
        if not isinstance(status, str) or not status:
            raise OrderLookupError(f"order {order_id}: no status in response")
        return status.upper()
