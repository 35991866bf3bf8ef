"""Shared fakes for notification sync tests."""

import pytest

from pickersync.services.notification_sync.client import FeedFetchError, OrderLookupError
from pickersync.services.notification_sync.schemas import FeedPage, RawNotificationRecord
from pickersync.services.notification_sync.session import SessionState


class FakeTimer:
    def __init__(self, due: float, callback) -> None:
        self.due = due
        self.callback = callback
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler:
    """Scheduler double driven by `advance()` instead of wall-clock time."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[FakeTimer] = []
        self.periodic: list[FakeTimer] = []

    def call_later(self, delay, callback):
        timer = FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    def every(self, interval, fn, name="periodic"):
        timer = FakeTimer(interval, fn)
        self.periodic.append(timer)
        return timer

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = [t for t in self.timers if not t.cancelled() and t.due <= self.now]
        self.timers = [t for t in self.timers if not t.cancelled() and t.due > self.now]
        for timer in sorted(due, key=lambda t: t.due):
            timer.callback()

    async def tick(self) -> None:
        for timer in self.periodic:
            if not timer.cancelled():
                await timer.callback()

    def cancel_all(self) -> None:
        for timer in self.timers + self.periodic:
            timer.cancel()

    @property
    def pending(self) -> int:
        return sum(1 for t in self.timers + self.periodic if not t.cancelled())


class FakeFeed:
    """Serves a mutable list of raw rows, newest first."""

    def __init__(self, rows: list[dict] | None = None) -> None:
        self.rows = list(rows or [])
        self.fail = False
        self.fail_mark_read = False
        self.fetches: list[tuple[int, int]] = []
        self.marked: list[str] = []

    def push(self, *rows: dict) -> None:
        self.rows[0:0] = list(rows)

    async def fetch_page(self, page: int = 1, limit: int = 20) -> FeedPage:
        self.fetches.append((page, limit))
        if self.fail:
            raise FeedFetchError("boom")
        start = (page - 1) * limit
        chunk = self.rows[start : start + limit]
        return FeedPage(
            records=[RawNotificationRecord.model_validate(r) for r in chunk],
            has_more=start + limit < len(self.rows),
        )

    async def fetch_all(self, limit: int = 100, max_pages: int = 10) -> list[RawNotificationRecord]:
        records = []
        for page in range(1, max_pages + 1):
            result = await self.fetch_page(page, limit)
            records.extend(result.records)
            if not result.has_more:
                break
        return records

    async def mark_read(self, notification_id: str) -> None:
        self.marked.append(notification_id)
        if self.fail_mark_read:
            raise FeedFetchError("mark read failed")


class FakeResolver:
    """Order statuses by id; ids listed in `broken` raise a lookup error."""

    def __init__(self, statuses: dict[str, str] | None = None) -> None:
        self.statuses = dict(statuses or {})
        self.broken: set[str] = set()
        self.calls: list[str] = []

    async def resolve_status(self, order_id: str) -> str:
        self.calls.append(order_id)
        if order_id in self.broken:
            raise OrderLookupError(f"order {order_id} unavailable")
        return self.statuses.get(order_id, "PENDING")


class RecordingRouter:
    def __init__(self) -> None:
        self.paths: list[str] = []

    def navigate(self, path: str) -> None:
        self.paths.append(path)


def raw(id, type, entity_id, created_at="2024-05-01T10:00:00Z", **data) -> dict:
    return {
        "id": id,
        "type": type,
        "entity_id": entity_id,
        "message": "",
        "data": data,
        "is_read": False,
        "created_at": created_at,
    }


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def feed():
    return FakeFeed()


@pytest.fixture
def resolver():
    return FakeResolver()


@pytest.fixture
def router():
    return RecordingRouter()


@pytest.fixture
def picker_session():
    return SessionState("token-1", "PICKER")


@pytest.fixture
def orderer_session():
    return SessionState("token-1", "ORDERER")
