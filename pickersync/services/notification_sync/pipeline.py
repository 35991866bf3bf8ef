"""Per-category dedup, history and presentation pipeline.

One `CategoryPipeline` instance exists per notification category. Category
differences (classifier, identity key, resolver hook, navigation route) are
injected; the dedup and presentation rules are shared.
"""

import asyncio
from collections.abc import Awaitable, Callable

from pickersync.common.config import settings
from pickersync.common.logging import category_ctx, logger
from pickersync.common.metrics import (
    duplicate_notifications_skipped_total,
    notification_mark_read_failures_total,
    notifications_dropped_total,
    notifications_presented_total,
)
from pickersync.common.state_machine import PRESENTATION_TRANSITIONS, validate_transition
from pickersync.services.notification_sync.schemas import CategorySnapshot, Notification, RawNotificationRecord


class SeenSet:
    """Identity keys that already went through presentation gating. Only grows."""

    def __init__(self) -> None:
        self._keys: set[str] = set()

    def mark_if_new(self, key: str) -> bool:
        if key in self._keys:
            return False
        self._keys.add(key)
        return True

    def __contains__(self, key: str) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)


class HistoryLedger:
    """Ordered notifications of one category, unique by identity key.

    Besides the visible entry, each key remembers every server notification id
    that mapped onto it so read-state can be pushed for all of them.
    """

    def __init__(self) -> None:
        self._entries: list[Notification] = []
        self._index: dict[str, Notification] = {}
        self._source_ids: dict[str, list[str]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._index

    def get(self, key: str) -> Notification | None:
        return self._index.get(key)

    def source_ids(self, key: str) -> list[str]:
        return list(self._source_ids.get(key, []))

    def insert(self, key: str, notification: Notification, position: int) -> None:
        if key in self._index:
            raise ValueError(f"duplicate history key {key}")
        self._entries.insert(position, notification)
        self._index[key] = notification
        self._source_ids[key] = [notification.id] if notification.id else []

    def merge(self, key: str, notification: Notification) -> None:
        """Fold a re-fetched record into the existing entry for `key`."""

        entry = self._index[key]
        ids = self._source_ids[key]
        if notification.id and notification.id not in ids:
            ids.append(notification.id)
        if notification.timestamp < entry.timestamp:
            return
        for field, value in notification:
            if field in ("id", "is_read"):
                continue
            if field == "is_shown":
                value = entry.is_shown or value
            setattr(entry, field, value)

    def upsert_read(self, key: str) -> bool:
        """Mark the entry read in place; False when missing or already read."""

        entry = self._index.get(key)
        if entry is None or entry.is_read:
            return False
        entry.is_read = True
        return True

    def keys_where(self, predicate: Callable[[Notification], bool]) -> list[str]:
        return [key for key, entry in self._index.items() if predicate(entry)]

    def unread_count(self) -> int:
        return sum(1 for entry in self._entries if not entry.is_read)

    def snapshot(self) -> list[Notification]:
        return [entry.model_copy() for entry in self._entries]


class PresentationState:
    """HIDDEN/SHOWING modal state with a single auto-close timer."""

    def __init__(self, scheduler, auto_close_seconds: float) -> None:
        self.scheduler = scheduler
        self.auto_close_seconds = auto_close_seconds
        self.state = "HIDDEN"
        self.current: Notification | None = None
        self._timer = None

    @property
    def visible(self) -> bool:
        return self.state == "SHOWING"

    def show(self, notification: Notification) -> None:
        validate_transition(self.state, "SHOWING", PRESENTATION_TRANSITIONS)
        self.current = notification
        self.state = "SHOWING"
        self._arm_timer()

    def reshow(self) -> bool:
        if self.current is None:
            return False
        self.show(self.current)
        return True

    def hide(self) -> None:
        validate_transition(self.state, "HIDDEN", PRESENTATION_TRANSITIONS)
        self.state = "HIDDEN"
        self._cancel_timer()

    def close(self) -> None:
        self.hide()

    def _arm_timer(self) -> None:
        self._cancel_timer()
        self._timer = self.scheduler.call_later(self.auto_close_seconds, self._expire)

    def _expire(self) -> None:
        self._timer = None
        if self.state == "SHOWING":
            self.state = "HIDDEN"

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


class CategoryPipeline:
    """Classify -> screen -> dedup -> {history, presentation} for one category."""

    def __init__(
        self,
        name: str,
        role: str,
        classify: Callable[[RawNotificationRecord], Notification | None],
        identity_key: Callable[[Notification], str],
        route: Callable[[str, str | None], Awaitable[str]],
        feed,
        scheduler,
        admit: Callable[[Notification], Awaitable[bool]] | None = None,
        auto_close_seconds: float | None = None,
        retry_unresolved: bool | None = None,
        service_name: str | None = None,
    ) -> None:
        self.name = name
        self.role = role
        self.classify = classify
        self.identity_key = identity_key
        self.route = route
        self.feed = feed
        self.admit = admit
        self.retry_unresolved = settings.retry_unresolved_orders if retry_unresolved is None else retry_unresolved
        self.service_name = service_name or settings.service_name
        self.seen = SeenSet()
        self.history = HistoryLedger()
        self.presentation = PresentationState(
            scheduler,
            settings.auto_close_seconds if auto_close_seconds is None else auto_close_seconds,
        )
        self.bootstrapped = False
        self.closed = False
        self._rejected: set[str] = set()
        # Keys whose lookup failed during hydration; seeded silently once admitted.
        self._deferred: set[str] = set()
        self._writes: set[asyncio.Task] = set()

    async def bootstrap(self, records: list[RawNotificationRecord]) -> None:
        """Hydrate history and seed the seen-set without presenting anything."""

        if self.bootstrapped:
            return
        await self._ingest(records, hydrate=True)
        if not self.closed:
            self.bootstrapped = True
            logger.info("pipeline bootstrapped category=%s history=%s", self.name, len(self.history))

    async def ingest(self, records: list[RawNotificationRecord]) -> Notification | None:
        """Merge one live poll page; returns the notification presented, if any."""

        return await self._ingest(records, hydrate=False)

    async def _ingest(self, records: list[RawNotificationRecord], hydrate: bool) -> Notification | None:
        token = category_ctx.set(self.name)
        try:
            classified = [n for n in (self.classify(record) for record in records) if n is not None]
            admitted = await self._screen(classified, hydrate)
            if self.closed:
                return None
            return self._apply(admitted, hydrate)
        finally:
            category_ctx.reset(token)

    async def _screen(self, notifications: list[Notification], hydrate: bool = False) -> list[Notification]:
        """Run the admission hook for identities not seen or rejected before."""

        candidates = []
        for notification in notifications:
            key = self.identity_key(notification)
            if key in self._rejected:
                continue
            candidates.append((key, notification))
        if self.admit is None:
            return [n for _, n in candidates]

        pending = [(key, n) for key, n in candidates if key not in self.seen]
        verdicts = await asyncio.gather(*(self.admit(n) for _, n in pending), return_exceptions=True)
        verdict_by_key: dict[str, bool | BaseException] = {}
        for (key, _), verdict in zip(pending, verdicts):
            verdict_by_key.setdefault(key, verdict)

        admitted = []
        for key, notification in candidates:
            verdict = verdict_by_key.get(key, True)
            if verdict is True:
                admitted.append(notification)
                continue
            if isinstance(verdict, BaseException):
                logger.debug("admission lookup failed category=%s key=%s error=%s", self.name, key, verdict)
                notifications_dropped_total.labels(
                    service=self.service_name, category=self.name, reason="unresolved"
                ).inc()
                if not self.retry_unresolved:
                    self._rejected.add(key)
                elif hydrate:
                    self._deferred.add(key)
                continue
            notifications_dropped_total.labels(service=self.service_name, category=self.name, reason="rejected").inc()
            self._rejected.add(key)
            self._deferred.discard(key)
        return admitted

    def _apply(self, notifications: list[Notification], hydrate: bool) -> Notification | None:
        presented = None
        position = 0
        for notification in notifications:
            key = self.identity_key(notification)
            if key in self.seen:
                if key in self.history:
                    self.history.merge(key, notification)
                if not hydrate:
                    duplicate_notifications_skipped_total.labels(service=self.service_name, category=self.name).inc()
                continue
            silent = hydrate or key in self._deferred
            if silent:
                self._mark_shown(notification)
            else:
                # Live arrivals start unread whatever the server says.
                notification.is_read = False
            # History first: a failed insert must leave the key unseen.
            self.history.insert(key, notification, len(self.history) if silent else position)
            self.seen.mark_if_new(key)
            self._deferred.discard(key)
            if silent:
                continue
            position += 1
            if presented is None:
                presented = notification
        if presented is not None:
            self._mark_shown(presented)
            self.presentation.show(presented)
            notifications_presented_total.labels(service=self.service_name, category=self.name).inc()
            logger.info("notification presented category=%s key=%s", self.name, self.identity_key(presented))
        return presented

    @staticmethod
    def _mark_shown(notification: Notification) -> None:
        if "is_shown" in type(notification).model_fields:
            notification.is_shown = True

    def acknowledge(self, key: str) -> bool:
        """Mark `key` read (remote best-effort, then local) and hide the modal."""

        entry = self.history.get(key)
        changed = False
        if entry is not None and not entry.is_read:
            for notification_id in self.history.source_ids(key):
                self._fire_mark_read(notification_id)
            changed = self.history.upsert_read(key)
        self.presentation.hide()
        return changed

    def _fire_mark_read(self, notification_id: str) -> None:
        task = asyncio.get_running_loop().create_task(self._mark_read(notification_id))
        self._writes.add(task)
        task.add_done_callback(self._writes.discard)

    async def _mark_read(self, notification_id: str) -> None:
        try:
            await self.feed.mark_read(notification_id)
        except Exception as exc:
            notification_mark_read_failures_total.labels(service=self.service_name, category=self.name).inc()
            logger.warning("mark read failed category=%s id=%s error=%s", self.name, notification_id, exc)

    async def drain(self) -> None:
        """Wait for outstanding mark-read calls."""

        if self._writes:
            await asyncio.gather(*list(self._writes))

    def set_visible(self, visible: bool) -> None:
        if visible:
            # No timers once the session is torn down.
            if not self.closed:
                self.presentation.reshow()
        else:
            self.presentation.hide()

    def snapshot(self) -> CategorySnapshot:
        current = self.presentation.current
        return CategorySnapshot(
            category=self.name,
            current=current.model_copy() if current is not None else None,
            history=self.history.snapshot(),
            visible=self.presentation.visible,
        )

    def close(self) -> None:
        self.closed = True
        self.presentation.close()
