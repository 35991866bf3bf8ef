"""Notification sync service.

Owns the polling loop for one authenticated session: bootstraps each category
silently on its first activation, polls the feed on a fixed period, fans pages
out to the category pipelines of the current role, and turns acknowledgments
into read-state plus navigation.
"""

from time import perf_counter

from pickersync.common.config import settings
from pickersync.common.logging import logger, role_ctx
from pickersync.common.metrics import notification_poll_seconds, notification_polls_total
from pickersync.common.scheduler import Scheduler
from pickersync.common.state_machine import POLLING_TRANSITIONS, validate_transition
from pickersync.common.tracing import tracer
from pickersync.services.notification_sync.classifiers import (
    classify_counter_offer,
    classify_new_order,
    classify_order_accepted,
)
from pickersync.services.notification_sync.client import (
    FeedFetchError,
    NotificationFeedClient,
    OrderLookupError,
    OrderStatusResolver,
)
from pickersync.services.notification_sync.pipeline import CategoryPipeline
from pickersync.services.notification_sync.schemas import (
    ACCEPTED,
    CANCELLED,
    DELIVERED,
    ORDERER,
    PICKER,
    CategorySnapshot,
    NewOrderNotification,
)
from pickersync.services.notification_sync.session import IntentRouter, SessionState

NEW_ORDER = "new_order"
ORDER_ACCEPTED = "order_accepted"
COUNTER_OFFER = "counter_offer"


class NotificationSyncService:
    """Lifecycle owner for the three category pipelines of one session."""

    def __init__(
        self,
        session,
        feed,
        resolver,
        router,
        scheduler=None,
        poll_interval_seconds: float | None = None,
        auto_close_seconds: float | None = None,
        retry_unresolved: bool | None = None,
        service_name: str | None = None,
    ) -> None:
        self.session = session
        self.feed = feed
        self.resolver = resolver
        self.router = router
        self.scheduler = scheduler or Scheduler()
        self.service_name = service_name or settings.service_name
        self.poll_interval_seconds = (
            settings.poll_interval_seconds if poll_interval_seconds is None else poll_interval_seconds
        )
        self.state = "IDLE"
        self._started = False
        self._running = False
        self._poller = None

        common = dict(
            feed=feed,
            scheduler=self.scheduler,
            auto_close_seconds=auto_close_seconds,
            retry_unresolved=retry_unresolved,
            service_name=self.service_name,
        )
        self.pipelines: dict[str, CategoryPipeline] = {
            NEW_ORDER: CategoryPipeline(
                NEW_ORDER,
                PICKER,
                classify_new_order,
                lambda n: n.id,
                self._new_order_route,
                admit=self._admit_open_order,
                **common,
            ),
            ORDER_ACCEPTED: CategoryPipeline(
                ORDER_ACCEPTED,
                ORDERER,
                classify_order_accepted,
                lambda n: n.order_id,
                self._order_accepted_route,
                **common,
            ),
            COUNTER_OFFER: CategoryPipeline(
                COUNTER_OFFER,
                ORDERER,
                classify_counter_offer,
                lambda n: n.offer_id,
                self._counter_offer_route,
                **common,
            ),
        }

    @classmethod
    def from_settings(cls, session: SessionState | None = None, router=None) -> "NotificationSyncService":
        """Wire HTTP clients against `settings.api_base_url`."""

        session = session or SessionState.from_settings()
        return cls(
            session=session,
            feed=NotificationFeedClient(session),
            resolver=OrderStatusResolver(session),
            router=router or IntentRouter(),
        )

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> bool:
        """Bootstrap the current role's categories, then start periodic polling.

        Does nothing without an auth token. Calling it again is a no-op.
        """

        if self._started:
            return self._running
        if not self.session.get_auth_token():
            logger.info("no auth token; notification polling not started")
            return False
        self._started = True
        self._running = True
        await self.poll_once()
        if self._running:
            self._poller = self.scheduler.every(self.poll_interval_seconds, self.poll_once, name="notification-poll")
            logger.info("notification polling started interval_s=%s", self.poll_interval_seconds)
        return self._running

    def stop(self) -> None:
        """Cancel polling and every pending auto-close timer."""

        self._running = False
        if self._poller is not None:
            self._poller.cancel()
            self._poller = None
        for pipeline in self.pipelines.values():
            pipeline.close()
        self.scheduler.cancel_all()
        logger.info("notification polling stopped")

    async def aclose(self) -> None:
        self.stop()
        for pipeline in self.pipelines.values():
            await pipeline.drain()
        for client in (self.feed, self.resolver):
            close = getattr(client, "close", None)
            if close is not None:
                await close()

    def _transition(self, new_state: str) -> None:
        validate_transition(self.state, new_state, POLLING_TRANSITIONS)
        self.state = new_state

    async def poll_once(self) -> bool:
        """Run one poll cycle. Returns True when the cycle merged a page."""

        if not self._running:
            return False
        if self.state != "IDLE":
            notification_polls_total.labels(service=self.service_name, result="skipped").inc()
            logger.debug("poll skipped; previous cycle outstanding state=%s", self.state)
            return False
        if not self.session.get_auth_token():
            notification_polls_total.labels(service=self.service_name, result="no_session").inc()
            return False
        role = self.session.get_current_role()
        active = [p for p in self.pipelines.values() if p.role == role]
        for pipeline in self.pipelines.values():
            if pipeline.role != role and pipeline.presentation.visible:
                logger.info("hiding inactive role modal category=%s role=%s", pipeline.name, role)
                pipeline.presentation.hide()
        if not active:
            return False

        role_token = role_ctx.set(role)
        started = perf_counter()
        self._transition("POLLING")
        try:
            with tracer.start_as_current_span("notification_poll") as span:
                span.set_attribute("role", role)
                hydrating = [p for p in active if not p.bootstrapped]
                live = [p for p in active if p.bootstrapped]
                hydration_records = []
                live_records = []
                if hydrating:
                    hydration_records = await self.feed.fetch_all(
                        limit=settings.bootstrap_page_limit,
                        max_pages=settings.bootstrap_max_pages,
                    )
                if live:
                    page = await self.feed.fetch_page(1, settings.poll_page_limit)
                    live_records = page.records
                if not self._running:
                    return False
                self._transition("MERGING")
                for pipeline in hydrating:
                    await pipeline.bootstrap(hydration_records)
                for pipeline in live:
                    await pipeline.ingest(live_records)
            notification_polls_total.labels(service=self.service_name, result="ok").inc()
            return True
        except FeedFetchError as exc:
            notification_polls_total.labels(service=self.service_name, result="failed").inc()
            logger.warning("poll cycle failed error=%s", exc)
            return False
        finally:
            self._transition("IDLE")
            notification_poll_seconds.labels(service=self.service_name).observe(max(0.0, perf_counter() - started))
            role_ctx.reset(role_token)

    def pipeline(self, category: str) -> CategoryPipeline:
        try:
            return self.pipelines[category]
        except KeyError:
            raise KeyError(f"unknown notification category: {category}") from None

    def snapshot(self, category: str) -> CategorySnapshot:
        return self.pipeline(category).snapshot()

    def set_visible(self, category: str, visible: bool) -> None:
        self.pipeline(category).set_visible(visible)

    def unread_count(self, role: str | None = None) -> int:
        """Unread history entries across the categories of `role` (default: current)."""

        role = (role or self.session.get_current_role()).upper()
        return sum(p.history.unread_count() for p in self.pipelines.values() if p.role == role)

    async def acknowledge(self, category: str, order_id: str, offer_id: str | None = None) -> str:
        """Mark the matching entries read, hide the modal and navigate.

        Returns the path handed to the router.
        """

        pipeline = self.pipeline(category)
        if category == NEW_ORDER:
            keys = pipeline.history.keys_where(lambda n: n.order_id == order_id)
        elif category == COUNTER_OFFER:
            if not offer_id:
                raise ValueError("offer_id is required to acknowledge a counter offer")
            keys = [offer_id]
        else:
            keys = [order_id]

        if keys:
            for key in keys:
                pipeline.acknowledge(key)
        else:
            pipeline.presentation.hide()

        path = await pipeline.route(order_id, offer_id)
        self.router.navigate(path)
        return path

    async def _admit_open_order(self, notification: NewOrderNotification) -> bool:
        return await self.resolver.resolve_status(notification.order_id) != CANCELLED

    async def _new_order_route(self, order_id: str, offer_id: str | None = None) -> str:
        try:
            status = await self.resolver.resolve_status(order_id)
        except OrderLookupError as exc:
            logger.debug("route status lookup failed order_id=%s error=%s", order_id, exc)
            return f"/picker/orders/{order_id}"
        if status in (ACCEPTED, DELIVERED):
            return f"/picker/orders/{order_id}/view"
        return f"/picker/orders/{order_id}"

    async def _order_accepted_route(self, order_id: str, offer_id: str | None = None) -> str:
        return f"/orderer/order-accepted/{order_id}"

    async def _counter_offer_route(self, order_id: str, offer_id: str | None = None) -> str:
        return f"/orderer/counter-offer-received/{order_id}/{offer_id}"
