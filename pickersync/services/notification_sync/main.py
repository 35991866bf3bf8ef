"""HTTP surface for notification snapshots, visibility and acknowledgment."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException

from pickersync.common.config import settings
from pickersync.common.logging import configure_logging
from pickersync.common.metrics import metrics_response
from pickersync.common.startup import log_startup_config
from pickersync.common.tracing import instrument_app, setup_tracing
from pickersync.services.notification_sync.schemas import (
    AcknowledgeRequest,
    AcknowledgeResponse,
    CategorySnapshot,
    UnreadCountResponse,
    VisibilityRequest,
)
from pickersync.services.notification_sync.service import NotificationSyncService

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(["service_name", "api_base_url", "auth_token", "user_role", "poll_interval_seconds"])
service = NotificationSyncService.from_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Run the polling loop with FastAPI application lifecycle."""

    await service.start()
    yield
    await service.aclose()


app = FastAPI(title="Notification Sync Service", lifespan=lifespan)
instrument_app(app)


def _pipeline_or_404(category: str):
    try:
        return service.pipeline(category)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="unknown notification category") from exc


@app.get("/notifications/unread-count", response_model=UnreadCountResponse)
async def unread_count():
    """Unread entries across the current role's categories."""

    return UnreadCountResponse(count=service.unread_count())


@app.get("/notifications/{category}", response_model=CategorySnapshot)
async def get_snapshot(category: str):
    return _pipeline_or_404(category).snapshot()


@app.put("/notifications/{category}/visible", response_model=CategorySnapshot)
async def set_visible(category: str, req: VisibilityRequest):
    pipeline = _pipeline_or_404(category)
    pipeline.set_visible(req.visible)
    return pipeline.snapshot()


@app.post("/notifications/{category}/acknowledge", response_model=AcknowledgeResponse)
async def acknowledge(category: str, req: AcknowledgeRequest):
    """Mark read, close the modal and return the navigation target."""

    _pipeline_or_404(category)
    try:
        path = await service.acknowledge(category, req.order_id, req.offer_id)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return AcknowledgeResponse(navigate=path)


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@app.get("/health")
def health():
    """Container health probe endpoint."""

    return {"ok": True, "polling": service.running}
