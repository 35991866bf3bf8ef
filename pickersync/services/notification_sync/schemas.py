"""Feed records, typed notifications and API payloads for notification sync."""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, field_validator

PICKER = "PICKER"
ORDERER = "ORDERER"

NEW_ORDER_AVAILABLE = "NEW_ORDER_AVAILABLE"
ORDER_ACCEPTED = "ORDER_ACCEPTED"
COUNTER_OFFER_RECEIVED = "COUNTER_OFFER_RECEIVED"

PENDING = "PENDING"
ACCEPTED = "ACCEPTED"
DELIVERED = "DELIVERED"
CANCELLED = "CANCELLED"


class RawNotificationRecord(BaseModel):
    """One row of `GET /notifications`, parsed leniently.

    Missing fields fall back to empty values so a single malformed row never
    fails the page it arrived in.
    """

    id: str = ""
    type: str = ""
    entity_id: str = ""
    title: str = ""
    message: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
    is_read: bool = False
    notification_shown_at: str | None = None
    created_at: str | None = None

    @field_validator("id", "type", "entity_id", "title", "message", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("data", mode="before")
    @classmethod
    def _coerce_data(cls, value: Any) -> dict[str, Any]:
        return value if isinstance(value, dict) else {}

    @field_validator("is_read", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        return bool(value)

    @field_validator("notification_shown_at", "created_at", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> str | None:
        return None if value is None else str(value)


class FeedPage(BaseModel):
    """One page of the notification feed."""

    records: list[RawNotificationRecord]
    has_more: bool = False


class NewOrderNotification(BaseModel):
    """Picker-facing announcement of an order open for pickup."""

    id: str
    order_id: str
    orderer_name: str
    origin_city: str = ""
    origin_country: str = ""
    destination_city: str = ""
    destination_country: str = ""
    reward_amount: Decimal = Decimal(0)
    is_read: bool = False
    is_shown: bool = False
    timestamp: int = 0


class AcceptedOrderNotification(BaseModel):
    """Orderer-facing notice that a picker accepted one of their orders."""

    id: str
    picker_name: str
    order_id: str
    is_read: bool = False
    timestamp: int = 0


class CounterOfferNotification(BaseModel):
    """Orderer-facing notice that a picker proposed a counter offer."""

    id: str
    picker_name: str
    order_id: str
    offer_id: str
    is_read: bool = False
    timestamp: int = 0


Notification = NewOrderNotification | AcceptedOrderNotification | CounterOfferNotification


class CategorySnapshot(BaseModel):
    """Read-only view of one category handed to the UI layer."""

    category: str
    current: Notification | None = None
    history: list[Notification] = Field(default_factory=list)
    visible: bool = False


class VisibilityRequest(BaseModel):
    visible: bool


class AcknowledgeRequest(BaseModel):
    """Payload accepted by `POST /notifications/{category}/acknowledge`."""

    order_id: str = Field(min_length=1)
    offer_id: str | None = None


class AcknowledgeResponse(BaseModel):
    navigate: str


class UnreadCountResponse(BaseModel):
    count: int
