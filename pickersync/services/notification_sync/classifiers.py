"""Map raw feed rows onto typed, role-specific notifications.

Classifiers are pure: they return `None` for rows of another type and fill in
safe defaults for missing fields instead of raising.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from pickersync.services.notification_sync.schemas import (
    COUNTER_OFFER_RECEIVED,
    NEW_ORDER_AVAILABLE,
    ORDER_ACCEPTED,
    AcceptedOrderNotification,
    CounterOfferNotification,
    NewOrderNotification,
    RawNotificationRecord,
)

UNKNOWN_ACTOR = "Unknown"


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def actor_name(record: RawNotificationRecord, field: str) -> str:
    """`data[field]`, then the message, then "Unknown"."""

    return _text(record.data.get(field)) or record.message or UNKNOWN_ACTOR


def parse_amount(value: Any) -> Decimal:
    if isinstance(value, bool) or value is None:
        return Decimal(0)
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal(0)
    if not amount.is_finite():
        return Decimal(0)
    return amount


def epoch_millis(created_at: str | None) -> int:
    if not created_at:
        return 0
    try:
        parsed = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
    except ValueError:
        return 0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def classify_new_order(record: RawNotificationRecord) -> NewOrderNotification | None:
    if record.type != NEW_ORDER_AVAILABLE:
        return None
    data = record.data
    return NewOrderNotification(
        id=record.id,
        order_id=record.entity_id,
        orderer_name=actor_name(record, "orderer_name"),
        origin_city=_text(data.get("origin_city")),
        origin_country=_text(data.get("origin_country")),
        destination_city=_text(data.get("destination_city")),
        destination_country=_text(data.get("destination_country")),
        reward_amount=parse_amount(data.get("reward_amount")),
        is_read=record.is_read,
        is_shown=record.notification_shown_at is not None,
        timestamp=epoch_millis(record.created_at),
    )


def classify_order_accepted(record: RawNotificationRecord) -> AcceptedOrderNotification | None:
    if record.type != ORDER_ACCEPTED:
        return None
    return AcceptedOrderNotification(
        id=record.id,
        picker_name=actor_name(record, "picker_name"),
        order_id=record.entity_id,
        is_read=record.is_read,
        timestamp=epoch_millis(record.created_at),
    )


def classify_counter_offer(record: RawNotificationRecord) -> CounterOfferNotification | None:
    if record.type != COUNTER_OFFER_RECEIVED:
        return None
    return CounterOfferNotification(
        id=record.id,
        picker_name=actor_name(record, "picker_name"),
        order_id=_text(record.data.get("order_id")),
        offer_id=record.entity_id,
        is_read=record.is_read,
        timestamp=epoch_millis(record.created_at),
    )
