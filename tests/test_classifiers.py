"""Classifier field extraction and safe defaults."""

from decimal import Decimal

from pickersync.services.notification_sync.classifiers import (
    classify_counter_offer,
    classify_new_order,
    classify_order_accepted,
    epoch_millis,
    parse_amount,
)
from pickersync.services.notification_sync.schemas import RawNotificationRecord


def record(**fields) -> RawNotificationRecord:
    return RawNotificationRecord.model_validate(fields)


def test_new_order_fields_are_extracted():
    rec = record(
        id="n1",
        type="NEW_ORDER_AVAILABLE",
        entity_id="O1",
        data={
            "orderer_name": "Ana",
            "origin_city": "Madrid",
            "origin_country": "Spain",
            "destination_city": "Paris",
            "destination_country": "France",
            "reward_amount": "12.50",
        },
        notification_shown_at="2024-05-01T10:00:05Z",
        created_at="2024-05-01T10:00:00Z",
    )

    notification = classify_new_order(rec)

    assert notification.order_id == "O1"
    assert notification.orderer_name == "Ana"
    assert notification.destination_country == "France"
    assert notification.reward_amount == Decimal("12.50")
    assert notification.is_shown is True
    assert notification.timestamp == 1714557600000


def test_type_mismatch_returns_none():
    rec = record(id="n1", type="ORDER_ACCEPTED", entity_id="O1")

    assert classify_new_order(rec) is None
    assert classify_counter_offer(rec) is None
    assert classify_order_accepted(rec) is not None


def test_actor_name_falls_back_to_message_then_unknown():
    with_message = record(id="n1", type="ORDER_ACCEPTED", entity_id="O1", message="Luis accepted")
    bare = record(id="n2", type="ORDER_ACCEPTED", entity_id="O2")

    assert classify_order_accepted(with_message).picker_name == "Luis accepted"
    assert classify_order_accepted(bare).picker_name == "Unknown"


def test_counter_offer_takes_order_from_data_and_offer_from_entity():
    rec = record(id="n3", type="COUNTER_OFFER_RECEIVED", entity_id="F9", data={"order_id": "O7", "picker_name": "Eva"})

    notification = classify_counter_offer(rec)

    assert notification.offer_id == "F9"
    assert notification.order_id == "O7"
    assert notification.picker_name == "Eva"


def test_malformed_record_gets_safe_defaults():
    rec = RawNotificationRecord.model_validate(
        {"id": 42, "type": "NEW_ORDER_AVAILABLE", "entity_id": None, "data": "oops", "created_at": "yesterday"}
    )

    notification = classify_new_order(rec)

    assert notification.id == "42"
    assert notification.order_id == ""
    assert notification.orderer_name == "Unknown"
    assert notification.origin_city == ""
    assert notification.reward_amount == Decimal(0)
    assert notification.timestamp == 0


def test_parse_amount_fails_safely():
    assert parse_amount("7") == Decimal(7)
    assert parse_amount(3.5) == Decimal("3.5")
    assert parse_amount("abc") == Decimal(0)
    assert parse_amount("NaN") == Decimal(0)
    assert parse_amount(None) == Decimal(0)


def test_naive_timestamps_are_treated_as_utc():
    assert epoch_millis("2024-05-01T10:00:00") == epoch_millis("2024-05-01T10:00:00+00:00")
    assert epoch_millis(None) == 0
