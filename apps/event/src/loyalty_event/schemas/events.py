"""Inbound order notification envelopes (Pub/Sub push format)."""

from __future__ import annotations

import base64
import binascii
import json
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field


class EventDecodeError(ValueError):
    """Raised when an inbound notification cannot be turned into an order event."""


class OrderEventType(str, Enum):
    ORDER_CREATED = "OrderCreated"
    ORDER_STATE_CHANGED = "OrderStateChanged"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: object) -> "OrderEventType":
        for member in cls:
            if member.value == value:
                return member
        return cls.OTHER


class PubSubMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    data: str | None = None
    message_id: str | None = Field(None, alias="messageId")
    attributes: dict[str, str] = Field(default_factory=dict)


class PubSubEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: PubSubMessage | None = None
    subscription: str | None = None


class OrderEvent(BaseModel):
    """Decoded order-lifecycle notification handed to the loyalty processor."""

    model_config = ConfigDict(frozen=True)

    type: OrderEventType
    raw_type: str | None = None
    order_id: str
    order_state: str | None = None
    message_id: str | None = None


class SubscriptionNotice(BaseModel):
    """Platform notice that a subscription was created; carries no order."""

    model_config = ConfigDict(frozen=True)

    notification_type: str


def decode_message_data(message: PubSubMessage) -> dict[str, Any]:
    if not message.data:
        raise EventDecodeError("No data in the Pub/Sub message")
    try:
        decoded = base64.b64decode(message.data, validate=False).decode("utf-8").strip()
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise EventDecodeError("Pub/Sub message data is not valid base64 text") from exc
    if not decoded:
        raise EventDecodeError("No data in the Pub/Sub message")
    try:
        payload = json.loads(decoded)
    except json.JSONDecodeError as exc:
        raise EventDecodeError("Pub/Sub message data is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise EventDecodeError("Pub/Sub message data must be a JSON object")
    return payload


def _extract_order_id(payload: Mapping[str, Any]) -> str | None:
    for container in ("order", "resource"):
        candidate = payload.get(container)
        if isinstance(candidate, Mapping):
            order_id = candidate.get("id")
            if isinstance(order_id, str) and order_id:
                return order_id
    return None


def parse_notification(envelope: PubSubEnvelope) -> OrderEvent | SubscriptionNotice:
    """Validate the push envelope and classify its payload."""

    if envelope.message is None:
        raise EventDecodeError("Wrong Pub/Sub message format")

    payload = decode_message_data(envelope.message)

    notification_type = payload.get("notificationType")
    if notification_type == "ResourceCreated":
        return SubscriptionNotice(notification_type=notification_type)

    order_id = _extract_order_id(payload)
    if not order_id:
        raise EventDecodeError("No order id in the Pub/Sub message")

    raw_type = payload.get("type")
    order_state = payload.get("orderState")
    return OrderEvent(
        type=OrderEventType.parse(raw_type),
        raw_type=raw_type if isinstance(raw_type, str) else None,
        order_id=order_id,
        order_state=order_state if isinstance(order_state, str) else None,
        message_id=envelope.message.message_id,
    )


__all__ = [
    "EventDecodeError",
    "OrderEvent",
    "OrderEventType",
    "PubSubEnvelope",
    "PubSubMessage",
    "SubscriptionNotice",
    "decode_message_data",
    "parse_notification",
]
