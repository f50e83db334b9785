from __future__ import annotations

import base64
import json
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from loguru import logger

from loyalty_event.app import create_app
from loyalty_event.services.loyalty import LoyaltyEventProcessor


def encode_push(payload: dict[str, Any]) -> dict[str, Any]:
    data = base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")
    return {"message": {"data": data, "messageId": "msg-1"}, "subscription": "projects/p/subscriptions/s"}


@pytest.fixture
def app_with_processor(platform, keys, store):
    app = create_app()
    app.state.event_processor = LoyaltyEventProcessor(platform, keys, store=store)
    return app


def _seed(platform) -> None:
    platform.add_payment("pay-1", 500)
    platform.add_customer("customer-1", points=10)
    platform.add_order(
        "order-1",
        customerId="customer-1",
        paymentInfo={"payments": [{"typeId": "payment", "id": "pay-1"}]},
    )


async def _post(app, path: str = "/event", **kwargs):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        return await client.post(path, **kwargs)


@pytest.mark.asyncio
async def test_order_created_push_returns_no_content(app_with_processor, platform) -> None:
    _seed(platform)

    response = await _post(
        app_with_processor,
        json=encode_push({"type": "OrderCreated", "resource": {"typeId": "order", "id": "order-1"}}),
    )

    assert response.status_code == 204
    assert platform.balance("customer-1") == 15


@pytest.mark.asyncio
async def test_versioned_path_accepts_cancellation(app_with_processor, platform) -> None:
    _seed(platform)
    platform.customers["customer-1"]["custom"]["fields"]["availablePoints"] = 15

    response = await _post(
        app_with_processor,
        "/api/v1/event",
        json=encode_push(
            {
                "type": "OrderStateChanged",
                "orderState": "Cancelled",
                "order": {"id": "order-1"},
                "resource": {"typeId": "order", "id": "ignored"},
            }
        ),
    )

    assert response.status_code == 204
    assert platform.balance("customer-1") == 10


@pytest.mark.asyncio
async def test_subscription_notice_is_accepted_without_processing(app_with_processor, platform) -> None:
    response = await _post(
        app_with_processor,
        json=encode_push({"notificationType": "ResourceCreated", "resource": {"typeId": "subscription"}}),
    )

    assert response.status_code == 202
    assert platform.update_calls == []


@pytest.mark.asyncio
async def test_unsupported_event_is_acknowledged(app_with_processor, store) -> None:
    response = await _post(
        app_with_processor,
        json=encode_push({"type": "OrderPaymentStateChanged", "resource": {"typeId": "order", "id": "order-1"}}),
    )

    assert response.status_code == 204
    assert store.snapshot().skips == {"unsupported_event": 1}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        b"",
        b"not json",
        b'{"subscription": "projects/p/subscriptions/s"}',
        b'{"message": {"data": "!!!"}}',
        b'{"message": {"messageId": "1"}}',
    ],
)
async def test_malformed_pushes_are_rejected(app_with_processor, body: bytes) -> None:
    response = await _post(app_with_processor, content=body, headers={"Content-Type": "application/json"})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_push_without_order_id_is_rejected(app_with_processor) -> None:
    response = await _post(app_with_processor, json=encode_push({"type": "OrderCreated", "resource": {}}))

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_platform_failure_requests_redelivery(app_with_processor, platform) -> None:
    _seed(platform)
    platform.failing_ids.add("order-1")

    response = await _post(
        app_with_processor,
        json=encode_push({"type": "OrderCreated", "resource": {"typeId": "order", "id": "order-1"}}),
    )

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_unconfigured_processor_returns_service_unavailable() -> None:
    app = create_app()

    response = await _post(
        app,
        json=encode_push({"type": "OrderCreated", "resource": {"typeId": "order", "id": "order-1"}}),
    )

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_health_endpoints(app_with_processor) -> None:
    async with AsyncClient(transport=ASGITransport(app=app_with_processor), base_url="http://test") as client:
        root = await client.get("/healthz")
        ready = await client.get("/api/v1/readyz")

    assert root.status_code == 200
    assert root.json()["status"] == "ok"
    payload = ready.json()
    assert payload["status"] == "ready"
    assert payload["components"]["event_processor"]["status"] == "ready"


@pytest.mark.asyncio
async def test_processing_logs_carry_delivery_context(app_with_processor, platform) -> None:
    _seed(platform)
    records: list[dict] = []
    handler_id = logger.add(lambda message: records.append(message.record), level="INFO")

    try:
        response = await _post(
            app_with_processor,
            json=encode_push({"type": "OrderCreated", "resource": {"typeId": "order", "id": "order-1"}}),
        )
    finally:
        logger.remove(handler_id)

    assert response.status_code == 204
    reconciled = [record for record in records if record["message"] == "Loyalty balance reconciled"]
    assert reconciled
    extra = reconciled[0]["extra"]
    assert extra["order_id"] == "order-1"
    assert extra["message_id"] == "msg-1"
    assert extra["event_type"] == "OrderCreated"
