"""Push endpoint for order notifications delivered through Pub/Sub."""

from __future__ import annotations

import json

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError

from loyalty_event.core.logging import order_event_context
from loyalty_event.schemas.events import (
    EventDecodeError,
    PubSubEnvelope,
    SubscriptionNotice,
    parse_notification,
)
from loyalty_event.services.commerce import CommerceError
from loyalty_event.services.loyalty import LoyaltyEventProcessor, LoyaltyProcessingError

router = APIRouter(tags=["Events"])


def get_event_processor(request: Request) -> LoyaltyEventProcessor:
    processor = getattr(request.app.state, "event_processor", None)
    if processor is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Loyalty event processor not configured",
        )
    return processor


async def _read_envelope(request: Request) -> PubSubEnvelope:
    body = await request.body()
    if not body.strip():
        logger.error("Missing request body")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Bad request: No Pub/Sub message was received")
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Bad request: Invalid JSON body") from exc
    if not isinstance(payload, dict) or not payload.get("message"):
        logger.error("Missing body message")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Bad request: Wrong Pub/Sub message format")
    try:
        return PubSubEnvelope.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Bad request: Wrong Pub/Sub message format") from exc


@router.post("/event", status_code=status.HTTP_204_NO_CONTENT, summary="Receive order notification")
async def receive_order_event(
    request: Request,
    processor: LoyaltyEventProcessor = Depends(get_event_processor),
) -> Response:
    """Decode a push delivery and apply its loyalty effect; non-2xx responses trigger redelivery."""

    envelope = await _read_envelope(request)
    try:
        notification = parse_notification(envelope)
    except EventDecodeError as exc:
        logger.error("Rejected order notification", error=str(exc))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Bad request: {exc}") from exc

    if isinstance(notification, SubscriptionNotice):
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content={
                "detail": "Incoming message is about subscription resource creation. Skip handling the message.",
            },
        )

    try:
        with order_event_context(
            order_id=notification.order_id,
            message_id=notification.message_id,
            event_type=notification.raw_type,
        ):
            await processor.process(notification)
    except (LoyaltyProcessingError, CommerceError) as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Loyalty processing failed for order {notification.order_id}",
        ) from exc

    return Response(status_code=status.HTTP_204_NO_CONTENT)
