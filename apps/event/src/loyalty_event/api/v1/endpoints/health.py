from __future__ import annotations

from typing import Dict, Literal

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field


router = APIRouter()


class ComponentStatus(BaseModel):
    status: Literal["ready", "disabled", "error"]
    detail: str | None = Field(default=None, description="Human readable status detail")


class ReadinessPayload(BaseModel):
    status: Literal["ready", "error"]
    components: Dict[str, ComponentStatus]


@router.get("/healthz", summary="Service health check")
async def service_health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz", summary="Service readiness", response_model=ReadinessPayload)
async def service_readiness(request: Request) -> ReadinessPayload:
    components: Dict[str, ComponentStatus] = {}

    processor = getattr(request.app.state, "event_processor", None)
    if processor is None:
        components["event_processor"] = ComponentStatus(
            status="error",
            detail=getattr(request.app.state, "startup_error", None) or "processor not configured",
        )
    else:
        components["event_processor"] = ComponentStatus(status="ready")

    keys = getattr(request.app.state, "loyalty_keys", None)
    if keys is not None and keys.ledger_enabled:
        components["processed_event_ledger"] = ComponentStatus(status="ready", detail=keys.ledger_container)
    else:
        components["processed_event_ledger"] = ComponentStatus(status="disabled")

    overall: Literal["ready", "error"] = (
        "error" if any(component.status == "error" for component in components.values()) else "ready"
    )
    return ReadinessPayload(status=overall, components=components)
