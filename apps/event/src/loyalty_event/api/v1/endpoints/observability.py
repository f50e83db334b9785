"""Observability endpoints for loyalty event processing."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from loyalty_event.api.dependencies.security import require_observability_api_key
from loyalty_event.observability.loyalty import get_loyalty_store


router = APIRouter(prefix="/observability", tags=["Observability"])


@router.get(
    "/loyalty",
    dependencies=[Depends(require_observability_api_key)],
    summary="Loyalty processing observability snapshot",
)
async def get_loyalty_snapshot() -> dict[str, object]:
    return get_loyalty_store().snapshot().as_dict()


def _format_metric(name: str, description: str, value: int | float, labels: dict[str, str] | None = None) -> list[str]:
    label_fragment = ""
    if labels:
        formatted = ",".join(f'{key}="{val}"' for key, val in sorted(labels.items()))
        label_fragment = f"{{{formatted}}}"
    return [
        f"# HELP {name} {description}",
        f"# TYPE {name} gauge",
        f"{name}{label_fragment} {value}",
    ]


@router.get(
    "/prometheus",
    dependencies=[Depends(require_observability_api_key)],
    summary="Prometheus-formatted observability metrics",
    response_class=PlainTextResponse,
)
async def get_prometheus_metrics() -> PlainTextResponse:
    snapshot = get_loyalty_store().snapshot()

    lines: list[str] = []
    for status_name, value in sorted(snapshot.outcomes.items()):
        lines.extend(
            _format_metric(
                "loyalty_events_total",
                "Order events grouped by processing outcome",
                value,
                labels={"status": status_name},
            )
        )
    for reason, value in sorted(snapshot.skips.items()):
        lines.extend(
            _format_metric(
                "loyalty_events_skipped_total",
                "Skipped order events grouped by reason",
                value,
                labels={"reason": reason},
            )
        )
    for kind, value in sorted(snapshot.failures.items()):
        lines.extend(
            _format_metric(
                "loyalty_events_failed_total",
                "Order events that failed and await redelivery",
                value,
                labels={"kind": kind},
            )
        )
    for bucket, value in sorted(snapshot.points.items()):
        direction, component = bucket.split(":", 1)
        lines.extend(
            _format_metric(
                "loyalty_points_total",
                "Points computed per direction and component",
                value,
                labels={"direction": direction, "component": component},
            )
        )
    lines.extend(
        _format_metric(
            "loyalty_version_conflicts_total",
            "Customer balance writes rejected for a stale version",
            snapshot.version_conflicts,
        )
    )

    return PlainTextResponse("\n".join(lines) + "\n")
