"""Opt-in record of order events whose points were already applied."""

from __future__ import annotations

from datetime import datetime, timezone

from loguru import logger

from loyalty_event.services.commerce import CommerceError, CommercePlatform

from .reconciler import Direction, PointDelta


class ProcessedEventLedger:
    """Stores one custom object per (order, direction) once the balance write has landed."""

    def __init__(self, platform: CommercePlatform, *, container: str, enabled: bool = True) -> None:
        self._platform = platform
        self._container = container
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    @staticmethod
    def entry_key(order_id: str, direction: Direction) -> str:
        # Custom object keys only allow [-_~.a-zA-Z0-9].
        return f"{order_id}-{direction.value}"

    async def has_processed(self, order_id: str, direction: Direction) -> bool:
        if not self._enabled:
            return False
        entry = await self._platform.get_custom_object(self._container, self.entry_key(order_id, direction))
        return entry is not None

    async def record(
        self,
        order_id: str,
        direction: Direction,
        *,
        customer_id: str,
        delta: PointDelta,
        new_balance: int,
    ) -> None:
        if not self._enabled:
            return
        value = {
            "orderId": order_id,
            "direction": direction.value,
            "customerId": customer_id,
            "earned": delta.earned,
            "deducted": delta.deducted,
            "newBalance": new_balance,
            "recordedAt": datetime.now(timezone.utc).isoformat(),
        }
        try:
            await self._platform.put_custom_object(self._container, self.entry_key(order_id, direction), value)
        except CommerceError as exc:
            # The balance write already landed; a missing entry only weakens duplicate detection.
            logger.error(
                "Failed to record processed loyalty event",
                order_id=order_id,
                direction=direction.value,
                error=str(exc),
            )


__all__ = ["ProcessedEventLedger"]
