"""Points earned from an order's payments."""

from __future__ import annotations

from loguru import logger

from loyalty_event.schemas.commerce import Order
from loyalty_event.services.commerce import CommerceError, CommercePlatform

from .conversion import ConversionTable


class PaymentPointCalculator:
    """Sums points for the planned amount of every payment attached to an order."""

    def __init__(self, platform: CommercePlatform) -> None:
        self._platform = platform

    async def points_from_payments(self, order: Order, table: ConversionTable) -> int:
        total = 0
        for payment_id in order.payment_ids:
            try:
                payment = await self._platform.get_payment(payment_id)
            except CommerceError as exc:
                logger.warning(
                    "Failed to fetch payment; skipping",
                    order_id=order.id,
                    payment_id=payment_id,
                    error=str(exc),
                )
                continue

            amount = payment.amount_planned
            if amount is None or amount.cent_amount is None or not amount.currency_code:
                continue
            total += max(0, table.points_for(amount.cent_amount, amount.currency_code))
        return total


__all__ = ["PaymentPointCalculator"]
