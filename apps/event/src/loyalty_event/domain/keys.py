"""Storage keys and limits shared by every loyalty component."""

from __future__ import annotations

from dataclasses import dataclass

from loyalty_event.core.settings import Settings


@dataclass(frozen=True, slots=True)
class LoyaltyKeys:
    """Immutable configuration passed explicitly into the loyalty pipeline."""

    container: str = "LOYALTY_CONTAINER"
    conversion_rates_key: str = "CONVERSION_RATES"
    redemption_rates_key: str | None = "REDEMPTION_RATES"
    available_points_field: str = "availablePoints"
    customer_type_key: str = "additional-customer-info"
    cancelled_state_key: str = "Cancelled"
    max_update_attempts: int = 3
    ledger_enabled: bool = False
    ledger_container: str = "LOYALTY_PROCESSED_EVENTS"

    @classmethod
    def from_settings(cls, settings: Settings) -> "LoyaltyKeys":
        return cls(
            container=settings.loyalty_container,
            conversion_rates_key=settings.loyalty_conversion_rates_key,
            redemption_rates_key=settings.loyalty_redemption_rates_key or None,
            available_points_field=settings.loyalty_available_points_field,
            customer_type_key=settings.loyalty_customer_type_key,
            cancelled_state_key=settings.loyalty_cancelled_state_key,
            max_update_attempts=max(settings.loyalty_max_update_attempts, 1),
            ledger_enabled=settings.loyalty_ledger_enabled,
            ledger_container=settings.loyalty_ledger_container,
        )


__all__ = ["LoyaltyKeys"]
