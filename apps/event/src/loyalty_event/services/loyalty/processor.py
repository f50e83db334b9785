"""Order event orchestration for loyalty balance updates."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from loguru import logger

from loyalty_event.domain.keys import LoyaltyKeys
from loyalty_event.observability.loyalty import LoyaltyObservabilityStore, get_loyalty_store
from loyalty_event.schemas.commerce import Order
from loyalty_event.schemas.events import OrderEvent, OrderEventType
from loyalty_event.services.commerce import (
    CommerceError,
    CommercePlatform,
    ResourceNotFoundError,
    VersionConflictError,
)

from .conversion import ConversionTable
from .ledger import ProcessedEventLedger
from .payments import PaymentPointCalculator
from .reconciler import BalanceReconciler, Direction, PointDelta, Reconciliation
from .redemptions import RedemptionPointCalculator


class LoyaltyProcessingError(RuntimeError):
    """Base exception for loyalty processing failures eligible for redelivery."""

    def __init__(self, message: str, *, order_id: str) -> None:
        super().__init__(message)
        self.order_id = order_id


class BalanceUpdateConflictError(LoyaltyProcessingError):
    """Raised when every balance write attempt lost a version race."""

    def __init__(self, *, order_id: str, customer_id: str, attempts: int) -> None:
        super().__init__(
            f"Customer {customer_id} balance update conflicted {attempts} times",
            order_id=order_id,
        )
        self.customer_id = customer_id
        self.attempts = attempts


class ProcessingStatus(str, Enum):
    APPLIED = "applied"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"


class SkipReason(str, Enum):
    UNSUPPORTED_EVENT = "unsupported_event"
    STATE_NOT_CANCELLED = "state_not_cancelled"
    ORDER_NOT_FOUND = "order_not_found"
    ANONYMOUS_ORDER = "anonymous_order"
    NO_CONVERSION_RATES = "no_conversion_rates"
    DUPLICATE = "duplicate"


@dataclass(frozen=True, slots=True)
class ProcessingOutcome:
    order_id: str
    status: ProcessingStatus
    direction: Direction | None = None
    reason: SkipReason | None = None
    customer_id: str | None = None
    delta: PointDelta | None = None
    previous_balance: int | None = None
    new_balance: int | None = None
    attempts: int = 0


def classify_event(event: OrderEvent, keys: LoyaltyKeys) -> Direction | SkipReason:
    """Map an event to the balance direction it calls for, or the reason it needs none."""

    if event.type is OrderEventType.ORDER_CREATED:
        return Direction.FORWARD
    if event.type is OrderEventType.ORDER_STATE_CHANGED:
        if event.order_state == keys.cancelled_state_key:
            return Direction.REVERSAL
        return SkipReason.STATE_NOT_CANCELLED
    return SkipReason.UNSUPPORTED_EVENT


class LoyaltyEventProcessor:
    """Drives one order event from classification to the customer balance write."""

    def __init__(
        self,
        platform: CommercePlatform,
        keys: LoyaltyKeys,
        *,
        ledger: ProcessedEventLedger | None = None,
        store: LoyaltyObservabilityStore | None = None,
    ) -> None:
        self._platform = platform
        self._keys = keys
        self._payments = PaymentPointCalculator(platform)
        self._redemptions = RedemptionPointCalculator(platform)
        self._reconciler = BalanceReconciler(keys)
        self._ledger = ledger or ProcessedEventLedger(
            platform,
            container=keys.ledger_container,
            enabled=keys.ledger_enabled,
        )
        self._store = store or get_loyalty_store()

    async def process(self, event: OrderEvent) -> ProcessingOutcome:
        classification = classify_event(event, self._keys)
        if isinstance(classification, SkipReason):
            logger.info(
                "No loyalty action for order event",
                order_id=event.order_id,
                event_type=event.raw_type,
                order_state=event.order_state,
                reason=classification.value,
            )
            return self._skip(event.order_id, classification)

        logger.info(
            "Handling order event",
            order_id=event.order_id,
            event_type=event.raw_type,
            direction=classification.value,
        )
        try:
            return await self.apply(event.order_id, classification)
        except LoyaltyProcessingError:
            self._store.record_failure("version_conflict")
            raise
        except CommerceError as exc:
            self._store.record_failure("commerce_unavailable")
            logger.error(
                "Loyalty processing failed on platform request",
                order_id=event.order_id,
                status_code=exc.status_code,
                error=str(exc),
            )
            raise

    async def apply(self, order_id: str, direction: Direction) -> ProcessingOutcome:
        try:
            order = await self._platform.get_order(order_id)
        except ResourceNotFoundError:
            logger.warning("Order not found; skip loyalty", order_id=order_id)
            return self._skip(order_id, SkipReason.ORDER_NOT_FOUND, direction=direction)

        customer_id = order.customer_id
        if not customer_id:
            logger.info("Order has no customer (anonymous); skip loyalty", order_id=order_id)
            return self._skip(order_id, SkipReason.ANONYMOUS_ORDER, direction=direction)

        with logger.contextualize(customer_id=customer_id):
            return await self._apply_for_customer(order, customer_id, direction)

    async def _apply_for_customer(self, order: Order, customer_id: str, direction: Direction) -> ProcessingOutcome:
        order_id = order.id
        if await self._ledger.has_processed(order_id, direction):
            logger.info(
                "Order event already applied; skip loyalty",
                order_id=order_id,
                direction=direction.value,
            )
            return self._skip(order_id, SkipReason.DUPLICATE, direction=direction, customer_id=customer_id)

        conversion_table = await ConversionTable.load(
            self._platform,
            container=self._keys.container,
            key=self._keys.conversion_rates_key,
        )
        if not conversion_table:
            logger.warning("No conversion rates; skip loyalty", order_id=order_id)
            return self._skip(
                order_id,
                SkipReason.NO_CONVERSION_RATES,
                direction=direction,
                customer_id=customer_id,
            )
        redemption_table = await self._load_redemption_table(conversion_table)

        delta = PointDelta(
            earned=await self._payments.points_from_payments(order, conversion_table),
            deducted=await self._redemptions.points_to_deduct(order, redemption_table),
        )

        reconciliation, attempts = await self._write_balance(order_id, customer_id, delta, direction)
        status = ProcessingStatus.APPLIED if reconciliation.requires_update else ProcessingStatus.UNCHANGED
        if reconciliation.requires_update:
            await self._ledger.record(
                order_id,
                direction,
                customer_id=customer_id,
                delta=delta,
                new_balance=reconciliation.new_balance,
            )

        self._store.record_outcome(status.value)
        self._store.record_points(direction.value, earned=delta.earned, deducted=delta.deducted)
        logger.info(
            "Loyalty balance reconciled",
            order_id=order_id,
            customer_id=customer_id,
            direction=direction.value,
            earned=delta.earned,
            deducted=delta.deducted,
            previous_balance=reconciliation.previous_balance,
            new_balance=reconciliation.new_balance,
            attempts=attempts,
            status=status.value,
        )
        return ProcessingOutcome(
            order_id=order_id,
            status=status,
            direction=direction,
            customer_id=customer_id,
            delta=delta,
            previous_balance=reconciliation.previous_balance,
            new_balance=reconciliation.new_balance,
            attempts=attempts,
        )

    async def _load_redemption_table(self, conversion_table: ConversionTable) -> ConversionTable:
        key = self._keys.redemption_rates_key
        if not key:
            return conversion_table
        redemption_table = await ConversionTable.load(self._platform, container=self._keys.container, key=key)
        return redemption_table or conversion_table

    async def _write_balance(
        self,
        order_id: str,
        customer_id: str,
        delta: PointDelta,
        direction: Direction,
    ) -> tuple[Reconciliation, int]:
        max_attempts = self._keys.max_update_attempts
        for attempt in range(1, max_attempts + 1):
            customer = await self._platform.get_customer(customer_id)
            reconciliation = self._reconciler.reconcile(customer, delta, direction)
            if not reconciliation.requires_update:
                return reconciliation, attempt
            try:
                await self._platform.update_customer(
                    customer_id,
                    version=customer.version,
                    actions=reconciliation.actions,
                )
            except VersionConflictError:
                self._store.record_version_conflict()
                logger.warning(
                    "Customer version conflict; re-reading balance",
                    order_id=order_id,
                    customer_id=customer_id,
                    version=customer.version,
                    attempt=attempt,
                    max_attempts=max_attempts,
                )
                continue
            return reconciliation, attempt

        logger.error(
            "Customer balance update retries exhausted",
            order_id=order_id,
            customer_id=customer_id,
            attempts=max_attempts,
        )
        raise BalanceUpdateConflictError(order_id=order_id, customer_id=customer_id, attempts=max_attempts)

    def _skip(
        self,
        order_id: str,
        reason: SkipReason,
        *,
        direction: Direction | None = None,
        customer_id: str | None = None,
    ) -> ProcessingOutcome:
        self._store.record_outcome(ProcessingStatus.SKIPPED.value, reason=reason.value)
        return ProcessingOutcome(
            order_id=order_id,
            status=ProcessingStatus.SKIPPED,
            direction=direction,
            reason=reason,
            customer_id=customer_id,
        )


__all__ = [
    "BalanceUpdateConflictError",
    "LoyaltyEventProcessor",
    "LoyaltyProcessingError",
    "ProcessingOutcome",
    "ProcessingStatus",
    "SkipReason",
    "classify_event",
]
