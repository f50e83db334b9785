from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Sequence

import pytest


def _configure_path() -> None:
    src_path = Path(__file__).resolve().parents[1] / "src"
    if src_path.exists():
        sys.path.insert(0, str(src_path))


_configure_path()

from loyalty_event.domain.keys import LoyaltyKeys  # noqa: E402
from loyalty_event.observability.loyalty import LoyaltyObservabilityStore  # noqa: E402
from loyalty_event.schemas.commerce import (  # noqa: E402
    CartDiscount,
    CustomObject,
    Customer,
    CustomerUpdateAction,
    Order,
    Payment,
    SetCustomFieldAction,
    SetCustomTypeAction,
)
from loyalty_event.services.commerce import (  # noqa: E402
    CommerceError,
    ResourceNotFoundError,
    VersionConflictError,
)

LOYALTY_TYPE_KEY = "additional-customer-info"


class FakeCommercePlatform:
    """In-memory stand-in for the commerce API with versioned customers."""

    def __init__(self) -> None:
        self.orders: dict[str, dict[str, Any]] = {}
        self.payments: dict[str, dict[str, Any]] = {}
        self.cart_discounts: dict[str, dict[str, Any]] = {}
        self.customers: dict[str, dict[str, Any]] = {}
        self.custom_objects: dict[tuple[str, str], Any] = {}
        self.failing_ids: set[str] = set()
        self.pending_conflicts: dict[str, int] = {}
        self.update_calls: list[tuple[str, int, list[CustomerUpdateAction]]] = []
        self.put_calls: list[tuple[str, str, Any]] = []

    # Seeding helpers

    def add_order(self, order_id: str, **payload: Any) -> None:
        self.orders[order_id] = {"id": order_id, "version": 1, **payload}

    def add_payment(self, payment_id: str, cent_amount: int | None, currency: str | None = "USD") -> None:
        amount: dict[str, Any] = {}
        if cent_amount is not None:
            amount["centAmount"] = cent_amount
        if currency is not None:
            amount["currencyCode"] = currency
        self.payments[payment_id] = {"id": payment_id, "amountPlanned": amount}

    def add_cart_discount(self, discount_id: str, **fields: Any) -> None:
        self.cart_discounts[discount_id] = {
            "id": discount_id,
            "custom": {"type": {"typeId": "type", "id": "discount-type"}, "fields": fields},
        }

    def add_customer(
        self,
        customer_id: str,
        *,
        points: Any = None,
        with_type: bool = True,
        version: int = 1,
    ) -> None:
        custom: dict[str, Any] | None = None
        if with_type:
            fields = {} if points is None else {"availablePoints": points}
            custom = {
                "type": {"typeId": "type", "id": "type-1", "obj": {"key": LOYALTY_TYPE_KEY}},
                "fields": fields,
            }
        self.customers[customer_id] = {"id": customer_id, "version": version, "custom": custom}

    def set_rates(self, rates: Any, *, container: str = "LOYALTY_CONTAINER", key: str = "CONVERSION_RATES") -> None:
        self.custom_objects[(container, key)] = rates

    def balance(self, customer_id: str) -> Any:
        custom = self.customers[customer_id]["custom"] or {}
        return (custom.get("fields") or {}).get("availablePoints")

    # CommercePlatform

    def _check(self, resource_id: str) -> None:
        if resource_id in self.failing_ids:
            raise CommerceError(f"{resource_id} unavailable", status_code=500)

    async def get_order(self, order_id: str) -> Order:
        self._check(order_id)
        if order_id not in self.orders:
            raise ResourceNotFoundError(f"Order {order_id} not found", status_code=404)
        return Order.model_validate(self.orders[order_id])

    async def get_payment(self, payment_id: str) -> Payment:
        self._check(payment_id)
        if payment_id not in self.payments:
            raise ResourceNotFoundError(f"Payment {payment_id} not found", status_code=404)
        return Payment.model_validate(self.payments[payment_id])

    async def get_cart_discount(self, discount_id: str) -> CartDiscount:
        self._check(discount_id)
        if discount_id not in self.cart_discounts:
            raise ResourceNotFoundError(f"Cart discount {discount_id} not found", status_code=404)
        return CartDiscount.model_validate(self.cart_discounts[discount_id])

    async def get_customer(self, customer_id: str) -> Customer:
        self._check(customer_id)
        if customer_id not in self.customers:
            raise ResourceNotFoundError(f"Customer {customer_id} not found", status_code=404)
        return Customer.model_validate(self.customers[customer_id])

    async def update_customer(
        self,
        customer_id: str,
        *,
        version: int,
        actions: Sequence[CustomerUpdateAction],
    ) -> Customer:
        self.update_calls.append((customer_id, version, list(actions)))
        record = self.customers[customer_id]

        if self.pending_conflicts.get(customer_id, 0) > 0:
            # A concurrent writer lands first: bump the version and add its points.
            self.pending_conflicts[customer_id] -= 1
            record["version"] += 1
            fields = record["custom"]["fields"]
            fields["availablePoints"] = fields.get("availablePoints", 0) + 100
            raise VersionConflictError("Concurrent modification", status_code=409)
        if version != record["version"]:
            raise VersionConflictError("Version mismatch", status_code=409)

        for action in actions:
            if isinstance(action, SetCustomTypeAction):
                record["custom"] = {
                    "type": {"typeId": "type", "id": "type-1", "obj": {"key": action.type.key}},
                    "fields": dict(action.fields or {}),
                }
            elif isinstance(action, SetCustomFieldAction):
                record["custom"]["fields"][action.name] = action.value
        record["version"] += 1
        return Customer.model_validate(record)

    async def get_custom_object(self, container: str, key: str) -> CustomObject | None:
        self._check(f"{container}/{key}")
        if (container, key) not in self.custom_objects:
            return None
        return CustomObject(container=container, key=key, value=self.custom_objects[(container, key)], version=1)

    async def put_custom_object(self, container: str, key: str, value: Any) -> CustomObject:
        self._check(f"{container}/{key}")
        self.put_calls.append((container, key, value))
        self.custom_objects[(container, key)] = value
        return CustomObject(container=container, key=key, value=value, version=1)


@pytest.fixture
def platform() -> FakeCommercePlatform:
    fake = FakeCommercePlatform()
    fake.set_rates([{"currency": "USD", "currencyCentAmount": 100, "pointAmount": 1}])
    return fake


@pytest.fixture
def keys() -> LoyaltyKeys:
    return LoyaltyKeys()


@pytest.fixture
def store() -> LoyaltyObservabilityStore:
    return LoyaltyObservabilityStore()
