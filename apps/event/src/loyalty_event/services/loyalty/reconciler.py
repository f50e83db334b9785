"""Balance arithmetic and the customer update it requires."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum

from loyalty_event.domain.keys import LoyaltyKeys
from loyalty_event.schemas.commerce import (
    Customer,
    CustomerUpdateAction,
    SetCustomFieldAction,
    SetCustomTypeAction,
    TypeResourceIdentifier,
)


class Direction(str, Enum):
    FORWARD = "forward"
    REVERSAL = "reversal"


@dataclass(frozen=True, slots=True)
class PointDelta:
    earned: int = 0
    deducted: int = 0

    def __post_init__(self) -> None:
        if self.earned < 0 or self.deducted < 0:
            raise ValueError("Point delta components must be non-negative")

    @property
    def net(self) -> int:
        return self.earned - self.deducted

    def signed(self, direction: Direction) -> int:
        return self.net if direction is Direction.FORWARD else -self.net


@dataclass(frozen=True, slots=True)
class Reconciliation:
    previous_balance: int
    new_balance: int
    actions: tuple[CustomerUpdateAction, ...] = field(default_factory=tuple)

    @property
    def requires_update(self) -> bool:
        return bool(self.actions)


def read_available_points(customer: Customer, field_name: str) -> int:
    """Stored balance as a non-negative integer; absent or non-numeric values read as 0."""

    value = customer.custom_fields.get(field_name)
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(0, value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return max(0, math.floor(number))


class BalanceReconciler:
    """Applies a point delta to a customer's stored balance, never going below zero."""

    def __init__(self, keys: LoyaltyKeys) -> None:
        self._keys = keys

    def has_loyalty_type(self, customer: Customer) -> bool:
        return bool(customer.custom_type_id) and customer.custom_type_key == self._keys.customer_type_key

    def reconcile(self, customer: Customer, delta: PointDelta, direction: Direction) -> Reconciliation:
        current = read_available_points(customer, self._keys.available_points_field)
        new_balance = max(0, current + delta.signed(direction))

        type_attached = self.has_loyalty_type(customer)
        if new_balance == current and type_attached:
            return Reconciliation(previous_balance=current, new_balance=new_balance)

        actions: list[CustomerUpdateAction] = []
        if not type_attached:
            actions.append(
                SetCustomTypeAction(type=TypeResourceIdentifier(key=self._keys.customer_type_key))
            )
        actions.append(SetCustomFieldAction(name=self._keys.available_points_field, value=new_balance))
        return Reconciliation(previous_balance=current, new_balance=new_balance, actions=tuple(actions))


__all__ = [
    "BalanceReconciler",
    "Direction",
    "PointDelta",
    "Reconciliation",
    "read_available_points",
]
