from __future__ import annotations

import pytest

from loyalty_event.domain.keys import LoyaltyKeys
from loyalty_event.schemas.commerce import Customer, SetCustomFieldAction, SetCustomTypeAction
from loyalty_event.services.loyalty import (
    BalanceReconciler,
    Direction,
    PointDelta,
    read_available_points,
)


def _customer(points=None, *, type_key: str | None = "additional-customer-info") -> Customer:
    custom = None
    if type_key is not None:
        fields = {} if points is None else {"availablePoints": points}
        custom = {"type": {"typeId": "type", "id": "type-1", "obj": {"key": type_key}}, "fields": fields}
    return Customer.model_validate({"id": "customer-1", "version": 4, "custom": custom})


@pytest.mark.parametrize(
    ("stored", "expected"),
    [
        (None, 0),
        (10, 10),
        (10.9, 10),
        ("42", 42),
        ("abc", 0),
        (9007199254740993, 9007199254740993),
        (-5, 0),
        (True, 0),
        (float("nan"), 0),
    ],
)
def test_read_available_points(stored, expected) -> None:
    assert read_available_points(_customer(stored), "availablePoints") == expected


def test_forward_adds_net_points() -> None:
    reconciler = BalanceReconciler(LoyaltyKeys())

    result = reconciler.reconcile(_customer(10), PointDelta(earned=5, deducted=2), Direction.FORWARD)

    assert result.previous_balance == 10
    assert result.new_balance == 13
    assert result.actions == (SetCustomFieldAction(name="availablePoints", value=13),)


def test_reversal_subtracts_and_clamps_at_zero() -> None:
    reconciler = BalanceReconciler(LoyaltyKeys())

    result = reconciler.reconcile(_customer(3), PointDelta(earned=5), Direction.REVERSAL)

    assert result.new_balance == 0


def test_reversal_restores_redeemed_points() -> None:
    reconciler = BalanceReconciler(LoyaltyKeys())

    result = reconciler.reconcile(_customer(1), PointDelta(earned=0, deducted=4), Direction.REVERSAL)

    assert result.new_balance == 5


def test_missing_type_is_attached_before_setting_balance() -> None:
    reconciler = BalanceReconciler(LoyaltyKeys())

    result = reconciler.reconcile(_customer(type_key=None), PointDelta(earned=0), Direction.FORWARD)

    assert result.requires_update
    first, second = result.actions
    assert isinstance(first, SetCustomTypeAction)
    assert first.type.key == "additional-customer-info"
    assert second == SetCustomFieldAction(name="availablePoints", value=0)


def test_foreign_type_is_replaced() -> None:
    reconciler = BalanceReconciler(LoyaltyKeys())

    result = reconciler.reconcile(_customer(7, type_key="other-type"), PointDelta(earned=1), Direction.FORWARD)

    assert isinstance(result.actions[0], SetCustomTypeAction)
    assert result.new_balance == 8


def test_unchanged_balance_needs_no_write() -> None:
    reconciler = BalanceReconciler(LoyaltyKeys())

    result = reconciler.reconcile(_customer(10), PointDelta(earned=3, deducted=3), Direction.FORWARD)

    assert not result.requires_update
    assert result.new_balance == 10


def test_delta_rejects_negative_components() -> None:
    with pytest.raises(ValueError):
        PointDelta(earned=-1)
