"""Points consumed by point-redemption discounts applied to an order.

Orders expose discounts in two shapes depending on API version and project
configuration:

* ``discountOnTotalPrice.includedDiscounts`` lists each discount portion with
  its own discounted amount (the primary source), and
* ``directDiscounts`` carries the raw discount values (used only when the
  breakdown is empty).

Both are flattened into :data:`DiscountSource` values first, so the precedence
rule lives in :func:`select_discount_sources` and the deduction loop never
looks at two representations of the same discount.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Literal, Mapping

from loguru import logger

from loyalty_event.schemas.commerce import CartDiscount, Money, Order
from loyalty_event.services.commerce import CommerceError, CommercePlatform

from .conversion import ConversionTable

REDEMPTION_FLAG_FIELDS = ("isPointRedemption", "isPointRedemtion")
REFERENCE_CART_FIELDS = ("referenceCart", "referenceCartId")
REDEEMABLE_REFERENCE_TYPES = frozenset({"cart-discount", "direct-discount"})


def _reference_cart_id(fields: Mapping[str, Any]) -> str | None:
    for name in REFERENCE_CART_FIELDS:
        value = fields.get(name)
        if value is None:
            continue
        if isinstance(value, Mapping):
            value = value.get("id")
        return value if isinstance(value, str) else None
    return None


@dataclass(frozen=True, slots=True)
class DiscountDescriptor:
    """Canonical view of a cart discount's loyalty custom fields."""

    discount_id: str
    is_point_redemption: bool
    reference_cart_id: str | None

    @classmethod
    def from_cart_discount(cls, discount: CartDiscount) -> "DiscountDescriptor":
        fields = discount.custom_fields
        return cls(
            discount_id=discount.id,
            is_point_redemption=any(fields.get(name) is True for name in REDEMPTION_FLAG_FIELDS),
            reference_cart_id=_reference_cart_id(fields),
        )

    def applies_to(self, cart_id: str | None) -> bool:
        if not cart_id or not self.is_point_redemption:
            return False
        return self.reference_cart_id == cart_id


@dataclass(frozen=True, slots=True)
class IncludedDiscountSource:
    kind: ClassVar[Literal["included"]] = "included"

    discount_id: str
    type_id: str
    amount: Money | None


@dataclass(frozen=True, slots=True)
class DirectDiscountSource:
    kind: ClassVar[Literal["direct"]] = "direct"

    discount_id: str
    amount: Money


DiscountSource = IncludedDiscountSource | DirectDiscountSource


def select_discount_sources(order: Order) -> list[DiscountSource]:
    """Included-discount portions when the order has any, otherwise direct discounts."""

    included = order.included_discounts
    if included:
        sources: list[DiscountSource] = []
        for portion in included:
            reference = portion.discount
            if reference is None or not reference.id:
                continue
            if reference.type_id not in REDEEMABLE_REFERENCE_TYPES:
                continue
            sources.append(
                IncludedDiscountSource(
                    discount_id=reference.id,
                    type_id=reference.type_id,
                    amount=portion.discounted_amount,
                )
            )
        return sources

    direct: list[DiscountSource] = []
    for discount in order.direct_discounts:
        if not discount.id or discount.value is None:
            continue
        money = discount.value.absolute_amount()
        if money is None or money.cent_amount is None or money.cent_amount <= 0:
            continue
        direct.append(DirectDiscountSource(discount_id=discount.id, amount=money))
    return direct


class RedemptionPointCalculator:
    """Converts redemption discounts applied to an order back into points."""

    def __init__(self, platform: CommercePlatform) -> None:
        self._platform = platform

    async def points_to_deduct(self, order: Order, table: ConversionTable) -> int:
        cart_id = order.cart_id
        sources = select_discount_sources(order)
        if not sources:
            return 0
        if not cart_id:
            logger.debug("Order has no cart id; redemption discounts ignored", order_id=order.id)
            return 0

        descriptors: dict[str, DiscountDescriptor | None] = {}
        total = 0
        for source in sources:
            if source.discount_id not in descriptors:
                descriptors[source.discount_id] = await self._resolve(source, order_id=order.id)
            descriptor = descriptors[source.discount_id]
            if descriptor is None or not descriptor.applies_to(cart_id):
                continue

            amount = source.amount
            if amount is None or amount.cent_amount is None or not amount.currency_code:
                continue
            points = max(0, table.points_for(amount.cent_amount, amount.currency_code))
            logger.debug(
                "Point redemption discount applied",
                order_id=order.id,
                discount_id=source.discount_id,
                source=source.kind,
                points=points,
            )
            total += points
        return total

    async def _resolve(self, source: DiscountSource, *, order_id: str) -> DiscountDescriptor | None:
        try:
            discount = await self._platform.get_cart_discount(source.discount_id)
        except CommerceError as exc:
            if isinstance(source, IncludedDiscountSource) and source.type_id == "cart-discount":
                logger.warning(
                    "Failed to fetch cart discount; skipping",
                    order_id=order_id,
                    discount_id=source.discount_id,
                    error=str(exc),
                )
            else:
                logger.debug(
                    "Direct discount has no matching cart discount",
                    order_id=order_id,
                    discount_id=source.discount_id,
                )
            return None
        return DiscountDescriptor.from_cart_discount(discount)


__all__ = [
    "DirectDiscountSource",
    "DiscountDescriptor",
    "DiscountSource",
    "IncludedDiscountSource",
    "RedemptionPointCalculator",
    "select_discount_sources",
]
