"""Read models for the commerce platform resources the loyalty engine touches."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    StrictStr,
    field_validator,
)


class PlatformModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Money(PlatformModel):
    cent_amount: int | None = Field(None, alias="centAmount")
    currency_code: str | None = Field(
        None,
        validation_alias=AliasChoices("currencyCode", "currency"),
        serialization_alias="currencyCode",
    )

    @field_validator("cent_amount", mode="before")
    @classmethod
    def _coerce_cent_amount(cls, value: object) -> object:
        if isinstance(value, bool):
            return None
        if isinstance(value, float):
            return int(value)
        return value


class Reference(PlatformModel):
    type_id: str | None = Field(None, alias="typeId")
    id: str | None = None
    key: str | None = None
    obj: dict[str, Any] | None = None

    @property
    def resolved_key(self) -> str | None:
        if self.obj and isinstance(self.obj.get("key"), str):
            return self.obj["key"]
        return self.key


class DiscountValue(PlatformModel):
    type: str | None = None
    money: list[Money] = Field(default_factory=list)

    @field_validator("money", mode="before")
    @classmethod
    def _wrap_single_money(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, dict):
            return [value]
        return value

    def absolute_amount(self) -> Money | None:
        """Return the discounted money for absolute values; other value types have none."""

        if self.type != "absolute":
            return None
        for money in self.money:
            if money.cent_amount is not None:
                return money
        return None


class DirectDiscount(PlatformModel):
    id: str | None = None
    value: DiscountValue | None = None


class IncludedDiscount(PlatformModel):
    discount: Reference | None = None
    discounted_amount: Money | None = Field(None, alias="discountedAmount")


class DiscountOnTotalPrice(PlatformModel):
    discounted_amount: Money | None = Field(None, alias="discountedAmount")
    included_discounts: list[IncludedDiscount] = Field(default_factory=list, alias="includedDiscounts")


class PaymentInfo(PlatformModel):
    payments: list[Reference] = Field(default_factory=list)


class Order(PlatformModel):
    id: str
    version: int | None = None
    customer_id: str | None = Field(None, alias="customerId")
    cart: Reference | None = None
    payment_info: PaymentInfo | None = Field(None, alias="paymentInfo")
    direct_discounts: list[DirectDiscount] = Field(default_factory=list, alias="directDiscounts")
    discount_on_total_price: DiscountOnTotalPrice | None = Field(None, alias="discountOnTotalPrice")
    order_state: str | None = Field(None, alias="orderState")

    @property
    def cart_id(self) -> str | None:
        return self.cart.id if self.cart else None

    @property
    def payment_ids(self) -> list[str]:
        """Payment ids in first-seen order, without duplicates or blanks."""

        seen: dict[str, None] = {}
        for ref in self.payment_info.payments if self.payment_info else []:
            if ref.id:
                seen.setdefault(ref.id, None)
        return list(seen)

    @property
    def included_discounts(self) -> list[IncludedDiscount]:
        if self.discount_on_total_price is None:
            return []
        return list(self.discount_on_total_price.included_discounts)


class Payment(PlatformModel):
    id: str
    amount_planned: Money | None = Field(None, alias="amountPlanned")


class CustomFields(PlatformModel):
    type: Reference | None = None
    fields: dict[str, Any] = Field(default_factory=dict)

    @field_validator("fields", mode="before")
    @classmethod
    def _default_fields(cls, value: object) -> object:
        return value if isinstance(value, dict) else {}


class CartDiscount(PlatformModel):
    id: str
    key: str | None = None
    custom: CustomFields | None = None

    @property
    def custom_fields(self) -> dict[str, Any]:
        return self.custom.fields if self.custom else {}


class Customer(PlatformModel):
    id: str
    version: int
    custom: CustomFields | None = None

    @property
    def custom_fields(self) -> dict[str, Any]:
        return self.custom.fields if self.custom else {}

    @property
    def custom_type_id(self) -> str | None:
        if self.custom and self.custom.type:
            return self.custom.type.id
        return None

    @property
    def custom_type_key(self) -> str | None:
        if self.custom and self.custom.type:
            return self.custom.type.resolved_key
        return None


class CustomObject(PlatformModel):
    container: str
    key: str
    value: Any = None
    version: int | None = None


class ConversionRate(PlatformModel):
    """One row of the currency-to-point table; field types are checked strictly."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    currency: StrictStr
    currency_cent_amount: StrictInt | StrictFloat = Field(..., alias="currencyCentAmount")
    point_amount: StrictInt | StrictFloat = Field(..., alias="pointAmount", ge=0)

    @property
    def is_usable(self) -> bool:
        return self.currency_cent_amount > 0


class TypeResourceIdentifier(PlatformModel):
    type_id: Literal["type"] = Field("type", alias="typeId")
    key: str


class SetCustomTypeAction(PlatformModel):
    action: Literal["setCustomType"] = "setCustomType"
    type: TypeResourceIdentifier
    fields: dict[str, Any] | None = None


class SetCustomFieldAction(PlatformModel):
    action: Literal["setCustomField"] = "setCustomField"
    name: str
    value: Any = None


CustomerUpdateAction = SetCustomTypeAction | SetCustomFieldAction


def serialize_actions(actions: list[CustomerUpdateAction]) -> list[dict[str, Any]]:
    return [action.model_dump(by_alias=True, exclude_none=True) for action in actions]


__all__ = [
    "CartDiscount",
    "ConversionRate",
    "CustomFields",
    "CustomObject",
    "Customer",
    "CustomerUpdateAction",
    "DirectDiscount",
    "DiscountOnTotalPrice",
    "DiscountValue",
    "IncludedDiscount",
    "Money",
    "Order",
    "Payment",
    "PaymentInfo",
    "Reference",
    "SetCustomFieldAction",
    "SetCustomTypeAction",
    "TypeResourceIdentifier",
    "serialize_actions",
]
