"""Currency-to-point conversion table."""

from __future__ import annotations

import math
from fractions import Fraction
from typing import Any, Iterable, Sequence

from loguru import logger
from pydantic import ValidationError

from loyalty_event.schemas.commerce import ConversionRate, Money
from loyalty_event.services.commerce import CommercePlatform


def parse_conversion_rates(value: Any) -> tuple[ConversionRate, ...]:
    """Validate a stored rate array; any malformed row disables the whole table."""

    if not isinstance(value, list):
        logger.warning("Conversion rates value is not an array", value_type=type(value).__name__)
        return ()
    rates: list[ConversionRate] = []
    for index, row in enumerate(value):
        if not isinstance(row, dict):
            logger.warning("Conversion rates array has invalid row shape", row_index=index)
            return ()
        try:
            rates.append(ConversionRate.model_validate(row))
        except ValidationError as exc:
            logger.warning(
                "Conversion rates array has invalid row shape",
                row_index=index,
                errors=exc.error_count(),
            )
            return ()
    return tuple(rates)


class ConversionTable:
    """Read-only set of conversion rates loaded for a single event."""

    def __init__(self, rates: Iterable[ConversionRate] = ()) -> None:
        self._rates: tuple[ConversionRate, ...] = tuple(rates)

    @classmethod
    async def load(cls, platform: CommercePlatform, *, container: str, key: str) -> "ConversionTable":
        stored = await platform.get_custom_object(container, key)
        if stored is None:
            logger.warning("Conversion rates custom object not found", container=container, key=key)
            return cls()
        return cls(parse_conversion_rates(stored.value))

    @property
    def rates(self) -> Sequence[ConversionRate]:
        return self._rates

    def __len__(self) -> int:
        return len(self._rates)

    def __bool__(self) -> bool:
        return bool(self._rates)

    def rate_for(self, currency_code: str | None) -> ConversionRate | None:
        if not currency_code:
            return None
        wanted = currency_code.upper()
        for rate in self._rates:
            if rate.currency.upper() == wanted and rate.is_usable:
                return rate
        return None

    def points_for(self, cent_amount: int | None, currency_code: str | None) -> int:
        return points_for(cent_amount, currency_code, self)

    def points_for_money(self, money: Money | None) -> int:
        if money is None:
            return 0
        return points_for(money.cent_amount, money.currency_code, self)


def _exact(value: int | float) -> Fraction:
    # Floats go through their shortest decimal form so 0.3 stays 3/10.
    return Fraction(str(value)) if isinstance(value, float) else Fraction(value)


def points_for(cent_amount: int | None, currency_code: str | None, table: ConversionTable) -> int:
    """Floor of ``cent_amount / currencyCentAmount * pointAmount``, or 0 without a usable rate."""

    if cent_amount is None:
        return 0
    rate = table.rate_for(currency_code)
    if rate is None:
        logger.debug("No conversion rate for currency", currency=currency_code)
        return 0
    exact = Fraction(cent_amount) / _exact(rate.currency_cent_amount) * _exact(rate.point_amount)
    return math.floor(exact)


__all__ = ["ConversionTable", "parse_conversion_rates", "points_for"]
