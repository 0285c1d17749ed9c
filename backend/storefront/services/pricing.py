from __future__ import annotations

from decimal import Decimal, ROUND_DOWN, ROUND_HALF_EVEN, ROUND_HALF_UP, ROUND_UP
from typing import Literal

from storefront.core.config import settings


MONEY_QUANT = Decimal("0.01")
RUPEE_QUANT = Decimal("1")

MoneyRounding = Literal["half_up", "half_even", "up", "down"]


_ROUNDING_MAP: dict[str, str] = {
    "half_up": ROUND_HALF_UP,
    "half_even": ROUND_HALF_EVEN,
    "up": ROUND_UP,
    "down": ROUND_DOWN,
}


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() first so floats keep their printed value rather than binary noise.
    return Decimal(str(value))


def quantize_money(value: Decimal | int | float | str, *, rounding: MoneyRounding = "half_up") -> Decimal:
    mode = _ROUNDING_MAP.get(str(rounding), ROUND_HALF_UP)
    return to_decimal(value).quantize(MONEY_QUANT, rounding=mode)


def round_rupees(value: Decimal | int | float | str) -> Decimal:
    """Round to the nearest whole rupee, halves away from zero."""
    return to_decimal(value).quantize(RUPEE_QUANT, rounding=ROUND_HALF_UP)


def percentage_of(total: Decimal, percent: Decimal) -> Decimal:
    return to_decimal(total) * to_decimal(percent) / Decimal("100")


def format_rupees(value: Decimal | int | float | str) -> str:
    """Render an amount the way customer-facing messages show it (``₹500``, ``₹99.5``)."""
    amount = to_decimal(value)
    if amount == amount.to_integral_value():
        text = str(amount.quantize(RUPEE_QUANT))
    else:
        text = format(amount.normalize(), "f")
    return f"{settings.currency_symbol}{text}"
