from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal

MoneyLike = str | Decimal

_MONEY_Q = Decimal("0.01")
_PRICE_Q = Decimal("0.001")
_SHARES_Q = Decimal("0.001")


def quantize_money(value: Decimal, places: MoneyLike = _MONEY_Q) -> Decimal:
    """Quantize monetary values consistently across the codebase."""
    quant = Decimal(places)
    return value.quantize(quant)


def quantize_price(value: Decimal) -> Decimal:
    """Per-share prices derived from feed amounts carry three decimals."""
    return value.quantize(_PRICE_Q)


def quantize_shares(value: Decimal) -> Decimal:
    """Share balances are tracked to three decimals to absorb fractional noise."""
    return value.quantize(_SHARES_Q)


def floor_shares(value: Decimal) -> Decimal:
    return value.to_integral_value(rounding=ROUND_FLOOR)


def safe_div(numerator: Decimal, denominator: Decimal) -> Decimal | None:
    """Divide, returning None ("unknown") instead of raising on a zero divisor."""
    if denominator == 0:
        return None
    return numerator / denominator


def abs_decimal(value: Decimal) -> Decimal:
    """Return the absolute value using Decimal.copy_abs for stability."""
    return value.copy_abs()
