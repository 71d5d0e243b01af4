"""
Money and quantity helpers shared by the pricing, ledger and reporting services.

All money is `decimal.Decimal`. Stored values are held at column scale
(`to_money` / `to_percent`) so what is priced is exactly what is persisted;
2-place rounding happens only in `round_display` for presentation.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

ZERO = Decimal("0")
HUNDRED = Decimal("100")
DISPLAY_QUANT = Decimal("0.01")

# Scale of the Numeric(18, 4) money columns and the Numeric(5, 2) percent columns
MONEY_QUANT = Decimal("0.0001")
PERCENT_QUANT = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def to_percent(value) -> Decimal:
    return Decimal(value).quantize(PERCENT_QUANT, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    """amount * percent / 100, exact."""
    return amount * percent / HUNDRED


def sum_amounts(values: Iterable) -> Decimal:
    total = ZERO
    for value in values:
        if value is None:
            continue
        total += Decimal(value)
    return total


def calc_progress(current, total) -> Decimal:
    """
    Percentage of `total` reached by `current`, clamped to [0, 100].

    A zero or missing total yields 0.
    """
    if not total:
        return ZERO
    progress = Decimal(current) / Decimal(total) * HUNDRED
    return min(HUNDRED, max(ZERO, progress))


def round_display(value) -> Decimal:
    return Decimal(value).quantize(DISPLAY_QUANT, rounding=ROUND_HALF_UP)


def to_json_amount(value) -> str | None:
    """
    Serialize a Decimal without exponent notation or padding zeros.

    Decimal("1370000.0000") -> "1370000"; Decimal("12.5000") -> "12.5"
    """
    if value is None:
        return None
    normalized = Decimal(value).normalize()
    if normalized == ZERO:
        return "0"
    return format(normalized, "f")
