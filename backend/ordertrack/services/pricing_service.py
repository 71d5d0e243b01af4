# Overview: Pure order pricing; derives an order's final amount from its pricing inputs.

"""
Order Pricing Calculator

    gross           = quantity * unit_price
    discount_amount = gross * discount_percent / 100
    final_amount    = gross - discount_amount - discount_cash + shipping_fee

RULES:
- Inputs are validated, never clamped: quantity > 0, unit_price >= 0,
  0 <= discount_percent <= 100, discount_cash >= 0, shipping_fee >= 0.
- A combination that would make final_amount negative (cash discount larger
  than the discounted gross plus shipping) is rejected on discount_cash.
- Arithmetic is Decimal end to end at column scale: money inputs are
  quantized to 4 places and discount_percent to 2 before pricing, and
  discount_amount is held at 4 places, so pricing the stored fields again
  always reproduces the stored final_amount.
- In the "enter the line total" mode the total itself is the gross and is
  stored as line_total; unit_price is derived from it for display and
  later edits, never multiplied back.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..money import HUNDRED, ZERO, percent_of, to_money, to_percent
from ..validation import MAX_MONEY, ValidationError, to_decimal, to_int

# Fields whose change forces a recompute of the materialized amounts
PRICING_FIELDS = frozenset({"quantity", "unit_price", "discount_percent", "discount_cash", "shipping_fee"})

@dataclass(frozen=True)
class PricingBreakdown:
    quantity: int
    unit_price: Decimal
    discount_percent: Decimal
    discount_cash: Decimal
    shipping_fee: Decimal
    gross_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    line_total: Decimal | None = None

def _validate_quantity(quantity) -> int:
    qty = to_int(quantity, "quantity")
    if qty <= 0:
        raise ValidationError("quantity must be > 0", field="quantity")
    return qty

def _validate_non_negative(value, field: str) -> Decimal:
    amount = to_money(to_decimal(value, field))
    if amount < ZERO:
        raise ValidationError(f"{field} must be >= 0", field=field)
    return amount

def _validate_percent(value) -> Decimal:
    pct = to_percent(to_decimal(value, "discount_percent"))
    if pct < ZERO or pct > HUNDRED:
        raise ValidationError("discount_percent must be between 0 and 100", field="discount_percent")
    return pct

def compute_discount_amount(gross, percent) -> Decimal:
    """Percentage discount on a gross amount."""
    gross_amount = _validate_non_negative(gross, "gross_amount")
    pct = _validate_percent(percent)
    return to_money(percent_of(gross_amount, pct))

def price_order(
    quantity,
    unit_price,
    discount_percent=0,
    discount_cash=0,
    shipping_fee=0,
    line_total=None,
) -> PricingBreakdown:
    """
    Validate pricing inputs and return every derived amount.

    When `line_total` is given it is the gross amount and `unit_price` is
    derived from it; the `unit_price` argument is then ignored.

    Raises:
        ValidationError: naming the first offending field
    """
    qty = _validate_quantity(quantity)
    total = None
    if line_total is not None:
        total = _validate_non_negative(line_total, "total")
        price = compute_unit_price_from_total(total, qty)
    else:
        price = _validate_non_negative(unit_price, "unit_price")
    pct = _validate_percent(discount_percent)
    cash = _validate_non_negative(discount_cash, "discount_cash")
    shipping = _validate_non_negative(shipping_fee, "shipping_fee")

    gross = total if total is not None else qty * price
    if gross > MAX_MONEY:
        raise ValidationError("quantity * unit_price exceeds maximum allowed value", field="quantity")
    discount_amount = to_money(percent_of(gross, pct))
    final_amount = gross - discount_amount - cash + shipping

    if final_amount < ZERO:
        raise ValidationError(
            "discount_cash exceeds the discounted order total",
            field="discount_cash",
        )
    if final_amount > MAX_MONEY:
        raise ValidationError("shipping_fee pushes the order total over the maximum allowed value", field="shipping_fee")

    return PricingBreakdown(
        quantity=qty,
        unit_price=price,
        discount_percent=pct,
        discount_cash=cash,
        shipping_fee=shipping,
        gross_amount=gross,
        discount_amount=discount_amount,
        final_amount=final_amount,
        line_total=total,
    )

def compute_final_amount(
    quantity, unit_price, discount_percent=0, discount_cash=0, shipping_fee=0, line_total=None
) -> Decimal:
    """Authoritative amount owed for an order."""
    return price_order(
        quantity, unit_price, discount_percent, discount_cash, shipping_fee, line_total=line_total
    ).final_amount

def compute_unit_price_from_total(total, quantity) -> Decimal:
    """
    Derive the unit price for the "enter the line total" input mode.

    The result is held at column scale, so quantity * unit_price may miss the
    total by a fraction of a cent; price such lines with `line_total`.
    """
    qty = _validate_quantity(quantity)
    line_total = _validate_non_negative(total, "total")
    return to_money(line_total / Decimal(qty))
