from decimal import Decimal

import pytest

from ordertrack.services.pricing_service import (
    compute_discount_amount,
    compute_final_amount,
    compute_unit_price_from_total,
    price_order,
)
from ordertrack.validation import ValidationError


class TestComputeFinalAmount:
    def test_percent_discount_and_shipping(self):
        # 30 x 50,000 = 1,500,000; 10% off = 150,000; +20,000 shipping
        assert compute_final_amount(30, 50000, discount_percent=10, shipping_fee=20000) == Decimal("1370000")

    def test_no_adjustments_is_gross(self):
        assert compute_final_amount(3, "12.50") == Decimal("37.50")

    def test_cash_discount_subtracted_after_percent(self):
        assert compute_final_amount(10, 100, discount_percent=50, discount_cash=100) == Decimal("400")

    def test_full_discount_plus_shipping(self):
        assert compute_final_amount(5, 200, discount_percent=100, shipping_fee=15) == Decimal("15")

    def test_breakdown_exposes_derived_amounts(self):
        breakdown = price_order(30, 50000, discount_percent=10, shipping_fee=20000)
        assert breakdown.gross_amount == Decimal("1500000")
        assert breakdown.discount_amount == Decimal("150000")
        assert breakdown.final_amount == Decimal("1370000")


class TestPricingValidation:
    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"quantity": 0, "unit_price": 10}, "quantity"),
            ({"quantity": -2, "unit_price": 10}, "quantity"),
            ({"quantity": 1, "unit_price": -1}, "unit_price"),
            ({"quantity": 1, "unit_price": 10, "discount_percent": 101}, "discount_percent"),
            ({"quantity": 1, "unit_price": 10, "discount_percent": -5}, "discount_percent"),
            ({"quantity": 1, "unit_price": 10, "discount_cash": -1}, "discount_cash"),
            ({"quantity": 1, "unit_price": 10, "shipping_fee": -1}, "shipping_fee"),
            ({"quantity": "abc", "unit_price": 10}, "quantity"),
        ],
    )
    def test_invalid_input_names_field(self, kwargs, field):
        with pytest.raises(ValidationError) as exc:
            price_order(**kwargs)
        assert exc.value.field == field

    def test_negative_final_amount_rejected(self):
        with pytest.raises(ValidationError) as exc:
            compute_final_amount(1, 100, discount_percent=50, discount_cash=60)
        assert exc.value.field == "discount_cash"

    def test_discount_amount(self):
        assert compute_discount_amount(Decimal("1500000"), 10) == Decimal("150000")


class TestUnitPriceFromTotal:
    def test_even_split(self):
        assert compute_unit_price_from_total(1500000, 30) == Decimal("50000")

    def test_uneven_split_held_at_four_places(self):
        assert compute_unit_price_from_total(100, 3) == Decimal("33.3333")

    def test_line_total_is_the_gross(self):
        breakdown = price_order(3, None, line_total=100)
        assert breakdown.unit_price == Decimal("33.3333")
        assert breakdown.gross_amount == Decimal("100")
        assert breakdown.final_amount == Decimal("100")
        assert breakdown.line_total == Decimal("100")

    def test_zero_quantity_rejected(self):
        with pytest.raises(ValidationError) as exc:
            compute_unit_price_from_total(100, 0)
        assert exc.value.field == "quantity"


class TestColumnScale:
    def test_percent_rounded_to_two_places_before_pricing(self):
        breakdown = price_order(1, 1000, discount_percent="12.345")
        assert breakdown.discount_percent == Decimal("12.35")
        assert breakdown.final_amount == Decimal("876.50")

    def test_money_inputs_rounded_to_four_places(self):
        breakdown = price_order(2, "1.00005", shipping_fee="0.00004")
        assert breakdown.unit_price == Decimal("1.0001")
        assert breakdown.shipping_fee == Decimal("0.0000")
        assert breakdown.final_amount == Decimal("2.0002")

    def test_discount_amount_held_at_four_places(self):
        breakdown = price_order(1, "33.3333", discount_percent="12.35")
        assert breakdown.discount_amount == Decimal("4.1167")
        assert breakdown.final_amount == Decimal("29.2166")

    def test_repricing_breakdown_is_stable(self):
        first = price_order(7, "19.99999", discount_percent="7.777", discount_cash="0.33333", shipping_fee=5)
        again = price_order(
            first.quantity, first.unit_price, first.discount_percent, first.discount_cash, first.shipping_fee
        )
        assert again == first


class TestMoneyBounds:
    def test_unit_price_over_limit(self):
        with pytest.raises(ValidationError) as exc:
            price_order(1, "100000000000")
        assert exc.value.field == "unit_price"

    def test_gross_over_limit(self):
        with pytest.raises(ValidationError) as exc:
            price_order(10, "99999999999")
        assert exc.value.field == "quantity"

    def test_shipping_pushing_total_over_limit(self):
        with pytest.raises(ValidationError) as exc:
            price_order(1, "99999999999", shipping_fee=1)
        assert exc.value.field == "shipping_fee"
