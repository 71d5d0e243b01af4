from datetime import date
from decimal import Decimal

import pytest

from ordertrack.services import ledger_service, order_service, reporting_service
from ordertrack.services.reporting_service import (
    CustomerSnapshot,
    OrderSnapshot,
    compute_aggregates,
    compute_customer_stats,
    compute_debt_summary,
    compute_period_overview,
    compute_product_stats,
    filter_orders_by_period,
)
from ordertrack.validation import NotFoundError


def _order(
    order_id,
    customer_id,
    *,
    quantity=10,
    final_amount="1000",
    delivered=0,
    paid="0",
    status="pending",
    product="Rice",
    order_date=date(2026, 10, 1),
    gross_amount=None,
    discount_amount="0",
):
    return OrderSnapshot(
        order_id=order_id,
        customer_id=customer_id,
        customer_name=f"Customer {customer_id}",
        product=product,
        unit="bag",
        quantity=quantity,
        final_amount=Decimal(final_amount),
        order_date=order_date,
        status=status,
        total_delivered=delivered,
        total_paid=Decimal(paid),
        gross_amount=Decimal(gross_amount if gross_amount is not None else final_amount),
        discount_amount=Decimal(discount_amount),
    )


class TestComputeAggregates:
    def test_single_debtor(self):
        orders = [
            _order(1, 1, final_amount="300000", paid="200000"),
            _order(2, 1, final_amount="50000", paid="50000", delivered=10),
        ]
        aggregates = compute_aggregates(orders)
        assert aggregates.total_debt == Decimal("100000")
        assert aggregates.debtor_count == 1
        assert aggregates.pending_count == 2
        assert aggregates.need_delivery_count == 1

    def test_two_customers_one_owing(self):
        orders = [
            _order(1, 1, final_amount="300000", paid="200000"),
            _order(2, 2, final_amount="300000", paid="300000"),
        ]
        aggregates = compute_aggregates(orders)
        assert aggregates.total_debt == Decimal("100000")
        assert aggregates.debtor_count == 1

    def test_completed_orders_ignored(self):
        orders = [_order(1, 1, paid="0", status="completed"), _order(2, 2, paid="0")]
        aggregates = compute_aggregates(orders)
        assert aggregates.pending_count == 1
        assert aggregates.total_debt == Decimal("1000")
        assert aggregates.debtor_count == 1

    def test_overpaid_order_is_not_negative_debt(self):
        orders = [_order(1, 1, paid="1500"), _order(2, 2, paid="200")]
        aggregates = compute_aggregates(orders)
        assert aggregates.total_debt == Decimal("800")
        assert aggregates.debtor_count == 1

    def test_empty_snapshot(self):
        aggregates = compute_aggregates([])
        assert aggregates.to_dict() == {
            "pending_count": 0,
            "need_delivery_count": 0,
            "total_debt": "0",
            "debtor_count": 0,
        }


class TestDebtSummary:
    def test_groups_by_customer_largest_first(self):
        orders = [
            _order(1, 1, final_amount="100", paid="50"),
            _order(2, 2, final_amount="900", paid="0"),
            _order(3, 1, final_amount="100", paid="0"),
            _order(4, 3, final_amount="100", paid="100", delivered=10),
        ]
        customers = [CustomerSnapshot(customer_id=1, name="A", phone="111")]
        summary = compute_debt_summary(orders, customers)

        assert [c.customer_id for c in summary] == [2, 1]
        assert summary[1].debt == Decimal("150")
        assert summary[1].phone == "111"
        assert len(summary[1].orders) == 2

    def test_customer_owing_goods_only_is_listed(self):
        summary = compute_debt_summary([_order(1, 1, paid="1000", delivered=3)])
        assert len(summary) == 1
        assert summary[0].debt == Decimal("0")
        assert summary[0].remaining_delivery == 7


class TestCustomerStats:
    def test_counts_all_orders(self):
        customers = [CustomerSnapshot(customer_id=1, name="A"), CustomerSnapshot(customer_id=2, name="B")]
        orders = [_order(1, 1, paid="400"), _order(2, 1, status="completed", paid="1000")]
        rows = {r["customer_id"]: r for r in compute_customer_stats(orders, customers)}

        assert rows[1]["order_count"] == 2
        assert rows[1]["total_amount"] == Decimal("2000")
        assert rows[1]["debt"] == Decimal("600")
        assert rows[2]["order_count"] == 0


class TestPeriodOverview:
    def test_totals_within_period(self):
        orders = [
            _order(1, 1, final_amount="900", gross_amount="1000", discount_amount="100", paid="400", delivered=10),
            _order(2, 2, final_amount="500", paid="500", status="completed", order_date=date(2026, 10, 20)),
            _order(3, 1, final_amount="700", order_date=date(2026, 9, 30)),
        ]
        overview = compute_period_overview(orders, date(2026, 10, 1), date(2026, 10, 31))

        assert overview.order_count == 2
        assert overview.total_gross == Decimal("1500")
        assert overview.total_discount == Decimal("100")
        assert overview.total_revenue == Decimal("1400")
        assert overview.total_paid == Decimal("900")
        assert overview.total_debt == Decimal("500")
        assert overview.delivery_rate == Decimal("50")
        assert overview.unique_customers == 2

    def test_bounds_are_inclusive_and_optional(self):
        orders = [
            _order(1, 1, order_date=date(2026, 1, 1)),
            _order(2, 1, order_date=date(2026, 1, 31)),
            _order(3, 1, order_date=date(2026, 2, 1)),
        ]
        assert [o.order_id for o in filter_orders_by_period(orders, date(2026, 1, 1), date(2026, 1, 31))] == [1, 2]
        assert [o.order_id for o in filter_orders_by_period(orders, date(2026, 1, 31), None)] == [2, 3]
        assert len(filter_orders_by_period(orders, None, None)) == 3

    def test_empty_period(self):
        overview = compute_period_overview([], date(2026, 1, 1), date(2026, 1, 31)).to_dict()
        assert overview["order_count"] == 0
        assert overview["total_debt"] == "0"
        assert overview["delivery_rate"] == "0"
        assert overview["start"] == "2026-01-01"


class TestProductStats:
    def test_groups_by_product_best_seller_first(self):
        orders = [
            _order(1, 1, product="Rice", quantity=10, final_amount="1000", discount_amount="50"),
            _order(2, 2, product="Oil", quantity=2, final_amount="3000"),
            _order(3, 2, product="Rice", quantity=5, final_amount="500"),
            _order(4, 1, product="Rice", quantity=5, final_amount="600"),
        ]
        stats = compute_product_stats(orders)

        assert [s.key for s in stats] == ["Oil", "Rice"]
        rice = stats[1]
        assert rice.order_count == 3
        assert rice.total_quantity == 20
        assert rice.total_amount == Decimal("2100")
        assert rice.total_discount == Decimal("50")
        assert rice.avg_price == Decimal("105")
        assert rice.unit == "bag"

    def test_customer_breakdown(self):
        orders = [
            _order(1, 1, product="Rice", quantity=10, final_amount="1000"),
            _order(2, 2, product="Rice", quantity=5, final_amount="1500"),
            _order(3, 1, product="Rice", quantity=5, final_amount="600"),
        ]
        rice = compute_product_stats(orders)[0]

        assert [c.key for c in rice.customers] == [1, 2]
        assert rice.customers[0].total_quantity == 15
        assert rice.customers[0].total_amount == Decimal("1600")

        payload = rice.to_dict()
        assert payload["product"] == "Rice"
        assert payload["customers"][1]["customer_id"] == 2
        assert payload["customers"][1]["name"] == "Customer 2"


class TestDatabaseReports:
    def test_dashboard_includes_revenue(self, db_session, make_customer, make_order, make_entry):
        customer = make_customer()
        order = make_order(customer, final_amount=1000)
        ledger_service.add_payment(order.id, 300)
        ledger_service.deposit(customer.id, 500)
        ledger_service.add_payment(order.id, 200, entry_type="balance_used")
        make_entry(customer, 50, None, order=order)

        stats = reporting_service.dashboard_stats()
        # payment + deposit + legacy; balance spends are not new money
        assert stats["total_revenue"] == "850"
        assert stats["total_debt"] == "450"
        assert stats["debtor_count"] == 1

    def test_customer_report(self, db_session, make_customer, make_order):
        customer = make_customer()
        order = make_order(customer, final_amount=1000)
        ledger_service.deposit(customer.id, 400)
        ledger_service.add_payment(order.id, 100, entry_type="balance_used")
        ledger_service.add_payment(order.id, 20, entry_type="refund")

        report = reporting_service.customer_report(customer.id)
        assert report["total_deposit"] == "400"
        assert report["total_balance_used"] == "100"
        assert report["total_refund"] == "20"
        assert report["debt"] == "920"
        assert len(report["orders"]) == 1

    def test_customer_report_unknown(self, db_session):
        with pytest.raises(NotFoundError):
            reporting_service.customer_report(999)

    def test_customers_with_stats_serializes_amounts(self, db_session, make_customer, make_order):
        customer = make_customer()
        make_order(customer, final_amount=250)
        rows = reporting_service.customers_with_stats()
        assert rows[0]["total_amount"] == "250"
        assert rows[0]["order_count"] == 1

    def test_period_report_uses_stored_pricing(self, db_session, make_customer):
        customer = make_customer()
        order = order_service.create_order(customer.id, {
            "product": "Tea", "quantity": 3, "total": 100, "discount_percent": 10, "order_date": "2026-10-05",
        })
        order_service.create_order(customer.id, {
            "product": "Tea", "quantity": 1, "unit_price": 50, "order_date": "2026-09-05",
        })
        ledger_service.add_payment(order.id, 40)

        report = reporting_service.period_report(date(2026, 10, 1), date(2026, 10, 31))
        assert report["overview"]["order_count"] == 1
        assert report["overview"]["total_gross"] == "100"
        assert report["overview"]["total_discount"] == "10"
        assert report["overview"]["total_revenue"] == "90"
        assert report["overview"]["total_debt"] == "50"
        assert report["customers"][0]["customer_id"] == customer.id
        assert report["products"][0]["product"] == "Tea"

    def test_product_report_top(self, db_session, make_customer, make_order):
        customer = make_customer()
        make_order(customer, product="Rice", final_amount=300)
        make_order(customer, product="Oil", final_amount=500)
        make_order(customer, product="Salt", final_amount=100)

        items = reporting_service.product_report(top=2)
        assert [i["product"] for i in items] == ["Oil", "Rice"]
