# Overview: Service-layer operations for reporting; snapshots of orders/customers and cross-order aggregates.

"""
Aggregation Engine

compute_aggregates / compute_debt_summary / compute_customer_stats are pure
functions of a snapshot (lists of OrderSnapshot / CustomerSnapshot). The
load_* helpers build snapshots from the database in one pass and are the
only part that touches the session. Nothing here writes.

DEBT:
- order debt = max(final_amount - paid, 0), counted only for orders that are
  not completed
- paid uses the ledger rule (payment + balance_used + legacy - refund)

PERIOD REPORTS:
- compute_period_overview / compute_period_customer_stats / compute_product_stats
  cover every order dated in [start, end], completed orders included
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Customer, Order, Payment
from ..models.payments import BALANCE_CREDIT_TYPES, BALANCE_DEBIT_TYPES, REVENUE_ENTRY_TYPES, EntryType
from ..money import ZERO, calc_progress, round_display, sum_amounts, to_json_amount
from ..validation import NotFoundError
from ordertrack.time_utils import to_iso_date
from .ledger_service import sum_paid
from .lifecycle_service import ORDER_STATUS_COMPLETED


@dataclass(frozen=True)
class OrderSnapshot:
    order_id: int
    customer_id: int
    customer_name: str | None
    product: str
    unit: str | None
    quantity: int
    final_amount: Decimal
    order_date: date
    status: str
    total_delivered: int
    total_paid: Decimal
    # quantity * unit_price, or the entered line total
    gross_amount: Decimal = ZERO
    # percentage and cash discounts together
    discount_amount: Decimal = ZERO

    @property
    def is_completed(self) -> bool:
        return self.status == ORDER_STATUS_COMPLETED

    @property
    def remaining_delivery(self) -> int:
        return self.quantity - self.total_delivered

    @property
    def remaining_payment(self) -> Decimal:
        return self.final_amount - self.total_paid

    @property
    def debt(self) -> Decimal:
        return max(self.remaining_payment, ZERO)

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "product": self.product,
            "unit": self.unit,
            "quantity": self.quantity,
            "gross_amount": to_json_amount(self.gross_amount),
            "discount_amount": to_json_amount(self.discount_amount),
            "final_amount": to_json_amount(self.final_amount),
            "order_date": to_iso_date(self.order_date),
            "status": self.status,
            "total_delivered": self.total_delivered,
            "remaining_delivery": self.remaining_delivery,
            "total_paid": to_json_amount(self.total_paid),
            "remaining_payment": to_json_amount(self.remaining_payment),
            "delivery_progress": to_json_amount(round_display(calc_progress(self.total_delivered, self.quantity))),
            "payment_progress": to_json_amount(round_display(calc_progress(self.total_paid, self.final_amount))),
        }


@dataclass(frozen=True)
class CustomerSnapshot:
    customer_id: int
    name: str
    phone: str | None = None
    birthday: date | None = None
    balance: Decimal = ZERO


@dataclass(frozen=True)
class Aggregates:
    pending_count: int
    need_delivery_count: int
    total_debt: Decimal
    debtor_count: int

    def to_dict(self) -> dict:
        return {
            "pending_count": self.pending_count,
            "need_delivery_count": self.need_delivery_count,
            "total_debt": to_json_amount(self.total_debt),
            "debtor_count": self.debtor_count,
        }


@dataclass
class CustomerDebt:
    customer_id: int
    name: str | None
    phone: str | None
    total_amount: Decimal = ZERO
    total_paid: Decimal = ZERO
    total_quantity: int = 0
    total_delivered: int = 0
    orders: list = field(default_factory=list)

    @property
    def debt(self) -> Decimal:
        return self.total_amount - self.total_paid

    @property
    def remaining_delivery(self) -> int:
        return self.total_quantity - self.total_delivered

    def to_dict(self) -> dict:
        return {
            "customer_id": self.customer_id,
            "name": self.name,
            "phone": self.phone,
            "total_amount": to_json_amount(self.total_amount),
            "total_paid": to_json_amount(self.total_paid),
            "debt": to_json_amount(self.debt),
            "remaining_delivery": self.remaining_delivery,
            "orders": [o.to_dict() for o in self.orders],
        }


# =============================================================================
# SNAPSHOTS
# =============================================================================

def order_gross_amount(order: Order) -> Decimal:
    if order.line_total is not None:
        return Decimal(order.line_total)
    return order.quantity * Decimal(order.unit_price)


def snapshot_order(order: Order) -> OrderSnapshot:
    """Snapshot from an ORM order with deliveries and payments loaded."""
    return OrderSnapshot(
        order_id=order.id,
        customer_id=order.customer_id,
        customer_name=order.customer.name if order.customer else None,
        product=order.product,
        unit=order.unit,
        quantity=order.quantity,
        final_amount=Decimal(order.final_amount),
        order_date=order.order_date,
        status=order.status,
        total_delivered=sum(d.quantity for d in order.deliveries),
        total_paid=sum_paid(order.payments),
        gross_amount=order_gross_amount(order),
        discount_amount=Decimal(order.discount_amount or 0) + Decimal(order.discount_cash or 0),
    )


def snapshot_customer(customer: Customer) -> CustomerSnapshot:
    return CustomerSnapshot(
        customer_id=customer.id,
        name=customer.name,
        phone=customer.phone,
        birthday=customer.birthday,
        balance=Decimal(customer.balance or 0),
    )


def load_order_snapshots(
    *,
    customer_id: int | None = None,
    include_completed: bool = True,
    start: date | None = None,
    end: date | None = None,
) -> list[OrderSnapshot]:
    query = db.session.query(Order).options(
        selectinload(Order.deliveries),
        selectinload(Order.payments),
        selectinload(Order.customer),
    )
    if customer_id is not None:
        query = query.filter(Order.customer_id == customer_id)
    if not include_completed:
        query = query.filter(Order.status != ORDER_STATUS_COMPLETED)
    if start is not None:
        query = query.filter(Order.order_date >= start)
    if end is not None:
        query = query.filter(Order.order_date <= end)
    orders = query.order_by(Order.order_date.desc(), Order.id.desc()).all()
    return [snapshot_order(o) for o in orders]


def load_customer_snapshots() -> list[CustomerSnapshot]:
    customers = db.session.query(Customer).order_by(Customer.name.asc(), Customer.id.asc()).all()
    return [snapshot_customer(c) for c in customers]


# =============================================================================
# PURE AGGREGATES
# =============================================================================

def compute_aggregates(orders: list[OrderSnapshot]) -> Aggregates:
    """
    Dashboard numbers over a snapshot of orders.

    - pending_count: orders not completed
    - need_delivery_count: not completed and delivered < quantity
    - total_debt: sum of positive remaining payment over orders not completed
    - debtor_count: distinct customers with at least one such order
    """
    pending = [o for o in orders if not o.is_completed]

    total_debt = ZERO
    debtors = set()
    for o in pending:
        if o.remaining_payment > ZERO:
            total_debt += o.remaining_payment
            debtors.add(o.customer_id)

    return Aggregates(
        pending_count=len(pending),
        need_delivery_count=sum(1 for o in pending if o.total_delivered < o.quantity),
        total_debt=total_debt,
        debtor_count=len(debtors),
    )


def compute_debt_summary(orders: list[OrderSnapshot], customers: list[CustomerSnapshot] | None = None) -> list[CustomerDebt]:
    """
    Group open orders per customer; keep customers that still owe money or
    goods, largest debt first.
    """
    phones = {c.customer_id: c.phone for c in customers or []}
    grouped: dict[int, CustomerDebt] = {}

    for o in orders:
        if o.is_completed:
            continue
        entry = grouped.get(o.customer_id)
        if entry is None:
            entry = CustomerDebt(
                customer_id=o.customer_id,
                name=o.customer_name,
                phone=phones.get(o.customer_id),
            )
            grouped[o.customer_id] = entry
        entry.orders.append(o)
        entry.total_amount += o.final_amount
        entry.total_paid += o.total_paid
        entry.total_quantity += o.quantity
        entry.total_delivered += o.total_delivered

    owing = [c for c in grouped.values() if c.debt > ZERO or c.remaining_delivery > 0]
    owing.sort(key=lambda c: (-c.debt, c.customer_id))
    return owing


def compute_customer_stats(orders: list[OrderSnapshot], customers: list[CustomerSnapshot]) -> list[dict]:
    """
    Lifetime order count, amount, paid and debt per customer (all orders,
    completed included).
    """
    stats: dict[int, dict] = {
        c.customer_id: {"order_count": 0, "total_amount": ZERO, "total_paid": ZERO}
        for c in customers
    }
    for o in orders:
        row = stats.setdefault(o.customer_id, {"order_count": 0, "total_amount": ZERO, "total_paid": ZERO})
        row["order_count"] += 1
        row["total_amount"] += o.final_amount
        row["total_paid"] += o.total_paid

    result = []
    for c in customers:
        row = stats[c.customer_id]
        result.append({
            "customer_id": c.customer_id,
            "name": c.name,
            "phone": c.phone,
            "balance": c.balance,
            "order_count": row["order_count"],
            "total_amount": row["total_amount"],
            "total_paid": row["total_paid"],
            "debt": row["total_amount"] - row["total_paid"],
        })
    return result


@dataclass(frozen=True)
class PeriodOverview:
    start: date | None
    end: date | None
    order_count: int
    total_gross: Decimal
    total_discount: Decimal
    total_revenue: Decimal
    total_paid: Decimal
    total_quantity: int
    total_delivered: int
    unique_customers: int

    @property
    def total_debt(self) -> Decimal:
        return self.total_revenue - self.total_paid

    @property
    def delivery_rate(self) -> Decimal:
        return calc_progress(self.total_delivered, self.total_quantity)

    def to_dict(self) -> dict:
        return {
            "start": to_iso_date(self.start),
            "end": to_iso_date(self.end),
            "order_count": self.order_count,
            "total_gross": to_json_amount(self.total_gross),
            "total_discount": to_json_amount(self.total_discount),
            "total_revenue": to_json_amount(self.total_revenue),
            "total_paid": to_json_amount(self.total_paid),
            "total_debt": to_json_amount(self.total_debt),
            "delivery_rate": to_json_amount(round_display(self.delivery_rate)),
            "unique_customers": self.unique_customers,
        }


@dataclass
class SalesGroup:
    """Running totals for a group of orders (one product, or one customer)."""
    key: object
    name: str | None
    unit: str | None = None
    order_count: int = 0
    total_quantity: int = 0
    total_gross: Decimal = ZERO
    total_discount: Decimal = ZERO
    total_amount: Decimal = ZERO
    total_paid: Decimal = ZERO

    def add(self, order: OrderSnapshot) -> None:
        self.order_count += 1
        self.total_quantity += order.quantity
        self.total_gross += order.gross_amount
        self.total_discount += order.discount_amount
        self.total_amount += order.final_amount
        self.total_paid += order.total_paid

    @property
    def avg_price(self) -> Decimal:
        if not self.total_quantity:
            return ZERO
        return self.total_amount / self.total_quantity

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "unit": self.unit,
            "order_count": self.order_count,
            "total_quantity": self.total_quantity,
            "total_gross": to_json_amount(self.total_gross),
            "total_discount": to_json_amount(self.total_discount),
            "total_amount": to_json_amount(self.total_amount),
            "total_paid": to_json_amount(self.total_paid),
            "debt": to_json_amount(self.total_amount - self.total_paid),
            "avg_price": to_json_amount(round_display(self.avg_price)),
        }


@dataclass
class ProductStats(SalesGroup):
    customers: list = field(default_factory=list)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["product"] = self.key
        data["customers"] = [dict(c.to_dict(), customer_id=c.key) for c in self.customers]
        return data


def filter_orders_by_period(orders: list[OrderSnapshot], start: date | None, end: date | None) -> list[OrderSnapshot]:
    """Orders whose order_date falls in [start, end]; a None bound is open."""
    return [
        o for o in orders
        if (start is None or o.order_date >= start) and (end is None or o.order_date <= end)
    ]


def compute_period_overview(
    orders: list[OrderSnapshot], start: date | None = None, end: date | None = None
) -> PeriodOverview:
    """
    Sales overview for orders dated within [start, end], completed included.

    revenue is the sum of final amounts; debt is revenue minus paid, so an
    overpaid order offsets an unpaid one within the period.
    """
    period = filter_orders_by_period(orders, start, end)
    return PeriodOverview(
        start=start,
        end=end,
        order_count=len(period),
        total_gross=sum_amounts(o.gross_amount for o in period),
        total_discount=sum_amounts(o.discount_amount for o in period),
        total_revenue=sum_amounts(o.final_amount for o in period),
        total_paid=sum_amounts(o.total_paid for o in period),
        total_quantity=sum(o.quantity for o in period),
        total_delivered=sum(o.total_delivered for o in period),
        unique_customers=len({o.customer_id for o in period}),
    )


def _by_amount(groups) -> list:
    return sorted(groups, key=lambda g: (-g.total_amount, str(g.key)))


def compute_period_customer_stats(orders: list[OrderSnapshot]) -> list[SalesGroup]:
    """Per-customer totals over the given orders, largest total first."""
    grouped: dict[int, SalesGroup] = {}
    for o in orders:
        group = grouped.get(o.customer_id)
        if group is None:
            group = grouped[o.customer_id] = SalesGroup(key=o.customer_id, name=o.customer_name)
        group.add(o)
    return _by_amount(grouped.values())


def compute_product_stats(orders: list[OrderSnapshot]) -> list[ProductStats]:
    """
    Per-product totals with a per-customer breakdown, largest total first.

    Products are grouped by their exact name; the unit is taken from the
    first order seen.
    """
    grouped: dict[str, ProductStats] = {}
    per_customer: dict[str, dict[int, SalesGroup]] = {}
    for o in orders:
        stats = grouped.get(o.product)
        if stats is None:
            stats = grouped[o.product] = ProductStats(key=o.product, name=o.product, unit=o.unit)
            per_customer[o.product] = {}
        stats.add(o)

        customers = per_customer[o.product]
        group = customers.get(o.customer_id)
        if group is None:
            group = customers[o.customer_id] = SalesGroup(key=o.customer_id, name=o.customer_name, unit=o.unit)
        group.add(o)

    for product, stats in grouped.items():
        stats.customers = _by_amount(per_customer[product].values())
    return _by_amount(grouped.values())


# =============================================================================
# DATABASE-BACKED REPORTS
# =============================================================================

def total_revenue() -> Decimal:
    """Money received from customers: payments, deposits and legacy entries."""
    entries = db.session.query(Payment).all()
    return sum_amounts(e.amount for e in entries if e.entry_type in REVENUE_ENTRY_TYPES)


def dashboard_stats() -> dict:
    aggregates = compute_aggregates(load_order_snapshots(include_completed=False))
    stats = aggregates.to_dict()
    stats["total_revenue"] = to_json_amount(total_revenue())
    return stats


def customers_with_stats() -> list[dict]:
    rows = compute_customer_stats(load_order_snapshots(), load_customer_snapshots())
    for row in rows:
        for key in ("balance", "total_amount", "total_paid", "debt"):
            row[key] = to_json_amount(row[key])
    return rows


def debt_summary() -> list[dict]:
    orders = load_order_snapshots(include_completed=False)
    return [c.to_dict() for c in compute_debt_summary(orders, load_customer_snapshots())]


def customer_report(customer_id: int) -> dict:
    """
    One customer's orders with positions, full ledger history and balance
    movement totals.

    Raises:
        NotFoundError: If the customer does not exist
    """
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if not customer:
        raise NotFoundError(f"Customer {customer_id} not found")

    orders = load_order_snapshots(customer_id=customer_id)
    transactions = db.session.query(Payment).filter_by(customer_id=customer_id).order_by(
        Payment.created_at.desc(), Payment.id.desc()
    ).all()

    total_deposit = sum_amounts(t.amount for t in transactions if t.entry_type in BALANCE_CREDIT_TYPES)
    total_used = sum_amounts(t.amount for t in transactions if t.entry_type in BALANCE_DEBIT_TYPES)
    total_refund = sum_amounts(t.amount for t in transactions if t.entry_type is EntryType.REFUND)

    total_amount = sum_amounts(o.final_amount for o in orders)
    total_paid = sum_amounts(o.total_paid for o in orders)

    return {
        "customer": customer.to_dict(),
        "orders": [o.to_dict() for o in orders],
        "transactions": [t.to_dict() for t in transactions],
        "total_amount": to_json_amount(total_amount),
        "total_paid": to_json_amount(total_paid),
        "debt": to_json_amount(sum_amounts(o.debt for o in orders if not o.is_completed)),
        "total_deposit": to_json_amount(total_deposit),
        "total_balance_used": to_json_amount(total_used),
        "total_refund": to_json_amount(total_refund),
    }


def period_report(start: date | None = None, end: date | None = None) -> dict:
    """Overview, per-customer and per-product totals for orders dated in [start, end]."""
    orders = load_order_snapshots(start=start, end=end)
    return {
        "overview": compute_period_overview(orders, start, end).to_dict(),
        "customers": [dict(c.to_dict(), customer_id=c.key) for c in compute_period_customer_stats(orders)],
        "products": [p.to_dict() for p in compute_product_stats(orders)],
    }


def product_report(start: date | None = None, end: date | None = None, top: int | None = None) -> list[dict]:
    stats = compute_product_stats(load_order_snapshots(start=start, end=end))
    if top is not None:
        stats = stats[:top]
    return [p.to_dict() for p in stats]
