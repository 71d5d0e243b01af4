# Overview: Service-layer operations for the delivery/payment ledger; encapsulates business logic and database work.

"""
Ledger Store

Ledger Invariants (authoritative)

- Deliveries and payment entries are append-only; the only correction is
  deletion by id.
- Entry types are validated on write. NULL types exist only on legacy rows
  and are read as payments (EntryType.LEGACY_UNTYPED).
- Every write that adds or removes a deposit/withdraw/balance_used entry
  reconciles the customer's balance before the transaction commits.
- Every delivery/payment write re-evaluates the order's completion.
- A rejected write leaves no partial state: each operation is one
  transaction, rolled back on any error.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Customer, Delivery, Order, Payment
from ..models.payments import (
    BALANCE_AFFECTING_TYPES,
    BALANCE_DEBIT_TYPES,
    PAID_ENTRY_TYPES,
    PAID_REDUCING_ENTRY_TYPES,
    EntryType,
)
from ..money import ZERO, calc_progress
from ..validation import NotFoundError, ValidationError, to_date, to_decimal, to_int
from ordertrack.time_utils import today
from .balance_service import _reconcile_locked, ensure_sufficient_balance, get_customer_locked
from .concurrency import customer_guard, lock_for_update, run_with_retry


# Entry types accepted against an order through add_payment
ORDER_ENTRY_TYPES = frozenset({EntryType.PAYMENT, EntryType.BALANCE_USED, EntryType.REFUND})

# Entry types accepted by import_ledger_entry (older data)
IMPORTABLE_ENTRY_TYPES = frozenset({
    EntryType.PAYMENT,
    EntryType.DEPOSIT,
    EntryType.BALANCE_USED,
    EntryType.WITHDRAW,
    EntryType.REFUND,
    EntryType.LEGACY_UNTYPED,
})


# =============================================================================
# QUERIES
# =============================================================================

def get_order(order_id: int) -> Order:
    order = db.session.query(Order).filter_by(id=order_id).first()
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def get_order_locked(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def total_delivered(order_id: int) -> int:
    """Sum of delivered quantities for an order."""
    total = db.session.query(
        db.func.coalesce(db.func.sum(Delivery.quantity), 0)
    ).filter(Delivery.order_id == order_id).scalar()
    return int(total or 0)


def sum_paid(entries) -> Decimal:
    """
    Paid total over a collection of ledger entries for one order.

    payment + balance_used + legacy untyped, minus refunds.
    """
    paid = ZERO
    for entry in entries:
        entry_type = entry.entry_type
        if entry_type in PAID_ENTRY_TYPES:
            paid += Decimal(entry.amount)
        elif entry_type in PAID_REDUCING_ENTRY_TYPES:
            paid -= Decimal(entry.amount)
    return paid


def total_paid(order_id: int) -> Decimal:
    """Effective amount paid toward an order."""
    entries = db.session.query(Payment).filter(Payment.order_id == order_id).all()
    return sum_paid(entries)


def remaining_delivery(order: Order) -> int:
    """Quantity still to deliver. Negative when over-delivered."""
    return order.quantity - total_delivered(order.id)


def remaining_payment(order: Order) -> Decimal:
    """Amount still owed. Negative when over-paid."""
    return Decimal(order.final_amount) - total_paid(order.id)


def get_order_summary(order_id: int) -> dict:
    """
    Delivery and payment position of one order.

    Returns:
        - order: the order record
        - total_delivered / remaining_delivery / delivery_progress
        - total_paid / remaining_payment / payment_progress
        - deliveries / payments: ledger records, oldest first
    """
    order = get_order(order_id)
    delivered = total_delivered(order.id)
    paid = total_paid(order.id)
    final_amount = Decimal(order.final_amount)

    return {
        "order": order,
        "total_delivered": delivered,
        "remaining_delivery": order.quantity - delivered,
        "delivery_progress": calc_progress(delivered, order.quantity),
        "total_paid": paid,
        "remaining_payment": final_amount - paid,
        "payment_progress": calc_progress(paid, final_amount),
        "deliveries": list_order_deliveries(order.id),
        "payments": list_order_payments(order.id),
    }


def list_order_deliveries(order_id: int) -> list[Delivery]:
    return db.session.query(Delivery).filter_by(order_id=order_id).order_by(
        Delivery.delivery_date, Delivery.id
    ).all()


def list_order_payments(order_id: int) -> list[Payment]:
    return db.session.query(Payment).filter_by(order_id=order_id).order_by(
        Payment.payment_date, Payment.id
    ).all()


def list_customer_entries(customer_id: int, entry_types=None) -> list[Payment]:
    """
    All ledger entries for a customer, newest first.

    entry_types: optional iterable of EntryType to filter on
    """
    query = db.session.query(Payment).filter(Payment.customer_id == customer_id)
    entries = query.order_by(Payment.created_at.desc(), Payment.id.desc()).all()
    if entry_types is None:
        return entries
    wanted = frozenset(entry_types)
    return [e for e in entries if e.entry_type in wanted]


def get_customer_transactions(customer_id: int) -> list[Payment]:
    """Balance history: deposits, balance spends (incl. legacy withdraw) and refunds."""
    if not db.session.query(Customer.id).filter_by(id=customer_id).first():
        raise NotFoundError(f"Customer {customer_id} not found")
    return list_customer_entries(
        customer_id,
        entry_types=BALANCE_AFFECTING_TYPES | {EntryType.REFUND},
    )


# =============================================================================
# INPUT VALIDATION
# =============================================================================

def _validate_amount(amount) -> Decimal:
    value = to_decimal(amount, "amount")
    if value <= ZERO:
        raise ValidationError("amount must be > 0", field="amount")
    return value


def _validate_entry_type(entry_type, allowed: frozenset) -> EntryType:
    if isinstance(entry_type, EntryType):
        parsed = entry_type
    else:
        try:
            parsed = EntryType.from_raw(entry_type)
        except ValueError:
            raise ValidationError(f"Invalid payment type: {entry_type}", field="type")
    if parsed not in allowed:
        allowed_names = ", ".join(sorted(t.value for t in allowed))
        raise ValidationError(f"Invalid payment type: {parsed.value}. Must be one of {allowed_names}", field="type")
    return parsed


def _entry_date(value) -> date:
    if value is None:
        return today()
    return to_date(value, "payment_date")


# =============================================================================
# DELIVERIES
# =============================================================================

def add_delivery(order_id: int, quantity, delivery_date=None, note: str | None = None) -> Delivery:
    """
    Record goods handed over for an order.

    Over-delivery is accepted; the order's remaining delivery goes negative.

    Raises:
        ValidationError: If quantity is not a positive integer
        NotFoundError: If the order does not exist
    """
    from .lifecycle_service import evaluate_completion

    def _op():
        qty = to_int(quantity, "quantity")
        if qty <= 0:
            raise ValidationError("quantity must be > 0", field="quantity")
        delivered_on = today() if delivery_date is None else to_date(delivery_date, "delivery_date")

        order = get_order_locked(order_id)

        delivery = Delivery(
            order_id=order.id,
            quantity=qty,
            delivery_date=delivered_on,
            note=note,
        )
        db.session.add(delivery)
        db.session.flush()

        evaluate_completion(order)

        db.session.commit()
        return delivery

    return run_with_retry(_op)


def delete_delivery(delivery_id: int) -> None:
    """
    Remove a delivery. A completed order stays completed.

    Raises:
        NotFoundError: If the delivery does not exist
    """
    def _op():
        delivery = db.session.query(Delivery).filter_by(id=delivery_id).first()
        if not delivery:
            raise NotFoundError(f"Delivery {delivery_id} not found")
        db.session.delete(delivery)
        db.session.commit()

    run_with_retry(_op)


# =============================================================================
# PAYMENTS, DEPOSITS, BALANCE SPENDS
# =============================================================================

def _insert_entry(
    *,
    customer: Customer,
    order: Order | None,
    amount: Decimal,
    entry_type: EntryType,
    payment_date: date,
    note: str | None,
) -> Payment:
    """
    Insert one ledger entry and run the write-side consequences.

    Caller holds customer_guard when entry_type moves the balance, and owns
    the transaction.
    """
    from .lifecycle_service import evaluate_completion

    if entry_type in BALANCE_DEBIT_TYPES:
        ensure_sufficient_balance(customer, amount)

    entry = Payment(
        customer_id=customer.id,
        order_id=order.id if order else None,
        amount=amount,
        type=None if entry_type is EntryType.LEGACY_UNTYPED else entry_type.value,
        payment_date=payment_date,
        note=note,
    )
    db.session.add(entry)
    db.session.flush()

    if entry_type in BALANCE_AFFECTING_TYPES:
        _reconcile_locked(customer)

    if order is not None:
        evaluate_completion(order)

    return entry


def add_payment(
    order_id: int,
    amount,
    payment_date=None,
    note: str | None = None,
    entry_type=EntryType.PAYMENT,
) -> Payment:
    """
    Record money against an order.

    entry_type:
        payment       cash/transfer received for this order
        balance_used  spent from the customer's prepaid balance
        refund        money returned; reduces the order's paid total

    Raises:
        ValidationError: If amount or entry_type is invalid
        NotFoundError: If the order does not exist
        InsufficientBalanceError: If a balance_used amount exceeds the balance
    """
    def _op():
        value = _validate_amount(amount)
        parsed_type = _validate_entry_type(entry_type, ORDER_ENTRY_TYPES)
        paid_on = _entry_date(payment_date)

        customer_id = get_order(order_id).customer_id
        with customer_guard(customer_id):
            customer = get_customer_locked(customer_id)
            order = get_order_locked(order_id)
            entry = _insert_entry(
                customer=customer,
                order=order,
                amount=value,
                entry_type=parsed_type,
                payment_date=paid_on,
                note=note,
            )
            db.session.commit()
            return entry

    return run_with_retry(_op)


def deposit(customer_id: int, amount, payment_date=None, note: str | None = None) -> Payment:
    """
    Pre-fund a customer's account.

    Raises:
        ValidationError: If amount is not positive
        NotFoundError: If the customer does not exist
    """
    def _op():
        value = _validate_amount(amount)
        paid_on = _entry_date(payment_date)

        with customer_guard(customer_id):
            customer = get_customer_locked(customer_id)
            entry = _insert_entry(
                customer=customer,
                order=None,
                amount=value,
                entry_type=EntryType.DEPOSIT,
                payment_date=paid_on,
                note=note or "Account deposit",
            )
            db.session.commit()
            current_app.logger.info("Deposit of %s recorded for customer %s", value, customer_id)
            return entry

    return run_with_retry(_op)


def use_balance(
    customer_id: int,
    amount,
    order_id: int | None = None,
    payment_date=None,
    note: str | None = None,
) -> Payment:
    """
    Spend from a customer's prepaid balance, optionally against one order.

    Raises:
        ValidationError: If amount is not positive or the order belongs to
            another customer
        NotFoundError: If the customer or order does not exist
        InsufficientBalanceError: If amount exceeds the current balance
    """
    def _op():
        value = _validate_amount(amount)
        paid_on = _entry_date(payment_date)

        with customer_guard(customer_id):
            customer = get_customer_locked(customer_id)
            order = None
            if order_id is not None:
                order = get_order_locked(order_id)
                if order.customer_id != customer.id:
                    raise ValidationError(
                        f"Order {order_id} does not belong to customer {customer_id}",
                        field="order_id",
                    )
            entry = _insert_entry(
                customer=customer,
                order=order,
                amount=value,
                entry_type=EntryType.BALANCE_USED,
                payment_date=paid_on,
                note=note or "Paid from balance",
            )
            db.session.commit()
            return entry

    return run_with_retry(_op)


def import_ledger_entry(
    customer_id: int,
    amount,
    entry_type=None,
    order_id: int | None = None,
    payment_date=None,
    note: str | None = None,
) -> Payment:
    """
    Ingest an entry from older data, where `type` may be missing.

    A missing type is stored as NULL and read as LEGACY_UNTYPED (payment
    semantics). Legacy `withdraw` rows are accepted and reconciled like
    balance_used, including the balance guard.

    Raises:
        ValidationError: If amount or type is invalid
        NotFoundError: If the customer or order does not exist
        InsufficientBalanceError: If a withdraw exceeds the balance
    """
    def _op():
        value = _validate_amount(amount)
        parsed_type = _validate_entry_type(entry_type, IMPORTABLE_ENTRY_TYPES)
        paid_on = _entry_date(payment_date)

        with customer_guard(customer_id):
            customer = get_customer_locked(customer_id)
            order = None
            if order_id is not None:
                order = get_order_locked(order_id)
                if order.customer_id != customer.id:
                    raise ValidationError(
                        f"Order {order_id} does not belong to customer {customer_id}",
                        field="order_id",
                    )
            entry = _insert_entry(
                customer=customer,
                order=order,
                amount=value,
                entry_type=parsed_type,
                payment_date=paid_on,
                note=note,
            )
            db.session.commit()
            return entry

    return run_with_retry(_op)


def delete_payment(payment_id: int) -> None:
    """
    Remove a ledger entry. Balance-affecting entries re-run reconciliation;
    a completed order stays completed.

    Raises:
        NotFoundError: If the entry does not exist
    """
    def _op():
        entry = db.session.query(Payment).filter_by(id=payment_id).first()
        if not entry:
            raise NotFoundError(f"Payment {payment_id} not found")

        customer_id = entry.customer_id
        reconcile = entry.entry_type in BALANCE_AFFECTING_TYPES

        with customer_guard(customer_id):
            db.session.delete(entry)
            db.session.flush()
            if reconcile:
                _reconcile_locked(get_customer_locked(customer_id))
            db.session.commit()

    run_with_retry(_op)
