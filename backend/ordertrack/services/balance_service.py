# Overview: Service-layer operations for customer prepaid balances; full recompute from the ledger.

"""
Customer Balance Reconciler

INVARIANTS (authoritative):
- balance = sum(deposit) - sum(withdraw + balance_used) over all of the
  customer's ledger entries. Refunds and payments never enter the formula.
- The stored Customer.balance is a cache of that formula. It is written only
  by _reconcile_locked, immediately after a balance-affecting ledger change
  and inside the same transaction.
- Full recompute, never an incremental update: re-running it is a no-op and
  out-of-band deletions cannot make it drift.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Customer, Payment
from ..models.payments import BALANCE_AFFECTING_TYPES, BALANCE_CREDIT_TYPES, BALANCE_DEBIT_TYPES, EntryType
from ..money import ZERO
from ..validation import NotFoundError
from .concurrency import customer_guard, lock_for_update, run_with_retry


class InsufficientBalanceError(Exception):
    """A balance-funded payment asks for more than the customer's balance."""

    def __init__(self, customer_id: int, requested: Decimal, available: Decimal):
        super().__init__(
            f"Customer {customer_id} balance {available} is less than requested {requested}"
        )
        self.customer_id = customer_id
        self.requested = requested
        self.available = available


class InconsistentStateError(Exception):
    """A cached aggregate disagrees with the ledger it is derived from."""


def get_customer_locked(customer_id: int) -> Customer:
    customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
    if not customer:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def ledger_balance(customer_id: int) -> Decimal:
    """Balance as implied by the ledger, without touching the cached value."""
    raw_types = [t.value for t in BALANCE_AFFECTING_TYPES]
    rows = db.session.query(Payment.type, Payment.amount).filter(
        Payment.customer_id == customer_id,
        Payment.type.in_(raw_types),
    ).all()

    credits = ZERO
    debits = ZERO
    for raw_type, amount in rows:
        entry_type = EntryType.from_raw(raw_type)
        if entry_type in BALANCE_CREDIT_TYPES:
            credits += Decimal(amount)
        elif entry_type in BALANCE_DEBIT_TYPES:
            debits += Decimal(amount)
    return credits - debits


def _reconcile_locked(customer: Customer) -> Decimal:
    """
    Recompute and store the customer's balance.

    Caller holds customer_guard and owns the transaction (no commit here).
    """
    db.session.flush()
    balance = ledger_balance(customer.id)
    customer.balance = balance
    db.session.flush()
    current_app.logger.debug("Reconciled balance for customer %s: %s", customer.id, balance)
    return balance


def recalc_balance(customer_id: int) -> Decimal:
    """
    Recompute a customer's balance from the ledger and persist it.

    Idempotent: calling it twice without intervening mutations returns the
    same value both times.

    Raises:
        NotFoundError: If the customer does not exist
    """
    def _op():
        with customer_guard(customer_id):
            customer = get_customer_locked(customer_id)
            balance = _reconcile_locked(customer)
            db.session.commit()
            return balance

    return run_with_retry(_op)


def ensure_sufficient_balance(customer: Customer, amount: Decimal) -> None:
    """
    Guard for balance-funded payments. Checks the ledger, not the cache.

    Raises:
        InsufficientBalanceError: If amount exceeds the available balance
    """
    available = ledger_balance(customer.id)
    if amount > available:
        current_app.logger.warning(
            "Rejected balance spend of %s for customer %s (available %s)",
            amount, customer.id, available,
        )
        raise InsufficientBalanceError(customer.id, amount, available)


def verify_balance(customer_id: int) -> Decimal:
    """
    Confirm the cached balance matches the ledger.

    Raises:
        NotFoundError: If the customer does not exist
        InconsistentStateError: If the cached value has drifted
    """
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if not customer:
        raise NotFoundError(f"Customer {customer_id} not found")

    expected = ledger_balance(customer_id)
    cached = Decimal(customer.balance or 0)
    if cached != expected:
        raise InconsistentStateError(
            f"Customer {customer_id} cached balance {cached} != ledger balance {expected}"
        )
    return expected


def audit_balances() -> list[dict]:
    """
    Compare every customer's cached balance with the ledger.

    Returns:
        One entry per mismatching customer: id, cached, expected
    """
    mismatches = []
    for customer in db.session.query(Customer).order_by(Customer.id).all():
        expected = ledger_balance(customer.id)
        cached = Decimal(customer.balance or 0)
        if cached != expected:
            current_app.logger.warning(
                "Balance drift for customer %s: cached %s, ledger %s",
                customer.id, cached, expected,
            )
            mismatches.append({
                "customer_id": customer.id,
                "cached": cached,
                "expected": expected,
            })
    return mismatches


def recalc_all_balances() -> int:
    """Reconcile every customer. Returns the number of customers processed."""
    customer_ids = [cid for (cid,) in db.session.query(Customer.id).order_by(Customer.id).all()]
    for customer_id in customer_ids:
        recalc_balance(customer_id)
    return len(customer_ids)
