# Overview: Service-layer operations for the order lifecycle; pending/completed transitions.

"""
Order State Machine

STATE MACHINE:
    pending -> completed   automatic, evaluated after every delivery/payment
                           mutation: delivered >= quantity AND paid >= final_amount
                           (or explicit complete_order)
    completed -> pending   explicit reopen_order only

RULES:
1. Auto-completion is one-directional. Deleting deliveries or payments never
   moves a completed order back to pending; reopening is a user decision.
2. Records added to a completed order are accepted; the order stays completed.
3. completed_at is set on entering completed and cleared on reopen.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Order
from ..validation import ValidationError
from ordertrack.time_utils import utcnow
from .concurrency import run_with_retry
from .ledger_service import get_order_locked, total_delivered, total_paid


ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_COMPLETED = "completed"

VALID_STATUSES = {ORDER_STATUS_PENDING, ORDER_STATUS_COMPLETED}


class OrderStateError(ValidationError):
    """Raised when an order transition is not allowed from its current state."""


def can_transition(from_status: str, to_status: str) -> bool:
    if from_status not in VALID_STATUSES or to_status not in VALID_STATUSES:
        return False
    return (from_status, to_status) in {
        (ORDER_STATUS_PENDING, ORDER_STATUS_COMPLETED),
        (ORDER_STATUS_COMPLETED, ORDER_STATUS_PENDING),
    }


def is_fully_satisfied(order: Order) -> bool:
    """Fully delivered and fully paid, per the ledger."""
    return (
        total_delivered(order.id) >= order.quantity
        and total_paid(order.id) >= order.final_amount
    )


def evaluate_completion(order: Order, *, now: datetime | None = None) -> bool:
    """
    Apply the automatic pending -> completed transition if it is due.

    Caller owns the transaction. Returns True when this call completed the
    order; an already completed order is left untouched.
    """
    if order.status != ORDER_STATUS_PENDING:
        return False

    db.session.flush()
    if not is_fully_satisfied(order):
        return False

    order.status = ORDER_STATUS_COMPLETED
    order.completed_at = now or utcnow()
    current_app.logger.info("Order %s completed automatically", order.id)
    return True


def complete_order(order_id: int) -> Order:
    """
    Mark an order completed by hand, regardless of ledger totals.

    Raises:
        NotFoundError: If the order does not exist
        OrderStateError: If the order is already completed
    """
    def _op():
        order = get_order_locked(order_id)
        if not can_transition(order.status, ORDER_STATUS_COMPLETED):
            raise OrderStateError(f"Order {order_id} is already {order.status}", field="status")
        order.status = ORDER_STATUS_COMPLETED
        order.completed_at = utcnow()
        db.session.commit()
        return order

    return run_with_retry(_op)


def reopen_order(order_id: int) -> Order:
    """
    Move a completed order back to pending and clear completed_at.

    The order is not re-evaluated here; it completes again only after a new
    delivery or payment mutation.

    Raises:
        NotFoundError: If the order does not exist
        OrderStateError: If the order is not completed
    """
    def _op():
        order = get_order_locked(order_id)
        if not can_transition(order.status, ORDER_STATUS_PENDING):
            raise OrderStateError(f"Order {order_id} is not completed", field="status")
        order.status = ORDER_STATUS_PENDING
        order.completed_at = None
        db.session.commit()
        current_app.logger.info("Order %s reopened", order_id)
        return order

    return run_with_retry(_op)
