# Overview: Service-layer operations for maintenance; encapsulates business logic and database work.

from __future__ import annotations

from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import Order
from ordertrack.time_utils import today
from .lifecycle_service import ORDER_STATUS_COMPLETED
from .order_service import delete_order


def cleanup_old_orders(*, days_old: int = 365) -> int:
    """
    Delete completed orders placed more than days_old days ago.

    Each order goes through delete_order, so its deliveries and ledger
    entries are removed and balances reconciled. Pending orders are kept.
    """
    cutoff = today() - timedelta(days=days_old)
    order_ids = [oid for (oid,) in db.session.query(Order.id).filter(
        Order.status == ORDER_STATUS_COMPLETED,
        Order.order_date < cutoff,
    ).order_by(Order.id).all()]

    for order_id in order_ids:
        delete_order(order_id)

    current_app.logger.info("Removed %s completed orders older than %s", len(order_ids), cutoff)
    return len(order_ids)
