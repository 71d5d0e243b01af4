# Overview: Service-layer operations for orders; creation, edits with recompute-on-write, deletion.

"""
Order Service

DESIGN PRINCIPLES:
- final_amount and discount_amount are materialized on write. Every create
  or update that touches a pricing field reprices the order through
  pricing_service inside the same transaction.
- A new order without an explicit discount_percent inherits the customer's
  default discount.
- Deleting an order removes its deliveries and ledger entries. The order
  deletion never writes the customer balance itself; if balance_used entries
  went with it, the balance is reconciled from what remains in the ledger.
"""

from __future__ import annotations

from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Customer, Order, ProductTemplate
from ..models.payments import BALANCE_AFFECTING_TYPES
from ..validation import NotFoundError, ValidationError, to_date, to_int
from ordertrack.time_utils import today
from .balance_service import _reconcile_locked, get_customer_locked
from .concurrency import customer_guard, lock_for_update, run_with_retry
from .lifecycle_service import VALID_STATUSES
from .pricing_service import PRICING_FIELDS, price_order


ORDER_MUTABLE_FIELDS = {"product", "unit", "order_date", "note", "total"} | set(PRICING_FIELDS)


def _get_customer(customer_id: int) -> Customer:
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if not customer:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def _get_active_template(template_id: int) -> ProductTemplate:
    template = db.session.query(ProductTemplate).filter_by(id=template_id, is_active=True).first()
    if not template:
        raise NotFoundError(f"Product template {template_id} not found")
    return template


def _apply_pricing(order: Order, breakdown) -> None:
    order.quantity = breakdown.quantity
    order.unit_price = breakdown.unit_price
    order.discount_percent = breakdown.discount_percent
    order.discount_amount = breakdown.discount_amount
    order.discount_cash = breakdown.discount_cash
    order.shipping_fee = breakdown.shipping_fee
    order.final_amount = breakdown.final_amount
    order.line_total = breakdown.line_total


def _build_order(customer: Customer, line: dict, default_date) -> Order:
    """
    Price one order line and return an unsaved Order.

    line keys: product, quantity, unit_price | total, unit, discount_percent,
    discount_cash, shipping_fee, order_date, note, product_template_id
    """
    line = dict(line)

    template_id = line.pop("product_template_id", None)
    if template_id is not None:
        template = _get_active_template(template_id)
        line.setdefault("product", template.name)
        line.setdefault("unit", template.unit)
        line.setdefault("quantity", template.default_qty)
        if "unit_price" not in line and "total" not in line:
            line["unit_price"] = template.default_price

    product = (line.get("product") or "").strip()
    if not product:
        raise ValidationError("product is required", field="product")
    if "quantity" not in line:
        raise ValidationError("quantity is required", field="quantity")

    unit_price = line.get("unit_price")
    line_total = line.get("total")
    if unit_price is None and line_total is None:
        raise ValidationError("unit_price is required", field="unit_price")

    discount_percent = line.get("discount_percent")
    if discount_percent is None:
        discount_percent = customer.discount_percent or 0

    breakdown = price_order(
        quantity=line["quantity"],
        unit_price=unit_price,
        discount_percent=discount_percent,
        discount_cash=line.get("discount_cash") or 0,
        shipping_fee=line.get("shipping_fee") or 0,
        line_total=line_total,
    )

    order_date = line.get("order_date")
    order = Order(
        customer_id=customer.id,
        product=product,
        unit=line.get("unit"),
        order_date=to_date(order_date, "order_date") if order_date is not None else default_date,
        status="pending",
        note=line.get("note"),
    )
    _apply_pricing(order, breakdown)
    return order


def create_order(customer_id: int, line: dict) -> Order:
    """
    Create one priced order.

    Raises:
        ValidationError: If a pricing input is invalid or required data is missing
        NotFoundError: If the customer or product template does not exist
    """
    def _op():
        customer = _get_customer(customer_id)
        order = _build_order(customer, line, today())
        db.session.add(order)
        db.session.commit()
        return order

    return run_with_retry(_op)


def create_orders(customer_id: int, lines: list[dict], order_date=None) -> list[Order]:
    """
    Create several orders for one customer in a single transaction.

    If any line is invalid, none are created.
    """
    def _op():
        if not lines:
            raise ValidationError("At least one order line is required", field="lines")
        customer = _get_customer(customer_id)
        default_date = to_date(order_date, "order_date") if order_date is not None else today()

        orders = []
        for index, line in enumerate(lines):
            try:
                orders.append(_build_order(customer, line, default_date))
            except ValidationError as exc:
                raise ValidationError(f"Line {index + 1}: {exc}", field=exc.field)
        db.session.add_all(orders)
        db.session.commit()
        return orders

    return run_with_retry(_op)


def _patched_line_total(order: Order, patch: dict):
    if "total" in patch:
        return patch["total"]
    if order.line_total is None or "unit_price" in patch:
        return None
    if "quantity" in patch and to_int(patch["quantity"], "quantity") != order.quantity:
        return None
    return order.line_total


def update_order(order_id: int, patch: dict) -> Order:
    """
    Edit an order. Pricing changes re-derive discount_amount and final_amount.

    An order priced from a line total keeps that total as its gross until the
    patch sets unit_price or total, or changes the quantity.

    Status is not editable here; see lifecycle_service.

    Raises:
        ValidationError: If a field is not editable or a pricing input is invalid
        NotFoundError: If the order does not exist
    """
    def _op():
        for key in patch:
            if key not in ORDER_MUTABLE_FIELDS:
                raise ValidationError(f"Field not allowed: {key}", field=key)

        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")

        if (PRICING_FIELDS | {"total"}) & patch.keys():
            breakdown = price_order(
                quantity=patch.get("quantity", order.quantity),
                unit_price=patch.get("unit_price", order.unit_price),
                discount_percent=patch.get("discount_percent", order.discount_percent),
                discount_cash=patch.get("discount_cash", order.discount_cash),
                shipping_fee=patch.get("shipping_fee", order.shipping_fee),
                line_total=_patched_line_total(order, patch),
            )
            _apply_pricing(order, breakdown)

        if "product" in patch:
            product = (patch["product"] or "").strip()
            if not product:
                raise ValidationError("product cannot be blank", field="product")
            order.product = product
        if "unit" in patch:
            order.unit = patch["unit"]
        if "note" in patch:
            order.note = patch["note"]
        if "order_date" in patch:
            order.order_date = to_date(patch["order_date"], "order_date")

        db.session.commit()
        return order

    return run_with_retry(_op)


def delete_order(order_id: int) -> None:
    """
    Delete an order with its deliveries and ledger entries.

    Raises:
        NotFoundError: If the order does not exist
    """
    def _op():
        order = db.session.query(Order).filter_by(id=order_id).first()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")

        customer_id = order.customer_id
        reconcile = any(p.entry_type in BALANCE_AFFECTING_TYPES for p in order.payments)

        with customer_guard(customer_id):
            db.session.delete(order)
            db.session.flush()
            if reconcile:
                _reconcile_locked(get_customer_locked(customer_id))
            db.session.commit()

    run_with_retry(_op)


def get_order(order_id: int) -> Order:
    order = db.session.query(Order).options(
        selectinload(Order.deliveries),
        selectinload(Order.payments),
        selectinload(Order.customer),
    ).filter_by(id=order_id).first()
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def list_orders(*, status: str | None = None, customer_id: int | None = None) -> list[Order]:
    """
    Orders newest first, with customer, deliveries and payments loaded.
    """
    query = db.session.query(Order).options(
        selectinload(Order.deliveries),
        selectinload(Order.payments),
        selectinload(Order.customer),
    )
    if status is not None:
        if status not in VALID_STATUSES:
            raise ValidationError(f"Invalid status '{status}'", field="status")
        query = query.filter(Order.status == status)
    if customer_id is not None:
        query = query.filter(Order.customer_id == customer_id)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()
