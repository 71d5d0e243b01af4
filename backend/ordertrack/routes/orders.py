# Overview: Flask API routes for orders, deliveries and order payments; parses input and returns JSON responses.

"""
Order API Routes

DESIGN:
- Pricing is always derived server-side; clients never send final_amount
- Deliveries and payments are posted against an order and re-evaluate its
  completion before the response is built
- Status changes other than auto-completion go through /complete and /reopen
"""

from flask import Blueprint, request

from ..money import round_display, to_json_amount
from ..services import ledger_service, lifecycle_service, order_service, pricing_service
from . import DOMAIN_ERRORS, error_response

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

ORDER_LINE_FIELDS = {
    "product", "quantity", "unit", "unit_price", "total", "discount_percent",
    "discount_cash", "shipping_fee", "order_date", "note", "product_template_id",
}


def _order_payload(order_id: int) -> dict:
    summary = ledger_service.get_order_summary(order_id)
    order = summary["order"]
    return {
        "order": order.to_dict(),
        "customer": order.customer.to_dict() if order.customer else None,
        "total_delivered": summary["total_delivered"],
        "remaining_delivery": summary["remaining_delivery"],
        "delivery_progress": to_json_amount(round_display(summary["delivery_progress"])),
        "total_paid": to_json_amount(summary["total_paid"]),
        "remaining_payment": to_json_amount(summary["remaining_payment"]),
        "payment_progress": to_json_amount(round_display(summary["payment_progress"])),
        "deliveries": [d.to_dict() for d in summary["deliveries"]],
        "payments": [p.to_dict() for p in summary["payments"]],
    }


def _line_from(data: dict) -> dict:
    return {k: v for k, v in data.items() if k in ORDER_LINE_FIELDS}


@orders_bp.get("")
def list_orders_route():
    """
    Query params:
    - status: pending | completed (optional)
    - customer_id: int (optional)
    """
    status = request.args.get("status")
    customer_id = request.args.get("customer_id", type=int)
    try:
        orders = order_service.list_orders(status=status, customer_id=customer_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return {"items": [o.to_dict() for o in orders], "count": len(orders)}


@orders_bp.post("")
def create_order_route():
    """
    Create one order, or several for the same customer.

    Request body (single):
    {
        "customer_id": 1,
        "product": "Rice 5kg",
        "quantity": 30,
        "unit_price": 50000,          (or "total": 1500000)
        "discount_percent": 10,       (optional, defaults to the customer's)
        "discount_cash": 0,           (optional)
        "shipping_fee": 20000,        (optional)
        "order_date": "2026-10-01"    (optional)
    }

    Request body (multiple):
    {"customer_id": 1, "order_date": "2026-10-01", "lines": [{...}, {...}]}
    """
    data = request.get_json(silent=True) or {}
    customer_id = data.get("customer_id")
    if not customer_id:
        return {"error": "customer_id required", "field": "customer_id"}, 400

    try:
        if "lines" in data:
            lines = data.get("lines") or []
            orders = order_service.create_orders(
                customer_id,
                [_line_from(line) for line in lines if isinstance(line, dict)],
                order_date=data.get("order_date"),
            )
            return {"items": [o.to_dict() for o in orders], "count": len(orders)}, 201

        order = order_service.create_order(customer_id, _line_from(data))
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return order.to_dict(), 201


@orders_bp.post("/quote")
def quote_route():
    """Price a line without saving it."""
    data = request.get_json(silent=True) or {}
    try:
        breakdown = pricing_service.price_order(
            quantity=data.get("quantity"),
            unit_price=data.get("unit_price"),
            discount_percent=data.get("discount_percent") or 0,
            discount_cash=data.get("discount_cash") or 0,
            shipping_fee=data.get("shipping_fee") or 0,
            line_total=data.get("total"),
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return {
        "quantity": breakdown.quantity,
        "unit_price": to_json_amount(breakdown.unit_price),
        "line_total": to_json_amount(breakdown.line_total),
        "gross_amount": to_json_amount(breakdown.gross_amount),
        "discount_amount": to_json_amount(breakdown.discount_amount),
        "discount_cash": to_json_amount(breakdown.discount_cash),
        "shipping_fee": to_json_amount(breakdown.shipping_fee),
        "final_amount": to_json_amount(breakdown.final_amount),
    }


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    try:
        return _order_payload(order_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)


@orders_bp.patch("/<int:order_id>")
def update_order_route(order_id: int):
    data = request.get_json(silent=True) or {}
    try:
        order_service.update_order(order_id, data)
        return _order_payload(order_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)


@orders_bp.delete("/<int:order_id>")
def delete_order_route(order_id: int):
    try:
        order_service.delete_order(order_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return {"deleted": True, "id": order_id}


@orders_bp.post("/<int:order_id>/complete")
def complete_order_route(order_id: int):
    try:
        lifecycle_service.complete_order(order_id)
        return _order_payload(order_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)


@orders_bp.post("/<int:order_id>/reopen")
def reopen_order_route(order_id: int):
    try:
        lifecycle_service.reopen_order(order_id)
        return _order_payload(order_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)


# =============================================================================
# DELIVERIES AND PAYMENTS
# =============================================================================

@orders_bp.post("/<int:order_id>/deliveries")
def add_delivery_route(order_id: int):
    """
    Request body:
    {"quantity": 10, "delivery_date": "2026-10-02", "note": "..."}
    """
    data = request.get_json(silent=True) or {}
    try:
        ledger_service.add_delivery(
            order_id,
            data.get("quantity"),
            delivery_date=data.get("delivery_date"),
            note=data.get("note"),
        )
        return _order_payload(order_id), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)


@orders_bp.post("/<int:order_id>/payments")
def add_payment_route(order_id: int):
    """
    Request body:
    {
        "amount": 500000,
        "type": "payment",   (payment | balance_used | refund, default payment)
        "payment_date": "2026-10-02",
        "note": "..."
    }

    Returns:
        201: Entry recorded, order payload with updated totals
        409: balance_used amount exceeds the customer's balance
    """
    data = request.get_json(silent=True) or {}
    try:
        ledger_service.add_payment(
            order_id,
            data.get("amount"),
            payment_date=data.get("payment_date"),
            note=data.get("note"),
            entry_type=data.get("type") or "payment",
        )
        return _order_payload(order_id), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
