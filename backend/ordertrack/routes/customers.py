# Overview: Flask API routes for customers and their prepaid balance; parses input and returns JSON responses.

"""
Customer API Routes

- Customer CRUD (balance is read-only)
- Deposits and balance-funded payments
- Balance history, reconciliation and audit
"""

from flask import Blueprint, request

from ..models import Customer
from ..money import to_json_amount
from ..services import balance_service, customer_service, ledger_service, reporting_service
from ..validation import ModelValidationPolicy, validate_payload
from . import DOMAIN_ERRORS, error_response

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "address", "note", "birthday", "discount_percent"},
    required_on_create={"name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
def list_customers():
    """
    List customers by name.

    Query params:
    - stats: "true" to include order count, totals and debt per customer
    """
    if request.args.get("stats", "false").lower() == "true":
        return {"items": reporting_service.customers_with_stats()}
    customers = customer_service.list_customers()
    return {"items": [c.to_dict() for c in customers], "count": len(customers)}


@customers_bp.post("")
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        customer = customer_service.create_customer(patch)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return customer.to_dict(), 201


@customers_bp.get("/<int:customer_id>")
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(customer_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return customer.to_dict()


@customers_bp.patch("/<int:customer_id>")
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        customer = customer_service.update_customer(customer_id, patch)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return customer.to_dict()


@customers_bp.delete("/<int:customer_id>")
def delete_customer_route(customer_id: int):
    """Delete a customer with all of their orders and ledger entries."""
    try:
        customer_service.delete_customer(customer_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return {"deleted": True, "id": customer_id}


# =============================================================================
# BALANCE
# =============================================================================

@customers_bp.post("/<int:customer_id>/deposits")
def deposit_route(customer_id: int):
    """
    Add money to the customer's prepaid balance.

    Request body:
    {
        "amount": 500000,
        "payment_date": "2026-10-01",  (optional, defaults to today)
        "note": "..."  (optional)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        entry = ledger_service.deposit(
            customer_id,
            data.get("amount"),
            payment_date=data.get("payment_date"),
            note=data.get("note"),
        )
        customer = customer_service.get_customer(customer_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return {"entry": entry.to_dict(), "customer": customer.to_dict()}, 201


@customers_bp.post("/<int:customer_id>/balance-payments")
def use_balance_route(customer_id: int):
    """
    Pay from the customer's prepaid balance, optionally against an order.

    Request body:
    {
        "amount": 200000,
        "order_id": 12,  (optional)
        "payment_date": "2026-10-01",  (optional)
        "note": "..."  (optional)
    }

    Returns:
        201: Entry recorded
        409: Amount exceeds the current balance
    """
    data = request.get_json(silent=True) or {}
    try:
        entry = ledger_service.use_balance(
            customer_id,
            data.get("amount"),
            order_id=data.get("order_id"),
            payment_date=data.get("payment_date"),
            note=data.get("note"),
        )
        customer = customer_service.get_customer(customer_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return {"entry": entry.to_dict(), "customer": customer.to_dict()}, 201


@customers_bp.get("/<int:customer_id>/transactions")
def transactions_route(customer_id: int):
    try:
        entries = ledger_service.get_customer_transactions(customer_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return {"items": [e.to_dict() for e in entries], "count": len(entries)}


@customers_bp.get("/<int:customer_id>/report")
def report_route(customer_id: int):
    try:
        return reporting_service.customer_report(customer_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)


@customers_bp.post("/<int:customer_id>/balance/recalc")
def recalc_balance_route(customer_id: int):
    try:
        balance = balance_service.recalc_balance(customer_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return {"customer_id": customer_id, "balance": to_json_amount(balance)}


@customers_bp.get("/<int:customer_id>/balance/verify")
def verify_balance_route(customer_id: int):
    """200 when the stored balance matches the ledger, 500 when it has drifted."""
    try:
        balance = balance_service.verify_balance(customer_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return {"customer_id": customer_id, "balance": to_json_amount(balance), "consistent": True}
