# Overview: Flask API routes for ledger corrections and legacy ingestion; parses input and returns JSON responses.

from flask import Blueprint, request

from ..services import ledger_service
from . import DOMAIN_ERRORS, error_response

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/ledger")


@ledger_bp.delete("/deliveries/<int:delivery_id>")
def delete_delivery_route(delivery_id: int):
    try:
        ledger_service.delete_delivery(delivery_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return {"deleted": True, "id": delivery_id}


@ledger_bp.delete("/payments/<int:payment_id>")
def delete_payment_route(payment_id: int):
    """Delete a payment, deposit or balance spend; balances are reconciled."""
    try:
        ledger_service.delete_payment(payment_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return {"deleted": True, "id": payment_id}


@ledger_bp.post("/import")
def import_entry_route():
    """
    Ingest an entry from older data. "type" may be omitted.

    Request body:
    {"customer_id": 1, "amount": 100000, "type": null, "order_id": 3, "payment_date": "2024-01-05"}
    """
    data = request.get_json(silent=True) or {}
    customer_id = data.get("customer_id")
    if not customer_id:
        return {"error": "customer_id required", "field": "customer_id"}, 400
    try:
        entry = ledger_service.import_ledger_entry(
            customer_id,
            data.get("amount"),
            entry_type=data.get("type"),
            order_id=data.get("order_id"),
            payment_date=data.get("payment_date"),
            note=data.get("note"),
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return entry.to_dict(), 201
