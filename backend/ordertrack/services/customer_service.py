# Overview: Service-layer operations for customers; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import Customer
from ..validation import NotFoundError, ValidationError, enforce_rules_customer
from .concurrency import run_with_retry

# balance is derived from the ledger and never accepted from callers
CUSTOMER_MUTABLE_FIELDS = {"name", "phone", "address", "note", "birthday", "discount_percent"}


def apply_customer_patch(c: Customer, patch: dict) -> None:
    for k, v in patch.items():
        if k not in CUSTOMER_MUTABLE_FIELDS:
            raise ValidationError(f"Field not allowed: {k}", field=k)
        setattr(c, k, v)


def get_customer(customer_id: int) -> Customer:
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if not customer:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def list_customers() -> list[Customer]:
    return db.session.query(Customer).order_by(Customer.name.asc(), Customer.id.asc()).all()


def create_customer(patch: dict) -> Customer:
    """
    Register a customer. Balance starts at zero; discount defaults to zero.

    Raises:
        ValidationError: If name is missing or discount_percent is out of range
    """
    def _op():
        if not (patch.get("name") or "").strip():
            raise ValidationError("name is required", field="name")
        enforce_rules_customer(patch)

        customer = Customer(balance=0, discount_percent=0)
        apply_customer_patch(customer, patch)
        if customer.discount_percent is None:
            customer.discount_percent = 0
        db.session.add(customer)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def update_customer(customer_id: int, patch: dict) -> Customer:
    def _op():
        enforce_rules_customer(patch)
        customer = get_customer(customer_id)
        apply_customer_patch(customer, patch)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def update_customer_discount(customer_id: int, discount_percent) -> Customer:
    """Change the default discount applied to the customer's future orders."""
    return update_customer(customer_id, {"discount_percent": discount_percent})


def delete_customer(customer_id: int) -> None:
    """Delete a customer together with their orders, deliveries and ledger entries."""
    def _op():
        customer = get_customer(customer_id)
        db.session.delete(customer)
        db.session.commit()

    run_with_retry(_op)
