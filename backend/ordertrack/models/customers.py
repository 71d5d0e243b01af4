from __future__ import annotations

from ..extensions import db
from ..money import to_json_amount
from ordertrack.time_utils import to_iso_date, to_utc_z


class Customer(db.Model):
    """
    Customer master data and prepaid account.

    `balance` is a cached projection of the customer's ledger entries
    (deposits minus balance spends). It is written only by
    balance_service.recalc_balance; everything else reads it.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=True)
    note = db.Column(db.Text, nullable=True)
    birthday = db.Column(db.Date, nullable=True)

    # Default percentage discount prefilled on this customer's new orders
    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    # Derived from the ledger, never authored directly
    balance = db.Column(db.Numeric(18, 4), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    orders = db.relationship(
        "Order",
        back_populates="customer",
        cascade="all, delete-orphan",
        lazy=True,
    )
    payments = db.relationship(
        "Payment",
        back_populates="customer",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "note": self.note,
            "birthday": to_iso_date(self.birthday),
            "discount_percent": to_json_amount(self.discount_percent),
            "balance": to_json_amount(self.balance),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
