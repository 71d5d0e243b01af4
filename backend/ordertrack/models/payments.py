from __future__ import annotations

import enum

from ..extensions import db
from ..money import to_json_amount
from ordertrack.time_utils import to_iso_date, to_utc_z


class EntryType(str, enum.Enum):
    """
    Closed set of ledger entry kinds.

    Rows written before entry types existed have `type` NULL; they are read
    as LEGACY_UNTYPED and count as payments. WITHDRAW is the old name for
    BALANCE_USED and is still honored when recomputing balances.
    """
    PAYMENT = "payment"
    DEPOSIT = "deposit"
    BALANCE_USED = "balance_used"
    WITHDRAW = "withdraw"
    REFUND = "refund"
    LEGACY_UNTYPED = "legacy_untyped"

    @classmethod
    def from_raw(cls, raw: str | None) -> "EntryType":
        if raw is None or not str(raw).strip():
            return cls.LEGACY_UNTYPED
        return cls(str(raw).strip())


# Entries that count toward an order's paid total
PAID_ENTRY_TYPES = frozenset({EntryType.PAYMENT, EntryType.BALANCE_USED, EntryType.LEGACY_UNTYPED})

# Entries that reduce an order's paid total
PAID_REDUCING_ENTRY_TYPES = frozenset({EntryType.REFUND})

# Entries that move a customer's prepaid balance
BALANCE_CREDIT_TYPES = frozenset({EntryType.DEPOSIT})
BALANCE_DEBIT_TYPES = frozenset({EntryType.BALANCE_USED, EntryType.WITHDRAW})
BALANCE_AFFECTING_TYPES = BALANCE_CREDIT_TYPES | BALANCE_DEBIT_TYPES

# Money received from customers (reporting only)
REVENUE_ENTRY_TYPES = frozenset({EntryType.PAYMENT, EntryType.DEPOSIT, EntryType.LEGACY_UNTYPED})


class Payment(db.Model):
    """
    Ledger entry for a customer, optionally tied to one order.

    IMMUTABLE: entries are never updated; corrections are made by deleting
    the entry (which re-runs balance reconciliation when needed).
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_customer_type", "customer_id", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    amount = db.Column(db.Numeric(18, 4), nullable=False)
    # NULL only on legacy rows; see EntryType.from_raw
    type = db.Column(db.String(16), nullable=True)
    payment_date = db.Column(db.Date, nullable=False)
    note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", back_populates="payments")
    order = db.relationship("Order", back_populates="payments")

    @property
    def entry_type(self) -> EntryType:
        return EntryType.from_raw(self.type)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "order_id": self.order_id,
            "amount": to_json_amount(self.amount),
            "type": self.entry_type.value,
            "payment_date": to_iso_date(self.payment_date),
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
