from __future__ import annotations

from ..extensions import db
from ..money import to_json_amount
from ordertrack.time_utils import to_iso_date, to_utc_z


class Order(db.Model):
    """
    A single-product order for one customer.

    `discount_amount` and `final_amount` are materialized from the pricing
    inputs by order_service on every write that touches pricing; readers
    never recompute them.

    STATUS:
    - pending: still owes delivery and/or payment
    - completed: fully delivered and fully paid (or explicitly completed)
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_customer_status", "customer_id", "status"),
        db.Index("ix_orders_status_order_date", "status", "order_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    product = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit = db.Column(db.String(32), nullable=True)
    unit_price = db.Column(db.Numeric(18, 4), nullable=False)
    # Set when the order was priced from an entered line total; it is then the gross
    line_total = db.Column(db.Numeric(18, 4), nullable=True)

    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(18, 4), nullable=False, default=0)
    discount_cash = db.Column(db.Numeric(18, 4), nullable=False, default=0)
    shipping_fee = db.Column(db.Numeric(18, 4), nullable=False, default=0)
    final_amount = db.Column(db.Numeric(18, 4), nullable=False)

    order_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer", back_populates="orders")
    deliveries = db.relationship(
        "Delivery",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="Delivery.id",
        lazy=True,
    )
    payments = db.relationship(
        "Payment",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="Payment.id",
        lazy=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "product": self.product,
            "quantity": self.quantity,
            "unit": self.unit,
            "unit_price": to_json_amount(self.unit_price),
            "line_total": to_json_amount(self.line_total),
            "discount_percent": to_json_amount(self.discount_percent),
            "discount_amount": to_json_amount(self.discount_amount),
            "discount_cash": to_json_amount(self.discount_cash),
            "shipping_fee": to_json_amount(self.shipping_fee),
            "final_amount": to_json_amount(self.final_amount),
            "order_date": to_iso_date(self.order_date),
            "status": self.status,
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }


class Delivery(db.Model):
    """A partial or full hand-over of an order's goods."""
    __tablename__ = "deliveries"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    delivery_date = db.Column(db.Date, nullable=False)
    note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", back_populates="deliveries")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "quantity": self.quantity,
            "delivery_date": to_iso_date(self.delivery_date),
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
