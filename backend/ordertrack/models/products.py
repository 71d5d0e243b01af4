from __future__ import annotations

from ..extensions import db
from ..money import to_json_amount
from ordertrack.time_utils import to_utc_z


class ProductTemplate(db.Model):
    """
    Reference data used to prefill new orders.

    Orders copy the product name rather than referencing the template, so
    templates are deactivated instead of deleted.
    """
    __tablename__ = "product_templates"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    default_qty = db.Column(db.Integer, nullable=False, default=1)
    unit = db.Column(db.String(32), nullable=True)
    default_price = db.Column(db.Numeric(18, 4), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "default_qty": self.default_qty,
            "unit": self.unit,
            "default_price": to_json_amount(self.default_price),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
