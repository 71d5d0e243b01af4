# Overview: Service-layer operations for product templates; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import ProductTemplate
from ..validation import NotFoundError, ValidationError, enforce_rules_product_template
from .concurrency import run_with_retry

PRODUCT_MUTABLE_FIELDS = {"name", "default_qty", "unit", "default_price"}


def apply_product_patch(p: ProductTemplate, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def list_products(include_inactive: bool = False) -> list[ProductTemplate]:
    query = db.session.query(ProductTemplate)
    if not include_inactive:
        query = query.filter(ProductTemplate.is_active.is_(True))
    return query.order_by(ProductTemplate.name.asc()).all()


def get_product(product_id: int) -> ProductTemplate:
    product = db.session.query(ProductTemplate).filter_by(id=product_id).first()
    if not product:
        raise NotFoundError(f"Product template {product_id} not found")
    return product


def create_product(patch: dict) -> ProductTemplate:
    def _op():
        if not (patch.get("name") or "").strip():
            raise ValidationError("name is required", field="name")
        enforce_rules_product_template(patch)
        product = ProductTemplate(is_active=True)
        apply_product_patch(product, patch)
        db.session.add(product)
        db.session.commit()
        return product

    return run_with_retry(_op)


def update_product(product_id: int, patch: dict) -> ProductTemplate:
    def _op():
        enforce_rules_product_template(patch)
        product = get_product(product_id)
        apply_product_patch(product, patch)
        db.session.commit()
        return product

    return run_with_retry(_op)


def deactivate_product(product_id: int) -> ProductTemplate:
    """
    Soft delete. Historical orders keep the product name they copied.
    """
    def _op():
        product = get_product(product_id)
        product.is_active = False
        db.session.commit()
        return product

    return run_with_retry(_op)
