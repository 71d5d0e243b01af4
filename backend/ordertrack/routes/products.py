# Overview: Flask API routes for product templates; parses input and returns JSON responses.

from flask import Blueprint, request

from ..models import ProductTemplate
from ..services import products_service
from ..validation import ModelValidationPolicy, validate_payload
from . import DOMAIN_ERRORS, error_response

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "default_qty", "unit", "default_price"},
    required_on_create={"name", "default_qty", "default_price"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    List product templates by name.

    Query params:
    - include_inactive: "true" to include deactivated templates
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    products = products_service.list_products(include_inactive=include_inactive)
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.post("")
def create_product_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=ProductTemplate, payload=payload, policy=PRODUCT_POLICY, partial=False)
        product = products_service.create_product(patch)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return product.to_dict(), 201


@products_bp.patch("/<int:product_id>")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=ProductTemplate, payload=payload, policy=PRODUCT_POLICY, partial=True)
        product = products_service.update_product(product_id, patch)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return product.to_dict()


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    """Deactivate a template. Orders that used it are unaffected."""
    try:
        product = products_service.deactivate_product(product_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return product.to_dict()
