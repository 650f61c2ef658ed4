# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/serialdesk/routes/products.py
"""
Product catalog routes.

SECURITY:
- Listing and reading: public (inactive products only for admins)
- Write operations: admin only
"""
from flask import Blueprint, request

from ..services import products_service
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    NotFoundError,
)
from ..decorators import require_auth, require_role

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "description",
        "category",
        "price_cents",
        "retailer_price_cents",
        "requires_quote",
        "warranty_period_months",
        "is_recommended",
        "recommended_product_ids",
        "is_active",
    },
    required_on_create={"name"},
)

# NOTE: stock / offline_stock are derived from product units and never writable here

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    List products with optional pagination.

    Query params:
    - category: exact category match
    - recommended: "true" to return recommended products only
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    return products_service.list_products(
        category=request.args.get("category"),
        recommended_only=request.args.get("recommended", "").lower() == "true",
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        p = products_service.get_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    if not p.is_active:
        return {"error": "Product not found"}, 404
    return p.to_dict()


@products_bp.post("")
@require_auth
@require_role("admin")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch, creating=True)
        created = products_service.create_product(patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    return created.to_dict(), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_role("admin")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        current = products_service.get_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch, current=current)
        updated = products_service.update_product(product_id=product_id, patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    return updated.to_dict()


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role("admin")
def delete_product_route(product_id: int):
    """Soft-delete a product (is_active=false)."""
    deleted = products_service.delete_product(product_id=product_id)

    if not deleted:
        return {"error": "Product not found"}, 404

    return {"ok": True}, 200
