# Overview: Service-layer operations for products; encapsulates business logic and database work.

# backend/serialdesk/services/products_service.py
"""
Product Catalog Service

stock / offline_stock are derived counters (see inventory_service) and are
never writable here. Deletion is a soft delete (is_active=False) so that
warranties and order lines keep a valid product reference.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Product
from ..validation import NotFoundError, ValidationError
from .activity_service import append_activity

PRODUCT_MUTABLE_FIELDS = {
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
}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _check_recommended_ids(ids: list | None, *, self_id: int | None = None) -> None:
    if not ids:
        return
    if self_id is not None and self_id in ids:
        raise ValidationError("A product cannot recommend itself")
    found = {pid for (pid,) in db.session.query(Product.id).filter(Product.id.in_(ids)).all()}
    missing = sorted(set(ids) - found)
    if missing:
        raise ValidationError(f"Unknown recommended product ids: {', '.join(str(i) for i in missing)}")


def list_products(
    *,
    category: str | None = None,
    include_inactive: bool = False,
    recommended_only: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Product listing with optional pagination.

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product)
    if not include_inactive:
        base_query = base_query.filter(Product.is_active.is_(True))
    if category:
        base_query = base_query.filter(Product.category == category)
    if recommended_only:
        base_query = base_query.filter(Product.is_recommended.is_(True))
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_product(product_id: int) -> Product:
    p = db.session.get(Product, product_id)
    if p is None:
        raise NotFoundError("Product not found")
    return p


def create_product(*, patch: dict) -> Product:
    """
    Create product using a validated patch dict.

    Counters start at zero; they move only when units are added.
    """
    _check_recommended_ids(patch.get("recommended_product_ids"))

    p = Product(stock=0, offline_stock=0)
    apply_product_patch(p, patch)

    db.session.add(p)
    db.session.flush()  # ensure p.id exists before activity append

    append_activity(
        action="product.created",
        entity_type="product",
        entity_id=p.id,
        note=f"Created product name={p.name}",
    )

    db.session.commit()
    return p


def update_product(*, product_id: int, patch: dict) -> Product:
    p = get_product(product_id)
    _check_recommended_ids(patch.get("recommended_product_ids"), self_id=p.id)

    apply_product_patch(p, patch)
    append_activity(
        action="product.updated",
        entity_type="product",
        entity_id=p.id,
        note=f"Updated fields: {', '.join(sorted(patch.keys()))}",
    )
    db.session.commit()
    return p


def delete_product(*, product_id: int) -> bool:
    """
    Soft-delete a product.

    Returns True if deleted, False if not found.
    """
    p = db.session.get(Product, product_id)
    if not p:
        return False

    # Soft-delete only: preserve IDs and historical references.
    if p.is_active:
        p.is_active = False

        append_activity(
            action="product.deactivated",
            entity_type="product",
            entity_id=p.id,
            note=f"Soft-deleted (is_active=false) product name={p.name}",
        )

    db.session.commit()
    return True
