# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/serialdesk/services/inventory_service.py
"""
Inventory Aggregator Invariants (authoritative)

Derived counters:
- Product.stock and Product.offline_stock are a cache over ProductUnit rows.
- stock         = COUNT(units WHERE product_id = P AND status = 'available')
- offline_stock = COUNT(units WHERE product_id = P AND status = 'available'
                                AND stock_type IN ('offline', 'both'))
- recalculate() is the ONLY writer of these two fields.

Recount policy:
- Always a full recount, never an incremental delta.
- Idempotent: safe to re-run at any time to correct drift (resync_all).

Consistency window:
- Unit mutations commit first; the recount runs as a separate step and
  commits on its own. A failure between the two leaves the counters stale
  until the next recalculate()/resync. This is accepted; callers log the
  failure and do not roll back the unit mutation.
"""

from __future__ import annotations

import logging

from sqlalchemy import func

from ..extensions import db
from ..models import Product, ProductUnit
from ..validation import NotFoundError
from .activity_service import append_activity

logger = logging.getLogger(__name__)

AVAILABLE = "available"
OFFLINE_STOCK_TYPES = ("offline", "both")
ONLINE_STOCK_TYPES = ("online", "both")


def count_available(product_id: int, stock_types: tuple[str, ...] | None = None) -> int:
    q = db.session.query(func.count(ProductUnit.id)).filter(
        ProductUnit.product_id == product_id,
        ProductUnit.status == AVAILABLE,
    )
    if stock_types is not None:
        q = q.filter(ProductUnit.stock_type.in_(stock_types))
    return int(q.scalar() or 0)


def recalculate(product_id: int | None) -> dict:
    """
    Recount available units and persist them onto the product.

    Returns {"total_stock": int, "offline_stock": int}.
    A missing product id yields zeros and writes nothing.
    """
    if not product_id:
        return {"total_stock": 0, "offline_stock": 0}

    total_stock = count_available(product_id)
    offline_stock = count_available(product_id, OFFLINE_STOCK_TYPES)

    product = db.session.get(Product, product_id)
    if product is not None:
        product.stock = total_stock
        product.offline_stock = offline_stock
        db.session.commit()

    return {"total_stock": total_stock, "offline_stock": offline_stock}


def recalculate_after_mutation(product_id: int | None) -> dict | None:
    """
    Run recalculate() after a unit mutation has already committed.

    Failures are logged and swallowed so the committed unit change stands;
    returns None in that case (counters are stale until the next resync).
    """
    try:
        return recalculate(product_id)
    except Exception:
        db.session.rollback()
        logger.exception("Stock recalculation failed for product_id=%s", product_id)
        return None


def resync_all() -> list[dict]:
    """
    Admin-triggered recount of every product.

    Returns one entry per product whose counters changed.
    """
    changed = []
    product_ids = [pid for (pid,) in db.session.query(Product.id).order_by(Product.id.asc()).all()]
    for product_id in product_ids:
        product = db.session.get(Product, product_id)
        before = (product.stock, product.offline_stock)
        counts = recalculate(product_id)
        after = (counts["total_stock"], counts["offline_stock"])
        if before != after:
            changed.append({
                "product_id": product_id,
                "before": {"total_stock": before[0], "offline_stock": before[1]},
                "after": counts,
            })

    append_activity(
        action="inventory.resynced",
        entity_type="product",
        entity_id=None,
        note=f"Resynced stock for {len(product_ids)} products ({len(changed)} changed)",
        details={"changed": changed},
    )
    db.session.commit()
    return changed


def get_stock_summary(product_id: int) -> dict:
    """
    Compare stored counters with a live recount without writing anything.
    """
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")

    by_status = dict(
        db.session.query(ProductUnit.status, func.count(ProductUnit.id))
        .filter(ProductUnit.product_id == product_id)
        .group_by(ProductUnit.status)
        .all()
    )
    live_total = count_available(product_id)
    live_offline = count_available(product_id, OFFLINE_STOCK_TYPES)
    return {
        "product_id": product_id,
        "stored": {"total_stock": product.stock, "offline_stock": product.offline_stock},
        "live": {"total_stock": live_total, "offline_stock": live_offline},
        "online_available": count_available(product_id, ONLINE_STOCK_TYPES),
        "units_by_status": by_status,
        "in_sync": product.stock == live_total and product.offline_stock == live_offline,
    }
