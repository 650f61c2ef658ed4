# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/serialdesk/routes/inventory.py
from flask import Blueprint, jsonify, current_app

from ..services import inventory_service
from ..validation import NotFoundError
from ..decorators import require_auth, require_role

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/<int:product_id>")
@require_auth
@require_role("admin")
def stock_summary_route(product_id: int):
    """Stored counters vs. a live recount (read-only)."""
    try:
        return jsonify(inventory_service.get_stock_summary(product_id)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@inventory_bp.post("/<int:product_id>/recalculate")
@require_auth
@require_role("admin")
def recalculate_route(product_id: int):
    try:
        inventory_service.get_stock_summary(product_id)
        return jsonify({"product_id": product_id, **inventory_service.recalculate(product_id)}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to recalculate stock")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.post("/resync")
@require_auth
@require_role("admin")
def resync_route():
    """
    Recount every product to correct counter drift.

    Returns the products whose counters changed.
    """
    try:
        changed = inventory_service.resync_all()
        return jsonify({"changed": changed, "count": len(changed)}), 200
    except Exception:
        current_app.logger.exception("Failed to resync stock")
        return jsonify({"error": "Internal server error"}), 500
