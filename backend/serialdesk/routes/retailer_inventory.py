# Overview: Flask API routes for retailer-held units; parses input and returns JSON responses.

# backend/serialdesk/routes/retailer_inventory.py
"""
Retailer Inventory API Routes

Retailers see and sell their own items; admins see every item and may
change any item's status. Items of other retailers answer 404.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import retailer_inventory_service
from ..validation import ValidationError, ConflictError, NotFoundError
from ..decorators import require_auth, require_role


retailer_inventory_bp = Blueprint("retailer_inventory", __name__, url_prefix="/api/retailer-inventory")


@retailer_inventory_bp.get("")
@require_auth
@require_role("retailer", "admin")
def list_inventory_route():
    """Query params: status; admins may also filter by retailer_id."""
    if g.current_user.is_admin:
        retailer_id = request.args.get("retailer_id", type=int)
    else:
        retailer_id = g.current_user.id
    try:
        items = retailer_inventory_service.list_inventory(
            retailer_id=retailer_id,
            status=request.args.get("status"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"items": [i.to_dict() for i in items], "count": len(items)}), 200


@retailer_inventory_bp.post("")
@require_auth
@require_role("retailer")
def add_to_inventory_route():
    """
    Receive the units of a paid order. Paid retailer orders are received
    automatically; this covers orders paid before that happened.

    Request body: {"order_id": 12}
    """
    try:
        data = request.get_json(silent=True) or {}
        items = retailer_inventory_service.add_to_inventory(
            retailer=g.current_user,
            order_id=data.get("order_id"),
        )
        return jsonify({
            "message": f"{len(items)} items added to inventory",
            "items": [i.to_dict() for i in items],
        }), 201

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to add order to retailer inventory")
        return jsonify({"error": "Internal server error"}), 500


@retailer_inventory_bp.get("/<int:item_id>")
@require_auth
@require_role("retailer", "admin")
def get_item_route(item_id: int):
    try:
        item = retailer_inventory_service.get_item(item_id, user=g.current_user)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"item": item.to_dict()}), 200


@retailer_inventory_bp.post("/<int:item_id>/sell")
@require_auth
@require_role("retailer")
def mark_as_sold_route(item_id: int):
    """
    Sell a held unit and register the end customer's warranty.

    Request body:
    {
        "customer": {"name": ..., "email": ..., "phone": ..., "address": ...},
        "customer_invoice_url": "https://...",
        "selling_price_cents": 180000,     (optional)
        "sold_date": "2024-06-01"          (optional; default today)
    }

    Returns:
        200: item sold, warranty pending
        400: missing customer details or invoice
        404: item not found
        409: item not in stock, or serial already under warranty
    """
    try:
        data = request.get_json(silent=True) or {}
        item = retailer_inventory_service.mark_as_sold(
            item_id=item_id,
            retailer=g.current_user,
            customer=data.get("customer") or {},
            customer_invoice_url=data.get("customer_invoice_url"),
            selling_price_cents=data.get("selling_price_cents"),
            sold_date=data.get("sold_date"),
        )
        return jsonify({
            "message": "Product marked as sold and warranty registered",
            "item": item.to_dict(),
            "warranty": item.warranty.to_dict(),
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to mark retailer item %s as sold", item_id)
        return jsonify({"error": "Internal server error"}), 500


@retailer_inventory_bp.put("/<int:item_id>/status")
@require_auth
@require_role("retailer", "admin")
def update_status_route(item_id: int):
    """Request body: {"status": "damaged", "notes": "..."}"""
    try:
        data = request.get_json(silent=True) or {}
        item = retailer_inventory_service.update_status(
            item_id=item_id,
            user=g.current_user,
            status=data.get("status"),
            notes=data.get("notes"),
        )
        return jsonify({"item": item.to_dict()}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update retailer item %s", item_id)
        return jsonify({"error": "Internal server error"}), 500
