# Overview: Flask API routes for orders and quotes; parses input and returns JSON responses.

# backend/serialdesk/routes/orders.py
"""
Order and Quote API Routes

Status changes are admin-driven and unguarded: any listed status may be
set from any other.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import order_service, quote_service
from ..services.product_unit_service import InsufficientStockError
from ..validation import ValidationError, ConflictError, NotFoundError
from ..decorators import require_auth, require_role


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")
quotes_bp = Blueprint("quotes", __name__, url_prefix="/api/quotes")


def _can_view(owner_id: int) -> bool:
    return g.current_user.is_admin or g.current_user.id == owner_id


# =============================================================================
# ORDERS
# =============================================================================

@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Request body:
    {
        "lines": [{"product_id": 1, "quantity": 2}],
        "shipping_address": "...",
        "quote_id": 5           (optional; required for requires_quote products)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.create_order(
            user=g.current_user,
            lines=data.get("lines"),
            shipping_address=data.get("shipping_address"),
            quote_id=data.get("quote_id"),
        )
        return jsonify({"order": order.to_dict()}), 201

    except InsufficientStockError as e:
        return jsonify({"error": str(e), "available": e.available, "required": e.required}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
@require_auth
def list_orders_route():
    """Admins see every order (filterable by user_id/status); others see their own."""
    if g.current_user.is_admin:
        orders = order_service.list_orders(
            user_id=request.args.get("user_id", type=int),
            order_status=request.args.get("status"),
        )
    else:
        orders = order_service.list_orders(user_id=g.current_user.id)
    return jsonify({"items": [o.to_dict() for o in orders], "count": len(orders)}), 200


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    if not _can_view(order.user_id):
        return jsonify({"error": "Order not found"}), 404
    return jsonify({"order": order.to_dict()}), 200


@orders_bp.put("/<int:order_id>/status")
@require_auth
@require_role("admin")
def update_order_status_route(order_id: int):
    """Request body: {"status": "processing" | "shipped" | "delivered" | "cancelled"}"""
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.update_order_status(
            order_id=order_id,
            status=data.get("status"),
            actor_user_id=g.current_user.id,
        )
        return jsonify({"order": order.to_dict()}), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>/payment")
@require_auth
@require_role("admin")
def update_payment_status_route(order_id: int):
    """
    Request body: {"payment_status": "pending" | "completed" | "failed"}

    The first move to 'completed' allocates serials to the order lines.
    """
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.update_payment_status(
            order_id=order_id,
            payment_status=data.get("payment_status"),
            actor_user_id=g.current_user.id,
        )
        return jsonify({"order": order.to_dict()}), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update payment status")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# QUOTES
# =============================================================================

@quotes_bp.post("")
@require_auth
def create_quote_route():
    """Request body: {"lines": [{"product_id": 1, "quantity": 50}], "message": "..."}"""
    try:
        data = request.get_json(silent=True) or {}
        quote = quote_service.create_quote(
            user=g.current_user,
            lines=data.get("lines"),
            message=data.get("message"),
        )
        return jsonify({"quote": quote.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to create quote")
        return jsonify({"error": "Internal server error"}), 500


@quotes_bp.get("")
@require_auth
def list_quotes_route():
    if g.current_user.is_admin:
        quotes = quote_service.list_quotes(
            user_id=request.args.get("user_id", type=int),
            status=request.args.get("status"),
        )
    else:
        quotes = quote_service.list_quotes(user_id=g.current_user.id)
    return jsonify({"items": [q.to_dict() for q in quotes], "count": len(quotes)}), 200


@quotes_bp.put("/<int:quote_id>/respond")
@require_auth
@require_role("admin")
def respond_quote_route(quote_id: int):
    """Request body: {"price_cents": 125000, "message": "..."}"""
    try:
        data = request.get_json(silent=True) or {}
        quote = quote_service.respond(
            quote_id=quote_id,
            price_cents=data.get("price_cents"),
            message=data.get("message"),
            actor_user_id=g.current_user.id,
        )
        return jsonify({"quote": quote.to_dict()}), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to respond to quote")
        return jsonify({"error": "Internal server error"}), 500


@quotes_bp.put("/<int:quote_id>/accept")
@require_auth
def accept_quote_route(quote_id: int):
    try:
        quote = quote_service.accept(quote_id=quote_id, user=g.current_user)
        return jsonify({"quote": quote.to_dict()}), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409


@quotes_bp.put("/<int:quote_id>")
@require_auth
@require_role("admin")
def set_quote_status_route(quote_id: int):
    """Request body: {"status": "pending" | "responded" | "accepted" | "rejected" | "completed"}"""
    try:
        data = request.get_json(silent=True) or {}
        quote = quote_service.set_status(
            quote_id=quote_id,
            status=data.get("status"),
            actor_user_id=g.current_user.id,
        )
        return jsonify({"quote": quote.to_dict()}), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update quote status")
        return jsonify({"error": "Internal server error"}), 500
