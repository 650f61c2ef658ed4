# Overview: Flask API routes for serialized product units; parses input and returns JSON responses.

# backend/serialdesk/routes/product_units.py
"""
Product Unit API Routes

- Batch add with per-row error reporting (partial success)
- Update / hard delete with stock recount
- Lookups by product, by serial, and available units per channel
- Allocation of available units to an order

Every response that follows a unit mutation carries the recounted
total_stock / offline_stock (null when the recount failed and was logged).
"""

from flask import Blueprint, request, jsonify, current_app

from ..models import ProductUnit
from ..services import product_unit_service
from ..services.product_unit_service import (
    DuplicateSerialError,
    InsufficientStockError,
)
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth, require_role


UNIT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "serial_number",
        "model_number",
        "status",
        "stock_type",
        "manufacturing_date",
        "warranty_period_months",
    },
)

product_units_bp = Blueprint("product_units", __name__, url_prefix="/api/product-units")


def _stock_payload(stock: dict | None) -> dict:
    return {
        "total_stock": stock["total_stock"] if stock else None,
        "offline_stock": stock["offline_stock"] if stock else None,
    }


@product_units_bp.post("/add")
@require_auth
@require_role("admin")
def add_units_route():
    """
    Add a batch of units to one product.

    Request body:
    {
        "product_id": 1,
        "units": [
            {"serial_number": "SN-001", "model_number": "M-1", "stock_type": "both"},
            ...
        ]
    }

    Returns:
        201: at least one unit created (errors lists rejected rows)
        400: no unit created; errors lists every rejected row
        404: product not found
    """
    try:
        data = request.get_json(silent=True) or {}
        result = product_unit_service.add_units(
            product_id=data.get("product_id"),
            units=data.get("units"),
        )
        status = 201 if result.created else 400
        return jsonify(result.to_dict()), status

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to add product units")
        return jsonify({"error": "Internal server error"}), 500


@product_units_bp.put("/<int:unit_id>")
@require_auth
@require_role("admin")
def update_unit_route(unit_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=ProductUnit, payload=payload, policy=UNIT_UPDATE_POLICY, partial=True)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        unit, stock = product_unit_service.update_unit(unit_id=unit_id, patch=patch)
        return jsonify({"product_unit": unit.to_dict(), **_stock_payload(stock)}), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except DuplicateSerialError as e:
        return jsonify({"error": str(e), "serial_number": e.serial_number}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update product unit")
        return jsonify({"error": "Internal server error"}), 500


@product_units_bp.delete("/<int:unit_id>")
@require_auth
@require_role("admin")
def delete_unit_route(unit_id: int):
    """
    Hard-delete a unit. Warranties/order lines carrying its serial are untouched.

    Returns:
        204: deleted
        404: unit not found
    """
    try:
        product_unit_service.delete_unit(unit_id=unit_id)
        return "", 204

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete product unit")
        return jsonify({"error": "Internal server error"}), 500


@product_units_bp.get("/product/<int:product_id>")
@require_auth
@require_role("admin")
def list_units_route(product_id: int):
    """
    Query params:
    - status: filter by unit status
    - stock_type: filter by online/offline/both
    """
    try:
        units = product_unit_service.list_by_product(
            product_id,
            status=request.args.get("status"),
            stock_type=request.args.get("stock_type"),
        )
        return jsonify({"items": [u.to_dict() for u in units], "count": len(units)}), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@product_units_bp.get("/available/<int:product_id>")
@require_auth
def list_available_route(product_id: int):
    """
    Query params:
    - channel: online (default) | offline
    - limit: max units returned (default 10)
    """
    try:
        units = product_unit_service.list_available(
            product_id,
            channel=request.args.get("channel", "online"),
            limit=request.args.get("limit", 10, type=int),
        )
        return jsonify({"items": [u.to_dict() for u in units], "count": len(units)}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@product_units_bp.get("/serial/<path:serial_number>")
@require_auth
def get_by_serial_route(serial_number: str):
    unit = product_unit_service.find_by_serial(serial_number)
    if unit is None:
        return jsonify({"error": "Product unit not found"}), 404
    return jsonify({"product_unit": unit.to_dict()}), 200


@product_units_bp.post("/assign")
@require_auth
@require_role("admin")
def assign_units_route():
    """
    Allocate available units to an order (all-or-nothing).

    Request body:
    {"order_id": 1, "product_id": 2, "quantity": 3, "channel": "online", "order_line_id": 4}

    Returns:
        200: units allocated
        409: insufficient stock (nothing changed)
    """
    try:
        data = request.get_json(silent=True) or {}
        units, stock = product_unit_service.assign_units_to_order(
            order_id=data.get("order_id"),
            product_id=data.get("product_id"),
            quantity=data.get("quantity"),
            channel=data.get("channel", "online"),
            order_line_id=data.get("order_line_id"),
        )
        return jsonify({
            "message": f"{len(units)} units assigned",
            "product_units": [u.to_dict() for u in units],
            **_stock_payload(stock),
        }), 200

    except InsufficientStockError as e:
        return jsonify({"error": str(e), "available": e.available, "required": e.required}), 409
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to assign product units")
        return jsonify({"error": "Internal server error"}), 500
