# Overview: Flask API routes for warranty operations; parses input and returns JSON responses.

# backend/serialdesk/routes/warranties.py
"""
Warranty API Routes

WORKFLOW:
- Customers/retailers register a warranty (status: pending)
- Admins approve (window set) or reject (reason set); both are terminal
- Admins validate a serial number to see its current warranty standing

SECURITY:
- Registration, own list and serial check: any authenticated user
- Listing all, validation, decisions and edits: admin only
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import invoice_service, warranty_service
from ..services.warranty_service import WarrantyTransitionError
from ..validation import (
    ValidationError,
    ConflictError,
    NotFoundError,
    DependencyUnavailableError,
)
from ..decorators import require_auth, require_role


warranties_bp = Blueprint("warranties", __name__, url_prefix="/api/warranties")


# =============================================================================
# REGISTRATION (customer / retailer)
# =============================================================================

@warranties_bp.post("")
@require_auth
def register_warranty_route():
    """
    Register a warranty for a purchased unit.

    Request body:
    {
        "serial_number": "SN-001",
        "model_number": "M-1",
        "product_id": 1,                      (optional)
        "purchase_date": "2024-01-15",
        "purchase_type": "online" | "offline" | "retailer",
        "invoice_url": "https://...",         (required for offline/retailer)
        "final_customer": {"name": ..., "email": ..., "phone": ..., "address": ...}
                                              (retailers only)
    }

    Returns:
        201: warranty created (pending)
        400: invalid input
        404: serial number not found
        409: serial already has a pending or approved warranty
    """
    try:
        data = request.get_json(silent=True) or {}
        warranty = warranty_service.register(
            serial_number=data.get("serial_number"),
            model_number=data.get("model_number"),
            purchase_date=data.get("purchase_date"),
            purchase_type=data.get("purchase_type"),
            purchaser=g.current_user,
            product_id=data.get("product_id"),
            invoice_url=data.get("invoice_url"),
            final_customer=data.get("final_customer"),
        )
        return jsonify({
            "message": "Warranty registration submitted successfully",
            "warranty": warranty.to_dict(),
        }), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to register warranty")
        return jsonify({"error": "Internal server error"}), 500


@warranties_bp.post("/upload-invoice")
@require_auth
def upload_invoice_route():
    """
    Upload a purchase invoice (multipart field "invoice") before registering.

    Returns:
        201: {"url": ...} to pass as invoice_url
        400: missing, empty, oversized or unsupported file
        502: invoice storage unavailable
    """
    try:
        url = invoice_service.store_invoice(request.files.get("invoice"))
        return jsonify({"url": url}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except DependencyUnavailableError as e:
        current_app.logger.error("Invoice storage failed: %s", e)
        return jsonify({"error": str(e)}), 502
    except Exception:
        current_app.logger.exception("Failed to upload invoice")
        return jsonify({"error": "Internal server error"}), 500


@warranties_bp.get("/mine")
@require_auth
def my_warranties_route():
    warranties = warranty_service.list_user_warranties(g.current_user.id)
    return jsonify({"items": [w.to_dict() for w in warranties], "count": len(warranties)}), 200


@warranties_bp.get("/check-serial")
@require_auth
def check_serial_route():
    """
    Query params:
    - serial_number: required
    - product_id: optional; the unit must belong to this product
    """
    serial_number = request.args.get("serial_number", "")
    if not serial_number.strip():
        return jsonify({"error": "serial_number is required"}), 400

    try:
        result = warranty_service.check_serial(serial_number, request.args.get("product_id", type=int))
        return jsonify(result), 200
    except NotFoundError as e:
        return jsonify({"valid": False, "error": str(e)}), 404


# =============================================================================
# ADMIN
# =============================================================================

@warranties_bp.get("")
@require_auth
@require_role("admin")
def list_warranties_route():
    """
    Query params:
    - status: pending | approved | rejected
    - serial_number: exact match
    """
    warranties = warranty_service.list_warranties(
        status=request.args.get("status"),
        serial_number=request.args.get("serial_number"),
    )
    return jsonify({"items": [w.to_dict() for w in warranties], "count": len(warranties)}), 200


@warranties_bp.get("/validate")
@require_auth
@require_role("admin")
def validate_route():
    """
    Classify a serial: not_found | not_registered | pending | rejected | active | expired.

    Query params:
    - serial_number: required
    - as_of: ISO date (default: today, UTC)
    """
    serial_number = request.args.get("serial_number", "")
    if not serial_number.strip():
        return jsonify({"error": "serial_number is required"}), 400

    try:
        result = warranty_service.validate(serial_number, as_of=request.args.get("as_of"))
        return jsonify(result.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@warranties_bp.put("/<int:warranty_id>/approve")
@require_auth
@require_role("admin")
def approve_route(warranty_id: int):
    """
    Request body (all optional):
    {"warranty_start_date": "2024-02-01", "admin_notes": "..."}

    Returns:
        200: approved
        404: warranty not found
        409: warranty already approved or rejected
    """
    try:
        data = request.get_json(silent=True) or {}
        warranty = warranty_service.approve(
            warranty_id=warranty_id,
            admin_user_id=g.current_user.id,
            start_date=data.get("warranty_start_date"),
            admin_notes=data.get("admin_notes"),
        )
        return jsonify({"message": "Warranty approved successfully", "warranty": warranty.to_dict()}), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except WarrantyTransitionError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to approve warranty")
        return jsonify({"error": "Internal server error"}), 500


@warranties_bp.put("/<int:warranty_id>/reject")
@require_auth
@require_role("admin")
def reject_route(warranty_id: int):
    """
    Request body:
    {"rejection_reason": "Invoice unreadable", "admin_notes": "..."}
    """
    try:
        data = request.get_json(silent=True) or {}
        warranty = warranty_service.reject(
            warranty_id=warranty_id,
            reason=data.get("rejection_reason") or data.get("reason"),
            admin_user_id=g.current_user.id,
            admin_notes=data.get("admin_notes"),
        )
        return jsonify({"message": "Warranty rejected", "warranty": warranty.to_dict()}), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except WarrantyTransitionError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to reject warranty")
        return jsonify({"error": "Internal server error"}), 500


@warranties_bp.put("/<int:warranty_id>")
@require_auth
@require_role("admin")
def update_warranty_route(warranty_id: int):
    """
    Admin edit.

    A body with "status": "approved" or "rejected" is routed to the
    corresponding decision (same rules as the dedicated endpoints). Any
    other keys are field edits: admin_notes / invoice_url while pending,
    certificate_url only once terminal.
    """
    data = request.get_json(silent=True) or {}
    status = data.pop("status", None)

    try:
        if status == "approved":
            warranty = warranty_service.approve(
                warranty_id=warranty_id,
                admin_user_id=g.current_user.id,
                start_date=data.get("warranty_start_date"),
                admin_notes=data.get("admin_notes"),
            )
        elif status == "rejected":
            warranty = warranty_service.reject(
                warranty_id=warranty_id,
                reason=data.get("rejection_reason"),
                admin_user_id=g.current_user.id,
                admin_notes=data.get("admin_notes"),
            )
        elif status is not None:
            return jsonify({"error": "status must be 'approved' or 'rejected'"}), 400
        else:
            warranty = warranty_service.update_warranty(warranty_id=warranty_id, patch=data)

        return jsonify({"message": "Warranty updated successfully", "warranty": warranty.to_dict()}), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except WarrantyTransitionError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update warranty")
        return jsonify({"error": "Internal server error"}), 500


@warranties_bp.post("/<int:warranty_id>/certificate")
@require_auth
@require_role("admin")
def certificate_route(warranty_id: int):
    """
    (Re)generate the certificate of an approved warranty.

    Returns:
        200: certificate_url attached
        409: warranty is not approved
        502: certificate storage unavailable
    """
    try:
        warranty = warranty_service.attach_certificate(warranty_id=warranty_id)
        return jsonify({"certificate_url": warranty.certificate_url, "warranty": warranty.to_dict()}), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except DependencyUnavailableError as e:
        current_app.logger.error("Certificate storage failed for warranty %s: %s", warranty_id, e)
        return jsonify({"error": str(e)}), 502
    except Exception:
        current_app.logger.exception("Failed to generate warranty certificate")
        return jsonify({"error": "Internal server error"}), 500
