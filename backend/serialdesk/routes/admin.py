# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/serialdesk/routes/admin.py
"""
Admin routes.

Provides endpoints for:
- User management (list, create, activate/deactivate, role change)
- Activity log (list, filters)
- Email log (list, resend)
- CSV exports

All endpoints require an authenticated admin.
"""

from flask import Blueprint, Response, request, jsonify, g, current_app

from ..services import activity_service, auth_service, email_service, export_service, session_service
from ..validation import ValidationError, ConflictError, NotFoundError
from ..decorators import require_auth, require_role
from serialdesk.time_utils import parse_iso_datetime, utcnow

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")
activity_bp = Blueprint("activity", __name__, url_prefix="/api/activity-logs")
exports_bp = Blueprint("exports", __name__, url_prefix="/api/exports")


# =============================================================================
# USER MANAGEMENT
# =============================================================================

@admin_bp.get("/users")
@require_auth
@require_role("admin")
def list_users():
    """
    Query params:
    - role: admin | retailer | user
    - include_inactive: bool (default true)
    """
    include_inactive = request.args.get("include_inactive", "true").lower() == "true"
    users = auth_service.list_users(role=request.args.get("role"))
    if not include_inactive:
        users = [u for u in users if u.is_active]
    return jsonify({"users": [u.to_dict() for u in users], "count": len(users)}), 200


@admin_bp.post("/users")
@require_auth
@require_role("admin")
def create_user():
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.create_user(
            name=data.get("name"),
            email=data.get("email"),
            password=data.get("password"),
            role=data.get("role") or "user",
            phone=data.get("phone"),
        )
        return jsonify({"user": user.to_dict(), "message": "User created successfully"}), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.put("/users/<int:user_id>")
@require_auth
@require_role("admin")
def update_user(user_id: int):
    """
    Request body (all optional): name, phone, role, is_active.

    Deactivation revokes every open session of the account.
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.update_user(user_id=user_id, patch=data, actor_user_id=g.current_user.id)
        if data.get("is_active") is False:
            session_service.revoke_all_user_sessions(user.id, reason="Account deactivated by admin")
        return jsonify({"user": user.to_dict()}), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# EMAIL LOG
# =============================================================================

@admin_bp.get("/email-logs")
@require_auth
@require_role("admin")
def list_email_logs():
    logs = email_service.list_email_logs(
        status=request.args.get("status"),
        email_type=request.args.get("email_type"),
        limit=request.args.get("limit", 100, type=int),
    )
    return jsonify({"items": [log.to_dict() for log in logs], "count": len(logs)}), 200


@admin_bp.post("/email-logs/<int:email_log_id>/resend")
@require_auth
@require_role("admin")
def resend_email(email_log_id: int):
    try:
        result = email_service.resend_email(email_log_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(result), 200 if result["success"] else 502


# =============================================================================
# ACTIVITY LOG
# =============================================================================

@activity_bp.get("")
@require_auth
@require_role("admin")
def list_activity_route():
    """
    Query params:
    - action, entity_type, entity_id, actor_user_id
    - since / until: ISO-8601 datetimes (until is inclusive)
    - limit: default 200, max 1000
    """
    try:
        since = parse_iso_datetime(request.args.get("since"))
        until = parse_iso_datetime(request.args.get("until"))
    except ValueError:
        return jsonify({"error": "since/until must be ISO-8601 datetimes"}), 400

    entries = activity_service.list_activity(
        action=request.args.get("action"),
        entity_type=request.args.get("entity_type"),
        entity_id=request.args.get("entity_id", type=int),
        actor_user_id=request.args.get("actor_user_id", type=int),
        since=since,
        until=until,
        limit=request.args.get("limit", 200, type=int),
    )
    return jsonify({"items": [e.to_dict() for e in entries], "count": len(entries)}), 200


# =============================================================================
# EXPORTS
# =============================================================================

@exports_bp.get("/<entity>.csv")
@require_auth
@require_role("admin")
def export_route(entity: str):
    """CSV download: warranties | product-units | orders | activity-logs"""
    try:
        body = export_service.export_csv(entity)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404

    filename = f"{entity}-{utcnow():%Y%m%d}.csv"
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
