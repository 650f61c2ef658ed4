# backend/serialdesk/routes/system.py
"""
System health and version endpoints.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product, ProductUnit, User, Warranty
from serialdesk.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        details = {
            "users": db.session.query(User).count(),
            "products": db.session.query(Product).count(),
            "product_units": db.session.query(ProductUnit).count(),
            "warranties": db.session.query(Warranty).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_notifications_config() -> dict:
    cfg = current_app.config
    if not cfg.get("NOTIFICATIONS_ENABLED"):
        return {"status": "disabled"}
    if not cfg.get("EMAIL_SERVICE_URL") and not cfg.get("SMTP_HOST"):
        return {"status": "degraded", "warning": "No email service or SMTP host configured"}
    return {
        "status": "healthy",
        "details": {
            "email_service": bool(cfg.get("EMAIL_SERVICE_URL")),
            "smtp_fallback": bool(cfg.get("SMTP_HOST")),
        },
    }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    notifications = check_notifications_config()

    if database_health["status"] == "unhealthy":
        overall_status, http_status = "unhealthy", 503
    elif notifications["status"] == "degraded":
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "notifications": notifications,
        }
    }, http_status
