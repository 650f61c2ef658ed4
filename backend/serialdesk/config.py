# backend/serialdesk/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/serialdesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///serialdesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Password hashing cost; tests lower it to keep fixtures fast
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Bearer sessions: absolute lifetime and idle cutoff
    SESSION_ABSOLUTE_HOURS = int(os.environ.get("SESSION_ABSOLUTE_HOURS", "24"))
    SESSION_IDLE_MINUTES = int(os.environ.get("SESSION_IDLE_MINUTES", "120"))

    # Warranty length used when neither the unit nor the product sets one
    DEFAULT_WARRANTY_MONTHS = int(os.environ.get("DEFAULT_WARRANTY_MONTHS", "12"))

    # Outbound email: HTTP email microservice first, local SMTP as fallback
    NOTIFICATIONS_ENABLED = _env_flag("NOTIFICATIONS_ENABLED", "true")
    EMAIL_SERVICE_URL = os.environ.get("EMAIL_SERVICE_URL", "http://localhost:5001")
    EMAIL_SERVICE_TIMEOUT = float(os.environ.get("EMAIL_SERVICE_TIMEOUT", "10"))
    SMTP_HOST = os.environ.get("SMTP_HOST")
    SMTP_PORT = int(os.environ.get("SMTP_PORT", "587"))
    SMTP_USER = os.environ.get("SMTP_USER")
    SMTP_PASSWORD = os.environ.get("SMTP_PASSWORD")
    SMTP_USE_TLS = _env_flag("SMTP_USE_TLS", "true")
    MAIL_FROM = os.environ.get("MAIL_FROM", "no-reply@serialdesk.local")
    ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "admin@serialdesk.local")

    # Warranty certificates are written here (relative paths resolve under the instance folder)
    WARRANTY_CERTIFICATES_ENABLED = _env_flag("WARRANTY_CERTIFICATES_ENABLED", "false")
    CERTIFICATE_STORAGE_DIR = os.environ.get("CERTIFICATE_STORAGE_DIR", "certificates")
    CERTIFICATE_BASE_URL = os.environ.get("CERTIFICATE_BASE_URL", "/static/certificates")

    # Browser origins allowed to call the API (dashboard dev and preview servers)
    CORS_ALLOWED_ORIGINS = tuple(
        o.strip()
        for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if o.strip()
    )

    # Uploaded purchase invoices (relative paths resolve under the instance folder)
    INVOICE_STORAGE_DIR = os.environ.get("INVOICE_STORAGE_DIR", "invoices")
    INVOICE_BASE_URL = os.environ.get("INVOICE_BASE_URL", "/static/invoices")
    INVOICE_MAX_BYTES = int(os.environ.get("INVOICE_MAX_BYTES", str(5 * 1024 * 1024)))
