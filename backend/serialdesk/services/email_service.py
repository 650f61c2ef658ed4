# Overview: Outbound email delivery; HTTP email microservice with a local SMTP fallback.

"""
Email Delivery Service

DELIVERY PATH:
1. POST {EMAIL_SERVICE_URL}/api/email/send through httpx with an explicit
   timeout (EMAIL_SERVICE_TIMEOUT, 10 s by default).
2. If the service is unreachable (connect error or timeout), fall back to
   local SMTP delivery, which records an EmailLog row
   (pending -> sent | failed).
3. Any other service failure (4xx/5xx) is returned as a failed result with
   no fallback.

send_email() never raises: notifications are a side effect and must not
undo or block the workflow that triggered them. Callers get a result dict
{"success": bool, ...}.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

import httpx
from flask import current_app

from ..extensions import db
from ..models import EmailLog
from ..validation import DependencyUnavailableError, NotFoundError
from serialdesk.time_utils import utcnow

logger = logging.getLogger(__name__)


def _build_client() -> httpx.Client:
    cfg = current_app.config
    return httpx.Client(
        base_url=cfg["EMAIL_SERVICE_URL"],
        timeout=cfg.get("EMAIL_SERVICE_TIMEOUT", 10.0),
        headers={"Content-Type": "application/json"},
    )


def _recipient_type(to: str) -> str:
    if to == current_app.config.get("ADMIN_EMAIL") or "admin" in to:
        return "admin"
    return "user"


def _deliver_smtp(message: EmailMessage) -> None:
    """
    Hand one message to the configured SMTP server.

    Raises DependencyUnavailableError when SMTP is not configured.
    """
    cfg = current_app.config
    host = cfg.get("SMTP_HOST")
    if not host:
        raise DependencyUnavailableError("SMTP is not configured")

    with smtplib.SMTP(host, cfg.get("SMTP_PORT", 587), timeout=cfg.get("EMAIL_SERVICE_TIMEOUT", 10.0)) as smtp:
        if cfg.get("SMTP_USE_TLS", True):
            smtp.starttls()
        if cfg.get("SMTP_USER"):
            smtp.login(cfg["SMTP_USER"], cfg.get("SMTP_PASSWORD") or "")
        smtp.send_message(message)


def _build_message(to: str, subject: str, text: str, html: str | None) -> EmailMessage:
    message = EmailMessage()
    message["From"] = current_app.config.get("MAIL_FROM")
    message["To"] = to
    message["Subject"] = subject
    message.set_content(text)
    if html:
        message.add_alternative(html, subtype="html")
    return message


def send_local(
    to: str,
    subject: str,
    text: str,
    *,
    email_type: str = "general",
    related_entity_type: str | None = None,
    related_entity_id: int | None = None,
    html: str | None = None,
) -> dict:
    """Deliver through local SMTP and record the attempt in EmailLog."""
    log = EmailLog(
        recipient=to,
        recipient_type=_recipient_type(to),
        subject=subject,
        body=html or text,
        email_type=email_type,
        status="pending",
        related_entity_type=related_entity_type,
        related_entity_id=related_entity_id,
    )
    db.session.add(log)
    db.session.commit()

    try:
        _deliver_smtp(_build_message(to, subject, text, html))
    except (smtplib.SMTPException, OSError, DependencyUnavailableError) as e:
        logger.error("Local mailer failed for %s: %s", to, e)
        log.status = "failed"
        log.error_message = str(e)
        db.session.commit()
        return {"success": False, "error": str(e), "email_log_id": log.id}

    log.status = "sent"
    log.sent_at = utcnow()
    db.session.commit()
    logger.info("Email sent via local mailer to %s", to)
    return {"success": True, "email_log_id": log.id}


def send_email(
    to: str,
    subject: str,
    text: str,
    *,
    email_type: str = "general",
    related_entity_type: str | None = None,
    related_entity_id: int | None = None,
    html: str | None = None,
) -> dict:
    """
    Send one email through the email service, falling back to local SMTP.
    """
    if not current_app.config.get("NOTIFICATIONS_ENABLED", True):
        return {"success": False, "skipped": True}
    if not to:
        return {"success": False, "error": "No recipient"}

    local_kwargs = dict(
        email_type=email_type,
        related_entity_type=related_entity_type,
        related_entity_id=related_entity_id,
        html=html,
    )
    if not current_app.config.get("EMAIL_SERVICE_URL"):
        return send_local(to, subject, text, **local_kwargs)

    payload = {
        "to": to,
        "subject": subject,
        "text": text,
        "html": html,
        "emailType": email_type,
        "relatedEntity": {"entityType": related_entity_type, "entityId": related_entity_id},
    }
    try:
        with _build_client() as client:
            response = client.post("/api/email/send", json=payload)
            response.raise_for_status()
    except (httpx.ConnectError, httpx.TimeoutException) as e:
        logger.warning("Email service unavailable (%s), using local mailer fallback", e)
        return send_local(to, subject, text, **local_kwargs)
    except httpx.HTTPError as e:
        logger.error("Email service error for %s: %s", to, e)
        return {"success": False, "error": str(e)}

    try:
        data = response.json()
    except ValueError:
        data = {}
    logger.info("Email sent via service to %s", to)
    return {"success": True, **(data if isinstance(data, dict) else {})}


def resend_email(email_log_id: int) -> dict:
    """Retry a logged email through the local mailer (admin action)."""
    log = db.session.get(EmailLog, email_log_id)
    if log is None:
        raise NotFoundError("Email log not found")

    message = EmailMessage()
    message["From"] = current_app.config.get("MAIL_FROM")
    message["To"] = log.recipient
    message["Subject"] = log.subject
    message.set_content(log.body)

    try:
        _deliver_smtp(message)
    except (smtplib.SMTPException, OSError, DependencyUnavailableError) as e:
        log.status = "failed"
        log.error_message = str(e)
        db.session.commit()
        return {"success": False, "error": str(e), "email_log": log.to_dict()}

    log.status = "sent"
    log.sent_at = utcnow()
    log.error_message = None
    db.session.commit()
    return {"success": True, "email_log": log.to_dict()}


def list_email_logs(*, status: str | None = None, email_type: str | None = None, limit: int = 100) -> list[EmailLog]:
    q = db.session.query(EmailLog)
    if status:
        q = q.filter(EmailLog.status == status)
    if email_type:
        q = q.filter(EmailLog.email_type == email_type)
    return q.order_by(EmailLog.created_at.desc(), EmailLog.id.desc()).limit(min(limit, 500)).all()
