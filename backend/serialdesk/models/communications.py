from __future__ import annotations

from ..extensions import db
from serialdesk.time_utils import to_utc_z

EMAIL_TYPES = (
    "general",
    "quote_request",
    "quote_approval",
    "order_confirmation",
    "order_status_update",
    "payment_confirmation",
    "warranty_submitted",
    "warranty_approved",
    "warranty_rejected",
    "welcome",
    "user_registration",
)


class EmailLog(db.Model):
    """
    Record of an email delivered through the local SMTP path.

    status: pending -> sent | failed
    """
    __tablename__ = "email_logs"
    __table_args__ = (
        db.Index("ix_email_logs_recipient_type", "recipient", "email_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    recipient = db.Column(db.String(255), nullable=False)
    # user | admin | retailer
    recipient_type = db.Column(db.String(16), nullable=False, default="user")
    subject = db.Column(db.String(255), nullable=False)
    body = db.Column(db.Text, nullable=False)
    email_type = db.Column(db.String(32), nullable=False, default="general")

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    error_message = db.Column(db.Text, nullable=True)

    related_entity_type = db.Column(db.String(32), nullable=True)
    related_entity_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "recipient": self.recipient,
            "recipient_type": self.recipient_type,
            "subject": self.subject,
            "email_type": self.email_type,
            "status": self.status,
            "error_message": self.error_message,
            "related_entity": {
                "entity_type": self.related_entity_type,
                "entity_id": self.related_entity_id,
            },
            "created_at": to_utc_z(self.created_at),
            "sent_at": to_utc_z(self.sent_at) if self.sent_at else None,
        }
