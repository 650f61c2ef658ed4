from __future__ import annotations

from ..extensions import db
from serialdesk.time_utils import to_utc_z


class ActivityLog(db.Model):
    """
    Append-only admin activity log.

    Rows are written in the same DB transaction as the mutation they record
    and are never updated or deleted.
    """
    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("ix_activity_logs_entity", "entity_type", "entity_id"),
        db.Index("ix_activity_logs_action_occurred", "action", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    # e.g. "product_unit.created", "warranty.approved"
    action = db.Column(db.String(64), nullable=False, index=True)
    entity_type = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.Integer, nullable=True)

    note = db.Column(db.Text, nullable=True)
    details = db.Column(db.JSON, nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    actor = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "actor_user_id": self.actor_user_id,
            "actor_email": self.actor.email if self.actor else None,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "note": self.note,
            "details": self.details,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }
