from __future__ import annotations

from ..extensions import db
from serialdesk.time_utils import to_utc_z, to_iso_date


class Warranty(db.Model):
    """
    Warranty registration for one serialized unit.

    STATE MACHINE:
        pending -> approved
        pending -> rejected
    Both outcomes are terminal. A rejected serial may be registered again,
    which creates a new row; the old row is never re-opened.

    WINDOW:
    warranty_start_date / warranty_end_date are NULL until approval.
    warranty_period_months is snapshotted at registration so a later change
    of the product default does not move the window.

    product_unit_id is a plain reference (no FK): deleting a unit leaves it
    dangling while serial_number keeps the identity.
    """
    __tablename__ = "warranties"
    __table_args__ = (
        db.Index("ix_warranties_serial_created", "serial_number", "created_at"),
        db.Index("ix_warranties_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_unit_id = db.Column(db.Integer, nullable=True, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    model_number = db.Column(db.String(128), nullable=False)
    serial_number = db.Column(db.String(128), nullable=False, index=True)

    purchase_date = db.Column(db.Date, nullable=False)
    # online | offline | retailer
    purchase_type = db.Column(db.String(16), nullable=False)
    invoice_url = db.Column(db.String(512), nullable=True)

    # pending | approved | rejected
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    warranty_period_months = db.Column(db.Integer, nullable=False)
    warranty_start_date = db.Column(db.Date, nullable=True)
    warranty_end_date = db.Column(db.Date, nullable=True)

    admin_notes = db.Column(db.Text, nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)
    certificate_url = db.Column(db.String(512), nullable=True)

    decided_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    decided_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Retailer sales: the retailer registers on behalf of the final customer
    is_retailer_sale = db.Column(db.Boolean, nullable=False, default=False)
    retailer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    final_customer_name = db.Column(db.String(255), nullable=True)
    final_customer_email = db.Column(db.String(255), nullable=True)
    final_customer_phone = db.Column(db.String(64), nullable=True)
    final_customer_address = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", foreign_keys=[user_id])
    retailer = db.relationship("User", foreign_keys=[retailer_id])
    product = db.relationship("Product", backref=db.backref("warranties", lazy=True))

    def __repr__(self) -> str:
        return f"<Warranty id={self.id} serial={self.serial_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_email": self.user.email if self.user else None,
            "product_id": self.product_id,
            "product_unit_id": self.product_unit_id,
            "product_name": self.product_name,
            "model_number": self.model_number,
            "serial_number": self.serial_number,
            "purchase_date": to_iso_date(self.purchase_date),
            "purchase_type": self.purchase_type,
            "invoice_url": self.invoice_url,
            "status": self.status,
            "warranty_period_months": self.warranty_period_months,
            "warranty_start_date": to_iso_date(self.warranty_start_date),
            "warranty_end_date": to_iso_date(self.warranty_end_date),
            "admin_notes": self.admin_notes,
            "rejection_reason": self.rejection_reason,
            "certificate_url": self.certificate_url,
            "decided_by_user_id": self.decided_by_user_id,
            "decided_at": to_utc_z(self.decided_at) if self.decided_at else None,
            "is_retailer_sale": self.is_retailer_sale,
            "retailer_id": self.retailer_id,
            "final_customer": {
                "name": self.final_customer_name,
                "email": self.final_customer_email,
                "phone": self.final_customer_phone,
                "address": self.final_customer_address,
            } if self.is_retailer_sale else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
