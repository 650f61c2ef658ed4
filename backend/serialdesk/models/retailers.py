from __future__ import annotations

from ..extensions import db
from serialdesk.time_utils import to_utc_z, to_iso_date


RETAILER_INVENTORY_STATUSES = ("in_stock", "sold", "returned", "damaged")


class RetailerInventoryItem(db.Model):
    """
    A serialized unit held by a retailer after a paid retailer order.

    One row per unit. Selling the unit on to an end customer moves the row to
    'sold' and links the pending retailer warranty registered for that
    customer. product_unit_id is a plain reference like Warranty's; the
    serial and model are copied so the row survives a unit hard delete.
    """
    __tablename__ = "retailer_inventory"
    __table_args__ = (
        db.UniqueConstraint("product_unit_id", name="uq_retailer_inventory_unit"),
        db.Index("ix_retailer_inventory_retailer_status", "retailer_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    retailer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_unit_id = db.Column(db.Integer, nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    serial_number = db.Column(db.String(128), nullable=False, index=True)
    model_number = db.Column(db.String(128), nullable=False)

    purchase_date = db.Column(db.Date, nullable=False)
    purchase_price_cents = db.Column(db.Integer, nullable=False)

    # in_stock | sold | returned | damaged
    status = db.Column(db.String(16), nullable=False, default="in_stock")
    notes = db.Column(db.Text, nullable=True)

    # End-customer sale
    sold_to_name = db.Column(db.String(255), nullable=True)
    sold_to_email = db.Column(db.String(255), nullable=True)
    sold_to_phone = db.Column(db.String(64), nullable=True)
    sold_to_address = db.Column(db.Text, nullable=True)
    sold_date = db.Column(db.Date, nullable=True)
    selling_price_cents = db.Column(db.Integer, nullable=True)
    customer_invoice_url = db.Column(db.String(512), nullable=True)
    warranty_id = db.Column(db.Integer, db.ForeignKey("warranties.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    retailer = db.relationship("User", foreign_keys=[retailer_id])
    product = db.relationship("Product")
    warranty = db.relationship("Warranty")

    def __repr__(self) -> str:
        return f"<RetailerInventoryItem id={self.id} serial={self.serial_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "retailer_id": self.retailer_id,
            "retailer_email": self.retailer.email if self.retailer else None,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "product_unit_id": self.product_unit_id,
            "order_id": self.order_id,
            "serial_number": self.serial_number,
            "model_number": self.model_number,
            "purchase_date": to_iso_date(self.purchase_date),
            "purchase_price_cents": self.purchase_price_cents,
            "status": self.status,
            "notes": self.notes,
            "sold_to": {
                "name": self.sold_to_name,
                "email": self.sold_to_email,
                "phone": self.sold_to_phone,
                "address": self.sold_to_address,
            } if self.sold_to_name else None,
            "sold_date": to_iso_date(self.sold_date),
            "selling_price_cents": self.selling_price_cents,
            "customer_invoice_url": self.customer_invoice_url,
            "warranty_id": self.warranty_id,
            "warranty_status": self.warranty.status if self.warranty else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
