from __future__ import annotations

from ..extensions import db
from serialdesk.time_utils import to_utc_z, to_iso_date


class Product(db.Model):
    """
    Product master data.

    DERIVED STOCK:
    `stock` and `offline_stock` are a cache of counts over ProductUnit rows
    with status='available'. They are written only by
    inventory_service.recalculate(); every other writer is a bug.
    - stock         = available units
    - offline_stock = available units with stock_type in (offline, both)

    No optimistic version column: concurrent admin edits are last-writer-wins.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_category_active", "category", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(120), nullable=True, index=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=True)
    retailer_price_cents = db.Column(db.Integer, nullable=True)
    requires_quote = db.Column(db.Boolean, nullable=False, default=False)

    # Default warranty length for units of this product
    warranty_period_months = db.Column(db.Integer, nullable=False, default=12)

    # Derived counters (single writer: inventory_service.recalculate)
    stock = db.Column(db.Integer, nullable=False, default=0)
    offline_stock = db.Column(db.Integer, nullable=False, default=0)

    is_recommended = db.Column(db.Boolean, nullable=False, default=False)
    recommended_product_ids = db.Column(db.JSON, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "price_cents": self.price_cents,
            "retailer_price_cents": self.retailer_price_cents,
            "requires_quote": self.requires_quote,
            "warranty_period_months": self.warranty_period_months,
            "stock": self.stock,
            "offline_stock": self.offline_stock,
            "is_recommended": self.is_recommended,
            "recommended_product_ids": list(self.recommended_product_ids or []),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductUnit(db.Model):
    """
    One serialized physical unit of a product.

    UNIQUENESS:
    serial_number is unique across the whole table, not per product.

    LIFECYCLE:
    Created in batches as available; status changes are admin-driven
    (sold/reserved/defective/returned). Hard delete is allowed and does not
    check warranties or order lines that still carry the serial.
    """
    __tablename__ = "product_units"
    __table_args__ = (
        db.UniqueConstraint("serial_number", name="uq_product_units_serial"),
        db.Index("ix_product_units_product_status", "product_id", "status"),
        db.Index("ix_product_units_product_status_type", "product_id", "status", "stock_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    serial_number = db.Column(db.String(128), nullable=False)
    model_number = db.Column(db.String(128), nullable=False)

    # Optional per-unit override of Product.warranty_period_months
    warranty_period_months = db.Column(db.Integer, nullable=True)
    manufacturing_date = db.Column(db.Date, nullable=True)

    # available | sold | reserved | defective | returned
    status = db.Column(db.String(16), nullable=False, default="available", index=True)
    # online | offline | both
    stock_type = db.Column(db.String(16), nullable=False, default="both")

    # Ownership tracking (set when allocated to an order)
    current_owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    sold_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("units", lazy=True))
    current_owner = db.relationship("User", foreign_keys=[current_owner_id])

    def __repr__(self) -> str:
        return f"<ProductUnit id={self.id} serial={self.serial_number!r} status={self.status}>"

    def effective_warranty_months(self, default: int = 12) -> int:
        if self.warranty_period_months:
            return self.warranty_period_months
        if self.product is not None and self.product.warranty_period_months:
            return self.product.warranty_period_months
        return default

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "serial_number": self.serial_number,
            "model_number": self.model_number,
            "warranty_period_months": self.warranty_period_months,
            "manufacturing_date": to_iso_date(self.manufacturing_date),
            "status": self.status,
            "stock_type": self.stock_type,
            "current_owner_id": self.current_owner_id,
            "order_id": self.order_id,
            "sold_at": to_utc_z(self.sold_at) if self.sold_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
