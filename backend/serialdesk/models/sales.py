from __future__ import annotations

from ..extensions import db
from serialdesk.time_utils import to_utc_z


class Order(db.Model):
    """
    Customer or retailer order.

    order_status and payment_status are plain enumerations set by admin
    action; any value may follow any other.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False, unique=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id"), nullable=True, index=True)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    shipping_address = db.Column(db.Text, nullable=False)

    # pending | completed | failed
    payment_status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    # processing | shipped | delivered | cancelled
    order_status = db.Column(db.String(16), nullable=False, default="processing", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", foreign_keys=[user_id])
    lines = db.relationship("OrderLine", backref="order", lazy=True, order_by="OrderLine.id")

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} status={self.order_status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "user_id": self.user_id,
            "quote_id": self.quote_id,
            "total_amount_cents": self.total_amount_cents,
            "shipping_address": self.shipping_address,
            "payment_status": self.payment_status,
            "order_status": self.order_status,
            "lines": [line.to_dict() for line in self.lines],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OrderLine(db.Model):
    __tablename__ = "order_lines"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    # Price at time of purchase
    price_cents = db.Column(db.Integer, nullable=False)
    # Serials allocated on fulfillment (plain copies, no FK to product_units)
    serial_numbers = db.Column(db.JSON, nullable=True)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "serial_numbers": list(self.serial_numbers or []),
        }


class Quote(db.Model):
    """
    Price quote request for products flagged requires_quote (or bulk orders).

    status: pending | responded | accepted | rejected | completed
    """
    __tablename__ = "quotes"
    __table_args__ = (
        db.Index("ix_quotes_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    message = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    response_price_cents = db.Column(db.Integer, nullable=True)
    response_message = db.Column(db.Text, nullable=True)
    responded_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", foreign_keys=[user_id])
    lines = db.relationship("QuoteLine", backref="quote", lazy=True, order_by="QuoteLine.id")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "message": self.message,
            "status": self.status,
            "admin_response": {
                "price_cents": self.response_price_cents,
                "message": self.response_message,
                "responded_at": to_utc_z(self.responded_at) if self.responded_at else None,
            },
            "lines": [line.to_dict() for line in self.lines],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class QuoteLine(db.Model):
    __tablename__ = "quote_lines"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
        }
