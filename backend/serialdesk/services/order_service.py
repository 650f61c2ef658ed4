# Overview: Service-layer operations for orders; encapsulates business logic and database work.

"""
Order Workflow

order_status:   processing | shipped | delivered | cancelled
payment_status: pending | completed | failed

Both fields are set directly by admin action with no transition guard; any
value may follow any other.

FULFILLMENT:
When payment_status first becomes 'completed', available units are
allocated to each line (retailers draw offline stock, everyone else online
stock) and the serials are copied onto the line. A line that cannot be
filled is logged and left without serials; the payment update stands.

QUOTES:
Products flagged requires_quote can only be ordered against an accepted
quote owned by the buyer. A quote backs at most one order; its response
price becomes the order total.
"""

from __future__ import annotations

import logging
import secrets

from ..extensions import db
from ..models import Order, OrderLine, Product, Quote, User
from ..validation import ConflictError, NotFoundError, ValidationError
from serialdesk.time_utils import utcnow
from . import email_service, retailer_inventory_service
from .activity_service import append_activity
from .inventory_service import OFFLINE_STOCK_TYPES, ONLINE_STOCK_TYPES, count_available
from .product_unit_service import InsufficientStockError, assign_units_to_order

logger = logging.getLogger(__name__)

ORDER_STATUSES = ("processing", "shipped", "delivered", "cancelled")
PAYMENT_STATUSES = ("pending", "completed", "failed")


def channel_for(user: User) -> str:
    return "offline" if user.role == "retailer" else "online"


def unit_price_for(product: Product, user: User) -> int:
    if user.role == "retailer" and product.retailer_price_cents is not None:
        return product.retailer_price_cents
    return product.price_cents or 0


def generate_order_number() -> str:
    # ORD-YYYYMMDD-XXXX; retried on the (rare) collision
    for _ in range(10):
        candidate = f"ORD-{utcnow():%Y%m%d}-{1000 + secrets.randbelow(9000)}"
        exists = db.session.query(Order.id).filter(Order.order_number == candidate).first()
        if exists is None:
            return candidate
    raise ConflictError("Could not allocate a unique order number")


def _parse_lines(raw_lines) -> list[tuple[Product, int]]:
    if not isinstance(raw_lines, list) or not raw_lines:
        raise ValidationError("No order items")
    parsed = []
    for item in raw_lines:
        if not isinstance(item, dict):
            raise ValidationError("Each order item must be an object")
        quantity = item.get("quantity")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise ValidationError("quantity must be a positive integer")
        product = db.session.get(Product, item.get("product_id")) if item.get("product_id") is not None else None
        if product is None or not product.is_active:
            raise NotFoundError(f"Product not found: {item.get('product_id')}")
        parsed.append((product, quantity))
    return parsed


def _require_usable_quote(quote_id: int, user: User) -> Quote:
    quote = db.session.get(Quote, quote_id)
    if quote is None:
        raise NotFoundError("Quote not found")
    if quote.user_id != user.id:
        raise ConflictError("Quote belongs to another user")
    if quote.status != "accepted":
        raise ConflictError("Quote must be accepted before creating an order")
    used = db.session.query(Order.id).filter(Order.quote_id == quote.id).first()
    if used is not None:
        raise ConflictError("Quote has already been used for an order")
    return quote


def create_order(
    *,
    user: User,
    lines: list,
    shipping_address: str,
    quote_id: int | None = None,
) -> Order:
    """
    Place an order.

    Raises:
        ValidationError: empty lines, bad quantities, missing address,
                         requires_quote product without a quote
        NotFoundError: unknown product or quote
        ConflictError: quote not usable
        InsufficientStockError: a line exceeds available stock on the buyer's channel
    """
    shipping_address = (shipping_address or "").strip()
    if not shipping_address:
        raise ValidationError("shipping_address is required")
    parsed = _parse_lines(lines)

    quote = _require_usable_quote(quote_id, user) if quote_id is not None else None
    if quote is None:
        needs_quote = [p.name for p, _ in parsed if p.requires_quote]
        if needs_quote:
            raise ValidationError(f"A quote is required for: {', '.join(needs_quote)}")

    stock_types = OFFLINE_STOCK_TYPES if channel_for(user) == "offline" else ONLINE_STOCK_TYPES
    # Lines for the same product draw on one pool
    wanted: dict[int, int] = {}
    for product, quantity in parsed:
        wanted[product.id] = wanted.get(product.id, 0) + quantity
    for product_id, quantity in wanted.items():
        available = count_available(product_id, stock_types)
        if available < quantity:
            raise InsufficientStockError(available=available, required=quantity)

    order = Order(
        order_number=generate_order_number(),
        user_id=user.id,
        quote_id=quote.id if quote else None,
        shipping_address=shipping_address,
        payment_status="pending",
        order_status="processing",
    )
    db.session.add(order)
    db.session.flush()

    total = 0
    for product, quantity in parsed:
        price = unit_price_for(product, user)
        total += price * quantity
        db.session.add(OrderLine(
            order_id=order.id,
            product_id=product.id,
            quantity=quantity,
            price_cents=price,
            serial_numbers=[],
        ))
    order.total_amount_cents = quote.response_price_cents if quote and quote.response_price_cents is not None else total

    append_activity(
        action="order.created",
        entity_type="order",
        entity_id=order.id,
        actor_user_id=user.id,
        note=f"Order {order.order_number} created",
        details={"quote_id": order.quote_id, "total_amount_cents": order.total_amount_cents},
    )
    db.session.commit()

    email_service.send_email(
        user.email,
        "Order Created",
        f"Your order has been created successfully. Order: {order.order_number}. "
        f"Total Amount: {order.total_amount_cents / 100:.2f}. Please complete the payment.",
        email_type="order_confirmation",
        related_entity_type="order",
        related_entity_id=order.id,
    )
    return order


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    return order


def list_orders(*, user_id: int | None = None, order_status: str | None = None) -> list[Order]:
    q = db.session.query(Order)
    if user_id is not None:
        q = q.filter(Order.user_id == user_id)
    if order_status:
        q = q.filter(Order.order_status == order_status)
    return q.order_by(Order.created_at.desc(), Order.id.desc()).all()


def update_order_status(*, order_id: int, status: str, actor_user_id: int | None = None) -> Order:
    """Set order_status to any allowed value, regardless of the current one."""
    if status not in ORDER_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(ORDER_STATUSES)}")
    order = get_order(order_id)
    previous = order.order_status
    order.order_status = status

    append_activity(
        action="order.status_changed",
        entity_type="order",
        entity_id=order.id,
        actor_user_id=actor_user_id,
        note=f"Order {order.order_number}: {previous} -> {status}",
    )
    db.session.commit()

    email_service.send_email(
        order.user.email if order.user else None,
        f"Order Status Updated - {status.upper()}",
        f"Your order {order.order_number} status has been updated to {status}.",
        email_type="order_status_update",
        related_entity_type="order",
        related_entity_id=order.id,
    )
    return order


def _allocate_units(order: Order) -> None:
    channel = channel_for(order.user)
    for line in order.lines:
        if line.serial_numbers:
            continue
        try:
            assign_units_to_order(
                order_id=order.id,
                product_id=line.product_id,
                quantity=line.quantity,
                channel=channel,
                order_line_id=line.id,
            )
        except InsufficientStockError as e:
            logger.warning(
                "Could not allocate units for order %s product_id=%s: %s",
                order.order_number, line.product_id, e,
            )


def update_payment_status(*, order_id: int, payment_status: str, actor_user_id: int | None = None) -> Order:
    """
    Set payment_status. The first transition to 'completed' allocates serials
    and completes the backing quote.
    """
    if payment_status not in PAYMENT_STATUSES:
        raise ValidationError(f"payment_status must be one of: {', '.join(PAYMENT_STATUSES)}")
    order = get_order(order_id)
    previous = order.payment_status
    order.payment_status = payment_status

    append_activity(
        action="order.payment_status_changed",
        entity_type="order",
        entity_id=order.id,
        actor_user_id=actor_user_id,
        note=f"Order {order.order_number} payment: {previous} -> {payment_status}",
    )
    db.session.commit()

    if payment_status == "completed" and previous != "completed":
        if order.quote_id is not None:
            quote = db.session.get(Quote, order.quote_id)
            if quote is not None:
                quote.status = "completed"
                db.session.commit()
        _allocate_units(order)
        db.session.refresh(order)
        retailer_inventory_service.receive_order_units(order)

        email_service.send_email(
            order.user.email if order.user else None,
            "Payment Successful",
            f"Your payment has been completed successfully. Order: {order.order_number}. "
            f"Amount Paid: {order.total_amount_cents / 100:.2f}.",
            email_type="payment_confirmation",
            related_entity_type="order",
            related_entity_id=order.id,
        )
    return order
