# Overview: Service-layer operations for quotes; encapsulates business logic and database work.

"""
Quote Workflow

status: pending | responded | accepted | rejected | completed

respond() records the admin's price and message and sets 'responded'.
set_status() is the admin override: any status from any other.
accept() is the customer's move and needs a response first.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product, Quote, QuoteLine, User
from ..validation import MAX_PRICE_CENTS, ConflictError, NotFoundError, ValidationError
from serialdesk.time_utils import utcnow
from . import email_service
from .activity_service import append_activity

QUOTE_STATUSES = ("pending", "responded", "accepted", "rejected", "completed")


def get_quote(quote_id: int) -> Quote:
    quote = db.session.get(Quote, quote_id)
    if quote is None:
        raise NotFoundError("Quote not found")
    return quote


def list_quotes(*, user_id: int | None = None, status: str | None = None) -> list[Quote]:
    q = db.session.query(Quote)
    if user_id is not None:
        q = q.filter(Quote.user_id == user_id)
    if status:
        q = q.filter(Quote.status == status)
    return q.order_by(Quote.created_at.desc(), Quote.id.desc()).all()


def create_quote(*, user: User, lines: list, message: str | None = None) -> Quote:
    if not isinstance(lines, list) or not lines:
        raise ValidationError("No products in quote")

    parsed = []
    for item in lines:
        if not isinstance(item, dict):
            raise ValidationError("Each quote item must be an object")
        quantity = item.get("quantity")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise ValidationError("quantity must be a positive integer")
        product = db.session.get(Product, item.get("product_id")) if item.get("product_id") is not None else None
        if product is None:
            raise NotFoundError(f"Product not found: {item.get('product_id')}")
        parsed.append((product, quantity))

    quote = Quote(user_id=user.id, message=(message or "").strip() or None, status="pending")
    db.session.add(quote)
    db.session.flush()
    for product, quantity in parsed:
        db.session.add(QuoteLine(quote_id=quote.id, product_id=product.id, quantity=quantity))

    append_activity(
        action="quote.created",
        entity_type="quote",
        entity_id=quote.id,
        actor_user_id=user.id,
        note=f"Quote requested with {len(lines)} products",
    )
    db.session.commit()

    email_service.send_email(
        current_app.config.get("ADMIN_EMAIL"),
        "New Quote Request",
        f"User {user.name} ({user.email}) requested a quote with {len(lines)} products.",
        email_type="quote_request",
        related_entity_type="quote",
        related_entity_id=quote.id,
    )
    return quote


def respond(
    *,
    quote_id: int,
    price_cents: int,
    message: str | None = None,
    actor_user_id: int | None = None,
) -> Quote:
    """Record the admin response and move the quote to 'responded'."""
    if not isinstance(price_cents, int) or isinstance(price_cents, bool):
        raise ValidationError("price_cents must be an integer")
    if price_cents < 0 or price_cents > MAX_PRICE_CENTS:
        raise ValidationError(f"price_cents must be between 0 and {MAX_PRICE_CENTS}")

    quote = get_quote(quote_id)
    quote.response_price_cents = price_cents
    quote.response_message = (message or "").strip() or None
    quote.responded_at = utcnow()
    quote.status = "responded"

    append_activity(
        action="quote.responded",
        entity_type="quote",
        entity_id=quote.id,
        actor_user_id=actor_user_id,
        note=f"Quoted {price_cents} cents",
    )
    db.session.commit()

    email_service.send_email(
        quote.user.email if quote.user else None,
        "Your Quote Response is Ready",
        f"Your quote request has been reviewed. Total Price: {price_cents / 100:.2f}. "
        f"Message: {quote.response_message or ''}",
        email_type="quote_approval",
        related_entity_type="quote",
        related_entity_id=quote.id,
    )
    return quote


def set_status(*, quote_id: int, status: str, actor_user_id: int | None = None) -> Quote:
    """Admin override: any status may follow any other."""
    if status not in QUOTE_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(QUOTE_STATUSES)}")
    quote = get_quote(quote_id)
    previous = quote.status
    quote.status = status

    append_activity(
        action="quote.status_changed",
        entity_type="quote",
        entity_id=quote.id,
        actor_user_id=actor_user_id,
        note=f"Quote {quote.id}: {previous} -> {status}",
    )
    db.session.commit()
    return quote


def accept(*, quote_id: int, user: User) -> Quote:
    """Customer accepts a responded quote."""
    quote = get_quote(quote_id)
    if quote.user_id != user.id:
        raise ConflictError("Quote belongs to another user")
    if quote.status != "responded":
        raise ConflictError("Quote has not been responded to yet")
    quote.status = "accepted"

    append_activity(
        action="quote.accepted",
        entity_type="quote",
        entity_id=quote.id,
        actor_user_id=user.id,
    )
    db.session.commit()
    return quote
