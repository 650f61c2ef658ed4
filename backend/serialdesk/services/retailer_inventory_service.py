# Overview: Units held by retailers and their onward sale to end customers.

"""
Retailer Inventory

A paid retailer order turns every unit allocated to it into a
RetailerInventoryItem in status 'in_stock'. Receiving is idempotent: a unit
is held at most once.

SELLING ON:
mark_as_sold records the end customer and registers a pending 'retailer'
warranty for the unit in that customer's name (warranty_service.register,
so the usual serial and invoice rules apply). The warranty is registered
first; if it is refused the item stays in stock.

Status values: in_stock | sold | returned | damaged. Only in_stock items
can be sold. Otherwise the owning retailer or an admin may set any status.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Order, ProductUnit, RetailerInventoryItem, User
from ..models.retailers import RETAILER_INVENTORY_STATUSES
from ..validation import MAX_PRICE_CENTS, ConflictError, NotFoundError, ValidationError
from serialdesk.time_utils import parse_iso_date, utctoday
from . import email_service, warranty_service
from .activity_service import append_activity

CUSTOMER_FIELDS = ("name", "email", "phone", "address")


def receive_order_units(order: Order) -> list[RetailerInventoryItem]:
    """Put the units of a retailer's order into that retailer's inventory."""
    if order.user is None or order.user.role != "retailer":
        return []

    units = (
        db.session.query(ProductUnit)
        .filter(ProductUnit.order_id == order.id)
        .order_by(ProductUnit.id.asc())
        .all()
    )
    if not units:
        return []
    held = {
        unit_id
        for (unit_id,) in db.session.query(RetailerInventoryItem.product_unit_id)
        .filter(RetailerInventoryItem.product_unit_id.in_([u.id for u in units]))
    }
    prices = {line.product_id: line.price_cents for line in order.lines}

    today = utctoday()
    received = []
    for unit in units:
        if unit.id in held:
            continue
        item = RetailerInventoryItem(
            retailer_id=order.user_id,
            product_id=unit.product_id,
            product_unit_id=unit.id,
            order_id=order.id,
            serial_number=unit.serial_number,
            model_number=unit.model_number,
            purchase_date=today,
            purchase_price_cents=prices.get(unit.product_id, 0),
            status="in_stock",
        )
        db.session.add(item)
        received.append(item)

    if received:
        db.session.flush()
        append_activity(
            action="retailer_inventory.received",
            entity_type="order",
            entity_id=order.id,
            note=f"{len(received)} units added to retailer inventory from order {order.order_number}",
            details={"serial_numbers": [i.serial_number for i in received]},
        )
    db.session.commit()
    return received


def add_to_inventory(*, retailer: User, order_id: int) -> list[RetailerInventoryItem]:
    """
    Receive a paid order on the retailer's request.

    Raises:
        NotFoundError: order unknown or owned by someone else
        ConflictError: order not paid yet
    """
    order = db.session.get(Order, order_id)
    if order is None or order.user_id != retailer.id:
        raise NotFoundError("Order not found")
    if order.payment_status != "completed":
        raise ConflictError("Only paid orders can be added to inventory")
    return receive_order_units(order)


def _check_status(status: str | None) -> None:
    if status is not None and status not in RETAILER_INVENTORY_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(RETAILER_INVENTORY_STATUSES)}")


def list_inventory(*, retailer_id: int | None = None, status: str | None = None) -> list[RetailerInventoryItem]:
    _check_status(status)
    q = db.session.query(RetailerInventoryItem)
    if retailer_id is not None:
        q = q.filter(RetailerInventoryItem.retailer_id == retailer_id)
    if status:
        q = q.filter(RetailerInventoryItem.status == status)
    return q.order_by(RetailerInventoryItem.purchase_date.desc(), RetailerInventoryItem.id.desc()).all()


def get_item(item_id: int, *, user: User) -> RetailerInventoryItem:
    """Admins see every item, retailers only their own."""
    item = db.session.get(RetailerInventoryItem, item_id)
    if item is None or (user.role != "admin" and item.retailer_id != user.id):
        raise NotFoundError("Inventory item not found")
    return item


def _selling_price(value) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= MAX_PRICE_CENTS:
        raise ValidationError(f"selling_price_cents must be an integer between 0 and {MAX_PRICE_CENTS}")
    return value


def mark_as_sold(
    *,
    item_id: int,
    retailer: User,
    customer: dict,
    customer_invoice_url: str | None,
    selling_price_cents: int | None = None,
    sold_date=None,
) -> RetailerInventoryItem:
    """
    Sell a held unit to an end customer and register their warranty.

    Raises:
        ValidationError: customer name/email/phone or invoice missing, bad price or date
        NotFoundError: item unknown or held by another retailer
        ConflictError: item not in stock, or the serial already has an open warranty
    """
    if not isinstance(customer, dict):
        raise ValidationError("customer must be an object with name, email, phone and address")
    sold_to = {k: str(customer.get(k) or "").strip() or None for k in CUSTOMER_FIELDS}
    customer_invoice_url = (customer_invoice_url or "").strip() or None
    if not (sold_to["name"] and sold_to["email"] and sold_to["phone"] and customer_invoice_url):
        raise ValidationError("Customer name, email, phone and invoice are required")
    price = _selling_price(selling_price_cents)
    try:
        sold_day = parse_iso_date(sold_date) or utctoday()
    except ValueError:
        raise ValidationError("sold_date must be an ISO-8601 date")

    item = get_item(item_id, user=retailer)
    if item.retailer_id != retailer.id:
        raise NotFoundError("Inventory item not found")
    if item.status == "sold":
        raise ConflictError("Item already marked as sold")
    if item.status != "in_stock":
        raise ConflictError(f"Item is {item.status} and cannot be sold")

    warranty = warranty_service.register(
        serial_number=item.serial_number,
        model_number=item.model_number,
        purchase_date=sold_day,
        purchase_type="retailer",
        purchaser=retailer,
        product_id=item.product_id,
        invoice_url=customer_invoice_url,
        final_customer=sold_to,
    )

    item.status = "sold"
    item.sold_to_name = sold_to["name"]
    item.sold_to_email = sold_to["email"]
    item.sold_to_phone = sold_to["phone"]
    item.sold_to_address = sold_to["address"]
    item.sold_date = sold_day
    item.selling_price_cents = price
    item.customer_invoice_url = customer_invoice_url
    item.warranty_id = warranty.id

    append_activity(
        action="retailer_inventory.sold",
        entity_type="retailer_inventory",
        entity_id=item.id,
        actor_user_id=retailer.id,
        note=f"Serial {item.serial_number} sold to {sold_to['name']}",
        details={"warranty_id": warranty.id},
    )
    db.session.commit()

    email_service.send_email(
        sold_to["email"],
        "Product Purchase & Warranty Registration",
        f"Thank you for purchasing {warranty.product_name} from our authorized retailer. "
        f"Your warranty has been registered and is pending approval. Serial Number: {item.serial_number}",
        email_type="retailer_sale_notification",
        related_entity_type="warranty",
        related_entity_id=warranty.id,
    )
    return item


def update_status(*, item_id: int, user: User, status: str, notes: str | None = None) -> RetailerInventoryItem:
    if not status:
        raise ValidationError("status is required")
    _check_status(status)
    item = get_item(item_id, user=user)
    previous = item.status
    item.status = status
    if notes:
        item.notes = notes

    append_activity(
        action="retailer_inventory.status_changed",
        entity_type="retailer_inventory",
        entity_id=item.id,
        actor_user_id=user.id,
        note=f"Serial {item.serial_number}: {previous} -> {status}",
    )
    db.session.commit()
    return item
