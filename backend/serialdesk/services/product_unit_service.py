# Overview: Service-layer operations for serialized product units; encapsulates business logic and database work.

"""
Product Unit Store

WHY: Every physical unit is tracked by serial number so that warranties and
order fulfillment can point at exactly one item.

RULES:
1. serial_number is unique across the whole unit table.
2. Batch inserts are partial: valid rows commit, invalid rows are reported
   per row (index, serial, error code, message) and skipped.
3. Any mutation that can change availability (add, status/stock_type change,
   delete, allocation) is followed by inventory_service.recalculate() as a
   separate step. A failed recount is logged, never rolled back into the
   unit mutation.
4. Deletion is a hard delete with no check against warranties or order
   lines that still carry the serial.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..extensions import db
from ..models import Order, OrderLine, Product, ProductUnit
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    enforce_rules_unit,
)
from serialdesk.time_utils import parse_iso_date, utcnow
from .activity_service import append_activity
from .inventory_service import (
    AVAILABLE,
    OFFLINE_STOCK_TYPES,
    ONLINE_STOCK_TYPES,
    recalculate_after_mutation,
)

UNIT_MUTABLE_FIELDS = {
    "serial_number",
    "model_number",
    "status",
    "stock_type",
    "manufacturing_date",
    "warranty_period_months",
}

CHANNELS = {"online": ONLINE_STOCK_TYPES, "offline": OFFLINE_STOCK_TYPES}


class DuplicateSerialError(ConflictError):
    """A serial number already exists in the unit table (or earlier in the batch)."""

    def __init__(self, serial_number: str):
        super().__init__(f"Serial number already exists: {serial_number}")
        self.serial_number = serial_number


class UnitNotFoundError(NotFoundError):
    """No product unit matches the given id or serial."""


class InsufficientStockError(ConflictError):
    def __init__(self, available: int, required: int):
        super().__init__(f"Insufficient stock available ({available} of {required})")
        self.available = available
        self.required = required


@dataclass
class RowError:
    index: int
    serial_number: str | None
    code: str
    message: str

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "serial_number": self.serial_number,
            "code": self.code,
            "message": self.message,
        }


@dataclass
class AddUnitsResult:
    created: list[ProductUnit] = field(default_factory=list)
    errors: list[RowError] = field(default_factory=list)
    stock: dict | None = None

    def to_dict(self) -> dict:
        return {
            "message": f"{len(self.created)} product units added, {len(self.errors)} rejected",
            "product_units": [u.to_dict() for u in self.created],
            "errors": [e.to_dict() for e in self.errors],
            "total_stock": self.stock["total_stock"] if self.stock else None,
            "offline_stock": self.stock["offline_stock"] if self.stock else None,
        }


def _clean_str(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _serial_exists(serial_number: str, *, exclude_unit_id: int | None = None) -> bool:
    q = db.session.query(ProductUnit.id).filter(ProductUnit.serial_number == serial_number)
    if exclude_unit_id is not None:
        q = q.filter(ProductUnit.id != exclude_unit_id)
    return q.first() is not None


def _require_product(product_id) -> Product:
    product = db.session.get(Product, product_id) if product_id is not None else None
    if product is None:
        raise NotFoundError("Product not found")
    return product


def _build_unit(product: Product, raw: dict) -> ProductUnit:
    """Validate one batch row and build an unsaved unit. Raises ValidationError."""
    if not isinstance(raw, dict):
        raise ValidationError("Unit must be an object")

    serial_number = _clean_str(raw.get("serial_number"))
    model_number = _clean_str(raw.get("model_number"))
    if not serial_number:
        raise ValidationError("serial_number is required")
    if not model_number:
        raise ValidationError("model_number is required")
    if len(serial_number) > 128 or len(model_number) > 128:
        raise ValidationError("serial_number and model_number must be at most 128 characters")

    patch = {"stock_type": raw.get("stock_type") or "both"}
    months = raw.get("warranty_period_months")
    if months is not None:
        if not isinstance(months, int) or isinstance(months, bool):
            raise ValidationError("warranty_period_months must be an integer")
        patch["warranty_period_months"] = months
    enforce_rules_unit(patch)

    try:
        manufacturing_date = parse_iso_date(raw.get("manufacturing_date"))
    except ValueError:
        raise ValidationError("manufacturing_date must be an ISO-8601 date")

    return ProductUnit(
        product_id=product.id,
        serial_number=serial_number,
        model_number=model_number,
        manufacturing_date=manufacturing_date,
        warranty_period_months=patch.get("warranty_period_months"),
        stock_type=patch["stock_type"],
        status=AVAILABLE,
    )


def add_units(*, product_id: int, units: list) -> AddUnitsResult:
    """
    Insert a batch of units for one product.

    Args:
        product_id: Owning product
        units: list of {serial_number, model_number, stock_type?,
               manufacturing_date?, warranty_period_months?}

    Returns:
        AddUnitsResult with created units, per-row errors and fresh stock counts.

    Raises:
        NotFoundError: product does not exist
        ValidationError: units is not a non-empty list
    """
    product = _require_product(product_id)
    if not isinstance(units, list) or not units:
        raise ValidationError("units must be a non-empty list")

    result = AddUnitsResult()
    seen: set[str] = set()

    for index, raw in enumerate(units):
        try:
            unit = _build_unit(product, raw)
        except ValidationError as e:
            serial = _clean_str(raw.get("serial_number")) if isinstance(raw, dict) else None
            result.errors.append(RowError(index, serial or None, "validation_error", str(e)))
            continue

        if unit.serial_number in seen or _serial_exists(unit.serial_number):
            err = DuplicateSerialError(unit.serial_number)
            result.errors.append(RowError(index, unit.serial_number, "duplicate_serial", str(err)))
            continue

        seen.add(unit.serial_number)
        db.session.add(unit)
        result.created.append(unit)

    if result.created:
        db.session.flush()
        append_activity(
            action="product_unit.created",
            entity_type="product",
            entity_id=product.id,
            note=f"Added {len(result.created)} units to product {product.name}",
            details={
                "serial_numbers": [u.serial_number for u in result.created],
                "rejected": [e.to_dict() for e in result.errors],
            },
        )
    db.session.commit()

    if result.created:
        result.stock = recalculate_after_mutation(product.id)
    return result


def get_unit(unit_id: int) -> ProductUnit:
    unit = db.session.get(ProductUnit, unit_id)
    if unit is None:
        raise UnitNotFoundError("Product unit not found")
    return unit


def update_unit(*, unit_id: int, patch: dict) -> tuple[ProductUnit, dict | None]:
    """
    Apply an already-validated patch to a unit.

    Returns (unit, stock) where stock is the recount result when status or
    stock_type changed, else None.

    Raises:
        UnitNotFoundError: unit does not exist
        DuplicateSerialError: new serial collides with another unit
    """
    unit = get_unit(unit_id)
    enforce_rules_unit(patch)

    new_serial = patch.get("serial_number")
    if new_serial is not None and new_serial != unit.serial_number:
        if _serial_exists(new_serial, exclude_unit_id=unit.id):
            raise DuplicateSerialError(new_serial)

    changed = {}
    for k, v in patch.items():
        if k not in UNIT_MUTABLE_FIELDS:
            continue
        old = getattr(unit, k)
        if old != v:
            changed[k] = {"from": str(old) if old is not None else None, "to": str(v) if v is not None else None}
            setattr(unit, k, v)

    if changed:
        append_activity(
            action="product_unit.updated",
            entity_type="product_unit",
            entity_id=unit.id,
            note=f"Updated unit {unit.serial_number}: {', '.join(sorted(changed))}",
            details=changed,
        )
    db.session.commit()

    stock = None
    if "status" in changed or "stock_type" in changed:
        stock = recalculate_after_mutation(unit.product_id)
    return unit, stock


def delete_unit(*, unit_id: int) -> dict | None:
    """
    Hard-delete a unit and recount its product.

    Warranties and order lines that reference the serial are left untouched.
    """
    unit = get_unit(unit_id)
    product_id = unit.product_id
    serial = unit.serial_number

    db.session.delete(unit)
    append_activity(
        action="product_unit.deleted",
        entity_type="product_unit",
        entity_id=unit_id,
        note=f"Deleted unit {serial}",
        details={"product_id": product_id, "serial_number": serial},
    )
    db.session.commit()

    return recalculate_after_mutation(product_id)


def list_by_product(product_id: int, *, status: str | None = None, stock_type: str | None = None) -> list[ProductUnit]:
    _require_product(product_id)
    q = db.session.query(ProductUnit).filter(ProductUnit.product_id == product_id)
    if status:
        q = q.filter(ProductUnit.status == status)
    if stock_type:
        q = q.filter(ProductUnit.stock_type == stock_type)
    return q.order_by(ProductUnit.created_at.desc(), ProductUnit.id.desc()).all()


def find_by_serial(serial_number: str) -> ProductUnit | None:
    serial_number = _clean_str(serial_number)
    if not serial_number:
        return None
    return db.session.query(ProductUnit).filter(ProductUnit.serial_number == serial_number).first()


def list_available(product_id: int, *, channel: str = "online", limit: int | None = 10) -> list[ProductUnit]:
    """
    Available units sellable through a channel.

    online  -> stock_type in (online, both)
    offline -> stock_type in (offline, both)   (retailer purchases)
    """
    if channel not in CHANNELS:
        raise ValidationError("channel must be 'online' or 'offline'")
    q = (
        db.session.query(ProductUnit)
        .filter(
            ProductUnit.product_id == product_id,
            ProductUnit.status == AVAILABLE,
            ProductUnit.stock_type.in_(CHANNELS[channel]),
        )
        .order_by(ProductUnit.id.asc())
    )
    if limit:
        q = q.limit(limit)
    return q.all()


def assign_units_to_order(
    *,
    order_id: int,
    product_id: int,
    quantity: int,
    channel: str = "online",
    order_line_id: int | None = None,
) -> tuple[list[ProductUnit], dict | None]:
    """
    Allocate available units to an order line.

    Serials are appended to `order_line_id` when given, else to the
    order's first line for the product. All-or-nothing: if fewer than
    `quantity` units are available on the channel, nothing changes and
    InsufficientStockError is raised.
    """
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer")

    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    _require_product(product_id)

    line_q = db.session.query(OrderLine).filter(
        OrderLine.order_id == order.id, OrderLine.product_id == product_id
    )
    if order_line_id is not None:
        line = line_q.filter(OrderLine.id == order_line_id).first()
        if line is None:
            raise NotFoundError("Order line not found for this order and product")
    else:
        line = line_q.order_by(OrderLine.id.asc()).first()

    units = list_available(product_id, channel=channel, limit=quantity)
    if len(units) < quantity:
        raise InsufficientStockError(available=len(units), required=quantity)

    now = utcnow()
    for unit in units:
        unit.status = "sold"
        unit.order_id = order.id
        unit.current_owner_id = order.user_id
        unit.sold_at = now

    serials = [u.serial_number for u in units]
    if line is not None:
        line.serial_numbers = list(line.serial_numbers or []) + serials

    append_activity(
        action="product_unit.assigned",
        entity_type="order",
        entity_id=order.id,
        note=f"Assigned {len(units)} units to order {order.order_number}",
        details={"product_id": product_id, "serial_numbers": serials},
    )
    db.session.commit()

    return units, recalculate_after_mutation(product_id)
