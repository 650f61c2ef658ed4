# Overview: Service-layer operations for warranties; encapsulates business logic and database work.

"""
Warranty Lifecycle Service

================================================================================
STATE MACHINE
================================================================================
    pending -> approved
    pending -> rejected

    pending:  registered, no validity window
    approved: window [warranty_start_date, warranty_end_date] is set
    rejected: rejection_reason is set, no window

RULES:
1. approved and rejected are terminal. approve()/reject() on a terminal
   warranty raises WarrantyTransitionError; nothing is re-opened.
2. A serial with a pending or approved warranty cannot be registered again.
   A rejected attempt does not block a new registration (new row).
3. The warranty period is snapshotted at registration:
   unit override -> product default -> DEFAULT_WARRANTY_MONTHS.
4. On approval: start = purchase_date unless the admin supplies a start
   date; end = start + period in calendar months (day clamped to month end).
5. Once terminal, only certificate_url may change.

================================================================================
VALIDATION (read-only)
================================================================================
validate(serial) classifies a serial into exactly one status, checked in
this order against the most recent warranty row for the serial:

    not_found       no product unit has this serial
    not_registered  unit exists, no warranty row
    pending
    rejected
    active          approved and as_of <= warranty_end_date (end day inclusive)
    expired         approved and as_of >  warranty_end_date

days_remaining = max(0, warranty_end_date - as_of) for approved warranties,
0 otherwise. It is 0 on the last valid day.
================================================================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from flask import current_app

from ..extensions import db
from ..models import ProductUnit, User, Warranty
from ..validation import (
    ConflictError,
    DependencyUnavailableError,
    NotFoundError,
    ValidationError,
)
from serialdesk.time_utils import add_months, parse_iso_date, to_iso_date, utcnow, utctoday
from . import certificate_service, email_service
from .activity_service import append_activity
from .product_unit_service import UnitNotFoundError, find_by_serial

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
TERMINAL_STATUSES = {STATUS_APPROVED, STATUS_REJECTED}

PURCHASE_TYPES = ("online", "offline", "retailer")
INVOICE_REQUIRED_PURCHASE_TYPES = {"offline", "retailer"}

# Validation classifications
NOT_FOUND = "not_found"
NOT_REGISTERED = "not_registered"
ACTIVE = "active"
EXPIRED = "expired"

VALIDATION_MESSAGES = {
    NOT_FOUND: "Serial number not found",
    NOT_REGISTERED: "Product found but warranty is not registered",
    STATUS_PENDING: "Warranty registration is pending approval",
    STATUS_REJECTED: "Warranty registration was rejected",
    ACTIVE: "Warranty is active",
    EXPIRED: "Warranty has expired",
}

PENDING_EDITABLE_FIELDS = {"admin_notes", "invoice_url"}
TERMINAL_EDITABLE_FIELDS = {"certificate_url"}


class WarrantyTransitionError(ConflictError):
    """Raised when approve/reject is attempted on a terminal warranty."""


@dataclass
class ValidationResult:
    status: str
    message: str
    warranty: Warranty | None = None
    unit: ProductUnit | None = None
    days_remaining: int = 0
    as_of: date | None = None
    # Set for serials whose unit was deleted after registration
    orphaned_warranty_id: int | None = None

    @property
    def is_valid(self) -> bool:
        return self.status == ACTIVE

    def to_dict(self) -> dict:
        product_info = None
        if self.unit is not None:
            product = self.unit.product
            product_info = {
                "product_id": self.unit.product_id,
                "name": product.name if product else None,
                "category": product.category if product else None,
                "model_number": self.unit.model_number,
                "serial_number": self.unit.serial_number,
                "unit_status": self.unit.status,
                "manufacturing_date": to_iso_date(self.unit.manufacturing_date),
            }
        return {
            "is_valid": self.is_valid,
            "status": self.status,
            "message": self.message,
            "days_remaining": self.days_remaining,
            "as_of": to_iso_date(self.as_of),
            "warranty": self.warranty.to_dict() if self.warranty is not None else None,
            "product_info": product_info,
            "orphaned_warranty_id": self.orphaned_warranty_id,
        }


# =============================================================================
# LOOKUPS
# =============================================================================

def get_warranty(warranty_id: int) -> Warranty:
    warranty = db.session.get(Warranty, warranty_id)
    if warranty is None:
        raise NotFoundError("Warranty not found")
    return warranty


def latest_for_serial(serial_number: str) -> Warranty | None:
    return (
        db.session.query(Warranty)
        .filter(Warranty.serial_number == serial_number)
        .order_by(Warranty.id.desc())
        .first()
    )


def list_warranties(*, status: str | None = None, serial_number: str | None = None) -> list[Warranty]:
    q = db.session.query(Warranty)
    if status:
        q = q.filter(Warranty.status == status)
    if serial_number:
        q = q.filter(Warranty.serial_number == serial_number.strip())
    return q.order_by(Warranty.created_at.desc(), Warranty.id.desc()).all()


def list_user_warranties(user_id: int) -> list[Warranty]:
    return (
        db.session.query(Warranty)
        .filter(db.or_(Warranty.user_id == user_id, Warranty.retailer_id == user_id))
        .order_by(Warranty.created_at.desc(), Warranty.id.desc())
        .all()
    )


def check_serial(serial_number: str, product_id: int | None = None) -> dict:
    """
    Pre-registration check used by the registration form.

    Raises UnitNotFoundError when the serial is unknown (or belongs to another product).
    """
    unit = find_by_serial(serial_number)
    if unit is None or (product_id is not None and unit.product_id != product_id):
        raise UnitNotFoundError("Serial number not found")
    existing = latest_for_serial(unit.serial_number)
    return {
        "valid": True,
        "product_unit": unit.to_dict(),
        "already_registered": existing is not None and existing.status != STATUS_REJECTED,
        "warranty": existing.to_dict() if existing is not None else None,
    }


# =============================================================================
# REGISTRATION
# =============================================================================

def _as_product_id(value) -> int:
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    raise ValidationError("product_id must be an integer")


def register(
    *,
    serial_number: str,
    model_number: str | None,
    purchase_date,
    purchase_type: str,
    purchaser: User,
    product_id: int | None = None,
    invoice_url: str | None = None,
    final_customer: dict | None = None,
) -> Warranty:
    """
    Create a pending warranty for a serialized unit.

    Raises:
        ValidationError: missing/invalid fields, invoice missing for offline/retailer
        UnitNotFoundError: serial unknown (or not part of product_id)
        ConflictError: serial already has a pending or approved warranty
    """
    serial_number = (serial_number or "").strip()
    if not serial_number:
        raise ValidationError("serial_number is required")
    if purchase_type not in PURCHASE_TYPES:
        raise ValidationError(f"purchase_type must be one of: {', '.join(PURCHASE_TYPES)}")
    try:
        purchase_day = parse_iso_date(purchase_date)
    except ValueError:
        raise ValidationError("purchase_date must be an ISO-8601 date")
    if purchase_day is None:
        raise ValidationError("purchase_date is required")
    if purchase_day > utctoday():
        raise ValidationError("purchase_date cannot be in the future")
    invoice_url = (invoice_url or "").strip() or None
    if purchase_type in INVOICE_REQUIRED_PURCHASE_TYPES and not invoice_url:
        raise ValidationError("Invoice upload is required for offline or retailer purchases")
    if final_customer is not None and not isinstance(final_customer, dict):
        raise ValidationError("final_customer must be an object with name, email, phone and address")
    if product_id is not None:
        product_id = _as_product_id(product_id)

    unit = find_by_serial(serial_number)
    if unit is None or (product_id is not None and unit.product_id != product_id):
        raise UnitNotFoundError("Product unit not found with this serial number")

    model_number = (model_number or "").strip() or unit.model_number
    if model_number != unit.model_number:
        raise ValidationError("model_number does not match the registered unit")

    existing = latest_for_serial(serial_number)
    if existing is not None and existing.status != STATUS_REJECTED:
        raise ConflictError("Warranty already registered for this serial number")

    product = unit.product
    months = unit.effective_warranty_months(current_app.config.get("DEFAULT_WARRANTY_MONTHS", 12))

    is_retailer_sale = purchaser.role == "retailer"
    final_customer = final_customer or {}

    warranty = Warranty(
        user_id=purchaser.id,
        product_id=unit.product_id,
        product_unit_id=unit.id,
        product_name=product.name if product else "",
        model_number=model_number,
        serial_number=serial_number,
        purchase_date=purchase_day,
        purchase_type=purchase_type,
        invoice_url=invoice_url,
        status=STATUS_PENDING,
        warranty_period_months=months,
        is_retailer_sale=is_retailer_sale,
        retailer_id=purchaser.id if is_retailer_sale else None,
        final_customer_name=final_customer.get("name") if is_retailer_sale else None,
        final_customer_email=final_customer.get("email") if is_retailer_sale else None,
        final_customer_phone=final_customer.get("phone") if is_retailer_sale else None,
        final_customer_address=final_customer.get("address") if is_retailer_sale else None,
    )
    db.session.add(warranty)
    db.session.flush()

    append_activity(
        action="warranty.registered",
        entity_type="warranty",
        entity_id=warranty.id,
        actor_user_id=purchaser.id,
        note=f"Warranty registered for serial {serial_number}",
        details={"purchase_type": purchase_type, "warranty_period_months": months},
    )
    db.session.commit()

    email_service.send_email(
        purchaser.email,
        "Warranty Registration Submitted",
        f"Your warranty registration for {warranty.product_name} (Serial: {serial_number}) "
        f"has been submitted successfully. We will review it shortly.",
        email_type="warranty_submitted",
        related_entity_type="warranty",
        related_entity_id=warranty.id,
    )
    email_service.send_email(
        current_app.config.get("ADMIN_EMAIL"),
        "New Warranty Registration",
        f"New warranty registration from {purchaser.name} for {warranty.product_name} (Serial: {serial_number})",
        email_type="warranty_submitted",
        related_entity_type="warranty",
        related_entity_id=warranty.id,
    )
    return warranty


# =============================================================================
# DECISIONS
# =============================================================================

def _require_pending(warranty: Warranty, action: str) -> None:
    if warranty.status in TERMINAL_STATUSES:
        raise WarrantyTransitionError(
            f"Cannot {action} warranty {warranty.id}: it is already {warranty.status}"
        )


def compute_window(warranty: Warranty, start_date: date | None = None) -> tuple[date, date]:
    start = start_date or warranty.purchase_date
    return start, add_months(start, warranty.warranty_period_months)


def approve(
    *,
    warranty_id: int,
    admin_user_id: int | None = None,
    start_date=None,
    admin_notes: str | None = None,
) -> Warranty:
    """
    Approve a pending warranty and set its validity window.

    Raises:
        NotFoundError: warranty does not exist
        WarrantyTransitionError: warranty is already approved or rejected
        ValidationError: start_date is not a date
    """
    warranty = get_warranty(warranty_id)
    _require_pending(warranty, "approve")

    try:
        start_override = parse_iso_date(start_date)
    except ValueError:
        raise ValidationError("warranty_start_date must be an ISO-8601 date")

    start, end = compute_window(warranty, start_override)
    warranty.status = STATUS_APPROVED
    warranty.warranty_start_date = start
    warranty.warranty_end_date = end
    warranty.decided_by_user_id = admin_user_id
    warranty.decided_at = utcnow()
    if admin_notes is not None:
        warranty.admin_notes = admin_notes

    append_activity(
        action="warranty.approved",
        entity_type="warranty",
        entity_id=warranty.id,
        actor_user_id=admin_user_id,
        note=f"Approved warranty for serial {warranty.serial_number} until {end.isoformat()}",
    )
    db.session.commit()

    if current_app.config.get("WARRANTY_CERTIFICATES_ENABLED"):
        try:
            warranty.certificate_url = certificate_service.store_certificate(warranty)
            db.session.commit()
        except DependencyUnavailableError:
            # Approval stands without a certificate; it can be issued later.
            db.session.rollback()
            logger.exception("Certificate generation failed for warranty_id=%s", warranty.id)

    certificate_link = (
        f"\n\nYou can download your warranty certificate here: {warranty.certificate_url}"
        if warranty.certificate_url else ""
    )
    email_service.send_email(
        warranty.user.email if warranty.user else None,
        "Warranty Approved",
        f"Your warranty for {warranty.product_name} (Serial: {warranty.serial_number}) has been approved. "
        f"Warranty valid until {end.isoformat()}.{certificate_link}",
        email_type="warranty_approved",
        related_entity_type="warranty",
        related_entity_id=warranty.id,
    )
    return warranty


def reject(
    *,
    warranty_id: int,
    reason: str,
    admin_user_id: int | None = None,
    admin_notes: str | None = None,
) -> Warranty:
    """
    Reject a pending warranty. No validity window is set.

    Raises:
        NotFoundError, WarrantyTransitionError, ValidationError (empty reason)
    """
    warranty = get_warranty(warranty_id)
    _require_pending(warranty, "reject")

    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("rejection_reason is required")

    warranty.status = STATUS_REJECTED
    warranty.rejection_reason = reason
    warranty.decided_by_user_id = admin_user_id
    warranty.decided_at = utcnow()
    if admin_notes is not None:
        warranty.admin_notes = admin_notes

    append_activity(
        action="warranty.rejected",
        entity_type="warranty",
        entity_id=warranty.id,
        actor_user_id=admin_user_id,
        note=f"Rejected warranty for serial {warranty.serial_number}: {reason}",
    )
    db.session.commit()

    email_service.send_email(
        warranty.user.email if warranty.user else None,
        "Warranty Registration Rejected",
        f"Your warranty registration for {warranty.product_name} (Serial: {warranty.serial_number}) "
        f"has been rejected. Reason: {reason}",
        email_type="warranty_rejected",
        related_entity_type="warranty",
        related_entity_id=warranty.id,
    )
    return warranty


def update_warranty(*, warranty_id: int, patch: dict) -> Warranty:
    """
    Edit non-lifecycle fields.

    pending:  admin_notes, invoice_url
    terminal: certificate_url only
    """
    if not patch:
        raise ValidationError("No fields to update")
    for k in patch:
        if k not in PENDING_EDITABLE_FIELDS | TERMINAL_EDITABLE_FIELDS:
            raise ValidationError(f"Field not allowed: {k}")

    warranty = get_warranty(warranty_id)
    allowed = TERMINAL_EDITABLE_FIELDS if warranty.status in TERMINAL_STATUSES else PENDING_EDITABLE_FIELDS
    for k in patch:
        if k not in allowed:
            raise WarrantyTransitionError(f"Field {k} cannot be changed while warranty is {warranty.status}")

    for k, v in patch.items():
        setattr(warranty, k, v)

    append_activity(
        action="warranty.updated",
        entity_type="warranty",
        entity_id=warranty.id,
        note=f"Updated fields: {', '.join(sorted(patch.keys()))}",
    )
    db.session.commit()
    return warranty


def attach_certificate(*, warranty_id: int) -> Warranty:
    """
    Generate and attach a certificate for an approved warranty.

    Raises DependencyUnavailableError when storage fails (no fallback).
    """
    warranty = get_warranty(warranty_id)
    if warranty.status != STATUS_APPROVED:
        raise ConflictError("Certificates are only issued for approved warranties")
    warranty.certificate_url = certificate_service.store_certificate(warranty)
    append_activity(
        action="warranty.certificate_attached",
        entity_type="warranty",
        entity_id=warranty.id,
        note=warranty.certificate_url,
    )
    db.session.commit()
    return warranty


# =============================================================================
# VALIDATION
# =============================================================================

def classify(warranty: Warranty | None, as_of: date) -> tuple[str, int]:
    """Return (status, days_remaining) for the latest warranty of a known unit."""
    if warranty is None:
        return NOT_REGISTERED, 0
    if warranty.status == STATUS_PENDING:
        return STATUS_PENDING, 0
    if warranty.status == STATUS_REJECTED:
        return STATUS_REJECTED, 0
    if warranty.warranty_end_date is None or as_of > warranty.warranty_end_date:
        return EXPIRED, 0
    return ACTIVE, max(0, (warranty.warranty_end_date - as_of).days)


def validate(serial_number: str, *, as_of=None) -> ValidationResult:
    """
    Classify a serial number. Read-only.

    as_of defaults to today (UTC).
    """
    try:
        day = parse_iso_date(as_of) or utctoday()
    except ValueError:
        raise ValidationError("as_of must be an ISO-8601 date")

    unit = find_by_serial(serial_number)
    if unit is None:
        warranty = latest_for_serial((serial_number or "").strip()) if serial_number else None
        # A deleted unit leaves warranties behind; they are not validated.
        return ValidationResult(
            status=NOT_FOUND,
            message=VALIDATION_MESSAGES[NOT_FOUND],
            as_of=day,
            orphaned_warranty_id=warranty.id if warranty else None,
        )

    warranty = latest_for_serial(unit.serial_number)
    status, days_remaining = classify(warranty, day)
    return ValidationResult(
        status=status,
        message=VALIDATION_MESSAGES[status],
        warranty=warranty,
        unit=unit,
        days_remaining=days_remaining,
        as_of=day,
    )
