# Overview: CSV exports of warranties, product units, orders and activity logs.

from __future__ import annotations

import csv
import io

from ..extensions import db
from ..models import ActivityLog, Order, ProductUnit, Warranty
from ..validation import NotFoundError
from serialdesk.time_utils import to_iso_date, to_utc_z


def _warranty_rows():
    q = db.session.query(Warranty).order_by(Warranty.id.asc())
    for w in q.all():
        yield [
            w.id,
            w.serial_number,
            w.model_number,
            w.product_name,
            w.user.email if w.user else "",
            w.purchase_type,
            to_iso_date(w.purchase_date),
            w.status,
            w.warranty_period_months,
            to_iso_date(w.warranty_start_date) or "",
            to_iso_date(w.warranty_end_date) or "",
            w.rejection_reason or "",
            w.certificate_url or "",
            to_utc_z(w.created_at),
        ]


def _unit_rows():
    q = db.session.query(ProductUnit).order_by(ProductUnit.product_id.asc(), ProductUnit.id.asc())
    for u in q.all():
        yield [
            u.id,
            u.product_id,
            u.product.name if u.product else "",
            u.serial_number,
            u.model_number,
            u.status,
            u.stock_type,
            u.warranty_period_months if u.warranty_period_months is not None else "",
            to_iso_date(u.manufacturing_date) or "",
            u.order_id or "",
            to_utc_z(u.sold_at) if u.sold_at else "",
        ]


def _order_rows():
    q = db.session.query(Order).order_by(Order.id.asc())
    for o in q.all():
        serials = [s for line in o.lines for s in (line.serial_numbers or [])]
        yield [
            o.id,
            o.order_number,
            o.user.email if o.user else "",
            o.total_amount_cents,
            o.payment_status,
            o.order_status,
            sum(line.quantity for line in o.lines),
            " ".join(serials),
            to_utc_z(o.created_at),
        ]


def _activity_rows():
    q = db.session.query(ActivityLog).order_by(ActivityLog.occurred_at.asc(), ActivityLog.id.asc())
    for a in q.all():
        yield [
            a.id,
            to_utc_z(a.occurred_at),
            a.actor_user_id or "",
            a.action,
            a.entity_type,
            a.entity_id if a.entity_id is not None else "",
            a.note or "",
            a.ip_address or "",
        ]


EXPORTS = {
    "warranties": (
        ["id", "serial_number", "model_number", "product_name", "user_email", "purchase_type",
         "purchase_date", "status", "warranty_period_months", "warranty_start_date",
         "warranty_end_date", "rejection_reason", "certificate_url", "created_at"],
        _warranty_rows,
    ),
    "product-units": (
        ["id", "product_id", "product_name", "serial_number", "model_number", "status",
         "stock_type", "warranty_period_months", "manufacturing_date", "order_id", "sold_at"],
        _unit_rows,
    ),
    "orders": (
        ["id", "order_number", "user_email", "total_amount_cents", "payment_status",
         "order_status", "item_count", "serial_numbers", "created_at"],
        _order_rows,
    ),
    "activity-logs": (
        ["id", "occurred_at", "actor_user_id", "action", "entity_type", "entity_id", "note", "ip_address"],
        _activity_rows,
    ),
}


def export_csv(entity: str) -> str:
    """Render one entity table as CSV text (header row first)."""
    if entity not in EXPORTS:
        raise NotFoundError(f"Unknown export: {entity}")
    headers, rows = EXPORTS[entity]

    buf = io.StringIO()
    w = csv.writer(buf)
    w.writerow(headers)
    for row in rows():
        w.writerow(row)
    return buf.getvalue()
