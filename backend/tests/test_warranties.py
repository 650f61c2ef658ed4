"""
Warranty lifecycle tests.

Verifies:
- registration rules (invoice, model match, future dates, duplicates)
- period snapshot: unit override -> product default -> config default
- approve/reject are one-way from pending; terminal states are final
- validate() classifies into exactly one of six statuses
- end day is inclusive and days_remaining never goes negative
"""

from datetime import date, timedelta

import pytest

from serialdesk.extensions import db
from serialdesk.models import ActivityLog, Product, Warranty
from serialdesk.services import warranty_service
from serialdesk.services.product_unit_service import UnitNotFoundError
from serialdesk.services.warranty_service import WarrantyTransitionError
from serialdesk.validation import ConflictError, NotFoundError, ValidationError

from conftest import make_units


def register(purchaser, serial="SN-0001", **overrides):
    kwargs = dict(
        serial_number=serial,
        model_number="INV-5K",
        purchase_date="2024-01-01",
        purchase_type="online",
        purchaser=purchaser,
    )
    kwargs.update(overrides)
    return warranty_service.register(**kwargs)


# =============================================================================
# REGISTRATION
# =============================================================================


class TestRegister:

    def test_creates_pending_with_snapshot(self, stocked_product, customer):
        warranty = register(customer)

        assert warranty.status == "pending"
        assert warranty.warranty_period_months == 12
        assert warranty.product_name == "Solar Inverter 5kW"
        assert warranty.warranty_start_date is None
        assert warranty.warranty_end_date is None
        assert warranty.is_retailer_sale is False
        assert db.session.query(ActivityLog).filter_by(action="warranty.registered").count() == 1

    def test_unit_override_wins(self, product, customer):
        make_units(product, ["SN-LONG"], warranty_period_months=36)
        assert register(customer, serial="SN-LONG").warranty_period_months == 36

    def test_config_default_when_product_has_none(self, app, customer, db_session):
        bare = Product(name="Cable", warranty_period_months=0)
        db_session.add(bare)
        db_session.commit()
        make_units(bare, ["CB-1"], model_number="CB")
        app.config["DEFAULT_WARRANTY_MONTHS"] = 6

        warranty = register(customer, serial="CB-1", model_number="CB")

        assert warranty.warranty_period_months == 6

    def test_snapshot_ignores_later_product_change(self, stocked_product, customer, db_session):
        warranty = register(customer)
        stocked_product.warranty_period_months = 24
        db_session.commit()

        approved = warranty_service.approve(warranty_id=warranty.id)

        assert approved.warranty_period_months == 12
        assert approved.warranty_end_date == date(2025, 1, 1)

    def test_invoice_required_offline(self, stocked_product, customer):
        with pytest.raises(ValidationError):
            register(customer, purchase_type="offline")
        assert register(customer, purchase_type="offline", invoice_url="/invoices/1.pdf").invoice_url == "/invoices/1.pdf"

    def test_unknown_purchase_type(self, stocked_product, customer):
        with pytest.raises(ValidationError):
            register(customer, purchase_type="gift")

    def test_future_purchase_date(self, stocked_product, customer):
        tomorrow = (date.today() + timedelta(days=2)).isoformat()
        with pytest.raises(ValidationError):
            register(customer, purchase_date=tomorrow)

    def test_bad_purchase_date(self, stocked_product, customer):
        with pytest.raises(ValidationError):
            register(customer, purchase_date="01/02/2024")

    def test_model_mismatch(self, stocked_product, customer):
        with pytest.raises(ValidationError):
            register(customer, model_number="INV-10K")

    def test_model_defaults_to_unit(self, stocked_product, customer):
        assert register(customer, model_number=None).model_number == "INV-5K"

    def test_unknown_serial(self, stocked_product, customer):
        with pytest.raises(UnitNotFoundError):
            register(customer, serial="SN-MISSING")

    def test_serial_from_other_product(self, stocked_product, customer):
        with pytest.raises(UnitNotFoundError):
            register(customer, product_id=stocked_product.id + 1)

    def test_pending_blocks_second_registration(self, stocked_product, customer):
        register(customer)
        with pytest.raises(ConflictError):
            register(customer)

    def test_approved_blocks_second_registration(self, stocked_product, customer):
        warranty = register(customer)
        warranty_service.approve(warranty_id=warranty.id)
        with pytest.raises(ConflictError):
            register(customer)

    def test_rejected_allows_new_registration(self, stocked_product, customer):
        first = register(customer)
        warranty_service.reject(warranty_id=first.id, reason="Invoice unreadable")

        second = register(customer)

        assert second.id != first.id
        assert second.status == "pending"
        assert db.session.get(Warranty, first.id).status == "rejected"

    def test_retailer_sale_records_final_customer(self, stocked_product, retailer):
        warranty = register(
            retailer,
            purchase_type="retailer",
            invoice_url="/invoices/r.pdf",
            final_customer={"name": "Dana End", "email": "dana@example.com"},
        )

        assert warranty.is_retailer_sale is True
        assert warranty.retailer_id == retailer.id
        assert warranty.final_customer_name == "Dana End"
        assert warranty_service.list_user_warranties(retailer.id) == [warranty]


# =============================================================================
# DECISIONS
# =============================================================================


class TestDecisions:

    def test_approve_sets_window_from_purchase_date(self, stocked_product, customer, admin_user):
        warranty = register(customer, purchase_date="2024-03-15")

        approved = warranty_service.approve(warranty_id=warranty.id, admin_user_id=admin_user.id)

        assert approved.status == "approved"
        assert approved.warranty_start_date == date(2024, 3, 15)
        assert approved.warranty_end_date == date(2025, 3, 15)
        assert approved.decided_by_user_id == admin_user.id
        assert approved.decided_at is not None

    def test_approve_with_start_override(self, stocked_product, customer):
        warranty = register(customer)
        approved = warranty_service.approve(warranty_id=warranty.id, start_date="2024-01-31")
        assert approved.warranty_start_date == date(2024, 1, 31)
        assert approved.warranty_end_date == date(2025, 1, 31)

    def test_approve_bad_start_date(self, stocked_product, customer):
        warranty = register(customer)
        with pytest.raises(ValidationError):
            warranty_service.approve(warranty_id=warranty.id, start_date="soon")
        assert db.session.get(Warranty, warranty.id).status == "pending"

    def test_reject_requires_reason(self, stocked_product, customer):
        warranty = register(customer)
        with pytest.raises(ValidationError):
            warranty_service.reject(warranty_id=warranty.id, reason="   ")

    def test_reject_sets_reason_and_no_window(self, stocked_product, customer):
        warranty = register(customer)
        rejected = warranty_service.reject(warranty_id=warranty.id, reason="Serial label missing")
        assert rejected.status == "rejected"
        assert rejected.rejection_reason == "Serial label missing"
        assert rejected.warranty_end_date is None

    @pytest.mark.parametrize("first", ["approve", "reject"])
    @pytest.mark.parametrize("second", ["approve", "reject"])
    def test_terminal_states_are_final(self, stocked_product, customer, first, second):
        warranty = register(customer)
        decide = {
            "approve": lambda: warranty_service.approve(warranty_id=warranty.id),
            "reject": lambda: warranty_service.reject(warranty_id=warranty.id, reason="No"),
        }
        decide[first]()
        status_after_first = db.session.get(Warranty, warranty.id).status

        with pytest.raises(WarrantyTransitionError):
            decide[second]()
        assert db.session.get(Warranty, warranty.id).status == status_after_first

    def test_unknown_warranty(self, app):
        with pytest.raises(NotFoundError):
            warranty_service.approve(warranty_id=12345)


class TestUpdateWarranty:

    def test_pending_fields(self, stocked_product, customer):
        warranty = register(customer)
        updated = warranty_service.update_warranty(warranty_id=warranty.id, patch={"admin_notes": "called customer"})
        assert updated.admin_notes == "called customer"

    def test_certificate_url_not_editable_while_pending(self, stocked_product, customer):
        warranty = register(customer)
        with pytest.raises(WarrantyTransitionError):
            warranty_service.update_warranty(warranty_id=warranty.id, patch={"certificate_url": "/c.html"})

    def test_terminal_only_certificate_url(self, stocked_product, customer):
        warranty = register(customer)
        warranty_service.approve(warranty_id=warranty.id)

        with pytest.raises(WarrantyTransitionError):
            warranty_service.update_warranty(warranty_id=warranty.id, patch={"admin_notes": "late edit"})
        updated = warranty_service.update_warranty(warranty_id=warranty.id, patch={"certificate_url": "/c.html"})
        assert updated.certificate_url == "/c.html"

    def test_unknown_field(self, stocked_product, customer):
        warranty = register(customer)
        with pytest.raises(ValidationError):
            warranty_service.update_warranty(warranty_id=warranty.id, patch={"warranty_end_date": "2099-01-01"})

    def test_empty_patch(self, stocked_product, customer):
        warranty = register(customer)
        with pytest.raises(ValidationError):
            warranty_service.update_warranty(warranty_id=warranty.id, patch={})


# =============================================================================
# VALIDATION
# =============================================================================


class TestValidate:

    def test_not_found(self, stocked_product):
        result = warranty_service.validate("NOPE", as_of="2024-06-01")
        assert result.status == "not_found"
        assert result.is_valid is False
        assert result.to_dict()["product_info"] is None

    def test_not_registered(self, stocked_product):
        result = warranty_service.validate("SN-0001", as_of="2024-06-01")
        assert result.status == "not_registered"
        assert result.to_dict()["product_info"]["model_number"] == "INV-5K"

    def test_pending(self, stocked_product, customer):
        register(customer)
        assert warranty_service.validate("SN-0001").status == "pending"

    def test_rejected(self, stocked_product, customer):
        warranty = register(customer)
        warranty_service.reject(warranty_id=warranty.id, reason="No")
        result = warranty_service.validate("SN-0001")
        assert result.status == "rejected"
        assert result.days_remaining == 0

    def test_active_days_remaining(self, stocked_product, customer):
        warranty = register(customer)
        warranty_service.approve(warranty_id=warranty.id)

        result = warranty_service.validate("SN-0001", as_of="2024-06-01")

        assert result.status == "active"
        assert result.is_valid is True
        assert result.days_remaining == 214

    def test_last_day_is_still_active(self, stocked_product, customer):
        warranty = register(customer)
        warranty_service.approve(warranty_id=warranty.id)

        result = warranty_service.validate("SN-0001", as_of=date(2025, 1, 1))

        assert result.status == "active"
        assert result.days_remaining == 0

    def test_expired_day_after(self, stocked_product, customer):
        warranty = register(customer)
        warranty_service.approve(warranty_id=warranty.id)

        result = warranty_service.validate("SN-0001", as_of="2025-01-02")

        assert result.status == "expired"
        assert result.days_remaining == 0

    def test_uses_latest_warranty(self, stocked_product, customer):
        first = register(customer)
        warranty_service.reject(warranty_id=first.id, reason="Blurry invoice")
        second = register(customer)
        warranty_service.approve(warranty_id=second.id)

        result = warranty_service.validate("SN-0001", as_of="2024-06-01")

        assert result.status == "active"
        assert result.warranty.id == second.id

    def test_bad_as_of(self, stocked_product):
        with pytest.raises(ValidationError):
            warranty_service.validate("SN-0001", as_of="June")

    def test_read_only(self, stocked_product, customer):
        register(customer)
        before = db.session.query(ActivityLog).count()
        warranty_service.validate("SN-0001")
        assert db.session.query(ActivityLog).count() == before


class TestCheckSerial:

    def test_reports_registration(self, stocked_product, customer):
        assert warranty_service.check_serial("SN-0001")["already_registered"] is False
        register(customer)
        assert warranty_service.check_serial("SN-0001")["already_registered"] is True

    def test_unknown(self, stocked_product):
        with pytest.raises(UnitNotFoundError):
            warranty_service.check_serial("SN-404")
