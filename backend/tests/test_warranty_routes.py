"""
Warranty API and certificate tests.

Verifies:
- registration is open to any authenticated account, decisions are admin only
- HTTP status mapping (400 / 404 / 409 / 502)
- certificates are written to storage and failures surface as 502
- invoice uploads are sanitized, size-limited and usable as invoice_url
"""

import io
import os

import pytest

from serialdesk.extensions import db
from serialdesk.models import Warranty
from serialdesk.services import certificate_service, warranty_service
from serialdesk.validation import DependencyUnavailableError

from conftest import make_units


REGISTRATION = {
    "serial_number": "SN-0001",
    "model_number": "INV-5K",
    "purchase_date": "2024-01-01",
    "purchase_type": "online",
}


@pytest.fixture
def pending(client, stocked_product, customer_headers):
    resp = client.post("/api/warranties", json=REGISTRATION, headers=customer_headers)
    assert resp.status_code == 201
    return resp.json["warranty"]


class TestRegistrationRoutes:

    def test_requires_auth(self, client, stocked_product):
        assert client.post("/api/warranties", json=REGISTRATION).status_code == 401

    def test_register(self, pending, customer):
        assert pending["status"] == "pending"
        assert pending["user_email"] == customer.email
        assert pending["warranty_end_date"] is None

    def test_duplicate_is_409(self, client, pending, customer_headers):
        resp = client.post("/api/warranties", json=REGISTRATION, headers=customer_headers)
        assert resp.status_code == 409

    def test_unknown_serial_is_404(self, client, stocked_product, customer_headers):
        resp = client.post("/api/warranties", json={**REGISTRATION, "serial_number": "SN-X"},
                           headers=customer_headers)
        assert resp.status_code == 404

    def test_missing_invoice_is_400(self, client, stocked_product, retailer_headers):
        resp = client.post("/api/warranties", json={**REGISTRATION, "purchase_type": "retailer"},
                           headers=retailer_headers)
        assert resp.status_code == 400
        assert "Invoice" in resp.json["error"]

    def test_final_customer_must_be_object(self, client, stocked_product, retailer_headers):
        resp = client.post("/api/warranties", headers=retailer_headers, json={
            **REGISTRATION, "purchase_type": "retailer", "invoice_url": "https://files.example.com/inv-1.pdf",
            "final_customer": "Jane Doe",
        })
        assert resp.status_code == 400
        assert "final_customer" in resp.json["error"]

    def test_product_id_as_string(self, client, stocked_product, customer_headers):
        resp = client.post("/api/warranties", headers=customer_headers,
                           json={**REGISTRATION, "product_id": str(stocked_product.id)})
        assert resp.status_code == 201
        assert resp.json["warranty"]["product_id"] == stocked_product.id

    def test_product_id_garbage_is_400(self, client, stocked_product, customer_headers):
        resp = client.post("/api/warranties", headers=customer_headers,
                           json={**REGISTRATION, "product_id": "inverter"})
        assert resp.status_code == 400

    def test_mine(self, client, pending, customer_headers, retailer_headers):
        assert client.get("/api/warranties/mine", headers=customer_headers).json["count"] == 1
        assert client.get("/api/warranties/mine", headers=retailer_headers).json["count"] == 0

    def test_check_serial(self, client, pending, customer_headers):
        resp = client.get("/api/warranties/check-serial?serial_number=SN-0001", headers=customer_headers)
        assert resp.status_code == 200
        assert resp.json["already_registered"] is True

        resp = client.get("/api/warranties/check-serial?serial_number=SN-9", headers=customer_headers)
        assert resp.status_code == 404
        assert resp.json["valid"] is False

        assert client.get("/api/warranties/check-serial", headers=customer_headers).status_code == 400


class TestAdminRoutes:

    def test_list_is_admin_only(self, client, pending, customer_headers, admin_headers):
        assert client.get("/api/warranties", headers=customer_headers).status_code == 403
        resp = client.get("/api/warranties?status=pending", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 1

    def test_approve_then_reject_is_409(self, client, pending, admin_headers):
        resp = client.put(f"/api/warranties/{pending['id']}/approve", headers=admin_headers,
                          json={"admin_notes": "ok"})
        assert resp.status_code == 200
        assert resp.json["warranty"]["warranty_end_date"] == "2025-01-01"

        resp = client.put(f"/api/warranties/{pending['id']}/reject", headers=admin_headers,
                          json={"rejection_reason": "changed my mind"})
        assert resp.status_code == 409

    def test_reject_without_reason_is_400(self, client, pending, admin_headers):
        resp = client.put(f"/api/warranties/{pending['id']}/reject", headers=admin_headers, json={})
        assert resp.status_code == 400

    def test_generic_update_routes_status(self, client, pending, admin_headers):
        resp = client.put(f"/api/warranties/{pending['id']}", headers=admin_headers,
                          json={"status": "rejected", "rejection_reason": "duplicate claim"})
        assert resp.status_code == 200
        assert resp.json["warranty"]["status"] == "rejected"

    def test_generic_update_rejects_unknown_status(self, client, pending, admin_headers):
        resp = client.put(f"/api/warranties/{pending['id']}", headers=admin_headers, json={"status": "void"})
        assert resp.status_code == 400

    def test_generic_update_edits_notes(self, client, pending, admin_headers):
        resp = client.put(f"/api/warranties/{pending['id']}", headers=admin_headers,
                          json={"admin_notes": "waiting on invoice"})
        assert resp.status_code == 200
        assert resp.json["warranty"]["admin_notes"] == "waiting on invoice"

    def test_approve_unknown_is_404(self, client, admin_headers):
        assert client.put("/api/warranties/999/approve", headers=admin_headers, json={}).status_code == 404

    def test_validate(self, client, pending, admin_headers):
        client.put(f"/api/warranties/{pending['id']}/approve", headers=admin_headers, json={})

        resp = client.get("/api/warranties/validate?serial_number=SN-0001&as_of=2024-06-01",
                          headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["status"] == "active"
        assert resp.json["is_valid"] is True
        assert resp.json["days_remaining"] == 214
        assert resp.json["product_info"]["name"] == "Solar Inverter 5kW"

    def test_validate_bad_as_of(self, client, stocked_product, admin_headers):
        resp = client.get("/api/warranties/validate?serial_number=SN-0001&as_of=tomorrow",
                          headers=admin_headers)
        assert resp.status_code == 400


# =============================================================================
# CERTIFICATES
# =============================================================================


class TestCertificates:

    def test_route_writes_certificate(self, app, client, pending, admin_headers):
        client.put(f"/api/warranties/{pending['id']}/approve", headers=admin_headers, json={})

        resp = client.post(f"/api/warranties/{pending['id']}/certificate", headers=admin_headers)

        assert resp.status_code == 200
        filename = f"warranty-{pending['id']}-SN-0001.html"
        assert resp.json["certificate_url"] == f"/static/certificates/{filename}"
        path = os.path.join(app.config["CERTIFICATE_STORAGE_DIR"], filename)
        with open(path, encoding="utf-8") as fh:
            html = fh.read()
        assert "SN-0001" in html
        assert "2025-01-01" in html
        assert "Casey Customer" in html

    def test_pending_warranty_is_409(self, client, pending, admin_headers):
        resp = client.post(f"/api/warranties/{pending['id']}/certificate", headers=admin_headers)
        assert resp.status_code == 409

    def test_storage_failure_is_502(self, client, pending, admin_headers, monkeypatch):
        client.put(f"/api/warranties/{pending['id']}/approve", headers=admin_headers, json={})

        def broken_makedirs(*args, **kwargs):
            raise OSError("read-only file system")

        monkeypatch.setattr(certificate_service.os, "makedirs", broken_makedirs)

        resp = client.post(f"/api/warranties/{pending['id']}/certificate", headers=admin_headers)

        assert resp.status_code == 502
        assert db.session.get(Warranty, pending["id"]).certificate_url is None

    def test_approval_issues_certificate_when_enabled(self, app, stocked_product, customer):
        app.config["WARRANTY_CERTIFICATES_ENABLED"] = True
        warranty = warranty_service.register(
            serial_number="SN-0002", model_number="INV-5K", purchase_date="2024-01-01",
            purchase_type="online", purchaser=customer,
        )

        approved = warranty_service.approve(warranty_id=warranty.id)

        assert approved.certificate_url.endswith(f"warranty-{warranty.id}-SN-0002.html")

    def test_approval_stands_when_certificate_fails(self, app, stocked_product, customer, monkeypatch):
        app.config["WARRANTY_CERTIFICATES_ENABLED"] = True

        def unavailable(warranty):
            raise DependencyUnavailableError("storage offline")

        monkeypatch.setattr(certificate_service, "store_certificate", unavailable)
        warranty = warranty_service.register(
            serial_number="SN-0002", model_number="INV-5K", purchase_date="2024-01-01",
            purchase_type="online", purchaser=customer,
        )

        approved = warranty_service.approve(warranty_id=warranty.id)

        assert approved.status == "approved"
        assert approved.certificate_url is None
        assert db.session.get(Warranty, warranty.id).status == "approved"

    def test_serial_with_path_separators_stays_in_storage_dir(self, app, product, customer):
        make_units(product, ["SN/2024/0001", "../../escape"])
        storage = app.config["CERTIFICATE_STORAGE_DIR"]

        for serial, stored_as in (("SN/2024/0001", "SN_2024_0001"), ("../../escape", "escape")):
            warranty = warranty_service.register(
                serial_number=serial, model_number="INV-5K", purchase_date="2024-01-01",
                purchase_type="online", purchaser=customer,
            )
            warranty_service.approve(warranty_id=warranty.id)

            attached = warranty_service.attach_certificate(warranty_id=warranty.id)

            filename = f"warranty-{warranty.id}-{stored_as}.html"
            assert attached.certificate_url == f"/static/certificates/{filename}"
            assert os.path.isfile(os.path.join(storage, filename))


# =============================================================================
# INVOICE UPLOAD
# =============================================================================


class TestInvoiceUpload:

    def test_upload_then_register_offline(self, app, client, stocked_product, customer_headers):
        resp = client.post(
            "/api/warranties/upload-invoice",
            headers=customer_headers,
            data={"invoice": (io.BytesIO(b"%PDF-1.4 invoice"), "../receipt 0042.pdf")},
            content_type="multipart/form-data",
        )

        assert resp.status_code == 201
        url = resp.json["url"]
        assert url.startswith("/static/invoices/") and url.endswith("-receipt_0042.pdf")
        stored = os.path.join(app.config["INVOICE_STORAGE_DIR"], url.rsplit("/", 1)[-1])
        with open(stored, "rb") as fh:
            assert fh.read() == b"%PDF-1.4 invoice"

        resp = client.post("/api/warranties", headers=customer_headers,
                           json={**REGISTRATION, "purchase_type": "offline", "invoice_url": url})
        assert resp.status_code == 201
        assert resp.json["warranty"]["invoice_url"] == url

    def test_requires_auth(self, client):
        resp = client.post("/api/warranties/upload-invoice",
                           data={"invoice": (io.BytesIO(b"x"), "a.pdf")}, content_type="multipart/form-data")
        assert resp.status_code == 401

    @pytest.mark.parametrize("data", [
        {},
        {"invoice": (io.BytesIO(b"MZ..."), "setup.exe")},
        {"invoice": (io.BytesIO(b""), "empty.pdf")},
    ])
    def test_rejected_files(self, client, customer_headers, data):
        resp = client.post("/api/warranties/upload-invoice", headers=customer_headers,
                           data=data, content_type="multipart/form-data")
        assert resp.status_code == 400

    def test_size_limit(self, app, client, customer_headers):
        app.config["INVOICE_MAX_BYTES"] = 16
        resp = client.post("/api/warranties/upload-invoice", headers=customer_headers,
                           data={"invoice": (io.BytesIO(b"x" * 17), "big.pdf")},
                           content_type="multipart/form-data")
        assert resp.status_code == 400
