"""
Inventory aggregator tests.

Verifies:
- stock / offline_stock are full recounts of available units
- recalculate() is idempotent and repairs drift
- resync_all() reports only products whose counters changed
- a failed recount leaves the unit mutation committed
"""

from serialdesk.extensions import db
from serialdesk.models import Product, ProductUnit
from serialdesk.services import inventory_service, product_unit_service

from conftest import make_units


class TestRecount:

    def test_counts_by_stock_type(self, product):
        make_units(product, ["A-1", "A-2"], stock_type="both")
        make_units(product, ["B-1"], stock_type="offline")
        make_units(product, ["C-1", "C-2", "C-3"], stock_type="online")

        counts = inventory_service.recalculate(product.id)

        assert counts == {"total_stock": 6, "offline_stock": 3}
        assert product.stock == 6
        assert product.offline_stock == 3

    def test_only_available_units_count(self, stocked_product):
        unit = product_unit_service.find_by_serial("SN-0001")
        product_unit_service.update_unit(unit_id=unit.id, patch={"status": "defective"})

        assert stocked_product.stock == 2
        assert stocked_product.offline_stock == 1

    def test_idempotent(self, stocked_product):
        first = inventory_service.recalculate(stocked_product.id)
        second = inventory_service.recalculate(stocked_product.id)
        assert first == second == {"total_stock": 3, "offline_stock": 2}

    def test_missing_product_id_yields_zeros(self, app):
        assert inventory_service.recalculate(None) == {"total_stock": 0, "offline_stock": 0}

    def test_product_without_units(self, product):
        assert inventory_service.recalculate(product.id) == {"total_stock": 0, "offline_stock": 0}


class TestResync:

    def test_repairs_drift(self, stocked_product, db_session):
        stocked_product.stock = 99
        stocked_product.offline_stock = 0
        db_session.commit()

        changed = inventory_service.resync_all()

        assert len(changed) == 1
        assert changed[0]["product_id"] == stocked_product.id
        assert changed[0]["before"] == {"total_stock": 99, "offline_stock": 0}
        assert changed[0]["after"] == {"total_stock": 3, "offline_stock": 2}
        assert db.session.get(Product, stocked_product.id).stock == 3

    def test_in_sync_reports_nothing(self, stocked_product):
        assert inventory_service.resync_all() == []

    def test_summary_detects_drift_without_writing(self, stocked_product, db_session):
        stocked_product.stock = 10
        db_session.commit()

        summary = inventory_service.get_stock_summary(stocked_product.id)

        assert summary["in_sync"] is False
        assert summary["stored"]["total_stock"] == 10
        assert summary["live"] == {"total_stock": 3, "offline_stock": 2}
        assert summary["online_available"] == 3
        assert summary["units_by_status"] == {"available": 3}
        assert db.session.get(Product, stocked_product.id).stock == 10


class TestRecountFailure:

    def test_unit_change_survives_failed_recount(self, stocked_product, monkeypatch):
        def boom(product_id):
            raise RuntimeError("database went away")

        monkeypatch.setattr(inventory_service, "recalculate", boom)

        unit = product_unit_service.find_by_serial("SN-0002")
        updated, stock = product_unit_service.update_unit(unit_id=unit.id, patch={"status": "reserved"})

        assert stock is None
        assert db.session.get(ProductUnit, updated.id).status == "reserved"
        # counters are stale until the next resync
        assert db.session.get(Product, stocked_product.id).stock == 3

        monkeypatch.undo()
        assert inventory_service.recalculate(stocked_product.id)["total_stock"] == 2


class TestInventoryRoutes:

    def test_summary_requires_admin(self, client, stocked_product, customer_headers):
        resp = client.get(f"/api/inventory/{stocked_product.id}", headers=customer_headers)
        assert resp.status_code == 403

    def test_summary(self, client, stocked_product, admin_headers):
        resp = client.get(f"/api/inventory/{stocked_product.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["in_sync"] is True

    def test_summary_unknown_product(self, client, admin_headers):
        resp = client.get("/api/inventory/9999", headers=admin_headers)
        assert resp.status_code == 404

    def test_recalculate(self, client, stocked_product, admin_headers, db_session):
        stocked_product.stock = 0
        db_session.commit()

        resp = client.post(f"/api/inventory/{stocked_product.id}/recalculate", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["total_stock"] == 3
        assert resp.json["offline_stock"] == 2

    def test_resync(self, client, stocked_product, admin_headers, db_session):
        stocked_product.offline_stock = 7
        db_session.commit()

        resp = client.post("/api/inventory/resync", headers=admin_headers)

        assert resp.status_code == 200
        assert resp.json["count"] == 1
