"""
Retailer inventory tests.

Verifies:
- paid retailer orders put their allocated units into the retailer's inventory
- receiving is idempotent and limited to the retailer's own paid orders
- selling on registers a pending retailer warranty for the end customer
- a refused sale leaves the item in stock
"""

import pytest

from serialdesk.extensions import db
from serialdesk.models import RetailerInventoryItem, Warranty
from serialdesk.services import order_service, retailer_inventory_service, warranty_service
from serialdesk.services.auth_service import create_user
from serialdesk.validation import ConflictError, NotFoundError, ValidationError

from conftest import PASSWORD, headers_for


CUSTOMER = {
    "name": "Dana Enduser",
    "email": "dana@example.com",
    "phone": "+1 555 0100",
    "address": "7 Solar Way",
}
INVOICE = "https://files.example.com/invoices/r-1001.pdf"


@pytest.fixture
def paid_retailer_order(stocked_product, retailer):
    order = order_service.create_order(
        user=retailer,
        lines=[{"product_id": stocked_product.id, "quantity": 2}],
        shipping_address="Shop 4",
    )
    return order_service.update_payment_status(order_id=order.id, payment_status="completed")


@pytest.fixture
def held_item(paid_retailer_order, retailer):
    return retailer_inventory_service.list_inventory(retailer_id=retailer.id)[-1]


def sell(item, retailer, **overrides):
    kwargs = dict(
        item_id=item.id,
        retailer=retailer,
        customer=dict(CUSTOMER),
        customer_invoice_url=INVOICE,
        selling_price_cents=180000,
        sold_date="2024-06-01",
    )
    kwargs.update(overrides)
    return retailer_inventory_service.mark_as_sold(**kwargs)


# =============================================================================
# RECEIVING
# =============================================================================


class TestReceiving:

    def test_paid_retailer_order_is_received(self, paid_retailer_order, retailer):
        items = retailer_inventory_service.list_inventory(retailer_id=retailer.id)

        assert sorted(i.serial_number for i in items) == ["SN-0001", "SN-0002"]
        assert all(i.status == "in_stock" for i in items)
        assert all(i.purchase_price_cents == 120000 for i in items)
        assert {i.order_id for i in items} == {paid_retailer_order.id}

    def test_customer_orders_are_not_received(self, stocked_product, customer):
        order = order_service.create_order(
            user=customer, lines=[{"product_id": stocked_product.id, "quantity": 1}], shipping_address="A",
        )
        order_service.update_payment_status(order_id=order.id, payment_status="completed")

        assert retailer_inventory_service.list_inventory() == []

    def test_receiving_again_adds_nothing(self, paid_retailer_order, retailer):
        again = retailer_inventory_service.add_to_inventory(retailer=retailer, order_id=paid_retailer_order.id)

        assert again == []
        assert db.session.query(RetailerInventoryItem).count() == 2

    def test_unpaid_order(self, stocked_product, retailer):
        order = order_service.create_order(
            user=retailer, lines=[{"product_id": stocked_product.id, "quantity": 1}], shipping_address="A",
        )
        with pytest.raises(ConflictError):
            retailer_inventory_service.add_to_inventory(retailer=retailer, order_id=order.id)

    def test_order_of_another_retailer(self, paid_retailer_order):
        other = create_user(name="Otto Outlet", email="otto@outlet.example.com", password=PASSWORD, role="retailer")
        with pytest.raises(NotFoundError):
            retailer_inventory_service.add_to_inventory(retailer=other, order_id=paid_retailer_order.id)


# =============================================================================
# SELLING ON
# =============================================================================


class TestMarkAsSold:

    def test_registers_pending_retailer_warranty(self, held_item, retailer):
        item = sell(held_item, retailer)

        assert item.status == "sold"
        assert item.sold_to_name == "Dana Enduser"
        assert item.selling_price_cents == 180000
        warranty = db.session.get(Warranty, item.warranty_id)
        assert warranty.status == "pending"
        assert warranty.purchase_type == "retailer"
        assert warranty.serial_number == item.serial_number
        assert warranty.is_retailer_sale is True
        assert warranty.retailer_id == retailer.id
        assert warranty.final_customer_email == "dana@example.com"
        assert warranty.invoice_url == INVOICE
        assert warranty.purchase_date.isoformat() == "2024-06-01"

    @pytest.mark.parametrize("overrides", [
        {"customer_invoice_url": None},
        {"customer": {**CUSTOMER, "phone": " "}},
        {"customer": "Dana Enduser"},
        {"selling_price_cents": -5},
        {"sold_date": "first of June"},
    ])
    def test_bad_sale_details(self, held_item, retailer, overrides):
        with pytest.raises(ValidationError):
            sell(held_item, retailer, **overrides)

        assert db.session.get(RetailerInventoryItem, held_item.id).status == "in_stock"
        assert db.session.query(Warranty).count() == 0

    def test_cannot_sell_twice(self, held_item, retailer):
        sell(held_item, retailer)
        with pytest.raises(ConflictError):
            sell(held_item, retailer)
        assert db.session.query(Warranty).count() == 1

    def test_serial_already_under_warranty_keeps_item_in_stock(self, held_item, retailer, customer):
        warranty_service.register(
            serial_number=held_item.serial_number, model_number="INV-5K", purchase_date="2024-05-01",
            purchase_type="online", purchaser=customer,
        )

        with pytest.raises(ConflictError):
            sell(held_item, retailer)

        item = db.session.get(RetailerInventoryItem, held_item.id)
        assert item.status == "in_stock"
        assert item.warranty_id is None

    def test_damaged_item_cannot_be_sold(self, held_item, retailer):
        retailer_inventory_service.update_status(item_id=held_item.id, user=retailer, status="damaged",
                                                 notes="cracked housing")
        with pytest.raises(ConflictError):
            sell(held_item, retailer)

    def test_unknown_status(self, held_item, retailer):
        with pytest.raises(ValidationError):
            retailer_inventory_service.update_status(item_id=held_item.id, user=retailer, status="lost")


# =============================================================================
# ROUTES
# =============================================================================


class TestRetailerInventoryRoutes:

    def test_sell_flow(self, client, held_item, retailer_headers, admin_headers):
        resp = client.get("/api/retailer-inventory?status=in_stock", headers=retailer_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 2

        resp = client.post(f"/api/retailer-inventory/{held_item.id}/sell", headers=retailer_headers, json={
            "customer": CUSTOMER,
            "customer_invoice_url": INVOICE,
        })
        assert resp.status_code == 200
        assert resp.json["item"]["status"] == "sold"
        assert resp.json["warranty"]["status"] == "pending"
        assert resp.json["warranty"]["final_customer"]["name"] == "Dana Enduser"

        resp = client.put(f"/api/warranties/{resp.json['warranty']['id']}/approve", headers=admin_headers, json={})
        assert resp.status_code == 200

        resp = client.get(f"/api/retailer-inventory/{held_item.id}", headers=retailer_headers)
        assert resp.json["item"]["warranty_status"] == "approved"

    def test_missing_invoice_is_400(self, client, held_item, retailer_headers):
        resp = client.post(f"/api/retailer-inventory/{held_item.id}/sell", headers=retailer_headers,
                           json={"customer": CUSTOMER})
        assert resp.status_code == 400

    def test_customers_are_refused(self, client, held_item, customer_headers):
        assert client.get("/api/retailer-inventory", headers=customer_headers).status_code == 403

    def test_other_retailer_gets_404(self, client, held_item):
        other = create_user(name="Otto Outlet", email="otto@outlet.example.com", password=PASSWORD, role="retailer")
        headers = headers_for(other)

        assert client.get(f"/api/retailer-inventory/{held_item.id}", headers=headers).status_code == 404
        resp = client.post(f"/api/retailer-inventory/{held_item.id}/sell", headers=headers,
                           json={"customer": CUSTOMER, "customer_invoice_url": INVOICE})
        assert resp.status_code == 404
        assert client.get("/api/retailer-inventory", headers=headers).json["count"] == 0

    def test_admin_sees_all_and_sets_status(self, client, held_item, retailer, admin_headers):
        resp = client.get(f"/api/retailer-inventory?retailer_id={retailer.id}", headers=admin_headers)
        assert resp.json["count"] == 2

        resp = client.put(f"/api/retailer-inventory/{held_item.id}/status", headers=admin_headers,
                          json={"status": "returned", "notes": "RMA 88"})
        assert resp.status_code == 200
        assert resp.json["item"]["status"] == "returned"
        assert resp.json["item"]["notes"] == "RMA 88"

    def test_add_paid_order_route(self, client, paid_retailer_order, retailer_headers):
        resp = client.post("/api/retailer-inventory", headers=retailer_headers,
                           json={"order_id": paid_retailer_order.id})
        assert resp.status_code == 201
        assert resp.json["items"] == []
