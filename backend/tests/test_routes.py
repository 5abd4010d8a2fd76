# Overview: Pytest coverage for the HTTP boundary (status codes, bodies, permissions).

"""
API Route Tests

Exercise the blueprints through the Flask test client: payload parsing,
typed error bodies, and permission decorators backed by the access policy.
"""

import pytest

from shoppos.access import AccessPolicy
from shoppos.errors import AccessDenied


class DenyingPolicy(AccessPolicy):
    """Allows everything except the listed actions; hides shop 'foreign_shop_id'."""

    def __init__(self, denied=(), foreign_shop_id=None):
        self.denied = set(denied)
        self.foreign_shop_id = foreign_shop_id

    def has_permission(self, user, action):
        return action not in self.denied

    def require_shop(self, shop_id, user):
        if shop_id == self.foreign_shop_id:
            raise AccessDenied("Shop belongs to another owner")
        return super().require_shop(shop_id, user)


@pytest.fixture
def policy(app):
    """Swap the access policy for one test."""
    original = app.extensions["shoppos"]["access_policy"]

    def _install(**kwargs):
        app.extensions["shoppos"]["access_policy"] = DenyingPolicy(**kwargs)

    yield _install
    app.extensions["shoppos"]["access_policy"] = original


class TestHealth:

    def test_health(self, client, db_session):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.get_json()["status"] == "healthy"


class TestSalesRoutes:

    def test_create_cash_sale(self, client, shop, make_product, cart_line):
        rice = make_product(shop, sell_price="50.00")
        oil = make_product(shop, name="Oil", sell_price="30.00")

        response = client.post(
            f"/api/shops/{shop.id}/sales",
            json={"items": [cart_line(rice, 2), cart_line(oil, 1)], "paymentMethod": "cash"},
            headers={"X-User-Id": "cashier-1"},
        )

        assert response.status_code == 201
        body = response.get_json()
        assert body["sale"]["total_amount"] == "130.00"
        assert body["sale"]["created_by_user_id"] == "cashier-1"
        assert body["invoice_no"] is None

        listing = client.get(f"/api/shops/{shop.id}/sales").get_json()
        assert [s["id"] for s in listing["sales"]] == [body["sale_id"]]

        detail = client.get(f"/api/shops/{shop.id}/sales/{body['sale_id']}").get_json()
        assert len(detail["items"]) == 2

    def test_offline_sale_date_sets_business_day(self, client, invoice_shop, make_product, cart_line):
        rice = make_product(invoice_shop)
        response = client.post(
            f"/api/shops/{invoice_shop.id}/sales",
            json={"items": [cart_line(rice, 1)], "saleDate": "2026-03-01T20:30:00Z"},
        )

        assert response.status_code == 201
        body = response.get_json()
        # 20:30 UTC is already the next day in Dhaka
        assert body["sale"]["business_date"] == "2026-03-02"
        assert body["invoice_no"] == "INV-260302-0001"

    def test_bad_sale_date_is_400(self, client, shop, make_product, cart_line):
        rice = make_product(shop)
        response = client.post(
            f"/api/shops/{shop.id}/sales",
            json={"items": [cart_line(rice, 1)], "saleDate": "last tuesday"},
        )
        assert response.status_code == 400

    def test_insufficient_stock_body(self, client, shop, make_product, cart_line):
        rice = make_product(shop, name="Rice", stock_qty="1")
        response = client.post(
            f"/api/shops/{shop.id}/sales",
            json={"items": [cart_line(rice, 5)]},
        )
        assert response.status_code == 409
        body = response.get_json()
        assert body["kind"] == "insufficient_stock"
        assert body["error"] == 'Insufficient stock for product "Rice"'
        assert body["details"]["product_name"] == "Rice"

    def test_empty_cart_is_400(self, client, shop):
        response = client.post(f"/api/shops/{shop.id}/sales", json={"items": []})
        assert response.status_code == 400
        assert response.get_json()["kind"] == "validation_error"

    def test_items_must_be_a_list(self, client, shop):
        response = client.post(f"/api/shops/{shop.id}/sales", json={"items": "rice"})
        assert response.status_code == 400

    def test_unknown_shop_is_404(self, client, db_session):
        response = client.post("/api/shops/98765/sales", json={"items": []})
        assert response.status_code == 404
        assert response.get_json()["kind"] == "not_found"

    def test_due_sale_needs_due_permission(self, client, shop, make_product, make_customer, cart_line, policy):
        rice = make_product(shop)
        customer = make_customer(shop)
        policy(denied={"create_due_sale"})

        response = client.post(
            f"/api/shops/{shop.id}/sales",
            json={"items": [cart_line(rice, 1)], "paymentMethod": "due", "customerId": customer.id},
        )
        assert response.status_code == 403
        assert response.get_json()["details"]["required_permission"] == "create_due_sale"
        assert response.get_json()["kind"] == "access_denied"

    def test_invoice_needs_invoice_permission(self, client, invoice_shop, make_product, cart_line, policy):
        rice = make_product(invoice_shop)
        policy(denied={"issue_sales_invoice"})
        response = client.post(f"/api/shops/{invoice_shop.id}/sales", json={"items": [cart_line(rice, 1)]})
        assert response.status_code == 201
        assert response.get_json()["invoice_no"] is None

    def test_foreign_shop_is_403(self, client, shop, policy):
        policy(foreign_shop_id=shop.id)
        response = client.get(f"/api/shops/{shop.id}/sales")
        assert response.status_code == 403
        assert response.get_json()["kind"] == "access_denied"

    def test_void_twice(self, client, shop, make_product, cart_line):
        rice = make_product(shop)
        sale_id = client.post(
            f"/api/shops/{shop.id}/sales", json={"items": [cart_line(rice, 1)]}
        ).get_json()["sale_id"]

        first = client.post(f"/api/shops/{shop.id}/sales/{sale_id}/void", json={"reason": "Mistake"})
        second = client.post(f"/api/shops/{shop.id}/sales/{sale_id}/void")

        assert first.status_code == 200
        assert first.get_json()["already_voided"] is False
        assert second.get_json()["already_voided"] is True
        assert second.get_json()["sale"]["void_reason"] == "Mistake"

    def test_void_permission(self, client, shop, make_product, cart_line, policy):
        rice = make_product(shop)
        sale_id = client.post(
            f"/api/shops/{shop.id}/sales", json={"items": [cart_line(rice, 1)]}
        ).get_json()["sale_id"]
        policy(denied={"void_sale"})
        response = client.post(f"/api/shops/{shop.id}/sales/{sale_id}/void")
        assert response.status_code == 403
        assert response.get_json() == {
            "error": "Permission denied",
            "kind": "access_denied",
            "details": {"required_permission": "void_sale"},
        }

    def test_reissue_partial_failure_body(self, client, shop, make_product, make_customer, cart_line):
        fan = make_product(shop, name="Fan", sell_price="100.00", stock_qty="2")
        customer = make_customer(shop)
        sale_id = client.post(
            f"/api/shops/{shop.id}/sales",
            json={"items": [cart_line(fan, 1)], "paymentMethod": "due", "customerId": customer.id},
        ).get_json()["sale_id"]

        response = client.post(
            f"/api/shops/{shop.id}/sales/{sale_id}/reissue",
            json={"customerId": customer.id, "items": [cart_line(fan, 10)]},
        )

        assert response.status_code == 409
        body = response.get_json()
        assert body["kind"] == "compound_operation_partial_failure"
        assert body["details"]["voided_sale_id"] == sale_id
        assert body["details"]["completed_steps"] == ["void"]
        assert body["details"]["failed_step"] == "recreate"
        assert body["details"]["cause"]["kind"] == "insufficient_stock"

    def test_reissue_success(self, client, shop, make_product, make_customer, cart_line):
        fan = make_product(shop, name="Fan", sell_price="100.00", stock_qty="5")
        customer = make_customer(shop)
        sale_id = client.post(
            f"/api/shops/{shop.id}/sales",
            json={"items": [cart_line(fan, 1)], "paymentMethod": "due", "customerId": customer.id},
        ).get_json()["sale_id"]

        response = client.post(
            f"/api/shops/{shop.id}/sales/{sale_id}/reissue",
            json={"customerId": customer.id, "items": [cart_line(fan, 2)], "paidNow": "50"},
        )

        assert response.status_code == 200
        body = response.get_json()
        assert body["old_sale_id"] == sale_id
        assert body["sale_id"] != sale_id


class TestReturnRoutes:

    def test_refund_and_lookups(self, client, shop, make_product, cart_line):
        bread = make_product(shop, name="Bread", sell_price="40.00")
        sale_id = client.post(
            f"/api/shops/{shop.id}/sales", json={"items": [cart_line(bread, 2)]}
        ).get_json()["sale_id"]

        returnable = client.get(f"/api/shops/{shop.id}/sales/{sale_id}/returnable").get_json()
        item_id = returnable["items"][0]["sale_item_id"]
        assert returnable["items"][0]["remaining_quantity"] == "2.00"

        response = client.post(
            f"/api/shops/{shop.id}/sales/{sale_id}/returns",
            json={"type": "refund", "items": [{"saleItemId": item_id, "quantity": 1}]},
        )
        assert response.status_code == 201
        body = response.get_json()
        assert body["net_amount"] == "-40.00"
        assert body["refund_amount"] == "40.00"
        assert body["return_no"].startswith("RET-")

        detail = client.get(f"/api/shops/{shop.id}/returns/{body['return_id']}").get_json()
        assert detail["items"][0]["quantity"] == "1.00"
        listing = client.get(f"/api/shops/{shop.id}/returns?sale_id={sale_id}").get_json()
        assert [r["id"] for r in listing["returns"]] == [body["return_id"]]

    def test_exceeding_return_is_409(self, client, shop, make_product, cart_line):
        bread = make_product(shop)
        sale = client.post(f"/api/shops/{shop.id}/sales", json={"items": [cart_line(bread, 1)]}).get_json()
        item_id = client.get(
            f"/api/shops/{shop.id}/sales/{sale['sale_id']}/returnable"
        ).get_json()["items"][0]["sale_item_id"]

        response = client.post(
            f"/api/shops/{shop.id}/sales/{sale['sale_id']}/returns",
            json={"type": "refund", "items": [{"saleItemId": item_id, "quantity": 2}]},
        )
        assert response.status_code == 409
        assert response.get_json()["kind"] == "exceeds_remaining_quantity"


class TestCustomerAndCashRoutes:

    def test_customer_due_flow(self, client, shop, make_product, cart_line):
        fan = make_product(shop, sell_price="150.00")
        created = client.post(f"/api/shops/{shop.id}/customers", json={"name": "Karim", "phone": "017"})
        assert created.status_code == 201
        customer_id = created.get_json()["customer"]["id"]

        client.post(
            f"/api/shops/{shop.id}/sales",
            json={"items": [cart_line(fan, 1)], "paymentMethod": "due", "customerId": customer_id},
        )
        paid = client.post(f"/api/shops/{shop.id}/customers/{customer_id}/payments", json={"amount": "100"})
        assert paid.status_code == 201
        assert paid.get_json()["total_due"] == "50.00"

        statement = client.get(f"/api/shops/{shop.id}/customers/{customer_id}/statement").get_json()
        assert statement["balance"] == "50.00"
        summary = client.get(f"/api/shops/{shop.id}/customers/due-summary").get_json()
        assert summary["total_due"] == "50.00"

        too_much = client.post(f"/api/shops/{shop.id}/customers/{customer_id}/payments", json={"amount": "75"})
        assert too_much.status_code == 400

    def test_cash_book(self, client, shop):
        created = client.post(f"/api/shops/{shop.id}/cash", json={"entryType": "IN", "amount": "250"})
        assert created.status_code == 201

        entries = client.get(f"/api/shops/{shop.id}/cash").get_json()["entries"]
        assert [e["amount"] for e in entries] == ["250.00"]
        summary = client.get(f"/api/shops/{shop.id}/cash/summary").get_json()
        assert summary["balance"] == "250.00"

    def test_bad_date_param(self, client, shop):
        response = client.get(f"/api/shops/{shop.id}/cash?date=yesterday")
        assert response.status_code == 400
