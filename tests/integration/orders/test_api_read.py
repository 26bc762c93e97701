"""Integration tests for the order read projections over HTTP."""

from __future__ import annotations

import pytest

from modules.orders.constants import OrderStatus

pytestmark = pytest.mark.integration

BASE = "/api/v1/orders/"


@pytest.fixture()
def client_for(api_client):
    def _client(user):
        api_client.force_authenticate(user=user)
        return api_client

    return _client


class TestRetrieve:
    def test_buyer_sees_own_order(self, client_for, buyer, order_factory):
        order = order_factory()

        response = client_for(buyer).get(f"{BASE}{order.id}/")

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == order.id
        assert data["items"][0]["barcode"] == "SKU-0001"
        assert data["items"][0]["subtotal"] == "21.00"

    def test_other_buyer_forbidden(self, client_for, other_buyer, order_factory):
        order = order_factory()
        response = client_for(other_buyer).get(f"{BASE}{order.id}/")
        assert response.status_code == 403

    def test_seller_with_sku_allowed(self, client_for, seller, order_factory):
        order = order_factory()
        assert client_for(seller).get(f"{BASE}{order.id}/").status_code == 200

    def test_unassigned_shipper_forbidden(self, client_for, shipper, order_factory):
        order = order_factory(status=OrderStatus.PROCESSING)
        assert client_for(shipper).get(f"{BASE}{order.id}/").status_code == 403

    def test_not_found(self, client_for, admin_user):
        response = client_for(admin_user).get(f"{BASE}missing/")
        assert response.status_code == 404
        assert response.json()["errors"][0]["code"] == "not_found"


class TestDetails:
    def test_buyer_profile_without_credentials(self, client_for, admin_user, order_factory):
        order_factory()

        response = client_for(admin_user).get(f"{BASE}details/")

        assert response.status_code == 200
        [row] = response.json()
        assert row["item_count"] == 1
        assert row["buyer"]["full_name"] == "Bea Buyer"
        assert row["buyer"]["rank"] == "gold"
        assert "password" not in row["buyer"]

    def test_status_filter(self, client_for, admin_user, order_factory):
        order_factory()
        processing = order_factory(status=OrderStatus.PROCESSING)

        response = client_for(admin_user).get(f"{BASE}details/", {"status": "Processing"})

        assert [row["id"] for row in response.json()] == [processing.id]

    def test_min_items_filter(self, client_for, admin_user, order_factory):
        order_factory()
        response = client_for(admin_user).get(f"{BASE}details/", {"min_items": 2})
        assert response.json() == []

    def test_scoped_to_buyer(self, client_for, other_buyer, order_factory):
        order_factory()
        mine = order_factory(owner=other_buyer)

        response = client_for(other_buyer).get(f"{BASE}details/")

        assert [row["id"] for row in response.json()] == [mine.id]

    def test_invalid_status_filter(self, client_for, admin_user):
        response = client_for(admin_user).get(f"{BASE}details/", {"status": "Lost"})
        assert response.status_code == 400


class TestMyOrders:
    def test_lists_own_orders(self, client_for, buyer, other_buyer, order_factory):
        order = order_factory()
        order_factory(owner=other_buyer)

        response = client_for(buyer).get(f"{BASE}my-orders/")

        assert response.status_code == 200
        assert [row["id"] for row in response.json()] == [order.id]
        assert "items" not in response.json()[0]

    def test_buyer_cannot_target_someone_else(
        self, client_for, buyer, other_buyer, order_factory
    ):
        order_factory(owner=other_buyer)
        response = client_for(buyer).get(
            f"{BASE}my-orders/", {"buyer_id": other_buyer.id}
        )
        assert response.status_code == 403

    def test_admin_targets_buyer(self, client_for, admin_user, other_buyer, order_factory):
        order = order_factory(owner=other_buyer)

        response = client_for(admin_user).get(
            f"{BASE}my-orders/", {"buyer_id": other_buyer.id}
        )

        assert [row["id"] for row in response.json()] == [order.id]

    def test_seller_forbidden(self, client_for, seller):
        assert client_for(seller).get(f"{BASE}my-orders/").status_code == 403


class TestSellerOrders:
    def test_lists_orders_with_own_skus(
        self, client_for, seller, order_factory, other_sku
    ):
        order = order_factory()
        order_factory(barcode=other_sku.barcode)

        response = client_for(seller).get(f"{BASE}seller/")

        assert response.status_code == 200
        [row] = response.json()
        assert row["id"] == order.id
        assert row["buyer_name"] == "Bea Buyer"
        assert row["buyer_email"] == "buyer@example.com"
        assert row["product_names"] == "Wireless Mouse (Black)"

    def test_search_by_buyer_name(
        self, client_for, seller, other_buyer, order_factory
    ):
        order_factory()
        oscar = order_factory(owner=other_buyer)

        response = client_for(seller).get(f"{BASE}seller/", {"search": "oscar"})

        assert [row["id"] for row in response.json()] == [oscar.id]

    def test_limit_and_offset(self, client_for, seller, order_factory):
        for _ in range(3):
            order_factory()

        first = client_for(seller).get(f"{BASE}seller/", {"limit": 2}).json()
        rest = client_for(seller).get(f"{BASE}seller/", {"limit": 2, "offset": 2}).json()

        assert len(first) == 2
        assert len(rest) == 1
        assert {row["id"] for row in first}.isdisjoint({row["id"] for row in rest})

    def test_limit_out_of_range(self, client_for, seller):
        response = client_for(seller).get(f"{BASE}seller/", {"limit": 0})
        assert response.status_code == 400

    def test_seller_cannot_target_other_seller(self, client_for, seller, other_seller):
        response = client_for(seller).get(
            f"{BASE}seller/", {"seller_id": other_seller.id}
        )
        assert response.status_code == 403

    def test_admin_targets_seller(
        self, client_for, admin_user, other_seller, order_factory, other_sku
    ):
        order = order_factory(barcode=other_sku.barcode)

        response = client_for(admin_user).get(
            f"{BASE}seller/", {"seller_id": other_seller.id}
        )

        assert [row["id"] for row in response.json()] == [order.id]

    def test_buyer_forbidden(self, client_for, buyer):
        assert client_for(buyer).get(f"{BASE}seller/").status_code == 403


class TestTopSelling:
    URL = f"{BASE}reports/top-selling/"

    def test_counts_delivered_only(self, client_for, admin_user, order_factory):
        order_factory(status=OrderStatus.DELIVERED, quantity=3)
        order_factory(status=OrderStatus.PENDING, quantity=5)

        response = client_for(admin_user).get(self.URL)

        assert response.status_code == 200
        assert response.json() == [
            {
                "barcode": "SKU-0001",
                "name": "Wireless Mouse",
                "seller_id": response.json()[0]["seller_id"],
                "total_quantity_sold": 3,
            }
        ]

    def test_min_quantity(self, client_for, admin_user, order_factory):
        order_factory(status=OrderStatus.DELIVERED, quantity=3)
        response = client_for(admin_user).get(self.URL, {"min_quantity": 4})
        assert response.json() == []

    def test_seller_forced_to_own_skus(
        self, client_for, seller, other_seller, order_factory, other_sku
    ):
        order_factory(status=OrderStatus.DELIVERED)
        order_factory(status=OrderStatus.DELIVERED, barcode=other_sku.barcode)

        own = client_for(seller).get(self.URL).json()
        denied = client_for(seller).get(self.URL, {"seller_id": other_seller.id})

        assert [row["barcode"] for row in own] == ["SKU-0001"]
        assert denied.status_code == 403

    def test_buyer_may_filter_by_seller(
        self, client_for, buyer, other_seller, order_factory, other_sku
    ):
        order_factory(status=OrderStatus.DELIVERED)
        order_factory(status=OrderStatus.DELIVERED, barcode=other_sku.barcode)

        rows = client_for(buyer).get(self.URL, {"seller_id": other_seller.id}).json()

        assert [row["barcode"] for row in rows] == ["SKU-0002"]
