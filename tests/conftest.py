from decimal import Decimal

import pytest

from rest_framework.test import APIClient

from modules.accounts.constants import Role
from modules.accounts.dtos import Principal
from modules.accounts.models import User
from modules.catalog.models import ProductSKU
from modules.orders.constants import OrderStatus
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


def make_user(username: str, role: str, **extra) -> User:
    return User.objects.create_user(
        username=username,
        password="testpass123",
        email=f"{username}@example.com",
        role=role,
        **extra,
    )


@pytest.fixture()
def buyer():
    return make_user(
        "buyer",
        Role.BUYER,
        full_name="Bea Buyer",
        gender="female",
        address="12 Elm Street",
        rank="gold",
    )


@pytest.fixture()
def other_buyer():
    return make_user("otherbuyer", Role.BUYER, full_name="Oscar Other")


@pytest.fixture()
def seller():
    return make_user("seller", Role.SELLER, full_name="Sam Seller")


@pytest.fixture()
def other_seller():
    return make_user("otherseller", Role.SELLER, full_name="Sia Seller")


@pytest.fixture()
def shipper():
    return make_user("shipper", Role.SHIPPER, full_name="Shay Shipper")


@pytest.fixture()
def other_shipper():
    return make_user("othershipper", Role.SHIPPER, full_name="Otto Shipper")


@pytest.fixture()
def admin_user():
    return make_user("admin", Role.ADMIN, full_name="Ada Admin")


@pytest.fixture()
def principal_of():
    """Build the service-level ``Principal`` for a user."""

    def _principal(user: User) -> Principal:
        return Principal(id=user.id, role=user.role)

    return _principal


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@pytest.fixture()
def sku(seller):
    return ProductSKU.objects.create(
        barcode="SKU-0001",
        name="Wireless Mouse",
        seller=seller,
        price=Decimal("10.50"),
    )


@pytest.fixture()
def other_sku(other_seller):
    return ProductSKU.objects.create(
        barcode="SKU-0002",
        name="Desk Lamp",
        seller=other_seller,
        price=Decimal("29.99"),
    )


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@pytest.fixture()
def repository():
    return OrderDjangoRepository()


@pytest.fixture()
def service(repository):
    return OrderService(order_repository=repository)


@pytest.fixture()
def order_factory(repository, buyer, sku):
    """Create an order through the store, then force its status."""

    def _make(
        status: str = OrderStatus.PENDING,
        owner: User = None,
        barcode: str = None,
        quantity: int = 2,
        price: str = "10.50",
        variation_name: str = "Black",
        address: str = "12 Elm Street",
    ):
        order = repository.create(
            {
                "buyer_id": (owner or buyer).id,
                "address": address,
                "items": [
                    {
                        "barcode": barcode or sku.barcode,
                        "variation_name": variation_name,
                        "quantity": quantity,
                        "price": Decimal(price),
                    }
                ],
            }
        )
        if status != OrderStatus.PENDING:
            repository.set_status(order.id, status)
        return repository.get_by_id(order.id)

    return _make
