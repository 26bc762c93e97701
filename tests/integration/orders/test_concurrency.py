"""Concurrent claim integration tests.

Two shippers racing for the same ``Processing`` order: exactly one claim
wins, the other observes ``Dispatched`` and fails with
``InvalidOrderStatus``; no second claim row is ever written.

The threaded test needs committed data visible across connections, so it
uses ``TransactionTestCase`` on the file-backed test database; on SQLite the
claims queue on the ``BEGIN IMMEDIATE`` write lock.  The stale-read test
forces the losing interleaving deterministically.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.db import connections
from django.test import TransactionTestCase

from modules.accounts.constants import Role
from modules.accounts.dtos import Principal
from modules.accounts.models import User
from modules.catalog.models import ProductSKU
from modules.orders.constants import OrderStatus
from modules.orders.exceptions import InvalidOrderStatus, PersistenceError
from modules.orders.models import DeliveryClaim, Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.services import OrderService

logger = logging.getLogger(__name__)

NUM_SHIPPERS = 5


class TestConcurrentClaims(TransactionTestCase):
    """Prove a Processing order is claimed exactly once under concurrent load."""

    def setUp(self):
        buyer = User.objects.create_user(username="race-buyer", role=Role.BUYER)
        seller = User.objects.create_user(username="race-seller", role=Role.SELLER)
        ProductSKU.objects.create(
            barcode="RACE-SKU", name="Race Item", seller=seller, price=Decimal("5.00")
        )
        self.shippers = [
            User.objects.create_user(username=f"race-shipper-{i}", role=Role.SHIPPER)
            for i in range(NUM_SHIPPERS)
        ]
        order = OrderDjangoRepository().create(
            {
                "buyer_id": buyer.id,
                "address": "1 Race Road",
                "status": OrderStatus.PROCESSING,
                "items": [
                    {
                        "barcode": "RACE-SKU",
                        "variation_name": "Default",
                        "quantity": 1,
                        "price": Decimal("5.00"),
                    }
                ],
            }
        )
        self.order_id = order.id

    def _claim_in_thread(self, shipper: User, barrier: threading.Barrier) -> str:
        """Attempt a claim on the thread's own connection.

        Returns 'success', 'invalid' or 'persistence'.
        """
        service = OrderService(order_repository=OrderDjangoRepository())
        principal = Principal(id=shipper.id, role=Role.SHIPPER)
        try:
            barrier.wait()
            service.claim_order(principal, self.order_id)
            logger.warning("Shipper %s: claim succeeded", shipper.username)
            return "success"
        except InvalidOrderStatus:
            logger.warning("Shipper %s: InvalidOrderStatus (expected)", shipper.username)
            return "invalid"
        except PersistenceError:
            logger.exception("Shipper %s: storage failure", shipper.username)
            return "persistence"
        finally:
            connections.close_all()

    def test_exactly_one_claim_wins(self):
        results = []
        barrier = threading.Barrier(NUM_SHIPPERS)

        with ThreadPoolExecutor(max_workers=NUM_SHIPPERS) as pool:
            futures = [
                pool.submit(self._claim_in_thread, shipper, barrier)
                for shipper in self.shippers
            ]
            for future in as_completed(futures):
                results.append(future.result())

        self.assertEqual(results.count("success"), 1)
        self.assertEqual(results.count("invalid"), NUM_SHIPPERS - 1)
        self.assertNotIn("persistence", results)
        self.assertEqual(
            Order.objects.get(id=self.order_id).status, OrderStatus.DISPATCHED
        )
        self.assertEqual(DeliveryClaim.objects.filter(order_id=self.order_id).count(), 1)


@pytest.mark.integration
class TestStaleRead:
    def test_stale_status_cannot_double_claim(
        self, service, repository, order_factory, shipper, other_shipper, principal_of
    ):
        order = order_factory(status=OrderStatus.PROCESSING)
        stale = repository.get_by_id(order.id)
        service.claim_order(principal_of(shipper), order.id)

        # The second shipper still sees the pre-claim snapshot.
        with patch.object(repository, "get_for_update", return_value=stale):
            with pytest.raises(InvalidOrderStatus) as exc_info:
                service.claim_order(principal_of(other_shipper), order.id)

        assert exc_info.value.expected == ("Processing",)
        assert exc_info.value.actual == "Dispatched"
        assert DeliveryClaim.objects.filter(order_id=order.id).count() == 1
        assert DeliveryClaim.objects.get(order_id=order.id).shipper_id == shipper.id

    def test_stale_status_cannot_cancel_dispatched_order(
        self, service, repository, order_factory, buyer, shipper, principal_of
    ):
        order = order_factory(status=OrderStatus.PROCESSING)
        stale = repository.get_by_id(order.id)
        service.claim_order(principal_of(shipper), order.id)

        with patch.object(repository, "get_for_update", return_value=stale):
            with pytest.raises(InvalidOrderStatus) as exc_info:
                service.cancel_order(principal_of(buyer), order.id)

        assert exc_info.value.actual == "Dispatched"
        assert Order.objects.filter(id=order.id).exists()
