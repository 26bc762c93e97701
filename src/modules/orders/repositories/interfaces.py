"""Order repository interface (the Order Store contract).

Extends ``IRepository[Order]`` with the primitives the lifecycle service
composes: a unit-of-work boundary, row-locked reads, conditional status
writes, line-item total recomputation, delivery claims and the read
projections.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Collection, ContextManager, Dict, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import DeliveryClaim, Order


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The aggregate includes its OrderItem children and DeliveryClaim
    records.  Multi-statement writes must run inside ``atomic``.
    """

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @abstractmethod
    def atomic(self, operation: str, **context: Any) -> ContextManager[None]:
        """All-or-nothing transaction boundary for one logical operation.

        Storage failures inside the block roll back every write and are
        re-raised as ``PersistenceError``.
        """

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Insert an order and its items, then persist the recomputed total.

        ``data`` keys: ``buyer_id``, ``address``, ``status`` (optional) and
        ``items`` (non-empty list of dicts with ``barcode``,
        ``variation_name``, ``quantity``, ``price``).
        """

    @abstractmethod
    def update(self, order_id: str, data: Dict[str, Any]) -> int:
        """Write the supplied ``status``/``address``; ``None`` keeps the old value.

        Returns the number of rows written (0 when the order is absent).
        """

    @abstractmethod
    def delete(self, order_id: str, buyer_id: str, statuses: Collection[str]) -> int:
        """Delete the order owned by *buyer_id* if its status is in *statuses*."""

    @abstractmethod
    def transition_status(
        self, order_id: str, expected: Collection[str], new_status: str
    ) -> int:
        """Set *new_status* only if the current status is in *expected*."""

    @abstractmethod
    def set_status(self, order_id: str, new_status: str) -> int:
        """Unguarded status write (administrative override)."""

    @abstractmethod
    def recompute_total(self, order_id: str) -> Decimal:
        """Recompute ``total`` from the stored items and persist it."""

    @abstractmethod
    def add_delivery_claim(self, order_id: str, shipper_id: str) -> DeliveryClaim:
        """Bind *shipper_id* to the order (timestamps null)."""

    @abstractmethod
    def finish_delivery_claims(
        self, order_id: str, shipper_id: Optional[str], finished_at: datetime
    ) -> int:
        """Stamp ``finish_time`` on the order's claims (all shippers if ``None``)."""

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @abstractmethod
    def get_for_update(self, order_id: str) -> Optional[Order]:
        """Retrieve an order holding a row-level lock until the transaction ends."""

    @abstractmethod
    def current_status(self, order_id: str) -> Optional[str]:
        """Return the stored status, or ``None`` if the order is absent."""

    @abstractmethod
    def has_delivery_claim(self, order_id: str, shipper_id: str) -> bool:
        """``True`` if *shipper_id* claimed the order."""

    @abstractmethod
    def seller_has_items(self, order_id: str, seller_id: str) -> bool:
        """``True`` if at least one item's SKU belongs to *seller_id*."""

    @abstractmethod
    def list_for_buyer(self, buyer_id: str) -> List[Order]:
        """Orders placed by *buyer_id*, newest first."""

    @abstractmethod
    def list_details(
        self,
        status: Optional[str] = None,
        min_items: int = 0,
        scope: Optional[Dict[str, str]] = None,
    ) -> List[Order]:
        """Orders joined with the buyer profile, newest first."""

    @abstractmethod
    def list_for_seller(
        self,
        seller_id: str,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Orders containing *seller_id*'s SKUs with item count and product summary."""

    @abstractmethod
    def top_selling_products(
        self, min_quantity: int = 0, seller_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Quantity sold per SKU over delivered orders, best sellers first."""
