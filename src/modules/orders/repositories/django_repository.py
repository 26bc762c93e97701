"""Django ORM implementation of the Order repository (the Order Store).

Satisfies ``IOrderRepository`` using Django's QuerySet API on an
explicitly injected database alias: every query and every transaction of
an instance runs on ``using``.

All multi-statement writes run inside ``atomic``; a ``DatabaseError`` at
any step rolls back everything written so far in the operation and
surfaces as ``PersistenceError`` after being logged with full detail.

Status writes are conditional (``UPDATE ... WHERE status IN (...)``), so a
status check made earlier in the same transaction cannot be invalidated
by a concurrent commit.  On SQLite, which ignores ``SELECT ... FOR UPDATE``,
settings open every transaction with ``BEGIN IMMEDIATE`` so concurrent
units of work serialize on the database write lock.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Collection, Dict, Iterator, List, Optional

import structlog
from django.db import DatabaseError, transaction
from django.db.models import (
    Count,
    DecimalField,
    Exists,
    ExpressionWrapper,
    F,
    OuterRef,
    Q,
    Sum,
)
from django.utils import timezone

from modules.catalog.models import ProductSKU
from modules.orders.constants import SOLD_STATES, OrderStatus
from modules.orders.exceptions import InvalidOrderData, PersistenceError
from modules.orders.models import DeliveryClaim, Order, OrderItem
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

REQUIRED_ORDER_FIELDS = ("buyer_id", "address")
REQUIRED_ITEM_FIELDS = ("barcode", "variation_name", "quantity", "price")

CENTS = Decimal("0.01")


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    def __init__(self, using: str = "default") -> None:
        self._using = using

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @contextmanager
    def atomic(self, operation: str, **context: Any) -> Iterator[None]:
        """Run the block in one transaction on this repository's alias.

        Django's atomic block performs the rollback; if the rollback itself
        fails Django marks the connection unusable and the original error
        is still the one raised here.
        """
        try:
            with transaction.atomic(using=self._using):
                yield
        except DatabaseError as exc:
            logger.error(
                "order.persistence_failed",
                operation=operation,
                error_type=type(exc).__name__,
                error=str(exc),
                **context,
            )
            raise PersistenceError(f"Failed to {operation} order.") from exc

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    def create(self, data: Dict[str, Any]) -> Order:
        """Insert the order with ``total=0``, its items, then the real total.

        Raises:
            InvalidOrderData: a required order or item field is missing.
            PersistenceError: any statement failed; nothing was written.
        """
        _require_fields(data, REQUIRED_ORDER_FIELDS)
        items = data.get("items") or []
        if not items:
            raise InvalidOrderData("An order needs at least one line item.")
        for item_data in items:
            _require_fields(item_data, REQUIRED_ITEM_FIELDS)

        with self.atomic("create", buyer_id=data["buyer_id"]):
            order = Order(
                buyer_id=data["buyer_id"],
                address=data["address"],
                status=data.get("status") or OrderStatus.PENDING,
                total=Decimal("0.00"),
            )
            order.save(using=self._using, force_insert=True)

            for item_data in items:
                OrderItem(
                    order=order,
                    sku_id=item_data["barcode"],
                    variation_name=item_data["variation_name"],
                    quantity=item_data["quantity"],
                    price=item_data["price"],
                ).save(using=self._using, force_insert=True)

            order.total = self.recompute_total(order.id)

        logger.info(
            "order.created",
            order_id=order.id,
            buyer_id=order.buyer_id,
            item_count=len(items),
            total=str(order.total),
        )
        return order

    # ------------------------------------------------------------------
    # Update / Delete
    # ------------------------------------------------------------------

    def update(self, order_id: str, data: Dict[str, Any]) -> int:
        fields = {
            name: data[name]
            for name in ("status", "address")
            if data.get(name) is not None
        }
        with self.atomic("update", order_id=order_id):
            rows = (
                Order.objects.using(self._using)
                .filter(id=order_id)
                .update(updated_at=timezone.now(), **fields)
            )
        logger.info("order.updated", order_id=order_id, fields=sorted(fields), rows=rows)
        return rows

    def delete(self, order_id: str, buyer_id: str, statuses: Collection[str]) -> int:
        """Delete the order (items and claims cascade) within its owner/status scope."""
        with self.atomic("delete", order_id=order_id):
            _, per_model = (
                Order.objects.using(self._using)
                .filter(id=order_id, buyer_id=buyer_id, status__in=list(statuses))
                .delete()
            )
        rows = per_model.get(Order._meta.label, 0)
        logger.info("order.deleted", order_id=order_id, rows=rows)
        return rows

    # ------------------------------------------------------------------
    # Status writes
    # ------------------------------------------------------------------

    def transition_status(
        self, order_id: str, expected: Collection[str], new_status: str
    ) -> int:
        if isinstance(expected, str):
            expected = (expected,)
        return (
            Order.objects.using(self._using)
            .filter(id=order_id, status__in=list(expected))
            .update(status=new_status, updated_at=timezone.now())
        )

    def set_status(self, order_id: str, new_status: str) -> int:
        return (
            Order.objects.using(self._using)
            .filter(id=order_id)
            .update(status=new_status, updated_at=timezone.now())
        )

    def recompute_total(self, order_id: str) -> Decimal:
        line_total = ExpressionWrapper(
            F("price") * F("quantity"),
            output_field=DecimalField(max_digits=12, decimal_places=2),
        )
        total = (
            OrderItem.objects.using(self._using)
            .filter(order_id=order_id)
            .aggregate(total=Sum(line_total))["total"]
        )
        total = Decimal(total or 0).quantize(CENTS)
        Order.objects.using(self._using).filter(id=order_id).update(
            total=total, updated_at=timezone.now()
        )
        return total

    # ------------------------------------------------------------------
    # Delivery claims
    # ------------------------------------------------------------------

    def add_delivery_claim(self, order_id: str, shipper_id: str) -> DeliveryClaim:
        claim = DeliveryClaim(order_id=order_id, shipper_id=shipper_id)
        claim.save(using=self._using, force_insert=True)
        return claim

    def finish_delivery_claims(
        self, order_id: str, shipper_id: Optional[str], finished_at: datetime
    ) -> int:
        queryset = DeliveryClaim.objects.using(self._using).filter(order_id=order_id)
        if shipper_id is not None:
            queryset = queryset.filter(shipper_id=shipper_id)
        return queryset.update(finish_time=finished_at, updated_at=timezone.now())

    def has_delivery_claim(self, order_id: str, shipper_id: str) -> bool:
        return (
            DeliveryClaim.objects.using(self._using)
            .filter(order_id=order_id, shipper_id=shipper_id)
            .exists()
        )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with its buyer and items eager-loaded."""
        return (
            Order.objects.using(self._using)
            .select_related("buyer")
            .prefetch_related("items")
            .filter(id=id)
            .first()
        )

    def get_for_update(self, order_id: str) -> Optional[Order]:
        """Retrieve an order with a row-level lock (SELECT FOR UPDATE).

        Must be called inside ``atomic``; the lock is held until it exits.
        """
        return (
            Order.objects.using(self._using)
            .select_for_update()
            .filter(id=order_id)
            .first()
        )

    def current_status(self, order_id: str) -> Optional[str]:
        return (
            Order.objects.using(self._using)
            .filter(id=order_id)
            .values_list("status", flat=True)
            .first()
        )

    def seller_has_items(self, order_id: str, seller_id: str) -> bool:
        return (
            OrderItem.objects.using(self._using)
            .filter(order_id=order_id, sku__seller_id=seller_id)
            .exists()
        )

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders with optional Django ORM look-ups (e.g. ``{"status": ...}``)."""
        queryset = Order.objects.using(self._using).prefetch_related("items")
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def list_for_buyer(self, buyer_id: str) -> List[Order]:
        return list(
            Order.objects.using(self._using)
            .filter(buyer_id=buyer_id)
            .order_by("-created_at", "-id")
        )

    def list_details(
        self,
        status: Optional[str] = None,
        min_items: int = 0,
        scope: Optional[Dict[str, str]] = None,
    ) -> List[Order]:
        """Orders joined with the buyer profile and annotated with ``item_count``.

        ``scope`` narrows the rows to one principal: ``{"buyer_id": ...}``,
        ``{"seller_id": ...}`` or ``{"shipper_id": ...}``.
        """
        queryset = (
            Order.objects.using(self._using)
            .select_related("buyer")
            .annotate(item_count=Count("items"))
        )
        queryset = self._apply_scope(queryset, scope or {})
        if status:
            queryset = queryset.filter(status=status)
        if min_items > 0:
            queryset = queryset.filter(item_count__gte=min_items)
        return list(queryset.order_by("-created_at", "-id"))

    def list_for_seller(
        self,
        seller_id: str,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        queryset = self._apply_scope(
            Order.objects.using(self._using).select_related("buyer"),
            {"seller_id": seller_id},
        )
        if status:
            queryset = queryset.filter(status=status)
        if search:
            queryset = queryset.filter(
                Q(id__icontains=search)
                | Q(buyer__full_name__icontains=search)
                | Q(buyer__username__icontains=search)
            )
        page = list(
            queryset.prefetch_related("items").order_by("-created_at", "-id")[
                offset : offset + limit
            ]
        )

        barcodes = {item.sku_id for order in page for item in order.items.all()}
        names = dict(
            ProductSKU.objects.using(self._using)
            .filter(barcode__in=barcodes)
            .values_list("barcode", "name")
        )

        rows: List[Dict[str, Any]] = []
        for order in page:
            items = list(order.items.all())
            rows.append(
                {
                    "id": order.id,
                    "buyer_id": order.buyer_id,
                    "status": order.status,
                    "total": order.total,
                    "address": order.address,
                    "created_at": order.created_at,
                    "buyer_name": order.buyer.full_name
                    or order.buyer.username
                    or "N/A",
                    "buyer_email": order.buyer.email,
                    "item_count": len(items),
                    "product_names": ", ".join(
                        f"{names.get(item.sku_id, item.sku_id)} ({item.variation_name})"
                        for item in items
                    ),
                }
            )
        return rows

    def top_selling_products(
        self, min_quantity: int = 0, seller_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        queryset = OrderItem.objects.using(self._using).filter(
            order__status__in=list(SOLD_STATES)
        )
        if seller_id:
            queryset = queryset.filter(sku__seller_id=seller_id)
        report = queryset.values(
            barcode=F("sku__barcode"),
            name=F("sku__name"),
            seller_id=F("sku__seller_id"),
        ).annotate(total_quantity_sold=Sum("quantity"))
        if min_quantity > 0:
            report = report.filter(total_quantity_sold__gte=min_quantity)
        return list(report.order_by("-total_quantity_sold", "barcode"))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _apply_scope(self, queryset, scope: Dict[str, str]):
        if "buyer_id" in scope:
            queryset = queryset.filter(buyer_id=scope["buyer_id"])
        if "seller_id" in scope:
            queryset = queryset.filter(
                Exists(
                    OrderItem.objects.using(self._using).filter(
                        order=OuterRef("pk"), sku__seller_id=scope["seller_id"]
                    )
                )
            )
        if "shipper_id" in scope:
            queryset = queryset.filter(
                Exists(
                    DeliveryClaim.objects.using(self._using).filter(
                        order=OuterRef("pk"), shipper_id=scope["shipper_id"]
                    )
                )
            )
        return queryset


def _require_fields(data: Dict[str, Any], fields: tuple) -> None:
    missing = [
        name
        for name in fields
        if data.get(name) is None
        or (isinstance(data.get(name), str) and not data[name].strip())
    ]
    if missing:
        raise InvalidOrderData(f"Missing required fields: {', '.join(missing)}.")
