"""Order, OrderItem and DeliveryClaim models.

Rules carried by the schema:
- ``Order.total`` is derived: always the sum of ``price * quantity`` over
  the order's items.  Only the Order Store writes it, after every change
  to the items.
- ``Order.buyer`` and ``Order.created_at`` are immutable after creation.
- Items and delivery claims cannot outlive their order (CASCADE).
- ``OrderItem.price`` is a snapshot taken at creation; it is never re-read
  from the catalog.
- ``OrderItem.sku`` points at the catalog without a database constraint:
  the catalog is owned by another service, the barcode is what the order
  keeps.
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from modules.core.models import BaseModel
from modules.orders.constants import OrderStatus


class Order(BaseModel):
    """Order aggregate root."""

    buyer: models.ForeignKey = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders",
    )
    address: models.CharField = models.CharField(max_length=255)
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    total: models.DecimalField = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        editable=False,
    )

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
            models.Index(fields=["buyer", "-created_at"], name="orders_buyer_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.id} ({self.status})"


class OrderItem(BaseModel):
    """Line item: one SKU variation, quantity and frozen unit price."""

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    sku: models.ForeignKey = models.ForeignKey(
        "catalog.ProductSKU",
        to_field="barcode",
        db_column="barcode",
        db_constraint=False,
        on_delete=models.DO_NOTHING,
        related_name="order_items",
    )
    variation_name: models.CharField = models.CharField(max_length=100)
    quantity: models.PositiveIntegerField = models.PositiveIntegerField()
    price: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
    )

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(price__gt=0),
                name="order_items_price_positive",
            ),
        ]

    @property
    def barcode(self) -> str:
        return self.sku_id

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity

    def __str__(self) -> str:
        return f"{self.sku_id} [{self.variation_name}] x{self.quantity}"


class DeliveryClaim(BaseModel):
    """A shipper's binding to an order it claimed for delivery.

    ``departure_time`` and ``finish_time`` are null when the claim is made;
    ``finish_time`` is stamped when the shipper confirms the delivery.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="delivery_claims",
    )
    shipper: models.ForeignKey = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="delivery_claims",
    )
    departure_time: models.DateTimeField = models.DateTimeField(
        null=True, blank=True, default=None
    )
    finish_time: models.DateTimeField = models.DateTimeField(
        null=True, blank=True, default=None
    )
    shipping_fee: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        default=None,
    )

    class Meta:
        db_table = "delivery_claims"
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["order", "shipper"], name="claims_order_shipper_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.order_id} <- {self.shipper_id}"
