"""Catalog SKU projection.

The catalog service owns products; the order subsystem only needs the
SKU barcode, its display name and the seller that owns it (seller
ownership checks, seller order summaries, top-selling report).
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models


class ProductSKU(models.Model):
    barcode = models.CharField(primary_key=True, max_length=100)
    name = models.CharField(max_length=255)
    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="skus",
    )
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "product_skus"
        ordering = ["name"]
        indexes = [
            models.Index(fields=["seller"], name="product_skus_seller_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.barcode} - {self.name}"
