"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``CreateOrderDTO``: input for order creation (one line item per call).
- ``UpdateOrderDTO``: input for status/address changes by buyer or admin.
- ``SellerOrderFiltersDTO``: status/search filters and offset/limit window.
- ``OrderSummaryDTO``, ``OrderDetailDTO``, ``SellerOrderDTO``,
  ``TopSellingProductDTO``: read projections.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from modules.accounts.dtos import BuyerProfileDTO
from modules.orders.constants import SELLER_ORDERS_DEFAULT_LIMIT, OrderStatus

if TYPE_CHECKING:
    from modules.orders.models import Order


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise ValueError(f"{field} is required.")
    return value.strip()


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderDTO(BaseModel):
    """Immutable DTO for order creation requests.

    The caller supplies the SKU, its variation, the quantity and the unit
    price to freeze on the line item.  ``status`` defaults to ``Pending``.
    """

    model_config = ConfigDict(frozen=True)

    address: str
    quantity: int
    price: Decimal
    barcode: str
    variation_name: str
    status: OrderStatus = OrderStatus.PENDING

    @field_validator("address", "barcode", "variation_name")
    @classmethod
    def text_must_be_present(cls, v: str, info) -> str:
        return _require_text(v, info.field_name)

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v

    @field_validator("price")
    @classmethod
    def price_must_be_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("Price must be greater than zero.")
        return v


class UpdateOrderDTO(BaseModel):
    """Immutable DTO for updateOrder: at least one field must be given."""

    model_config = ConfigDict(frozen=True)

    new_status: Optional[OrderStatus] = None
    new_address: Optional[str] = None

    @field_validator("new_address")
    @classmethod
    def address_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _require_text(v, "new_address")

    @model_validator(mode="after")
    def at_least_one_field(self):
        if self.new_status is None and self.new_address is None:
            raise ValueError("Provide new_status or new_address.")
        return self


class SellerOrderFiltersDTO(BaseModel):
    """Filters for the seller order listing.

    ``seller_id`` is only honoured for admins; sellers always see their own.
    """

    model_config = ConfigDict(frozen=True)

    status: Optional[OrderStatus] = None
    search: Optional[str] = None
    limit: int = Field(default=SELLER_ORDERS_DEFAULT_LIMIT, ge=1, le=100)
    offset: int = Field(default=0, ge=0)
    seller_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class OrderSummaryDTO(BaseModel):
    """Order row without relations (buyer listing)."""

    model_config = ConfigDict(frozen=True)

    id: str
    buyer_id: str
    status: str
    total: Decimal
    address: str
    created_at: datetime

    @classmethod
    def from_entity(cls, order: Order) -> OrderSummaryDTO:
        return cls(
            id=order.id,
            buyer_id=order.buyer_id,
            status=order.status,
            total=order.total,
            address=order.address,
            created_at=order.created_at,
        )


class OrderDetailDTO(OrderSummaryDTO):
    """Order row joined with the buyer's public profile."""

    item_count: int
    buyer: BuyerProfileDTO

    @classmethod
    def from_entity(cls, order: Order) -> OrderDetailDTO:
        """Assumes ``buyer`` is selected and ``item_count`` annotated."""
        return cls(
            id=order.id,
            buyer_id=order.buyer_id,
            status=order.status,
            total=order.total,
            address=order.address,
            created_at=order.created_at,
            item_count=getattr(order, "item_count", 0),
            buyer=BuyerProfileDTO.from_entity(order.buyer),
        )


class SellerOrderDTO(OrderSummaryDTO):
    buyer_name: str
    buyer_email: str
    item_count: int
    product_names: str


class TopSellingProductDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    barcode: str
    name: str
    seller_id: str
    total_quantity_sold: int
