"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.

Output serializers list their fields explicitly; nothing from the user
record beyond the public profile ever reaches a response.
"""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from modules.orders.constants import SELLER_ORDERS_DEFAULT_LIMIT, OrderStatus
from modules.orders.models import Order, OrderItem

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CreateOrderSerializer(serializers.Serializer):
    """Validates the order creation request payload (one line item)."""

    address = serializers.CharField(max_length=255)
    quantity = serializers.IntegerField(min_value=1)
    price = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal("0.01")
    )
    barcode = serializers.CharField(max_length=100)
    variation_name = serializers.CharField(max_length=100)
    status = serializers.ChoiceField(
        choices=OrderStatus.choices, required=False, default=OrderStatus.PENDING
    )


class UpdateOrderSerializer(serializers.Serializer):
    new_status = serializers.ChoiceField(choices=OrderStatus.choices, required=False)
    new_address = serializers.CharField(max_length=255, required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Provide new_status or new_address.")
        return attrs


class UpdateOrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)


class OrderDetailsQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices, required=False)
    min_items = serializers.IntegerField(min_value=0, required=False, default=0)


class BuyerOrdersQuerySerializer(serializers.Serializer):
    buyer_id = serializers.CharField(max_length=100, required=False)


class SellerOrdersQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices, required=False)
    search = serializers.CharField(max_length=100, required=False)
    limit = serializers.IntegerField(
        min_value=1, max_value=100, required=False, default=SELLER_ORDERS_DEFAULT_LIMIT
    )
    offset = serializers.IntegerField(min_value=0, required=False, default=0)
    seller_id = serializers.CharField(max_length=100, required=False)


class TopSellingQuerySerializer(serializers.Serializer):
    min_quantity = serializers.IntegerField(min_value=0, required=False, default=0)
    seller_id = serializers.CharField(max_length=100, required=False)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    """Read serializer for order items with their frozen price."""

    barcode = serializers.CharField(read_only=True)
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "barcode",
            "variation_name",
            "quantity",
            "price",
            "subtotal",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for orders with nested items."""

    items = OrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "buyer_id",
            "address",
            "status",
            "total",
            "created_at",
            "updated_at",
            "items",
        ]
        read_only_fields = fields


class OrderSummarySerializer(serializers.Serializer):
    """Order row without relations."""

    id = serializers.CharField()
    buyer_id = serializers.CharField()
    status = serializers.CharField()
    total = serializers.DecimalField(max_digits=12, decimal_places=2)
    address = serializers.CharField()
    created_at = serializers.DateTimeField()


class BuyerProfileSerializer(serializers.Serializer):
    id = serializers.CharField()
    username = serializers.CharField()
    full_name = serializers.CharField()
    email = serializers.EmailField()
    gender = serializers.CharField()
    age = serializers.IntegerField(allow_null=True)
    date_of_birth = serializers.DateField(allow_null=True)
    address = serializers.CharField()
    rank = serializers.CharField()


class OrderDetailSerializer(OrderSummarySerializer):
    item_count = serializers.IntegerField()
    buyer = BuyerProfileSerializer()


class SellerOrderSerializer(OrderSummarySerializer):
    buyer_name = serializers.CharField()
    buyer_email = serializers.CharField()
    item_count = serializers.IntegerField()
    product_names = serializers.CharField()


class TopSellingProductSerializer(serializers.Serializer):
    barcode = serializers.CharField()
    name = serializers.CharField()
    seller_id = serializers.CharField()
    total_quantity_sold = serializers.IntegerField()
