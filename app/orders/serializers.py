"""
DRF serializers for the orders API.

Serializers:
    OrderSerializer: Read-only order representation
    OrderCreateSerializer: New order plus checkout provider
    OrderStatusUpdateSerializer: Role-gated status change
    OrderCancelSerializer: Cancellation reason
"""

from __future__ import annotations

from rest_framework import serializers

from orders.models import Order
from orders.states import OrderStatus, ProductType
from payments.state_machines import PaymentProvider


class OrderItemSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    product_type = serializers.ChoiceField(choices=ProductType.choices, default=ProductType.PHYSICAL)
    quantity = serializers.IntegerField(min_value=1, default=1)
    unit_price = serializers.DecimalField(max_digits=14, decimal_places=2, required=False)


class OrderSerializer(serializers.ModelSerializer):
    """
    Order as returned by every orders endpoint.

    Fee fields stay null until the order completes.
    """

    items = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "status",
            "payment_status",
            "total_amount",
            "platform_fee_amount",
            "seller_payout_amount",
            "seller",
            "event",
            "payment_method",
            "provider",
            "provider_reference",
            "items",
            "created_at",
            "paid_at",
            "completed_at",
            "cancelled_at",
            "dropoff_deadline",
            "pickup_deadline",
            "auto_cancel_reason",
        ]
        read_only_fields = fields

    def get_items(self, obj: Order) -> list[dict]:
        return obj.items


class OrderCreateSerializer(serializers.Serializer):
    """
    Request body for placing an order.

    Exactly one of seller_id/event_id is required; the service enforces it.
    """

    seller_id = serializers.IntegerField(required=False, allow_null=True)
    event_id = serializers.IntegerField(required=False, allow_null=True)
    total_amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    items = OrderItemSerializer(many=True, allow_empty=False)
    payment_method = serializers.CharField(max_length=30, required=False, allow_blank=True, default="")
    provider = serializers.ChoiceField(choices=PaymentProvider.choices, required=False)
    phone_number = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")

    def validate_items(self, items: list[dict]) -> list[dict]:
        # Stored in the JSON metadata column
        return [
            {key: str(value) if key == "unit_price" else value for key, value in item.items()}
            for item in items
        ]


class OrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class OrderCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")
