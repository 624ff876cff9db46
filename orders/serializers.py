"""
Orders App Serializers - Orders & Delivery Items
"""

from rest_framework import serializers

from core.serializers import AddressSerializer
from .models import Order, DeliveryItem, MenuItem


class MenuItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = MenuItem
        fields = ['id', 'name', 'price']


class DeliveryItemSerializer(serializers.ModelSerializer):
    """Full serializer for DeliveryItem model."""

    menu_item = MenuItemSerializer(read_only=True)
    address = AddressSerializer(read_only=True)
    customer_name = serializers.CharField(source='user.full_name', read_only=True)
    customer_email = serializers.CharField(source='user.email', read_only=True)
    customer_phone = serializers.CharField(source='user.phone_number', read_only=True)

    class Meta:
        model = DeliveryItem
        fields = [
            'id', 'order', 'menu_item', 'quantity',
            'delivery_date', 'delivery_time_slot', 'status', 'address',
            'customer_name', 'customer_email', 'customer_phone',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Order with its delivery items."""

    delivery_address = AddressSerializer(read_only=True)
    delivery_items = DeliveryItemSerializer(many=True, read_only=True)
    customer_name = serializers.CharField(source='user.full_name', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'customer_name', 'company', 'order_date', 'order_times',
            'total_price', 'status', 'delivery_address', 'delivery_items',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order listings."""

    item_count = serializers.IntegerField(source='delivery_items.count', read_only=True)

    class Meta:
        model = Order
        fields = ['id', 'order_date', 'order_times', 'total_price', 'status', 'item_count', 'created_at']


class OrderItemEntrySerializer(serializers.Serializer):
    """One menu line of a subscription order."""

    menu_item_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1, default=1)
    # Unknown meal types fall back to breakfast
    meal_type = serializers.CharField(required=False, allow_blank=True, default='breakfast')


class OrderCreateSerializer(serializers.Serializer):
    """Serializer for placing a subscription order."""

    order_date = serializers.DateField(required=False)
    delivery_address_id = serializers.UUIDField()
    order_items = OrderItemEntrySerializer(many=True, allow_empty=False)
    selected_dates = serializers.ListField(child=serializers.DateField(), allow_empty=False)
    skip_meals = serializers.DictField(
        child=serializers.DictField(child=serializers.BooleanField()),
        required=False,
        default=dict,
    )
    delivery_locations = serializers.DictField(
        child=serializers.UUIDField(allow_null=True),
        required=False,
        default=dict,
    )


class OrderConfirmSerializer(serializers.Serializer):
    """Post-payment schedule, only needed when the order has no items yet."""

    order_times = serializers.ListField(child=serializers.CharField(), required=False)
    selected_dates = serializers.ListField(child=serializers.DateField(), required=False)
    order_items = OrderItemEntrySerializer(many=True, required=False)
    skip_meals = serializers.DictField(
        child=serializers.DictField(child=serializers.BooleanField()),
        required=False,
        default=dict,
    )
    delivery_locations = serializers.DictField(
        child=serializers.UUIDField(allow_null=True),
        required=False,
        default=dict,
    )


class DeliveryItemStatusSerializer(serializers.Serializer):
    status = serializers.CharField()
