"""
Order serializers for list, detail, and create operations.
"""
from rest_framework import serializers

from ..models import Order, OrderItem, OrderStatusHistory


class OrderItemSerializer(serializers.ModelSerializer):
    """Serializer for order items"""

    class Meta:
        model = OrderItem
        fields = [
            'id', 'product', 'variant', 'product_name', 'variant_name', 'sku',
            'quantity', 'unit_price', 'total_price', 'image_url'
        ]


class OrderStatusHistorySerializer(serializers.ModelSerializer):
    """Serializer for status history rows"""

    class Meta:
        model = OrderStatusHistory
        fields = ['status', 'note', 'actor', 'actor_label', 'created_at']


class OrderSerializer(serializers.ModelSerializer):
    """Full order detail"""

    items = OrderItemSerializer(many=True, read_only=True)
    status_history = OrderStatusHistorySerializer(many=True, read_only=True)
    discount_code = serializers.CharField(source='discount_code_value', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'user', 'customer_name', 'customer_email',
            'customer_phone', 'shipping_address', 'items', 'subtotal',
            'discount_amount', 'discount_code', 'loyalty_points_used',
            'loyalty_discount', 'shipping_fee', 'tax_amount', 'total_amount',
            'points_earned', 'status', 'payment_method', 'payment_status',
            'payment_info', 'note', 'internal_note', 'status_history',
            'paid_at', 'confirmed_at', 'shipped_at', 'delivered_at',
            'cancelled_at', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class GuestOrderSerializer(OrderSerializer):
    """Customer-facing order detail, without account or staff fields"""

    class Meta(OrderSerializer.Meta):
        fields = [
            field for field in OrderSerializer.Meta.fields
            if field not in ('user', 'internal_note', 'payment_info')
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Compact serializer for order lists"""

    items = OrderItemSerializer(many=True, read_only=True)
    item_count = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'customer_name', 'customer_email',
            'total_amount', 'status', 'payment_method', 'payment_status',
            'items', 'item_count', 'created_at'
        ]

    def get_item_count(self, obj):
        """Get total quantity of goods in order"""
        return sum(item.quantity for item in obj.items.all())


class ShippingAddressSerializer(serializers.Serializer):
    """Shipping address snapshot"""

    address_line1 = serializers.CharField(max_length=255)
    address_line2 = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    ward = serializers.CharField(max_length=100)
    district = serializers.CharField(max_length=100)
    city = serializers.CharField(max_length=100)
    postal_code = serializers.CharField(max_length=20, required=False, allow_blank=True, default='')


class OrderItemInputSerializer(serializers.Serializer):
    """Serializer for one cart line"""

    product_id = serializers.IntegerField()
    variant_id = serializers.IntegerField(required=False, allow_null=True)
    quantity = serializers.IntegerField(min_value=1)


class OrderCreateSerializer(serializers.Serializer):
    """Serializer for checkout requests"""

    customer_name = serializers.CharField(max_length=100)
    customer_email = serializers.EmailField()
    customer_phone = serializers.CharField(max_length=20)
    shipping_address = ShippingAddressSerializer()
    items = OrderItemInputSerializer(many=True)
    payment_method = serializers.ChoiceField(choices=Order.PAYMENT_METHOD_CHOICES, default=Order.PAYMENT_METHOD_COD)
    discount_code = serializers.CharField(max_length=20, required=False, allow_blank=True)
    loyalty_points_used = serializers.IntegerField(min_value=0, required=False, default=0)
    note = serializers.CharField(max_length=1000, required=False, allow_blank=True)

    def validate_items(self, value):
        """Validate cart items"""
        if not value:
            raise serializers.ValidationError("Order must contain at least one item")
        return value
