"""
Order action serializers for cancel, status, tracking and discount preview.
"""
from rest_framework import serializers

from .. import state_machine


class OrderCancelSerializer(serializers.Serializer):
    """Serializer for order cancellation"""

    reason = serializers.CharField(max_length=500, required=False, allow_blank=True)


class OrderStatusUpdateSerializer(serializers.Serializer):
    """Serializer for admin status updates"""

    status = serializers.ChoiceField(choices=list(state_machine.TARGET_TO_EVENT))
    note = serializers.CharField(max_length=500, required=False, allow_blank=True)


class TrackOrderSerializer(serializers.Serializer):
    """Serializer for guest order tracking"""

    order_number = serializers.CharField(max_length=20)
    email = serializers.EmailField()


class DiscountValidateSerializer(serializers.Serializer):
    """Serializer for discount code preview"""

    code = serializers.CharField(max_length=20)
    subtotal = serializers.DecimalField(max_digits=16, decimal_places=2, min_value=0)
