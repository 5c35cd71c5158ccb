"""
Order serializers module.

All serializers are exported from this module to maintain backward compatibility.
"""
from .order_serializers import (
    OrderItemSerializer, OrderStatusHistorySerializer, OrderSerializer,
    GuestOrderSerializer, OrderListSerializer, OrderCreateSerializer
)
from .order_action_serializers import (
    OrderCancelSerializer, OrderStatusUpdateSerializer,
    TrackOrderSerializer, DiscountValidateSerializer
)

__all__ = [
    'OrderItemSerializer',
    'OrderStatusHistorySerializer',
    'OrderSerializer',
    'GuestOrderSerializer',
    'OrderListSerializer',
    'OrderCreateSerializer',
    'OrderCancelSerializer',
    'OrderStatusUpdateSerializer',
    'TrackOrderSerializer',
    'DiscountValidateSerializer',
]
