"""
Order models module.

All models are exported from this module to maintain backward compatibility.
"""
from .order import Order
from .order_item import OrderItem
from .status_history import OrderStatusHistory
from .order_number_sequence import OrderNumberSequence

__all__ = [
    'Order',
    'OrderItem',
    'OrderStatusHistory',
    'OrderNumberSequence',
]
