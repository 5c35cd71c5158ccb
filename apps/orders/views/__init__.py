"""
Order views module.

All views are exported from this module to maintain backward compatibility.
"""
from .order_views import CreateOrderView, GetMyOrderView, GetOrderDetailView, TrackOrderView
from .order_actions import CancelOrderView, ValidateDiscountView
from .admin_order_views import AdminGetAllOrderView, AdminUpdateOrderStatusView

__all__ = [
    'CreateOrderView',
    'GetMyOrderView',
    'GetOrderDetailView',
    'TrackOrderView',
    'CancelOrderView',
    'ValidateDiscountView',
    'AdminGetAllOrderView',
    'AdminUpdateOrderStatusView',
]
