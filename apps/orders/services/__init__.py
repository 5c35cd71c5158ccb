"""
Order services module.

All services are exported from this module to maintain backward compatibility.
"""
from .pricing_service import PriceBreakdown, PricedLine, PricingService
from .order_status_service import OrderStatusService
from .notification_service import OrderNotificationService
from .order_service import OrderService

__all__ = [
    'PriceBreakdown',
    'PricedLine',
    'PricingService',
    'OrderStatusService',
    'OrderNotificationService',
    'OrderService',
]
