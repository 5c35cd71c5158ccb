"""
Payment services module.

All services are exported from this module to maintain backward compatibility.
"""
from .vnpay_service import VNPayService
from .payment_service import PaymentService

__all__ = [
    'VNPayService',
    'PaymentService',
]
