"""
Payment views module.

All views are exported from this module to maintain backward compatibility.
"""
from .payment_transaction_views import create_vnpay_payment, get_payment_status
from .vnpay_callback_views import vnpay_return, vnpay_ipn

__all__ = [
    'create_vnpay_payment',
    'get_payment_status',
    'vnpay_return',
    'vnpay_ipn',
]
