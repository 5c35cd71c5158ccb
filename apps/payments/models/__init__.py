"""
Payment models module.

All models are exported from this module to maintain backward compatibility.
"""
from .payment_transaction import PaymentTransaction
from .payment_callback import PaymentCallback

__all__ = [
    'PaymentTransaction',
    'PaymentCallback',
]
