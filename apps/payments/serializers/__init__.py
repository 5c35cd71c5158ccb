"""
Payment serializers module.

All serializers are exported from this module to maintain backward compatibility.
"""
from .payment_serializers import PaymentCreateSerializer, PaymentTransactionSerializer

__all__ = [
    'PaymentCreateSerializer',
    'PaymentTransactionSerializer',
]
