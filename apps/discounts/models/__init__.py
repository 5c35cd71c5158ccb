"""
Discount models module.
"""
from .discount_code import DiscountCode
from .discount_usage import DiscountUsage

__all__ = [
    'DiscountCode',
    'DiscountUsage',
]
