"""
Discount services module.
"""
from .discount_service import DiscountQuote, DiscountService

__all__ = [
    'DiscountQuote',
    'DiscountService',
]
