"""
Product models module.

All models are exported from this module to maintain backward compatibility.
"""
from .product import Product
from .variant import ProductVariant
from .stock_movement import StockMovement

__all__ = [
    'Product',
    'ProductVariant',
    'StockMovement',
]
