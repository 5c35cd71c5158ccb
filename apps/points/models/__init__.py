"""
Points models module.

All models are exported from this module to maintain backward compatibility.
"""
from .account import PointsAccount
from .transaction import PointsTransaction

__all__ = [
    'PointsAccount',
    'PointsTransaction',
]
