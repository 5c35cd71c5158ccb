"""
Points services module.

All services are exported from this module to maintain backward compatibility.
"""
from .loyalty_service import LoyaltyService

__all__ = [
    'LoyaltyService',
]
