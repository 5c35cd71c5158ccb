"""
Checkout configuration object.

Pricing and loyalty services receive a CheckoutConfig instead of reading
module-level constants, so tests can run them with their own values.
"""
from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings


@dataclass(frozen=True)
class CheckoutConfig:
    """Tax, shipping and loyalty constants used during checkout"""

    tax_rate: Decimal = Decimal('0.1')
    shipping_fee: Decimal = Decimal('25000')
    shipping_threshold: Decimal = Decimal('5000000')
    loyalty_point_value: Decimal = Decimal('1000')
    loyalty_earn_rate: Decimal = Decimal('0.0001')
    currency_precision: Decimal = Decimal('0.01')

    @classmethod
    def from_settings(cls) -> 'CheckoutConfig':
        """Build config from the CHECKOUT settings dict"""
        values = getattr(settings, 'CHECKOUT', {})
        defaults = cls()
        return cls(
            tax_rate=Decimal(str(values.get('TAX_RATE', defaults.tax_rate))),
            shipping_fee=Decimal(str(values.get('SHIPPING_FEE', defaults.shipping_fee))),
            shipping_threshold=Decimal(str(values.get('SHIPPING_THRESHOLD', defaults.shipping_threshold))),
            loyalty_point_value=Decimal(str(values.get('LOYALTY_POINT_VALUE', defaults.loyalty_point_value))),
            loyalty_earn_rate=Decimal(str(values.get('LOYALTY_EARN_RATE', defaults.loyalty_earn_rate))),
            currency_precision=Decimal(str(values.get('CURRENCY_PRECISION', defaults.currency_precision))),
        )
