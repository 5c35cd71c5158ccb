"""
Discount code validation and redemption.

validate() is side-effect free and backs both checkout and the preview
endpoint. redeem() is called by checkout after the order row exists.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from apps.common.config import CheckoutConfig
from apps.common.exceptions import AlreadyUsed, BelowMinimum, CodeNotFound, UsageExceeded
from ..models import DiscountCode, DiscountUsage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiscountQuote:
    discount_code: DiscountCode
    amount: Decimal

    @property
    def code(self):
        return self.discount_code.code


class DiscountService:
    """Service for discount code operations"""

    @staticmethod
    def normalize_code(code):
        return (code or '').strip().upper()

    @staticmethod
    def validate(code, subtotal, user=None, config=None):
        """
        Check a code against the subtotal and the requesting user.

        Failure order: CodeNotFound, UsageExceeded, BelowMinimum, AlreadyUsed.
        Returns a DiscountQuote with the amount quantized to currency precision.
        """
        config = config or CheckoutConfig.from_settings()
        subtotal = Decimal(subtotal)
        normalized = DiscountService.normalize_code(code)

        discount_code = DiscountCode.objects.filter(code=normalized, is_active=True).first()
        if discount_code is None or not discount_code.is_within_window(timezone.now()):
            raise CodeNotFound()

        if discount_code.used_count >= discount_code.usage_limit:
            raise UsageExceeded()

        if subtotal < discount_code.min_order_amount:
            raise BelowMinimum(
                f"Minimum order amount is {discount_code.min_order_amount}",
                errors={'min_order_amount': str(discount_code.min_order_amount)},
            )

        if user is not None and getattr(user, 'is_authenticated', False):
            if discount_code.usages.filter(user=user).exists():
                raise AlreadyUsed()

        amount = DiscountService.calculate_amount(discount_code, subtotal)
        amount = amount.quantize(config.currency_precision, rounding=ROUND_HALF_UP)
        return DiscountQuote(discount_code=discount_code, amount=amount)

    @staticmethod
    def calculate_amount(discount_code, subtotal):
        """Discount amount for a subtotal, before quantization"""
        if discount_code.discount_type == 'percentage':
            amount = subtotal * discount_code.discount_value / Decimal('100')
            if discount_code.max_discount_amount is not None:
                amount = min(amount, discount_code.max_discount_amount)
        else:
            # Fixed amounts never exceed the subtotal
            amount = min(discount_code.discount_value, subtotal)
        return max(amount, Decimal('0'))

    @staticmethod
    @transaction.atomic
    def redeem(discount_code, user, order):
        """
        Record one use of the code for an order.

        The increment only succeeds while used_count < usage_limit, so two
        concurrent checkouts cannot push the code past its limit.
        """
        updated = DiscountCode.objects.filter(
            pk=discount_code.pk,
            used_count__lt=F('usage_limit'),
        ).update(used_count=F('used_count') + 1)
        if not updated:
            logger.warning(f"Discount code {discount_code.code} reached its usage limit during checkout")
            raise UsageExceeded()

        if user is not None and getattr(user, 'is_authenticated', False):
            try:
                with transaction.atomic():
                    DiscountUsage.objects.create(discount_code=discount_code, user=user, order=order)
            except IntegrityError:
                raise AlreadyUsed()

        logger.info(f"Discount code {discount_code.code} redeemed for order {order.order_number}")
        discount_code.refresh_from_db(fields=['used_count'])
        return discount_code

    @staticmethod
    def generate_code():
        return DiscountCode.generate_code()
