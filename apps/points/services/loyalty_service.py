"""
Loyalty ledger service.

Converts points to money, debits points spent at checkout, credits points
earned, and reverses both when an order is cancelled. Every entry carries the
order number as reference_id, and the ledger's unique constraint on
(account, transaction_type, reference_id) keeps each reversal to one.
"""
import logging
from decimal import Decimal, ROUND_FLOOR

from django.db import transaction
from django.db.models import F

from apps.common.config import CheckoutConfig
from apps.common.exceptions import CheckoutValidationError, InsufficientPoints
from ..models import PointsAccount, PointsTransaction

logger = logging.getLogger(__name__)


class LoyaltyService:
    """Service for loyalty point operations tied to orders"""

    def __init__(self, config=None):
        self.config = config or CheckoutConfig.from_settings()

    @staticmethod
    def get_or_create_account(user):
        """Get or create points account for user"""
        account, created = PointsAccount.objects.get_or_create(user=user)
        return account

    def points_to_discount(self, points):
        """Monetary value of a number of points"""
        return Decimal(points) * self.config.loyalty_point_value

    def calculate_points_earned(self, total_amount):
        """floor(total * earn rate), never negative"""
        earned = (Decimal(total_amount) * self.config.loyalty_earn_rate).to_integral_value(rounding=ROUND_FLOOR)
        return max(int(earned), 0)

    def check_balance(self, user, points):
        """Raise InsufficientPoints unless the user can spend the points"""
        if points < 0:
            raise CheckoutValidationError(
                "Loyalty points must not be negative",
                errors={'loyalty_points_used': ['Must be zero or greater']},
            )
        if points == 0:
            return None
        if user is None or not user.is_authenticated:
            raise CheckoutValidationError(
                "Guests cannot use loyalty points",
                errors={'loyalty_points_used': ['Sign in to use loyalty points']},
            )
        account = self.get_or_create_account(user)
        if points > account.available_points:
            raise InsufficientPoints(
                f"Only {account.available_points} points available",
                errors={'available_points': account.available_points},
            )
        return account

    @transaction.atomic
    def debit(self, user, points, order):
        """Spend points on an order; the decrement is conditional on the balance"""
        account = self.get_or_create_account(user)
        entry = account.deduct_points(
            points,
            'redemption',
            description=f'Redeemed on order {order.order_number}',
            reference_id=order.order_number,
        )
        if entry is None:
            raise InsufficientPoints(
                f"Only {account.available_points} points available",
                errors={'available_points': account.available_points},
            )
        logger.info(f"Debited {points} points from user {user.id} for order {order.order_number}")
        return entry

    @transaction.atomic
    def credit_earned(self, user, order):
        """Credit the order's earned points and add its total to total_spent"""
        account = self.get_or_create_account(user)
        PointsAccount.objects.filter(pk=account.pk).update(total_spent=F('total_spent') + order.total_amount)
        if order.points_earned <= 0:
            account.refresh_from_db()
            return None

        entry = account.add_points(
            order.points_earned,
            'earning',
            description=f'Earned on order {order.order_number}',
            reference_id=order.order_number,
        )
        logger.info(f"Credited {order.points_earned} points to user {user.id} for order {order.order_number}")
        return entry

    @transaction.atomic
    def reverse_for_order(self, order):
        """
        Refund spent points, then claw back earned points.

        The claw-back is skipped when the balance after the refund is below
        points_earned. Returns a dict with the refunded and clawed-back amounts.
        """
        result = {'refunded': 0, 'clawed_back': 0}
        if order.user_id is None:
            return result

        account = PointsAccount.objects.select_for_update().filter(user_id=order.user_id).first()
        if account is None:
            return result

        def already_applied(transaction_type):
            return PointsTransaction.objects.filter(
                account=account,
                transaction_type=transaction_type,
                reference_id=order.order_number,
            ).exists()

        if order.loyalty_points_used > 0 and not already_applied('refund'):
            account.add_points(
                order.loyalty_points_used,
                'refund',
                description=f'Refund for cancelled order {order.order_number}',
                reference_id=order.order_number,
            )
            result['refunded'] = order.loyalty_points_used
            logger.info(f"Refunded {order.loyalty_points_used} points for order {order.order_number}")

        if order.points_earned > 0 and not already_applied('clawback'):
            entry = account.deduct_points(
                order.points_earned,
                'clawback',
                description=f'Reversed earning for cancelled order {order.order_number}',
                reference_id=order.order_number,
            )
            if entry is None:
                logger.info(
                    f"Skipped claw-back of {order.points_earned} points for order {order.order_number}: "
                    f"balance {account.available_points} too low"
                )
            else:
                result['clawed_back'] = order.points_earned
                logger.info(f"Clawed back {order.points_earned} points for order {order.order_number}")

        return result
