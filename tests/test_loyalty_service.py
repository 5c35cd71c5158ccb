"""
Tests for the loyalty ledger
"""
from decimal import Decimal

from django.contrib.auth.models import AnonymousUser
from django.test import TestCase as DjangoTestCase
from hypothesis import given, settings, strategies as st
from hypothesis.extra.django import TestCase

from apps.common.config import CheckoutConfig
from apps.common.exceptions import CheckoutValidationError, InsufficientPoints
from apps.points.models import PointsAccount, PointsTransaction
from apps.points.services import LoyaltyService
from tests.factories import OrderFactory, PointsAccountFactory, UserFactory


class TestLoyaltyConversion(TestCase):
    """Point value and earn rate conversions"""

    def setUp(self):
        self.loyalty = LoyaltyService(CheckoutConfig())

    def test_point_value(self):
        self.assertEqual(self.loyalty.points_to_discount(50), Decimal('50000'))

    def test_earned_points_are_floored(self):
        self.assertEqual(self.loyalty.calculate_points_earned(Decimal('6600000')), 660)
        self.assertEqual(self.loyalty.calculate_points_earned(Decimal('9999.99')), 0)
        self.assertEqual(self.loyalty.calculate_points_earned(Decimal('-10')), 0)

    @given(total=st.decimals(min_value=0, max_value=1_000_000_000, places=2))
    @settings(max_examples=100, deadline=None)
    def test_earned_points_never_exceed_exact_rate(self, total):
        earned = self.loyalty.calculate_points_earned(total)
        self.assertGreaterEqual(earned, 0)
        self.assertLessEqual(Decimal(earned), total * CheckoutConfig().loyalty_earn_rate)
        self.assertGreater(Decimal(earned + 1), total * CheckoutConfig().loyalty_earn_rate)


class TestLoyaltyBalance(DjangoTestCase):

    def setUp(self):
        self.loyalty = LoyaltyService(CheckoutConfig())
        self.user = UserFactory()
        PointsAccountFactory(user=self.user, available_points=100)

    def test_zero_points_need_no_account(self):
        self.assertIsNone(self.loyalty.check_balance(None, 0))

    def test_guest_cannot_spend_points(self):
        with self.assertRaises(CheckoutValidationError):
            self.loyalty.check_balance(AnonymousUser(), 10)

    def test_negative_points_rejected(self):
        with self.assertRaises(CheckoutValidationError):
            self.loyalty.check_balance(self.user, -1)

    def test_spending_more_than_balance(self):
        with self.assertRaises(InsufficientPoints) as ctx:
            self.loyalty.check_balance(self.user, 101)
        self.assertEqual(ctx.exception.errors, {'available_points': 100})

    def test_debit_and_credit(self):
        order = OrderFactory(user=self.user, loyalty_points_used=40, points_earned=12,
                             total_amount=Decimal('120000'))

        self.loyalty.debit(self.user, 40, order)
        self.loyalty.credit_earned(self.user, order)

        account = PointsAccount.objects.get(user=self.user)
        self.assertEqual(account.available_points, 72)
        self.assertEqual(account.total_spent, Decimal('120000'))
        self.assertEqual(account.lifetime_redeemed, 40)
        self.assertEqual(account.lifetime_earned, 12)
        self.assertEqual(
            sorted(account.transactions.values_list('transaction_type', 'amount')),
            [('earning', 12), ('redemption', -40)],
        )

    def test_debit_beyond_balance_changes_nothing(self):
        order = OrderFactory(user=self.user)
        with self.assertRaises(InsufficientPoints):
            self.loyalty.debit(self.user, 150, order)

        self.assertEqual(PointsAccount.objects.get(user=self.user).available_points, 100)
        self.assertFalse(PointsTransaction.objects.exists())


class TestLoyaltyReversal(DjangoTestCase):
    """Cancelling an order refunds spent points, then reverses earned points"""

    def setUp(self):
        self.loyalty = LoyaltyService(CheckoutConfig())
        self.user = UserFactory()
        PointsAccountFactory(user=self.user, available_points=100)

    def _checkout(self, used, earned):
        order = OrderFactory(user=self.user, loyalty_points_used=used, points_earned=earned)
        if used:
            self.loyalty.debit(self.user, used, order)
        self.loyalty.credit_earned(self.user, order)
        return order

    def test_refund_then_clawback(self):
        order = self._checkout(used=50, earned=30)
        self.assertEqual(PointsAccount.objects.get(user=self.user).available_points, 80)

        result = self.loyalty.reverse_for_order(order)

        self.assertEqual(result, {'refunded': 50, 'clawed_back': 30})
        self.assertEqual(PointsAccount.objects.get(user=self.user).available_points, 100)

    def test_clawback_skipped_when_balance_too_low(self):
        order = self._checkout(used=0, earned=30)
        PointsAccount.objects.filter(user=self.user).update(available_points=10)

        result = self.loyalty.reverse_for_order(order)

        self.assertEqual(result, {'refunded': 0, 'clawed_back': 0})
        self.assertEqual(PointsAccount.objects.get(user=self.user).available_points, 10)

    def test_reversal_applies_once(self):
        order = self._checkout(used=50, earned=30)
        self.loyalty.reverse_for_order(order)

        second = self.loyalty.reverse_for_order(order)

        self.assertEqual(second, {'refunded': 0, 'clawed_back': 0})
        self.assertEqual(PointsAccount.objects.get(user=self.user).available_points, 100)
        self.assertEqual(
            PointsTransaction.objects.filter(reference_id=order.order_number, transaction_type='refund').count(), 1
        )

    def test_guest_order_has_nothing_to_reverse(self):
        order = OrderFactory(user=None)
        self.assertEqual(self.loyalty.reverse_for_order(order), {'refunded': 0, 'clawed_back': 0})
