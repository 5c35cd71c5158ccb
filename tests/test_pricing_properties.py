"""
Property-based tests for checkout pricing
"""
from decimal import Decimal

from django.test import TestCase as DjangoTestCase
from hypothesis import given, settings, strategies as st
from hypothesis.extra.django import TestCase

from apps.common.config import CheckoutConfig
from apps.common.exceptions import CheckoutValidationError, ItemUnavailable, ProductNotFound
from apps.orders.services import PricingService
from apps.products.services import CatalogService
from tests.factories import ProductFactory, ProductVariantFactory

money = st.decimals(min_value=0, max_value=100_000_000, places=2, allow_nan=False, allow_infinity=False)


class TestPricingIdentityProperties(TestCase):
    """Totals always reconcile with their parts"""

    @given(subtotal=money, discount=money, loyalty=money)
    @settings(max_examples=200, deadline=None)
    def test_total_equals_sum_of_quantized_parts(self, subtotal, discount, loyalty):
        pricing = PricingService(CheckoutConfig())
        breakdown = pricing.compute_totals(subtotal, discount, loyalty)

        self.assertEqual(
            breakdown.total_amount,
            breakdown.subtotal + breakdown.shipping_fee + breakdown.tax_amount
            - breakdown.discount_amount - breakdown.loyalty_discount,
        )
        for value in (breakdown.subtotal, breakdown.shipping_fee, breakdown.tax_amount, breakdown.total_amount):
            self.assertEqual(value, value.quantize(Decimal('0.01')))

    @given(
        subtotal=money,
        tax_rate=st.decimals(min_value=0, max_value=1, places=3),
        threshold=st.decimals(min_value=0, max_value=10_000_000, places=0),
    )
    @settings(max_examples=100, deadline=None)
    def test_shipping_is_free_exactly_at_or_above_threshold(self, subtotal, tax_rate, threshold):
        config = CheckoutConfig(tax_rate=tax_rate, shipping_threshold=threshold)
        breakdown = PricingService(config).compute_totals(subtotal)

        if breakdown.subtotal >= threshold:
            self.assertEqual(breakdown.shipping_fee, Decimal('0'))
        else:
            self.assertEqual(breakdown.shipping_fee, config.shipping_fee)


class TestCartPricing(DjangoTestCase):
    """Line pricing against the catalog"""

    def setUp(self):
        self.pricing = PricingService(CheckoutConfig())

    def test_subtotal_above_threshold_ships_free(self):
        variant = ProductVariantFactory(product__base_price=Decimal('2000000'), stock_quantity=5)
        lines = self.pricing.price_items([
            {'product_id': variant.product_id, 'variant_id': variant.id, 'quantity': 3},
        ])
        subtotal = self.pricing.subtotal(lines)
        breakdown = self.pricing.compute_totals(subtotal)

        self.assertEqual(breakdown.subtotal, Decimal('6000000'))
        self.assertEqual(breakdown.shipping_fee, Decimal('0'))
        self.assertEqual(breakdown.tax_amount, Decimal('600000'))
        self.assertEqual(breakdown.total_amount, Decimal('6600000'))

    def test_subtotal_below_threshold_pays_flat_fee(self):
        variant = ProductVariantFactory(product__base_price=Decimal('100000'))
        lines = self.pricing.price_items([
            {'product_id': variant.product_id, 'variant_id': variant.id, 'quantity': 2},
        ])
        breakdown = self.pricing.compute_totals(self.pricing.subtotal(lines))

        self.assertEqual(breakdown.shipping_fee, Decimal('25000'))
        self.assertEqual(breakdown.total_amount, Decimal('245000'))

    def test_variant_adjustment_and_product_discount(self):
        product = ProductFactory(base_price=Decimal('1000000'), discount=Decimal('20'))
        variant = ProductVariantFactory(product=product, price_adjustment=Decimal('250000'))
        products = CatalogService.get_products_by_ids([product.id])

        line = self.pricing.price_line(products[str(product.id)], variant.id, 2)

        self.assertEqual(line.unit_price, Decimal('1000000.00'))
        self.assertEqual(line.total_price, Decimal('2000000.00'))
        self.assertEqual(line.variant_name, variant.name)
        self.assertEqual(line.sku, variant.sku)

    def test_unit_cost_defaults_to_sixty_percent_of_base(self):
        variant = ProductVariantFactory(product__base_price=Decimal('500000'))
        line = self.pricing.price_items([
            {'product_id': variant.product_id, 'variant_id': variant.id, 'quantity': 1},
        ])[0]
        self.assertEqual(line.unit_cost, Decimal('300000.00'))

    def test_item_without_variant_uses_total_stock(self):
        product = ProductFactory(base_price=Decimal('300000'))
        ProductVariantFactory(product=product, stock_quantity=2)
        ProductVariantFactory(product=product, stock_quantity=3)

        line = self.pricing.price_items([{'product_id': product.id, 'quantity': 5}])[0]
        self.assertIsNone(line.variant)
        self.assertEqual(line.total_price, Decimal('1500000.00'))

        with self.assertRaises(ItemUnavailable):
            self.pricing.price_items([{'product_id': product.id, 'quantity': 6}])

    def test_unavailable_items_are_rejected(self):
        variant = ProductVariantFactory(stock_quantity=1)
        inactive = ProductVariantFactory(is_active=False)

        cases = [
            {'product_id': inactive.product_id, 'variant_id': inactive.id, 'quantity': 1},
            {'product_id': variant.product_id, 'variant_id': variant.id, 'quantity': 2},
        ]
        for item in cases:
            with self.subTest(item=item):
                with self.assertRaises(ItemUnavailable):
                    self.pricing.price_items([item])

    def test_missing_items_are_not_found(self):
        variant = ProductVariantFactory(stock_quantity=1)

        cases = [
            ({'product_id': 999999, 'variant_id': None, 'quantity': 1}, 'product_not_found'),
            ({'product_id': variant.product_id, 'variant_id': 999999, 'quantity': 1}, 'variant_not_found'),
        ]
        for item, reason in cases:
            with self.subTest(item=item):
                with self.assertRaises(ProductNotFound) as ctx:
                    self.pricing.price_items([item])
                self.assertEqual(ctx.exception.reason, reason)
                self.assertEqual(ctx.exception.status_code, 404)

    def test_empty_cart_is_a_validation_error(self):
        with self.assertRaises(CheckoutValidationError):
            self.pricing.price_items([])

    def test_constants_come_from_the_injected_config(self):
        config = CheckoutConfig(tax_rate=Decimal('0.05'), shipping_fee=Decimal('30000'),
                                shipping_threshold=Decimal('100000'))
        breakdown = PricingService(config).compute_totals(Decimal('50000'))

        self.assertEqual(breakdown.tax_amount, Decimal('2500.00'))
        self.assertEqual(breakdown.shipping_fee, Decimal('30000.00'))
        self.assertEqual(breakdown.total_amount, Decimal('82500.00'))
