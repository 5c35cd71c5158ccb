"""
Checkout pricing.

Prices each cart line from the catalog, then derives shipping, tax and the
order total. Every money field is quantized to the configured currency
precision before the total is computed, so
total == subtotal + shipping + tax - discount - loyalty holds exactly.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from apps.common.config import CheckoutConfig
from apps.common.exceptions import CheckoutValidationError, ItemUnavailable, ProductNotFound
from apps.products.services import CatalogService

DEFAULT_COST_RATIO = Decimal('0.6')


@dataclass
class PricedLine:
    product: object
    variant: Optional[object]
    product_name: str
    variant_name: str
    sku: str
    quantity: int
    unit_price: Decimal
    unit_cost: Decimal
    total_price: Decimal
    image_url: str


@dataclass
class PriceBreakdown:
    subtotal: Decimal
    shipping_fee: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    loyalty_discount: Decimal
    total_amount: Decimal


class PricingService:
    """Service for cart and order pricing"""

    def __init__(self, config: Optional[CheckoutConfig] = None):
        self.config = config or CheckoutConfig.from_settings()

    def quantize(self, value) -> Decimal:
        return Decimal(value).quantize(self.config.currency_precision, rounding=ROUND_HALF_UP)

    def price_line(self, product, variant_id, quantity) -> PricedLine:
        """Price one cart line, raising ProductNotFound or ItemUnavailable when it cannot be bought"""
        if product is None or not product.is_active:
            raise ProductNotFound()

        discount_factor = Decimal('1') - (product.discount or Decimal('0')) / Decimal('100')

        if variant_id:
            variant = product.get_variant(variant_id)
            if variant is None:
                raise ProductNotFound(f"Variant {variant_id} not found", reason='variant_not_found')
            if not variant.is_active:
                raise ItemUnavailable(f"Variant {variant.name} is not available")
            if variant.stock_quantity < quantity:
                raise ItemUnavailable(
                    f"Insufficient stock for {product.name} - {variant.name}",
                    reason='insufficient_stock',
                )
            unit_price = (product.base_price + variant.price_adjustment) * discount_factor
            variant_name = variant.name
            sku = variant.sku
        else:
            if product.total_stock < quantity:
                raise ItemUnavailable(f"Insufficient stock for {product.name}", reason='insufficient_stock')
            variant = None
            unit_price = product.base_price * discount_factor
            variant_name = ''
            sku = product.sku

        unit_price = self.quantize(unit_price)
        unit_cost = product.cost_price if product.cost_price is not None else product.base_price * DEFAULT_COST_RATIO

        return PricedLine(
            product=product,
            variant=variant,
            product_name=product.name,
            variant_name=variant_name,
            sku=sku,
            quantity=quantity,
            unit_price=unit_price,
            unit_cost=self.quantize(unit_cost),
            total_price=self.quantize(unit_price * quantity),
            image_url=product.image_url,
        )

    def price_items(self, items: List[Dict], products: Optional[Dict] = None) -> List[PricedLine]:
        """
        Price a list of {product_id, variant_id, quantity} dicts.

        products maps str(product id) to Product with variants prefetched; it
        is fetched from the catalog when not given.
        """
        if not items:
            raise CheckoutValidationError(
                "Order must contain at least one item",
                errors={'items': ['At least one item is required']},
            )

        if products is None:
            products = CatalogService.get_products_by_ids(item.get('product_id') for item in items)

        lines = []
        for index, item in enumerate(items):
            quantity = item.get('quantity')
            if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
                raise CheckoutValidationError(
                    "Quantity must be a positive integer",
                    errors={f'items[{index}].quantity': ['Must be a positive integer']},
                )
            product = products.get(str(item.get('product_id')))
            lines.append(self.price_line(product, item.get('variant_id'), quantity))
        return lines

    def subtotal(self, lines: List[PricedLine]) -> Decimal:
        return self.quantize(sum((line.total_price for line in lines), Decimal('0')))

    def shipping_fee(self, subtotal) -> Decimal:
        if subtotal >= self.config.shipping_threshold:
            return self.quantize(0)
        return self.quantize(self.config.shipping_fee)

    def tax_amount(self, subtotal) -> Decimal:
        return self.quantize(subtotal * self.config.tax_rate)

    def compute_totals(self, subtotal, discount_amount=Decimal('0'), loyalty_discount=Decimal('0')) -> PriceBreakdown:
        """Derive shipping, tax and total from a subtotal and the deductions"""
        subtotal = self.quantize(subtotal)
        shipping_fee = self.shipping_fee(subtotal)
        tax_amount = self.tax_amount(subtotal)
        discount_amount = self.quantize(discount_amount)
        loyalty_discount = self.quantize(loyalty_discount)

        total_amount = subtotal + shipping_fee + tax_amount - discount_amount - loyalty_discount

        return PriceBreakdown(
            subtotal=subtotal,
            shipping_fee=shipping_fee,
            tax_amount=tax_amount,
            discount_amount=discount_amount,
            loyalty_discount=loyalty_discount,
            total_amount=total_amount,
        )
