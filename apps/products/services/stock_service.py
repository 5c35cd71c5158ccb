"""
Stock reservation and release for order items.

Every decrement is a conditional update, so two checkouts racing for the last
unit cannot both succeed. Releases are recorded as StockMovement rows and are
applied at most once per order item.
"""
import logging

from django.db import transaction
from django.db.models import F
from django.db.models.functions import Greatest

from apps.common.exceptions import InsufficientStock
from ..models import Product, ProductVariant, StockMovement

logger = logging.getLogger(__name__)


class StockService:
    """Service for reserving and restoring variant stock"""

    @staticmethod
    def _decrement(variant_id, quantity) -> bool:
        updated = ProductVariant.objects.filter(
            pk=variant_id,
            is_active=True,
            stock_quantity__gte=quantity,
        ).update(stock_quantity=F('stock_quantity') - quantity)
        return updated == 1

    @staticmethod
    @transaction.atomic
    def reserve(order_item) -> ProductVariant:
        """
        Decrement stock for one order item and bump the product's sold count.

        Uses the requested variant, or the first active variant with enough
        stock when the item has none. The variant actually used is stored on
        the item so release() can restore the same one.
        """
        quantity = order_item.quantity

        if order_item.variant_id:
            candidates = [order_item.variant_id]
        else:
            candidates = list(
                ProductVariant.objects.filter(
                    product_id=order_item.product_id,
                    is_active=True,
                    stock_quantity__gte=quantity,
                ).order_by('id').values_list('id', flat=True)
            )

        reserved_id = None
        for variant_id in candidates:
            if StockService._decrement(variant_id, quantity):
                reserved_id = variant_id
                break

        if reserved_id is None:
            name = order_item.product_name
            if order_item.variant_name:
                name = f"{name} - {order_item.variant_name}"
            raise InsufficientStock(f"Insufficient stock for {name}")

        Product.objects.filter(pk=order_item.product_id).update(sold_count=F('sold_count') + quantity)

        order_item.reserved_variant_id = reserved_id
        order_item.save(update_fields=['reserved_variant'])

        StockMovement.objects.create(
            product_id=order_item.product_id,
            variant_id=reserved_id,
            order_item=order_item,
            movement_type='out',
            quantity=quantity,
            note=f"Order {order_item.order.order_number}",
        )
        logger.info(f"Reserved {quantity} x variant {reserved_id} for order {order_item.order.order_number}")
        return ProductVariant.objects.get(pk=reserved_id)

    @staticmethod
    @transaction.atomic
    def release(order_item) -> bool:
        """
        Return a reserved quantity to stock.

        Returns False without touching stock when the item was never reserved
        or has already been released.
        """
        if not order_item.reserved_variant_id:
            return False

        if StockMovement.objects.filter(order_item=order_item, movement_type='return').exists():
            logger.info(f"Stock for order item {order_item.id} already released, skipping")
            return False

        quantity = order_item.quantity
        ProductVariant.objects.filter(pk=order_item.reserved_variant_id).update(
            stock_quantity=F('stock_quantity') + quantity
        )
        Product.objects.filter(pk=order_item.product_id).update(
            sold_count=Greatest(F('sold_count') - quantity, 0)
        )

        StockMovement.objects.create(
            product_id=order_item.product_id,
            variant_id=order_item.reserved_variant_id,
            order_item=order_item,
            movement_type='return',
            quantity=quantity,
            note=f"Order {order_item.order.order_number} cancelled",
        )
        logger.info(f"Released {quantity} x variant {order_item.reserved_variant_id} for order {order_item.order.order_number}")
        return True
