from decimal import Decimal

from django.db import models


class ProductVariant(models.Model):
    """Purchasable SKU-level configuration of a product with its own stock"""
    product = models.ForeignKey('Product', on_delete=models.CASCADE, related_name='variants')
    name = models.CharField(max_length=100)
    sku = models.CharField(max_length=50, unique=True)
    price_adjustment = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    stock_quantity = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = 'product_variants'
        ordering = ['id']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(stock_quantity__gte=0),
                name='variant_stock_non_negative',
            ),
        ]

    def __str__(self):
        return f"{self.product.name} - {self.name}"
