from decimal import Decimal

from django.db import models


class Product(models.Model):
    """Catalog product; pricing inputs and sales counter used by checkout"""
    name = models.CharField(max_length=200)
    sku = models.CharField(max_length=50, blank=True, default='')
    base_price = models.DecimalField(max_digits=14, decimal_places=2)
    discount = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal('0'),
        help_text="Product discount in percent"
    )
    cost_price = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    image_url = models.URLField(max_length=500, blank=True, default='')

    is_active = models.BooleanField(default=True)
    sold_count = models.IntegerField(default=0, help_text="Units sold")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'products'
        indexes = [
            models.Index(fields=['is_active']),
            models.Index(fields=['sold_count']),
        ]

    def __str__(self):
        return f"{self.name} (id: {self.id})"

    @property
    def total_stock(self):
        """Stock across all active variants"""
        return sum(v.stock_quantity for v in self.variants.all() if v.is_active)

    def get_variant(self, variant_id):
        """Return the variant with this id from the prefetched set, or None"""
        for variant in self.variants.all():
            if str(variant.id) == str(variant_id):
                return variant
        return None
