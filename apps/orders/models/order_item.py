from django.db import models


class OrderItem(models.Model):
    """Order line, snapshotted from the catalog at checkout and never edited"""

    order = models.ForeignKey('Order', on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey('products.Product', on_delete=models.PROTECT, related_name='order_items')
    variant = models.ForeignKey(
        'products.ProductVariant', on_delete=models.PROTECT, null=True, blank=True, related_name='order_items'
    )
    # Variant whose stock was actually decremented
    reserved_variant = models.ForeignKey(
        'products.ProductVariant', on_delete=models.PROTECT, null=True, blank=True, related_name='+'
    )

    product_name = models.CharField(max_length=200)
    variant_name = models.CharField(max_length=100, blank=True, default='')
    sku = models.CharField(max_length=50, blank=True, default='')
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=16, decimal_places=2)
    unit_cost = models.DecimalField(max_digits=16, decimal_places=2)
    total_price = models.DecimalField(max_digits=16, decimal_places=2)
    image_url = models.URLField(max_length=500, blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'order_items'
        ordering = ['id']

    def __str__(self):
        return f"{self.product_name} x {self.quantity} ({self.order_id})"
