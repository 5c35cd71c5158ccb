from django.db import models


class StockMovement(models.Model):
    """Ledger of stock changes made on behalf of orders"""

    MOVEMENT_TYPES = [
        ('out', 'Reserved for order'),
        ('return', 'Returned from cancelled order'),
    ]

    product = models.ForeignKey('Product', on_delete=models.CASCADE, related_name='stock_movements')
    variant = models.ForeignKey('ProductVariant', on_delete=models.CASCADE, related_name='stock_movements')
    order_item = models.ForeignKey(
        'orders.OrderItem', on_delete=models.CASCADE, related_name='stock_movements'
    )
    movement_type = models.CharField(max_length=10, choices=MOVEMENT_TYPES)
    quantity = models.IntegerField()
    note = models.CharField(max_length=200, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'stock_movements'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['order_item', 'movement_type'],
                name='one_movement_per_item_and_type',
            ),
        ]
        indexes = [
            models.Index(fields=['product', 'variant']),
        ]

    def __str__(self):
        return f"{self.movement_type} {self.quantity} x {self.variant_id}"
