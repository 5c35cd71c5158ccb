from django.conf import settings
from django.db import models


class DiscountUsage(models.Model):
    """One redemption of a discount code by an authenticated user"""
    discount_code = models.ForeignKey('DiscountCode', on_delete=models.CASCADE, related_name='usages')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='discount_usages')
    order = models.ForeignKey('orders.Order', on_delete=models.CASCADE, related_name='discount_usages')
    used_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'discount_usages'
        constraints = [
            models.UniqueConstraint(fields=['discount_code', 'user'], name='one_usage_per_user'),
        ]

    def __str__(self):
        return f"{self.discount_code.code} used by {self.user_id}"
