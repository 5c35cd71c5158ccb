from django.conf import settings
from django.db import models


class OrderStatusHistory(models.Model):
    """Append-only log; one row per status mutation"""

    order = models.ForeignKey('Order', on_delete=models.CASCADE, related_name='status_history')
    status = models.CharField(max_length=20)
    note = models.CharField(max_length=500, blank=True, default='')
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    actor_label = models.CharField(max_length=50, blank=True, default='', help_text="system, gateway, customer or admin")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'order_status_history'
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.order_id}: {self.status}"
