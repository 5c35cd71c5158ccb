from django.db import models
from django.utils import timezone
import uuid


class PaymentTransaction(models.Model):
    """One gateway payment attempt; a new row for every payment URL issued"""

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('success', 'Success'),
        ('failed', 'Failed'),
        ('expired', 'Expired'),
    ]

    transaction_id = models.CharField(max_length=100, unique=True, help_text="Internal transaction ID")
    order = models.ForeignKey('orders.Order', on_delete=models.CASCADE, related_name='payment_transactions')
    txn_ref = models.CharField(max_length=50, help_text="vnp_TxnRef sent to the gateway (order number)")

    amount = models.DecimalField(max_digits=16, decimal_places=2, help_text="Order total at URL creation")
    gateway_amount = models.BigIntegerField(help_text="vnp_Amount: rounded total x 100")
    currency = models.CharField(max_length=3, default='VND')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')

    order_info = models.CharField(max_length=255)
    bank_code = models.CharField(max_length=20, blank=True)
    ip_address = models.CharField(max_length=45)
    payment_url = models.TextField()

    # Gateway response
    gateway_transaction_no = models.CharField(max_length=50, blank=True)
    response_code = models.CharField(max_length=10, blank=True)
    pay_date = models.CharField(max_length=14, blank=True, help_text="vnp_PayDate, yyyyMMddHHmmss")
    callback_data = models.JSONField(default=dict, help_text="Verified callback parameters")
    callback_received_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    expired_at = models.DateTimeField(help_text="vnp_ExpireDate")
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'payment_transactions'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['txn_ref']),
            models.Index(fields=['status']),
            models.Index(fields=['created_at']),
        ]

    def __str__(self):
        return f"Payment {self.transaction_id} - {self.status}"

    def save(self, *args, **kwargs):
        if not self.transaction_id:
            self.transaction_id = f"pay_{uuid.uuid4().hex[:16]}"

        if self.status == 'success' and not self.paid_at:
            self.paid_at = timezone.now()

        super().save(*args, **kwargs)
