from django.db import models


class PaymentCallback(models.Model):
    """Inbound gateway callback log for audit and manual reconciliation"""

    CALLBACK_TYPE_CHOICES = [
        ('return', 'Browser Return'),
        ('ipn', 'Instant Payment Notification'),
    ]

    callback_type = models.CharField(max_length=10, choices=CALLBACK_TYPE_CHOICES)
    payment_method = models.CharField(max_length=50, default='vnpay')

    # Request information
    request_method = models.CharField(max_length=10, help_text="HTTP method (GET/POST)")
    request_path = models.CharField(max_length=200, help_text="Request path")
    request_params = models.JSONField(default=dict, help_text="Query parameters as received")
    request_ip = models.CharField(max_length=45, blank=True)

    # Processing information
    signature_valid = models.BooleanField(default=False)
    processed = models.BooleanField(default=False, help_text="Whether callback was processed successfully")
    outcome = models.CharField(max_length=30, blank=True, help_text="Reconciliation outcome")
    processing_error = models.TextField(blank=True, help_text="Error message if processing failed")

    txn_ref = models.CharField(max_length=50, blank=True, help_text="vnp_TxnRef from the callback")

    # Response information
    response_status = models.IntegerField(default=200, help_text="HTTP response status code")
    response_body = models.TextField(blank=True, help_text="Response body or redirect location")

    received_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'payment_callbacks'
        ordering = ['-received_at']
        indexes = [
            models.Index(fields=['callback_type']),
            models.Index(fields=['txn_ref']),
            models.Index(fields=['received_at']),
            models.Index(fields=['processed']),
        ]

    def __str__(self):
        return f"Callback {self.callback_type} {self.txn_ref} - {self.received_at}"
