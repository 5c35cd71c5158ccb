from decimal import Decimal

from django.conf import settings
from django.db import models


class Order(models.Model):
    """Checkout order: customer snapshot, derived money fields and lifecycle status"""

    STATUS_PENDING_PAYMENT = 'pending_payment'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_PROCESSING = 'processing'
    STATUS_SHIPPING = 'shipping'
    STATUS_DELIVERED = 'delivered'
    STATUS_CANCELLED = 'cancelled'
    STATUS_REFUNDED = 'refunded'

    STATUS_CHOICES = [
        (STATUS_PENDING_PAYMENT, 'Pending Payment'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_PROCESSING, 'Processing'),
        (STATUS_SHIPPING, 'Shipping'),
        (STATUS_DELIVERED, 'Delivered'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_REFUNDED, 'Refunded'),
    ]

    PAYMENT_METHOD_COD = 'cod'
    PAYMENT_METHOD_VNPAY = 'vnpay'

    PAYMENT_METHOD_CHOICES = [
        (PAYMENT_METHOD_COD, 'Cash on Delivery'),
        (PAYMENT_METHOD_VNPAY, 'VNPay'),
    ]

    PAYMENT_STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('processing', 'Processing'),
        ('paid', 'Paid'),
        ('failed', 'Failed'),
        ('refunded', 'Refunded'),
    ]

    order_number = models.CharField(max_length=20, unique=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='orders'
    )

    # Customer snapshot taken at checkout
    customer_name = models.CharField(max_length=100)
    customer_email = models.EmailField()
    customer_phone = models.CharField(max_length=20)
    shipping_address = models.JSONField(default=dict, help_text="address_line1, address_line2, ward, district, city, postal_code")

    # Money, derived once at creation
    subtotal = models.DecimalField(max_digits=16, decimal_places=2)
    discount_amount = models.DecimalField(max_digits=16, decimal_places=2, default=Decimal('0'))
    loyalty_points_used = models.IntegerField(default=0)
    loyalty_discount = models.DecimalField(max_digits=16, decimal_places=2, default=Decimal('0'))
    shipping_fee = models.DecimalField(max_digits=16, decimal_places=2, default=Decimal('0'))
    tax_amount = models.DecimalField(max_digits=16, decimal_places=2, default=Decimal('0'))
    total_amount = models.DecimalField(max_digits=16, decimal_places=2)
    points_earned = models.IntegerField(default=0)

    discount_code = models.ForeignKey(
        'discounts.DiscountCode', on_delete=models.SET_NULL, null=True, blank=True, related_name='orders'
    )
    discount_code_value = models.CharField(max_length=20, blank=True, default='')

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING_PAYMENT)
    payment_method = models.CharField(max_length=10, choices=PAYMENT_METHOD_CHOICES, default=PAYMENT_METHOD_COD)
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default='pending')

    # Gateway metadata, written only by the payment services
    payment_info = models.JSONField(default=dict, blank=True)

    note = models.TextField(blank=True, default='')
    internal_note = models.TextField(blank=True, default='')

    paid_at = models.DateTimeField(null=True, blank=True)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user']),
            models.Index(fields=['status']),
            models.Index(fields=['customer_email']),
            models.Index(fields=['created_at']),
        ]

    def __str__(self):
        return f"Order {self.order_number}"

    @property
    def is_paid(self):
        return self.payment_status == 'paid'

    def expected_total(self):
        """Recompute the total from the stored money fields"""
        return (
            self.subtotal + self.shipping_fee + self.tax_amount
            - self.discount_amount - self.loyalty_discount
        )
