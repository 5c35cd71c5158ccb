import random
import string

from django.db import models
from django.utils import timezone


class DiscountCode(models.Model):
    """Redeemable discount code with usage caps and eligibility rules"""

    DISCOUNT_TYPE_CHOICES = [
        ('percentage', 'Percentage'),
        ('fixed_amount', 'Fixed Amount'),
    ]

    CODE_LENGTH = 5
    CODE_ALPHABET = string.ascii_uppercase + string.digits

    code = models.CharField(max_length=20, unique=True)
    discount_type = models.CharField(max_length=20, choices=DISCOUNT_TYPE_CHOICES)
    discount_value = models.DecimalField(max_digits=14, decimal_places=2)
    min_order_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    max_discount_amount = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    usage_limit = models.PositiveIntegerField(default=10)
    used_count = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    # Optional activity window
    valid_from = models.DateTimeField(null=True, blank=True)
    valid_until = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'discount_codes'
        indexes = [
            models.Index(fields=['is_active']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(used_count__lte=models.F('usage_limit')),
                name='discount_used_count_within_limit',
            ),
        ]

    def __str__(self):
        return f"{self.code} ({self.discount_type} {self.discount_value})"

    def save(self, *args, **kwargs):
        if not self.code:
            self.code = self.generate_code()
        self.code = self.code.upper()
        super().save(*args, **kwargs)

    def is_within_window(self, now=None):
        """Check the optional valid_from / valid_until window"""
        now = now or timezone.now()
        if self.valid_from and now < self.valid_from:
            return False
        if self.valid_until and now > self.valid_until:
            return False
        return True

    @classmethod
    def generate_code(cls):
        """Generate an unused random code"""
        while True:
            code = ''.join(random.choice(cls.CODE_ALPHABET) for _ in range(cls.CODE_LENGTH))
            if not cls.objects.filter(code=code).exists():
                return code
