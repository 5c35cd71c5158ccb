from django.db import models, transaction
from django.db.models import F
from django.utils import timezone


class OrderNumberSequence(models.Model):
    """Per-day counter backing ORD-YYYYMMDD-NNN order numbers"""

    date = models.DateField(unique=True)
    last_value = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = 'order_number_sequences'

    def __str__(self):
        return f"{self.date}: {self.last_value}"

    @classmethod
    @transaction.atomic
    def next_order_number(cls, today=None):
        """Allocate the next number for today under a row lock"""
        today = today or timezone.localdate()
        cls.objects.get_or_create(date=today)
        sequence = cls.objects.select_for_update().get(date=today)
        cls.objects.filter(pk=sequence.pk).update(last_value=F('last_value') + 1)
        sequence.refresh_from_db(fields=['last_value'])
        return f"ORD-{today:%Y%m%d}-{sequence.last_value:03d}"
