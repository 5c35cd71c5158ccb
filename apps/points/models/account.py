from django.conf import settings
from django.db import models
from django.db.models import F


class PointsAccount(models.Model):
    """Loyalty account holding a user's point balance and spend total"""
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='points_account')
    available_points = models.IntegerField(default=0)
    total_spent = models.DecimalField(max_digits=16, decimal_places=2, default=0)
    lifetime_earned = models.IntegerField(default=0)  # Total points ever earned
    lifetime_redeemed = models.IntegerField(default=0)  # Total points ever redeemed
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'points_accounts'
        verbose_name = 'Points Account'
        verbose_name_plural = 'Points Accounts'
        constraints = [
            models.CheckConstraint(
                condition=models.Q(available_points__gte=0),
                name='points_balance_non_negative',
            ),
        ]

    def __str__(self):
        return f"{self.user.username} - {self.available_points} points"

    def add_points(self, amount, transaction_type, description="", reference_id=None):
        """Add points to the account and create transaction record"""
        if amount <= 0:
            raise ValueError("Points amount must be positive")

        updates = {'available_points': F('available_points') + amount}
        if transaction_type == 'earning':
            updates['lifetime_earned'] = F('lifetime_earned') + amount
        elif transaction_type == 'refund':
            updates['lifetime_redeemed'] = F('lifetime_redeemed') - amount
        PointsAccount.objects.filter(pk=self.pk).update(**updates)
        self.refresh_from_db()

        from .transaction import PointsTransaction
        return PointsTransaction.objects.create(
            account=self,
            transaction_type=transaction_type,
            amount=amount,
            balance_after=self.available_points,
            description=description,
            reference_id=reference_id
        )

    def deduct_points(self, amount, transaction_type, description="", reference_id=None):
        """
        Remove points only if the balance covers them.

        Returns the transaction record, or None when the balance was too low.
        """
        if amount <= 0:
            raise ValueError("Points amount must be positive")

        updates = {'available_points': F('available_points') - amount}
        if transaction_type == 'redemption':
            updates['lifetime_redeemed'] = F('lifetime_redeemed') + amount
        elif transaction_type == 'clawback':
            updates['lifetime_earned'] = F('lifetime_earned') - amount
        updated = PointsAccount.objects.filter(
            pk=self.pk,
            available_points__gte=amount,
        ).update(**updates)
        self.refresh_from_db()
        if not updated:
            return None

        from .transaction import PointsTransaction
        return PointsTransaction.objects.create(
            account=self,
            transaction_type=transaction_type,
            amount=-amount,  # Negative for spending
            balance_after=self.available_points,
            description=description,
            reference_id=reference_id
        )
