"""
Payment serializers.
"""
from rest_framework import serializers

from ..models import PaymentTransaction


class PaymentCreateSerializer(serializers.Serializer):
    """Serializer for payment URL requests"""

    order_id = serializers.IntegerField()


class PaymentTransactionSerializer(serializers.ModelSerializer):
    """Serializer for payment attempts"""

    class Meta:
        model = PaymentTransaction
        fields = [
            'transaction_id', 'txn_ref', 'amount', 'gateway_amount', 'status',
            'bank_code', 'gateway_transaction_no', 'response_code', 'pay_date',
            'created_at', 'expired_at', 'paid_at'
        ]
        read_only_fields = fields
