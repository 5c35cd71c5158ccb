"""
Payment transaction views.
"""
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
import logging

from apps.common.exceptions import CheckoutError
from apps.common.utils import checkout_error_response, error_response, get_client_ip, success_response
from ..models import PaymentTransaction
from ..serializers import PaymentCreateSerializer, PaymentTransactionSerializer
from ..services import PaymentService

logger = logging.getLogger(__name__)


@api_view(['POST'])
@permission_classes([AllowAny])
def create_vnpay_payment(request):
    """Create a signed VNPay URL for an order awaiting payment"""
    try:
        serializer = PaymentCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return error_response("Invalid payment data", serializer.errors, reason='validation_error')

        result = PaymentService.create_payment(
            serializer.validated_data['order_id'],
            user=request.user,
            ip_addr=get_client_ip(request),
        )
        return success_response({
            'payment_url': result['payment_url'],
            'transaction_id': result['transaction_id'],
            'expires_at': result['expires_at'].isoformat(),
        })

    except CheckoutError as e:
        return checkout_error_response(e)
    except Exception as e:
        logger.error(f"VNPay payment creation failed: {str(e)}", exc_info=True)
        return error_response("Server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET'])
@permission_classes([AllowAny])
def get_payment_status(request):
    """Payment status of an order; refresh=1 asks the gateway as well"""
    order_id = request.GET.get('orderId')
    if not order_id:
        return error_response("orderId is required", reason='validation_error')

    try:
        refresh = request.GET.get('refresh', '').lower() in ('1', 'true', 'yes')
        result = PaymentService.get_payment_status(order_id, user=request.user, refresh=refresh)

        transactions = PaymentTransaction.objects.filter(order_id=result['order_id'])
        result['transactions'] = PaymentTransactionSerializer(transactions, many=True).data
        if result['paid_at']:
            result['paid_at'] = result['paid_at'].isoformat()
        return success_response(result)

    except CheckoutError as e:
        return checkout_error_response(e)
    except Exception as e:
        logger.error(f"Payment status lookup failed for order {order_id}: {str(e)}", exc_info=True)
        return error_response("Server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
