"""
Order action views (cancel, discount preview).
"""
import logging

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.views import APIView

from apps.common.exceptions import CheckoutError
from apps.common.utils import checkout_error_response, error_response, success_response
from ..serializers import DiscountValidateSerializer, GuestOrderSerializer, OrderCancelSerializer, OrderSerializer
from ..services import OrderService, OrderStatusService

logger = logging.getLogger(__name__)


class CancelOrderView(APIView):
    """Cancel an order; customer rules for owners, admin rules for staff"""
    permission_classes = [IsAuthenticated]

    def post(self, request, order_id):
        try:
            serializer = OrderCancelSerializer(data=request.data)
            if not serializer.is_valid():
                return error_response("Invalid data", serializer.errors, reason='validation_error')

            order = OrderStatusService.cancel_order(
                order_id, request.user, serializer.validated_data.get('reason', '')
            )
            serializer_class = OrderSerializer if request.user.is_staff else GuestOrderSerializer
            return success_response(serializer_class(order).data, 'Order cancelled successfully')

        except CheckoutError as e:
            return checkout_error_response(e)
        except Exception as e:
            logger.error(f"Failed to cancel order {order_id}: {str(e)}", exc_info=True)
            return error_response("Server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


class ValidateDiscountView(APIView):
    """Preview a discount code against a subtotal; records nothing"""
    permission_classes = [AllowAny]

    def post(self, request):
        try:
            serializer = DiscountValidateSerializer(data=request.data)
            if not serializer.is_valid():
                return error_response("Discount code is required", serializer.errors, reason='validation_error')

            preview = OrderService.preview_discount(
                serializer.validated_data['code'],
                serializer.validated_data['subtotal'],
                user=request.user,
            )
            data = {
                'code': preview['code'],
                'discount_type': preview['discount_type'],
                'discount_value': str(preview['discount_value']),
                'discount_amount': str(preview['discount_amount']),
            }
            return success_response(data, f"Discount of {preview['discount_amount']:,.0f} applied")

        except CheckoutError as e:
            return checkout_error_response(e)
        except Exception as e:
            logger.error(f"Discount validation failed: {str(e)}", exc_info=True)
            return error_response("Server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
