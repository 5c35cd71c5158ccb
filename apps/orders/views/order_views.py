"""
Order creation and query views.
"""
import logging

from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.views import APIView

from apps.common.exceptions import CheckoutError
from apps.common.utils import checkout_error_response, error_response, success_response
from ..models import Order
from ..serializers import (
    GuestOrderSerializer, OrderCreateSerializer, OrderListSerializer,
    OrderSerializer, TrackOrderSerializer
)
from ..services import OrderService

logger = logging.getLogger(__name__)


class CreateOrderView(APIView):
    """Checkout endpoint; guests and signed-in customers"""
    permission_classes = [AllowAny]

    def post(self, request):
        try:
            serializer = OrderCreateSerializer(data=request.data)
            if not serializer.is_valid():
                return error_response("Invalid order data", serializer.errors, reason='validation_error')

            order = OrderService.create_order(serializer.validated_data, user=request.user)

            data = {
                'order_id': order.id,
                'order_number': order.order_number,
                'total_amount': str(order.total_amount),
                'payment_method': order.payment_method,
            }
            if order.payment_method == Order.PAYMENT_METHOD_VNPAY:
                data['requires_payment'] = True

            return success_response(data, 'Order created successfully', status.HTTP_201_CREATED)

        except CheckoutError as e:
            logger.info(f"Checkout rejected [{e.reason}]: {e.message}")
            return checkout_error_response(e)
        except Exception as e:
            logger.error(f"Order creation failed: {str(e)}", exc_info=True)
            return error_response("Server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


class GetMyOrderView(APIView):
    """Paginated order history for the signed-in customer"""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        try:
            orders, pagination = OrderService.get_user_orders(
                request.user,
                page=request.GET.get('page', 1),
                limit=request.GET.get('limit', 10),
                status=request.GET.get('status'),
            )
            serializer = OrderListSerializer(orders, many=True)
            return success_response({'orders': serializer.data, 'pagination': pagination})

        except Exception as e:
            logger.error(f"Failed to list orders for user {request.user.id}: {str(e)}", exc_info=True)
            return error_response("Server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


class GetOrderDetailView(APIView):
    """Order detail for its owner, staff, or a guest who supplies the order e-mail"""
    permission_classes = [AllowAny]

    def get(self, request, order_id):
        try:
            order = OrderService.get_order_for_user(order_id, request.user, email=request.GET.get('email'))
            if request.user.is_authenticated and request.user.is_staff:
                return success_response(OrderSerializer(order).data)
            return success_response(GuestOrderSerializer(order).data)

        except CheckoutError as e:
            return checkout_error_response(e)
        except Exception as e:
            logger.error(f"Failed to load order {order_id}: {str(e)}", exc_info=True)
            return error_response("Server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


class TrackOrderView(APIView):
    """Guest order tracking by order number and e-mail"""
    permission_classes = [AllowAny]

    def post(self, request):
        try:
            serializer = TrackOrderSerializer(data=request.data)
            if not serializer.is_valid():
                return error_response(
                    "Order number and email are required", serializer.errors, reason='validation_error'
                )

            order = OrderService.track_guest_order(
                serializer.validated_data['order_number'],
                serializer.validated_data['email'],
            )
            return success_response(GuestOrderSerializer(order).data)

        except CheckoutError as e:
            return checkout_error_response(e)
        except Exception as e:
            logger.error(f"Order tracking failed: {str(e)}", exc_info=True)
            return error_response("Server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
