"""
Admin order management views.
"""
import logging

from rest_framework import status
from rest_framework.views import APIView

from apps.common.exceptions import CheckoutError
from apps.common.permissions import IsStaffUser
from apps.common.utils import checkout_error_response, error_response, success_response
from ..serializers import OrderListSerializer, OrderSerializer, OrderStatusUpdateSerializer
from ..services import OrderService, OrderStatusService

logger = logging.getLogger(__name__)


class AdminGetAllOrderView(APIView):
    """All orders with status, date range and keyword filters"""
    permission_classes = [IsStaffUser]

    def get(self, request):
        try:
            filters = {
                'status': request.GET.get('status'),
                'date_range': request.GET.get('dateRange'),
                'search': request.GET.get('search', '').strip(),
                'page': request.GET.get('page', 1),
                'limit': request.GET.get('limit', 20),
            }
            orders, pagination, stats = OrderService.get_all_orders(filters)
            serializer = OrderListSerializer(orders, many=True)

            return success_response({
                'orders': serializer.data,
                'pagination': pagination,
                'stats': {
                    'total_revenue': str(stats['total_revenue']),
                    'total_profit': str(stats['total_profit']),
                },
            })

        except Exception as e:
            logger.error(f"Admin order listing failed: {str(e)}", exc_info=True)
            return error_response("Server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


class AdminUpdateOrderStatusView(APIView):
    """Move an order to a new status through the state machine"""
    permission_classes = [IsStaffUser]

    def patch(self, request, order_id):
        try:
            serializer = OrderStatusUpdateSerializer(data=request.data)
            if not serializer.is_valid():
                return error_response("Invalid status", serializer.errors, reason='validation_error')

            order = OrderStatusService.update_status(
                order_id,
                serializer.validated_data['status'],
                request.user,
                serializer.validated_data.get('note', ''),
            )
            return success_response(OrderSerializer(order).data, 'Order status updated successfully')

        except CheckoutError as e:
            return checkout_error_response(e)
        except Exception as e:
            logger.error(f"Failed to update status of order {order_id}: {str(e)}", exc_info=True)
            return error_response("Server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
