"""
Core order service for checkout, queries and guest tracking.
"""
import logging
from datetime import timedelta
from decimal import Decimal
from typing import Dict, Optional, Tuple

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import DecimalField, ExpressionWrapper, F, Q, Sum
from django.utils import timezone

from apps.common.config import CheckoutConfig
from apps.common.exceptions import AccessDenied, CheckoutValidationError, NotFound
from apps.common.utils import paginate_queryset
from apps.discounts.services import DiscountService
from apps.points.services import LoyaltyService
from apps.products.services import StockService
from .. import state_machine
from ..models import Order, OrderItem, OrderNumberSequence
from .notification_service import OrderNotificationService
from .order_status_service import OrderStatusService
from .pricing_service import PricingService

logger = logging.getLogger(__name__)

DATE_RANGES = ('today', 'yesterday', 'week', 'month')


class OrderService:
    """Service class for core order business logic"""

    @staticmethod
    def _authenticated(user):
        if user is not None and getattr(user, 'is_authenticated', False):
            return user
        return None

    @staticmethod
    def create_order(order_data: Dict, user=None, config: Optional[CheckoutConfig] = None) -> Order:
        """
        Create an order from validated checkout data.

        All writes run in one transaction; any failure rolls back stock,
        discount usage, points and the order itself. COD orders get their
        confirmation e-mail once the transaction has committed.
        """
        config = config or CheckoutConfig.from_settings()
        order = OrderService._create_order_atomic(order_data, OrderService._authenticated(user), config)

        if order.payment_method == Order.PAYMENT_METHOD_COD:
            OrderNotificationService.send_order_confirmation(order)

        return order

    @staticmethod
    @transaction.atomic
    def _create_order_atomic(order_data: Dict, user, config: CheckoutConfig) -> Order:
        pricing = PricingService(config)
        loyalty = LoyaltyService(config)

        customer_email = order_data['customer_email'].strip().lower()
        if user is None and get_user_model().objects.filter(email__iexact=customer_email).exists():
            raise CheckoutValidationError(
                "Email is already registered. Please sign in to place this order.",
                reason='email_registered',
                errors={'customer_email': ['Email is already registered']},
            )

        # Pricing
        lines = pricing.price_items(order_data['items'])
        subtotal = pricing.subtotal(lines)

        # Discount
        quote = None
        discount_amount = Decimal('0')
        code = order_data.get('discount_code')
        if code:
            quote = DiscountService.validate(code, subtotal, user=user, config=config)
            discount_amount = quote.amount

        # Loyalty
        points_used = order_data.get('loyalty_points_used') or 0
        loyalty_discount = Decimal('0')
        if points_used:
            loyalty.check_balance(user, points_used)
            loyalty_discount = loyalty.points_to_discount(points_used)

        breakdown = pricing.compute_totals(subtotal, discount_amount, loyalty_discount)
        if breakdown.total_amount < 0:
            raise CheckoutValidationError(
                "Loyalty discount exceeds the order total",
                reason='loyalty_exceeds_total',
                errors={'loyalty_points_used': ['Too many points for this order']},
            )

        points_earned = loyalty.calculate_points_earned(breakdown.total_amount) if user else 0

        payment_method = order_data.get('payment_method') or Order.PAYMENT_METHOD_COD
        if payment_method == Order.PAYMENT_METHOD_COD:
            initial_status = state_machine.CONFIRMED
        else:
            initial_status = state_machine.PENDING_PAYMENT

        now = timezone.now()
        order = Order.objects.create(
            order_number=OrderNumberSequence.next_order_number(),
            user=user,
            customer_name=order_data['customer_name'].strip(),
            customer_email=customer_email,
            customer_phone=order_data['customer_phone'].strip(),
            shipping_address=order_data['shipping_address'],
            subtotal=breakdown.subtotal,
            discount_amount=breakdown.discount_amount,
            loyalty_points_used=points_used,
            loyalty_discount=breakdown.loyalty_discount,
            shipping_fee=breakdown.shipping_fee,
            tax_amount=breakdown.tax_amount,
            total_amount=breakdown.total_amount,
            points_earned=points_earned,
            discount_code=quote.discount_code if quote else None,
            discount_code_value=quote.code if quote else '',
            status=initial_status,
            payment_method=payment_method,
            payment_status='pending',
            note=order_data.get('note') or '',
            confirmed_at=now if initial_status == state_machine.CONFIRMED else None,
        )

        # Stock
        for line in lines:
            item = OrderItem.objects.create(
                order=order,
                product=line.product,
                variant=line.variant,
                product_name=line.product_name,
                variant_name=line.variant_name,
                sku=line.sku,
                quantity=line.quantity,
                unit_price=line.unit_price,
                unit_cost=line.unit_cost,
                total_price=line.total_price,
                image_url=line.image_url,
            )
            StockService.reserve(item)

        if quote:
            DiscountService.redeem(quote.discount_code, user, order)

        if user:
            if points_used:
                loyalty.debit(user, points_used, order)
            loyalty.credit_earned(user, order)

        if initial_status == state_machine.CONFIRMED:
            history_note = 'Cash on delivery order confirmed'
        else:
            history_note = 'Order created, awaiting payment'
        OrderStatusService.record_history(order, initial_status, history_note, user, 'customer' if user else 'guest')

        logger.info(
            f"Order {order.order_number} created: total={order.total_amount} "
            f"method={payment_method} user={user.id if user else 'guest'}"
        )
        return order

    @staticmethod
    def preview_discount(code, subtotal, user=None, config: Optional[CheckoutConfig] = None) -> Dict:
        """Validate a code against a subtotal without recording any usage"""
        quote = DiscountService.validate(code, subtotal, user=OrderService._authenticated(user), config=config)
        return {
            'code': quote.code,
            'discount_type': quote.discount_code.discount_type,
            'discount_value': quote.discount_code.discount_value,
            'discount_amount': quote.amount,
        }

    @staticmethod
    def get_order_for_user(order_id, user, email=None) -> Order:
        """
        Fetch an order the caller may see.

        Staff see everything and users see their own orders. A guest order
        is only returned to a caller who supplies its customer e-mail;
        otherwise it is reported as not found, so sequential ids reveal nothing.
        """
        try:
            order = Order.objects.prefetch_related('items', 'status_history').get(pk=order_id)
        except (Order.DoesNotExist, ValueError, TypeError):
            raise NotFound("Order not found", reason='order_not_found')

        user = OrderService._authenticated(user)
        if user is not None and user.is_staff:
            return order
        if order.user_id is None:
            if not email or email.strip().lower() != order.customer_email.lower():
                raise NotFound("Order not found", reason='order_not_found')
            return order
        if user is None or order.user_id != user.id:
            raise AccessDenied()
        return order

    @staticmethod
    def track_guest_order(order_number: str, email: str) -> Order:
        """Look up an order by number and customer e-mail"""
        if not order_number or not email:
            raise CheckoutValidationError("Order number and email are required")

        order = Order.objects.prefetch_related('items', 'status_history').filter(
            order_number=order_number.strip().upper(),
            customer_email=email.strip().lower(),
        ).first()
        if order is None:
            raise NotFound(
                "Order not found. Please check your order number and email.",
                reason='order_not_found',
            )
        return order

    @staticmethod
    def get_user_orders(user, page=1, limit=10, status=None) -> Tuple[list, Dict]:
        """Paginated orders for one user, newest first"""
        queryset = Order.objects.filter(user=user).prefetch_related('items')
        if status and status != 'all':
            queryset = queryset.filter(status=status)
        return paginate_queryset(queryset.order_by('-created_at'), page, limit)

    @staticmethod
    def get_all_orders(filters: Dict) -> Tuple[list, Dict, Dict]:
        """Admin order listing with status, date range and search filters plus totals"""
        queryset = Order.objects.select_related('user').prefetch_related('items')

        status = filters.get('status')
        if status and status != 'all':
            queryset = queryset.filter(status=status)

        date_range = filters.get('date_range')
        if date_range in DATE_RANGES:
            now = timezone.localtime()
            start_of_today = now.replace(hour=0, minute=0, second=0, microsecond=0)
            start = {
                'today': start_of_today,
                'yesterday': start_of_today - timedelta(days=1),
                'week': now - timedelta(days=7),
                'month': now - timedelta(days=30),
            }[date_range]
            queryset = queryset.filter(created_at__gte=start)

        search = filters.get('search')
        if search:
            queryset = queryset.filter(
                Q(order_number__icontains=search)
                | Q(customer_name__icontains=search)
                | Q(customer_email__icontains=search)
            )

        revenue = queryset.aggregate(total=Sum('total_amount'))['total'] or Decimal('0')
        cost = OrderItem.objects.filter(order__in=queryset).aggregate(
            total=Sum(ExpressionWrapper(F('unit_cost') * F('quantity'), output_field=DecimalField(max_digits=20, decimal_places=2)))
        )['total'] or Decimal('0')
        stats = {
            'total_revenue': revenue,
            'total_profit': revenue - cost,
        }

        items, pagination = paginate_queryset(
            queryset.order_by('-created_at'),
            filters.get('page', 1),
            filters.get('limit', 20),
        )
        return items, pagination, stats
