"""
Applies order state machine transitions and their side effects.
"""
import logging

from django.db import transaction
from django.utils import timezone

from apps.common.exceptions import AccessDenied, NotFound
from apps.points.services import LoyaltyService
from apps.products.services import StockService
from .. import state_machine
from ..models import Order, OrderStatusHistory

logger = logging.getLogger(__name__)


class OrderStatusService:
    """Service for order status changes"""

    @staticmethod
    def record_history(order, status, note='', actor=None, actor_label='system'):
        """Append one status history row"""
        return OrderStatusHistory.objects.create(
            order=order,
            status=status,
            note=note,
            actor=actor if actor is not None and actor.is_authenticated else None,
            actor_label=actor_label,
        )

    @staticmethod
    @transaction.atomic
    def apply_event(order, event, actor=None, actor_label='system', note='', payment_info=None, loyalty=None):
        """
        Move an order through one state machine event.

        The order row is locked for the duration, so concurrent requests see
        the new status and get InvalidTransition instead of re-running effects.
        payment_info is merged into the order's payment_info.
        """
        locked = Order.objects.select_for_update().get(pk=order.pk)
        step = state_machine.transition(locked.status, event)
        now = timezone.now()

        for effect in step.effects:
            if effect == state_machine.STAMP_CONFIRMED:
                locked.confirmed_at = now
            elif effect == state_machine.MARK_PAID:
                locked.payment_status = 'paid'
                locked.paid_at = now
            elif effect == state_machine.MARK_PAID_IF_UNPAID:
                if locked.payment_status != 'paid':
                    locked.payment_status = 'paid'
                    locked.paid_at = now
            elif effect == state_machine.STAMP_SHIPPED:
                locked.shipped_at = now
            elif effect == state_machine.STAMP_DELIVERED:
                locked.delivered_at = now
            elif effect == state_machine.RELEASE_STOCK:
                for item in locked.items.all():
                    StockService.release(item)
            elif effect == state_machine.REVERSE_LOYALTY:
                (loyalty or LoyaltyService()).reverse_for_order(locked)
            elif effect == state_machine.STAMP_CANCELLED:
                locked.cancelled_at = now

        if payment_info:
            merged = dict(locked.payment_info or {})
            merged.update(payment_info)
            locked.payment_info = merged

        locked.status = step.target
        locked.save()

        if not note:
            note = f"Status changed from {step.source} to {step.target}"
        OrderStatusService.record_history(locked, step.target, note, actor, actor_label)

        if step.target == state_machine.CANCELLED and locked.payment_status == 'paid':
            logger.warning(f"Order {locked.order_number} cancelled after payment, refund needs manual handling")

        logger.info(f"Order {locked.order_number}: {step.source} -> {step.target} ({event} by {actor_label})")
        return locked

    @staticmethod
    def get_order(order_id):
        try:
            return Order.objects.get(pk=order_id)
        except (Order.DoesNotExist, ValueError, TypeError):
            raise NotFound("Order not found", reason='order_not_found')

    @staticmethod
    def cancel_order(order_id, user, reason=''):
        """
        Cancel an order on behalf of a customer or an admin.

        Staff users cancel with admin rules; everyone else may only cancel
        their own orders while pending payment or confirmed.
        """
        order = OrderStatusService.get_order(order_id)

        if user.is_staff:
            return OrderStatusService.apply_event(
                order,
                state_machine.CANCEL_BY_ADMIN,
                actor=user,
                actor_label='admin',
                note=reason or 'Cancelled by admin',
            )

        if order.user_id != user.id:
            raise AccessDenied()

        return OrderStatusService.apply_event(
            order,
            state_machine.CANCEL_BY_CUSTOMER,
            actor=user,
            actor_label='customer',
            note=reason or 'Cancelled by customer',
        )

    @staticmethod
    def update_status(order_id, target_status, user, note=''):
        """Admin status update: map the target status onto an event and apply it"""
        order = OrderStatusService.get_order(order_id)
        event = state_machine.event_for_target(target_status)
        return OrderStatusService.apply_event(order, event, actor=user, actor_label='admin', note=note)
