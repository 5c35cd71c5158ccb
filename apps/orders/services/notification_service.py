"""
Order notification service for customer e-mails.
"""
import logging

from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


class OrderNotificationService:
    """Service for order e-mails; failures are logged, never raised"""

    @staticmethod
    def send_order_confirmation(order):
        """Send the order confirmation e-mail to the customer snapshot address"""
        subject = f"Order #{order.order_number} Confirmation"
        message = (
            f"Thank you for your order, {order.customer_name}!\n"
            f"Your order #{order.order_number} has been successfully placed.\n"
            f"Total Amount: {order.total_amount:,.0f} VND\n"
            f"We will notify you once your order is shipped.\n"
        )

        try:
            send_mail(
                subject,
                message,
                settings.DEFAULT_FROM_EMAIL,
                [order.customer_email],
                fail_silently=False,
            )
        except Exception as e:
            logger.error(f"Failed to send confirmation for order {order.order_number}: {str(e)}", exc_info=True)
            return False

        logger.info(f"Confirmation e-mail sent for order {order.order_number}")
        return True
