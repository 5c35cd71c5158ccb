"""
Payment service for gateway payments and callback reconciliation.

The browser return URL and the IPN endpoint both go through
process_callback(); they differ only in how the result is rendered.
"""
import logging
from datetime import datetime, timedelta
from typing import Dict

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.common.exceptions import AccessDenied, Conflict, GatewayError, InvalidTransition, NotFound
from apps.orders import state_machine
from apps.orders.models import Order
from apps.orders.services import OrderNotificationService, OrderStatusService
from ..models import PaymentTransaction
from .vnpay_service import VNPayService, to_gateway_amount

logger = logging.getLogger(__name__)

SUCCESS_CODE = '00'


class PaymentService:
    """Service class for payment operations"""

    @staticmethod
    def get_gateway():
        return VNPayService()

    @staticmethod
    def _check_access(order, user):
        if user is not None and user.is_authenticated:
            if user.is_staff or order.user_id in (None, user.id):
                return
            raise AccessDenied()
        if order.user_id is not None:
            raise AccessDenied()

    @staticmethod
    def _get_order(order_id):
        try:
            return Order.objects.get(pk=order_id)
        except (Order.DoesNotExist, ValueError, TypeError):
            raise NotFound("Order not found", reason='order_not_found')

    @staticmethod
    def find_order_by_txn_ref(txn_ref):
        if not txn_ref:
            return None
        return Order.objects.filter(order_number=txn_ref).first()

    @staticmethod
    def create_payment(order_id, user=None, ip_addr=None, now=None) -> Dict:
        """
        Issue a signed payment URL for an order awaiting payment.

        Each call records a PaymentTransaction; a failed payment can be
        retried by calling this again.
        """
        gateway = PaymentService.get_gateway()
        order = PaymentService._get_order(order_id)
        PaymentService._check_access(order, user)

        with transaction.atomic():
            order = Order.objects.select_for_update().get(pk=order.pk)

            if order.payment_method != Order.PAYMENT_METHOD_VNPAY:
                raise Conflict("Order is not paid through VNPay", reason='invalid_payment_method')
            if order.payment_status == 'paid':
                raise Conflict("Order is already paid", reason='already_paid')
            if order.status != state_machine.PENDING_PAYMENT:
                raise Conflict("Order is not in pending payment status", reason='not_pending_payment')

            now = now or timezone.now()
            order_info = f"Thanh toan don hang {order.order_number}"
            payment_url, params = gateway.build_payment_url(
                order.order_number, order.total_amount, order_info, ip_addr, now=now
            )
            expires_at = now + timedelta(minutes=gateway.expire_minutes)

            payment = PaymentTransaction.objects.create(
                order=order,
                txn_ref=params['vnp_TxnRef'],
                amount=order.total_amount,
                gateway_amount=params['vnp_Amount'],
                order_info=params['vnp_OrderInfo'],
                bank_code=params.get('vnp_BankCode', ''),
                ip_address=params['vnp_IpAddr'],
                payment_url=payment_url,
                expired_at=expires_at,
            )

            payment_info = dict(order.payment_info or {})
            payment_info.update({
                'method': 'vnpay',
                'txn_ref': params['vnp_TxnRef'],
                'transaction_id': payment.transaction_id,
                'gateway_amount': params['vnp_Amount'],
                'create_date': params['vnp_CreateDate'],
                'created_at': now.isoformat(),
                'expires_at': expires_at.isoformat(),
            })
            order.payment_info = payment_info
            order.payment_status = 'processing'
            order.save(update_fields=['payment_info', 'payment_status', 'updated_at'])

        logger.info(f"VNPay payment {payment.transaction_id} created for order {order.order_number}")
        return {
            'payment_url': payment_url,
            'transaction_id': payment.transaction_id,
            'expires_at': expires_at,
        }

    @staticmethod
    def _is_late(order, pay_date, gateway, now):
        """True when the payment happened after the URL expiry plus the grace period"""
        expires_at = (order.payment_info or {}).get('expires_at')
        if not expires_at:
            return False
        deadline = datetime.fromisoformat(expires_at) + timedelta(
            seconds=int(settings.VNPAY.get('CALLBACK_GRACE_SECONDS', 300))
        )
        moment = now
        if pay_date:
            try:
                moment = gateway.parse_date(pay_date)
            except ValueError:
                logger.warning(f"Unparseable vnp_PayDate '{pay_date}' for order {order.order_number}")
        return moment > deadline

    @staticmethod
    def _update_transaction(order, txn_ref, status, params, now):
        payment = PaymentTransaction.objects.filter(order=order, txn_ref=txn_ref).order_by('-created_at', '-id').first()
        if payment is None:
            return None
        payment.status = status
        payment.gateway_transaction_no = params.get('vnp_TransactionNo', '')
        payment.response_code = params.get('vnp_ResponseCode', '')
        payment.pay_date = params.get('vnp_PayDate', '')
        payment.callback_data = params
        payment.callback_received_at = now
        if status == 'success':
            payment.paid_at = now
        payment.save()
        return payment

    @staticmethod
    def _flag_for_review(order, reason, params, now):
        payment_info = dict(order.payment_info or {})
        payment_info.update({
            'requires_review': True,
            'review_reason': reason,
            'response_code': params.get('vnp_ResponseCode', ''),
            'transaction_no': params.get('vnp_TransactionNo', ''),
            'pay_date': params.get('vnp_PayDate', ''),
            'flagged_at': now.isoformat(),
        })
        order.payment_info = payment_info
        order.save(update_fields=['payment_info', 'updated_at'])

    @staticmethod
    def process_callback(params, source='return', now=None) -> Dict:
        """
        Reconcile a gateway callback with its order.

        Checks run in this order: signature, order lookup, amount, already
        paid, expiry, then the response code. Returns a dict with 'outcome'
        ('success', 'already_paid' or 'failed'), 'order' and 'response_code'.
        Raises SignatureInvalid, NotFound or GatewayError for rejected callbacks.
        """
        gateway = PaymentService.get_gateway()
        params = {key: str(value) for key, value in params.items()}
        gateway.verify_or_raise(params, source)

        txn_ref = params.get('vnp_TxnRef', '')
        response_code = params.get('vnp_ResponseCode', '')
        order = PaymentService.find_order_by_txn_ref(txn_ref)
        if order is None:
            logger.warning(f"VNPay {source} for unknown order {txn_ref}")
            raise NotFound("Order not found", reason='order_not_found')

        try:
            received_amount = int(params.get('vnp_Amount', ''))
        except ValueError:
            raise GatewayError("Malformed gateway amount", reason='malformed_response')
        if received_amount != to_gateway_amount(order.total_amount):
            logger.warning(
                f"VNPay {source} amount mismatch for order {order.order_number}: "
                f"received {received_amount}, expected {to_gateway_amount(order.total_amount)}"
            )
            raise GatewayError("Invalid amount", reason='amount_mismatch')

        now = now or timezone.now()
        rejection = None

        with transaction.atomic():
            order = Order.objects.select_for_update().get(pk=order.pk)

            if order.payment_status == 'paid':
                logger.info(f"VNPay {source} for already paid order {order.order_number}, ignoring")
                return {'outcome': 'already_paid', 'order': order, 'response_code': response_code}

            if PaymentService._is_late(order, params.get('vnp_PayDate'), gateway, now):
                logger.warning(f"Late VNPay {source} for order {order.order_number}, flagged for review")
                PaymentService._flag_for_review(order, 'payment_expired', params, now)
                PaymentService._update_transaction(order, txn_ref, 'expired', params, now)
                rejection = GatewayError("Payment window expired", reason='payment_expired')

            elif response_code == SUCCESS_CODE:
                PaymentService._update_transaction(order, txn_ref, 'success', params, now)
                try:
                    order = OrderStatusService.apply_event(
                        order,
                        state_machine.PAYMENT_SUCCEEDED,
                        actor_label='gateway',
                        note=f"Payment confirmed via VNPay - Transaction: {params.get('vnp_TransactionNo', '')}",
                        payment_info={
                            'transaction_no': params.get('vnp_TransactionNo', ''),
                            'bank_code': params.get('vnp_BankCode', ''),
                            'pay_date': params.get('vnp_PayDate', ''),
                            'response_code': response_code,
                            'completed_at': now.isoformat(),
                        },
                    )
                except InvalidTransition:
                    logger.error(
                        f"VNPay payment received for order {order.order_number} in status {order.status}, "
                        f"flagged for review"
                    )
                    PaymentService._flag_for_review(order, 'order_not_payable', params, now)
                    rejection = GatewayError("Order is not awaiting payment", reason='order_not_payable')

            elif order.status != state_machine.PENDING_PAYMENT:
                PaymentService._update_transaction(order, txn_ref, 'failed', params, now)
                PaymentService._flag_for_review(order, 'order_not_payable', params, now)
                logger.info(
                    f"VNPay failure code {response_code} for order {order.order_number} in status {order.status}, "
                    f"payment state left unchanged"
                )

            else:
                PaymentService._update_transaction(order, txn_ref, 'failed', params, now)
                payment_info = dict(order.payment_info or {})
                payment_info.update({
                    'response_code': response_code,
                    'failed_at': now.isoformat(),
                })
                order.payment_info = payment_info
                order.payment_status = 'failed'
                order.save(update_fields=['payment_info', 'payment_status', 'updated_at'])
                logger.info(f"VNPay payment failed for order {order.order_number} with code {response_code}")

        if rejection is not None:
            raise rejection

        if response_code == SUCCESS_CODE:
            logger.info(f"VNPay payment confirmed for order {order.order_number}")
            OrderNotificationService.send_order_confirmation(order)
            return {'outcome': 'success', 'order': order, 'response_code': response_code}

        return {'outcome': 'failed', 'order': order, 'response_code': response_code}

    @staticmethod
    def get_payment_status(order_id, user=None, refresh=False) -> Dict:
        """
        Payment status of an order.

        With refresh=True and an unpaid order that has a payment request,
        the gateway is asked through querydr; gateway errors are logged and
        the stored status is returned.
        """
        order = PaymentService._get_order(order_id)
        PaymentService._check_access(order, user)

        gateway_result = None
        payment_info = order.payment_info or {}
        if refresh and order.payment_status != 'paid' and payment_info.get('create_date'):
            gateway = PaymentService.get_gateway()
            try:
                body = gateway.query_transaction(payment_info['txn_ref'], payment_info['create_date'])
                gateway_result = {
                    'response_code': body.get('vnp_ResponseCode'),
                    'transaction_status': body.get('vnp_TransactionStatus'),
                    'transaction_no': body.get('vnp_TransactionNo'),
                    'message': body.get('vnp_Message'),
                }
            except GatewayError as e:
                logger.warning(f"Payment status refresh failed for order {order.order_number}: {e.message}")
                gateway_result = {'error': e.reason}

        return {
            'order_id': order.id,
            'order_number': order.order_number,
            'status': order.status,
            'payment_status': order.payment_status,
            'paid_at': order.paid_at,
            'requires_review': bool(payment_info.get('requires_review')),
            'response_code': payment_info.get('response_code', ''),
            'gateway': gateway_result,
        }
