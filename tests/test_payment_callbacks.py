"""
Tests for VNPay payment creation and callback reconciliation
"""
from datetime import timedelta
from decimal import Decimal
from unittest import mock
from urllib.parse import parse_qs, urlsplit

from django.conf import settings
from django.core import mail
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from apps.common.exceptions import AccessDenied, Conflict, GatewayError, NotFound, SignatureInvalid
from apps.orders.models import OrderStatusHistory
from apps.payments.models import PaymentCallback, PaymentTransaction
from apps.payments.services import PaymentService, VNPayService
from apps.payments.services.vnpay_service import QUERY_RESPONSE_HASH_FIELDS, canonicalize, to_gateway_amount
from tests.factories import OrderFactory, UserFactory

RETURN_URL = '/api/payments/vnpay/return'
IPN_URL = '/api/payments/vnpay/ipn'


def gateway_callback(order, response_code='00', amount=None, pay_date=None, **extra):
    """Callback parameters signed the way the gateway signs them"""
    gateway = VNPayService()
    params = {
        'vnp_Amount': str(amount if amount is not None else to_gateway_amount(order.total_amount)),
        'vnp_BankCode': 'NCB',
        'vnp_CardType': 'ATM',
        'vnp_OrderInfo': f'Thanh toan don hang {order.order_number}',
        'vnp_PayDate': pay_date or gateway.format_date(timezone.now()),
        'vnp_ResponseCode': response_code,
        'vnp_TmnCode': gateway.tmn_code,
        'vnp_TransactionNo': '14226112',
        'vnp_TransactionStatus': response_code,
        'vnp_TxnRef': order.order_number,
    }
    params.update(extra)
    params['vnp_SecureHash'] = gateway.sign(canonicalize(params))
    return params


class PaymentTestCase(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.order = OrderFactory(total_amount=Decimal('1125000'))
        PaymentService.create_payment(self.order.id)
        self.order.refresh_from_db()

    def history(self, status=None):
        rows = OrderStatusHistory.objects.filter(order=self.order)
        if status:
            rows = rows.filter(status=status)
        return rows


class TestCreatePayment(TestCase):

    def test_payment_url_and_transaction_record(self):
        order = OrderFactory(total_amount=Decimal('6600000'))

        result = PaymentService.create_payment(order.id, ip_addr='::1')

        query = parse_qs(urlsplit(result['payment_url']).query)
        self.assertEqual(query['vnp_Amount'], ['660000000'])
        self.assertEqual(query['vnp_TxnRef'], [order.order_number])

        payment = PaymentTransaction.objects.get(transaction_id=result['transaction_id'])
        self.assertEqual(payment.gateway_amount, 660000000)
        self.assertEqual(payment.ip_address, '127.0.0.1')
        self.assertEqual(payment.status, 'pending')

        order.refresh_from_db()
        self.assertEqual(order.payment_status, 'processing')
        self.assertEqual(order.payment_info['txn_ref'], order.order_number)
        self.assertEqual(order.payment_info['gateway_amount'], 660000000)
        self.assertIn('expires_at', order.payment_info)

    def test_retry_issues_a_new_transaction(self):
        order = OrderFactory()
        first = PaymentService.create_payment(order.id)
        second = PaymentService.create_payment(order.id)

        self.assertNotEqual(first['transaction_id'], second['transaction_id'])
        self.assertEqual(PaymentTransaction.objects.filter(order=order).count(), 2)

    def test_rejected_orders(self):
        cod = OrderFactory(payment_method='cod', status='confirmed')
        paid = OrderFactory(payment_status='paid', status='confirmed')
        cancelled = OrderFactory(status='cancelled')

        for order, reason in ((cod, 'invalid_payment_method'), (paid, 'already_paid'), (cancelled, 'not_pending_payment')):
            with self.subTest(reason=reason):
                with self.assertRaises(Conflict) as ctx:
                    PaymentService.create_payment(order.id)
                self.assertEqual(ctx.exception.reason, reason)

        with self.assertRaises(NotFound):
            PaymentService.create_payment(999999)

    def test_only_the_owner_can_pay_a_member_order(self):
        owner = UserFactory()
        order = OrderFactory(user=owner)

        with self.assertRaises(AccessDenied):
            PaymentService.create_payment(order.id, user=UserFactory())
        with self.assertRaises(AccessDenied):
            PaymentService.create_payment(order.id, user=None)

        self.assertIn('payment_url', PaymentService.create_payment(order.id, user=owner))

    def test_create_endpoint(self):
        order = OrderFactory()
        response = APIClient().post('/api/payments/vnpay/create', {'order_id': order.id}, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['data']['payment_url'].startswith(settings.VNPAY['URL']))

    def test_create_endpoint_reports_conflicts(self):
        order = OrderFactory(payment_method='cod', status='confirmed')
        response = APIClient().post('/api/payments/vnpay/create', {'order_id': order.id}, format='json')

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['reason'], 'invalid_payment_method')


class TestProcessCallback(PaymentTestCase):
    """Callback reconciliation rules shared by the return URL and the IPN"""

    def test_success_confirms_and_marks_paid(self):
        result = PaymentService.process_callback(gateway_callback(self.order))

        self.assertEqual(result['outcome'], 'success')
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'confirmed')
        self.assertEqual(self.order.payment_status, 'paid')
        self.assertIsNotNone(self.order.paid_at)
        self.assertIsNotNone(self.order.confirmed_at)
        self.assertEqual(self.order.payment_info['transaction_no'], '14226112')
        self.assertEqual(self.order.payment_info['bank_code'], 'NCB')
        self.assertEqual(self.history('confirmed').count(), 1)
        self.assertEqual(self.history('confirmed').get().actor_label, 'gateway')

        payment = PaymentTransaction.objects.get(order=self.order)
        self.assertEqual(payment.status, 'success')
        self.assertIsNotNone(payment.paid_at)
        self.assertEqual(len(mail.outbox), 1)

    def test_repeated_success_is_idempotent(self):
        params = gateway_callback(self.order)
        PaymentService.process_callback(params, source='return')

        result = PaymentService.process_callback(params, source='ipn')

        self.assertEqual(result['outcome'], 'already_paid')
        self.assertEqual(self.history('confirmed').count(), 1)
        self.assertEqual(len(mail.outbox), 1)

    def test_failure_code_marks_payment_failed(self):
        result = PaymentService.process_callback(gateway_callback(self.order, response_code='24'))

        self.assertEqual(result['outcome'], 'failed')
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'pending_payment')
        self.assertEqual(self.order.payment_status, 'failed')
        self.assertEqual(self.order.payment_info['response_code'], '24')
        self.assertFalse(self.history().exists())
        self.assertEqual(PaymentTransaction.objects.get(order=self.order).status, 'failed')

    def test_failed_payment_can_be_retried(self):
        PaymentService.process_callback(gateway_callback(self.order, response_code='24'))
        PaymentService.create_payment(self.order.id)

        result = PaymentService.process_callback(gateway_callback(self.order))

        self.assertEqual(result['outcome'], 'success')
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, 'paid')

    def test_tampered_amount_fails_signature(self):
        params = gateway_callback(self.order)
        params['vnp_Amount'] = '100'

        with self.assertRaises(SignatureInvalid):
            PaymentService.process_callback(params)

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'pending_payment')
        self.assertEqual(self.order.payment_status, 'processing')

    def test_signed_wrong_amount_is_rejected(self):
        with self.assertRaises(GatewayError) as ctx:
            PaymentService.process_callback(gateway_callback(self.order, amount=100))
        self.assertEqual(ctx.exception.reason, 'amount_mismatch')

        self.order.refresh_from_db()
        self.assertNotEqual(self.order.payment_status, 'paid')

    def test_unknown_order(self):
        params = gateway_callback(OrderFactory.build(order_number='ORD-20991231-999'))
        with self.assertRaises(NotFound):
            PaymentService.process_callback(params)

    def test_late_payment_is_flagged_not_confirmed(self):
        order = OrderFactory()
        PaymentService.create_payment(order.id, now=timezone.now() - timedelta(hours=1))
        order.refresh_from_db()

        with self.assertRaises(GatewayError) as ctx:
            PaymentService.process_callback(gateway_callback(order))
        self.assertEqual(ctx.exception.reason, 'payment_expired')

        order.refresh_from_db()
        self.assertEqual(order.status, 'pending_payment')
        self.assertTrue(order.payment_info['requires_review'])
        self.assertEqual(order.payment_info['review_reason'], 'payment_expired')
        self.assertEqual(PaymentTransaction.objects.get(order=order).status, 'expired')

    def test_payment_within_grace_period_is_accepted(self):
        order = OrderFactory()
        expire_minutes = settings.VNPAY['EXPIRE_MINUTES']
        PaymentService.create_payment(order.id, now=timezone.now() - timedelta(minutes=expire_minutes + 2))
        order.refresh_from_db()

        result = PaymentService.process_callback(gateway_callback(order))

        self.assertEqual(result['outcome'], 'success')

    def test_payment_for_cancelled_order_is_flagged(self):
        self.order.status = 'cancelled'
        self.order.save(update_fields=['status'])

        with self.assertRaises(GatewayError) as ctx:
            PaymentService.process_callback(gateway_callback(self.order))
        self.assertEqual(ctx.exception.reason, 'order_not_payable')

        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'cancelled')
        self.assertNotEqual(self.order.payment_status, 'paid')
        self.assertEqual(self.order.payment_info['review_reason'], 'order_not_payable')

    def test_failed_payment_for_cancelled_order_keeps_payment_state(self):
        self.order.status = 'cancelled'
        self.order.save(update_fields=['status'])

        result = PaymentService.process_callback(gateway_callback(self.order, response_code='24'))

        self.assertEqual(result['outcome'], 'failed')
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'cancelled')
        self.assertEqual(self.order.payment_status, 'processing')
        self.assertTrue(self.order.payment_info['requires_review'])
        self.assertEqual(self.order.payment_info['review_reason'], 'order_not_payable')
        self.assertEqual(PaymentTransaction.objects.get(order=self.order).status, 'failed')


class TestReturnEndpoint(PaymentTestCase):
    """Browser return URL redirects to the storefront"""

    def location(self, response):
        parts = urlsplit(response['Location'])
        return parts.path, {k: v[0] for k, v in parse_qs(parts.query).items()}

    def test_success_redirect(self):
        response = self.client.get(RETURN_URL, gateway_callback(self.order))

        self.assertEqual(response.status_code, 302)
        self.assertTrue(response['Location'].startswith(settings.CLIENT_URL))
        self.assertEqual(self.location(response), ('/payment/success', {'orderId': str(self.order.id)}))

        log = PaymentCallback.objects.get(callback_type='return')
        self.assertTrue(log.processed)
        self.assertEqual(log.outcome, 'success')

    def test_already_paid_still_redirects_to_success(self):
        params = gateway_callback(self.order)
        self.client.get(RETURN_URL, params)
        response = self.client.get(RETURN_URL, params)

        self.assertEqual(self.location(response)[0], '/payment/success')
        self.assertEqual(self.history('confirmed').count(), 1)

    def test_failure_redirect_carries_code(self):
        response = self.client.get(RETURN_URL, gateway_callback(self.order, response_code='24'))
        self.assertEqual(
            self.location(response),
            ('/payment/failure', {'orderId': str(self.order.id), 'code': '24'}),
        )

    def test_tampered_callback_shows_failure_page(self):
        params = gateway_callback(self.order)
        params['vnp_Amount'] = str(int(params['vnp_Amount']) - 100)

        response = self.client.get(RETURN_URL, params)

        self.assertEqual(self.location(response), ('/payment/failure', {'code': '97'}))
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'pending_payment')
        log = PaymentCallback.objects.get(callback_type='return')
        self.assertFalse(log.signature_valid)
        self.assertFalse(log.processed)

    def test_amount_mismatch_redirect(self):
        response = self.client.get(RETURN_URL, gateway_callback(self.order, amount=100))
        self.assertEqual(
            self.location(response),
            ('/payment/failure', {'orderId': str(self.order.id), 'code': '04'}),
        )


class TestIpnEndpoint(PaymentTestCase):
    """IPN always answers 200 with a RspCode"""

    def ipn(self, params):
        response = self.client.get(IPN_URL, params)
        self.assertEqual(response.status_code, 200)
        return response.data['RspCode']

    def test_confirm_success(self):
        self.assertEqual(self.ipn(gateway_callback(self.order)), '00')
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, 'paid')

    def test_failed_payment_is_acknowledged(self):
        self.assertEqual(self.ipn(gateway_callback(self.order, response_code='24')), '00')

    def test_already_confirmed(self):
        params = gateway_callback(self.order)
        self.ipn(params)
        self.assertEqual(self.ipn(params), '02')
        self.assertEqual(self.history('confirmed').count(), 1)

    def test_rejections(self):
        tampered = gateway_callback(self.order)
        tampered['vnp_ResponseCode'] = '00' if tampered['vnp_ResponseCode'] != '00' else '01'
        unknown = gateway_callback(OrderFactory.build(order_number='ORD-20991231-999'))

        self.assertEqual(self.ipn(tampered), '97')
        self.assertEqual(self.ipn(unknown), '01')
        self.assertEqual(self.ipn(gateway_callback(self.order, amount=1)), '04')
        self.assertEqual(PaymentCallback.objects.filter(callback_type='ipn', processed=False).count(), 3)

    def test_expired_order_is_not_awaiting_payment(self):
        order = OrderFactory()
        PaymentService.create_payment(order.id, now=timezone.now() - timedelta(hours=1))
        order.refresh_from_db()
        self.assertEqual(self.ipn(gateway_callback(order)), '02')


class TestPaymentStatus(PaymentTestCase):

    def _querydr_response(self, **fields):
        gateway = VNPayService()
        body = {field: '' for field in QUERY_RESPONSE_HASH_FIELDS}
        body.update(fields)
        body['vnp_SecureHash'] = gateway.sign('|'.join(str(body[f]) for f in QUERY_RESPONSE_HASH_FIELDS))
        response = mock.Mock()
        response.raise_for_status.return_value = None
        response.json.return_value = body
        return response

    def test_stored_status(self):
        response = self.client.get('/api/payments/vnpay/status', {'orderId': self.order.id})

        self.assertEqual(response.status_code, 200)
        data = response.data['data']
        self.assertEqual(data['payment_status'], 'processing')
        self.assertIsNone(data['gateway'])
        self.assertEqual(len(data['transactions']), 1)

    @mock.patch('apps.payments.services.vnpay_service.requests.post')
    def test_refresh_asks_the_gateway(self, post):
        post.return_value = self._querydr_response(
            vnp_ResponseCode='00', vnp_TransactionStatus='00', vnp_TransactionNo='14226112',
            vnp_TxnRef=self.order.order_number,
        )

        response = self.client.get('/api/payments/vnpay/status', {'orderId': self.order.id, 'refresh': '1'})

        self.assertEqual(response.data['data']['gateway']['transaction_status'], '00')
        self.assertEqual(post.call_args.kwargs['json']['vnp_TxnRef'], self.order.order_number)

    @mock.patch('apps.payments.services.vnpay_service.requests.post')
    def test_refresh_survives_gateway_outage(self, post):
        import requests
        post.side_effect = requests.Timeout('timed out')

        response = self.client.get('/api/payments/vnpay/status', {'orderId': self.order.id, 'refresh': 'true'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['gateway'], {'error': 'gateway_unavailable'})

    def test_missing_order_id(self):
        response = self.client.get('/api/payments/vnpay/status')
        self.assertEqual(response.status_code, 400)
