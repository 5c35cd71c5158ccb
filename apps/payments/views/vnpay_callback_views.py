"""
VNPay callback views: browser return redirect and server-to-server IPN.
"""
from urllib.parse import urlencode

from django.conf import settings
from django.http import HttpResponseRedirect
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
import json
import logging

from apps.common.exceptions import GatewayError, NotFound, SignatureInvalid
from apps.common.utils import get_client_ip
from ..models import PaymentCallback
from ..services import PaymentService

logger = logging.getLogger(__name__)

# Codes shown on the failure page for rejected callbacks
GATEWAY_ERROR_CODES = {
    'amount_mismatch': '04',
    'payment_expired': '11',
    'order_not_payable': '02',
}


def _log_callback(request, callback_type):
    params = request.GET.dict()
    return PaymentCallback.objects.create(
        callback_type=callback_type,
        payment_method='vnpay',
        request_method=request.method,
        request_path=request.path,
        request_params=params,
        request_ip=get_client_ip(request),
        txn_ref=params.get('vnp_TxnRef', ''),
    ), params


def _finish_log(callback_log, outcome, response_body, processed, error='', signature_valid=True):
    callback_log.outcome = outcome
    callback_log.processed = processed
    callback_log.signature_valid = signature_valid
    callback_log.processing_error = error
    callback_log.response_body = response_body
    callback_log.save()


def _client_redirect(path, **query):
    query = {key: value for key, value in query.items() if value not in (None, '')}
    url = f"{settings.CLIENT_URL}/payment/{path}"
    if query:
        url = f"{url}?{urlencode(query)}"
    return HttpResponseRedirect(url)


@api_view(['GET'])
@permission_classes([AllowAny])
def vnpay_return(request):
    """Customer redirect back from VNPay"""
    callback_log, params = _log_callback(request, 'return')

    try:
        result = PaymentService.process_callback(params, source='return')
        order = result['order']
        if result['outcome'] in ('success', 'already_paid'):
            response = _client_redirect('success', orderId=order.id)
        else:
            response = _client_redirect('failure', orderId=order.id, code=result['response_code'])
        _finish_log(callback_log, result['outcome'], response['Location'], True)
        return response

    except SignatureInvalid:
        response = _client_redirect('failure', code='97')
        _finish_log(callback_log, 'invalid_signature', response['Location'], False, signature_valid=False)
        return response
    except NotFound as e:
        response = _client_redirect('failure', code='01')
        _finish_log(callback_log, e.reason, response['Location'], False, e.message)
        return response
    except GatewayError as e:
        order = PaymentService.find_order_by_txn_ref(callback_log.txn_ref)
        response = _client_redirect('failure', orderId=order.id if order else None, code=GATEWAY_ERROR_CODES.get(e.reason, '99'))
        _finish_log(callback_log, e.reason, response['Location'], False, e.message)
        return response
    except Exception as e:
        logger.error(f"VNPay return processing error: {str(e)}", exc_info=True)
        response = _client_redirect('failure', code='99')
        _finish_log(callback_log, 'error', response['Location'], False, str(e))
        return response


@api_view(['GET'])
@permission_classes([AllowAny])
def vnpay_ipn(request):
    """VNPay IPN; always HTTP 200 with RspCode/Message"""
    callback_log, params = _log_callback(request, 'ipn')
    signature_valid = True

    try:
        result = PaymentService.process_callback(params, source='ipn')
        if result['outcome'] == 'already_paid':
            response_data = {'RspCode': '02', 'Message': 'Order already confirmed'}
        else:
            response_data = {'RspCode': '00', 'Message': 'Confirm Success'}
        outcome, processed, error = result['outcome'], True, ''

    except SignatureInvalid:
        response_data = {'RspCode': '97', 'Message': 'Invalid signature'}
        outcome, processed, error, signature_valid = 'invalid_signature', False, '', False
    except NotFound as e:
        response_data = {'RspCode': '01', 'Message': 'Order not found'}
        outcome, processed, error = e.reason, False, e.message
    except GatewayError as e:
        if e.reason == 'amount_mismatch':
            response_data = {'RspCode': '04', 'Message': 'Invalid amount'}
        elif e.reason in ('payment_expired', 'order_not_payable'):
            response_data = {'RspCode': '02', 'Message': 'Order not awaiting payment'}
        else:
            response_data = {'RspCode': '99', 'Message': 'Unknown error'}
        outcome, processed, error = e.reason, False, e.message
    except Exception as e:
        logger.error(f"VNPay IPN processing error: {str(e)}", exc_info=True)
        response_data = {'RspCode': '99', 'Message': 'Unknown error'}
        outcome, processed, error = 'error', False, str(e)

    _finish_log(callback_log, outcome, json.dumps(response_data), processed, error, signature_valid)
    return Response(response_data, status=200)
