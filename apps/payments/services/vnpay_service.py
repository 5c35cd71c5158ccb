"""
VNPay redirect gateway: URL signing, callback verification and querydr.

The canonical string is built the way the gateway builds it: parameters
sorted by URL-encoded key, values encoded like JavaScript's
encodeURIComponent with %20 turned into '+', joined as k=v&k=v, then signed
with HMAC-SHA512 over the UTF-8 bytes. Any deviation breaks the signature.
"""
import hashlib
import hmac
import logging
import re
import unicodedata
import uuid
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from urllib.parse import quote
from zoneinfo import ZoneInfo

import requests
from django.conf import settings
from django.utils import timezone

from apps.common.exceptions import GatewayError, SignatureInvalid

logger = logging.getLogger(__name__)
security_logger = logging.getLogger('security')

# Characters encodeURIComponent leaves untouched besides alphanumerics and _.-~
ENCODE_SAFE = "!*'()"
DATE_FORMAT = '%Y%m%d%H%M%S'
HASH_FIELDS = ('vnp_SecureHash', 'vnp_SecureHashType')

QUERY_RESPONSE_HASH_FIELDS = (
    'vnp_ResponseId', 'vnp_Command', 'vnp_ResponseCode', 'vnp_Message',
    'vnp_TmnCode', 'vnp_TxnRef', 'vnp_Amount', 'vnp_BankCode', 'vnp_PayDate',
    'vnp_TransactionNo', 'vnp_TransactionType', 'vnp_TransactionStatus',
    'vnp_OrderInfo', 'vnp_PromotionCode', 'vnp_PromotionAmount',
)


def encode_component(value):
    """encodeURIComponent-compatible encoding"""
    return quote(str(value), safe=ENCODE_SAFE)


def canonicalize(params):
    """Build the string that gets signed from a flat parameter dict"""
    pairs = sorted((encode_component(key), value) for key, value in params.items())
    return '&'.join(
        f"{key}={encode_component(value).replace('%20', '+')}"
        for key, value in pairs
    )


def clean_order_info(text):
    """Strip diacritics, turn non-word characters into spaces, collapse whitespace"""
    normalized = unicodedata.normalize('NFD', str(text))
    normalized = re.sub('[\u0300-\u036f]', '', normalized)
    normalized = re.sub(r'[^\w\s]', ' ', normalized, flags=re.ASCII)
    return re.sub(r'\s+', ' ', normalized).strip()


def clean_ip(ip_addr):
    """Gateway-acceptable client IP; IPv6 loopback and blanks become 127.0.0.1"""
    ip_addr = (ip_addr or '').strip()
    if '::ffff:' in ip_addr:
        ip_addr = ip_addr.replace('::ffff:', '')
    if not ip_addr or ip_addr in ('::1', '1'):
        return '127.0.0.1'
    return ip_addr


def to_gateway_amount(amount):
    """Order total in gateway units: rounded to whole currency, times 100"""
    return int(Decimal(amount).quantize(Decimal('1'), rounding=ROUND_HALF_UP)) * 100


class VNPayService:
    """Signs outbound payment URLs and verifies inbound gateway callbacks"""

    def __init__(self, config=None):
        config = config or settings.VNPAY
        self.tmn_code = config['TMN_CODE']
        self.hash_secret = config['HASH_SECRET']
        self.payment_url = config['URL']
        self.return_url = config['RETURN_URL']
        self.api_url = config.get('API_URL', '')
        self.version = config.get('VERSION', '2.1.0')
        self.locale = config.get('LOCALE', 'vn')
        self.currency = config.get('CURRENCY', 'VND')
        self.bank_code = config.get('BANK_CODE', '')
        self.order_type = config.get('ORDER_TYPE', 'other')
        self.tz = ZoneInfo(config.get('TIMEZONE', 'Asia/Ho_Chi_Minh'))
        self.expire_minutes = int(config.get('EXPIRE_MINUTES', 15))
        self.request_timeout = config.get('REQUEST_TIMEOUT', 10)

    def sign(self, data):
        """HMAC-SHA512 hex digest of a string"""
        return hmac.new(
            self.hash_secret.encode('utf-8'),
            data.encode('utf-8'),
            hashlib.sha512,
        ).hexdigest()

    def format_date(self, moment):
        return timezone.localtime(moment, self.tz).strftime(DATE_FORMAT)

    def parse_date(self, value):
        """Parse a gateway yyyyMMddHHmmss timestamp into an aware datetime"""
        return datetime.strptime(value, DATE_FORMAT).replace(tzinfo=self.tz)

    def build_payment_params(self, txn_ref, amount, order_info, ip_addr, now=None):
        """Unsigned parameter map for one payment request"""
        now = now or timezone.now()
        params = {
            'vnp_Version': self.version,
            'vnp_Command': 'pay',
            'vnp_TmnCode': self.tmn_code,
            'vnp_Locale': self.locale,
            'vnp_CurrCode': self.currency,
            'vnp_TxnRef': str(txn_ref),
            'vnp_OrderInfo': clean_order_info(order_info),
            'vnp_OrderType': self.order_type,
            'vnp_Amount': to_gateway_amount(amount),
            'vnp_ReturnUrl': self.return_url,
            'vnp_IpAddr': clean_ip(ip_addr),
            'vnp_CreateDate': self.format_date(now),
            'vnp_ExpireDate': self.format_date(now + timedelta(minutes=self.expire_minutes)),
        }
        if self.bank_code:
            params['vnp_BankCode'] = self.bank_code
        return params

    def sign_params(self, params):
        """Return (canonical string, secure hash) for a parameter map"""
        signed_data = canonicalize(params)
        return signed_data, self.sign(signed_data)

    def build_payment_url(self, txn_ref, amount, order_info, ip_addr, now=None):
        """
        Build the redirect URL.

        Returns (url, params) where params includes vnp_SecureHash.
        """
        params = self.build_payment_params(txn_ref, amount, order_info, ip_addr, now)
        signed_data, secure_hash = self.sign_params(params)
        params['vnp_SecureHash'] = secure_hash
        return f"{self.payment_url}?{signed_data}&vnp_SecureHash={secure_hash}", params

    def verify(self, params):
        """Check a callback's vnp_SecureHash against the recomputed one"""
        received = params.get('vnp_SecureHash') or ''
        if not received:
            return False
        unsigned = {key: value for key, value in params.items() if key not in HASH_FIELDS}
        expected = self.sign(canonicalize(unsigned))
        return hmac.compare_digest(expected, str(received).lower())

    def verify_or_raise(self, params, source='callback'):
        if not self.verify(params):
            security_logger.warning(
                f"VNPay {source} signature mismatch for TxnRef={params.get('vnp_TxnRef', '')}"
            )
            raise SignatureInvalid()

    def query_transaction(self, txn_ref, transaction_date, ip_addr=None, order_info=None, now=None):
        """
        Ask the gateway for the status of a transaction (querydr).

        transaction_date is the vnp_CreateDate of the payment request.
        Raises GatewayError when the gateway is unreachable or answers with
        something unexpected, SignatureInvalid when its answer is not signed
        with our secret.
        """
        now = now or timezone.now()
        request_id = uuid.uuid4().hex
        create_date = self.format_date(now)
        ip_addr = clean_ip(ip_addr)
        order_info = clean_order_info(order_info or f"Truy van giao dich {txn_ref}")

        sign_data = '|'.join([
            request_id, self.version, 'querydr', self.tmn_code, str(txn_ref),
            transaction_date, create_date, ip_addr, order_info,
        ])
        payload = {
            'vnp_RequestId': request_id,
            'vnp_Version': self.version,
            'vnp_Command': 'querydr',
            'vnp_TmnCode': self.tmn_code,
            'vnp_TxnRef': str(txn_ref),
            'vnp_OrderInfo': order_info,
            'vnp_TransactionDate': transaction_date,
            'vnp_CreateDate': create_date,
            'vnp_IpAddr': ip_addr,
            'vnp_SecureHash': self.sign(sign_data),
        }

        try:
            response = requests.post(self.api_url, json=payload, timeout=self.request_timeout)
            response.raise_for_status()
            body = response.json()
        except requests.JSONDecodeError as e:
            logger.error(f"VNPay querydr returned invalid JSON for {txn_ref}: {e}")
            raise GatewayError("Malformed gateway response", reason='malformed_response')
        except requests.RequestException as e:
            logger.error(f"VNPay querydr request failed for {txn_ref}: {e}", exc_info=True)
            raise GatewayError("Payment gateway unavailable", reason='gateway_unavailable')

        if not isinstance(body, dict) or 'vnp_ResponseCode' not in body:
            logger.error(f"Unexpected VNPay querydr response for {txn_ref}: {body}")
            raise GatewayError("Malformed gateway response", reason='malformed_response')

        received_hash = body.get('vnp_SecureHash')
        if received_hash:
            response_data = '|'.join(str(body.get(field, '')) for field in QUERY_RESPONSE_HASH_FIELDS)
            if not hmac.compare_digest(self.sign(response_data), str(received_hash).lower()):
                security_logger.warning(f"VNPay querydr response signature mismatch for {txn_ref}")
                raise SignatureInvalid()

        return body
