"""
Checkout error taxonomy and the custom exception handler for consistent API responses
"""
from rest_framework.views import exception_handler
from rest_framework.exceptions import APIException
from rest_framework import status
import logging

logger = logging.getLogger(__name__)


class CheckoutError(APIException):
    """Base class for errors raised by checkout and payment services"""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request could not be processed'
    default_reason = 'checkout_error'

    def __init__(self, message=None, reason=None, errors=None):
        self.message = message or self.default_detail
        self.reason = reason or self.default_reason
        self.errors = errors
        super().__init__(detail=self.message)


class CheckoutValidationError(CheckoutError):
    """Missing or malformed request fields"""

    default_detail = 'Validation error'
    default_reason = 'validation_error'


class NotFound(CheckoutError):
    """Product, variant, order or discount code is absent"""

    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Resource not found'
    default_reason = 'not_found'


class AccessDenied(CheckoutError):
    """Caller may not read or act on this order"""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Access denied'
    default_reason = 'access_denied'


class Conflict(CheckoutError):
    """Request conflicts with current stock, usage or order state"""

    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Request conflicts with current state'
    default_reason = 'conflict'


class ItemUnavailable(Conflict):
    default_detail = 'Item is not available'
    default_reason = 'item_unavailable'


class InsufficientStock(Conflict):
    default_detail = 'Insufficient stock'
    default_reason = 'insufficient_stock'


class InsufficientPoints(Conflict):
    default_detail = 'Insufficient loyalty points'
    default_reason = 'insufficient_points'


class ProductNotFound(NotFound):
    default_detail = 'Product not found'
    default_reason = 'product_not_found'


class CodeNotFound(NotFound):
    default_detail = 'Invalid or inactive discount code'
    default_reason = 'code_not_found'


class UsageExceeded(Conflict):
    default_detail = 'Discount code usage limit exceeded'
    default_reason = 'usage_exceeded'


class BelowMinimum(Conflict):
    default_detail = 'Order amount is below the discount minimum'
    default_reason = 'below_minimum'


class AlreadyUsed(Conflict):
    default_detail = 'You have already used this discount code'
    default_reason = 'already_used'


class InvalidTransition(Conflict):
    default_detail = 'Order status transition is not allowed'
    default_reason = 'invalid_transition'


class SignatureInvalid(CheckoutError):
    """Gateway callback failed signature verification"""

    default_detail = 'Invalid signature'
    default_reason = 'invalid_signature'


class GatewayError(CheckoutError):
    """Malformed or unexpected payment gateway response"""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'Payment gateway error'
    default_reason = 'gateway_error'


def custom_exception_handler(exc, context):
    """
    Custom exception handler that returns consistent error responses
    """
    # Call REST framework's default exception handler first
    response = exception_handler(exc, context)

    if response is not None:
        if isinstance(exc, CheckoutError):
            logger.warning(f"Checkout error [{exc.reason}]: {exc.message}")
            custom_response_data = {
                'code': response.status_code,
                'msg': exc.message,
                'reason': exc.reason,
            }
            if exc.errors:
                custom_response_data['errors'] = exc.errors
            response.data = custom_response_data
            return response

        logger.error(f"API Exception: {exc}", exc_info=True)

        custom_response_data = {
            'code': response.status_code,
            'msg': 'An error occurred',
            'errors': response.data
        }

        # Handle specific error types
        if response.status_code == status.HTTP_400_BAD_REQUEST:
            custom_response_data['msg'] = 'Validation error'
        elif response.status_code == status.HTTP_401_UNAUTHORIZED:
            custom_response_data['msg'] = 'Authentication required'
        elif response.status_code == status.HTTP_403_FORBIDDEN:
            custom_response_data['msg'] = 'Permission denied'
        elif response.status_code == status.HTTP_404_NOT_FOUND:
            custom_response_data['msg'] = 'Resource not found'
        elif response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
            custom_response_data['msg'] = 'Method not allowed'
        elif response.status_code >= 500:
            custom_response_data['msg'] = 'Internal server error'
            custom_response_data['errors'] = {'detail': 'Internal server error'}

        response.data = custom_response_data

    return response
