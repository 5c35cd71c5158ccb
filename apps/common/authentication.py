"""
JWT authentication shared by customer and guest endpoints
"""
import logging

from django.contrib.auth import get_user_model
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken
from rest_framework_simplejwt.settings import api_settings

logger = logging.getLogger(__name__)


class SafeJWTAuthentication(JWTAuthentication):
    """
    JWT authentication that treats a token for a deleted or inactive account
    as anonymous.

    Checkout, discount preview and payment creation accept guests, so a stale
    token should fall back to guest handling instead of failing the request.
    """

    def get_user(self, validated_token):
        try:
            user_id = validated_token[api_settings.USER_ID_CLAIM]
        except KeyError:
            raise InvalidToken('Token contained no recognizable user identification')

        user = get_user_model().objects.filter(**{api_settings.USER_ID_FIELD: user_id}).first()
        if user is None or not user.is_active:
            logger.warning(f'JWT token refers to unknown or inactive user_id: {user_id}')
            return None
        return user

    def authenticate(self, request):
        result = super().authenticate(request)
        if result is None or result[0] is None:
            return None
        return result
