"""
Test configuration for the checkout service.
"""
import pytest
from decimal import Decimal

from apps.common.config import CheckoutConfig


@pytest.fixture
def checkout_config():
    """Default checkout constants."""
    return CheckoutConfig()


@pytest.fixture
def user_factory():
    """Factory for creating test users."""
    from tests.factories import UserFactory
    return UserFactory


@pytest.fixture
def customer(db):
    """A customer with an empty loyalty account."""
    from tests.factories import PointsAccountFactory, UserFactory
    user = UserFactory()
    PointsAccountFactory(user=user)
    return user


@pytest.fixture
def staff_user(db):
    from tests.factories import StaffUserFactory
    return StaffUserFactory()


@pytest.fixture
def variant(db):
    """An in-stock variant priced at 1,000,000."""
    from tests.factories import ProductVariantFactory
    return ProductVariantFactory(product__base_price=Decimal('1000000'), stock_quantity=10)


@pytest.fixture
def api_client():
    from rest_framework.test import APIClient
    return APIClient()
