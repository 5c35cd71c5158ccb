"""
Test settings for shop_server project.
"""

from .base import *

# Use SQLite for testing
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}


# Disable migrations for faster testing
class DisableMigrations:
    def __contains__(self, item):
        return True

    def __getitem__(self, item):
        return None


MIGRATION_MODULES = DisableMigrations()

# Use faster password hasher for testing
PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]

# Disable logging during tests
LOGGING_CONFIG = None

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    }
}

CSRF_COOKIE_SECURE = False
SESSION_COOKIE_SECURE = False

# Email backend for testing
EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

CLIENT_URL = 'http://shop.test'

VNPAY = {
    **VNPAY,
    'TMN_CODE': 'TESTTMN1',
    'HASH_SECRET': 'TESTSECRETKEYFORSIGNING0123456789',
    'URL': 'https://sandbox.vnpayment.vn/paymentv2/vpcpay.html',
    'RETURN_URL': 'http://testserver/api/payments/vnpay/return',
}
