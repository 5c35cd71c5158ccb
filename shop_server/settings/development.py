"""
Development settings for shop_server project.
"""

from decouple import config
from .base import *

DEBUG = config('DEBUG', default=True, cast=bool)

# Database - MySQL/MariaDB for development
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.mysql',
        'NAME': config('MYSQL_DATABASE', default='shop_server_dev'),
        'USER': config('MYSQL_USER', default='root'),
        'PASSWORD': config('MYSQL_PASSWORD', default='dev_password'),
        'HOST': config('MYSQL_HOST', default='localhost'),
        'PORT': config('MYSQL_PORT', default='3306'),
        'OPTIONS': {
            'charset': 'utf8mb4',
            'init_command': "SET sql_mode='STRICT_TRANS_TABLES'",
        },
        'CONN_MAX_AGE': config('DB_CONN_MAX_AGE', default=60, cast=int),
        'CONN_HEALTH_CHECKS': True,
    }
}

# Email backend for development
EMAIL_BACKEND = config('EMAIL_BACKEND', default='django.core.mail.backends.console.EmailBackend')

# Logging for development
LOGGING['handlers']['console']['level'] = config('LOG_LEVEL', default='DEBUG')
LOGGING['root']['level'] = config('LOG_LEVEL', default='DEBUG')
