import os
from dotenv import load_dotenv

load_dotenv()


def _bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _list(name, default):
    value = os.getenv(name)
    if value is None:
        return list(default)
    return [item.strip() for item in value.split(',') if item.strip()]


# Safaricom callback source ranges
SAFARICOM_CALLBACK_RANGES = [
    '196.201.212.0/24',
    '196.201.213.0/24',
    '196.201.214.0/24',
]


class Config:
    """Base configuration"""
    ENV_NAME = 'base'
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key')

    # Shared secret for the x-api-key header; unset disables the check outside production
    API_KEY = os.getenv('API_KEY')

    # M-Pesa Configuration
    MPESA_ENV = os.getenv('MPESA_ENV', 'sandbox')
    MPESA_BASE_URL = os.getenv('MPESA_BASE_URL')
    MPESA_CONSUMER_KEY = os.getenv('MPESA_CONSUMER_KEY')
    MPESA_CONSUMER_SECRET = os.getenv('MPESA_CONSUMER_SECRET')
    MPESA_SHORTCODE = os.getenv('MPESA_SHORTCODE', os.getenv('MPESA_BUSINESS_SHORT_CODE'))
    MPESA_PASSKEY = os.getenv('MPESA_PASSKEY')
    MPESA_TILL_NUMBER = os.getenv('MPESA_TILL_NUMBER', '')
    MPESA_CALLBACK_URL = os.getenv('MPESA_CALLBACK_URL', '')
    MPESA_ACCOUNT_REFERENCE = os.getenv('MPESA_ACCOUNT_REFERENCE', 'Payment')
    MPESA_TRANSACTION_DESC = os.getenv('MPESA_TRANSACTION_DESC', 'Payment')
    MPESA_AUTH_TIMEOUT = float(os.getenv('MPESA_AUTH_TIMEOUT', 15))
    MPESA_REQUEST_TIMEOUT = float(os.getenv('MPESA_REQUEST_TIMEOUT', 30))

    # Callback source validation
    MPESA_VALIDATE_CALLBACK_IP = _bool('MPESA_VALIDATE_CALLBACK_IP', True)
    MPESA_CALLBACK_ALLOWED_IPS = _list('MPESA_CALLBACK_ALLOWED_IPS', SAFARICOM_CALLBACK_RANGES)
    MPESA_TEST_ENDPOINT_ENABLED = _bool('MPESA_TEST_ENDPOINT_ENABLED', False)

    # Only trust X-Forwarded-For when running behind a known proxy
    TRUST_PROXY_HEADERS = _bool('TRUST_PROXY_HEADERS', False)

    # Rate limiting
    RATE_LIMIT_ENABLED = _bool('RATE_LIMIT_ENABLED', True)
    RATE_LIMIT_MAX_REQUESTS = int(os.getenv('RATE_LIMIT_MAX_REQUESTS', 100))
    RATE_LIMIT_WINDOW_SECONDS = float(os.getenv('RATE_LIMIT_WINDOW_SECONDS', 15 * 60))
    RATE_LIMIT_SWEEP_PROBABILITY = float(os.getenv('RATE_LIMIT_SWEEP_PROBABILITY', 0.1))

    # Callback de-duplication
    CALLBACK_DEDUP_TTL = float(os.getenv('CALLBACK_DEDUP_TTL', 86400))
    CALLBACK_DEDUP_MAX_ENTRIES = int(os.getenv('CALLBACK_DEDUP_MAX_ENTRIES', 10000))

    # Include tracebacks and provider payloads in error responses
    EXPOSE_ERROR_DETAILS = False


class DevelopmentConfig(Config):
    """Development configuration"""
    ENV_NAME = 'development'
    DEBUG = True
    TESTING = False
    EXPOSE_ERROR_DETAILS = True
    MPESA_TEST_ENDPOINT_ENABLED = True
    MPESA_VALIDATE_CALLBACK_IP = False


class ProductionConfig(Config):
    """Production configuration"""
    ENV_NAME = 'production'
    DEBUG = False
    TESTING = False
    MPESA_TEST_ENDPOINT_ENABLED = False


class TestingConfig(Config):
    """Testing configuration"""
    ENV_NAME = 'testing'
    TESTING = True
    API_KEY = None
    MPESA_ENV = 'sandbox'
    MPESA_BASE_URL = 'https://sandbox.safaricom.co.ke'
    MPESA_CONSUMER_KEY = 'test_consumer_key'
    MPESA_CONSUMER_SECRET = 'test_consumer_secret'
    MPESA_SHORTCODE = '174379'
    MPESA_PASSKEY = 'test_passkey'
    MPESA_TILL_NUMBER = ''
    MPESA_CALLBACK_URL = 'https://example.com/api/mpesa/callback'
    MPESA_ACCOUNT_REFERENCE = 'TestRef'
    MPESA_TRANSACTION_DESC = 'Test payment'
    MPESA_VALIDATE_CALLBACK_IP = True
    MPESA_CALLBACK_ALLOWED_IPS = list(SAFARICOM_CALLBACK_RANGES)
    TRUST_PROXY_HEADERS = False
    RATE_LIMIT_ENABLED = True
    RATE_LIMIT_MAX_REQUESTS = 100
    RATE_LIMIT_WINDOW_SECONDS = 900
    RATE_LIMIT_SWEEP_PROBABILITY = 0.1


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
