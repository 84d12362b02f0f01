"""
Custom Decorators
API key authentication, callback source checks and request validation
"""

import hmac
import ipaddress
from functools import wraps

from flask import current_app, request

from mpesa_gateway.errors import Forbidden, Unauthorized, ValidationError
from mpesa_gateway.utils.logger import get_logger

logger = get_logger(__name__)


def client_ip():
    """Client address; X-Forwarded-For is only honoured behind a trusted proxy"""
    if current_app.config.get('TRUST_PROXY_HEADERS') and request.headers.get('X-Forwarded-For'):
        return request.headers.get('X-Forwarded-For').split(',')[0].strip()
    return request.remote_addr or 'unknown'


def require_api_key(f):
    """
    Require the shared secret in the x-api-key header

    The check is skipped when API_KEY is not configured, except in
    production where a missing API_KEY rejects every request.

    Usage:
        @require_api_key
        def my_endpoint():
            return "Success"
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get('API_KEY')
        production = current_app.config.get('ENV_NAME') == 'production'

        if not expected and not production:
            return f(*args, **kwargs)

        api_key = request.headers.get('x-api-key')
        if not api_key or not expected or not hmac.compare_digest(api_key, expected):
            raise Unauthorized('Invalid or missing API key')

        return f(*args, **kwargs)

    return decorated_function


def _ip_allowed(address, allowed_ranges):
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return False

    for allowed in allowed_ranges:
        try:
            if ip in ipaddress.ip_network(allowed, strict=False):
                return True
        except ValueError:
            logger.warning(f'Ignoring invalid callback IP range: {allowed}')
    return False


def mpesa_ip_allowlist(f):
    """
    Only accept callbacks from Safaricom's address ranges (CIDR match)

    Skipped when MPESA_VALIDATE_CALLBACK_IP is off.
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_app.config.get('MPESA_VALIDATE_CALLBACK_IP', True):
            return f(*args, **kwargs)

        address = client_ip()
        if not _ip_allowed(address, current_app.config.get('MPESA_CALLBACK_ALLOWED_IPS', [])):
            logger.warning(f'Callback from unauthorized IP: {address}')
            raise Forbidden('Unauthorized IP address')

        return f(*args, **kwargs)

    return decorated_function


def validate_content_type(content_type='application/json'):
    """
    Validate request content type

    Usage:
        @validate_content_type('application/json')
        def my_endpoint():
            return "Success"
    """

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if request.mimetype != content_type:
                raise ValidationError(
                    'Validation failed',
                    details=[f'Content-Type must be {content_type}']
                )

            return f(*args, **kwargs)

        return decorated_function

    return decorator
