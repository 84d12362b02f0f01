"""
Utils Package
Utility functions and helpers
"""

from mpesa_gateway.utils.logger import get_logger, configure_app_logging, RequestLogger
from mpesa_gateway.utils.responses import create_response, json_response
from mpesa_gateway.utils.retry import retry_with_backoff
from mpesa_gateway.utils.validators import (
    format_phone_number,
    validate_amount,
    generate_password,
    generate_timestamp,
    is_valid_phone_number,
    is_valid_amount,
)

__all__ = [
    'get_logger',
    'configure_app_logging',
    'RequestLogger',
    'create_response',
    'json_response',
    'retry_with_backoff',
    'format_phone_number',
    'validate_amount',
    'generate_password',
    'generate_timestamp',
    'is_valid_phone_number',
    'is_valid_amount',
]
