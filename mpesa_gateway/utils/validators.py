"""
M-Pesa Validators and Formatters
Phone number / amount normalisation and Daraja request credentials
"""

import base64
import random
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from mpesa_gateway.errors import FormatError, RangeError
from mpesa_gateway.utils.clock import system_clock

COUNTRY_CODE = '254'
MIN_AMOUNT = 1
MAX_AMOUNT = 70000

_CANONICAL_PHONE = re.compile(r'^254\d{9}$')
_TIMESTAMP_FORMAT = '%Y%m%d%H%M%S'


def format_phone_number(phone: Any) -> str:
    """
    Normalise a phone number to Safaricom's canonical format (2547XXXXXXXX).

    Accepts: +254712345678, 0712345678, 254712345678, 712345678,
    and any of those with spaces, dashes or brackets.

    Raises:
        FormatError: if the result is not 254 followed by 9 digits
    """
    if phone is None:
        raise FormatError('Phone number is required')

    digits = re.sub(r'\D', '', str(phone))

    if digits.startswith('0'):
        digits = COUNTRY_CODE + digits[1:]
    elif len(digits) == 9 and digits[0] in '71':
        # Bare subscriber number (7XXXXXXXX / 1XXXXXXXX)
        digits = COUNTRY_CODE + digits

    if not _CANONICAL_PHONE.match(digits):
        raise FormatError('Invalid phone number format. Use 254XXXXXXXXX format')

    return digits


def is_valid_phone_number(phone: Any) -> bool:
    try:
        format_phone_number(phone)
    except FormatError:
        return False
    return True


def validate_amount(amount: Any, min_amount: int = MIN_AMOUNT, max_amount: int = MAX_AMOUNT) -> int:
    """
    Validate a transaction amount and return it as an int.

    M-Pesa only moves whole shillings, so the value must be integral:
    10, 10.0 and "10" are accepted; 10.5, "abc", True and None are not.

    Raises:
        RangeError: if the amount is not an integer within [min_amount, max_amount]
    """
    if isinstance(amount, bool) or amount is None:
        raise RangeError(f'Amount must be a whole number between {min_amount} and {max_amount}')

    try:
        if isinstance(amount, str):
            value = Decimal(amount.strip())
        elif isinstance(amount, (int, float, Decimal)):
            value = Decimal(str(amount))
        else:
            raise RangeError(f'Amount must be a number, got {type(amount).__name__}')
    except InvalidOperation:
        raise RangeError(f'Invalid amount: {amount!r}')

    if not value.is_finite() or value != value.to_integral_value():
        raise RangeError('Amount must be a whole number')

    if value < min_amount or value > max_amount:
        raise RangeError(f'Amount must be between {min_amount} and {max_amount:,} KES')

    return int(value)


def is_valid_amount(amount: Any) -> bool:
    try:
        validate_amount(amount)
    except RangeError:
        return False
    return True


def generate_timestamp(clock=None) -> str:
    """Daraja timestamp, YYYYMMDDHHmmss"""
    clock = clock or system_clock
    return clock.now().strftime(_TIMESTAMP_FORMAT)


def generate_password(shortcode: str, passkey: str, timestamp: str) -> str:
    """
    Generate the Lipa na M-Pesa Online password.

    Password = Base64(BusinessShortCode + Passkey + Timestamp)
    """
    raw = f'{shortcode}{passkey}{timestamp}'
    return base64.b64encode(raw.encode('utf-8')).decode('utf-8')


def parse_mpesa_timestamp(value: Any) -> datetime:
    """Parse a Daraja YYYYMMDDHHmmss timestamp (int or str)"""
    try:
        return datetime.strptime(str(value), _TIMESTAMP_FORMAT)
    except (TypeError, ValueError):
        raise FormatError(f'Invalid M-Pesa timestamp: {value!r}')


def generate_transaction_reference(prefix: str = 'TXN', clock=None) -> str:
    clock = clock or system_clock
    millis = int(clock.time() * 1000)
    return f'{prefix}{millis}{random.randint(0, 9999)}'


def format_currency(amount: Any, currency: str = 'KES') -> str:
    """Format an amount for display, e.g. KES 1,000.00"""
    return f'{currency} {Decimal(str(amount)):,.2f}'


def mask_phone_number(phone: Optional[Any]) -> Optional[str]:
    """Mask the middle digits of a phone number for logging"""
    if phone is None:
        return None
    phone = str(phone)
    if len(phone) < 7:
        return phone
    return phone[:3] + '*' * (len(phone) - 6) + phone[-3:]
