from mpesa_gateway.errors.exceptions import (
    AppError,
    ValidationError,
    FormatError,
    RangeError,
    Unauthorized,
    Forbidden,
    NotFound,
    RateLimitExceeded,
    AuthError,
    ProviderError,
    TransportError,
    MalformedCallbackError,
)

__all__ = [
    'AppError',
    'ValidationError',
    'FormatError',
    'RangeError',
    'Unauthorized',
    'Forbidden',
    'NotFound',
    'RateLimitExceeded',
    'AuthError',
    'ProviderError',
    'TransportError',
    'MalformedCallbackError',
]
