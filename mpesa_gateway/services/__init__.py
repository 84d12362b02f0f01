from mpesa_gateway.services.callback_service import CallbackService
from mpesa_gateway.services.payment_service import PaymentService
from mpesa_gateway.services.rate_limiter import SlidingWindowRateLimiter

__all__ = [
    'CallbackService',
    'PaymentService',
    'SlidingWindowRateLimiter',
]
