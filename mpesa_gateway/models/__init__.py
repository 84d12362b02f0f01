from mpesa_gateway.models.payment import PaymentRequest, PAYBILL_TRANSACTION, BUY_GOODS_TRANSACTION
from mpesa_gateway.models.callback import CallbackResult, CallbackStatus
from mpesa_gateway.models.token import CachedToken

__all__ = [
    'PaymentRequest',
    'PAYBILL_TRANSACTION',
    'BUY_GOODS_TRANSACTION',
    'CallbackResult',
    'CallbackStatus',
    'CachedToken',
]
