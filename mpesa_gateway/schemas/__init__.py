"""
Schemas Package
Marshmallow schemas for request/response validation
"""

from mpesa_gateway.schemas.mpesa_schema import (
    StkPushSchema,
    StkQuerySchema
)
from mpesa_gateway.schemas.callback_schema import (
    MPesaCallbackSchema,
    CallbackResultSchema
)

__all__ = [
    'StkPushSchema',
    'StkQuerySchema',
    'MPesaCallbackSchema',
    'CallbackResultSchema'
]
