"""
STK Push request schemas
"""

from marshmallow import Schema, fields, validate, INCLUDE


class StkPushSchema(Schema):
    """POST /stkpush body"""

    class Meta:
        unknown = INCLUDE

    # Phone and amount are normalised by the provider, which raises
    # FormatError / RangeError with M-Pesa specific messages
    phone = fields.Raw(required=True)
    amount = fields.Raw(required=True)
    accountReference = fields.Str(required=False, allow_none=True, validate=validate.Length(max=64))
    transactionDesc = fields.Str(required=False, allow_none=True, validate=validate.Length(max=64))


class StkQuerySchema(Schema):
    """POST /query body"""

    class Meta:
        unknown = INCLUDE

    checkoutRequestID = fields.Str(
        required=True,
        validate=validate.Length(min=1, error='Checkout Request ID is required')
    )
