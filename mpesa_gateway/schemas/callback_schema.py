"""
M-Pesa Callback Schemas
"""

from marshmallow import Schema, fields, INCLUDE


class CallbackItemSchema(Schema):
    class Meta:
        unknown = INCLUDE

    Name = fields.Str(required=True)
    Value = fields.Raw(allow_none=True)


class CallbackMetadataSchema(Schema):
    class Meta:
        unknown = INCLUDE

    Item = fields.List(fields.Nested(CallbackItemSchema), load_default=list)


class StkCallbackSchema(Schema):
    class Meta:
        unknown = INCLUDE

    MerchantRequestID = fields.Str(allow_none=True)
    CheckoutRequestID = fields.Str(allow_none=True)
    ResultCode = fields.Int(required=True)
    ResultDesc = fields.Str(allow_none=True)
    CallbackMetadata = fields.Nested(CallbackMetadataSchema, allow_none=True)


class CallbackBodySchema(Schema):
    class Meta:
        unknown = INCLUDE

    stkCallback = fields.Nested(StkCallbackSchema, required=True)


class MPesaCallbackSchema(Schema):
    """M-Pesa callback validation schema"""

    class Meta:
        unknown = INCLUDE

    Body = fields.Nested(CallbackBodySchema, required=True)


class CallbackResultSchema(Schema):
    """Processed callback, as returned in the acknowledgement body"""
    merchantRequestID = fields.Str(attribute='merchant_request_id', dump_only=True)
    checkoutRequestID = fields.Str(attribute='checkout_request_id', dump_only=True)
    resultCode = fields.Int(attribute='result_code', dump_only=True)
    resultDesc = fields.Str(attribute='result_desc', dump_only=True)
    status = fields.Method('get_status', dump_only=True)
    paymentData = fields.Method('get_payment_data', dump_only=True)
    metadata = fields.Dict(dump_only=True)
    transactionTime = fields.DateTime(attribute='transaction_time', dump_only=True)
    processedAt = fields.DateTime(attribute='processed_at', dump_only=True)
    duplicate = fields.Bool(dump_only=True)

    def get_status(self, obj):
        return obj.status.value

    def get_payment_data(self, obj):
        if obj.metadata is None:
            return None
        return {
            'amount': obj.amount,
            'mpesaReceiptNumber': obj.mpesa_receipt_number,
            'transactionDate': obj.transaction_date,
            'phoneNumber': obj.phone_number,
        }
