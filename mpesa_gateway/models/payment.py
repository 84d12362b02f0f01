from dataclasses import dataclass

PAYBILL_TRANSACTION = 'CustomerPayBillOnline'
BUY_GOODS_TRANSACTION = 'CustomerBuyGoodsOnline'


@dataclass(frozen=True)
class PaymentRequest:
    """A validated STK Push request"""
    phone: str
    amount: int
    reference: str
    description: str

    @property
    def transaction_type(self) -> str:
        """Buy-goods (till) when the reference mentions a till, paybill otherwise"""
        if self.reference and 'till' in self.reference.lower():
            return BUY_GOODS_TRANSACTION
        return PAYBILL_TRANSACTION

    @property
    def is_till_payment(self) -> bool:
        return self.transaction_type == BUY_GOODS_TRANSACTION
