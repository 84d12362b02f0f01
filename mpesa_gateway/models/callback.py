import enum
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional


class CallbackStatus(str, enum.Enum):
    SUCCESS = 'SUCCESS'
    FAILED = 'FAILED'


@dataclass
class CallbackResult:
    """Normalised STK Push callback"""
    merchant_request_id: Optional[str]
    checkout_request_id: Optional[str]
    result_code: int
    result_desc: Optional[str]
    status: CallbackStatus
    metadata: Optional[Dict[str, Any]] = None
    amount: Optional[Any] = None
    mpesa_receipt_number: Optional[str] = None
    transaction_date: Optional[Any] = None
    transaction_time: Optional[datetime] = None
    phone_number: Optional[Any] = None
    processed_at: Optional[datetime] = None
    duplicate: bool = field(default=False)

    @property
    def is_successful(self) -> bool:
        return self.status == CallbackStatus.SUCCESS

    def as_duplicate(self) -> 'CallbackResult':
        return replace(self, duplicate=True)
