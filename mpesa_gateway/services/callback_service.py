"""
Callback Service
Parses STK Push callbacks and de-duplicates redeliveries
"""

import threading
from collections import OrderedDict
from datetime import datetime, timezone
from decimal import InvalidOperation
from typing import Any, Dict

from marshmallow import ValidationError as SchemaValidationError

from mpesa_gateway.errors import FormatError, MalformedCallbackError
from mpesa_gateway.models import CallbackResult, CallbackStatus
from mpesa_gateway.schemas import MPesaCallbackSchema
from mpesa_gateway.utils.clock import system_clock
from mpesa_gateway.utils.logger import get_logger
from mpesa_gateway.utils.validators import format_currency, mask_phone_number, parse_mpesa_timestamp

logger = get_logger(__name__)

callback_schema = MPesaCallbackSchema()


class CallbackService:
    """Turns provider callbacks into CallbackResult records"""

    # Keep processed callbacks for 24 hours
    DEFAULT_TTL = 86400
    DEFAULT_MAX_ENTRIES = 10000

    def __init__(self, ttl: float = DEFAULT_TTL, max_entries: int = DEFAULT_MAX_ENTRIES, clock=None):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock or system_clock
        self._lock = threading.Lock()
        # checkout_request_id -> (seen_at, result), oldest first
        self._processed: "OrderedDict[str, tuple]" = OrderedDict()

    def process_callback(self, payload: Any) -> CallbackResult:
        """
        Process an M-Pesa STK callback.

        A non-zero ResultCode is a normal business outcome (cancelled, wrong
        PIN, insufficient funds...) and yields a FAILED result, not an error.

        Raises:
            MalformedCallbackError: if Body.stkCallback is missing or malformed
        """
        try:
            data = callback_schema.load(payload if isinstance(payload, dict) else {})
        except SchemaValidationError as e:
            logger.warning(f'Malformed M-Pesa callback: {e.messages}')
            raise MalformedCallbackError('Invalid M-Pesa callback payload', details=e.messages)

        stk = data['Body']['stkCallback']
        checkout_id = stk.get('CheckoutRequestID')

        if not checkout_id:
            result = self._build_result(stk)
            self._log_transaction(result)
            return result

        # Lookup and store share one critical section
        with self._lock:
            self._prune()
            entry = self._processed.get(checkout_id)
            if entry is None:
                result = self._build_result(stk)
                self._remember(checkout_id, result)

        if entry is not None:
            logger.info(f'Duplicate callback for {checkout_id}, returning stored result')
            return entry[1].as_duplicate()

        self._log_transaction(result)
        return result

    def _build_result(self, stk: Dict[str, Any]) -> CallbackResult:
        result_code = stk['ResultCode']
        result = CallbackResult(
            merchant_request_id=stk.get('MerchantRequestID'),
            checkout_request_id=stk.get('CheckoutRequestID'),
            result_code=result_code,
            result_desc=stk.get('ResultDesc'),
            status=CallbackStatus.SUCCESS if result_code == 0 else CallbackStatus.FAILED,
            processed_at=datetime.now(timezone.utc),
        )

        if result_code != 0:
            return result

        # Fold CallbackMetadata items into a flat dict
        items = (stk.get('CallbackMetadata') or {}).get('Item') or []
        metadata = {item['Name']: item.get('Value') for item in items}

        result.metadata = metadata
        result.amount = metadata.get('Amount')
        result.mpesa_receipt_number = metadata.get('MpesaReceiptNumber')
        result.transaction_date = metadata.get('TransactionDate')
        result.phone_number = metadata.get('PhoneNumber')

        if result.transaction_date is not None:
            try:
                result.transaction_time = parse_mpesa_timestamp(result.transaction_date)
            except FormatError:
                logger.warning(f'Unparseable TransactionDate {result.transaction_date!r}')

        return result

    def _remember(self, checkout_id: str, result: CallbackResult) -> None:
        """Caller holds the lock"""
        self._processed[checkout_id] = (self._clock.time(), result)
        while len(self._processed) > self.max_entries:
            self._processed.popitem(last=False)

    def _prune(self) -> None:
        """Caller holds the lock"""
        cutoff = self._clock.time() - self.ttl
        while self._processed:
            seen_at, _ = next(iter(self._processed.values()))
            if seen_at > cutoff:
                break
            self._processed.popitem(last=False)

    @staticmethod
    def _log_transaction(result: CallbackResult) -> None:
        if result.is_successful:
            try:
                amount = format_currency(result.amount)
            except (InvalidOperation, ValueError):
                amount = repr(result.amount)
            logger.info(
                f'Payment successful: {result.checkout_request_id} '
                f'{amount} receipt={result.mpesa_receipt_number} '
                f'phone={mask_phone_number(result.phone_number)}'
            )
        else:
            logger.info(
                f'Payment failed: {result.checkout_request_id} '
                f'({result.result_code}) {result.result_desc}'
            )
