"""
Payment Service
Business operations behind the STK Push endpoints
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from mpesa_gateway.providers import MPesaProvider
from mpesa_gateway.utils.logger import get_logger

logger = get_logger(__name__)


class PaymentService:
    """Service for initiating and tracking STK Push payments"""

    # Fixed values used by the development-only test endpoint
    TEST_PAYMENT = {
        'phone': '254712345678',
        'amount': 1,
        'accountReference': 'TEST001',
        'transactionDesc': 'Test payment',
    }

    def __init__(self, provider: MPesaProvider):
        self.provider = provider

    def initiate_payment(
            self,
            phone: Any,
            amount: Any,
            account_reference: Optional[str] = None,
            transaction_desc: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Initiate an STK Push payment

        Args:
            phone: Payer phone number in any accepted format
            amount: Whole-shilling amount between 1 and 70,000
            account_reference: Reference shown on the payer's phone
            transaction_desc: Description shown on the payer's phone

        Returns:
            Correlation ids and Daraja response fields
        """
        return self.provider.initiate_stk_push(
            phone,
            amount,
            reference=account_reference,
            description=transaction_desc
        )

    def query_payment(self, checkout_request_id: str) -> Dict[str, Any]:
        return self.provider.query_stk_status(checkout_request_id)

    def service_status(self, environment: str) -> Dict[str, Any]:
        """Check Daraja connectivity by exercising the token exchange"""
        info = self.provider.check_connection()
        return {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'businessShortCode': info['businessShortCode'],
            'mpesaEnvironment': info['environment'],
            'environment': environment,
        }

    def test_payment(self) -> Dict[str, Any]:
        test_data = dict(self.TEST_PAYMENT)
        logger.info(f'Initiating test payment: {test_data}')
        result = self.initiate_payment(
            test_data['phone'],
            test_data['amount'],
            account_reference=test_data['accountReference'],
            transaction_desc=test_data['transactionDesc']
        )
        return {'result': result, 'testData': test_data}
