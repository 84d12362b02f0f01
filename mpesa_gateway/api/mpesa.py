"""
M-Pesa API Endpoints
STK Push initiation, status queries and provider callbacks
"""

from flask import Blueprint, current_app, request

from mpesa_gateway.errors import AppError, Forbidden
from mpesa_gateway.extensions import mpesa
from mpesa_gateway.schemas import StkPushSchema, StkQuerySchema, CallbackResultSchema
from mpesa_gateway.utils.decorators import mpesa_ip_allowlist, require_api_key, validate_content_type
from mpesa_gateway.utils.logger import get_logger
from mpesa_gateway.utils.responses import json_response

mpesa_bp = Blueprint('mpesa', __name__)
logger = get_logger(__name__)

stk_push_schema = StkPushSchema()
stk_query_schema = StkQuerySchema()
callback_result_schema = CallbackResultSchema()

AVAILABLE_ENDPOINTS = [
    'POST /api/mpesa/stkpush',
    'POST /api/mpesa/query',
    'POST /api/mpesa/callback',
    'GET /api/mpesa/status',
    'POST /api/mpesa/test',
    'GET /api/mpesa/health',
]


@mpesa_bp.route('/stkpush', methods=['POST'])
@require_api_key
@validate_content_type('application/json')
def initiate_stk_push():
    """
    Initiate an STK Push payment

    Body:
        {
            "phone": "0712345678",
            "amount": 10,
            "accountReference": "ORD-12345",   // optional
            "transactionDesc": "Order payment" // optional
        }
    """
    data = stk_push_schema.load(request.get_json(silent=True) or {})

    result = mpesa.payments.initiate_payment(
        phone=data['phone'],
        amount=data['amount'],
        account_reference=data.get('accountReference'),
        transaction_desc=data.get('transactionDesc')
    )

    return json_response(True, 'STK Push initiated successfully', result)


@mpesa_bp.route('/query', methods=['POST'])
@require_api_key
@validate_content_type('application/json')
def query_stk_status():
    """
    Query an STK Push transaction

    Body:
        {"checkoutRequestID": "ws_CO_..."}
    """
    data = stk_query_schema.load(request.get_json(silent=True) or {})
    result = mpesa.payments.query_payment(data['checkoutRequestID'])
    return json_response(True, 'STK Push status retrieved', result)


@mpesa_bp.route('/callback', methods=['POST'])
@mpesa_ip_allowlist
def handle_callback():
    """
    Receive the asynchronous STK Push result from Safaricom

    Always answers 200 so Safaricom does not keep redelivering; processing
    failures are reported in the body.
    """
    logger.info('Received M-Pesa callback')
    payload = request.get_json(silent=True)

    try:
        result = mpesa.callbacks.process_callback(payload)
    except AppError as e:
        logger.error(f'Callback processing error: {e.message}')
        return json_response(False, 'Callback processing failed', error=e.message, status=200)
    except Exception as e:
        logger.exception(f'Unexpected callback processing error: {e}')
        return json_response(False, 'Callback processing failed', error='Internal error', status=200)

    message = 'Duplicate callback acknowledged' if result.duplicate else 'Callback processed successfully'
    return json_response(True, message, callback_result_schema.dump(result))


@mpesa_bp.route('/status', methods=['GET'])
@require_api_key
def service_status():
    """Check that the Daraja credential exchange works"""
    try:
        data = mpesa.payments.service_status(current_app.config['ENV_NAME'])
    except AppError as e:
        logger.error(f'Service status error: {e.message}')
        return json_response(False, 'M-Pesa service is not operational', error=e.message, status=500)

    return json_response(True, 'M-Pesa service is operational', data)


@mpesa_bp.route('/test', methods=['POST'])
@require_api_key
def test_payment():
    """Development only: STK Push with fixed sample values"""
    if not current_app.config.get('MPESA_TEST_ENDPOINT_ENABLED'):
        raise Forbidden('Test endpoint is only available in development')

    outcome = mpesa.payments.test_payment()
    return json_response(
        True,
        'Test payment initiated successfully',
        outcome['result'],
        testData=outcome['testData']
    )


@mpesa_bp.route('/health', methods=['GET'])
def mpesa_health():
    return json_response(
        True,
        'M-Pesa API routes are healthy',
        {'availableEndpoints': AVAILABLE_ENDPOINTS}
    )
