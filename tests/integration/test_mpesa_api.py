"""
Integration Tests for the M-Pesa HTTP API
The Daraja session is a Mock; everything else runs through the Flask app.
"""

import pytest
import requests

from mpesa_gateway import create_app
from mpesa_gateway.config import config

from conftest import SAFARICOM_IP, mock_http_response, stk_callback

DARAJA_CREDENTIALS = {
    'API_KEY': None,
    'MPESA_CONSUMER_KEY': 'ck',
    'MPESA_CONSUMER_SECRET': 'cs',
    'MPESA_SHORTCODE': '174379',
    'MPESA_PASSKEY': 'passkey',
    'MPESA_BASE_URL': None,
}

SUCCESS_ITEMS = [
    {'Name': 'Amount', 'Value': 1},
    {'Name': 'MpesaReceiptNumber', 'Value': 'NLJ7RT61SV'},
    {'Name': 'TransactionDate', 'Value': 20191219102115},
    {'Name': 'PhoneNumber', 'Value': 254708374149},
]


def assert_envelope(body, success):
    assert body['success'] is success
    assert isinstance(body['message'], str)
    assert 'timestamp' in body
    assert 'data' in body


class TestStkPushEndpoint:

    def test_initiate_success(self, client, session):
        response = client.post('/api/mpesa/stkpush', json={'phone': '0712345678', 'amount': 10})

        assert response.status_code == 200
        body = response.get_json()
        assert_envelope(body, True)
        assert body['message'] == 'STK Push initiated successfully'
        assert body['data']['merchantRequestID']
        assert body['data']['checkoutRequestID'] == 'ws_CO_191220191020363925'

        payload = session.post.call_args.kwargs['json']
        assert payload['PhoneNumber'] == '254712345678'
        assert payload['AccountReference'] == 'TestRef'

    def test_custom_reference(self, client, session):
        client.post('/api/mpesa/stkpush', json={
            'phone': '254712345678',
            'amount': '250',
            'accountReference': 'ORD-12345',
            'transactionDesc': 'Order payment',
        })

        payload = session.post.call_args.kwargs['json']
        assert payload['Amount'] == 250
        assert payload['AccountReference'] == 'ORD-12345'
        assert payload['TransactionDesc'] == 'Order payment'

    def test_missing_amount(self, client, session):
        response = client.post('/api/mpesa/stkpush', json={'phone': '0712345678'})

        assert response.status_code == 400
        body = response.get_json()
        assert_envelope(body, False)
        assert body['message'] == 'Validation failed'
        assert 'amount' in body['errors']
        session.post.assert_not_called()

    def test_invalid_phone(self, client):
        response = client.post('/api/mpesa/stkpush', json={'phone': '123', 'amount': 10})

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Invalid phone number format. Use 254XXXXXXXXX format'

    @pytest.mark.parametrize('amount', [0, 70001, 'abc', True])
    def test_invalid_amount(self, client, amount):
        response = client.post('/api/mpesa/stkpush', json={'phone': '0712345678', 'amount': amount})

        assert response.status_code == 400
        assert response.get_json()['success'] is False

    def test_wrong_content_type(self, client):
        response = client.post('/api/mpesa/stkpush', data='phone=0712345678&amount=10',
                               content_type='application/x-www-form-urlencoded')

        assert response.status_code == 400
        assert response.get_json()['errors'] == ['Content-Type must be application/json']

    def test_provider_rejection_passes_status_through(self, client, session):
        session.post.return_value = mock_http_response({
            'errorCode': '400.002.02',
            'errorMessage': 'Bad Request - Invalid Amount',
        }, 400)

        response = client.post('/api/mpesa/stkpush', json={'phone': '0712345678', 'amount': 10})

        assert response.status_code == 400
        body = response.get_json()
        assert body['message'] == 'Bad Request - Invalid Amount'
        assert 'details' not in body

    def test_auth_failure_is_500(self, client, session):
        session.get.return_value = mock_http_response({'errorMessage': 'Invalid credentials'}, 401)

        response = client.post('/api/mpesa/stkpush', json={'phone': '0712345678', 'amount': 10})

        assert response.status_code == 500
        assert response.get_json()['error'] == 'Authentication with M-Pesa failed'

    def test_non_object_upstream_error_passes_status_through(self, client, session):
        session.post.return_value = mock_http_response('Bad Gateway', 502)

        response = client.post('/api/mpesa/stkpush', json={'phone': '0712345678', 'amount': 10})

        assert response.status_code == 502
        body = response.get_json()
        assert body['success'] is False
        assert body['error'] == 'M-Pesa request failed'

    def test_network_failure_is_503(self, client, session):
        session.post.side_effect = requests.ConnectionError('Connection refused')

        response = client.post('/api/mpesa/stkpush', json={'phone': '0712345678', 'amount': 10})

        assert response.status_code == 503
        assert response.get_json()['error'] == 'Service temporarily unavailable'


class TestQueryEndpoint:

    def test_query_success(self, client, session):
        session.post.return_value = mock_http_response({
            'ResponseCode': '0',
            'MerchantRequestID': '29115-34620561-1',
            'CheckoutRequestID': 'ws_CO_191220191020363925',
            'ResultCode': '0',
            'ResultDesc': 'The service request is processed successfully.',
        })

        response = client.post('/api/mpesa/query', json={'checkoutRequestID': 'ws_CO_191220191020363925'})

        assert response.status_code == 200
        body = response.get_json()
        assert body['message'] == 'STK Push status retrieved'
        assert body['data']['resultCode'] == '0'

    @pytest.mark.parametrize('body', [{}, {'checkoutRequestID': ''}])
    def test_query_requires_id(self, client, session, body):
        response = client.post('/api/mpesa/query', json=body)

        assert response.status_code == 400
        assert 'checkoutRequestID' in response.get_json()['errors']
        session.post.assert_not_called()

    def test_query_blank_id(self, client):
        response = client.post('/api/mpesa/query', json={'checkoutRequestID': '   '})

        assert response.status_code == 400
        assert response.get_json()['message'] == 'Checkout Request ID is required'


class TestCallbackEndpoint:

    def test_successful_callback(self, callback_client):
        response = callback_client.post('/api/mpesa/callback', json=stk_callback(0, SUCCESS_ITEMS))

        assert response.status_code == 200
        body = response.get_json()
        assert_envelope(body, True)
        assert body['message'] == 'Callback processed successfully'
        assert body['data']['status'] == 'SUCCESS'
        assert body['data']['paymentData']['mpesaReceiptNumber'] == 'NLJ7RT61SV'
        assert body['data']['metadata']['Amount'] == 1

    def test_failed_payment_callback(self, callback_client):
        response = callback_client.post('/api/mpesa/callback', json=stk_callback(1032))

        assert response.status_code == 200
        body = response.get_json()
        assert body['success'] is True
        assert body['data']['status'] == 'FAILED'
        assert body['data']['paymentData'] is None

    def test_duplicate_callback(self, callback_client):
        callback_client.post('/api/mpesa/callback', json=stk_callback(0, SUCCESS_ITEMS))
        response = callback_client.post('/api/mpesa/callback', json=stk_callback(0, SUCCESS_ITEMS))

        assert response.status_code == 200
        body = response.get_json()
        assert body['message'] == 'Duplicate callback acknowledged'
        assert body['data']['duplicate'] is True

    @pytest.mark.parametrize('payload', [{}, {'Body': {}}, {'Body': {'stkCallback': {}}}])
    def test_malformed_callback_is_acknowledged(self, callback_client, payload):
        response = callback_client.post('/api/mpesa/callback', json=payload)

        assert response.status_code == 200
        body = response.get_json()
        assert body['success'] is False
        assert body['message'] == 'Callback processing failed'

    def test_non_json_callback_is_acknowledged(self, callback_client):
        response = callback_client.post('/api/mpesa/callback', data='garbage', content_type='text/plain')

        assert response.status_code == 200
        assert response.get_json()['success'] is False

    def test_unknown_source_is_forbidden(self, client):
        client.environ_base['REMOTE_ADDR'] = '10.0.0.1'
        response = client.post('/api/mpesa/callback', json=stk_callback(0, SUCCESS_ITEMS))

        assert response.status_code == 403
        assert response.get_json()['message'] == 'Unauthorized IP address'

    def test_forwarded_for_ignored_without_trusted_proxy(self, client):
        response = client.post('/api/mpesa/callback', json=stk_callback(0),
                               headers={'X-Forwarded-For': SAFARICOM_IP})

        assert response.status_code == 403

    def test_forwarded_for_behind_trusted_proxy(self, session, clock):
        app = create_app('testing', config_overrides={'TRUST_PROXY_HEADERS': True},
                         session=session, clock=clock, rng=lambda: 1.0)

        response = app.test_client().post('/api/mpesa/callback', json=stk_callback(0),
                                          headers={'X-Forwarded-For': f'{SAFARICOM_IP}, 10.0.0.1'})

        assert response.status_code == 200

    def test_validation_disabled(self, session, clock):
        app = create_app('testing', config_overrides={'MPESA_VALIDATE_CALLBACK_IP': False},
                         session=session, clock=clock, rng=lambda: 1.0)

        response = app.test_client().post('/api/mpesa/callback', json=stk_callback(0))

        assert response.status_code == 200


class TestStatusEndpoint:

    def test_operational(self, client):
        response = client.get('/api/mpesa/status')

        assert response.status_code == 200
        body = response.get_json()
        assert body['message'] == 'M-Pesa service is operational'
        assert body['data']['businessShortCode'] == '174379'
        assert body['data']['mpesaEnvironment'] == 'sandbox'
        assert body['data']['environment'] == 'testing'

    def test_not_operational(self, client, session):
        session.get.side_effect = requests.ConnectionError('down')

        response = client.get('/api/mpesa/status')

        assert response.status_code == 500
        body = response.get_json()
        assert body['success'] is False
        assert body['message'] == 'M-Pesa service is not operational'


class TestTestEndpoint:

    def test_forbidden_outside_development(self, client, session):
        response = client.post('/api/mpesa/test')

        assert response.status_code == 403
        session.post.assert_not_called()

    def test_forbidden_in_production(self, session, clock):
        app = create_app('production', config_overrides={**DARAJA_CREDENTIALS, 'API_KEY': 'secret-key'},
                         session=session, clock=clock, rng=lambda: 1.0)

        response = app.test_client().post('/api/mpesa/test', headers={'x-api-key': 'secret-key'})

        assert response.status_code == 403
        session.get.assert_not_called()
        session.post.assert_not_called()

    def test_production_config_never_enables_test_endpoint(self):
        assert config['production'].MPESA_TEST_ENDPOINT_ENABLED is False

    def test_development(self, session, clock):
        app = create_app('development', config_overrides=DARAJA_CREDENTIALS,
                         session=session, clock=clock, rng=lambda: 1.0)

        response = app.test_client().post('/api/mpesa/test')

        assert response.status_code == 200
        body = response.get_json()
        assert body['testData']['phone'] == '254712345678'
        assert body['testData']['amount'] == 1
        assert body['data']['checkoutRequestID'] == 'ws_CO_191220191020363925'

        payload = session.post.call_args.kwargs['json']
        assert payload['AccountReference'] == 'TEST001'
        assert payload['Amount'] == 1

    def test_development_callbacks_skip_ip_check(self, session, clock):
        app = create_app('development', config_overrides=DARAJA_CREDENTIALS,
                         session=session, clock=clock, rng=lambda: 1.0)

        response = app.test_client().post('/api/mpesa/callback', json=stk_callback(0))

        assert response.status_code == 200


class TestHealthEndpoints:

    def test_root_health(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['status'] == 'healthy'
        assert data['service'] == 'mpesa-gateway'
        assert data['environment'] == 'testing'

    def test_mpesa_health(self, client):
        response = client.get('/api/mpesa/health')

        assert response.status_code == 200
        assert 'POST /api/mpesa/stkpush' in response.get_json()['data']['availableEndpoints']

    def test_unknown_route(self, client):
        response = client.get('/api/mpesa/nope')

        assert response.status_code == 404
        body = response.get_json()
        assert_envelope(body, False)
        assert body['message'] == 'Route GET /api/mpesa/nope not found'
        assert body['error'] == 'Not found'


class TestApiKey:

    @pytest.fixture
    def keyed_client(self, session, clock):
        app = create_app('testing', config_overrides={'API_KEY': 'secret-key'},
                         session=session, clock=clock, rng=lambda: 1.0)
        return app.test_client()

    def test_missing_key(self, keyed_client):
        response = keyed_client.post('/api/mpesa/stkpush', json={'phone': '0712345678', 'amount': 10})

        assert response.status_code == 401
        assert response.get_json()['message'] == 'Invalid or missing API key'

    def test_wrong_key(self, keyed_client):
        response = keyed_client.get('/api/mpesa/status', headers={'x-api-key': 'nope'})
        assert response.status_code == 401

    def test_correct_key(self, keyed_client):
        response = keyed_client.post('/api/mpesa/stkpush', json={'phone': '0712345678', 'amount': 10},
                                     headers={'x-api-key': 'secret-key'})
        assert response.status_code == 200

    def test_health_needs_no_key(self, keyed_client):
        assert keyed_client.get('/health').status_code == 200

    def test_callback_needs_no_key(self, keyed_client):
        keyed_client.environ_base['REMOTE_ADDR'] = SAFARICOM_IP
        response = keyed_client.post('/api/mpesa/callback', json=stk_callback(0))
        assert response.status_code == 200

    def test_production_without_key_rejects(self, session, clock):
        app = create_app('production', config_overrides=DARAJA_CREDENTIALS,
                         session=session, clock=clock, rng=lambda: 1.0)

        response = app.test_client().get('/api/mpesa/status')

        assert response.status_code == 401


class TestRateLimiting:

    @pytest.fixture
    def limited_client(self, session, clock):
        app = create_app('testing', config_overrides={'RATE_LIMIT_MAX_REQUESTS': 3},
                         session=session, clock=clock, rng=lambda: 1.0)
        return app.test_client()

    def test_headers(self, client):
        response = client.get('/health')

        assert response.headers['X-RateLimit-Limit'] == '100'
        assert response.headers['X-RateLimit-Remaining'] == '99'

    def test_limit_exceeded(self, limited_client):
        for _ in range(3):
            assert limited_client.get('/health').status_code == 200

        response = limited_client.get('/health')

        assert response.status_code == 429
        assert response.headers['Retry-After'] == '900'
        assert response.headers['X-RateLimit-Remaining'] == '0'
        body = response.get_json()
        assert body['success'] is False
        assert body['message'] == 'Too many requests, please try again later'
        assert body['data']['retryAfter'] == 900
        assert body['data']['limit'] == 3

    def test_window_reopens(self, limited_client, clock):
        for _ in range(3):
            limited_client.get('/health')
        assert limited_client.get('/health').status_code == 429

        clock.advance(900)
        assert limited_client.get('/health').status_code == 200

    def test_limits_are_per_client(self, limited_client):
        for _ in range(3):
            limited_client.get('/health')

        limited_client.environ_base['REMOTE_ADDR'] = '10.0.0.2'
        assert limited_client.get('/health').status_code == 200

    def test_disabled(self, session, clock):
        app = create_app('testing', config_overrides={'RATE_LIMIT_ENABLED': False, 'RATE_LIMIT_MAX_REQUESTS': 1},
                         session=session, clock=clock, rng=lambda: 1.0)
        test_client = app.test_client()

        assert test_client.get('/health').status_code == 200
        assert test_client.get('/health').status_code == 200
        assert 'X-RateLimit-Limit' not in test_client.get('/health').headers


class TestSecurityHeaders:

    def test_headers_present(self, client):
        response = client.get('/health')

        assert response.headers['X-Content-Type-Options'] == 'nosniff'
        assert response.headers['X-Frame-Options'] == 'DENY'
        assert 'Strict-Transport-Security' not in response.headers


class TestHttpErrors:

    def test_method_not_allowed(self, client):
        response = client.get('/api/mpesa/stkpush')

        assert response.status_code == 405
        body = response.get_json()
        assert_envelope(body, False)
        assert body['error'] == 'Method Not Allowed'
