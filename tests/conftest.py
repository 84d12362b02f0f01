"""
Pytest Configuration and Fixtures
"""
import json
import os
from datetime import datetime
from unittest.mock import Mock

import pytest

# No log files during tests
os.environ.setdefault('LOG_DIR', '')

from mpesa_gateway import create_app  # noqa: E402

SAFARICOM_IP = '196.201.214.200'


class FakeClock:
    """Manually advanced clock"""

    def __init__(self, start=1_700_000_000.0):
        self._time = start

    def time(self):
        return self._time

    def now(self):
        return datetime.fromtimestamp(self._time)

    def advance(self, seconds):
        self._time += seconds


def mock_http_response(json_data, status_code=200):
    """Return a mock requests.Response whose .json() returns json_data."""
    resp = Mock()
    resp.ok = 200 <= status_code < 400
    resp.status_code = status_code
    resp.json.return_value = json_data
    resp.text = json.dumps(json_data)
    resp.headers = {'Content-Type': 'application/json'}
    return resp


def token_response(expires_in='3599'):
    """Valid Daraja OAuth token response"""
    return mock_http_response({'access_token': 'daraja_tok_abc', 'expires_in': expires_in})


def stk_success_response():
    return mock_http_response({
        'MerchantRequestID': '29115-34620561-1',
        'CheckoutRequestID': 'ws_CO_191220191020363925',
        'ResponseCode': '0',
        'ResponseDescription': 'Success. Request accepted for processing',
        'CustomerMessage': 'Success. Request accepted for processing',
    })


def stk_callback(result_code=0, items=None, checkout_id='ws_CO_191220191020363925'):
    callback = {
        'MerchantRequestID': '29115-34620561-1',
        'CheckoutRequestID': checkout_id,
        'ResultCode': result_code,
        'ResultDesc': 'The service request is processed successfully.'
        if result_code == 0 else 'Request cancelled by user',
    }
    if items is not None:
        callback['CallbackMetadata'] = {'Item': items}
    return {'Body': {'stkCallback': callback}}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session():
    """Stand-in for requests.Session; set get/post return values per test"""
    session = Mock()
    session.headers = {}
    session.get.return_value = token_response()
    session.post.return_value = stk_success_response()
    return session


@pytest.fixture
def app(session, clock):
    """Create application for testing"""
    return create_app('testing', session=session, clock=clock, rng=lambda: 1.0)


@pytest.fixture
def client(app):
    """Create a test client"""
    return app.test_client()


@pytest.fixture
def callback_client(client):
    """Test client whose requests appear to come from Safaricom"""
    client.environ_base['REMOTE_ADDR'] = SAFARICOM_IP
    return client
