"""
M-Pesa Payment Provider
Based on the Safaricom Daraja API.

Supported flows
---------------
STK Push (Lipa na M-Pesa Online)
    POST /mpesa/stkpush/v1/processrequest
    POST /mpesa/stkpushquery/v1/query         (status poll)

Authentication
    GET  /oauth/v1/generate?grant_type=client_credentials  (Basic auth)
    Tokens are cached by TokenCache and refreshed automatically on expiry.

Required config keys
--------------------
    consumer_key        - From Safaricom Developer Portal app
    consumer_secret     - From Safaricom Developer Portal app
    shortcode           - Business shortcode (PayBill or Buy-Goods)
    passkey             - Lipa na M-Pesa Online passkey
    callback_url        - Publicly accessible STK Push callback endpoint

Optional config keys
--------------------
    environment         - "sandbox" (default) | "production"
    base_url            - Overrides the environment's base URL
    till_number         - PartyB for buy-goods (till) requests
    account_reference   - Default AccountReference
    transaction_desc    - Default TransactionDesc
    auth_timeout        - Seconds, token request (default 15)
    request_timeout     - Seconds, STK requests (default 30)
"""

from typing import Any, Dict, Optional

import requests

from mpesa_gateway.errors import ProviderError, TransportError, ValidationError
from mpesa_gateway.models import PaymentRequest
from mpesa_gateway.providers.token_cache import TokenCache
from mpesa_gateway.utils.clock import system_clock
from mpesa_gateway.utils.logger import get_logger
from mpesa_gateway.utils.validators import (
    format_phone_number,
    generate_password,
    generate_timestamp,
    mask_phone_number,
    validate_amount,
)

logger = get_logger(__name__)

# Daraja base URLs
_BASE_URLS = {
    "sandbox":    "https://sandbox.safaricom.co.ke",
    "production": "https://api.safaricom.co.ke",
}

STK_SUCCESS_CODE = "0"


def _transport_code(exc: requests.RequestException) -> str:
    if isinstance(exc, requests.Timeout):
        return "ETIMEDOUT"
    text = str(exc)
    if any(marker in text for marker in ("Failed to resolve", "Name or service not known", "getaddrinfo")):
        return "ENOTFOUND"
    return "ECONNREFUSED"


class MPesaProvider:
    """M-Pesa (Daraja API) STK Push client."""

    _EP_STK_PUSH  = "/mpesa/stkpush/v1/processrequest"
    _EP_STK_QUERY = "/mpesa/stkpushquery/v1/query"

    def __init__(
        self,
        config: Dict[str, Any],
        session: Optional[requests.Session] = None,
        clock=None,
    ):
        self.consumer_key      = config.get("consumer_key") or ""
        self.consumer_secret   = config.get("consumer_secret") or ""
        self.shortcode         = str(config.get("shortcode") or "")
        self.passkey           = config.get("passkey") or ""
        self.till_number       = str(config.get("till_number") or "")
        self.callback_url      = config.get("callback_url") or ""
        self.account_reference = config.get("account_reference") or "Payment"
        self.transaction_desc  = config.get("transaction_desc") or "Payment"
        self.environment       = (config.get("environment") or "sandbox").lower()
        self.request_timeout   = config.get("request_timeout", 30)

        if self.environment not in _BASE_URLS:
            raise ValueError(
                f"MPesaProvider: environment must be 'sandbox' or 'production', got '{self.environment}'"
            )

        self.base_url = (config.get("base_url") or _BASE_URLS[self.environment]).rstrip("/")

        self._clock = clock or system_clock
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})

        self.token_cache = TokenCache(
            self.base_url,
            self.consumer_key,
            self.consumer_secret,
            session=self._session,
            clock=self._clock,
            timeout=config.get("auth_timeout", 15),
        )

    # Public API

    def build_payment_request(
        self,
        phone: Any,
        amount: Any,
        reference: Optional[str] = None,
        description: Optional[str] = None,
    ) -> PaymentRequest:
        """Validate raw input into a PaymentRequest (FormatError / RangeError on bad input)."""
        return PaymentRequest(
            phone=format_phone_number(phone),
            amount=validate_amount(amount),
            reference=reference or self.account_reference,
            description=description or self.transaction_desc,
        )

    def initiate_stk_push(
        self,
        phone: Any,
        amount: Any,
        reference: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send an STK Push prompt to the payer's phone.

        Returns the correlation pair Safaricom uses to match the later callback:
            merchantRequestID, checkoutRequestID
        plus responseCode, responseDescription and customerMessage.

        Raises:
            FormatError / RangeError - invalid phone or amount
            AuthError                - token exchange failed
            ProviderError            - Daraja rejected the request
            TransportError           - Daraja could not be reached
        """
        payment = self.build_payment_request(phone, amount, reference, description)

        timestamp, password = self._generate_password()
        party_b = self.till_number if payment.is_till_payment and self.till_number else self.shortcode

        payload = {
            "BusinessShortCode": self.shortcode,
            "Password":          password,
            "Timestamp":         timestamp,
            "TransactionType":   payment.transaction_type,
            "Amount":            payment.amount,
            "PartyA":            payment.phone,
            "PartyB":            party_b,
            "PhoneNumber":       payment.phone,
            "CallBackURL":       self.callback_url,
            "AccountReference":  payment.reference[:12],
            "TransactionDesc":   payment.description[:13],
        }

        logger.info(
            f"Initiating STK Push: phone={mask_phone_number(payment.phone)} "
            f"amount={payment.amount} reference={payload['AccountReference']} "
            f"type={payment.transaction_type}"
        )

        resp = self._post(self._EP_STK_PUSH, payload, context="stk_push")

        response_code = str(resp.get("ResponseCode", ""))
        if response_code != STK_SUCCESS_CODE:
            message = resp.get("ResponseDescription") or resp.get("errorMessage") or "STK Push failed"
            logger.error(f"STK Push rejected ({response_code}): {message}")
            raise ProviderError(message, details=resp)

        logger.info(f"STK Push initiated: {resp.get('CheckoutRequestID')}")
        return {
            "merchantRequestID":   resp.get("MerchantRequestID"),
            "checkoutRequestID":   resp.get("CheckoutRequestID"),
            "responseCode":        response_code,
            "responseDescription": resp.get("ResponseDescription"),
            "customerMessage":     resp.get("CustomerMessage"),
        }

    def query_stk_status(self, checkout_request_id: str) -> Dict[str, Any]:
        """
        Query an STK Push by CheckoutRequestID.

        The result fields are returned as-is; callers decide what a given
        ResultCode means.
        """
        if not checkout_request_id or not str(checkout_request_id).strip():
            raise ValidationError("Checkout Request ID is required")

        timestamp, password = self._generate_password()
        payload = {
            "BusinessShortCode": self.shortcode,
            "Password":          password,
            "Timestamp":         timestamp,
            "CheckoutRequestID": checkout_request_id,
        }

        logger.info(f"Querying STK Push status: {checkout_request_id}")
        resp = self._post(self._EP_STK_QUERY, payload, context="stk_query")

        return {
            "merchantRequestID":   resp.get("MerchantRequestID"),
            "checkoutRequestID":   resp.get("CheckoutRequestID"),
            "responseCode":        resp.get("ResponseCode"),
            "responseDescription": resp.get("ResponseDescription"),
            "resultCode":          resp.get("ResultCode"),
            "resultDesc":          resp.get("ResultDesc"),
        }

    def check_connection(self) -> Dict[str, Any]:
        """Probe the credential exchange; raises AuthError when Daraja is unusable."""
        self.token_cache.get_token()
        return {
            "businessShortCode": self.shortcode,
            "environment":       self.environment,
            "baseUrl":           self.base_url,
        }

    # Private helpers

    def _post(self, endpoint: str, payload: Dict[str, Any], context: str = "") -> Dict[str, Any]:
        """Execute an authenticated POST to a Daraja endpoint."""
        token = self.token_cache.get_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type":  "application/json",
        }

        url = f"{self.base_url}{endpoint}"
        try:
            resp = self._session.post(url, json=payload, headers=headers, timeout=self.request_timeout)
        except requests.RequestException as exc:
            code = _transport_code(exc)
            logger.error(f"MPesa [{context}] network error ({code}): {exc}")
            raise TransportError(f"Unable to connect to M-Pesa service: {exc}", code=code) from exc

        return self._handle_response(resp, context)

    def _handle_response(self, resp: requests.Response, context: str) -> Dict[str, Any]:
        """Parse a Daraja response, raising ProviderError on HTTP errors."""
        try:
            data: Dict[str, Any] = resp.json()
        except ValueError:
            data = {"raw": resp.text}
        if not isinstance(data, dict):
            data = {"raw": resp.text}

        logger.debug(f"MPesa [{context}] HTTP {resp.status_code}: {data}")

        if resp.status_code == 401:
            # Token revoked or rotated upstream
            self.token_cache.invalidate()

        if not resp.ok:
            message = (
                data.get("errorMessage")
                or data.get("ResponseDescription")
                or data.get("ResultDesc")
                or resp.text[:300]
                or f"HTTP {resp.status_code}"
            )
            logger.error(f"MPesa [{context}] HTTP {resp.status_code}: {message}")
            raise ProviderError(message, http_status=resp.status_code, details=data)

        return data

    def _generate_password(self):
        timestamp = generate_timestamp(self._clock)
        return timestamp, generate_password(self.shortcode, self.passkey, timestamp)
