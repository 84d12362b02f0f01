"""
Daraja OAuth token cache.

    GET /oauth/v1/generate?grant_type=client_credentials  (Basic auth)

The token is reused until 60 seconds before the lifetime Safaricom reports.
Refreshes are single-flight: concurrent callers block on the lock and pick up
the token fetched by whichever caller got there first.
"""

import threading
from typing import Optional

import requests

from mpesa_gateway.errors import AuthError
from mpesa_gateway.models import CachedToken
from mpesa_gateway.utils.clock import system_clock
from mpesa_gateway.utils.logger import get_logger

logger = get_logger(__name__)

AUTH_PATH = "/oauth/v1/generate"
DEFAULT_EXPIRES_IN = 3600
EXPIRY_MARGIN_SECONDS = 60


class TokenCache:
    """Holds the current bearer token and refreshes it when it expires."""

    def __init__(
        self,
        base_url: str,
        consumer_key: str,
        consumer_secret: str,
        session: Optional[requests.Session] = None,
        clock=None,
        timeout: float = 15,
    ):
        self.url = f"{base_url}{AUTH_PATH}"
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.timeout = timeout

        self._session = session or requests.Session()
        self._clock = clock or system_clock
        self._lock = threading.Lock()
        self._token: Optional[CachedToken] = None

    @property
    def is_valid(self) -> bool:
        token = self._token
        return token is not None and token.is_valid(self._clock.time())

    def get_token(self) -> str:
        """Return a valid access token, refreshing it if absent or expired."""
        token = self._token
        if token is not None and token.is_valid(self._clock.time()):
            return token.value

        with self._lock:
            # Another thread may have refreshed while we waited
            token = self._token
            if token is not None and token.is_valid(self._clock.time()):
                return token.value

            self._token = None
            self._token = self._fetch()
            return self._token.value

    def invalidate(self) -> None:
        with self._lock:
            self._token = None

    def _fetch(self) -> CachedToken:
        if not self.consumer_key or not self.consumer_secret:
            raise AuthError("M-Pesa consumer key and secret are not configured")

        try:
            resp = self._session.get(
                self.url,
                params={"grant_type": "client_credentials"},
                auth=(self.consumer_key, self.consumer_secret),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error(f"Error getting M-Pesa access token: {exc}")
            raise AuthError("Failed to authenticate with M-Pesa API") from exc

        if not resp.ok:
            logger.error(f"M-Pesa token request returned HTTP {resp.status_code}: {resp.text[:300]}")
            raise AuthError(
                f"Failed to authenticate with M-Pesa API (HTTP {resp.status_code})"
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise AuthError("M-Pesa token response was not valid JSON") from exc

        if not isinstance(data, dict):
            raise AuthError("M-Pesa token response was not a JSON object")

        access_token = data.get("access_token")
        if not access_token:
            raise AuthError("M-Pesa token response did not contain an access token")

        try:
            expires_in = int(data.get("expires_in", DEFAULT_EXPIRES_IN))
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN

        expires_at = self._clock.time() + expires_in - EXPIRY_MARGIN_SECONDS
        logger.info(f"M-Pesa access token refreshed (expires in {expires_in}s)")
        return CachedToken(value=access_token, expires_at=expires_at)
