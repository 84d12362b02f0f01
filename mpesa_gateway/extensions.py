"""
Application-scoped service objects.

Each extension builds its state in init_app and stores it on
app.extensions, so separate app instances (e.g. one per test) never share a
token cache or rate-limit table.
"""

from flask import current_app

from mpesa_gateway.providers import MPesaProvider, get_provider_config
from mpesa_gateway.services.callback_service import CallbackService
from mpesa_gateway.services.payment_service import PaymentService
from mpesa_gateway.services.rate_limiter import SlidingWindowRateLimiter


class MpesaExtension:
    """Owns the Daraja provider (and its token cache) plus the callback service"""

    name = 'mpesa'

    def init_app(self, app, session=None, clock=None):
        provider = MPesaProvider(get_provider_config(app.config), session=session, clock=clock)
        app.extensions[self.name] = {
            'provider': provider,
            'payments': PaymentService(provider),
            'callbacks': CallbackService(
                ttl=app.config['CALLBACK_DEDUP_TTL'],
                max_entries=app.config['CALLBACK_DEDUP_MAX_ENTRIES'],
                clock=clock,
            ),
        }

    @property
    def provider(self) -> MPesaProvider:
        return current_app.extensions[self.name]['provider']

    @property
    def payments(self) -> PaymentService:
        return current_app.extensions[self.name]['payments']

    @property
    def callbacks(self) -> CallbackService:
        return current_app.extensions[self.name]['callbacks']


class RateLimiterExtension:
    """Owns the in-memory sliding window rate limiter"""

    name = 'rate_limiter'

    def init_app(self, app, clock=None, rng=None):
        app.extensions[self.name] = SlidingWindowRateLimiter(
            max_requests=app.config['RATE_LIMIT_MAX_REQUESTS'],
            window_seconds=app.config['RATE_LIMIT_WINDOW_SECONDS'],
            sweep_probability=app.config['RATE_LIMIT_SWEEP_PROBABILITY'],
            clock=clock,
            rng=rng,
        )

    @property
    def limiter(self) -> SlidingWindowRateLimiter:
        return current_app.extensions[self.name]


mpesa = MpesaExtension()
rate_limiter = RateLimiterExtension()
