import math
import traceback

from flask import Flask, g, request
from flask_cors import CORS
from marshmallow import ValidationError as SchemaValidationError
from werkzeug.exceptions import HTTPException

from mpesa_gateway.config import config
from mpesa_gateway.errors import AppError, NotFound, RateLimitExceeded, ValidationError
from mpesa_gateway.extensions import mpesa, rate_limiter
from mpesa_gateway.utils.decorators import client_ip
from mpesa_gateway.utils.logger import RequestLogger, configure_app_logging, get_logger
from mpesa_gateway.utils.responses import json_response

logger = get_logger(__name__)


def create_app(config_name='development', config_overrides=None, session=None, clock=None, rng=None):
    """
    Application factory pattern

    Args:
        config_name: Key into config ('development', 'production', 'testing')
        config_overrides: Extra config values applied after the config class
        session: requests.Session used for Daraja calls (injected in tests)
        clock: Time source for the token cache, rate limiter and callbacks
        rng: Random source deciding when the rate limiter sweeps stale clients
    """
    app = Flask(__name__)

    # Load configuration
    app.config.from_object(config[config_name])
    if config_overrides:
        app.config.update(config_overrides)

    configure_app_logging(app)
    RequestLogger(app)

    # Initialize extensions
    mpesa.init_app(app, session=session, clock=clock)
    rate_limiter.init_app(app, clock=clock, rng=rng)
    CORS(app)

    register_rate_limiting(app)
    register_security_headers(app)

    # Register blueprints
    from mpesa_gateway.api import register_blueprints
    register_blueprints(app)

    # Error handlers
    register_error_handlers(app)

    logger.info(
        f"M-Pesa gateway started ({app.config['ENV_NAME']}, "
        f"Daraja {app.config['MPESA_ENV']}, shortcode {app.config['MPESA_SHORTCODE']})"
    )
    return app


def register_rate_limiting(app):
    """Apply the sliding window limiter to every request"""

    @app.before_request
    def enforce_rate_limit():
        if not app.config['RATE_LIMIT_ENABLED']:
            return None
        g.rate_limit_remaining = rate_limiter.limiter.hit(client_ip())
        return None

    @app.after_request
    def add_rate_limit_headers(response):
        if app.config['RATE_LIMIT_ENABLED']:
            response.headers['X-RateLimit-Limit'] = str(app.config['RATE_LIMIT_MAX_REQUESTS'])
            remaining = g.get('rate_limit_remaining')
            if remaining is None:
                # Rejected requests are not recorded by hit()
                remaining = rate_limiter.limiter.remaining(client_ip())
            response.headers['X-RateLimit-Remaining'] = str(remaining)
        return response


def register_security_headers(app):
    @app.after_request
    def add_security_headers(response):
        response.headers.setdefault('X-Content-Type-Options', 'nosniff')
        response.headers.setdefault('X-Frame-Options', 'DENY')
        response.headers.setdefault('Referrer-Policy', 'no-referrer')
        if app.config['ENV_NAME'] == 'production':
            response.headers.setdefault(
                'Strict-Transport-Security', 'max-age=31536000; includeSubDomains'
            )
        return response


def register_error_handlers(app):
    """Register error handlers"""

    def _debug_extra(error, details=None):
        if not app.config.get('EXPOSE_ERROR_DETAILS'):
            return {}
        extra = {'stack': ''.join(traceback.format_exception(type(error), error, error.__traceback__))}
        if details is not None:
            extra['details'] = details
        return extra

    @app.errorhandler(RateLimitExceeded)
    def rate_limited(error):
        retry_after = max(1, math.ceil(error.retry_after))
        response, status = json_response(False, error.message, {
            'limit': error.limit,
            'windowSeconds': error.window_seconds,
            'retryAfter': retry_after,
        }, error=error.error, status=error.status_code)
        response.headers['Retry-After'] = str(retry_after)
        return response, status

    @app.errorhandler(AppError)
    def app_error(error):
        if error.status_code >= 500:
            app.logger.error(f'{error.error}: {error.message}')

        extra = _debug_extra(error, error.details)
        if isinstance(error, ValidationError) and error.details is not None:
            extra['errors'] = error.details
        return json_response(False, error.message, error=error.error, status=error.status_code, **extra)

    @app.errorhandler(404)
    def route_not_found(error):
        return app_error(NotFound(f'Route {request.method} {request.path} not found'))

    @app.errorhandler(SchemaValidationError)
    def schema_error(error):
        return json_response(
            False, 'Validation failed', error='Validation error', status=400, errors=error.messages
        )

    @app.errorhandler(HTTPException)
    def http_error(error):
        return json_response(False, error.description, error=error.name, status=error.code)

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f'Unhandled error: {error}')
        return json_response(
            False, 'Internal server error', error='Internal server error', status=500,
            **_debug_extra(error)
        )
