"""
Logging Configuration
Centralized logging setup for the M-Pesa gateway
"""

import logging
import os
import sys
import time
from logging.handlers import RotatingFileHandler

from flask import g, request


def _log_dir():
    """Directory for log files; an empty LOG_DIR disables file logging"""
    log_dir = os.getenv('LOG_DIR', 'logs')
    if not log_dir:
        return None

    if not os.path.exists(log_dir):
        try:
            os.makedirs(log_dir)
        except OSError:
            return None

    return log_dir


def _log_level():
    return getattr(logging, os.getenv('LOG_LEVEL', 'INFO').upper(), logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger instance

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)

    # Only configure if not already configured
    if not logger.handlers:
        level = _log_level()
        logger.setLevel(level)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(
            '%(levelname)s - %(name)s - %(message)s'
        ))
        logger.addHandler(console_handler)

        log_dir = _log_dir()
        if log_dir:
            file_handler = RotatingFileHandler(
                os.path.join(log_dir, 'mpesa-gateway.log'),
                maxBytes=10485760,  # 10MB
                backupCount=10
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            ))
            logger.addHandler(file_handler)

    return logger


def configure_app_logging(app):
    """
    Configure logging for the Flask application

    Args:
        app: Flask application instance
    """
    app.logger.setLevel(_log_level())

    log_dir = _log_dir()
    if log_dir:
        error_handler = RotatingFileHandler(
            os.path.join(log_dir, 'error.log'),
            maxBytes=10485760,
            backupCount=10
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s\n%(pathname)s:%(lineno)d',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        app.logger.addHandler(error_handler)


class RequestLogger:
    """Middleware to log all requests with their duration"""

    def __init__(self, app=None):
        self.app = app
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        """Initialize request logging"""
        logger = get_logger('request')

        @app.before_request
        def log_request():
            g.request_started_at = time.perf_counter()
            logger.info(f'{request.method} {request.path} - IP: {request.remote_addr}')

        @app.after_request
        def log_response(response):
            started = g.get('request_started_at')
            duration_ms = (time.perf_counter() - started) * 1000 if started else 0.0
            logger.info(
                f'{request.method} {request.path} - '
                f'Status: {response.status_code} - '
                f'{duration_ms:.0f}ms'
            )
            return response
