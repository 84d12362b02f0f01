"""
API Blueprints Package
Registers all API blueprints
"""

from mpesa_gateway.api.mpesa import mpesa_bp
from mpesa_gateway.api.health import health_bp

__all__ = [
    'mpesa_bp',
    'health_bp'
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app

    Args:
        app: Flask application instance
    """
    app.register_blueprint(mpesa_bp, url_prefix='/api/mpesa')
    app.register_blueprint(health_bp)
