"""
Health Check Endpoint
"""

from flask import Blueprint, current_app

from mpesa_gateway.utils.responses import json_response

health_bp = Blueprint('health', __name__)

SERVICE_NAME = 'mpesa-gateway'
VERSION = '1.0.0'


@health_bp.route('/health', methods=['GET'])
def health_check():
    """
    Liveness probe

    Returns 200 whenever the application is running; it does not call Daraja.
    """
    return json_response(True, 'Service is healthy', {
        'status': 'healthy',
        'service': SERVICE_NAME,
        'version': VERSION,
        'environment': current_app.config['ENV_NAME'],
    })
