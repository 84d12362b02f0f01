from datetime import datetime, timezone

from flask import jsonify


def create_response(success, message, data=None, error=None, **extra):
    """
    Build the uniform JSON envelope returned by every endpoint.

    Args:
        success: Whether the request succeeded
        message: Human readable summary
        data: Payload (None when there is nothing to return)
        error: Error description, only included when set
        **extra: Additional top-level keys (e.g. details in development)

    Returns:
        Envelope dict
    """
    response = {
        'success': success,
        'message': message,
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'data': data,
    }

    if error:
        response['error'] = error

    response.update(extra)
    return response


def json_response(success, message, data=None, error=None, status=200, **extra):
    return jsonify(create_response(success, message, data, error, **extra)), status
