from typing import Any, Optional

from flask import jsonify

DEFAULT_ERRORS = {
    400: 'Bad Request',
    401: 'Unauthorized',
    403: 'Forbidden',
    404: 'Not Found',
    405: 'Method Not Allowed',
    409: 'Conflict',
    500: 'Internal Server Error',
    503: 'Service Unavailable',
}


def error_response(message: str, status: int = 400, error: Optional[str] = None):
    """Build the JSON error envelope shared by every endpoint."""
    return jsonify({
        'success': False,
        'error': error or DEFAULT_ERRORS.get(status, 'Error'),
        'message': message,
    }), status


def success_response(message: Optional[str] = None, status: int = 200, **payload: Any):
    body = {'success': True}
    if message is not None:
        body['message'] = message
    body.update(payload)
    return jsonify(body), status
