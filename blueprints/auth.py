from functools import wraps
import hmac

from flask import current_app, jsonify, request

from models import LeagueValidationError

ADMIN_TOKEN_HEADER = 'X-Admin-Token'


# Identity is handled by the external provider; the API only checks the
# shared admin token issued to the back-office.
def require_admin(f):
    """Require the admin API token"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get('ADMIN_API_TOKEN')
        if not expected:
            current_app.logger.error('ADMIN_API_TOKEN is not configured; admin routes are disabled')
            return jsonify({'error': 'Admin access is not configured'}), 503

        supplied = request.headers.get(ADMIN_TOKEN_HEADER, '')
        if not hmac.compare_digest(supplied.encode(), expected.encode()):
            current_app.logger.warning('Rejected admin request to %s', request.path)
            return jsonify({'error': 'Admin token required'}), 401
        return f(*args, **kwargs)
    return decorated_function


def json_body() -> dict:
    """Parsed JSON object of the current request ({} when absent)."""
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise LeagueValidationError('Request body must be a JSON object')
    return payload
