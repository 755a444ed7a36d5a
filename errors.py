from flask import jsonify


class FinanceError(Exception):
    """Base class for failures that map onto a client-visible status."""
    status_code = 500
    message = 'Something went wrong'

    def __init__(self, message=None):
        super().__init__(message or self.message)
        self.message = message or self.message


class Unauthenticated(FinanceError):
    # Every auth failure looks the same to the caller; the sub-cause is only logged.
    status_code = 401
    message = 'Invalid authentication token'

    def __init__(self, reason='unauthenticated'):
        super().__init__()
        self.reason = reason


class NotFound(FinanceError):
    status_code = 404
    message = 'Not found'


class InvalidInput(FinanceError):
    status_code = 400
    message = 'Invalid input'


class ConfigurationError(FinanceError):
    status_code = 500
    message = 'Service is not configured'


class ExternalServiceError(FinanceError):
    status_code = 500
    message = 'External service request failed'


def status_for(exc):
    if isinstance(exc, FinanceError):
        return exc.status_code
    return 500


def error_response(exc):
    if isinstance(exc, FinanceError):
        return jsonify({'error': exc.message}), status_for(exc)
    return jsonify({'error': 'Internal server error'}), 500
