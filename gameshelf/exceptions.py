"""
GameShelf error taxonomy and the Flask handlers that render it as JSON.
"""
import logging
from typing import Dict, Optional

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger('gameshelf.errors')


class GameShelfError(Exception):
    """Base class for every error the services raise on purpose."""
    status_code = 400
    code = 'GAMESHELF_ERROR'

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(message)

    def to_dict(self) -> Dict:
        return {
            'error': True,
            'code': self.code,
            'message': self.message,
        }


class ValidationError(GameShelfError):
    """Malformed input.  ``fields`` maps each offending field to a reason."""
    status_code = 400
    code = 'VALIDATION_ERROR'

    def __init__(self, message: str = 'Validation failed', fields: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.fields = dict(fields or {})

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data['fields'] = self.fields
        return data


class NotFound(GameShelfError):
    status_code = 404
    code = 'NOT_FOUND'


class Conflict(GameShelfError):
    """Duplicate creation; the caller is already in the requested state."""
    status_code = 409
    code = 'CONFLICT'


class AuthenticationError(GameShelfError):
    status_code = 401
    code = 'AUTH_ERROR'

    def __init__(self, message: str = 'Authentication required'):
        super().__init__(message)


class AuthorizationError(GameShelfError):
    status_code = 403
    code = 'FORBIDDEN'

    def __init__(self, message: str = 'Access denied'):
        super().__init__(message)


class UpstreamUnavailable(GameShelfError):
    """The game catalog failed or timed out.  Safe to retry."""
    status_code = 503
    code = 'UPSTREAM_UNAVAILABLE'

    def to_dict(self) -> Dict:
        data = super().to_dict()
        data['retryable'] = True
        return data


def register_error_handlers(app):
    """Register JSON error handlers on a Flask *app*."""

    @app.errorhandler(GameShelfError)
    def handle_gameshelf_error(e):
        if e.status_code >= 500:
            logger.warning("%s: %s", e.code, e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return jsonify({
            'error': True,
            'code': e.name.upper().replace(' ', '_'),
            'message': e.description,
        }), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception("Unhandled exception: %s", e)
        return jsonify({
            'error': True,
            'code': 'INTERNAL_ERROR',
            'message': 'An unexpected error occurred',
        }), 500
