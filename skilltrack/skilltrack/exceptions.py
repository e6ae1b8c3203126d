"""
Engine error taxonomy shared by the roster, instructor and learner apps.

Services raise these synchronously; the REST layer translates them to HTTP
responses in api_exception_handler.
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class EngineError(Exception):
    """Base class for every error raised by the engine services."""
    error_type = 'ENGINE_ERROR'
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def as_dict(self):
        payload = {'error': self.message, 'type': self.error_type}
        if self.details:
            payload['details'] = self.details
        return payload


class ValidationError(EngineError):
    """Malformed input: bad attempt-mode fields, missing identifiers."""
    error_type = 'VALIDATION_ERROR'
    http_status = status.HTTP_400_BAD_REQUEST


class CycleDetected(ValidationError):
    """A prerequisite edge would close a cycle in the skill graph."""
    error_type = 'CYCLE_DETECTED'

    def __init__(self, message, chain=None):
        self.chain = list(chain or [])
        super().__init__(message, chain=[str(skill_id) for skill_id in self.chain])


class NotFound(EngineError):
    error_type = 'NOT_FOUND'
    http_status = status.HTTP_404_NOT_FOUND


class Conflict(EngineError):
    error_type = 'CONFLICT'
    http_status = status.HTTP_409_CONFLICT


class AuthorizationError(EngineError):
    error_type = 'FORBIDDEN'
    http_status = status.HTTP_403_FORBIDDEN


def api_exception_handler(exc, context):
    """DRF exception handler that also understands EngineError."""
    if isinstance(exc, EngineError):
        view = context.get('view')
        logger.info('%s in %s: %s', type(exc).__name__, type(view).__name__ if view else '-', exc.message)
        return Response(exc.as_dict(), status=exc.http_status)
    return exception_handler(exc, context)
