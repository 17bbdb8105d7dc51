"""
Error taxonomy and the DRF exception handler.

Domain code raises the EngagementError subclasses below; views let them
propagate and custom_exception_handler turns them into a stable
{"error": kind, "message": text} body.
"""
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from django.db import IntegrityError
import logging

logger = logging.getLogger(__name__)


class EngagementError(Exception):
    kind = 'error'
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = 'Request failed.'

    def __init__(self, message=None, details=None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class NotFound(EngagementError):
    kind = 'not_found'
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Not found.'


class ValidationError(EngagementError):
    kind = 'validation_error'
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = 'Invalid input.'


class InvalidParent(EngagementError):
    kind = 'invalid_parent'
    status_code = status.HTTP_404_NOT_FOUND
    default_message = 'Parent comment is missing or belongs to another post.'


class Forbidden(EngagementError):
    kind = 'forbidden'
    status_code = status.HTTP_403_FORBIDDEN
    default_message = 'Only the author can do this.'


def _body(kind, message, details=None):
    body = {'error': kind, 'message': message}
    if details:
        body['details'] = details
    return body


def custom_exception_handler(exc, context):
    """
    Custom exception handler that:
    1. Renders domain errors with their stable kind
    2. Maps DRF auth/validation errors onto the same taxonomy
    3. Logs anything unexpected
    """
    if isinstance(exc, EngagementError):
        return Response(
            _body(exc.kind, exc.message, exc.details),
            status=exc.status_code
        )

    if isinstance(exc, (drf_exceptions.NotAuthenticated, drf_exceptions.AuthenticationFailed)):
        response = exception_handler(exc, context)
        response.data = _body('unauthenticated', str(exc.detail))
        return response

    if isinstance(exc, drf_exceptions.ValidationError):
        return Response(
            _body('validation_error', 'Invalid input.', exc.detail),
            status=status.HTTP_422_UNPROCESSABLE_ENTITY
        )

    response = exception_handler(exc, context)

    if response is not None:
        if isinstance(exc, drf_exceptions.PermissionDenied):
            kind = 'forbidden'
        elif isinstance(exc, drf_exceptions.NotFound) or response.status_code == 404:
            kind = 'not_found'
        else:
            kind = getattr(exc, 'default_code', 'error')
        detail = getattr(exc, 'detail', None)
        response.data = _body(kind, str(detail) if detail is not None else str(exc))
        return response

    if isinstance(exc, IntegrityError):
        logger.warning("IntegrityError: %s", exc)
        return Response(
            _body('conflict', 'Data integrity error. This may be a duplicate entry.'),
            status=status.HTTP_409_CONFLICT
        )

    logger.exception("Unhandled exception: %s", exc)

    return Response(
        _body('server_error', 'An unexpected error occurred.'),
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
