# apps/api/exceptions.py
"""
API error responses.

Every error leaves the API as ``{"error": {"code", "message", "details"}}``.
Registered as REST_FRAMEWORK['EXCEPTION_HANDLER'].
"""
import logging

from django.core.exceptions import ObjectDoesNotExist, ValidationError as DjangoValidationError
from django.db import OperationalError
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from shared.exceptions import ServiceError

logger = logging.getLogger(__name__)


def error_response(code, message, details=None, status_code=status.HTTP_400_BAD_REQUEST):
    return Response(
        {'error': {'code': code, 'message': message, 'details': details or {}}},
        status=status_code,
    )


def _drf_code(exc):
    if isinstance(exc, exceptions.ValidationError):
        return 'VALIDATION_ERROR'
    if isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        return 'NOT_AUTHENTICATED'
    if isinstance(exc, exceptions.PermissionDenied):
        return 'PERMISSION_DENIED'
    if isinstance(exc, exceptions.NotFound):
        return 'NOT_FOUND'
    if isinstance(exc, exceptions.MethodNotAllowed):
        return 'METHOD_NOT_ALLOWED'
    return getattr(exc, 'default_code', 'error').upper()


def api_exception_handler(exc, context):
    """Translate service, Django and DRF exceptions into the error envelope."""
    if isinstance(exc, ServiceError):
        details = dict(exc.details)
        if exc.retryable:
            details['retryable'] = True
        return error_response(exc.code, exc.message, details, exc.status_code)

    if isinstance(exc, DjangoValidationError):
        return error_response('VALIDATION_ERROR', '; '.join(exc.messages), {'messages': exc.messages})

    if isinstance(exc, OperationalError):
        logger.error(f"Database unavailable: {exc}")
        return error_response(
            'SERVICE_UNAVAILABLE', 'Database unavailable, try again.',
            {'retryable': True}, status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    if isinstance(exc, (ObjectDoesNotExist, Http404)):
        exc = exceptions.NotFound()

    response = drf_exception_handler(exc, context)
    if response is None:
        return None

    data = response.data
    if isinstance(data, dict) and set(data) == {'detail'}:
        message, details = str(data['detail']), {}
    else:
        message, details = 'Invalid request.', {'fields': data}
    response.data = {'error': {'code': _drf_code(exc), 'message': message, 'details': details}}
    return response
