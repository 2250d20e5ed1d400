"""
API error handling

Domain exceptions raised by the service layer and the DRF exception handler
that turns every error into the standard response envelope:

    {"success": false, "error": {"code", "message", "details"}, "meta": {"timestamp"}}
"""
import logging
from typing import Any, Optional

from django.core.exceptions import PermissionDenied, ValidationError as DjangoValidationError
from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response

from .renderers import error_payload

logger = logging.getLogger(__name__)


class JourneyError(Exception):
    """
    Base class for errors that map directly onto an API error code.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    code = 'BAD_REQUEST'
    default_message = 'Bad request.'

    def __init__(self, message: str = '', details: Optional[Any] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class NotFound(JourneyError):
    status_code = status.HTTP_404_NOT_FOUND
    code = 'NOT_FOUND'
    default_message = 'Resource not found.'


class AccessDenied(JourneyError):
    status_code = status.HTTP_403_FORBIDDEN
    code = 'ACCESS_DENIED'
    default_message = 'You do not have access to this resource.'


class BusinessRuleViolation(JourneyError):
    status_code = status.HTTP_409_CONFLICT
    code = 'BUSINESS_RULE_VIOLATION'
    default_message = 'The request violates a business rule.'


class CycleDetected(BusinessRuleViolation):
    default_message = 'Operation would create a cycle in the hierarchy.'


class InvalidNodeType(JourneyError):
    code = 'INVALID_NODE_TYPE'
    default_message = 'Invalid node type.'


class QuotaExceeded(JourneyError):
    status_code = status.HTTP_403_FORBIDDEN
    code = 'QUOTA_EXCEEDED'
    default_message = 'Token quota exceeded.'


def _validation_details(exc: DjangoValidationError):
    if hasattr(exc, 'error_dict'):
        return exc.message_dict
    return exc.messages


def api_exception_handler(exc, context):
    """
    DRF exception handler producing the error envelope.

    Registered through REST_FRAMEWORK['EXCEPTION_HANDLER'].
    """
    if isinstance(exc, JourneyError):
        logger.info("API error %s: %s", exc.code, exc.message)
        return Response(
            error_payload(exc.code, exc.message, exc.details),
            status=exc.status_code,
        )

    if isinstance(exc, DjangoValidationError):
        details = _validation_details(exc)
        return Response(
            error_payload('VALIDATION_ERROR', 'Validation failed.', details),
            status=status.HTTP_400_BAD_REQUEST,
        )

    if isinstance(exc, drf_exceptions.ValidationError):
        return Response(
            error_payload('VALIDATION_ERROR', 'Validation failed.', exc.detail),
            status=status.HTTP_400_BAD_REQUEST,
        )

    if isinstance(exc, (drf_exceptions.NotAuthenticated, drf_exceptions.AuthenticationFailed)):
        return Response(
            error_payload('AUTHENTICATION_REQUIRED', str(exc.detail)),
            status=status.HTTP_401_UNAUTHORIZED,
        )

    if isinstance(exc, (Http404, drf_exceptions.NotFound)):
        return Response(
            error_payload('NOT_FOUND', 'Resource not found.'),
            status=status.HTTP_404_NOT_FOUND,
        )

    if isinstance(exc, (PermissionDenied, drf_exceptions.PermissionDenied)):
        return Response(
            error_payload('ACCESS_DENIED', 'You do not have access to this resource.'),
            status=status.HTTP_403_FORBIDDEN,
        )

    if isinstance(exc, drf_exceptions.APIException):
        code = exc.default_code.upper() if isinstance(exc.default_code, str) else 'ERROR'
        return Response(
            error_payload(code, str(exc.detail)),
            status=exc.status_code,
        )

    view = context.get('view')
    logger.exception(
        "Unhandled exception in %s: %s",
        view.__class__.__name__ if view else 'unknown view',
        exc,
    )
    return Response(
        error_payload('INTERNAL_ERROR', 'Internal server error.'),
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
