"""
MealRoute error handling.

Every API error is rendered with the same envelope:

    {"success": false, "error": {"message": "...", "details": ...}}
"""

import logging

from django.conf import settings
from django.core.exceptions import PermissionDenied
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class AppError(exceptions.APIException):
    """Operational error raised by services with an explicit HTTP status."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Internal Server Error'

    def __init__(self, message=None, status_code=None, details=None):
        self.message = message or self.default_detail
        if status_code is not None:
            self.status_code = status_code
        self.details = details
        super().__init__(detail=self.message)

    @property
    def status(self) -> str:
        return 'fail' if 400 <= self.status_code < 500 else 'error'


def _envelope(message, details=None):
    return {
        'success': False,
        'error': {
            'message': message,
            'details': details,
        },
    }


def api_exception_handler(exc, context):
    """DRF EXCEPTION_HANDLER producing the standard error envelope."""
    if isinstance(exc, AppError):
        if exc.status_code >= 500:
            logger.error(f"AppError {exc.status_code}: {exc.message}")
        return Response(_envelope(exc.message, exc.details), status=exc.status_code)

    if isinstance(exc, Http404):
        exc = exceptions.NotFound()
    elif isinstance(exc, PermissionDenied):
        exc = exceptions.PermissionDenied()

    response = exception_handler(exc, context)

    if response is None:
        view = context.get('view')
        logger.exception(f"Unhandled error in {view.__class__.__name__ if view else 'view'}: {exc}")
        details = str(exc) if settings.DEBUG else None
        return Response(
            _envelope('Internal Server Error', details),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, exceptions.ValidationError):
        response.data = _envelope('Validation Error', response.data)
    else:
        detail = response.data.get('detail') if isinstance(response.data, dict) else response.data
        response.data = _envelope(str(detail), None)
    return response
