"""
Custom exception handlers for DRF.

Every error leaving the API has the shape::

    {"error": {"code": "...", "message": "...", "details": {...}}, "request_id": "..."}
"""
import logging
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
from rest_framework import exceptions as drf_exceptions
from django_ratelimit.exceptions import Ratelimited
from django.http import JsonResponse

logger = logging.getLogger(__name__)


class ApiErrorCode:
    """Machine-readable error codes returned in error envelopes."""
    UNAUTHORIZED = 'UNAUTHORIZED'
    FORBIDDEN = 'FORBIDDEN'
    INVALID_CREDENTIALS = 'INVALID_CREDENTIALS'
    TOKEN_EXPIRED = 'TOKEN_EXPIRED'
    VALIDATION_ERROR = 'VALIDATION_ERROR'
    INVALID_INPUT = 'INVALID_INPUT'
    NOT_FOUND = 'NOT_FOUND'
    ALREADY_EXISTS = 'ALREADY_EXISTS'
    CONFLICT = 'CONFLICT'
    TENANT_NOT_FOUND = 'TENANT_NOT_FOUND'
    TENANT_ACCESS_DENIED = 'TENANT_ACCESS_DENIED'
    INVALID_TRANSITION = 'INVALID_TRANSITION'
    PREREQUISITES_NOT_MET = 'PREREQUISITES_NOT_MET'
    RATE_LIMITED = 'RATE_LIMITED'
    INTERNAL_ERROR = 'INTERNAL_ERROR'
    SERVICE_UNAVAILABLE = 'SERVICE_UNAVAILABLE'
    NOT_READY = 'NOT_READY'
    MFA_REQUIRED = 'MFA_REQUIRED'
    MFA_VERIFY_FAILED = 'MFA_VERIFY_FAILED'


def error_payload(code, message, details=None, request_id=None):
    """Build the standard error envelope."""
    payload = {'error': {'code': code, 'message': message}}
    if details:
        payload['error']['details'] = details
    if request_id:
        payload['request_id'] = request_id
    return payload


def _retry_after_for(path):
    if path and '/auth/register' in path:
        return 3600
    return 60


def ratelimit_view(request, exception):
    """
    View used by django-ratelimit when a limit is hit outside DRF.

    Returns 429 with a Retry-After header instead of the default 403.
    """
    from apps.core.logging import SecurityLogger

    ip_address = request.META.get('REMOTE_ADDR', 'unknown')
    retry_after = _retry_after_for(request.path)

    SecurityLogger.log_rate_limit_exceeded(
        endpoint=request.path,
        ip_address=ip_address,
        tenant_id=str(request.tenant.id) if getattr(request, 'tenant', None) else None,
    )

    response = JsonResponse(
        error_payload(
            ApiErrorCode.RATE_LIMITED,
            'Rate limit exceeded. Please try again later.',
            {'retry_after': retry_after},
            getattr(request, 'request_id', None),
        ),
        status=429
    )
    response['Retry-After'] = str(retry_after)
    return response


def custom_exception_handler(exc, context):
    """
    Custom exception handler that logs errors and returns consistent format.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None
    path = request.path if request else None

    if isinstance(exc, Ratelimited):
        from apps.core.logging import SecurityLogger

        retry_after = _retry_after_for(path)
        ip_address = request.META.get('REMOTE_ADDR', 'unknown') if request else 'unknown'
        tenant = getattr(request, 'tenant', None) if request else None

        SecurityLogger.log_rate_limit_exceeded(
            endpoint=path or 'unknown',
            ip_address=ip_address,
            tenant_id=str(tenant.id) if tenant else None,
        )

        response = Response(
            error_payload(
                ApiErrorCode.RATE_LIMITED,
                'Rate limit exceeded. Please try again later.',
                {'retry_after': retry_after},
                request_id,
            ),
            status=status.HTTP_429_TOO_MANY_REQUESTS
        )
        response['Retry-After'] = str(retry_after)
        return response

    if isinstance(exc, AppException):
        logger.info(
            f"API error {exc.code}: {exc.message}",
            extra={
                'request_id': request_id,
                'path': path,
                'status_code': exc.status_code,
            }
        )
        return Response(
            error_payload(exc.code, exc.message, exc.details, request_id),
            status=exc.status_code
        )

    # Call DRF's default exception handler first
    response = exception_handler(exc, context)

    if response is None:
        logger.error(
            f"Unhandled API exception: {exc.__class__.__name__}",
            extra={
                'exception': str(exc),
                'request_id': request_id,
                'path': path,
                'method': request.method if request else None,
            },
            exc_info=exc
        )
        from apps.core.sentry_utils import capture_exception
        capture_exception(exc, request_id=request_id, path=path)
        return Response(
            error_payload(
                ApiErrorCode.INTERNAL_ERROR,
                'An unexpected error occurred',
                request_id=request_id,
            ),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    code, message, details = _describe_drf_exception(exc, response)
    logger.warning(
        f"API exception: {exc.__class__.__name__}",
        extra={
            'request_id': request_id,
            'path': path,
            'status_code': response.status_code,
        }
    )
    response.data = error_payload(code, message, details, request_id)
    return response


def _describe_drf_exception(exc, response):
    if isinstance(exc, drf_exceptions.ValidationError):
        return ApiErrorCode.VALIDATION_ERROR, 'Validation failed', response.data
    if isinstance(exc, drf_exceptions.NotAuthenticated) or isinstance(exc, drf_exceptions.AuthenticationFailed):
        return ApiErrorCode.UNAUTHORIZED, _detail_text(exc), None
    if isinstance(exc, drf_exceptions.PermissionDenied):
        return ApiErrorCode.FORBIDDEN, _detail_text(exc), None
    if isinstance(exc, drf_exceptions.NotFound):
        return ApiErrorCode.NOT_FOUND, _detail_text(exc), None
    if isinstance(exc, drf_exceptions.ParseError):
        return ApiErrorCode.INVALID_INPUT, _detail_text(exc), None
    return ApiErrorCode.INTERNAL_ERROR if response.status_code >= 500 else ApiErrorCode.INVALID_INPUT, _detail_text(exc), None


def _detail_text(exc):
    detail = getattr(exc, 'detail', None)
    return str(detail) if detail is not None else str(exc)


class AppException(Exception):
    """Base exception for application errors rendered as API error envelopes."""
    status_code = 500
    code = ApiErrorCode.INTERNAL_ERROR

    def __init__(self, message, details=None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationFailed(AppException):
    """Raised when input validation fails outside a serializer."""
    status_code = 400
    code = ApiErrorCode.VALIDATION_ERROR


class BadRequest(AppException):
    """Raised when the request payload is malformed."""
    status_code = 400
    code = ApiErrorCode.INVALID_INPUT


class Unauthorized(AppException):
    """Raised when authentication fails."""
    status_code = 401
    code = ApiErrorCode.UNAUTHORIZED


class InvalidCredentials(Unauthorized):
    code = ApiErrorCode.INVALID_CREDENTIALS


class TokenExpired(Unauthorized):
    code = ApiErrorCode.TOKEN_EXPIRED


class MfaRequired(Unauthorized):
    """Raised when the password was right but a TOTP or backup code is still needed."""
    code = ApiErrorCode.MFA_REQUIRED


class MfaVerificationFailed(AppException):
    """Raised when an MFA setup or disable step is rejected."""
    status_code = 400
    code = ApiErrorCode.MFA_VERIFY_FAILED


class Forbidden(AppException):
    """Raised when the caller lacks required permissions."""
    status_code = 403
    code = ApiErrorCode.FORBIDDEN


class TenantAccessDenied(Forbidden):
    """Raised when the caller is not a member of the requested tenant."""
    code = ApiErrorCode.TENANT_ACCESS_DENIED


class NotFound(AppException):
    """Raised when a resource does not exist in the caller's tenant."""
    status_code = 404
    code = ApiErrorCode.NOT_FOUND

    def __init__(self, resource='Resource', details=None):
        super().__init__(f"{resource} not found", details)


class TenantNotFound(NotFound):
    code = ApiErrorCode.TENANT_NOT_FOUND

    def __init__(self, details=None):
        super().__init__('Tenant', details)


class Conflict(AppException):
    """Raised when a write would violate a uniqueness or consistency rule."""
    status_code = 409
    code = ApiErrorCode.CONFLICT


class AlreadyExists(Conflict):
    code = ApiErrorCode.ALREADY_EXISTS


class InvalidTransition(AppException):
    """Raised when a status change is not allowed from the current state."""
    status_code = 400
    code = ApiErrorCode.INVALID_TRANSITION


class PrerequisitesNotMet(AppException):
    """Raised when an action requires earlier steps to be completed first."""
    status_code = 400
    code = ApiErrorCode.PREREQUISITES_NOT_MET
