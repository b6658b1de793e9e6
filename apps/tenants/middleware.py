"""
Tenant context middleware for multi-tenant isolation.

Authenticates the caller, resolves the tenant the request acts on and
attaches the caller's effective permissions, so every view runs with
``request.tenant``, ``request.membership`` and ``request.scopes`` set.
"""
import logging
from django.contrib.auth.models import AnonymousUser
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin
from django.utils import timezone

from apps.core.exceptions import ApiErrorCode, AppException, error_payload
from apps.core.logging import SecurityLogger
from apps.core.middleware import set_current_tenant_id
from apps.core.sentry_utils import set_tenant_context, set_user_context
from .models import Tenant

logger = logging.getLogger(__name__)


class TenantContextMiddleware(MiddlewareMixin):
    """
    Extract and validate tenant context from request headers.

    This middleware:
    1. Authenticates a Bearer JWT (``Authorization``) or an ``X-API-KEY``
    2. Resolves the tenant: from ``X-TENANT-ID`` for JWT callers, from the
       key itself for API-key callers
    3. Verifies an active membership (platform admins may enter any tenant,
       which is logged as a security event)
    4. Resolves effective permissions into ``request.scopes``

    Public endpoints (health checks, schema, admin, login, register, token
    refresh) bypass it. ``/v1/auth/`` endpoints are authenticated but need
    no tenant.
    """

    # Paths that don't require authentication
    PUBLIC_PATHS = [
        '/health',
        '/schema',
        '/admin/',
        '/v1/auth/login',
        '/v1/auth/register',
        '/v1/auth/refresh',
    ]

    # Authenticated paths that are not tenant scoped
    TENANT_OPTIONAL_PATHS = [
        '/v1/auth/',
    ]

    def process_request(self, request):
        request.tenant = None
        request.membership = None
        request.scopes = set()
        request.api_key = None

        if self._is_public_path(request.path):
            return None

        request_id = getattr(request, 'request_id', None)
        from apps.iam.models import get_client_ip
        ip_address = get_client_ip(request)

        # Authenticate
        auth_header = request.headers.get('Authorization', '')
        raw_api_key = request.headers.get('X-API-KEY')

        if auth_header.startswith('Bearer '):
            from apps.iam.services import AuthService
            try:
                user = AuthService.get_user_from_jwt(auth_header[7:].strip())
            except AppException as e:
                return self._error_response(e.code, e.message, status=e.status_code, request_id=request_id)
            api_key = None
        elif raw_api_key:
            from apps.iam.services import ApiKeyService
            api_key = ApiKeyService.authenticate(raw_api_key, ip_address=ip_address)
            if api_key is None:
                logger.warning(
                    "Rejected API key",
                    extra={'request_id': request_id, 'ip_address': ip_address}
                )
                return self._error_response(
                    ApiErrorCode.UNAUTHORIZED,
                    'Invalid, expired or revoked API key',
                    status=401,
                    request_id=request_id,
                )
            user = api_key.owner
            if user is None or not user.is_active:
                return self._error_response(
                    ApiErrorCode.UNAUTHORIZED,
                    'API key owner is inactive',
                    status=401,
                    request_id=request_id,
                )
        else:
            request.user = AnonymousUser()
            return self._error_response(
                ApiErrorCode.UNAUTHORIZED,
                'Authentication credentials were not provided',
                status=401,
                request_id=request_id,
            )

        request.user = user
        request.api_key = api_key

        if api_key is None and self._is_tenant_optional(request.path):
            return None

        # Resolve tenant
        if api_key is not None:
            tenant = api_key.tenant
            header_tenant = request.headers.get('X-TENANT-ID')
            if header_tenant and header_tenant != str(tenant.id):
                SecurityLogger.log_event(
                    'api_key_misuse',
                    level='error',
                    api_key_id=str(api_key.id),
                    requested_tenant=header_tenant,
                    ip_address=ip_address,
                )
                return self._error_response(
                    ApiErrorCode.TENANT_ACCESS_DENIED,
                    'API key does not belong to this tenant',
                    status=403,
                    request_id=request_id,
                )
        else:
            tenant_id = request.headers.get('X-TENANT-ID')
            if not tenant_id:
                return self._error_response(
                    ApiErrorCode.INVALID_INPUT,
                    'X-TENANT-ID header is required',
                    status=400,
                    request_id=request_id,
                )
            tenant = self._get_tenant(tenant_id)
            if tenant is None:
                logger.warning(
                    f"Invalid tenant ID: {tenant_id}",
                    extra={'request_id': request_id}
                )
                return self._error_response(
                    ApiErrorCode.TENANT_NOT_FOUND,
                    'Tenant not found',
                    status=404,
                    request_id=request_id,
                )

        if not tenant.is_active:
            logger.info(
                f"Suspended tenant attempted access: {tenant.id}",
                extra={'request_id': request_id}
            )
            return self._error_response(
                ApiErrorCode.FORBIDDEN,
                'This tenant is suspended',
                status=403,
                request_id=request_id,
            )

        from apps.iam.models import ApiKey, TenantUser
        from apps.iam.services import PermissionService

        membership = TenantUser.objects.get_membership(tenant, user)
        if membership is not None and not membership.is_usable:
            membership = None

        if membership is None and not user.is_superuser:
            logger.warning(
                f"User {user.id} attempted access to tenant {tenant.slug} without membership",
                extra={'request_id': request_id, 'tenant_id': str(tenant.id)}
            )
            return self._error_response(
                ApiErrorCode.TENANT_ACCESS_DENIED,
                'You do not have access to this tenant',
                status=403,
                request_id=request_id,
            )

        if membership is None:
            SecurityLogger.log_cross_tenant_access(user, tenant, ip_address)

        scopes = PermissionService.effective_permissions(user, membership)
        if api_key is not None:
            if api_key.owner_type == ApiKey.OWNER_SERVICE_ACCOUNT:
                scopes = set(api_key.scopes)
            else:
                # A user key never grants more than its owner currently holds
                scopes = set(api_key.scopes) & scopes

        request.tenant = tenant
        request.membership = membership
        request.scopes = scopes
        set_current_tenant_id(str(tenant.id))
        set_tenant_context(tenant)
        set_user_context(user, membership)

        if membership is not None:
            TenantUser.objects.filter(pk=membership.pk).update(last_seen_at=timezone.now())

        logger.debug(
            f"Tenant context set: {tenant.slug} with {len(scopes)} scopes",
            extra={'request_id': request_id, 'tenant_id': str(tenant.id)}
        )
        return None

    def _get_tenant(self, tenant_id):
        from django.core.exceptions import ValidationError
        try:
            return Tenant.objects.filter(id=tenant_id).first()
        except (ValueError, ValidationError):
            return None

    def _is_public_path(self, path):
        """Check if path is public and doesn't require authentication."""
        return any(path.startswith(public_path) for public_path in self.PUBLIC_PATHS)

    def _is_tenant_optional(self, path):
        return any(path.startswith(prefix) for prefix in self.TENANT_OPTIONAL_PATHS)

    def _error_response(self, code, message, status=400, details=None, request_id=None):
        """Generate standardized error response."""
        return JsonResponse(error_payload(code, message, details, request_id), status=status)
