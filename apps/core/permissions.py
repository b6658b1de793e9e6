"""
DRF permission classes and decorators for IAM permission enforcement.

This module provides:
- HasTenantScopes: DRF permission class that enforces permission requirements
- @requires_scopes: declare permissions that are ALL required
- @requires_any_scope: declare permissions of which ANY one suffices
"""
import logging
from rest_framework.permissions import BasePermission

logger = logging.getLogger(__name__)


def _as_set(scopes):
    if not scopes:
        return set()
    if isinstance(scopes, str):
        return {scopes}
    return set(scopes)


class HasTenantScopes(BasePermission):
    """
    DRF permission class that enforces permission requirements on API endpoints.

    Requirements are read from the handler method first (set by the
    decorators below) and then from the view class:

    - ``required_scopes``: every permission must be held
    - ``any_scopes``: at least one permission must be held

    Unauthenticated requests are always rejected so DRF answers 401.
    Object access is limited to objects owned by ``request.tenant``.

    Usage in views:
        class RoleListView(APIView):
            permission_classes = [HasTenantScopes]
            required_scopes = ['iam:roles:read']

    Or per method:
        class RoleListView(APIView):
            permission_classes = [HasTenantScopes]

            @requires_scopes('iam:roles:read')
            def get(self, request):
                pass
    """

    def _requirements(self, request, view):
        handler = getattr(view, request.method.lower(), None)
        required = getattr(handler, 'required_scopes', None)
        any_of = getattr(handler, 'any_scopes', None)
        if required is None and any_of is None:
            required = getattr(view, 'required_scopes', None)
            any_of = getattr(view, 'any_scopes', None)
        return _as_set(required), _as_set(any_of)

    def has_permission(self, request, view):
        """
        Check if request holds the permissions declared for the handler.
        """
        user = getattr(request, 'user', None)
        if not user or not user.is_authenticated:
            return False

        required_scopes, any_scopes = self._requirements(request, view)
        if not required_scopes and not any_scopes:
            return True

        # Set by TenantContextMiddleware
        user_scopes = getattr(request, 'scopes', None) or set()

        missing_scopes = required_scopes - user_scopes
        any_ok = not any_scopes or bool(any_scopes & user_scopes)

        if missing_scopes or not any_ok:
            tenant = getattr(request, 'tenant', None)
            logger.warning(
                f"Permission denied: missing scopes {sorted(missing_scopes or any_scopes)}",
                extra={
                    'user_id': str(getattr(user, 'id', '')),
                    'tenant_id': str(tenant.id) if tenant else None,
                    'required_scopes': sorted(required_scopes),
                    'any_scopes': sorted(any_scopes),
                    'missing_scopes': sorted(missing_scopes),
                    'view': view.__class__.__name__,
                    'method': request.method,
                    'path': request.path,
                    'request_id': getattr(request, 'request_id', None),
                }
            )
            from apps.core.logging import SecurityLogger
            SecurityLogger.log_permission_denied(
                user, tenant, missing_scopes or any_scopes,
                ip_address=request.META.get('REMOTE_ADDR'),
            )
            return False

        return True

    def has_object_permission(self, request, view, obj):
        """
        Verify that the object belongs to the request's tenant.
        """
        request_tenant = getattr(request, 'tenant', None)

        if not request_tenant:
            logger.warning(
                "Object permission check failed: No tenant in request",
                extra={
                    'view': view.__class__.__name__,
                    'object_type': obj.__class__.__name__,
                }
            )
            return False

        object_tenant_id = getattr(obj, 'tenant_id', None)
        if object_tenant_id is None:
            return True

        if object_tenant_id != request_tenant.id:
            logger.warning(
                "Object permission denied: Object belongs to different tenant",
                extra={
                    'request_tenant_id': str(request_tenant.id),
                    'object_tenant_id': str(object_tenant_id),
                    'object_type': obj.__class__.__name__,
                    'object_id': str(getattr(obj, 'id', '')),
                    'view': view.__class__.__name__,
                    'request_id': getattr(request, 'request_id', None),
                }
            )
            return False

        return True


def requires_scopes(*scopes):
    """
    Decorator declaring permissions that are all required.

    Works on view classes and on handler methods (``get``, ``post``...).
    The attribute is read by HasTenantScopes before the handler runs.
    """
    def decorator(view_or_method):
        view_or_method.required_scopes = set(scopes)
        return view_or_method
    return decorator


def requires_any_scope(*scopes):
    """
    Decorator declaring permissions of which any single one is sufficient.
    """
    def decorator(view_or_method):
        view_or_method.any_scopes = set(scopes)
        return view_or_method
    return decorator
