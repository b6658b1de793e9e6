"""
API views for IAM settings management.
"""
import logging
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from django_ratelimit.decorators import ratelimit
from drf_spectacular.utils import extend_schema, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import Forbidden
from apps.core.permissions import HasTenantScopes
from apps.iam.catalog import IamPermission
from apps.tenants.serializers_settings import (
    TenantSettingsReadSerializer,
    TenantSettingsUpdateSerializer,
)
from apps.tenants.services import SettingsService

logger = logging.getLogger(__name__)


def _require(request, scope):
    if scope not in request.scopes:
        raise Forbidden(f"Missing required permission: {scope}")


@extend_schema(
    tags=['IAM Settings'],
    summary='Get or update IAM settings',
    description='''
Get or update the tenant's security policy: audit logging and retention,
MFA requirement, session timeout, login lockout threshold, password expiry
and notification emails.

**GET**: Requires `iam:settings:read`
**PUT**: Requires `iam:settings:write`; any subset of fields, validated against allowed ranges

**Rate limit**: 60 requests/minute for PUT
    ''',
    request=TenantSettingsUpdateSerializer,
    responses={
        200: TenantSettingsReadSerializer,
        400: OpenApiTypes.OBJECT,
        403: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Tighten lockout',
            value={'max_failed_login_attempts': 3, 'session_timeout_minutes': 30},
            request_only=True
        )
    ]
)
@api_view(['GET', 'PUT'])
@permission_classes([HasTenantScopes])
@ratelimit(key='user_or_ip', rate='60/m', method=['PUT'], block=True)
def tenant_settings_view(request):
    """Get or update IAM settings."""
    if request.method == 'GET':
        _require(request, IamPermission.SETTINGS_READ)
        settings_obj = SettingsService.get_or_create_settings(request.tenant)
        return Response(TenantSettingsReadSerializer(settings_obj).data)

    _require(request, IamPermission.SETTINGS_WRITE)
    serializer = TenantSettingsUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    settings_obj = SettingsService.update_settings(
        request.tenant,
        serializer.validated_data,
        actor=request.user,
        request=request,
    )
    return Response(TenantSettingsReadSerializer(settings_obj).data)


@extend_schema(
    tags=['IAM Settings'],
    summary='Toggle audit logging',
    description='Enable or disable audit logging. Body: `{"enabled": true}`. Requires `iam:settings:write`.',
    request=OpenApiTypes.OBJECT,
    responses={200: TenantSettingsReadSerializer, 400: OpenApiTypes.OBJECT},
)
@api_view(['PATCH'])
@permission_classes([HasTenantScopes])
def audit_logging_toggle_view(request):
    _require(request, IamPermission.SETTINGS_WRITE)
    settings_obj = SettingsService.set_audit_logging(
        request.tenant,
        request.data.get('enabled'),
        actor=request.user,
        request=request,
    )
    return Response(TenantSettingsReadSerializer(settings_obj).data)
