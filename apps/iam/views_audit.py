"""
Audit log API views.
"""
from django.http import HttpResponse
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.core.pagination import paginate_queryset
from apps.core.permissions import requires_scopes, HasTenantScopes
from apps.iam.audit import AuditService
from apps.iam.catalog import IamPermission
from apps.iam.serializers import AuditLogQuerySerializer, AuditLogSerializer

AUDIT_FILTER_PARAMETERS = [
    OpenApiParameter('actor_id', OpenApiTypes.UUID),
    OpenApiParameter('actor_email', OpenApiTypes.STR, description='Case-insensitive contains'),
    OpenApiParameter('action', OpenApiTypes.STR),
    OpenApiParameter('target_type', OpenApiTypes.STR),
    OpenApiParameter('target_id', OpenApiTypes.STR),
    OpenApiParameter('start_date', OpenApiTypes.DATETIME),
    OpenApiParameter('end_date', OpenApiTypes.DATETIME),
]


def _filters(request):
    serializer = AuditLogQuerySerializer(data=request.query_params)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data


@extend_schema(
    tags=['IAM - Audit'],
    summary='Query audit logs',
    description='Newest first, paginated. **Required permission:** `iam:audit:read`',
    parameters=AUDIT_FILTER_PARAMETERS + [
        OpenApiParameter('page', OpenApiTypes.INT),
        OpenApiParameter('limit', OpenApiTypes.INT),
    ],
    responses={200: AuditLogSerializer(many=True)},
)
@requires_scopes(IamPermission.AUDIT_READ)
class AuditLogListView(APIView):
    """GET /v1/iam/audit-logs"""

    permission_classes = [HasTenantScopes]

    def get(self, request):
        logs = AuditService.filter_logs(request.tenant, _filters(request))
        page, paginator = paginate_queryset(logs, request, view=self)
        return paginator.get_paginated_response(AuditLogSerializer(page, many=True).data)


@extend_schema(
    tags=['IAM - Audit'],
    summary='Export audit logs as CSV',
    description='Same filters as the query endpoint; at most 10,000 rows. **Required permission:** `iam:audit:export`',
    parameters=AUDIT_FILTER_PARAMETERS,
    responses={(200, 'text/csv'): OpenApiTypes.STR},
)
@requires_scopes(IamPermission.AUDIT_EXPORT)
class AuditLogExportView(APIView):
    """GET /v1/iam/audit-logs/export"""

    permission_classes = [HasTenantScopes]

    def get(self, request):
        content = AuditService.export_csv(request.tenant, _filters(request))
        response = HttpResponse(content, content_type='text/csv')
        response['Content-Disposition'] = (
            f'attachment; filename="{AuditService.export_filename(request.tenant)}"'
        )
        return response


@extend_schema(
    tags=['IAM - Audit'],
    summary='Distinct audit actions',
    description='**Required permission:** `iam:audit:read`',
    responses={200: OpenApiTypes.OBJECT},
)
@requires_scopes(IamPermission.AUDIT_READ)
class AuditActionsView(APIView):
    """GET /v1/iam/audit-logs/actions"""

    permission_classes = [HasTenantScopes]

    def get(self, request):
        return Response({'actions': AuditService.distinct_actions(request.tenant)})


@extend_schema(
    tags=['IAM - Audit'],
    summary='Distinct audit target types',
    description='**Required permission:** `iam:audit:read`',
    responses={200: OpenApiTypes.OBJECT},
)
@requires_scopes(IamPermission.AUDIT_READ)
class AuditTargetTypesView(APIView):
    """GET /v1/iam/audit-logs/target-types"""

    permission_classes = [HasTenantScopes]

    def get(self, request):
        return Response({'target_types': AuditService.distinct_target_types(request.tenant)})
