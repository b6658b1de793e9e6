"""
Operations API views: banking, operating agreement and compliance calendar.
"""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.core.permissions import requires_scopes, HasTenantScopes
from apps.formation.models import ComplianceItem
from apps.formation.serializers import (
    BankingUpdateSerializer,
    BusinessProfileSerializer,
    ComplianceItemSerializer,
    OperatingAgreementUpdateSerializer,
)
from apps.formation.services import OperationsService
from apps.iam.catalog import AppPermission


@extend_schema(
    tags=['Operations'],
    summary='Get operations status',
    description='''
Operations progress is 0 until formation is filed or approved or the EIN
is received. Afterwards: banking 33, operating agreement 33, compliance
calendar 34.

**Required permission:** `formation:read`
    ''',
    responses={200: OpenApiTypes.OBJECT},
)
@requires_scopes(AppPermission.FORMATION_READ)
class OperationsStatusView(APIView):
    """GET /v1/operations/status"""

    permission_classes = [HasTenantScopes]

    def get(self, request):
        data = OperationsService.status(request.tenant)
        data['compliance']['upcoming'] = ComplianceItemSerializer(
            data['compliance']['upcoming'], many=True
        ).data
        return Response(data)


@extend_schema(
    tags=['Operations'],
    summary='Update banking status',
    description='**Required permission:** `formation:write`',
    request=BankingUpdateSerializer,
    responses={200: BusinessProfileSerializer, 400: OpenApiTypes.OBJECT},
)
@requires_scopes(AppPermission.FORMATION_WRITE)
class BankingView(APIView):
    """PUT /v1/operations/banking"""

    permission_classes = [HasTenantScopes]

    def put(self, request):
        serializer = BankingUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        profile = OperationsService.update_banking(
            request.tenant,
            serializer.validated_data['status'],
            request.user,
            bank_name=serializer.validated_data.get('bank_name'),
            request=request,
        )
        return Response(BusinessProfileSerializer(profile).data)


@extend_schema(
    tags=['Operations'],
    summary='Update operating agreement status',
    description='**Required permission:** `formation:write`',
    request=OperatingAgreementUpdateSerializer,
    responses={200: BusinessProfileSerializer, 400: OpenApiTypes.OBJECT},
)
@requires_scopes(AppPermission.FORMATION_WRITE)
class OperatingAgreementView(APIView):
    """PUT /v1/operations/operating-agreement"""

    permission_classes = [HasTenantScopes]

    def put(self, request):
        serializer = OperatingAgreementUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        profile = OperationsService.update_operating_agreement(
            request.tenant, serializer.validated_data['status'], request.user, request=request
        )
        return Response(BusinessProfileSerializer(profile).data)


@extend_schema(
    tags=['Operations'],
    summary='Set up the compliance calendar',
    description='''
Generates annual report, franchise tax (LLCs and corporations), BOI report
and registered agent renewal deadlines relative to the formation date.
Calling it again returns the existing calendar.

**Required permission:** `formation:write`
    ''',
    request=None,
    responses={201: ComplianceItemSerializer(many=True), 400: OpenApiTypes.OBJECT},
)
@requires_scopes(AppPermission.FORMATION_WRITE)
class ComplianceSetupView(APIView):
    """POST /v1/operations/compliance/setup"""

    permission_classes = [HasTenantScopes]

    def post(self, request):
        items = OperationsService.setup_compliance(request.tenant, request.user, request=request)
        return Response(
            {'results': ComplianceItemSerializer(items, many=True).data},
            status=status.HTTP_201_CREATED
        )


@extend_schema(
    tags=['Operations'],
    summary='List compliance items',
    description='**Required permission:** `formation:read`',
    parameters=[
        OpenApiParameter(
            'status', OpenApiTypes.STR,
            enum=[c for c, _ in ComplianceItem.STATUS_CHOICES]
        ),
    ],
    responses={200: ComplianceItemSerializer(many=True)},
)
@requires_scopes(AppPermission.FORMATION_READ)
class ComplianceItemListView(APIView):
    """GET /v1/operations/compliance/items"""

    permission_classes = [HasTenantScopes]

    def get(self, request):
        items = OperationsService.list_items(request.tenant, status=request.query_params.get('status'))
        return Response({'results': ComplianceItemSerializer(items, many=True).data})


@extend_schema(
    tags=['Operations'],
    summary='Complete a compliance item',
    description='''
Annual items schedule next year's occurrence, returned as `next_item`.

**Required permission:** `formation:write`
    ''',
    request=None,
    responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
)
@requires_scopes(AppPermission.FORMATION_WRITE)
class ComplianceItemCompleteView(APIView):
    """POST /v1/operations/compliance/items/{item_id}/complete"""

    permission_classes = [HasTenantScopes]

    def post(self, request, item_id):
        item = OperationsService.get_item(request.tenant, item_id)
        item, next_item = OperationsService.complete_item(item, request.user)
        return Response({
            'item': ComplianceItemSerializer(item).data,
            'next_item': ComplianceItemSerializer(next_item).data if next_item else None,
        })
