"""
Formation API views: setup wizard, workflow and progress.
"""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.core.permissions import requires_scopes, HasTenantScopes
from apps.formation.constants import ARCHETYPES
from apps.formation.serializers import (
    BusinessInfoSerializer,
    BusinessProfileSerializer,
    EntityTypeSerializer,
    FormationStateSerializer,
    FormationStatusUpdateSerializer,
    SetupStartSerializer,
    StepUpdateSerializer,
    WorkflowAdvanceSerializer,
    WorkflowSerializer,
)
from apps.formation.services import ProgressService, SetupService, WorkflowService
from apps.iam.catalog import AppPermission


def _step_response(request, extra=None):
    data = SetupService.status(request.tenant)
    if extra:
        data.update(extra)
    return data


# ===== SETUP WIZARD =====

@extend_schema(
    tags=['Formation - Setup'],
    summary='Get setup wizard status',
    description='''
Progress through the setup wizard:
archetype 10, entity type 25, state 40, business info 55, formation 70,
complete 100. Includes the current blockers and the next suggested action.

**Required permission:** `formation:read`
    ''',
    responses={200: OpenApiTypes.OBJECT},
)
@requires_scopes(AppPermission.FORMATION_READ)
class SetupStatusView(APIView):
    """GET /v1/formation/setup/status"""

    permission_classes = [HasTenantScopes]

    def get(self, request):
        return Response(SetupService.status(request.tenant))


@extend_schema(
    tags=['Formation - Setup'],
    summary='Start setup',
    description='''
Creates the business profile (or restarts the wizard) with a business
archetype.

**Required permission:** `formation:write`
    ''',
    request=SetupStartSerializer,
    responses={201: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT},
    examples=[
        OpenApiExample(
            'Start',
            value={'archetype': 'professional_services', 'business_name': 'Acme Consulting', 'email': 'hello@acme.test'},
            request_only=True
        )
    ]
)
@requires_scopes(AppPermission.FORMATION_WRITE)
class SetupStartView(APIView):
    """POST /v1/formation/setup/start"""

    permission_classes = [HasTenantScopes]

    def post(self, request):
        serializer = SetupStartSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        SetupService.start(
            request.tenant,
            archetype=data['archetype'],
            user=request.user,
            business_name=data['business_name'],
            email=data['email'],
            request=request,
        )
        name, recommended = ARCHETYPES[data['archetype']]
        return Response(
            _step_response(request, {'archetype_name': name, 'recommended_entity_types': recommended}),
            status=status.HTTP_201_CREATED
        )


@extend_schema(
    tags=['Formation - Setup'],
    summary='Select entity type',
    description='**Required permission:** `formation:write`',
    request=EntityTypeSerializer,
    responses={200: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
)
@requires_scopes(AppPermission.FORMATION_WRITE)
class SetupEntityTypeView(APIView):
    """POST /v1/formation/setup/entity-type"""

    permission_classes = [HasTenantScopes]

    def post(self, request):
        serializer = EntityTypeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        SetupService.select_entity_type(
            request.tenant, serializer.validated_data['entity_type'], request.user, request=request
        )
        return Response(_step_response(request))


@extend_schema(
    tags=['Formation - Setup'],
    summary='Select formation state',
    description='Two-letter US state code. **Required permission:** `formation:write`',
    request=FormationStateSerializer,
    responses={200: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
)
@requires_scopes(AppPermission.FORMATION_WRITE)
class SetupStateView(APIView):
    """POST /v1/formation/setup/state"""

    permission_classes = [HasTenantScopes]

    def post(self, request):
        serializer = FormationStateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        SetupService.select_state(
            request.tenant, serializer.validated_data['state'], request.user, request=request
        )
        return Response(_step_response(request))


@extend_schema(
    tags=['Formation - Setup'],
    summary='Save business information',
    description='Name, contact details, address and registered agent. **Required permission:** `formation:write`',
    request=BusinessInfoSerializer,
    responses={200: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
)
@requires_scopes(AppPermission.FORMATION_WRITE)
class SetupBusinessInfoView(APIView):
    """POST /v1/formation/setup/business-info"""

    permission_classes = [HasTenantScopes]

    def post(self, request):
        serializer = BusinessInfoSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        SetupService.save_business_info(
            request.tenant, serializer.validated_data, request.user, request=request
        )
        return Response(_step_response(request))


@extend_schema(
    tags=['Formation - Setup'],
    summary='Complete setup',
    description='''
Requires archetype, entity type, state and business information. Starts
the formation workflow and its default tasks.

Returns 400 `PREREQUISITES_NOT_MET` listing the missing steps otherwise.

**Required permission:** `formation:write`
    ''',
    request=None,
    responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT},
)
@requires_scopes(AppPermission.FORMATION_WRITE)
class SetupCompleteView(APIView):
    """POST /v1/formation/setup/complete"""

    permission_classes = [HasTenantScopes]

    def post(self, request):
        profile, workflow = SetupService.complete(request.tenant, request.user, request=request)
        return Response({
            'setup_complete': True,
            'business_profile': BusinessProfileSerializer(profile).data,
            'workflow_id': str(workflow.id),
            'next_action': {
                'label': 'Start Business Formation',
                'action': 'start_formation',
                'description': 'Begin the formation process for your business',
            },
        })


# ===== PROFILE AND PROGRESS =====

@extend_schema_view(
    get=extend_schema(
        tags=['Formation'],
        summary='Get business profile',
        description='**Required permission:** `formation:read`',
        responses={200: BusinessProfileSerializer, 404: OpenApiTypes.OBJECT},
    ),
)
class BusinessProfileView(APIView):
    """GET /v1/formation/profile"""

    permission_classes = [HasTenantScopes]

    @requires_scopes(AppPermission.FORMATION_READ)
    def get(self, request):
        profile = SetupService.require_profile(request.tenant)
        return Response(BusinessProfileSerializer(profile).data)


@extend_schema(
    tags=['Formation'],
    summary='Record formation milestones',
    description='''
Update the SOS filing status and number, formation date, EIN status and
EIN. Filing without a formation date records today.

**Required permission:** `formation:write`
    ''',
    request=FormationStatusUpdateSerializer,
    responses={200: BusinessProfileSerializer},
    examples=[
        OpenApiExample(
            'Filed',
            value={'formation_status': 'filed', 'sos_filing_number': 'LLC-2026-000123'},
            request_only=True
        )
    ]
)
@requires_scopes(AppPermission.FORMATION_WRITE)
class FormationStatusView(APIView):
    """PUT /v1/formation/status"""

    permission_classes = [HasTenantScopes]

    def put(self, request):
        serializer = FormationStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        profile = SetupService.update_formation_status(
            request.tenant, serializer.validated_data, request.user, request=request
        )
        return Response(BusinessProfileSerializer(profile).data)


@extend_schema(
    tags=['Formation'],
    summary='Get formation progress',
    description='''
Four milestones worth 25% each: entity type chosen, business information
complete, formation filed, EIN received.

**Required permission:** `formation:read`
    ''',
    responses={200: OpenApiTypes.OBJECT},
)
@requires_scopes(AppPermission.FORMATION_READ)
class FormationProgressView(APIView):
    """GET /v1/formation/progress"""

    permission_classes = [HasTenantScopes]

    def get(self, request):
        profile = SetupService.require_profile(request.tenant)
        return Response({
            'percentage': ProgressService.formation_progress(profile),
            'milestones': ProgressService.formation_milestones(profile),
            'formation_status': profile.formation_status,
            'ein_status': profile.ein_status,
        })


# ===== WORKFLOW =====

@extend_schema(
    tags=['Formation - Workflow'],
    summary='Get formation workflow',
    description='Created on first access. **Required permission:** `formation:read`',
    responses={200: WorkflowSerializer, 404: OpenApiTypes.OBJECT},
)
@requires_scopes(AppPermission.FORMATION_READ)
class WorkflowView(APIView):
    """GET /v1/formation/workflow"""

    permission_classes = [HasTenantScopes]

    def get(self, request):
        workflow = WorkflowService.get_or_create(request.tenant, user=request.user)
        return Response(WorkflowSerializer(workflow).data)


@extend_schema(
    tags=['Formation - Workflow'],
    summary='Update workflow step',
    description='''
Merges data into the step. Setting `status` to `completed` stamps
`completed_at` and `completed_by`.

**Required permission:** `formation:write`
    ''',
    request=StepUpdateSerializer,
    responses={200: WorkflowSerializer, 400: OpenApiTypes.OBJECT},
    examples=[
        OpenApiExample(
            'Complete step',
            value={'status': 'completed', 'data': {'agent_type': 'commercial'}},
            request_only=True
        )
    ]
)
@requires_scopes(AppPermission.FORMATION_WRITE)
class WorkflowStepView(APIView):
    """PUT /v1/formation/workflow/steps/{step}"""

    permission_classes = [HasTenantScopes]

    def put(self, request, step):
        serializer = StepUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        workflow = WorkflowService.get_or_create(request.tenant, user=request.user)
        workflow = WorkflowService.update_step(
            workflow,
            step,
            request.user,
            status=data.get('status'),
            data=data.get('data'),
            validation_errors=data.get('validation_errors'),
        )
        return Response(WorkflowSerializer(workflow).data)


@extend_schema(
    tags=['Formation - Workflow'],
    summary='Advance workflow phase',
    description='''
Closes the current phase and enters the next. Advancing past `growth`
returns 400 `INVALID_TRANSITION`.

**Required permission:** `formation:write`
    ''',
    request=WorkflowAdvanceSerializer,
    responses={200: WorkflowSerializer, 400: OpenApiTypes.OBJECT},
)
@requires_scopes(AppPermission.FORMATION_WRITE)
class WorkflowAdvanceView(APIView):
    """POST /v1/formation/workflow/advance"""

    permission_classes = [HasTenantScopes]

    def post(self, request):
        serializer = WorkflowAdvanceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        workflow = WorkflowService.get_or_create(request.tenant, user=request.user)
        workflow = WorkflowService.advance(
            workflow, request.user, notes=serializer.validated_data['notes'], request=request
        )
        return Response(WorkflowSerializer(workflow).data)
