"""
API key management views.

The plaintext key is returned exactly once, from the create endpoint.
"""
import logging
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from django.utils.decorators import method_decorator
from django_ratelimit.decorators import ratelimit
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiExample, OpenApiParameter
from drf_spectacular.types import OpenApiTypes

from apps.core.permissions import requires_scopes, HasTenantScopes
from apps.iam.catalog import IamPermission
from apps.iam.services import ApiKeyService
from apps.iam.serializers import ApiKeyCreateSerializer, ApiKeyRevokeSerializer, ApiKeySerializer

logger = logging.getLogger(__name__)

PLAINTEXT_WARNING = 'Store this key securely. It will not be shown again.'


@extend_schema_view(
    get=extend_schema(
        tags=['IAM - API Keys'],
        summary='List API keys',
        description='**Required permission:** `iam:api_keys:read`',
        parameters=[
            OpenApiParameter('include_revoked', OpenApiTypes.BOOL, description='Include revoked keys'),
        ],
        responses={200: ApiKeySerializer(many=True)},
    ),
    post=extend_schema(
        tags=['IAM - API Keys'],
        summary='Create API key',
        description='''
Creates a key for the caller (or another member, or a service account).
Scopes must be permissions the caller holds. The response is the only
time the plaintext key is returned.

**Required permission:** `iam:api_keys:write`

**Rate limit**: 30 requests/minute per user
        ''',
        request=ApiKeyCreateSerializer,
        responses={201: OpenApiTypes.OBJECT, 403: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT},
        examples=[
            OpenApiExample(
                'Create Key',
                value={
                    'name': 'CI pipeline',
                    'scopes': ['documents:read', 'tasks:read'],
                    'expires_at': '2027-01-01T00:00:00Z'
                },
                request_only=True
            ),
            OpenApiExample(
                'Created',
                value={
                    'api_key': {
                        'id': '123e4567-e89b-12d3-a456-426614174000',
                        'name': 'CI pipeline',
                        'key_prefix': 'chg_1a2b3c4d',
                        'scopes': ['documents:read', 'tasks:read']
                    },
                    'key': 'chg_1a2b3c4d...',
                    'warning': PLAINTEXT_WARNING
                },
                response_only=True
            )
        ]
    ),
)
class ApiKeyListView(APIView):
    """GET/POST /v1/iam/api-keys"""

    permission_classes = [HasTenantScopes]

    @requires_scopes(IamPermission.API_KEYS_READ)
    def get(self, request):
        include_revoked = request.query_params.get('include_revoked', '').lower() in ('1', 'true', 'yes')
        keys = ApiKeyService.list_keys(request.tenant, include_revoked=include_revoked)
        return Response({'results': ApiKeySerializer(keys, many=True).data})

    @method_decorator(ratelimit(key='user_or_ip', rate='30/m', method='POST', block=True))
    @requires_scopes(IamPermission.API_KEYS_WRITE)
    def post(self, request):
        serializer = ApiKeyCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        api_key, plain_key = ApiKeyService.create_key(
            request.tenant,
            name=data['name'],
            scopes=data['scopes'],
            actor=request.user,
            actor_permissions=request.scopes,
            owner_type=data['owner_type'],
            owner_id=data.get('owner_id'),
            expires_at=data.get('expires_at'),
            request=request,
        )
        return Response(
            {
                'api_key': ApiKeySerializer(api_key).data,
                'key': plain_key,
                'warning': PLAINTEXT_WARNING,
            },
            status=status.HTTP_201_CREATED
        )


@extend_schema_view(
    get=extend_schema(
        tags=['IAM - API Keys'],
        summary='Get API key',
        description='**Required permission:** `iam:api_keys:read`',
        responses={200: ApiKeySerializer},
    ),
)
class ApiKeyDetailView(APIView):
    """GET /v1/iam/api-keys/{key_id}"""

    permission_classes = [HasTenantScopes]

    @requires_scopes(IamPermission.API_KEYS_READ)
    def get(self, request, key_id):
        api_key = ApiKeyService.get_key(request.tenant, key_id)
        return Response(ApiKeySerializer(api_key).data)


@extend_schema(
    tags=['IAM - API Keys'],
    summary='Revoke API key',
    description='''
Revocation is immediate and permanent. Revoking an already revoked key
returns 403.

**Required permission:** `iam:api_keys:revoke`
    ''',
    request=ApiKeyRevokeSerializer,
    responses={200: ApiKeySerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
)
@requires_scopes(IamPermission.API_KEYS_REVOKE)
class ApiKeyRevokeView(APIView):
    """POST /v1/iam/api-keys/{key_id}/revoke"""

    permission_classes = [HasTenantScopes]

    def post(self, request, key_id):
        api_key = ApiKeyService.get_key(request.tenant, key_id)
        serializer = ApiKeyRevokeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        api_key = ApiKeyService.revoke_key(
            api_key, request.user, reason=serializer.validated_data.get('reason', ''), request=request
        )
        return Response(ApiKeySerializer(api_key).data)
