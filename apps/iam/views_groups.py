"""
Group management API views.
"""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.core.permissions import requires_scopes, HasTenantScopes
from apps.iam.catalog import IamPermission
from apps.iam.services import GroupService
from apps.iam.serializers import (
    GroupCreateSerializer, GroupMembersActionSerializer, GroupRolesActionSerializer,
    GroupSerializer, GroupUpdateSerializer,
)


@extend_schema_view(
    get=extend_schema(
        tags=['IAM - Groups'],
        summary='List groups',
        description='**Required permission:** `iam:groups:read`',
        responses={200: GroupSerializer(many=True)},
    ),
    post=extend_schema(
        tags=['IAM - Groups'],
        summary='Create group',
        description='''
Group names are unique per tenant (case-insensitive). Members of a group
receive the permissions of every role attached to it.

**Required permission:** `iam:groups:write`
        ''',
        request=GroupCreateSerializer,
        responses={201: GroupSerializer, 404: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT},
    ),
)
class GroupListView(APIView):
    """GET/POST /v1/iam/groups"""

    permission_classes = [HasTenantScopes]

    @requires_scopes(IamPermission.GROUPS_READ)
    def get(self, request):
        groups = GroupService.list_groups(request.tenant).order_by('name')
        return Response({'results': GroupSerializer(groups, many=True).data})

    @requires_scopes(IamPermission.GROUPS_WRITE)
    def post(self, request):
        serializer = GroupCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        group = GroupService.create_group(
            request.tenant,
            name=data['name'],
            actor=request.user,
            description=data.get('description', ''),
            role_ids=data.get('role_ids'),
            user_ids=data.get('user_ids'),
            request=request,
        )
        return Response(GroupSerializer(group).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    get=extend_schema(
        tags=['IAM - Groups'],
        summary='Get group',
        description='**Required permission:** `iam:groups:read`',
        responses={200: GroupSerializer},
    ),
    put=extend_schema(
        tags=['IAM - Groups'],
        summary='Update group',
        description='**Required permission:** `iam:groups:write`',
        request=GroupUpdateSerializer,
        responses={200: GroupSerializer, 409: OpenApiTypes.OBJECT},
    ),
    delete=extend_schema(
        tags=['IAM - Groups'],
        summary='Delete group',
        description='Deactivates the group and removes all members. **Required permission:** `iam:groups:delete`',
        responses={204: None},
    ),
)
class GroupDetailView(APIView):
    """GET/PUT/DELETE /v1/iam/groups/{group_id}"""

    permission_classes = [HasTenantScopes]

    @requires_scopes(IamPermission.GROUPS_READ)
    def get(self, request, group_id):
        group = GroupService.get_group(request.tenant, group_id)
        return Response(GroupSerializer(group).data)

    @requires_scopes(IamPermission.GROUPS_WRITE)
    def put(self, request, group_id):
        group = GroupService.get_group(request.tenant, group_id)
        serializer = GroupUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        group = GroupService.update_group(group, serializer.validated_data, request.user, request=request)
        return Response(GroupSerializer(group).data)

    @requires_scopes(IamPermission.GROUPS_DELETE)
    def delete(self, request, group_id):
        group = GroupService.get_group(request.tenant, group_id)
        GroupService.delete_group(group, request.user, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema(
    tags=['IAM - Groups'],
    summary='Add or remove group members',
    description='''
Every user must be a member of the tenant, otherwise nothing changes and
404 "One or more users not found" is returned.

**Required permission:** `iam:groups:manage_members`
    ''',
    request=GroupMembersActionSerializer,
    responses={200: GroupSerializer, 404: OpenApiTypes.OBJECT},
    examples=[
        OpenApiExample(
            'Add Members',
            value={'action': 'add', 'user_ids': ['123e4567-e89b-12d3-a456-426614174000']},
            request_only=True
        )
    ]
)
@requires_scopes(IamPermission.GROUPS_MANAGE_MEMBERS)
class GroupMembersView(APIView):
    """POST /v1/iam/groups/{group_id}/members"""

    permission_classes = [HasTenantScopes]

    def post(self, request, group_id):
        group = GroupService.get_group(request.tenant, group_id)
        serializer = GroupMembersActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        group = GroupService.update_members(
            group,
            serializer.validated_data['action'],
            serializer.validated_data['user_ids'],
            request.user,
            request=request,
        )
        return Response(GroupSerializer(group).data)


@extend_schema(
    tags=['IAM - Groups'],
    summary='Attach or detach group roles',
    description='**Required permission:** `iam:roles:assign`',
    request=GroupRolesActionSerializer,
    responses={200: GroupSerializer, 404: OpenApiTypes.OBJECT},
)
@requires_scopes(IamPermission.ROLES_ASSIGN)
class GroupRolesView(APIView):
    """POST /v1/iam/groups/{group_id}/roles"""

    permission_classes = [HasTenantScopes]

    def post(self, request, group_id):
        group = GroupService.get_group(request.tenant, group_id)
        serializer = GroupRolesActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        group = GroupService.update_roles(
            group,
            serializer.validated_data['action'],
            serializer.validated_data['role_ids'],
            request.user,
            request=request,
        )
        return Response(GroupSerializer(group).data)
