"""
IAM REST API views.

Implements endpoints for:
- Tenant members (list, create, update, deactivate, lock, password reset)
- Role assignments
- Roles (CRUD) and the permission catalog
- The caller's effective permissions
"""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiParameter, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.core.exceptions import Forbidden
from apps.core.pagination import paginate_queryset
from apps.core.permissions import requires_scopes, HasTenantScopes
from apps.iam.catalog import IamPermission, SYSTEM_ROLES, catalog_by_category, system_role_permissions
from apps.iam.services import GroupService, MemberService, RoleService
from apps.iam.serializers import (
    AssignRolesSerializer, MemberCreateSerializer, MemberGroupsSerializer,
    MemberUpdateSerializer, ResetPasswordSerializer, RoleCreateSerializer,
    RoleSerializer, RoleUpdateSerializer, TenantMemberSerializer,
)


@extend_schema(
    tags=['IAM - Permissions'],
    summary="Caller's effective permissions",
    description='''
Returns the caller's effective permission codes in the current tenant,
used by clients to show or hide UI elements. The same codes gate the API.

**No permission required.**
    ''',
    responses={200: OpenApiTypes.OBJECT},
    examples=[
        OpenApiExample(
            'Member',
            value={
                'permissions': ['documents:read', 'documents:write', 'formation:read'],
                'roles': ['Member'],
                'is_platform_admin': False
            },
            response_only=True
        )
    ]
)
class MyPermissionsView(APIView):
    """GET /v1/iam/me/permissions"""

    permission_classes = [HasTenantScopes]

    def get(self, request):
        membership = request.membership
        roles = []
        if membership is not None:
            roles = sorted(
                ur.role.name for ur in membership.user_roles.effective().select_related('role')
            )
        return Response({
            'permissions': sorted(request.scopes),
            'roles': roles,
            'is_platform_admin': request.user.is_superuser,
        })


@extend_schema(
    tags=['IAM - Permissions'],
    summary='Permission catalog',
    description='All permission codes grouped by category. **Required permission:** `iam:roles:read`',
    responses={200: OpenApiTypes.OBJECT},
)
@requires_scopes(IamPermission.ROLES_READ)
class PermissionCatalogView(APIView):
    """GET /v1/iam/permissions"""

    permission_classes = [HasTenantScopes]

    def get(self, request):
        return Response({'categories': catalog_by_category()})


@extend_schema(
    tags=['IAM - Permissions'],
    summary='System role definitions',
    description='Built-in roles seeded into every tenant. **Required permission:** `iam:roles:read`',
    responses={200: OpenApiTypes.OBJECT},
)
@requires_scopes(IamPermission.ROLES_READ)
class SystemRolesView(APIView):
    """GET /v1/iam/system-roles"""

    permission_classes = [HasTenantScopes]

    def get(self, request):
        return Response({
            'roles': [
                {
                    'name': name,
                    'description': description,
                    'permissions': system_role_permissions(name),
                }
                for name, (description, _) in SYSTEM_ROLES.items()
            ]
        })


# ===== MEMBERS =====

@extend_schema_view(
    get=extend_schema(
        tags=['IAM - Users'],
        summary='List tenant users',
        description='**Required permission:** `iam:users:read`',
        parameters=[
            OpenApiParameter('search', OpenApiTypes.STR, description='Email or name contains'),
            OpenApiParameter('status', OpenApiTypes.STR, enum=['active', 'locked', 'inactive']),
            OpenApiParameter('page', OpenApiTypes.INT),
            OpenApiParameter('limit', OpenApiTypes.INT),
        ],
        responses={200: TenantMemberSerializer(many=True)},
    ),
    post=extend_schema(
        tags=['IAM - Users'],
        summary='Add a user to the tenant',
        description='''
Adds an existing user, or creates one (password required), as an active
member. Optional `role_ids` / `group_ids` are applied immediately.

**Required permission:** `iam:users:write`
        ''',
        request=MemberCreateSerializer,
        responses={201: TenantMemberSerializer, 409: OpenApiTypes.OBJECT},
    ),
)
class MemberListView(APIView):
    """GET/POST /v1/iam/users"""

    permission_classes = [HasTenantScopes]

    @requires_scopes(IamPermission.USERS_READ)
    def get(self, request):
        members = MemberService.list_members(
            request.tenant,
            search=request.query_params.get('search', ''),
            status=request.query_params.get('status', ''),
        ).prefetch_related('user_roles__role', 'groups')
        page, paginator = paginate_queryset(members, request, view=self)
        return paginator.get_paginated_response(TenantMemberSerializer(page, many=True).data)

    @requires_scopes(IamPermission.USERS_WRITE)
    def post(self, request):
        serializer = MemberCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        if data.get('role_ids') and IamPermission.ROLES_ASSIGN not in request.scopes:
            raise Forbidden(f"Missing required permission: {IamPermission.ROLES_ASSIGN}")

        membership = MemberService.create_member(
            request.tenant,
            email=data['email'],
            actor=request.user,
            password=data.get('password'),
            first_name=data.get('first_name', ''),
            last_name=data.get('last_name', ''),
            role_ids=data.get('role_ids'),
            group_ids=data.get('group_ids'),
            request=request,
        )
        return Response(TenantMemberSerializer(membership).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    get=extend_schema(
        tags=['IAM - Users'],
        summary='Get tenant user',
        description='**Required permission:** `iam:users:read`',
        responses={200: TenantMemberSerializer},
    ),
    put=extend_schema(
        tags=['IAM - Users'],
        summary='Update tenant user',
        description='Update name or active status. **Required permission:** `iam:users:write`',
        request=MemberUpdateSerializer,
        responses={200: TenantMemberSerializer},
    ),
    delete=extend_schema(
        tags=['IAM - Users'],
        summary='Remove user from tenant',
        description='Deactivates the membership. **Required permission:** `iam:users:delete`',
        responses={204: None},
    ),
)
class MemberDetailView(APIView):
    """GET/PUT/DELETE /v1/iam/users/{user_id}"""

    permission_classes = [HasTenantScopes]

    @requires_scopes(IamPermission.USERS_READ)
    def get(self, request, user_id):
        membership = MemberService.get_member(request.tenant, user_id)
        return Response(TenantMemberSerializer(membership).data)

    @requires_scopes(IamPermission.USERS_WRITE)
    def put(self, request, user_id):
        membership = MemberService.get_member(request.tenant, user_id)
        serializer = MemberUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        membership = MemberService.update_member(
            membership, serializer.validated_data, request.user, request=request
        )
        return Response(TenantMemberSerializer(membership).data)

    @requires_scopes(IamPermission.USERS_DELETE)
    def delete(self, request, user_id):
        membership = MemberService.get_member(request.tenant, user_id)
        MemberService.deactivate_member(membership, request.user, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema(
    tags=['IAM - Users'],
    summary="Replace a user's roles",
    description='''
Sets the member's roles to exactly `role_ids`. The last Owner of a tenant
cannot lose the Owner role, and members cannot change their own roles.

**Required permission:** `iam:roles:assign`
    ''',
    request=AssignRolesSerializer,
    responses={200: TenantMemberSerializer, 403: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
)
@requires_scopes(IamPermission.ROLES_ASSIGN)
class MemberRolesView(APIView):
    """PUT /v1/iam/users/{user_id}/roles"""

    permission_classes = [HasTenantScopes]

    def put(self, request, user_id):
        membership = MemberService.get_member(request.tenant, user_id)
        if membership.user_id == request.user.id and not request.user.is_superuser:
            raise Forbidden('You cannot modify your own role')

        serializer = AssignRolesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        RoleService.assign_roles(
            membership,
            serializer.validated_data['role_ids'],
            request.user,
            replace=True,
            expires_at=serializer.validated_data.get('expires_at'),
            request=request,
        )
        return Response(TenantMemberSerializer(membership).data)


@extend_schema(
    tags=['IAM - Users'],
    summary="Replace a user's groups",
    description='**Required permission:** `iam:groups:manage_members`',
    request=MemberGroupsSerializer,
    responses={200: TenantMemberSerializer},
)
@requires_scopes(IamPermission.GROUPS_MANAGE_MEMBERS)
class MemberGroupsView(APIView):
    """PUT /v1/iam/users/{user_id}/groups"""

    permission_classes = [HasTenantScopes]

    def put(self, request, user_id):
        membership = MemberService.get_member(request.tenant, user_id)
        serializer = MemberGroupsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        GroupService.set_member_groups(
            membership, serializer.validated_data['group_ids'], request.user, request=request
        )
        return Response(TenantMemberSerializer(membership).data)


@extend_schema(
    tags=['IAM - Users'],
    summary="Reset a user's password",
    description='''
Sets `new_password`, or generates a temporary one which is returned once.
Also clears failed login attempts and unlocks the account.

**Required permission:** `iam:users:reset_password`
    ''',
    request=ResetPasswordSerializer,
    responses={200: OpenApiTypes.OBJECT},
)
@requires_scopes(IamPermission.USERS_RESET_PASSWORD)
class MemberResetPasswordView(APIView):
    """POST /v1/iam/users/{user_id}/reset-password"""

    permission_classes = [HasTenantScopes]

    def post(self, request, user_id):
        membership = MemberService.get_member(request.tenant, user_id)
        serializer = ResetPasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        new_password = serializer.validated_data.get('new_password')
        password = MemberService.reset_password(
            membership, request.user, new_password=new_password, request=request
        )
        body = {'message': 'Password reset'}
        if not new_password:
            body['temporary_password'] = password
        return Response(body)


@extend_schema(
    tags=['IAM - Users'],
    summary='Lock a user account',
    description='**Required permission:** `iam:users:write`',
    request=None,
    responses={200: TenantMemberSerializer},
)
@requires_scopes(IamPermission.USERS_WRITE)
class MemberLockView(APIView):
    """POST /v1/iam/users/{user_id}/lock"""

    permission_classes = [HasTenantScopes]

    def post(self, request, user_id):
        membership = MemberService.get_member(request.tenant, user_id)
        MemberService.lock_member(membership, request.user, request=request)
        return Response(TenantMemberSerializer(membership).data)


@extend_schema(
    tags=['IAM - Users'],
    summary='Unlock a user account',
    description='Clears the lock and the failed login counter. **Required permission:** `iam:users:reset_password`',
    request=None,
    responses={200: TenantMemberSerializer},
)
@requires_scopes(IamPermission.USERS_RESET_PASSWORD)
class MemberUnlockView(APIView):
    """POST /v1/iam/users/{user_id}/unlock"""

    permission_classes = [HasTenantScopes]

    def post(self, request, user_id):
        membership = MemberService.get_member(request.tenant, user_id)
        MemberService.unlock_member(membership, request.user, request=request)
        return Response(TenantMemberSerializer(membership).data)


# ===== ROLES =====

@extend_schema_view(
    get=extend_schema(
        tags=['IAM - Roles'],
        summary='List roles',
        description='Active roles with their permissions. **Required permission:** `iam:roles:read`',
        responses={200: RoleSerializer(many=True)},
    ),
    post=extend_schema(
        tags=['IAM - Roles'],
        summary='Create custom role',
        description='''
Role names are unique per tenant (case-insensitive). Unknown permission
codes are rejected with 409 and listed in the message.

**Required permission:** `iam:roles:write`
        ''',
        request=RoleCreateSerializer,
        responses={201: RoleSerializer, 409: OpenApiTypes.OBJECT},
        examples=[
            OpenApiExample(
                'Create Role',
                value={
                    'name': 'Document Reviewer',
                    'description': 'Reviews generated documents',
                    'permissions': ['documents:read', 'documents:write']
                },
                request_only=True
            )
        ]
    ),
)
class RoleListView(APIView):
    """GET/POST /v1/iam/roles"""

    permission_classes = [HasTenantScopes]

    @requires_scopes(IamPermission.ROLES_READ)
    def get(self, request):
        roles = RoleService.list_roles(request.tenant).order_by('-is_system', 'name')
        return Response({'results': RoleSerializer(roles, many=True).data})

    @requires_scopes(IamPermission.ROLES_WRITE)
    def post(self, request):
        serializer = RoleCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        role = RoleService.create_role(
            request.tenant,
            name=serializer.validated_data['name'],
            permissions=serializer.validated_data['permissions'],
            actor=request.user,
            description=serializer.validated_data.get('description', ''),
            request=request,
        )
        return Response(RoleSerializer(role).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    get=extend_schema(
        tags=['IAM - Roles'],
        summary='Get role',
        description='**Required permission:** `iam:roles:read`',
        responses={200: RoleSerializer},
    ),
    put=extend_schema(
        tags=['IAM - Roles'],
        summary='Update role',
        description='System roles can only be changed by platform admins. **Required permission:** `iam:roles:write`',
        request=RoleUpdateSerializer,
        responses={200: RoleSerializer, 403: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT},
    ),
    delete=extend_schema(
        tags=['IAM - Roles'],
        summary='Delete custom role',
        description='System roles cannot be deleted. **Required permission:** `iam:roles:delete`',
        responses={204: None, 403: OpenApiTypes.OBJECT},
    ),
)
class RoleDetailView(APIView):
    """GET/PUT/DELETE /v1/iam/roles/{role_id}"""

    permission_classes = [HasTenantScopes]

    @requires_scopes(IamPermission.ROLES_READ)
    def get(self, request, role_id):
        role = RoleService.get_role(request.tenant, role_id)
        return Response(RoleSerializer(role).data)

    @requires_scopes(IamPermission.ROLES_WRITE)
    def put(self, request, role_id):
        role = RoleService.get_role(request.tenant, role_id)
        serializer = RoleUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        role = RoleService.update_role(role, serializer.validated_data, request.user, request=request)
        return Response(RoleSerializer(role).data)

    @requires_scopes(IamPermission.ROLES_DELETE)
    def delete(self, request, role_id):
        role = RoleService.get_role(request.tenant, role_id)
        RoleService.delete_role(role, request.user, request=request)
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema(
    tags=['IAM - Roles'],
    summary='Members holding a role',
    description='**Required permission:** `iam:roles:read`',
    responses={200: TenantMemberSerializer(many=True)},
)
@requires_scopes(IamPermission.ROLES_READ)
class RoleMembersView(APIView):
    """GET /v1/iam/roles/{role_id}/users"""

    permission_classes = [HasTenantScopes]

    def get(self, request, role_id):
        role = RoleService.get_role(request.tenant, role_id)
        members = MemberService.list_members(request.tenant).filter(
            user_roles__role=role
        ).distinct()
        page, paginator = paginate_queryset(members, request, view=self)
        return paginator.get_paginated_response(TenantMemberSerializer(page, many=True).data)
