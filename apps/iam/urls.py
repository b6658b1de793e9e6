"""
IAM API URLs.

Provides endpoints for:
- Tenant users and their roles and groups
- Roles, the permission catalog and system role definitions
- Groups
- API keys
- Access requests and access reviews
- Audit logs
"""
from django.urls import include, path
from apps.iam.views import (
    MyPermissionsView,
    PermissionCatalogView,
    SystemRolesView,
    MemberListView,
    MemberDetailView,
    MemberRolesView,
    MemberGroupsView,
    MemberResetPasswordView,
    MemberLockView,
    MemberUnlockView,
    RoleListView,
    RoleDetailView,
    RoleMembersView,
)
from apps.iam.views_groups import (
    GroupListView,
    GroupDetailView,
    GroupMembersView,
    GroupRolesView,
)
from apps.iam.views_api_keys import (
    ApiKeyListView,
    ApiKeyDetailView,
    ApiKeyRevokeView,
)
from apps.iam.views_access import (
    AccessRequestListView,
    AccessRequestDetailView,
    AccessRequestApproveView,
    AccessRequestRejectView,
    AccessReviewListView,
    AccessReviewDetailView,
    AccessReviewItemListView,
    AccessReviewDecideView,
    AccessReviewCloseView,
    AccessReviewExportView,
)
from apps.iam.views_audit import (
    AuditLogListView,
    AuditLogExportView,
    AuditActionsView,
    AuditTargetTypesView,
)

app_name = 'iam'

urlpatterns = [
    # Settings
    path('', include('apps.tenants.urls_settings')),

    # Permissions
    path('me/permissions', MyPermissionsView.as_view(), name='my-permissions'),
    path('permissions', PermissionCatalogView.as_view(), name='permission-catalog'),
    path('system-roles', SystemRolesView.as_view(), name='system-roles'),

    # Users
    path('users', MemberListView.as_view(), name='user-list'),
    path('users/<uuid:user_id>', MemberDetailView.as_view(), name='user-detail'),
    path('users/<uuid:user_id>/roles', MemberRolesView.as_view(), name='user-roles'),
    path('users/<uuid:user_id>/groups', MemberGroupsView.as_view(), name='user-groups'),
    path('users/<uuid:user_id>/reset-password', MemberResetPasswordView.as_view(), name='user-reset-password'),
    path('users/<uuid:user_id>/lock', MemberLockView.as_view(), name='user-lock'),
    path('users/<uuid:user_id>/unlock', MemberUnlockView.as_view(), name='user-unlock'),

    # Roles
    path('roles', RoleListView.as_view(), name='role-list'),
    path('roles/<uuid:role_id>', RoleDetailView.as_view(), name='role-detail'),
    path('roles/<uuid:role_id>/users', RoleMembersView.as_view(), name='role-users'),

    # Groups
    path('groups', GroupListView.as_view(), name='group-list'),
    path('groups/<uuid:group_id>', GroupDetailView.as_view(), name='group-detail'),
    path('groups/<uuid:group_id>/members', GroupMembersView.as_view(), name='group-members'),
    path('groups/<uuid:group_id>/roles', GroupRolesView.as_view(), name='group-roles'),

    # API keys
    path('api-keys', ApiKeyListView.as_view(), name='api-key-list'),
    path('api-keys/<uuid:key_id>', ApiKeyDetailView.as_view(), name='api-key-detail'),
    path('api-keys/<uuid:key_id>/revoke', ApiKeyRevokeView.as_view(), name='api-key-revoke'),

    # Access requests
    path('access-requests', AccessRequestListView.as_view(), name='access-request-list'),
    path('access-requests/<uuid:request_id>', AccessRequestDetailView.as_view(), name='access-request-detail'),
    path('access-requests/<uuid:request_id>/approve', AccessRequestApproveView.as_view(), name='access-request-approve'),
    path('access-requests/<uuid:request_id>/reject', AccessRequestRejectView.as_view(), name='access-request-reject'),

    # Access reviews
    path('access-reviews', AccessReviewListView.as_view(), name='access-review-list'),
    path('access-reviews/<uuid:review_id>', AccessReviewDetailView.as_view(), name='access-review-detail'),
    path('access-reviews/<uuid:review_id>/items', AccessReviewItemListView.as_view(), name='access-review-items'),
    path(
        'access-reviews/<uuid:review_id>/items/<uuid:item_id>/decide',
        AccessReviewDecideView.as_view(),
        name='access-review-decide',
    ),
    path('access-reviews/<uuid:review_id>/close', AccessReviewCloseView.as_view(), name='access-review-close'),
    path('access-reviews/<uuid:review_id>/export', AccessReviewExportView.as_view(), name='access-review-export'),

    # Audit logs
    path('audit-logs', AuditLogListView.as_view(), name='audit-log-list'),
    path('audit-logs/export', AuditLogExportView.as_view(), name='audit-log-export'),
    path('audit-logs/actions', AuditActionsView.as_view(), name='audit-log-actions'),
    path('audit-logs/target-types', AuditTargetTypesView.as_view(), name='audit-log-target-types'),
]
