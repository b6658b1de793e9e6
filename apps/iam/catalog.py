"""
Permission catalog and system role definitions.

Permission codes are ``<area>:<resource>:<action>`` strings. The same
strings gate API endpoints (HasTenantScopes) and client UI elements.
"""


class IamPermission:
    USERS_READ = 'iam:users:read'
    USERS_WRITE = 'iam:users:write'
    USERS_DELETE = 'iam:users:delete'
    USERS_RESET_PASSWORD = 'iam:users:reset_password'

    ROLES_READ = 'iam:roles:read'
    ROLES_WRITE = 'iam:roles:write'
    ROLES_DELETE = 'iam:roles:delete'
    ROLES_ASSIGN = 'iam:roles:assign'

    GROUPS_READ = 'iam:groups:read'
    GROUPS_WRITE = 'iam:groups:write'
    GROUPS_DELETE = 'iam:groups:delete'
    GROUPS_MANAGE_MEMBERS = 'iam:groups:manage_members'

    API_KEYS_READ = 'iam:api_keys:read'
    API_KEYS_WRITE = 'iam:api_keys:write'
    API_KEYS_REVOKE = 'iam:api_keys:revoke'

    ACCESS_REQUESTS_READ = 'iam:access_requests:read'
    ACCESS_REQUESTS_CREATE = 'iam:access_requests:create'
    ACCESS_REQUESTS_WRITE = 'iam:access_requests:write'
    ACCESS_REQUESTS_APPROVE = 'iam:access_requests:approve'

    ACCESS_REVIEWS_READ = 'iam:access_reviews:read'
    ACCESS_REVIEWS_WRITE = 'iam:access_reviews:write'
    ACCESS_REVIEWS_DECIDE = 'iam:access_reviews:decide'

    AUDIT_READ = 'iam:audit:read'
    AUDIT_EXPORT = 'iam:audit:export'

    SETTINGS_READ = 'iam:settings:read'
    SETTINGS_WRITE = 'iam:settings:write'

    CROSS_TENANT = 'iam:cross_tenant'


class AppPermission:
    FORMATION_READ = 'formation:read'
    FORMATION_WRITE = 'formation:write'
    DOCUMENTS_READ = 'documents:read'
    DOCUMENTS_WRITE = 'documents:write'
    TASKS_READ = 'tasks:read'
    TASKS_WRITE = 'tasks:write'


# (code, label, category, description)
PERMISSION_CATALOG = [
    (IamPermission.USERS_READ, 'View users', 'users', 'List and view tenant members'),
    (IamPermission.USERS_WRITE, 'Manage users', 'users', 'Invite members and edit their profile and status'),
    (IamPermission.USERS_DELETE, 'Remove users', 'users', 'Deactivate tenant memberships'),
    (IamPermission.USERS_RESET_PASSWORD, 'Reset passwords', 'users', 'Reset member passwords and unlock accounts'),
    (IamPermission.ROLES_READ, 'View roles', 'roles', 'List roles and the permission catalog'),
    (IamPermission.ROLES_WRITE, 'Manage roles', 'roles', 'Create and edit custom roles'),
    (IamPermission.ROLES_DELETE, 'Delete roles', 'roles', 'Deactivate custom roles'),
    (IamPermission.ROLES_ASSIGN, 'Assign roles', 'roles', 'Assign roles to members and groups'),
    (IamPermission.GROUPS_READ, 'View groups', 'groups', 'List groups and their members'),
    (IamPermission.GROUPS_WRITE, 'Manage groups', 'groups', 'Create and edit groups'),
    (IamPermission.GROUPS_DELETE, 'Delete groups', 'groups', 'Deactivate groups'),
    (IamPermission.GROUPS_MANAGE_MEMBERS, 'Manage group members', 'groups', 'Add and remove group members'),
    (IamPermission.API_KEYS_READ, 'View API keys', 'api_keys', 'List API keys'),
    (IamPermission.API_KEYS_WRITE, 'Create API keys', 'api_keys', 'Create API keys'),
    (IamPermission.API_KEYS_REVOKE, 'Revoke API keys', 'api_keys', 'Revoke API keys'),
    (IamPermission.ACCESS_REQUESTS_READ, 'View access requests', 'access_requests', 'View all access requests'),
    (IamPermission.ACCESS_REQUESTS_CREATE, 'Request access', 'access_requests', 'Submit access requests'),
    (IamPermission.ACCESS_REQUESTS_WRITE, 'Manage access requests', 'access_requests', 'Reject access requests'),
    (IamPermission.ACCESS_REQUESTS_APPROVE, 'Approve access requests', 'access_requests', 'Approve and reject access requests'),
    (IamPermission.ACCESS_REVIEWS_READ, 'View access reviews', 'access_reviews', 'View access reviews'),
    (IamPermission.ACCESS_REVIEWS_WRITE, 'Manage access reviews', 'access_reviews', 'Create and close access reviews'),
    (IamPermission.ACCESS_REVIEWS_DECIDE, 'Decide review items', 'access_reviews', 'Record review decisions'),
    (IamPermission.AUDIT_READ, 'View audit log', 'audit', 'Search the audit log'),
    (IamPermission.AUDIT_EXPORT, 'Export audit log', 'audit', 'Download the audit log as CSV'),
    (IamPermission.SETTINGS_READ, 'View IAM settings', 'settings', 'View tenant security settings'),
    (IamPermission.SETTINGS_WRITE, 'Manage IAM settings', 'settings', 'Change tenant security settings'),
    (IamPermission.CROSS_TENANT, 'Cross-tenant access', 'platform', 'Act inside tenants without membership'),
    (AppPermission.FORMATION_READ, 'View formation', 'formation', 'View formation and operations progress'),
    (AppPermission.FORMATION_WRITE, 'Edit formation', 'formation', 'Complete formation and operations steps'),
    (AppPermission.DOCUMENTS_READ, 'View documents', 'documents', 'View generated documents'),
    (AppPermission.DOCUMENTS_WRITE, 'Edit documents', 'documents', 'Generate, edit and transition documents'),
    (AppPermission.TASKS_READ, 'View tasks', 'tasks', 'View tasks'),
    (AppPermission.TASKS_WRITE, 'Edit tasks', 'tasks', 'Create, update and complete tasks'),
]

ALL_PERMISSIONS = frozenset(code for code, _, _, _ in PERMISSION_CATALOG)

# Only platform admins may grant this one
RESTRICTED_PERMISSIONS = frozenset({IamPermission.CROSS_TENANT})

ALL = 'ALL'

_READ_ONLY_APP = [
    AppPermission.FORMATION_READ,
    AppPermission.DOCUMENTS_READ,
    AppPermission.TASKS_READ,
]

_READ_ONLY_IAM = [
    IamPermission.USERS_READ,
    IamPermission.ROLES_READ,
    IamPermission.GROUPS_READ,
    IamPermission.API_KEYS_READ,
    IamPermission.ACCESS_REQUESTS_READ,
    IamPermission.ACCESS_REVIEWS_READ,
    IamPermission.SETTINGS_READ,
]

# name -> (description, permissions)
SYSTEM_ROLES = {
    'Owner': (
        'Full access to the tenant',
        ALL,
    ),
    'Admin': (
        'Manage the business and its members',
        sorted(ALL_PERMISSIONS - RESTRICTED_PERMISSIONS - {IamPermission.SETTINGS_WRITE}),
    ),
    'Member': (
        'Work on formation, documents and tasks',
        _READ_ONLY_APP + [
            AppPermission.FORMATION_WRITE,
            AppPermission.DOCUMENTS_WRITE,
            AppPermission.TASKS_WRITE,
            IamPermission.ACCESS_REQUESTS_CREATE,
        ],
    ),
    'Viewer': (
        'Read-only access to business data',
        _READ_ONLY_APP + [IamPermission.ACCESS_REQUESTS_CREATE],
    ),
    'Auditor': (
        'Read-only access to IAM configuration and the audit log',
        _READ_ONLY_IAM + [IamPermission.AUDIT_READ, IamPermission.AUDIT_EXPORT],
    ),
}


def system_role_permissions(name):
    """Resolve a system role's permission list (expanding ALL)."""
    _, permissions = SYSTEM_ROLES[name]
    if permissions == ALL:
        return sorted(ALL_PERMISSIONS - RESTRICTED_PERMISSIONS)
    return list(permissions)


def catalog_by_category():
    grouped = {}
    for code, label, category, description in PERMISSION_CATALOG:
        grouped.setdefault(category, []).append({
            'code': code,
            'label': label,
            'description': description,
        })
    return grouped
