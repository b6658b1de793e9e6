"""
Tests for tenant middleware.

Tests:
- Public and tenant-optional paths
- JWT authentication with X-TENANT-ID
- API key authentication and tenant binding
- Membership checks, suspended tenants and platform admins
- Scope resolution for user and service-account keys
"""
import json

import pytest
from django.test import RequestFactory

from apps.iam.catalog import AppPermission, IamPermission, system_role_permissions
from apps.iam.models import ApiKey, User
from apps.iam.services import ApiKeyService, AuthService, PermissionService, RoleService
from apps.tenants.middleware import TenantContextMiddleware
from apps.tenants.models import Tenant
from conftest import PASSWORD


def _body(response):
    return json.loads(response.content)


@pytest.fixture
def middleware():
    return TenantContextMiddleware(get_response=lambda r: None)


@pytest.fixture
def factory():
    return RequestFactory()


@pytest.fixture
def jwt_request(factory, tenant):
    def _build(user, path='/v1/formation/status', tenant_id=None):
        headers = {'HTTP_AUTHORIZATION': f'Bearer {AuthService.generate_jwt(user)}'}
        if tenant_id is not False:
            headers['HTTP_X_TENANT_ID'] = str(tenant_id or tenant.id)
        return factory.get(path, **headers)
    return _build


@pytest.fixture
def make_key(tenant, owner_user, owner_membership):
    def _make(scopes, owner_type=ApiKey.OWNER_USER):
        return ApiKeyService.create_key(
            tenant, 'Integration', scopes, owner_user,
            PermissionService.resolve_permissions(owner_membership),
            owner_type=owner_type,
        )
    return _make


@pytest.mark.django_db
class TestTenantContextMiddleware:

    @pytest.mark.parametrize('path', ['/health', '/health/ready', '/schema/', '/v1/auth/login', '/v1/auth/register'])
    def test_public_paths_bypass(self, middleware, factory, path):
        request = factory.post(path)

        assert middleware.process_request(request) is None
        assert request.tenant is None
        assert request.scopes == set()

    def test_missing_credentials(self, middleware, factory):
        response = middleware.process_request(factory.get('/v1/formation/status'))

        assert response.status_code == 401
        assert _body(response)['error']['code'] == 'UNAUTHORIZED'

    def test_request_id_is_echoed(self, middleware, factory):
        request = factory.get('/v1/formation/status')
        request.request_id = 'abc-123'

        assert _body(middleware.process_request(request))['request_id'] == 'abc-123'

    def test_invalid_jwt(self, middleware, factory):
        request = factory.get('/v1/formation/status', HTTP_AUTHORIZATION='Bearer not.a.jwt')

        response = middleware.process_request(request)

        assert response.status_code == 401
        assert _body(response)['error']['message'] == 'Invalid token'

    def test_auth_paths_need_no_tenant(self, middleware, jwt_request, owner_user):
        request = jwt_request(owner_user, path='/v1/auth/me', tenant_id=False)

        assert middleware.process_request(request) is None
        assert request.user == owner_user
        assert request.tenant is None

    def test_jwt_requires_tenant_header(self, middleware, jwt_request, owner_user):
        response = middleware.process_request(jwt_request(owner_user, tenant_id=False))

        assert response.status_code == 400
        assert _body(response)['error']['code'] == 'INVALID_INPUT'

    @pytest.mark.parametrize('tenant_id', ['00000000-0000-0000-0000-000000000000', 'not-a-uuid'])
    def test_unknown_tenant(self, middleware, jwt_request, owner_user, tenant_id):
        response = middleware.process_request(jwt_request(owner_user, tenant_id=tenant_id))

        assert response.status_code == 404
        assert _body(response)['error']['code'] == 'TENANT_NOT_FOUND'

    def test_member_context(self, middleware, jwt_request, owner_user, owner_membership, tenant):
        request = jwt_request(owner_user)

        assert middleware.process_request(request) is None
        assert request.tenant == tenant
        assert request.membership == owner_membership
        assert request.scopes == set(system_role_permissions('Owner'))
        owner_membership.refresh_from_db()
        assert owner_membership.last_seen_at is not None

    def test_non_member_denied(self, middleware, jwt_request, owner_user, other_tenant):
        response = middleware.process_request(jwt_request(owner_user, tenant_id=other_tenant.id))

        assert response.status_code == 403
        assert _body(response)['error']['code'] == 'TENANT_ACCESS_DENIED'

    def test_removed_member_denied(self, middleware, jwt_request, member):
        member.deactivate()

        response = middleware.process_request(jwt_request(member.user))

        assert response.status_code == 403

    def test_suspended_tenant(self, middleware, jwt_request, owner_user, tenant):
        Tenant.objects.filter(id=tenant.id).update(status=Tenant.STATUS_SUSPENDED)

        response = middleware.process_request(jwt_request(owner_user))

        assert response.status_code == 403
        assert _body(response)['error']['code'] == 'FORBIDDEN'

    def test_platform_admin_enters_any_tenant(self, middleware, jwt_request, tenant):
        admin = User.objects.create_superuser('root@platform.test', PASSWORD)
        request = jwt_request(admin)

        assert middleware.process_request(request) is None
        assert request.membership is None
        assert IamPermission.CROSS_TENANT in request.scopes

    def test_user_api_key(self, middleware, factory, make_key, tenant, owner_user):
        api_key, plain = make_key([AppPermission.TASKS_READ, AppPermission.TASKS_WRITE])
        request = factory.get('/v1/tasks', HTTP_X_API_KEY=plain)

        assert middleware.process_request(request) is None
        assert request.tenant == tenant
        assert request.api_key == api_key
        assert request.user == owner_user
        assert request.scopes == {AppPermission.TASKS_READ, AppPermission.TASKS_WRITE}

    def test_user_key_limited_to_owner_permissions(self, middleware, factory, make_key, tenant,
                                                   owner_membership, member, owner_user):
        _, plain = make_key([AppPermission.TASKS_READ, IamPermission.USERS_READ])
        owner_role = RoleService.seed_system_roles(tenant)['Owner']
        RoleService.assign_roles(member, [owner_role.id], owner_user, replace=False)
        RoleService.assign_roles(owner_membership, [RoleService.seed_system_roles(tenant)['Viewer'].id], member.user)

        request = factory.get('/v1/tasks', HTTP_X_API_KEY=plain)
        middleware.process_request(request)

        assert request.scopes == {AppPermission.TASKS_READ}

    def test_service_account_key_uses_own_scopes(self, middleware, factory, make_key, tenant,
                                                 owner_membership, member, owner_user):
        _, plain = make_key([IamPermission.USERS_READ], owner_type=ApiKey.OWNER_SERVICE_ACCOUNT)
        owner_role = RoleService.seed_system_roles(tenant)['Owner']
        RoleService.assign_roles(member, [owner_role.id], owner_user, replace=False)
        RoleService.assign_roles(owner_membership, [RoleService.seed_system_roles(tenant)['Viewer'].id], member.user)

        request = factory.get('/v1/iam/users', HTTP_X_API_KEY=plain)
        middleware.process_request(request)

        assert request.scopes == {IamPermission.USERS_READ}

    def test_revoked_key(self, middleware, factory, make_key, owner_user):
        api_key, plain = make_key([AppPermission.TASKS_READ])
        ApiKeyService.revoke_key(api_key, owner_user)

        response = middleware.process_request(factory.get('/v1/tasks', HTTP_X_API_KEY=plain))

        assert response.status_code == 401
        assert _body(response)['error']['message'] == 'Invalid, expired or revoked API key'

    def test_key_bound_to_its_tenant(self, middleware, factory, make_key, other_tenant):
        _, plain = make_key([AppPermission.TASKS_READ])
        request = factory.get('/v1/tasks', HTTP_X_API_KEY=plain, HTTP_X_TENANT_ID=str(other_tenant.id))

        response = middleware.process_request(request)

        assert response.status_code == 403
        assert _body(response)['error']['code'] == 'TENANT_ACCESS_DENIED'

    def test_inactive_key_owner(self, middleware, factory, make_key, owner_user):
        _, plain = make_key([AppPermission.TASKS_READ])
        User.objects.filter(id=owner_user.id).update(is_active=False)

        response = middleware.process_request(factory.get('/v1/tasks', HTTP_X_API_KEY=plain))

        assert response.status_code == 401

