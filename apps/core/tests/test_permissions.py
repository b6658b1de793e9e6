"""
Tests for HasTenantScopes and the scope decorators.

Tests:
- Class-level and method-level required scopes
- Any-of scopes
- Unauthenticated requests are rejected
- Object permission is limited to the request tenant
"""
import uuid
from types import SimpleNamespace

import pytest
from django.contrib.auth.models import AnonymousUser
from django.test import RequestFactory

from apps.core.permissions import HasTenantScopes, requires_any_scope, requires_scopes


class RoleView:
    required_scopes = ['iam:roles:read']

    def get(self, request):
        pass


class RoleWriteView:

    def get(self, request):
        pass

    @requires_scopes('iam:roles:read', 'iam:roles:write')
    def post(self, request):
        pass


class AuditView:
    required_scopes = ['iam:settings:write']

    @requires_any_scope('iam:audit:read', 'iam:audit:export')
    def get(self, request):
        pass


@pytest.fixture
def tenant():
    return SimpleNamespace(id=uuid.uuid4())


@pytest.fixture
def make_request(tenant):
    def _make(method='get', scopes=(), user=None):
        request = getattr(RequestFactory(), method)('/v1/iam/roles')
        request.user = user or SimpleNamespace(id=uuid.uuid4(), is_authenticated=True)
        request.tenant = tenant
        request.scopes = set(scopes)
        return request
    return _make


class TestHasTenantScopes:

    def test_class_requirement_met(self, make_request):
        request = make_request(scopes={'iam:roles:read'})

        assert HasTenantScopes().has_permission(request, RoleView()) is True

    def test_class_requirement_missing(self, make_request):
        request = make_request(scopes={'iam:users:read'})

        assert HasTenantScopes().has_permission(request, RoleView()) is False

    def test_method_requirement_needs_all(self, make_request):
        request = make_request('post', scopes={'iam:roles:read'})

        assert HasTenantScopes().has_permission(request, RoleWriteView()) is False

        request = make_request('post', scopes={'iam:roles:read', 'iam:roles:write'})
        assert HasTenantScopes().has_permission(request, RoleWriteView()) is True

    def test_undecorated_method_is_open_to_members(self, make_request):
        assert HasTenantScopes().has_permission(make_request(), RoleWriteView()) is True

    def test_method_decorator_overrides_class(self, make_request):
        request = make_request(scopes={'iam:audit:export'})

        assert HasTenantScopes().has_permission(request, AuditView()) is True

    def test_any_scope_none_held(self, make_request):
        request = make_request(scopes={'iam:settings:write'})

        assert HasTenantScopes().has_permission(request, AuditView()) is False

    def test_unauthenticated(self, make_request):
        request = make_request(scopes={'iam:roles:read'}, user=AnonymousUser())

        assert HasTenantScopes().has_permission(request, RoleView()) is False

    def test_missing_scopes_attribute(self, make_request):
        request = make_request()
        del request.scopes

        assert HasTenantScopes().has_permission(request, RoleView()) is False


class TestObjectPermission:

    def test_same_tenant(self, make_request, tenant):
        obj = SimpleNamespace(id=1, tenant_id=tenant.id)

        assert HasTenantScopes().has_object_permission(make_request(), RoleView(), obj) is True

    def test_other_tenant(self, make_request):
        obj = SimpleNamespace(id=1, tenant_id=uuid.uuid4())

        assert HasTenantScopes().has_object_permission(make_request(), RoleView(), obj) is False

    def test_object_without_tenant(self, make_request):
        obj = SimpleNamespace(id=1)

        assert HasTenantScopes().has_object_permission(make_request(), RoleView(), obj) is True

    def test_request_without_tenant(self, make_request, tenant):
        request = make_request()
        request.tenant = None

        obj = SimpleNamespace(id=1, tenant_id=tenant.id)
        assert HasTenantScopes().has_object_permission(request, RoleView(), obj) is False


class TestDecorators:

    def test_requires_scopes_sets_attribute(self):
        @requires_scopes('formation:read', 'formation:write')
        def handler(request):
            pass

        assert handler.required_scopes == {'formation:read', 'formation:write'}

    def test_requires_any_scope_on_class(self):
        @requires_any_scope('tasks:read')
        class View:
            pass

        assert View.any_scopes == {'tasks:read'}
