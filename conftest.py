"""
Pytest configuration and fixtures.
"""
import pytest
from django.core.cache import cache
from django.utils import timezone

PASSWORD = 'Str0ng-Passw0rd!'


@pytest.fixture(autouse=True)
def clear_cache():
    """Permission resolution is cached; start every test cold."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def owner(db):
    """Register a user with a new tenant; returns user, tenant, membership and token."""
    from apps.iam.services import AuthService
    return AuthService.register_user(
        'owner@example.com',
        PASSWORD,
        'Acme Ventures',
        first_name='Olivia',
        last_name='Owner',
    )


@pytest.fixture
def tenant(owner):
    return owner['tenant']


@pytest.fixture
def owner_user(owner):
    return owner['user']


@pytest.fixture
def owner_membership(owner):
    return owner['membership']


@pytest.fixture
def other_tenant(db):
    """A second tenant for isolation tests."""
    from apps.iam.services import AuthService
    return AuthService.register_user('other-owner@example.com', PASSWORD, 'Other Holdings')['tenant']


@pytest.fixture
def make_member(db, tenant):
    """Factory for a user with an accepted membership and an optional system role."""
    from apps.iam.models import Role, TenantUser, TenantUserRole, User

    def _make(email, role_name='Member', for_tenant=None, **user_fields):
        target = for_tenant or tenant
        user = User.objects.by_email(email) or User.objects.create_user(
            email, password=PASSWORD, **user_fields
        )
        membership = TenantUser.objects.create(
            tenant=target,
            user=user,
            invite_status=TenantUser.INVITE_ACCEPTED,
            joined_at=timezone.now(),
        )
        if role_name:
            TenantUserRole.objects.create(
                tenant_user=membership,
                role=Role.objects.by_name(target, role_name),
            )
        return membership

    return _make


@pytest.fixture
def client_for(db, tenant):
    """Factory for an API client authenticated as a user within a tenant."""
    from rest_framework.test import APIClient
    from apps.iam.services import AuthService

    def _client(user, for_tenant=None):
        client = APIClient()
        client.credentials(
            HTTP_AUTHORIZATION=f'Bearer {AuthService.generate_jwt(user)}',
            HTTP_X_TENANT_ID=str((for_tenant or tenant).id),
        )
        return client

    return _client


@pytest.fixture
def owner_client(client_for, owner_user):
    return client_for(owner_user)


@pytest.fixture
def member(make_member):
    return make_member('member@example.com', 'Member', first_name='Mia', last_name='Member')


@pytest.fixture
def member_client(client_for, member):
    return client_for(member.user)


@pytest.fixture
def viewer(make_member):
    return make_member('viewer@example.com', 'Viewer')


@pytest.fixture
def viewer_client(client_for, viewer):
    return client_for(viewer.user)
