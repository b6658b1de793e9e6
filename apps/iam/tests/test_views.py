"""
Tests for the authentication and IAM REST API.

Tests:
- Register, login and profile endpoints
- Member, role and group management with scope enforcement
- API key issuing and use as a credential
- Access requests and access reviews over HTTP
- Audit log listing and CSV export
"""
import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from apps.iam.audit import AuditAction
from apps.iam.catalog import AppPermission, IamPermission
from apps.iam.models import Role
from apps.iam.services import MemberService
from conftest import PASSWORD


@pytest.mark.django_db
class TestAuthAPI:

    def test_register(self, api_client):
        response = api_client.post('/v1/auth/register', {
            'email': 'Founder@Example.com',
            'password': PASSWORD,
            'business_name': 'Analytical Engines LLC',
            'first_name': 'Ada',
        }, format='json')

        assert response.status_code == 201
        assert response.data['user']['email'] == 'founder@example.com'
        assert response.data['tenant']['slug'] == 'analytical-engines-llc'
        assert response.data['token']

    def test_register_rejects_weak_password(self, api_client):
        response = api_client.post('/v1/auth/register', {
            'email': 'founder@example.com', 'password': '12345678', 'business_name': 'Acme',
        }, format='json')

        assert response.status_code == 400
        assert response.data['error']['code'] == 'VALIDATION_ERROR'
        assert 'password' in response.data['error']['details']

    def test_register_duplicate_email(self, api_client, owner):
        response = api_client.post('/v1/auth/register', {
            'email': 'owner@example.com', 'password': PASSWORD, 'business_name': 'Second',
        }, format='json')

        assert response.status_code == 409
        assert response.data['error']['code'] == 'ALREADY_EXISTS'

    def test_login(self, api_client, owner, tenant):
        response = api_client.post('/v1/auth/login', {
            'email': 'owner@example.com', 'password': PASSWORD,
        }, format='json')

        assert response.status_code == 200
        assert response.data['token']
        assert [t['tenant_slug'] for t in response.data['tenants']] == [tenant.slug]
        assert response.data['tenants'][0]['roles'] == ['Owner']

    def test_login_wrong_password(self, api_client, owner):
        response = api_client.post('/v1/auth/login', {
            'email': 'owner@example.com', 'password': 'nope-nope',
        }, format='json')

        assert response.status_code == 401
        assert response.data['error']['code'] == 'INVALID_CREDENTIALS'

    def test_me_needs_no_tenant_header(self, owner, other_tenant, make_member, owner_user):
        make_member(owner_user.email, 'Viewer', for_tenant=other_tenant)
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {owner['token']}")

        response = client.get('/v1/auth/me')

        assert response.status_code == 200
        assert response.data['full_name'] == 'Olivia Owner'
        assert len(response.data['tenants']) == 2

    def test_me_requires_token(self, api_client):
        response = api_client.get('/v1/auth/me')

        assert response.status_code == 401
        assert response.json()['error']['code'] == 'UNAUTHORIZED'

    def test_login_returns_refresh_token(self, api_client, owner):
        response = api_client.post('/v1/auth/login', {
            'email': 'owner@example.com', 'password': PASSWORD,
        }, format='json')

        assert response.data['refresh_token']
        assert response.data['expires_in'] == 24 * 3600
        assert response.data['mfa_setup_required'] is False

    def test_refresh_rotates_tokens(self, api_client, owner):
        refreshed = api_client.post('/v1/auth/refresh', {'refresh_token': owner['refresh_token']}, format='json')

        assert refreshed.status_code == 200
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {refreshed.data['token']}")
        assert client.get('/v1/auth/me').status_code == 200

        reused = api_client.post('/v1/auth/refresh', {'refresh_token': owner['refresh_token']}, format='json')
        assert reused.status_code == 401

    def test_access_token_cannot_refresh(self, api_client, owner):
        response = api_client.post('/v1/auth/refresh', {'refresh_token': owner['token']}, format='json')

        assert response.status_code == 401
        assert response.data['error']['message'] == 'Invalid token'

    def test_refresh_token_is_not_a_bearer(self, owner):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {owner['refresh_token']}")

        assert client.get('/v1/auth/me').status_code == 401

    def test_logout_revokes_tokens(self, api_client, owner):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {owner['token']}")

        response = client.post('/v1/auth/logout', {'refresh_token': owner['refresh_token']}, format='json')

        assert response.status_code == 200
        assert response.data['message'] == 'Logged out successfully'
        assert client.get('/v1/auth/me').json()['error']['message'] == 'Token has been revoked'
        assert api_client.post(
            '/v1/auth/refresh', {'refresh_token': owner['refresh_token']}, format='json'
        ).status_code == 401

    def test_change_password(self, api_client, owner):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {owner['token']}")

        response = client.post('/v1/auth/change-password', {
            'current_password': PASSWORD, 'new_password': 'N3w-Passw0rd!!',
        }, format='json')

        assert response.status_code == 200
        assert response.data['message'] == 'Password changed successfully'
        assert client.get('/v1/auth/me').status_code == 401

        fresh = APIClient()
        fresh.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['token']}")
        assert fresh.get('/v1/auth/me').status_code == 200
        assert api_client.post('/v1/auth/login', {
            'email': 'owner@example.com', 'password': 'N3w-Passw0rd!!',
        }, format='json').status_code == 200

    @pytest.mark.parametrize('current,new,message', [
        ('wrong-password', 'N3w-Passw0rd!!', 'Current password is incorrect'),
        (PASSWORD, PASSWORD, 'New password must be different from current password'),
    ])
    def test_change_password_rejected(self, owner, current, new, message):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {owner['token']}")

        response = client.post('/v1/auth/change-password', {
            'current_password': current, 'new_password': new,
        }, format='json')

        assert response.status_code == 400
        assert response.data['error']['message'] == message

    def test_change_password_checks_strength(self, owner):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {owner['token']}")

        response = client.post('/v1/auth/change-password', {
            'current_password': PASSWORD, 'new_password': '12345678',
        }, format='json')

        assert response.status_code == 400
        assert 'new_password' in response.data['error']['details']


@pytest.mark.django_db
class TestPermissionsAPI:

    def test_my_permissions(self, viewer_client):
        response = viewer_client.get('/v1/iam/me/permissions')

        assert response.status_code == 200
        assert response.data['roles'] == ['Viewer']
        assert AppPermission.TASKS_READ in response.data['permissions']
        assert response.data['is_platform_admin'] is False

    def test_catalog_requires_roles_read(self, owner_client, viewer_client):
        assert viewer_client.get('/v1/iam/permissions').status_code == 403

        response = owner_client.get('/v1/iam/permissions')
        assert response.status_code == 200
        assert response.data['categories']

    def test_system_roles(self, owner_client):
        response = owner_client.get('/v1/iam/system-roles')

        names = [r['name'] for r in response.data['roles']]
        assert names == ['Owner', 'Admin', 'Member', 'Viewer', 'Auditor']


@pytest.mark.django_db
class TestMembersAPI:

    def test_list_paginated(self, owner_client, member, viewer):
        response = owner_client.get('/v1/iam/users', {'limit': 2})

        assert response.status_code == 200
        assert len(response.data['results']) == 2
        assert response.data['pagination']['total'] == 3
        assert response.data['pagination']['has_next'] is True

    def test_member_cannot_list_users(self, member_client):
        response = member_client.get('/v1/iam/users')

        assert response.status_code == 403
        assert response.data['error']['code'] == 'FORBIDDEN'

    def test_add_member_with_role(self, owner_client, tenant):
        viewer_role = Role.objects.by_name(tenant, 'Viewer')

        response = owner_client.post('/v1/iam/users', {
            'email': 'new@example.com',
            'password': PASSWORD,
            'first_name': 'Nia',
            'role_ids': [str(viewer_role.id)],
        }, format='json')

        assert response.status_code == 201
        assert response.data['status'] == 'active'
        assert [r['name'] for r in response.data['roles']] == ['Viewer']

    def test_new_user_needs_password(self, owner_client):
        response = owner_client.post('/v1/iam/users', {'email': 'new@example.com'}, format='json')

        assert response.status_code == 400
        assert 'password' in response.data['error']['details']

    def test_existing_member_conflicts(self, owner_client, member):
        response = owner_client.post('/v1/iam/users', {'email': 'member@example.com'}, format='json')

        assert response.status_code == 409
        assert response.data['error']['code'] == 'CONFLICT'

    def test_replace_roles(self, owner_client, tenant, member):
        auditor = Role.objects.by_name(tenant, 'Auditor')

        response = owner_client.put(
            f'/v1/iam/users/{member.user_id}/roles', {'role_ids': [str(auditor.id)]}, format='json'
        )

        assert response.status_code == 200
        assert [r['name'] for r in response.data['roles']] == ['Auditor']

    def test_cannot_change_own_roles(self, owner_client, tenant, owner_user):
        viewer_role = Role.objects.by_name(tenant, 'Viewer')

        response = owner_client.put(
            f'/v1/iam/users/{owner_user.id}/roles', {'role_ids': [str(viewer_role.id)]}, format='json'
        )

        assert response.status_code == 403

    def test_update_and_remove(self, owner_client, member):
        response = owner_client.put(
            f'/v1/iam/users/{member.user_id}', {'first_name': 'Maya'}, format='json'
        )
        assert response.data['first_name'] == 'Maya'

        assert owner_client.delete(f'/v1/iam/users/{member.user_id}').status_code == 204
        assert owner_client.get(f'/v1/iam/users/{member.user_id}').data['status'] == 'inactive'

    def test_cannot_remove_self(self, owner_client, owner_user):
        response = owner_client.delete(f'/v1/iam/users/{owner_user.id}')

        assert response.status_code == 403
        assert response.data['error']['message'] == 'You cannot remove your own account'

    def test_unknown_member(self, owner_client):
        response = owner_client.get('/v1/iam/users/00000000-0000-0000-0000-000000000000')

        assert response.status_code == 404
        assert response.data['error']['message'] == 'User not found'

    def test_lock_unlock_and_reset_password(self, owner_client, member):
        locked = owner_client.post(f'/v1/iam/users/{member.user_id}/lock')
        assert locked.data['status'] == 'locked'

        unlocked = owner_client.post(f'/v1/iam/users/{member.user_id}/unlock')
        assert unlocked.data['status'] == 'active'

        reset = owner_client.post(f'/v1/iam/users/{member.user_id}/reset-password', {}, format='json')
        assert reset.status_code == 200
        temporary = reset.data['temporary_password']

        login = APIClient().post('/v1/auth/login', {
            'email': 'member@example.com', 'password': temporary,
        }, format='json')
        assert login.status_code == 200

    def test_reset_to_chosen_password(self, owner_client, member):
        response = owner_client.post(
            f'/v1/iam/users/{member.user_id}/reset-password', {'new_password': 'An0ther-Passw0rd!'}, format='json'
        )

        assert response.status_code == 200
        assert 'temporary_password' not in response.data


@pytest.mark.django_db
class TestRolesAPI:

    def test_create_custom_role(self, owner_client):
        response = owner_client.post('/v1/iam/roles', {
            'name': 'Document Reviewer',
            'description': 'Reviews generated documents',
            'permissions': [AppPermission.DOCUMENTS_READ, AppPermission.DOCUMENTS_WRITE],
        }, format='json')

        assert response.status_code == 201
        assert response.data['is_system'] is False
        assert response.data['description'] == 'Reviews generated documents'
        assert response.data['permissions'] == [AppPermission.DOCUMENTS_READ, AppPermission.DOCUMENTS_WRITE]

    def test_unknown_permission_conflicts(self, owner_client):
        response = owner_client.post('/v1/iam/roles', {
            'name': 'Odd', 'permissions': ['documents:shred'],
        }, format='json')

        assert response.status_code == 409
        assert 'documents:shred' in response.data['error']['message']

    def test_system_roles_listed_first(self, owner_client):
        owner_client.post('/v1/iam/roles', {'name': 'Aardvark', 'permissions': [AppPermission.TASKS_READ]}, format='json')

        names = [r['name'] for r in owner_client.get('/v1/iam/roles').data['results']]

        assert names[-1] == 'Aardvark'
        assert len(names) == 6

    def test_system_role_is_read_only(self, owner_client, tenant):
        viewer_role = Role.objects.by_name(tenant, 'Viewer')

        response = owner_client.put(f'/v1/iam/roles/{viewer_role.id}', {'description': 'x'}, format='json')

        assert response.status_code == 403

    def test_role_members(self, owner_client, tenant, member, viewer):
        role = Role.objects.by_name(tenant, 'Member')

        response = owner_client.get(f'/v1/iam/roles/{role.id}/users')

        assert [m['email'] for m in response.data['results']] == ['member@example.com']

    def test_admin_cannot_grant_owner(self, client_for, make_member, tenant, member):
        admin = make_member('admin@example.com', 'Admin')
        owner_role = Role.objects.by_name(tenant, 'Owner')

        response = client_for(admin.user).put(
            f'/v1/iam/users/{member.user_id}/roles', {'role_ids': [str(owner_role.id)]}, format='json'
        )

        assert response.status_code == 403
        assert response.data['error']['message'] == 'Only an Owner can grant the Owner role'


@pytest.mark.django_db
class TestGroupsAPI:

    def test_group_lifecycle(self, owner_client, tenant, member, member_client):
        created = owner_client.post('/v1/iam/groups', {
            'name': 'Compliance', 'description': 'Audit helpers',
        }, format='json')
        assert created.status_code == 201
        group_id = created.data['id']

        members = owner_client.post(f'/v1/iam/groups/{group_id}/members', {
            'action': 'add', 'user_ids': [str(member.user_id)],
        }, format='json')
        assert members.data['member_count'] == 1

        auditor = Role.objects.by_name(tenant, 'Auditor')
        roles = owner_client.post(f'/v1/iam/groups/{group_id}/roles', {
            'action': 'add', 'role_ids': [str(auditor.id)],
        }, format='json')
        assert [r['name'] for r in roles.data['roles']] == ['Auditor']

        assert member_client.get('/v1/iam/audit-logs').status_code == 200

        assert owner_client.delete(f'/v1/iam/groups/{group_id}').status_code == 204
        assert member_client.get('/v1/iam/audit-logs').status_code == 403

    def test_invalid_action(self, owner_client, member):
        group = owner_client.post('/v1/iam/groups', {'name': 'Ops'}, format='json')

        response = owner_client.post(f"/v1/iam/groups/{group.data['id']}/members", {
            'action': 'merge', 'user_ids': [str(member.user_id)],
        }, format='json')

        assert response.status_code == 400


@pytest.mark.django_db
class TestApiKeysAPI:

    def _create(self, client, scopes):
        return client.post('/v1/iam/api-keys', {'name': 'CI pipeline', 'scopes': scopes}, format='json')

    def test_create_returns_plaintext_once(self, owner_client):
        response = self._create(owner_client, [IamPermission.API_KEYS_READ])

        assert response.status_code == 201
        assert response.data['key'].startswith('chg_')
        assert response.data['api_key']['key_prefix'] == response.data['key'][:12]
        assert 'key_hash' not in response.data['api_key']

        listed = owner_client.get('/v1/iam/api-keys').data['results']
        assert 'key' not in listed[0]

    def test_key_authenticates_requests(self, owner_client):
        plain = self._create(owner_client, [IamPermission.API_KEYS_READ]).data['key']
        client = APIClient()
        client.credentials(HTTP_X_API_KEY=plain)

        assert client.get('/v1/iam/api-keys').status_code == 200
        assert client.get('/v1/iam/users').status_code == 403

    def test_revoked_key_stops_working(self, owner_client):
        created = self._create(owner_client, [IamPermission.API_KEYS_READ]).data
        client = APIClient()
        client.credentials(HTTP_X_API_KEY=created['key'])

        revoked = owner_client.post(
            f"/v1/iam/api-keys/{created['api_key']['id']}/revoke", {'reason': 'Rotated'}, format='json'
        )
        assert revoked.data['is_revoked'] is True

        assert client.get('/v1/iam/api-keys').status_code == 401
        assert owner_client.get('/v1/iam/api-keys').data['results'] == []
        assert len(owner_client.get('/v1/iam/api-keys', {'include_revoked': 'true'}).data['results']) == 1

    def test_service_account_key_acts_through_creator(self, client_for, make_member, owner_user):
        admin = make_member('admin@example.com', 'Admin')
        created = client_for(admin.user).post('/v1/iam/api-keys', {
            'name': 'Nightly sync',
            'scopes': [IamPermission.API_KEYS_READ],
            'owner_type': 'service_account',
        }, format='json').data
        assert created['api_key']['owner_type'] == 'service_account'
        client = APIClient()
        client.credentials(HTTP_X_API_KEY=created['key'])
        assert client.get('/v1/iam/api-keys').status_code == 200

        MemberService.deactivate_member(admin, owner_user)

        assert client.get('/v1/iam/api-keys').status_code == 403

    def test_cannot_grant_unheld_scope(self, client_for, make_member):
        admin = make_member('admin@example.com', 'Admin')

        response = self._create(client_for(admin.user), [IamPermission.SETTINGS_WRITE])

        assert response.status_code == 403


@pytest.mark.django_db
class TestAccessRequestsAPI:

    def test_request_and_approve(self, member_client, owner_client, tenant, member):
        auditor = Role.objects.by_name(tenant, 'Auditor')

        created = member_client.post('/v1/iam/access-requests', {
            'role_ids': [str(auditor.id)],
            'reason': 'Helping with the quarterly audit',
            'duration_days': 14,
        }, format='json')
        assert created.status_code == 201
        assert created.data['status'] == 'pending'

        assert member_client.post(
            f"/v1/iam/access-requests/{created.data['id']}/approve", {}, format='json'
        ).status_code == 403

        approved = owner_client.post(
            f"/v1/iam/access-requests/{created.data['id']}/approve", {'comment': 'OK'}, format='json'
        )
        assert approved.data['status'] == 'approved'
        assert approved.data['approver_email'] == 'owner@example.com'
        assert approved.data['effective_until'] is not None

        permissions = member_client.get('/v1/iam/me/permissions').data['permissions']
        assert IamPermission.AUDIT_READ in permissions

    def test_reason_is_required(self, member_client, tenant):
        auditor = Role.objects.by_name(tenant, 'Auditor')

        response = member_client.post('/v1/iam/access-requests', {
            'role_ids': [str(auditor.id)], 'reason': 'pls',
        }, format='json')

        assert response.status_code == 400

    def test_members_see_only_their_own(self, member_client, viewer_client, owner_client, tenant):
        auditor = Role.objects.by_name(tenant, 'Auditor')
        body = {'role_ids': [str(auditor.id)], 'reason': 'Need the audit trail'}
        mine = member_client.post('/v1/iam/access-requests', body, format='json').data
        theirs = viewer_client.post('/v1/iam/access-requests', body, format='json').data

        listed = member_client.get('/v1/iam/access-requests').data['results']
        assert [r['id'] for r in listed] == [mine['id']]
        assert member_client.get(f"/v1/iam/access-requests/{theirs['id']}").status_code == 403
        assert owner_client.get('/v1/iam/access-requests').data['pagination']['total'] == 2

    def test_reject(self, member_client, owner_client, tenant):
        auditor = Role.objects.by_name(tenant, 'Auditor')
        created = member_client.post('/v1/iam/access-requests', {
            'role_ids': [str(auditor.id)], 'reason': 'Need the audit trail',
        }, format='json')

        rejected = owner_client.post(
            f"/v1/iam/access-requests/{created.data['id']}/reject", {'comment': 'No'}, format='json'
        )

        assert rejected.data['status'] == 'rejected'
        assert rejected.data['decision_comment'] == 'No'


@pytest.mark.django_db
class TestAccessReviewsAPI:

    def test_review_campaign(self, owner_client, member, viewer):
        created = owner_client.post('/v1/iam/access-reviews', {'name': 'Q3 Review'}, format='json')
        assert created.status_code == 201
        assert created.data['item_count'] == 3
        review_id = created.data['id']

        items = owner_client.get(f'/v1/iam/access-reviews/{review_id}/items').data['results']
        viewer_item = next(i for i in items if i['user_email'] == 'viewer@example.com')
        assert viewer_item['current_roles'][0]['name'] == 'Viewer'

        decided = owner_client.post(
            f"/v1/iam/access-reviews/{review_id}/items/{viewer_item['id']}/decide",
            {'decision': 'remove', 'notes': 'Left the project'},
            format='json',
        )
        assert decided.data['decision'] == 'remove'
        assert decided.data['reviewer_email'] == 'owner@example.com'

        detail = owner_client.get(f'/v1/iam/access-reviews/{review_id}')
        assert detail.data['completed_item_count'] == 1

        export = owner_client.get(f'/v1/iam/access-reviews/{review_id}/export')
        assert export['Content-Type'] == 'text/csv'
        assert 'attachment; filename="access-review-' in export['Content-Disposition']
        assert b'# Completed: 1/3' in export.content

        closed = owner_client.post(f'/v1/iam/access-reviews/{review_id}/close')
        assert closed.data['status'] == 'closed'

        again = owner_client.post(
            f"/v1/iam/access-reviews/{review_id}/items/{viewer_item['id']}/decide",
            {'decision': 'keep'},
            format='json',
        )
        assert again.status_code == 403

        reclosed = owner_client.post(f'/v1/iam/access-reviews/{review_id}/close')
        assert reclosed.status_code == 403
        assert reclosed.json()['error']['message'] == 'Access review is already closed'

    def test_change_needs_roles(self, owner_client, member):
        review_id = owner_client.post('/v1/iam/access-reviews', {'name': 'Q3'}, format='json').data['id']
        item = owner_client.get(f'/v1/iam/access-reviews/{review_id}/items').data['results'][0]

        response = owner_client.post(
            f"/v1/iam/access-reviews/{review_id}/items/{item['id']}/decide", {'decision': 'change'}, format='json'
        )

        assert response.status_code == 400
        assert 'new_role_ids' in response.data['error']['details']


@pytest.mark.django_db
class TestAuditLogsAPI:

    def test_list_and_filter(self, owner_client, tenant):
        owner_client.post('/v1/iam/roles', {'name': 'Bookkeeper', 'permissions': [AppPermission.TASKS_READ]}, format='json')

        response = owner_client.get('/v1/iam/audit-logs', {'action': AuditAction.ROLE_CREATED})

        assert response.status_code == 200
        assert response.data['pagination']['total'] == 1
        entry = response.data['results'][0]
        assert entry['target_name'] == 'Bookkeeper'
        assert entry['actor_email'] == 'owner@example.com'

    def test_invalid_date_range(self, owner_client):
        response = owner_client.get('/v1/iam/audit-logs', {
            'start_date': '2026-05-01T00:00:00Z', 'end_date': '2026-04-01T00:00:00Z',
        })

        assert response.status_code == 400

    def test_export_requires_export_permission(self, client_for, make_member, owner_client):
        auditor = make_member('auditor@example.com', 'Auditor')
        member_only = make_member('plain@example.com', 'Member')

        assert client_for(member_only.user).get('/v1/iam/audit-logs/export').status_code == 403

        export = client_for(auditor.user).get('/v1/iam/audit-logs/export')
        assert export.status_code == 200
        assert export['Content-Type'] == 'text/csv'
        assert export.content.decode().startswith('Timestamp,Actor Email')

    def test_export_filename_names_tenant_and_day(self, owner_client, tenant):
        export = owner_client.get('/v1/iam/audit-logs/export')

        today = timezone.now().date().isoformat()
        assert export['Content-Disposition'] == f'attachment; filename="audit-logs-{tenant.id}-{today}.csv"'

    def test_distinct_actions(self, owner_client):
        owner_client.post('/v1/iam/roles', {'name': 'Bookkeeper', 'permissions': [AppPermission.TASKS_READ]}, format='json')

        actions = owner_client.get('/v1/iam/audit-logs/actions').data['actions']

        assert AuditAction.ROLE_CREATED in actions
