"""
Tests for the audit trail.

Tests:
- compute_diff keeps only changed keys and redacts secrets
- AuditLog.log_action honours the tenant's audit toggle
- AuditService filtering, CSV export and retention purge
"""
from datetime import timedelta

import pytest
from django.test import RequestFactory
from django.utils import timezone

from apps.iam.audit import EXPORT_HEADERS, AuditAction, AuditService, compute_diff
from apps.iam.models import AuditLog
from apps.iam.tasks import purge_expired_audit_logs


class TestComputeDiff:

    def test_only_changed_keys(self):
        before, after = compute_diff(
            {'name': 'Acme', 'state': 'DE', 'tags': ['a']},
            {'name': 'Acme LLC', 'state': 'DE', 'tags': ['a']},
        )
        assert before == {'name': 'Acme'}
        assert after == {'name': 'Acme LLC'}

    def test_added_and_removed_keys(self):
        before, after = compute_diff({'old': 1}, {'new': 2})
        assert before == {'old': 1}
        assert after == {'new': 2}

    def test_sensitive_values_redacted(self):
        before, after = compute_diff({'password': 'a'}, {'password': 'b'})
        assert before == {'password': '[REDACTED]'}
        assert after == {'password': '[REDACTED]'}

    def test_no_changes(self):
        assert compute_diff({'a': {'b': 1}}, {'a': {'b': 1}}) == ({}, {})


@pytest.mark.django_db
class TestLogAction:

    def test_records_request_metadata(self, tenant, owner_user):
        request = RequestFactory().get('/', HTTP_X_FORWARDED_FOR='203.0.113.9, 10.0.0.1', HTTP_USER_AGENT='pytest')
        request.request_id = 'req-123'

        log = AuditLog.log_action(
            AuditAction.SETTINGS_UPDATED,
            user=owner_user,
            tenant=tenant,
            target_type='tenant_settings',
            summary='Changed settings',
            after={'api_key': 'chg_secret', 'mfa_required': True},
            request=request,
        )

        assert log.actor_type == AuditLog.ACTOR_USER
        assert log.actor_email == 'owner@example.com'
        assert log.ip_address == '203.0.113.9'
        assert log.user_agent == 'pytest'
        assert log.request_id == 'req-123'
        assert log.after == {'api_key': '[REDACTED]', 'mfa_required': True}

    def test_system_actor_without_user(self, tenant):
        log = AuditLog.log_action(AuditAction.SETTINGS_UPDATED, tenant=tenant, summary='Job')
        assert log.actor_type == AuditLog.ACTOR_SYSTEM

    def test_skipped_when_tenant_disables_audit(self, tenant, owner_user):
        tenant.settings.audit_logging_enabled = False
        tenant.settings.save()

        log = AuditLog.log_action(AuditAction.SETTINGS_UPDATED, user=owner_user, tenant=tenant)

        assert log is None
        assert not AuditLog.objects.filter(tenant=tenant, action=AuditAction.SETTINGS_UPDATED).exists()


@pytest.mark.django_db
class TestAuditService:

    @pytest.fixture
    def logs(self, tenant, owner_user, member):
        AuditLog.objects.for_tenant(tenant).delete()
        first = AuditLog.log_action(
            AuditAction.ROLE_CREATED, user=owner_user, tenant=tenant,
            target_type='role', target_id='r1', target_name='Bookkeeper',
        )
        second = AuditLog.log_action(
            AuditAction.USER_UPDATED, user=member.user, tenant=tenant,
            target_type='user', target_id='u1', target_name='member@example.com',
        )
        AuditLog.objects.filter(id=first.id).update(created_at=timezone.now() - timedelta(days=10))
        return first, second

    def test_newest_first(self, tenant, logs):
        first, second = logs
        assert list(AuditService.filter_logs(tenant, {})) == [second, first]

    @pytest.mark.parametrize('filters,expected', [
        ({'action': AuditAction.ROLE_CREATED}, 0),
        ({'target_type': 'user'}, 1),
        ({'target_id': 'r1'}, 0),
        ({'actor_email': 'MEMBER@'}, 1),
    ])
    def test_filters(self, tenant, logs, filters, expected):
        result = list(AuditService.filter_logs(tenant, filters))
        assert result == [logs[expected]]

    def test_actor_id_filter(self, tenant, logs, owner_user):
        assert list(AuditService.filter_logs(tenant, {'actor_id': owner_user.id})) == [logs[0]]

    def test_date_range(self, tenant, logs):
        recent = AuditService.filter_logs(tenant, {'start_date': timezone.now() - timedelta(days=1)})
        older = AuditService.filter_logs(tenant, {'end_date': timezone.now() - timedelta(days=1)})

        assert list(recent) == [logs[1]]
        assert list(older) == [logs[0]]

    def test_other_tenant_logs_hidden(self, other_tenant, logs):
        assert not AuditService.filter_logs(other_tenant, {'target_id': 'r1'}).exists()

    def test_export_csv(self, tenant, logs):
        lines = AuditService.export_csv(tenant, {}).splitlines()

        assert lines[0].split(',') == EXPORT_HEADERS
        assert len(lines) == 3
        assert 'member@example.com' in lines[1]
        assert AuditAction.ROLE_CREATED in lines[2]

    def test_distinct_values(self, tenant, logs):
        assert AuditService.distinct_actions(tenant) == sorted([AuditAction.ROLE_CREATED, AuditAction.USER_UPDATED])
        assert AuditService.distinct_target_types(tenant) == ['role', 'user']

    def test_purge_expired(self, tenant, logs):
        assert AuditService.purge_expired(tenant, retention_days=7) == 1
        assert list(AuditService.filter_logs(tenant, {})) == [logs[1]]

    def test_purge_task_uses_tenant_retention(self, tenant, logs, other_tenant):
        tenant.settings.audit_retention_days = 5
        tenant.settings.save()

        result = purge_expired_audit_logs()

        assert result == {'tenants': 2, 'deleted': 1}
