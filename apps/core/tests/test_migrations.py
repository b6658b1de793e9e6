"""
Tests for the shipped schema migrations.

Tests:
- Every app with concrete models has migrations that match its models
- The test database is built from those migrations
"""
from io import StringIO

import pytest
from django.core.management import call_command
from django.db import connection
from django.db.migrations.recorder import MigrationRecorder


@pytest.mark.django_db
class TestMigrations:

    def test_models_have_no_pending_changes(self):
        out = StringIO()

        call_command('makemigrations', 'tenants', 'iam', 'formation', check=True, dry_run=True, stdout=out)

        assert 'No changes detected' in out.getvalue()

    @pytest.mark.parametrize('app', ['tenants', 'iam', 'formation'])
    def test_initial_migration_applied(self, app):
        applied = MigrationRecorder(connection).applied_migrations()

        assert (app, '0001_initial') in applied

    def test_tables_created(self):
        tables = set(connection.introspection.table_names())

        assert {
            'tenants', 'tenant_settings', 'users', 'tenant_users', 'roles',
            'group_members', 'api_keys', 'audit_logs', 'business_profiles', 'compliance_items',
        } <= tables
