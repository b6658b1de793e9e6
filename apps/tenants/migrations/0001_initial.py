# Initial migration for tenants and per-tenant security settings

import uuid

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Tenant',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, help_text='Timestamp when the record was soft deleted', null=True)),
                ('name', models.CharField(help_text='Business or organization name', max_length=255)),
                ('slug', models.SlugField(help_text='URL-friendly identifier', max_length=100, unique=True)),
                ('status', models.CharField(choices=[('active', 'Active'), ('suspended', 'Suspended')], db_index=True, default='active', help_text='Current tenant status', max_length=20)),
                ('contact_email', models.EmailField(blank=True, help_text='Primary contact email for the account', max_length=254)),
            ],
            options={
                'db_table': 'tenants',
                'ordering': ['name'],
                'indexes': [models.Index(fields=['status', 'created_at'], name='tenants_status_created_idx')],
            },
        ),
        migrations.CreateModel(
            name='TenantSettings',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('audit_logging_enabled', models.BooleanField(default=True, help_text='Whether IAM changes are written to the audit log')),
                ('audit_retention_days', models.PositiveIntegerField(default=365, help_text='Days audit log entries are kept', validators=[django.core.validators.MinValueValidator(30), django.core.validators.MaxValueValidator(2555)])),
                ('mfa_required', models.BooleanField(default=False, help_text='Require multi-factor authentication for all members')),
                ('session_timeout_minutes', models.PositiveIntegerField(default=60, help_text='Idle session timeout in minutes', validators=[django.core.validators.MinValueValidator(5), django.core.validators.MaxValueValidator(1440)])),
                ('max_failed_login_attempts', models.PositiveIntegerField(default=5, help_text='Failed logins before the account is locked', validators=[django.core.validators.MinValueValidator(3), django.core.validators.MaxValueValidator(10)])),
                ('password_expiry_days', models.PositiveIntegerField(default=90, help_text='Days before a password must be changed (0 disables expiry)', validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(365)])),
                ('email_notifications_enabled', models.BooleanField(default=True, help_text='Send IAM notification emails')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('tenant', models.OneToOneField(help_text='Tenant these settings belong to', on_delete=django.db.models.deletion.CASCADE, related_name='settings', to='tenants.tenant')),
            ],
            options={
                'db_table': 'tenant_settings',
                'verbose_name_plural': 'tenant settings',
            },
        ),
    ]
