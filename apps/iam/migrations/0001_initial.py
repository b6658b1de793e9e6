# Initial migration for users, memberships, RBAC, API keys, access governance and audit logs

import uuid

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def _base_fields():
    return [
        ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
        ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
        ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
        ('deleted_at', models.DateTimeField(blank=True, db_index=True, help_text='Timestamp when the record was soft deleted', null=True)),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('tenants', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=_base_fields() + [
                ('email', models.EmailField(help_text='User email address (unique globally)', max_length=254, unique=True)),
                ('password_hash', models.CharField(db_column='password_hash', help_text='Hashed password', max_length=255)),
                ('first_name', models.CharField(blank=True, help_text='User first name', max_length=100)),
                ('last_name', models.CharField(blank=True, help_text='User last name', max_length=100)),
                ('is_active', models.BooleanField(db_index=True, default=True, help_text='Whether user account is active')),
                ('is_superuser', models.BooleanField(default=False, help_text='Platform administrator')),
                ('last_login_at', models.DateTimeField(blank=True, help_text='Last login timestamp', null=True)),
                ('failed_login_attempts', models.PositiveIntegerField(default=0, help_text='Consecutive failed login attempts')),
                ('locked_at', models.DateTimeField(blank=True, help_text='When the account was locked after too many failed logins', null=True)),
                ('password_changed_at', models.DateTimeField(blank=True, help_text='When the password was last set', null=True)),
                ('mfa_enabled', models.BooleanField(default=False, help_text='Whether login requires a TOTP or backup code')),
                ('mfa_secret', models.CharField(blank=True, help_text='Base32 TOTP secret; set at setup, enabled after the first verified code', max_length=64)),
                ('mfa_backup_codes', models.JSONField(blank=True, default=list, help_text='sha256 digests of unused one-time backup codes')),
            ],
            options={
                'db_table': 'users',
                'ordering': ['email'],
                'indexes': [models.Index(fields=['is_active', 'created_at'], name='users_active_created_idx')],
            },
        ),
        migrations.CreateModel(
            name='TenantUser',
            fields=_base_fields() + [
                ('is_active', models.BooleanField(db_index=True, default=True, help_text='Whether membership is active')),
                ('invite_status', models.CharField(choices=[('pending', 'Pending'), ('accepted', 'Accepted'), ('revoked', 'Revoked')], db_index=True, default='accepted', help_text='Invitation status', max_length=20)),
                ('joined_at', models.DateTimeField(blank=True, help_text='When user accepted invitation', null=True)),
                ('last_seen_at', models.DateTimeField(blank=True, help_text='Last activity timestamp in this tenant', null=True)),
                ('invited_by', models.ForeignKey(blank=True, help_text='User who sent the invitation', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='invitations_sent', to=settings.AUTH_USER_MODEL)),
                ('tenant', models.ForeignKey(help_text='Tenant this membership belongs to', on_delete=django.db.models.deletion.CASCADE, related_name='tenant_users', to='tenants.tenant')),
                ('user', models.ForeignKey(help_text='User who is a member', on_delete=django.db.models.deletion.CASCADE, related_name='tenant_memberships', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'tenant_users',
                'ordering': ['user__email'],
                'unique_together': {('tenant', 'user')},
                'indexes': [
                    models.Index(fields=['tenant', 'user', 'is_active'], name='tenant_users_active_idx'),
                    models.Index(fields=['tenant', 'invite_status'], name='tenant_users_invite_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Permission',
            fields=_base_fields() + [
                ('code', models.CharField(help_text="Unique permission code (e.g., 'iam:roles:read')", max_length=100, unique=True)),
                ('label', models.CharField(help_text="Human-readable label (e.g., 'View roles')", max_length=255)),
                ('description', models.TextField(blank=True, help_text='Detailed description of what this permission grants')),
                ('category', models.CharField(db_index=True, help_text="Permission category (e.g., 'users', 'roles', 'formation')", max_length=50)),
            ],
            options={
                'db_table': 'permissions',
                'ordering': ['category', 'code'],
            },
        ),
        migrations.CreateModel(
            name='Role',
            fields=_base_fields() + [
                ('name', models.CharField(help_text="Role name (e.g., 'Owner', 'Compliance Manager')", max_length=100, validators=[django.core.validators.MinLengthValidator(1)])),
                ('description', models.CharField(blank=True, help_text='Role description', max_length=500)),
                ('is_system', models.BooleanField(db_index=True, default=False, help_text='Whether this is a system-seeded role')),
                ('is_active', models.BooleanField(db_index=True, default=True, help_text='Inactive roles grant nothing and are hidden from lists')),
                ('created_by', models.ForeignKey(blank=True, help_text='User who created the role', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('tenant', models.ForeignKey(help_text='Tenant this role belongs to', on_delete=django.db.models.deletion.CASCADE, related_name='roles', to='tenants.tenant')),
            ],
            options={
                'db_table': 'roles',
                'ordering': ['name'],
                'indexes': [
                    models.Index(fields=['tenant', 'is_system'], name='roles_tenant_system_idx'),
                    models.Index(fields=['tenant', 'is_active', 'name'], name='roles_tenant_active_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='RolePermission',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('permission', models.ForeignKey(help_text='Permission being granted', on_delete=django.db.models.deletion.CASCADE, related_name='role_permissions', to='iam.permission')),
                ('role', models.ForeignKey(help_text='Role that grants this permission', on_delete=django.db.models.deletion.CASCADE, related_name='role_permissions', to='iam.role')),
            ],
            options={
                'db_table': 'role_permissions',
                'ordering': ['role', 'permission'],
                'unique_together': {('role', 'permission')},
            },
        ),
        migrations.CreateModel(
            name='TenantUserRole',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('assigned_at', models.DateTimeField(auto_now_add=True, help_text='When role was assigned')),
                ('expires_at', models.DateTimeField(blank=True, help_text='When a time-boxed assignment stops granting permissions', null=True)),
                ('assigned_by', models.ForeignKey(blank=True, help_text='User who assigned this role', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('role', models.ForeignKey(help_text='Role assigned to the user', on_delete=django.db.models.deletion.CASCADE, related_name='user_roles', to='iam.role')),
                ('tenant_user', models.ForeignKey(help_text='Tenant user who has this role', on_delete=django.db.models.deletion.CASCADE, related_name='user_roles', to='iam.tenantuser')),
            ],
            options={
                'db_table': 'tenant_user_roles',
                'unique_together': {('tenant_user', 'role')},
            },
        ),
        migrations.CreateModel(
            name='Group',
            fields=_base_fields() + [
                ('name', models.CharField(help_text='Group name, unique within the tenant', max_length=100)),
                ('description', models.CharField(blank=True, help_text='Group description', max_length=500)),
                ('is_active', models.BooleanField(db_index=True, default=True, help_text='Inactive groups grant nothing')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('members', models.ManyToManyField(blank=True, db_table='group_members', help_text='Tenant members in this group', related_name='groups', to='iam.tenantuser')),
                ('roles', models.ManyToManyField(blank=True, db_table='group_roles', help_text='Roles granted to every member', related_name='groups', to='iam.role')),
                ('tenant', models.ForeignKey(help_text='Tenant this group belongs to', on_delete=django.db.models.deletion.CASCADE, related_name='groups', to='tenants.tenant')),
            ],
            options={
                'db_table': 'iam_groups',
                'ordering': ['name'],
                'indexes': [models.Index(fields=['tenant', 'is_active', 'name'], name='iam_groups_active_idx')],
            },
        ),
        migrations.CreateModel(
            name='ApiKey',
            fields=_base_fields() + [
                ('name', models.CharField(help_text='Human-readable key name', max_length=100, validators=[django.core.validators.MinLengthValidator(1)])),
                ('owner_type', models.CharField(choices=[('user', 'User'), ('service_account', 'Service account')], default='user', help_text='Whether the key acts for a user or a service account', max_length=20)),
                ('key_prefix', models.CharField(db_index=True, help_text='First 12 characters of the key, safe to display', max_length=12)),
                ('key_hash', models.CharField(help_text='SHA-256 hex digest of the key', max_length=64, unique=True)),
                ('scopes', models.JSONField(default=list, help_text='Permission codes granted to requests made with this key')),
                ('expires_at', models.DateTimeField(blank=True, help_text='Expiry time; null keys never expire', null=True)),
                ('last_used_at', models.DateTimeField(blank=True, help_text='Last successful authentication', null=True)),
                ('last_used_ip', models.GenericIPAddressField(blank=True, help_text='Client IP of the last successful authentication', null=True)),
                ('revoked_at', models.DateTimeField(blank=True, db_index=True, help_text='When the key was revoked', null=True)),
                ('revoked_reason', models.CharField(blank=True, help_text='Why the key was revoked', max_length=500)),
                ('owner', models.ForeignKey(blank=True, help_text='Owning user (user keys) or creator (service account keys)', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='api_keys', to=settings.AUTH_USER_MODEL)),
                ('revoked_by', models.ForeignKey(blank=True, help_text='User who revoked the key', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('tenant', models.ForeignKey(help_text='Tenant the key authenticates against', on_delete=django.db.models.deletion.CASCADE, related_name='api_keys', to='tenants.tenant')),
            ],
            options={
                'db_table': 'api_keys',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['tenant', 'revoked_at'], name='api_keys_tenant_revoked_idx')],
            },
        ),
        migrations.CreateModel(
            name='AccessRequest',
            fields=_base_fields() + [
                ('requested_permissions', models.JSONField(blank=True, default=list, help_text='Permission codes requested directly')),
                ('reason', models.TextField(help_text='Business justification', max_length=2000)),
                ('duration_days', models.PositiveIntegerField(blank=True, help_text='Requested grant duration; null means permanent', null=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('approved', 'Approved'), ('rejected', 'Rejected'), ('expired', 'Expired')], db_index=True, default='pending', max_length=20)),
                ('decided_at', models.DateTimeField(blank=True, null=True)),
                ('decision_comment', models.CharField(blank=True, max_length=1000)),
                ('effective_until', models.DateTimeField(blank=True, help_text='When granted access ends', null=True)),
                ('approver', models.ForeignKey(blank=True, help_text='User who approved or rejected the request', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('requested_roles', models.ManyToManyField(blank=True, db_table='access_request_roles', related_name='access_requests', to='iam.role')),
                ('requester', models.ForeignKey(help_text='Membership asking for access', on_delete=django.db.models.deletion.CASCADE, related_name='access_requests', to='iam.tenantuser')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='access_requests', to='tenants.tenant')),
            ],
            options={
                'db_table': 'access_requests',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['tenant', 'status', 'created_at'], name='access_req_status_idx')],
            },
        ),
        migrations.CreateModel(
            name='AccessReview',
            fields=_base_fields() + [
                ('name', models.CharField(max_length=200)),
                ('description', models.CharField(blank=True, max_length=1000)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('open', 'Open'), ('closed', 'Closed')], db_index=True, default='open', max_length=20)),
                ('due_at', models.DateTimeField(blank=True, null=True)),
                ('item_count', models.PositiveIntegerField(default=0)),
                ('completed_item_count', models.PositiveIntegerField(default=0)),
                ('closed_at', models.DateTimeField(blank=True, null=True)),
                ('closed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='access_reviews', to='tenants.tenant')),
            ],
            options={
                'db_table': 'access_reviews',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['tenant', 'status'], name='access_rev_status_idx')],
            },
        ),
        migrations.CreateModel(
            name='AccessReviewItem',
            fields=_base_fields() + [
                ('user_email', models.EmailField(max_length=254)),
                ('user_name', models.CharField(blank=True, max_length=201)),
                ('current_roles', models.JSONField(default=list, help_text='[{id, name}] at snapshot time')),
                ('current_permissions', models.JSONField(default=list)),
                ('current_groups', models.JSONField(default=list, help_text='[{id, name}] at snapshot time')),
                ('decision', models.CharField(choices=[('pending', 'Pending'), ('keep', 'Keep'), ('remove', 'Remove'), ('change', 'Change')], db_index=True, default='pending', max_length=20)),
                ('new_roles', models.JSONField(default=list, help_text="[{id, name}] for 'change' decisions")),
                ('reviewed_at', models.DateTimeField(blank=True, null=True)),
                ('notes', models.CharField(blank=True, max_length=1000)),
                ('review', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='iam.accessreview')),
                ('reviewer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('tenant_user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='review_items', to='iam.tenantuser')),
            ],
            options={
                'db_table': 'access_review_items',
                'ordering': ['user_email'],
                'unique_together': {('review', 'tenant_user')},
            },
        ),
        migrations.CreateModel(
            name='AuditLog',
            fields=[
                ('id', models.BigAutoField(primary_key=True, serialize=False)),
                ('actor_email', models.CharField(blank=True, max_length=254)),
                ('actor_type', models.CharField(choices=[('user', 'User'), ('service_account', 'Service account'), ('system', 'System')], default='user', max_length=20)),
                ('action', models.CharField(db_index=True, help_text="Action performed (e.g., 'role_created', 'api_key_revoked')", max_length=100)),
                ('target_type', models.CharField(db_index=True, help_text="Type of target entity (e.g., 'role', 'group', 'api_key')", max_length=50)),
                ('target_id', models.CharField(blank=True, db_index=True, help_text='ID of target entity', max_length=64)),
                ('target_name', models.CharField(blank=True, max_length=255)),
                ('summary', models.CharField(blank=True, max_length=500)),
                ('before', models.JSONField(blank=True, default=dict)),
                ('after', models.JSONField(blank=True, default=dict)),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('user_agent', models.CharField(blank=True, max_length=500)),
                ('request_id', models.CharField(blank=True, db_index=True, max_length=100)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('tenant', models.ForeignKey(blank=True, help_text='Tenant this action belongs to (null for platform-level)', null=True, on_delete=django.db.models.deletion.CASCADE, related_name='audit_logs', to='tenants.tenant')),
                ('user', models.ForeignKey(blank=True, help_text='User who performed the action (null for system actions)', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='audit_logs', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'audit_logs',
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['tenant', 'created_at'], name='audit_tenant_created_idx'),
                    models.Index(fields=['tenant', 'action', 'created_at'], name='audit_tenant_action_idx'),
                    models.Index(fields=['target_type', 'target_id'], name='audit_target_idx'),
                ],
            },
        ),
    ]
