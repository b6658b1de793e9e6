# Initial migration for business profiles, workflows, documents, tasks and compliance items

import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

from apps.formation import constants


def _base_fields():
    return [
        ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
        ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
        ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
        ('deleted_at', models.DateTimeField(blank=True, db_index=True, help_text='Timestamp when the record was soft deleted', null=True)),
    ]


def _tenant_field():
    return ('tenant', models.ForeignKey(help_text='Owning tenant', on_delete=django.db.models.deletion.CASCADE, related_name='+', to='tenants.tenant'))


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('tenants', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='BusinessProfile',
            fields=_base_fields() + [
                ('business_name', models.CharField(blank=True, max_length=200)),
                ('dba_name', models.CharField(blank=True, max_length=200)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('phone', models.CharField(blank=True, max_length=20)),
                ('archetype', models.CharField(blank=True, help_text='Business archetype key chosen in the setup wizard', max_length=50)),
                ('business_type', models.CharField(blank=True, choices=constants.BusinessType.CHOICES, max_length=30)),
                ('formation_state', models.CharField(blank=True, help_text='Two-letter US state code', max_length=2)),
                ('business_address', models.JSONField(blank=True, default=dict, help_text='{street1, street2, city, state, zip_code}')),
                ('registered_agent', models.JSONField(blank=True, default=dict, help_text='{type, name, address}')),
                ('formation_status', models.CharField(choices=constants.FormationStatus.CHOICES, default='not_started', max_length=20)),
                ('sos_filing_number', models.CharField(blank=True, max_length=50)),
                ('formation_date', models.DateField(blank=True, null=True)),
                ('ein_status', models.CharField(choices=constants.EINStatus.CHOICES, default='not_started', max_length=20)),
                ('ein', models.CharField(blank=True, max_length=10)),
                ('banking_status', models.CharField(choices=constants.BankingStatus.CHOICES, default='not_started', max_length=20)),
                ('bank_name', models.CharField(blank=True, max_length=200)),
                ('operating_agreement_status', models.CharField(choices=constants.OperatingAgreementStatus.CHOICES, default='not_started', max_length=20)),
                ('compliance_calendar_status', models.CharField(choices=constants.ComplianceCalendarStatus.CHOICES, default='not_started', max_length=20)),
                ('setup_completed_at', models.DateTimeField(blank=True, null=True)),
                ('tenant', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='business_profile', to='tenants.tenant')),
            ],
            options={
                'db_table': 'business_profiles',
            },
        ),
        migrations.CreateModel(
            name='WorkflowInstance',
            fields=_base_fields() + [
                ('workflow_type', models.CharField(choices=[('formation', 'Formation')], default='formation', max_length=30)),
                ('current_phase', models.CharField(choices=constants.WorkflowPhase.CHOICES, db_index=True, default='intake', max_length=20)),
                ('current_step', models.CharField(blank=True, choices=constants.FormationStep.CHOICES, max_length=30)),
                ('status', models.CharField(choices=constants.WorkflowStatus.CHOICES, db_index=True, default='not_started', max_length=20)),
                ('phase_history', models.JSONField(blank=True, default=list)),
                ('step_data', models.JSONField(blank=True, default=list)),
                ('started_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                _tenant_field(),
                ('business_profile', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='workflows', to='formation.businessprofile')),
            ],
            options={
                'db_table': 'workflow_instances',
                'ordering': ['-created_at'],
                'abstract': False,
                'indexes': [models.Index(fields=['tenant', 'current_phase', 'status'], name='workflow_phase_status_idx')],
            },
        ),
        migrations.CreateModel(
            name='DocumentInstance',
            fields=_base_fields() + [
                ('template_key', models.CharField(blank=True, max_length=100)),
                ('template_version', models.PositiveIntegerField(default=1)),
                ('name', models.CharField(max_length=200)),
                ('document_type', models.CharField(choices=constants.DocumentType.CHOICES, db_index=True, max_length=40)),
                ('status', models.CharField(choices=constants.DocumentStatus.CHOICES, db_index=True, default='draft', max_length=20)),
                ('content', models.TextField(blank=True)),
                ('merge_data', models.JSONField(blank=True, default=dict)),
                ('file_name', models.CharField(blank=True, max_length=255)),
                ('mime_type', models.CharField(blank=True, max_length=100)),
                ('file_size', models.PositiveIntegerField(blank=True, null=True)),
                ('generated_at', models.DateTimeField(blank=True, null=True)),
                ('reviewed_at', models.DateTimeField(blank=True, null=True)),
                ('review_notes', models.CharField(blank=True, max_length=2000)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('version', models.PositiveIntegerField(default=0)),
                ('version_history', models.JSONField(blank=True, default=list)),
                _tenant_field(),
                ('business_profile', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='documents', to='formation.businessprofile')),
                ('workflow', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='documents', to='formation.workflowinstance')),
                ('generated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('reviewed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('approved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'document_instances',
                'ordering': ['-created_at'],
                'abstract': False,
                'indexes': [models.Index(fields=['tenant', 'document_type', 'status'], name='document_type_status_idx')],
            },
        ),
        migrations.CreateModel(
            name='Task',
            fields=_base_fields() + [
                ('title', models.CharField(max_length=200)),
                ('description', models.CharField(blank=True, max_length=2000)),
                ('category', models.CharField(choices=constants.TaskCategory.CHOICES, db_index=True, default='general', max_length=30)),
                ('status', models.CharField(choices=constants.TaskStatus.CHOICES, db_index=True, default='pending', max_length=20)),
                ('priority', models.CharField(choices=constants.TaskPriority.CHOICES, default='medium', max_length=10)),
                ('due_date', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('phase', models.CharField(choices=constants.WorkflowPhase.CHOICES, default='formation', max_length=20)),
                ('step', models.CharField(blank=True, choices=constants.FormationStep.CHOICES, max_length=30)),
                ('is_required', models.BooleanField(default=False)),
                ('is_blocking', models.BooleanField(default=False)),
                ('order', models.PositiveIntegerField(default=0)),
                ('evidence', models.JSONField(blank=True, default=list)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                _tenant_field(),
                ('workflow', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='tasks', to='formation.workflowinstance')),
                ('business_profile', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='tasks', to='formation.businessprofile')),
                ('completed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
                ('assignee', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_tasks', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'tasks',
                'ordering': ['order', 'due_date', 'created_at'],
                'abstract': False,
                'indexes': [
                    models.Index(fields=['tenant', 'status'], name='tasks_tenant_status_idx'),
                    models.Index(fields=['tenant', 'due_date', 'status'], name='tasks_tenant_due_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ComplianceItem',
            fields=_base_fields() + [
                ('item_type', models.CharField(choices=[('annual_report', 'Annual Report'), ('franchise_tax', 'Franchise Tax'), ('boi_report', 'Beneficial Ownership Information Report'), ('registered_agent_renewal', 'Registered Agent Renewal')], max_length=40)),
                ('title', models.CharField(max_length=200)),
                ('description', models.CharField(blank=True, max_length=1000)),
                ('due_date', models.DateField(db_index=True)),
                ('recurrence', models.CharField(choices=[('once', 'Once'), ('annual', 'Annual')], default='annual', max_length=10)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('completed', 'Completed'), ('overdue', 'Overdue')], db_index=True, default='pending', max_length=20)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                _tenant_field(),
                ('business_profile', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='compliance_items', to='formation.businessprofile')),
                ('completed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'compliance_items',
                'ordering': ['due_date'],
                'abstract': False,
            },
        ),
    ]
