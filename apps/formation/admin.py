"""
Django admin configuration for formation app.
"""
from django.contrib import admin
from .models import BusinessProfile, ComplianceItem, DocumentInstance, Task, WorkflowInstance


@admin.register(BusinessProfile)
class BusinessProfileAdmin(admin.ModelAdmin):
    list_display = [
        'business_name', 'tenant', 'business_type', 'formation_state',
        'formation_status', 'ein_status', 'setup_completed_at',
    ]
    list_filter = ['business_type', 'formation_status', 'ein_status', 'banking_status']
    search_fields = ['business_name', 'dba_name', 'tenant__name', 'email']
    raw_id_fields = ['tenant']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(WorkflowInstance)
class WorkflowInstanceAdmin(admin.ModelAdmin):
    list_display = ['tenant', 'workflow_type', 'current_phase', 'current_step', 'status', 'started_at']
    list_filter = ['current_phase', 'status']
    search_fields = ['tenant__name']
    raw_id_fields = ['tenant', 'business_profile']
    readonly_fields = ['phase_history', 'created_at', 'updated_at']


@admin.register(DocumentInstance)
class DocumentInstanceAdmin(admin.ModelAdmin):
    list_display = ['name', 'tenant', 'document_type', 'status', 'version', 'generated_at']
    list_filter = ['document_type', 'status']
    search_fields = ['name', 'tenant__name', 'template_key']
    raw_id_fields = ['tenant', 'business_profile', 'workflow', 'generated_by', 'reviewed_by', 'approved_by']
    readonly_fields = ['version_history', 'created_at', 'updated_at']


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ['title', 'tenant', 'category', 'status', 'priority', 'due_date', 'assignee']
    list_filter = ['category', 'status', 'priority', 'phase']
    search_fields = ['title', 'tenant__name']
    raw_id_fields = ['tenant', 'workflow', 'business_profile', 'assignee', 'completed_by']


@admin.register(ComplianceItem)
class ComplianceItemAdmin(admin.ModelAdmin):
    list_display = ['title', 'tenant', 'item_type', 'due_date', 'recurrence', 'status']
    list_filter = ['item_type', 'status', 'recurrence']
    search_fields = ['title', 'tenant__name']
    raw_id_fields = ['tenant', 'business_profile', 'completed_by']
