"""
Django admin configuration for IAM app.
"""
from django.contrib import admin
from .models import (
    AccessRequest,
    AccessReview,
    ApiKey,
    AuditLog,
    Group,
    Permission,
    Role,
    TenantUser,
    User,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ['email', 'first_name', 'last_name', 'is_active', 'is_superuser', 'locked_at', 'created_at']
    list_filter = ['is_active', 'is_superuser']
    search_fields = ['email', 'first_name', 'last_name']
    ordering = ['-created_at']
    exclude = ['password_hash']
    readonly_fields = ['last_login_at', 'failed_login_attempts', 'password_changed_at', 'created_at', 'updated_at']


@admin.register(TenantUser)
class TenantUserAdmin(admin.ModelAdmin):
    list_display = ['user', 'tenant', 'is_active', 'invite_status', 'joined_at', 'last_seen_at']
    list_filter = ['is_active', 'invite_status']
    search_fields = ['user__email', 'tenant__name']
    raw_id_fields = ['user', 'tenant', 'invited_by']


@admin.register(Permission)
class PermissionAdmin(admin.ModelAdmin):
    list_display = ['code', 'label', 'category']
    list_filter = ['category']
    search_fields = ['code', 'label']


@admin.register(Role)
class RoleAdmin(admin.ModelAdmin):
    list_display = ['name', 'tenant', 'is_system', 'is_active']
    list_filter = ['is_system', 'is_active']
    search_fields = ['name', 'tenant__name']


@admin.register(Group)
class GroupAdmin(admin.ModelAdmin):
    list_display = ['name', 'tenant', 'is_active']
    search_fields = ['name', 'tenant__name']
    filter_horizontal = ['roles']


@admin.register(ApiKey)
class ApiKeyAdmin(admin.ModelAdmin):
    list_display = ['name', 'tenant', 'key_prefix', 'owner_type', 'expires_at', 'revoked_at', 'last_used_at']
    list_filter = ['owner_type']
    search_fields = ['name', 'key_prefix', 'tenant__name']
    readonly_fields = ['key_prefix', 'key_hash', 'last_used_at', 'last_used_ip']


@admin.register(AccessRequest)
class AccessRequestAdmin(admin.ModelAdmin):
    list_display = ['id', 'tenant', 'requester', 'status', 'created_at', 'decided_at']
    list_filter = ['status']


@admin.register(AccessReview)
class AccessReviewAdmin(admin.ModelAdmin):
    list_display = ['name', 'tenant', 'status', 'item_count', 'completed_item_count', 'due_at']
    list_filter = ['status']


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'tenant', 'actor_email', 'action', 'target_type', 'target_name']
    list_filter = ['action', 'target_type', 'actor_type']
    search_fields = ['actor_email', 'target_name', 'summary', 'request_id']
    readonly_fields = [f.name for f in AuditLog._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
