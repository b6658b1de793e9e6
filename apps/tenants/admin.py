"""
Django admin configuration for tenants app.
"""
from django.contrib import admin
from .models import Tenant, TenantSettings


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'status', 'contact_email', 'created_at']
    list_filter = ['status']
    search_fields = ['name', 'slug', 'contact_email']


admin.site.register(TenantSettings)
