"""
IAM settings API URLs.
"""
from django.urls import path
from apps.tenants.views_settings import (
    tenant_settings_view,
    audit_logging_toggle_view,
)

urlpatterns = [
    path('settings', tenant_settings_view, name='iam-settings'),
    path('settings/audit-logging', audit_logging_toggle_view, name='iam-settings-audit-logging'),
]
