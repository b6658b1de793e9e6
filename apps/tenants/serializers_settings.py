"""
Serializers for the IAM settings API.
"""
from rest_framework import serializers
from apps.tenants.models import TenantSettings


class TenantSettingsReadSerializer(serializers.ModelSerializer):
    """Read-only view of a tenant's security and notification policy."""

    tenant_id = serializers.UUIDField(source='tenant.id', read_only=True)

    class Meta:
        model = TenantSettings
        fields = ['tenant_id'] + list(TenantSettings.EDITABLE_FIELDS) + ['created_at', 'updated_at']
        read_only_fields = fields


class TenantSettingsUpdateSerializer(serializers.Serializer):
    """
    Partial update of TenantSettings.

    Range checks mirror the model validators so errors come back as a
    single 400 before anything is written.
    """

    audit_logging_enabled = serializers.BooleanField(required=False)
    audit_retention_days = serializers.IntegerField(
        required=False,
        min_value=TenantSettings.AUDIT_RETENTION_RANGE[0],
        max_value=TenantSettings.AUDIT_RETENTION_RANGE[1],
    )
    mfa_required = serializers.BooleanField(required=False)
    session_timeout_minutes = serializers.IntegerField(
        required=False,
        min_value=TenantSettings.SESSION_TIMEOUT_RANGE[0],
        max_value=TenantSettings.SESSION_TIMEOUT_RANGE[1],
    )
    max_failed_login_attempts = serializers.IntegerField(
        required=False,
        min_value=TenantSettings.MAX_FAILED_LOGIN_RANGE[0],
        max_value=TenantSettings.MAX_FAILED_LOGIN_RANGE[1],
    )
    password_expiry_days = serializers.IntegerField(
        required=False,
        min_value=TenantSettings.PASSWORD_EXPIRY_RANGE[0],
        max_value=TenantSettings.PASSWORD_EXPIRY_RANGE[1],
    )
    email_notifications_enabled = serializers.BooleanField(required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('Provide at least one setting to update')
        return attrs
