"""
Settings management service for tenant security policy.

Every change is validated against the allowed ranges and audit logged
with a before/after diff of the changed fields.
"""
import logging
from typing import Dict, Any

from django.db import transaction

from apps.core.exceptions import BadRequest, ValidationFailed
from apps.tenants.models import Tenant, TenantSettings

logger = logging.getLogger(__name__)


class SettingsService:
    """
    Service for reading and updating TenantSettings.
    """

    RANGES = {
        'audit_retention_days': TenantSettings.AUDIT_RETENTION_RANGE,
        'session_timeout_minutes': TenantSettings.SESSION_TIMEOUT_RANGE,
        'max_failed_login_attempts': TenantSettings.MAX_FAILED_LOGIN_RANGE,
        'password_expiry_days': TenantSettings.PASSWORD_EXPIRY_RANGE,
    }

    BOOLEAN_FIELDS = (
        'audit_logging_enabled',
        'mfa_required',
        'email_notifications_enabled',
    )

    @staticmethod
    def get_or_create_settings(tenant: Tenant) -> TenantSettings:
        """
        Get or create TenantSettings for a tenant.

        Args:
            tenant: Tenant instance

        Returns:
            TenantSettings instance
        """
        return TenantSettings.objects.for_tenant(tenant)

    @classmethod
    def validate(cls, data: Dict[str, Any]) -> Dict[str, str]:
        """Return a field -> message dict of problems (empty when valid)."""
        errors = {}
        for field, value in data.items():
            if field not in TenantSettings.EDITABLE_FIELDS:
                errors[field] = 'Unknown setting'
            elif field in cls.BOOLEAN_FIELDS:
                if not isinstance(value, bool):
                    errors[field] = f"{field} must be a boolean"
            else:
                low, high = cls.RANGES[field]
                if isinstance(value, bool) or not isinstance(value, int):
                    errors[field] = f"{field} must be an integer"
                elif not low <= value <= high:
                    errors[field] = f"{field} must be between {low} and {high}"
        return errors

    @classmethod
    @transaction.atomic
    def update_settings(cls, tenant: Tenant, data: Dict[str, Any], actor=None, request=None) -> TenantSettings:
        """
        Apply a partial update.

        Raises:
            ValidationFailed: a value is unknown, of the wrong type or out of range
        """
        errors = cls.validate(data)
        if errors:
            raise ValidationFailed('Invalid settings', errors)

        settings_obj = cls.get_or_create_settings(tenant)
        before = settings_obj.as_dict()

        for field, value in data.items():
            setattr(settings_obj, field, value)
        settings_obj.save()

        cls._audit(tenant, before, settings_obj.as_dict(), actor, request)
        return settings_obj

    @classmethod
    def set_audit_logging(cls, tenant: Tenant, enabled, actor=None, request=None) -> TenantSettings:
        if not isinstance(enabled, bool):
            raise BadRequest('enabled must be a boolean')
        return cls.update_settings(tenant, {'audit_logging_enabled': enabled}, actor=actor, request=request)

    @staticmethod
    def _audit(tenant, before, after, actor, request):
        from apps.iam.audit import AuditAction, compute_diff
        from apps.iam.models import AuditLog

        diff_before, diff_after = compute_diff(before, after)
        if not diff_after:
            return

        logger.info(
            f"Tenant settings updated: {', '.join(sorted(diff_after))}",
            extra={'tenant_id': str(tenant.id)}
        )
        # Turning audit logging off is recorded before it takes effect
        if diff_after.get('audit_logging_enabled') is False:
            from apps.iam.models import get_client_ip
            AuditLog.objects.create(
                tenant=tenant,
                user=actor,
                actor_email=actor.email if actor else '',
                action=AuditAction.SETTINGS_UPDATED,
                target_type='tenant_settings',
                target_id=str(tenant.id),
                target_name=tenant.name,
                summary='Updated IAM settings',
                before=diff_before,
                after=diff_after,
                ip_address=get_client_ip(request) if request is not None else None,
                request_id=getattr(request, 'request_id', '') or '',
            )
            return

        AuditLog.log_action(
            AuditAction.SETTINGS_UPDATED,
            user=actor,
            tenant=tenant,
            target_type='tenant_settings',
            target_id=tenant.id,
            target_name=tenant.name,
            summary='Updated IAM settings',
            before=diff_before,
            after=diff_after,
            request=request,
        )
