"""
Audit trail helpers: action names, diffing, querying and CSV export.
"""
import csv
import json
from datetime import timedelta
from io import StringIO

from django.utils import timezone

from apps.core.log_sanitizer import sanitize_dict_for_logging
from apps.iam.models import AuditLog


class AuditAction:
    AUTH_LOGIN_SUCCESS = 'auth_login_success'
    AUTH_LOGIN_FAILED = 'auth_login_failed'
    AUTH_LOGOUT = 'auth_logout'
    MFA_ENABLED = 'mfa_enabled'
    MFA_DISABLED = 'mfa_disabled'
    USER_CREATED = 'user_created'
    USER_UPDATED = 'user_updated'
    USER_DELETED = 'user_deleted'
    USER_LOCKED = 'user_locked'
    USER_UNLOCKED = 'user_unlocked'
    USER_PASSWORD_RESET = 'user_password_reset'
    USER_PASSWORD_CHANGED = 'user_password_changed'
    ROLE_CREATED = 'role_created'
    ROLE_UPDATED = 'role_updated'
    ROLE_DELETED = 'role_deleted'
    ROLE_ASSIGNED = 'role_assigned'
    GROUP_CREATED = 'group_created'
    GROUP_UPDATED = 'group_updated'
    GROUP_DELETED = 'group_deleted'
    GROUP_MEMBER_ADDED = 'group_member_added'
    GROUP_MEMBER_REMOVED = 'group_member_removed'
    GROUP_ROLES_UPDATED = 'group_roles_updated'
    API_KEY_CREATED = 'api_key_created'
    API_KEY_REVOKED = 'api_key_revoked'
    ACCESS_REQUEST_CREATED = 'access_request_created'
    ACCESS_REQUEST_APPROVED = 'access_request_approved'
    ACCESS_REQUEST_REJECTED = 'access_request_rejected'
    ACCESS_REVIEW_CREATED = 'access_review_created'
    ACCESS_REVIEW_DECISION = 'access_review_decision'
    ACCESS_REVIEW_CLOSED = 'access_review_closed'
    SETTINGS_UPDATED = 'settings_updated'
    BUSINESS_PROFILE_CREATED = 'business_profile_created'
    BUSINESS_PROFILE_UPDATED = 'business_profile_updated'
    WORKFLOW_ADVANCED = 'workflow_advanced'
    DOCUMENT_GENERATED = 'document_generated'
    DOCUMENT_STATUS_CHANGED = 'document_status_changed'
    COMPLIANCE_CALENDAR_CREATED = 'compliance_calendar_created'


EXPORT_LIMIT = 10000

EXPORT_HEADERS = [
    'Timestamp',
    'Actor Email',
    'Actor Type',
    'Action',
    'Target Type',
    'Target ID',
    'Target Name',
    'Summary',
    'IP Address',
    'Request ID',
]


def _canonical(value):
    return json.dumps(value, sort_keys=True, default=str)


def compute_diff(before, after):
    """
    Return ``(before, after)`` dicts holding only keys whose value changed.

    Keys missing on one side are omitted from that side. Sensitive keys are
    redacted.
    """
    before_diff = {}
    after_diff = {}
    missing = object()
    for key in set(before) | set(after):
        old = before.get(key, missing)
        new = after.get(key, missing)
        if old is missing or new is missing or _canonical(old) != _canonical(new):
            if old is not missing:
                before_diff[key] = old
            if new is not missing:
                after_diff[key] = new
    return sanitize_dict_for_logging(before_diff), sanitize_dict_for_logging(after_diff)


class AuditService:
    """Read side of the audit log."""

    @classmethod
    def filter_logs(cls, tenant, filters):
        """
        Apply query filters to a tenant's audit logs.

        ``filters`` keys: actor_id, actor_email (case-insensitive contains),
        action, target_type, target_id, start_date, end_date.
        """
        qs = AuditLog.objects.for_tenant(tenant)

        if filters.get('actor_id'):
            qs = qs.filter(user_id=filters['actor_id'])
        if filters.get('actor_email'):
            qs = qs.filter(actor_email__icontains=filters['actor_email'])
        if filters.get('action'):
            qs = qs.filter(action=filters['action'])
        if filters.get('target_type'):
            qs = qs.filter(target_type=filters['target_type'])
        if filters.get('target_id'):
            qs = qs.filter(target_id=str(filters['target_id']))
        if filters.get('start_date'):
            qs = qs.filter(created_at__gte=filters['start_date'])
        if filters.get('end_date'):
            qs = qs.filter(created_at__lte=filters['end_date'])

        return qs.order_by('-created_at', '-id')

    @classmethod
    def export_csv(cls, tenant, filters):
        """Render matching logs (newest first, capped) as CSV text."""
        logs = cls.filter_logs(tenant, filters)[:EXPORT_LIMIT]

        output = StringIO()
        writer = csv.writer(output, lineterminator='\n')
        writer.writerow(EXPORT_HEADERS)
        for log in logs:
            writer.writerow([
                log.created_at.isoformat(),
                log.actor_email,
                log.actor_type,
                log.action,
                log.target_type,
                log.target_id,
                log.target_name,
                log.summary,
                log.ip_address or '',
                log.request_id,
            ])
        return output.getvalue()

    @classmethod
    def export_filename(cls, tenant):
        return f"audit-logs-{tenant.id}-{timezone.now().date().isoformat()}.csv"

    @classmethod
    def distinct_actions(cls, tenant):
        return sorted(
            AuditLog.objects.for_tenant(tenant)
            .order_by().values_list('action', flat=True).distinct()
        )

    @classmethod
    def distinct_target_types(cls, tenant):
        return sorted(
            t for t in AuditLog.objects.for_tenant(tenant)
            .order_by().values_list('target_type', flat=True).distinct()
            if t
        )

    @classmethod
    def purge_expired(cls, tenant, retention_days, now=None):
        """Delete logs older than the retention window; returns the count."""
        cutoff = (now or timezone.now()) - timedelta(days=retention_days)
        deleted, _ = AuditLog.objects.for_tenant(tenant).older_than(cutoff).delete()
        return deleted

