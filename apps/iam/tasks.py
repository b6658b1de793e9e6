"""
Periodic IAM housekeeping tasks.
"""
import logging
from celery import shared_task
from django.utils import timezone
from apps.core.tasks import LoggedTask
from apps.iam.audit import AuditService
from apps.iam.services_access import AccessRequestService
from apps.tenants.models import Tenant, TenantSettings

logger = logging.getLogger(__name__)


@shared_task(base=LoggedTask, name='iam.expire_access_requests')
def expire_access_requests():
    """
    Expire pending access requests older than ACCESS_REQUEST_EXPIRY_DAYS.

    Returns:
        dict: number of requests expired
    """
    expired = AccessRequestService.expire_stale()
    if expired:
        logger.info(f"Expired {expired} stale access request(s)")
    return {'expired': expired}


@shared_task(base=LoggedTask, name='iam.purge_expired_audit_logs')
def purge_expired_audit_logs():
    """
    Delete audit logs past each tenant's retention window.

    Returns:
        dict: tenants processed and total rows deleted
    """
    now = timezone.now()
    total = 0
    tenants = 0

    for tenant in Tenant.objects.all().iterator():
        settings_row = TenantSettings.objects.for_tenant(tenant)
        deleted = AuditService.purge_expired(tenant, settings_row.audit_retention_days, now=now)
        if deleted:
            logger.info(
                f"Purged {deleted} audit log(s) for tenant {tenant.slug}",
                extra={'tenant_id': str(tenant.id), 'retention_days': settings_row.audit_retention_days}
            )
        total += deleted
        tenants += 1

    return {'tenants': tenants, 'deleted': total}
