"""
Signals for tenant lifecycle events.
"""
import logging
from django.db.models.signals import post_save
from django.dispatch import receiver

from apps.tenants.models import Tenant, TenantSettings

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Tenant)
def provision_tenant(sender, instance, created, **kwargs):
    """
    Give every new tenant a settings row with defaults and its system roles.
    """
    if not created:
        return

    TenantSettings.objects.get_or_create(tenant=instance)

    from apps.iam.services import RoleService
    RoleService.seed_system_roles(instance)

    logger.info(
        f"Provisioned tenant {instance.slug}",
        extra={'tenant_id': str(instance.id)}
    )
