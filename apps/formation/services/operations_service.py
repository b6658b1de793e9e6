"""
Post-formation operations: banking, operating agreement and the
compliance calendar.
"""
import logging

from dateutil.relativedelta import relativedelta
from django.db import transaction
from django.utils import timezone

from apps.core.exceptions import InvalidTransition, NotFound, PrerequisitesNotMet
from apps.formation.constants import BusinessType, ComplianceCalendarStatus
from apps.formation.models import ComplianceItem
from apps.formation.services.progress_service import ProgressService
from apps.formation.services.setup_service import SetupService
from apps.iam.audit import AuditAction
from apps.iam.models import AuditLog

logger = logging.getLogger(__name__)

# (item_type, title, description, offset from formation date, recurrence, business types or None for all)
COMPLIANCE_SCHEDULE = [
    (
        ComplianceItem.TYPE_BOI_REPORT,
        'Beneficial Ownership Information report',
        'File the BOI report with FinCEN.',
        relativedelta(days=90),
        ComplianceItem.RECURRENCE_ONCE,
        None,
    ),
    (
        ComplianceItem.TYPE_ANNUAL_REPORT,
        'Annual report',
        'File the annual report with the Secretary of State.',
        relativedelta(years=1),
        ComplianceItem.RECURRENCE_ANNUAL,
        None,
    ),
    (
        ComplianceItem.TYPE_FRANCHISE_TAX,
        'Franchise tax',
        'Pay the state franchise tax.',
        relativedelta(years=1, month=4, day=15),
        ComplianceItem.RECURRENCE_ANNUAL,
        (BusinessType.LLC, BusinessType.CORPORATION),
    ),
    (
        ComplianceItem.TYPE_REGISTERED_AGENT_RENEWAL,
        'Registered agent renewal',
        'Renew the registered agent service.',
        relativedelta(years=1),
        ComplianceItem.RECURRENCE_ANNUAL,
        None,
    ),
]


class OperationsService:
    """
    Service for the operations checklist that follows formation.

    Every mutation requires formation to be filed or approved, or the EIN
    to be received.
    """

    @classmethod
    def _require_unlocked(cls, profile):
        if not profile.operations_unlocked:
            raise PrerequisitesNotMet(
                'Formation must be filed or the EIN received before setting up operations'
            )

    @classmethod
    def status(cls, tenant):
        profile = SetupService.require_profile(tenant)
        return {
            'unlocked': profile.operations_unlocked,
            'progress': ProgressService.operations_progress(profile),
            'banking': {
                'status': profile.banking_status,
                'bank_name': profile.bank_name,
            },
            'operating_agreement': {
                'status': profile.operating_agreement_status,
            },
            'compliance': {
                'status': profile.compliance_calendar_status,
                'upcoming': ComplianceItem.objects.for_tenant(tenant).upcoming()[:5],
            },
        }

    @classmethod
    def _audit(cls, profile, user, summary, before, after, request, action=AuditAction.BUSINESS_PROFILE_UPDATED):
        AuditLog.log_action(
            action=action,
            user=user,
            tenant=profile.tenant,
            target_type='business_profile',
            target_id=profile.id,
            target_name=profile.business_name,
            summary=summary,
            before=before,
            after=after,
            request=request,
        )

    @classmethod
    def update_banking(cls, tenant, status, user, bank_name=None, request=None):
        profile = SetupService.require_profile(tenant)
        cls._require_unlocked(profile)

        before = {'banking_status': profile.banking_status, 'bank_name': profile.bank_name}
        profile.banking_status = status
        if bank_name is not None:
            profile.bank_name = bank_name
        profile.save(update_fields=['banking_status', 'bank_name', 'updated_at'])

        cls._audit(
            profile, user, f"Banking status set to {status}", before,
            {'banking_status': profile.banking_status, 'bank_name': profile.bank_name}, request
        )
        return profile

    @classmethod
    def update_operating_agreement(cls, tenant, status, user, request=None):
        profile = SetupService.require_profile(tenant)
        cls._require_unlocked(profile)

        before = {'operating_agreement_status': profile.operating_agreement_status}
        profile.operating_agreement_status = status
        profile.save(update_fields=['operating_agreement_status', 'updated_at'])

        cls._audit(
            profile, user, f"Operating agreement status set to {status}", before,
            {'operating_agreement_status': status}, request
        )
        return profile

    @classmethod
    def list_items(cls, tenant, status=None):
        items = ComplianceItem.objects.for_tenant(tenant)
        if status:
            items = items.filter(status=status)
        return items.order_by('due_date')

    @classmethod
    def get_item(cls, tenant, item_id):
        item = ComplianceItem.objects.for_tenant(tenant).filter(id=item_id).first()
        if item is None:
            raise NotFound('Compliance item')
        return item

    @classmethod
    def build_calendar(cls, profile, base_date):
        """Unsaved ComplianceItems for ``profile`` dated from ``base_date``."""
        items = []
        for item_type, title, description, offset, recurrence, business_types in COMPLIANCE_SCHEDULE:
            if business_types and profile.business_type not in business_types:
                continue
            items.append(ComplianceItem(
                tenant=profile.tenant,
                business_profile=profile,
                item_type=item_type,
                title=title,
                description=description,
                due_date=base_date + offset,
                recurrence=recurrence,
            ))
        return items

    @classmethod
    @transaction.atomic
    def setup_compliance(cls, tenant, user, request=None):
        """
        Generate the compliance calendar relative to the formation date.

        Idempotent: an already active calendar is returned unchanged.
        """
        profile = SetupService.require_profile(tenant)
        cls._require_unlocked(profile)

        if profile.compliance_calendar_status == ComplianceCalendarStatus.ACTIVE:
            return list(cls.list_items(tenant))

        base_date = profile.formation_date or timezone.now().date()
        items = ComplianceItem.objects.bulk_create(cls.build_calendar(profile, base_date))

        profile.compliance_calendar_status = ComplianceCalendarStatus.ACTIVE
        profile.save(update_fields=['compliance_calendar_status', 'updated_at'])

        cls._audit(
            profile, user, f"Compliance calendar created with {len(items)} item(s)",
            {'compliance_calendar_status': ComplianceCalendarStatus.NOT_STARTED},
            {'compliance_calendar_status': ComplianceCalendarStatus.ACTIVE},
            request,
            action=AuditAction.COMPLIANCE_CALENDAR_CREATED,
        )
        logger.info(
            f"Compliance calendar created for tenant {tenant.slug}",
            extra={'tenant_id': str(tenant.id), 'items': len(items), 'base_date': base_date.isoformat()}
        )
        return sorted(items, key=lambda item: item.due_date)

    @classmethod
    @transaction.atomic
    def complete_item(cls, item, user):
        """
        Mark an item completed. Annual items schedule next year's occurrence.

        Returns:
            tuple: (item, next_item or None)
        """
        if item.status == ComplianceItem.STATUS_COMPLETED:
            raise InvalidTransition('Compliance item is already completed')

        item.status = ComplianceItem.STATUS_COMPLETED
        item.completed_at = timezone.now()
        item.completed_by = user
        item.save(update_fields=['status', 'completed_at', 'completed_by', 'updated_at'])

        next_item = None
        if item.recurrence == ComplianceItem.RECURRENCE_ANNUAL:
            next_item = ComplianceItem.objects.create(
                tenant=item.tenant,
                business_profile=item.business_profile,
                item_type=item.item_type,
                title=item.title,
                description=item.description,
                due_date=item.due_date + relativedelta(years=1),
                recurrence=item.recurrence,
            )
        return item, next_item

    @classmethod
    def mark_overdue(cls, today=None):
        today = today or timezone.now().date()
        return ComplianceItem.objects.past_due(today).update(status=ComplianceItem.STATUS_OVERDUE)
