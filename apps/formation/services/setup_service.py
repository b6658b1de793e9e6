"""
Business setup wizard.

The wizard walks a tenant through archetype, entity type, formation state
and business information, then hands off to the formation workflow.
"""
import logging

from django.db import transaction
from django.utils import timezone

from apps.core.exceptions import NotFound, PrerequisitesNotMet
from apps.formation.constants import ARCHETYPES, FormationStatus
from apps.formation.models import BusinessProfile
from apps.iam.audit import AuditAction, compute_diff
from apps.iam.models import AuditLog

logger = logging.getLogger(__name__)

NEXT_ACTIONS = {
    'welcome': {
        'label': 'Start Business Setup',
        'action': 'start_setup',
        'description': 'Begin by telling us about your business',
    },
    'archetype': {
        'label': 'Select Business Type',
        'action': 'select_archetype',
        'description': 'Choose the archetype that best describes your business',
    },
    'entity_type': {
        'label': 'Select Entity Type',
        'action': 'select_entity_type',
        'description': 'Choose your legal entity structure (LLC, Corporation, etc.)',
    },
    'state': {
        'label': 'Select Formation State',
        'action': 'select_state',
        'description': 'Choose the state where you will form your business',
    },
    'business_info': {
        'label': 'Complete Business Information',
        'action': 'complete_info',
        'description': 'Provide your business address and contact details',
    },
    'formation': {
        'label': 'Continue Formation',
        'action': 'formation',
        'description': 'Complete the formation process',
    },
    'complete': {
        'label': 'Set Up Operations',
        'action': 'operations',
        'description': 'Open a bank account and set up your compliance calendar',
    },
}

BLOCKERS = {
    'archetype': 'Select a business archetype',
    'entity_type': 'Select an entity type',
    'state': 'Select your formation state',
    'business_info': 'Complete business address',
    'formation': 'Complete business formation',
}

PROFILE_FIELDS = (
    'business_name', 'dba_name', 'email', 'phone', 'archetype', 'business_type',
    'formation_state', 'business_address', 'registered_agent', 'formation_status',
    'sos_filing_number', 'formation_date', 'ein_status', 'ein',
)


def _snapshot(profile):
    return {
        field: (value.isoformat() if hasattr(value, 'isoformat') else value)
        for field, value in ((f, getattr(profile, f)) for f in PROFILE_FIELDS)
    }


class SetupService:
    """
    Service for the setup wizard and the business profile it builds.
    """

    @staticmethod
    def get_profile(tenant):
        return BusinessProfile.objects.filter(tenant=tenant).first()

    @classmethod
    def require_profile(cls, tenant):
        profile = cls.get_profile(tenant)
        if profile is None:
            raise NotFound('Business profile', details={'hint': 'Start setup first'})
        return profile

    @staticmethod
    def current_step(profile):
        """Return (step, progress) for the first unanswered wizard step."""
        if not profile.archetype:
            return 'archetype', 10
        if not profile.business_type:
            return 'entity_type', 25
        if not profile.formation_state:
            return 'state', 40
        if not profile.has_address:
            return 'business_info', 55
        if profile.formation_status in (FormationStatus.NOT_STARTED, FormationStatus.IN_PROGRESS):
            return 'formation', 70
        return 'complete', 100

    @classmethod
    def status(cls, tenant):
        profile = cls.get_profile(tenant)
        if profile is None:
            return {
                'has_started': False,
                'is_complete': False,
                'current_step': 'welcome',
                'progress': 0,
                'blockers': ['No business profile created yet'],
                'next_action': NEXT_ACTIONS['welcome'],
            }

        step, progress = cls.current_step(profile)
        blockers = [BLOCKERS[step]] if step in BLOCKERS else []

        return {
            'has_started': True,
            'is_complete': step == 'complete',
            'current_step': step,
            'progress': progress,
            'business_profile_id': str(profile.id),
            'archetype': profile.archetype or None,
            'entity_type': profile.business_type or None,
            'state': profile.formation_state or None,
            'setup_completed_at': profile.setup_completed_at,
            'blockers': blockers,
            'next_action': NEXT_ACTIONS[step],
        }

    @classmethod
    def _save(cls, profile, before, user, request, summary, created=False):
        profile.save()
        audit_before, audit_after = compute_diff(before, _snapshot(profile))
        AuditLog.log_action(
            action=AuditAction.BUSINESS_PROFILE_CREATED if created else AuditAction.BUSINESS_PROFILE_UPDATED,
            user=user,
            tenant=profile.tenant,
            target_type='business_profile',
            target_id=profile.id,
            target_name=profile.business_name,
            summary=summary,
            before=audit_before,
            after=audit_after,
            request=request,
        )
        return profile

    @classmethod
    @transaction.atomic
    def start(cls, tenant, archetype, user, business_name='', email='', request=None):
        """Create (or restart) the business profile with an archetype."""
        profile = cls.get_profile(tenant)
        created = profile is None
        if created:
            profile = BusinessProfile(tenant=tenant)
        before = {} if created else _snapshot(profile)

        profile.archetype = archetype
        if business_name:
            profile.business_name = business_name
        if email:
            profile.email = email

        logger.info(
            f"Setup started for tenant {tenant.slug}",
            extra={'tenant_id': str(tenant.id), 'archetype': archetype, 'profile_created': created}
        )
        return cls._save(profile, before, user, request, f"Setup started ({ARCHETYPES[archetype][0]})", created)

    @classmethod
    def select_entity_type(cls, tenant, entity_type, user, request=None):
        profile = cls.require_profile(tenant)
        before = _snapshot(profile)
        profile.business_type = entity_type
        return cls._save(profile, before, user, request, f"Entity type set to {entity_type}")

    @classmethod
    def select_state(cls, tenant, state, user, request=None):
        profile = cls.require_profile(tenant)
        before = _snapshot(profile)
        profile.formation_state = state
        return cls._save(profile, before, user, request, f"Formation state set to {state}")

    @classmethod
    def save_business_info(cls, tenant, data, user, request=None):
        profile = cls.require_profile(tenant)
        before = _snapshot(profile)
        for field in ('business_name', 'dba_name', 'email', 'phone', 'business_address', 'registered_agent'):
            if field in data:
                setattr(profile, field, data[field])
        return cls._save(profile, before, user, request, 'Business information updated')

    @classmethod
    def missing_prerequisites(cls, profile):
        checks = (
            ('archetype', bool(profile.archetype)),
            ('entity_type', bool(profile.business_type)),
            ('state', bool(profile.formation_state)),
            ('business_info', bool(profile.business_name) and profile.has_address),
        )
        return [name for name, ok in checks if not ok]

    @classmethod
    @transaction.atomic
    def complete(cls, tenant, user, request=None):
        """
        Finish the wizard and start the formation workflow.

        Raises:
            PrerequisitesNotMet: an earlier wizard step is unanswered
        """
        from apps.formation.services.workflow_service import WorkflowService

        profile = cls.require_profile(tenant)
        missing = cls.missing_prerequisites(profile)
        if missing:
            raise PrerequisitesNotMet(
                'Complete archetype, entity type, state and business information first',
                details={'missing': missing}
            )

        before = _snapshot(profile)
        if profile.formation_status == FormationStatus.NOT_STARTED:
            profile.formation_status = FormationStatus.IN_PROGRESS
        if profile.setup_completed_at is None:
            profile.setup_completed_at = timezone.now()
        cls._save(profile, before, user, request, 'Setup completed')

        workflow = WorkflowService.get_or_create(tenant, user=user)
        return profile, workflow

    @classmethod
    def update_formation_status(cls, tenant, data, user, request=None):
        """Record SOS filing and EIN milestones."""
        profile = cls.require_profile(tenant)
        before = _snapshot(profile)

        for field in ('formation_status', 'sos_filing_number', 'formation_date', 'ein_status', 'ein'):
            if field in data:
                setattr(profile, field, data[field])

        if profile.formation_filed and profile.formation_date is None:
            profile.formation_date = timezone.now().date()

        return cls._save(profile, before, user, request, 'Formation status updated')
