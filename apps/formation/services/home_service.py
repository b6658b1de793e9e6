"""
Home dashboard: one call summarising where the business stands.
"""
from django.db.models import Case, IntegerField, Value, When

from apps.formation.constants import TaskPriority, TaskStatus
from apps.formation.models import ComplianceItem, Task
from apps.formation.services.progress_service import ProgressService
from apps.formation.services.setup_service import NEXT_ACTIONS, SetupService

OPEN_TASK_LIMIT = 5
UPCOMING_COMPLIANCE_LIMIT = 5


class HomeService:

    @classmethod
    def open_tasks(cls, tenant, limit=OPEN_TASK_LIMIT):
        """Open tasks, most urgent first then by due date."""
        rank = Case(
            *[When(priority=p, then=Value(r)) for p, r in TaskPriority.RANK.items()],
            default=Value(len(TaskPriority.RANK)),
            output_field=IntegerField(),
        )
        return (
            Task.objects.for_tenant(tenant)
            .filter(status__in=TaskStatus.OPEN)
            .annotate(priority_rank=rank)
            .order_by('priority_rank', 'due_date', 'order')[:limit]
        )

    @classmethod
    def summary(cls, tenant):
        profile = SetupService.get_profile(tenant)
        upcoming = ComplianceItem.objects.for_tenant(tenant).upcoming()[:UPCOMING_COMPLIANCE_LIMIT]

        if profile is None:
            return {
                'has_setup': False,
                'business': None,
                'progress': ProgressService.summary(None),
                'next_action': NEXT_ACTIONS['welcome'],
                'blockers': [],
                'tasks': Task.objects.none(),
                'upcoming_compliance': upcoming,
            }

        setup_status = SetupService.status(tenant)
        return {
            'has_setup': True,
            'business': {
                'name': profile.business_name,
                'type': profile.business_type or None,
                'state': profile.formation_state or None,
                'archetype': profile.archetype or None,
                'formation_status': profile.formation_status,
                'ein_status': profile.ein_status,
            },
            'progress': ProgressService.summary(profile),
            'next_action': setup_status['next_action'],
            'blockers': setup_status['blockers'],
            'tasks': cls.open_tasks(tenant),
            'upcoming_compliance': upcoming,
        }
