"""
Periodic formation housekeeping tasks.
"""
import logging
from celery import shared_task
from django.utils import timezone
from apps.core.tasks import LoggedTask
from apps.formation.services import OperationsService, TaskService

logger = logging.getLogger(__name__)


@shared_task(base=LoggedTask, name='formation.mark_overdue_items')
def mark_overdue_items():
    """
    Flag open tasks and pending compliance items whose due date has passed.

    Returns:
        dict: counts of tasks and compliance items marked overdue
    """
    now = timezone.now()
    tasks = TaskService.mark_overdue(now)
    compliance_items = OperationsService.mark_overdue(now.date())

    if tasks or compliance_items:
        logger.info(
            f"Marked {tasks} task(s) and {compliance_items} compliance item(s) overdue"
        )
    return {'tasks': tasks, 'compliance_items': compliance_items}
