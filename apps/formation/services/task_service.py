"""
Task management service.
"""
import logging

from django.db import transaction
from django.utils import timezone

from apps.core.exceptions import InvalidTransition, NotFound
from apps.formation.constants import TaskStatus
from apps.formation.models import Task
from apps.formation.services.setup_service import SetupService
from apps.formation.services.workflow_service import WorkflowService
from apps.iam.models import TenantUser

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    'title', 'description', 'category', 'status', 'priority', 'due_date',
    'phase', 'step', 'is_required', 'is_blocking', 'order', 'evidence', 'metadata',
)


class TaskService:
    """
    Service for tenant tasks.
    """

    @classmethod
    def list_tasks(cls, tenant, status=None, category=None, phase=None, assignee_id=None):
        tasks = Task.objects.for_tenant(tenant).select_related('assignee')
        if status:
            tasks = tasks.filter(status=status)
        if category:
            tasks = tasks.filter(category=category)
        if phase:
            tasks = tasks.filter(phase=phase)
        if assignee_id:
            tasks = tasks.filter(assignee_id=assignee_id)
        return tasks.order_by('order', 'due_date', 'created_at')

    @classmethod
    def get_task(cls, tenant, task_id):
        task = Task.objects.for_tenant(tenant).filter(id=task_id).first()
        if task is None:
            raise NotFound('Task')
        return task

    @classmethod
    def _resolve_assignee(cls, tenant, assignee_id):
        if assignee_id is None:
            return None
        membership = TenantUser.objects.for_tenant(tenant).filter(
            user_id=assignee_id, is_active=True
        ).select_related('user').first()
        if membership is None:
            raise NotFound('User')
        return membership.user

    @classmethod
    def _apply_status(cls, task, status, user):
        if status == TaskStatus.COMPLETED and task.status != TaskStatus.COMPLETED:
            task.mark_completed(user)
        elif status != TaskStatus.COMPLETED:
            task.status = status
            task.completed_at = None
            task.completed_by = None

    @classmethod
    @transaction.atomic
    def create_task(cls, tenant, data, user):
        profile = SetupService.get_profile(tenant)
        task = Task(
            tenant=tenant,
            business_profile=profile,
            workflow=WorkflowService.get_workflow(tenant),
        )
        for field in EDITABLE_FIELDS:
            if field in data and field != 'status':
                setattr(task, field, data[field])
        if 'assignee_id' in data:
            task.assignee = cls._resolve_assignee(tenant, data['assignee_id'])
        cls._apply_status(task, data.get('status', TaskStatus.PENDING), user)
        task.save()

        logger.info(
            f"Task created: {task.title}",
            extra={'tenant_id': str(tenant.id), 'task_id': str(task.id)}
        )
        return task

    @classmethod
    def update_task(cls, task, data, user):
        for field in EDITABLE_FIELDS:
            if field in data and field != 'status':
                setattr(task, field, data[field])
        if 'assignee_id' in data:
            task.assignee = cls._resolve_assignee(task.tenant, data['assignee_id'])
        if 'status' in data:
            cls._apply_status(task, data['status'], user)
        task.save()
        return task

    @classmethod
    def complete_task(cls, task, user):
        if task.status == TaskStatus.COMPLETED:
            raise InvalidTransition('Task is already completed')
        task.mark_completed(user)
        task.save(update_fields=['status', 'completed_at', 'completed_by', 'updated_at'])
        return task

    @classmethod
    def delete_task(cls, task):
        task.delete()

    @classmethod
    def mark_overdue(cls, now=None):
        return Task.objects.past_due(now or timezone.now()).update(status=TaskStatus.OVERDUE)
