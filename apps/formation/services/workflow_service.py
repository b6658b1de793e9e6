"""
Formation workflow service.
"""
import logging

from django.db import transaction
from django.utils import timezone

from apps.core.exceptions import BadRequest
from apps.formation.constants import (
    FormationStep,
    TaskCategory,
    TaskPriority,
    WorkflowPhase,
    WorkflowStatus,
)
from apps.formation.models import Task, WorkflowInstance
from apps.iam.audit import AuditAction
from apps.iam.models import AuditLog

logger = logging.getLogger(__name__)

# Tasks created alongside a new formation workflow
DEFAULT_TASKS = [
    {
        'title': 'File formation documents with the Secretary of State',
        'category': TaskCategory.SOS_FILING,
        'step': FormationStep.SOS_FILING,
        'priority': TaskPriority.HIGH,
        'is_required': True,
        'is_blocking': True,
    },
    {
        'title': 'Apply for an EIN with the IRS',
        'category': TaskCategory.EIN_APPLICATION,
        'step': FormationStep.EIN_APPLICATION,
        'priority': TaskPriority.HIGH,
        'is_required': True,
        'is_blocking': False,
    },
    {
        'title': 'Prepare the operating agreement',
        'category': TaskCategory.DOCUMENT_PREPARATION,
        'step': FormationStep.OPERATING_AGREEMENT,
        'priority': TaskPriority.MEDIUM,
        'is_required': True,
        'is_blocking': False,
    },
    {
        'title': 'Review and submit formation details',
        'category': TaskCategory.ADVISOR_REVIEW,
        'step': FormationStep.REVIEW_SUBMIT,
        'priority': TaskPriority.MEDIUM,
        'is_required': False,
        'is_blocking': False,
    },
]


class WorkflowService:
    """
    Service for the tenant's formation WorkflowInstance.
    """

    @classmethod
    def get_workflow(cls, tenant):
        return WorkflowInstance.objects.filter(
            tenant=tenant,
            workflow_type=WorkflowInstance.TYPE_FORMATION,
        ).order_by('-created_at').first()

    @classmethod
    @transaction.atomic
    def get_or_create(cls, tenant, user=None):
        """
        Return the formation workflow, creating it (and its default tasks)
        on first access.
        """
        from apps.formation.services.setup_service import SetupService

        workflow = cls.get_workflow(tenant)
        if workflow is not None:
            return workflow

        profile = SetupService.require_profile(tenant)
        workflow = WorkflowInstance(
            tenant=tenant,
            business_profile=profile,
            current_step=FormationStep.ORDER[0],
        )
        workflow.enter_phase(WorkflowPhase.INTAKE)
        workflow.save()

        Task.objects.bulk_create([
            Task(
                tenant=tenant,
                workflow=workflow,
                business_profile=profile,
                phase=WorkflowPhase.FORMATION,
                order=index,
                **template
            )
            for index, template in enumerate(DEFAULT_TASKS)
        ])

        logger.info(
            f"Formation workflow created for tenant {tenant.slug}",
            extra={'tenant_id': str(tenant.id), 'workflow_id': str(workflow.id)}
        )
        return workflow

    @staticmethod
    def _next_open_step(workflow):
        for step in FormationStep.ORDER:
            if (workflow.get_step_data(step) or {}).get('status') != WorkflowStatus.COMPLETED:
                return step
        return FormationStep.ORDER[-1]

    @classmethod
    def update_step(cls, workflow, step, user, status=None, data=None, validation_errors=None):
        """
        Merge step data. Marking a step completed stamps completed_at/by.
        """
        if step not in FormationStep.ORDER:
            raise BadRequest(f"Unknown formation step: {step}")

        existing = workflow.get_step_data(step) or {}
        patch = {}
        if data is not None:
            patch['data'] = {**existing.get('data', {}), **data}
        if validation_errors is not None:
            patch['validation_errors'] = list(validation_errors)
        if status is not None:
            patch['status'] = status
            if status == WorkflowStatus.COMPLETED:
                patch['completed_at'] = timezone.now().isoformat()
                patch['completed_by'] = str(user.id) if user else None
            else:
                patch['completed_at'] = None
                patch['completed_by'] = None

        workflow.set_step_data(step, patch)
        workflow.current_step = cls._next_open_step(workflow)
        if workflow.status == WorkflowStatus.NOT_STARTED:
            workflow.status = WorkflowStatus.IN_PROGRESS
        workflow.save(update_fields=['step_data', 'current_step', 'status', 'updated_at'])
        return workflow

    @classmethod
    def advance(cls, workflow, user, notes='', request=None):
        """
        Move the workflow into its next phase.

        Entering the final phase marks the workflow completed.
        """
        previous = workflow.current_phase
        workflow.advance_phase(user=user, notes=notes)
        if workflow.current_phase == WorkflowPhase.ORDER[-1]:
            workflow.status = WorkflowStatus.COMPLETED
            workflow.completed_at = timezone.now()
        workflow.save()

        AuditLog.log_action(
            action=AuditAction.WORKFLOW_ADVANCED,
            user=user,
            tenant=workflow.tenant,
            target_type='workflow',
            target_id=workflow.id,
            target_name=workflow.workflow_type,
            summary=f"Workflow advanced from {previous} to {workflow.current_phase}",
            before={'current_phase': previous},
            after={'current_phase': workflow.current_phase},
            request=request,
        )
        return workflow
