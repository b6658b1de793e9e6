"""
Tests for formation services.

Tests:
- Setup wizard steps, prerequisites and formation milestones
- Setup, formation and operations progress
- Workflow step updates and phase advancement
- Operations gating and the compliance calendar
- Document generation, editing and status changes
- Task CRUD, completion and overdue marking
- Home dashboard summary and the overdue housekeeping task
"""
from datetime import date, timedelta
from unittest.mock import patch

import pytest
from django.utils import timezone

from apps.core.exceptions import BadRequest, InvalidTransition, NotFound, PrerequisitesNotMet
from apps.formation.constants import (
    BankingStatus,
    DocumentStatus,
    EINStatus,
    FormationStatus,
    FormationStep,
    OperatingAgreementStatus,
    TaskPriority,
    TaskStatus,
    WorkflowPhase,
    WorkflowStatus,
)
from apps.formation.models import ComplianceItem, Task
from apps.formation.services import (
    DocumentService,
    HomeService,
    OperationsService,
    ProgressService,
    SetupService,
    TaskService,
    WorkflowService,
)
from apps.formation.services.document_service import BLANK, format_address, render_template
from apps.formation.tests.conftest import ADDRESS
from apps.iam.audit import AuditAction
from apps.iam.models import AuditLog


@pytest.mark.django_db
class TestSetupService:

    def test_status_before_start(self, tenant):
        status = SetupService.status(tenant)

        assert status['has_started'] is False
        assert status['current_step'] == 'welcome'
        assert status['progress'] == 0
        assert status['next_action']['action'] == 'start_setup'

    def test_start_creates_profile_and_audits(self, tenant, owner_user):
        profile = SetupService.start(tenant, 'retail', owner_user, business_name='Corner Shop')

        assert profile.archetype == 'retail'
        assert profile.business_name == 'Corner Shop'
        status = SetupService.status(tenant)
        assert status['current_step'] == 'entity_type'
        assert status['progress'] == 25
        assert status['blockers'] == ['Select an entity type']
        assert AuditLog.objects.filter(
            tenant=tenant, action=AuditAction.BUSINESS_PROFILE_CREATED
        ).count() == 1

    def test_start_log_uses_non_reserved_keys(self, tenant, owner_user):
        with patch('apps.formation.services.setup_service.logger') as mock_logger:
            SetupService.start(tenant, 'retail', owner_user)
            SetupService.start(tenant, 'ecommerce', owner_user)

        first, second = [call.kwargs['extra'] for call in mock_logger.info.call_args_list]
        assert first['profile_created'] is True
        assert second['profile_created'] is False
        assert 'created' not in first

    def test_restart_keeps_single_profile(self, tenant, owner_user):
        SetupService.start(tenant, 'retail', owner_user, business_name='Corner Shop')
        profile = SetupService.start(tenant, 'ecommerce', owner_user)

        assert profile.archetype == 'ecommerce'
        assert profile.business_name == 'Corner Shop'
        assert AuditLog.objects.filter(
            tenant=tenant, action=AuditAction.BUSINESS_PROFILE_UPDATED
        ).count() == 1

    def test_steps_require_a_profile(self, tenant, owner_user):
        with pytest.raises(NotFound):
            SetupService.select_entity_type(tenant, 'llc', owner_user)

    def test_complete_reports_missing_steps(self, tenant, owner_user):
        SetupService.start(tenant, 'retail', owner_user, business_name='Corner Shop')

        with pytest.raises(PrerequisitesNotMet) as exc_info:
            SetupService.complete(tenant, owner_user)

        assert exc_info.value.details['missing'] == ['entity_type', 'state', 'business_info']

    def test_complete_starts_formation_workflow(self, profile, tenant, owner_user):
        profile, workflow = SetupService.complete(tenant, owner_user)

        assert profile.formation_status == FormationStatus.IN_PROGRESS
        assert profile.setup_completed_at is not None
        assert workflow.business_profile_id == profile.id
        assert workflow.current_step == FormationStep.BUSINESS_TYPE
        assert Task.objects.filter(tenant=tenant, workflow=workflow).count() == 4

        status = SetupService.status(tenant)
        assert status['current_step'] == 'formation'
        assert status['progress'] == 70

    def test_complete_twice_reuses_workflow(self, workflow, tenant, owner_user):
        _, again = SetupService.complete(tenant, owner_user)

        assert again.id == workflow.id
        assert Task.objects.filter(tenant=tenant).count() == 4

    def test_filing_without_date_defaults_to_today(self, profile, tenant, owner_user):
        profile = SetupService.update_formation_status(
            tenant, {'formation_status': FormationStatus.FILED}, owner_user
        )

        assert profile.formation_date == timezone.now().date()
        status = SetupService.status(tenant)
        assert status['is_complete'] is True
        assert status['progress'] == 100


@pytest.mark.django_db
class TestProgressService:

    def test_no_profile_is_zero(self):
        assert ProgressService.summary(None) == {
            'overall': 0, 'setup': 0, 'formation': 0, 'operations': 0,
        }

    def test_setup_weights(self, tenant, owner_user):
        profile = SetupService.start(tenant, 'retail', owner_user)
        assert ProgressService.setup_progress(profile) == 25

        profile = SetupService.save_business_info(tenant, {'business_name': 'Corner Shop'}, owner_user)
        assert ProgressService.setup_progress(profile) == 40

    def test_formation_milestones(self, profile, tenant, owner_user):
        assert ProgressService.formation_progress(profile) == 50

        profile = SetupService.update_formation_status(
            tenant, {'formation_status': FormationStatus.FILED}, owner_user
        )
        assert ProgressService.formation_progress(profile) == 75

        profile = SetupService.update_formation_status(
            tenant, {'ein_status': EINStatus.RECEIVED, 'ein': '12-3456789'}, owner_user
        )
        assert ProgressService.formation_progress(profile) == 100

    def test_operations_zero_while_locked(self, profile):
        profile.banking_status = BankingStatus.VERIFIED
        profile.operating_agreement_status = OperatingAgreementStatus.SIGNED

        assert ProgressService.operations_progress(profile) == 0

    def test_operations_progress_accumulates(self, filed_profile, tenant, owner_user):
        assert ProgressService.operations_progress(filed_profile) == 0

        profile = OperationsService.update_banking(tenant, BankingStatus.ACCOUNT_OPENED, owner_user)
        assert ProgressService.operations_progress(profile) == 33

        profile = OperationsService.update_operating_agreement(
            tenant, OperatingAgreementStatus.SIGNED, owner_user
        )
        assert ProgressService.operations_progress(profile) == 66

        OperationsService.setup_compliance(tenant, owner_user)
        profile.refresh_from_db()
        assert ProgressService.operations_progress(profile) == 100


@pytest.mark.django_db
class TestWorkflowService:

    def test_unknown_step_rejected(self, workflow, owner_user):
        with pytest.raises(BadRequest):
            WorkflowService.update_step(workflow, 'notarize', owner_user, status=WorkflowStatus.COMPLETED)

    def test_completing_step_moves_to_next_open_step(self, workflow, owner_user):
        WorkflowService.update_step(
            workflow, FormationStep.BUSINESS_TYPE, owner_user,
            status=WorkflowStatus.COMPLETED, data={'entity_type': 'llc'},
        )

        workflow.refresh_from_db()
        entry = workflow.get_step_data(FormationStep.BUSINESS_TYPE)
        assert entry['status'] == WorkflowStatus.COMPLETED
        assert entry['completed_by'] == str(owner_user.id)
        assert entry['data'] == {'entity_type': 'llc'}
        assert workflow.current_step == FormationStep.BUSINESS_NAME
        assert workflow.status == WorkflowStatus.IN_PROGRESS

    def test_reopening_step_clears_completion(self, workflow, owner_user):
        WorkflowService.update_step(workflow, FormationStep.BUSINESS_TYPE, owner_user, status=WorkflowStatus.COMPLETED)
        WorkflowService.update_step(workflow, FormationStep.BUSINESS_TYPE, owner_user, status=WorkflowStatus.IN_PROGRESS)

        entry = workflow.get_step_data(FormationStep.BUSINESS_TYPE)
        assert entry['completed_at'] is None
        assert workflow.current_step == FormationStep.BUSINESS_TYPE

    def test_step_data_merges(self, workflow, owner_user):
        WorkflowService.update_step(workflow, FormationStep.BUSINESS_NAME, owner_user, data={'name': 'Acme'})
        WorkflowService.update_step(workflow, FormationStep.BUSINESS_NAME, owner_user, data={'available': True})

        assert workflow.get_step_data(FormationStep.BUSINESS_NAME)['data'] == {'name': 'Acme', 'available': True}

    def test_advance_audits_each_phase(self, workflow, tenant, owner_user):
        WorkflowService.advance(workflow, owner_user, notes='Ready')

        log = AuditLog.objects.get(tenant=tenant, action=AuditAction.WORKFLOW_ADVANCED)
        assert log.before == {'current_phase': WorkflowPhase.INTAKE}
        assert log.after == {'current_phase': WorkflowPhase.ENROLLMENT}

    def test_entering_final_phase_completes_workflow(self, workflow, owner_user):
        for _ in range(len(WorkflowPhase.ORDER) - 1):
            WorkflowService.advance(workflow, owner_user)

        workflow.refresh_from_db()
        assert workflow.current_phase == WorkflowPhase.GROWTH
        assert workflow.status == WorkflowStatus.COMPLETED
        assert workflow.completed_at is not None

        with pytest.raises(InvalidTransition):
            WorkflowService.advance(workflow, owner_user)


@pytest.mark.django_db
class TestOperationsService:

    def test_mutations_locked_until_filed(self, profile, tenant, owner_user):
        with pytest.raises(PrerequisitesNotMet):
            OperationsService.update_banking(tenant, BankingStatus.ACCOUNT_OPENED, owner_user)
        with pytest.raises(PrerequisitesNotMet):
            OperationsService.update_operating_agreement(tenant, OperatingAgreementStatus.DRAFTED, owner_user)
        with pytest.raises(PrerequisitesNotMet):
            OperationsService.setup_compliance(tenant, owner_user)

        assert OperationsService.status(tenant)['unlocked'] is False

    def test_ein_alone_unlocks_operations(self, profile, tenant, owner_user):
        SetupService.update_formation_status(tenant, {'ein_status': EINStatus.RECEIVED}, owner_user)

        profile = OperationsService.update_banking(tenant, BankingStatus.ACCOUNT_OPENED, owner_user, bank_name='First Bank')

        assert profile.banking_status == BankingStatus.ACCOUNT_OPENED
        assert profile.bank_name == 'First Bank'

    def test_compliance_calendar_dates(self, filed_profile, tenant, owner_user):
        items = OperationsService.setup_compliance(tenant, owner_user)

        due = {item.item_type: item.due_date for item in items}
        assert due == {
            ComplianceItem.TYPE_BOI_REPORT: date(2026, 5, 30),
            ComplianceItem.TYPE_ANNUAL_REPORT: date(2027, 3, 1),
            ComplianceItem.TYPE_FRANCHISE_TAX: date(2027, 4, 15),
            ComplianceItem.TYPE_REGISTERED_AGENT_RENEWAL: date(2027, 3, 1),
        }
        assert [item.due_date for item in items] == sorted(due.values())

    def test_calendar_clamps_leap_day(self, filed_profile):
        items = OperationsService.build_calendar(filed_profile, date(2028, 2, 29))

        due = {item.item_type: item.due_date for item in items}
        assert due[ComplianceItem.TYPE_ANNUAL_REPORT] == date(2029, 2, 28)
        assert due[ComplianceItem.TYPE_FRANCHISE_TAX] == date(2029, 4, 15)
        assert due[ComplianceItem.TYPE_BOI_REPORT] == date(2028, 5, 29)

    def test_setup_compliance_is_idempotent(self, filed_profile, tenant, owner_user):
        OperationsService.setup_compliance(tenant, owner_user)
        again = OperationsService.setup_compliance(tenant, owner_user)

        assert len(again) == 4
        assert ComplianceItem.objects.filter(tenant=tenant).count() == 4
        assert AuditLog.objects.filter(
            tenant=tenant, action=AuditAction.COMPLIANCE_CALENDAR_CREATED
        ).count() == 1

    def test_sole_proprietorship_has_no_franchise_tax(self, filed_profile):
        filed_profile.business_type = 'sole_proprietorship'

        items = OperationsService.build_calendar(filed_profile, date(2026, 3, 1))

        assert len(items) == 3
        assert ComplianceItem.TYPE_FRANCHISE_TAX not in {item.item_type for item in items}

    def test_completing_annual_item_schedules_next_year(self, filed_profile, tenant, owner_user):
        OperationsService.setup_compliance(tenant, owner_user)
        annual = ComplianceItem.objects.get(tenant=tenant, item_type=ComplianceItem.TYPE_ANNUAL_REPORT)

        item, next_item = OperationsService.complete_item(annual, owner_user)

        assert item.status == ComplianceItem.STATUS_COMPLETED
        assert item.completed_by == owner_user
        assert next_item.due_date == date(2028, 3, 1)
        assert next_item.status == ComplianceItem.STATUS_PENDING

        with pytest.raises(InvalidTransition):
            OperationsService.complete_item(item, owner_user)

    def test_completing_one_time_item_schedules_nothing(self, filed_profile, tenant, owner_user):
        OperationsService.setup_compliance(tenant, owner_user)
        boi = ComplianceItem.objects.get(tenant=tenant, item_type=ComplianceItem.TYPE_BOI_REPORT)

        _, next_item = OperationsService.complete_item(boi, owner_user)

        assert next_item is None

    def test_mark_overdue(self, filed_profile, tenant, owner_user):
        OperationsService.setup_compliance(tenant, owner_user)

        marked = OperationsService.mark_overdue(date(2027, 3, 2))

        assert marked == 3
        assert OperationsService.list_items(tenant, status=ComplianceItem.STATUS_OVERDUE).count() == 3

    def test_get_item_is_tenant_scoped(self, filed_profile, tenant, other_tenant, owner_user):
        item = OperationsService.setup_compliance(tenant, owner_user)[0]

        with pytest.raises(NotFound):
            OperationsService.get_item(other_tenant, item.id)


@pytest.mark.django_db
class TestDocumentService:

    def test_generate_renders_profile_data(self, profile, tenant, owner_user):
        document = DocumentService.generate(tenant, 'operating_agreement', owner_user)

        assert document.version == 1
        assert document.status == DocumentStatus.DRAFT
        assert document.name == 'Operating Agreement - Acme Ventures LLC'
        assert 'Acme Ventures LLC' in document.content
        assert 'a DE limited liability company' in document.content
        assert 'Wilmington, DE, 19801' in document.content
        assert 'Employer Identification Number: ' + BLANK in document.content
        assert document.merge_data['management_type'] == 'member-managed'
        assert document.file_name == 'operating-agreement-acme-ventures-llc.txt'

    def test_custom_data_wins(self, profile, tenant, owner_user):
        document = DocumentService.generate(
            tenant, 'operating_agreement', owner_user,
            custom_data={'member_names': 'Olivia Owner', 'business_name': 'Acme Holdings LLC'},
        )

        assert 'Olivia Owner' in document.content
        assert 'Acme Holdings LLC' in document.content
        assert document.merge_data['member_names'] == 'Olivia Owner'

    def test_unknown_template(self, profile, tenant, owner_user):
        with pytest.raises(NotFound) as exc_info:
            DocumentService.generate(tenant, 'prenup', owner_user)
        assert exc_info.value.message == 'Template not found'

    def test_edit_records_version(self, profile, tenant, owner_user):
        document = DocumentService.generate(tenant, 'banking_resolution', owner_user)

        document = DocumentService.update_content(document, 'Edited text', owner_user, notes='Typo')

        assert document.version == 2
        assert document.content == 'Edited text'
        assert document.version_history[-1]['notes'] == 'Typo'
        assert document.file_size == len('Edited text')

    def test_cannot_edit_during_review(self, profile, tenant, owner_user):
        document = DocumentService.generate(tenant, 'banking_resolution', owner_user)
        DocumentService.transition(document, DocumentStatus.PENDING_REVIEW, owner_user)

        with pytest.raises(InvalidTransition):
            DocumentService.update_content(document, 'Edited text', owner_user)
        with pytest.raises(InvalidTransition):
            DocumentService.regenerate(document, owner_user)

    def test_review_lifecycle(self, profile, tenant, owner_user, member):
        document = DocumentService.generate(tenant, 'operating_agreement', owner_user)
        DocumentService.transition(document, DocumentStatus.PENDING_REVIEW, owner_user)

        document = DocumentService.transition(document, DocumentStatus.APPROVED, member.user, notes='Approved')

        document.refresh_from_db()
        assert document.status == DocumentStatus.APPROVED
        assert document.approved_by == member.user
        assert AuditLog.objects.filter(
            tenant=tenant, action=AuditAction.DOCUMENT_STATUS_CHANGED
        ).count() == 2

    def test_regenerate_after_rejection(self, profile, tenant, owner_user):
        document = DocumentService.generate(tenant, 'operating_agreement', owner_user)
        DocumentService.transition(document, DocumentStatus.PENDING_REVIEW, owner_user)
        DocumentService.transition(document, DocumentStatus.REJECTED, owner_user, notes='Missing members')

        document = DocumentService.regenerate(document, owner_user, custom_data={'member_names': 'Olivia Owner'})

        assert document.status == DocumentStatus.DRAFT
        assert document.version == 2
        assert 'Olivia Owner' in document.content

    def test_available_templates_follow_entity_type(self, profile, tenant, other_tenant):
        keys = [t['key'] for t in DocumentService.available_templates(tenant)]
        assert keys == ['articles_of_organization', 'operating_agreement', 'banking_resolution']

        # No profile yet: every template is offered
        assert len(DocumentService.available_templates(other_tenant)) == 5

    def test_generate_links_workflow_when_present(self, workflow, tenant, owner_user):
        document = DocumentService.generate(tenant, 'articles_of_organization', owner_user)
        assert document.workflow_id == workflow.id


class TestTemplateHelpers:

    def test_render_template_blanks_missing_values(self):
        rendered = render_template('Hello {{ name }}, see {{missing}} and {{empty}}.', {'name': 'Ada', 'empty': ''})
        assert rendered == f'Hello Ada, see {BLANK} and {BLANK}.'

    def test_format_address(self):
        assert format_address(ADDRESS) == '100 Market Street\nSuite 4\nWilmington, DE, 19801'
        assert format_address({'street1': '1 Main St', 'city': 'Dover'}) == '1 Main St\nDover'
        assert format_address(None) == ''


@pytest.mark.django_db
class TestTaskService:

    def test_create_task_defaults(self, tenant, owner_user):
        task = TaskService.create_task(tenant, {'title': 'Order business cards'}, owner_user)

        assert task.status == TaskStatus.PENDING
        assert task.priority == TaskPriority.MEDIUM
        assert task.business_profile is None
        assert task.workflow is None

    def test_create_with_assignee(self, tenant, owner_user, member):
        task = TaskService.create_task(
            tenant, {'title': 'Open bank account', 'assignee_id': member.user.id}, owner_user
        )
        assert task.assignee == member.user

    def test_assignee_must_belong_to_tenant(self, tenant, owner_user, other_tenant):
        outsider = other_tenant.tenant_users.first().user

        with pytest.raises(NotFound) as exc_info:
            TaskService.create_task(tenant, {'title': 'Hire', 'assignee_id': outsider.id}, owner_user)
        assert exc_info.value.message == 'User not found'

    def test_complete_task_once(self, tenant, owner_user):
        task = TaskService.create_task(tenant, {'title': 'File taxes'}, owner_user)

        task = TaskService.complete_task(task, owner_user)

        assert task.status == TaskStatus.COMPLETED
        assert task.completed_by == owner_user
        with pytest.raises(InvalidTransition):
            TaskService.complete_task(task, owner_user)

    def test_status_change_away_from_completed_clears_stamp(self, tenant, owner_user):
        task = TaskService.create_task(tenant, {'title': 'File taxes', 'status': TaskStatus.COMPLETED}, owner_user)
        assert task.completed_at is not None

        task = TaskService.update_task(task, {'status': TaskStatus.IN_PROGRESS}, owner_user)

        assert task.completed_at is None
        assert task.completed_by is None

    def test_delete_is_soft(self, tenant, owner_user):
        task = TaskService.create_task(tenant, {'title': 'Temporary'}, owner_user)

        TaskService.delete_task(task)

        with pytest.raises(NotFound):
            TaskService.get_task(tenant, task.id)
        assert Task.objects_with_deleted.filter(id=task.id).exists()

    def test_list_filters(self, workflow, tenant, owner_user):
        TaskService.create_task(tenant, {'title': 'Logo', 'category': 'general', 'phase': WorkflowPhase.OPERATIONS}, owner_user)

        assert TaskService.list_tasks(tenant).count() == 5
        assert TaskService.list_tasks(tenant, category='general').count() == 1
        assert TaskService.list_tasks(tenant, phase=WorkflowPhase.FORMATION).count() == 4

    def test_mark_overdue(self, tenant, owner_user):
        past = timezone.now() - timedelta(days=1)
        late = TaskService.create_task(tenant, {'title': 'Late', 'due_date': past}, owner_user)
        TaskService.create_task(tenant, {'title': 'Done', 'due_date': past, 'status': TaskStatus.COMPLETED}, owner_user)
        TaskService.create_task(tenant, {'title': 'Future', 'due_date': timezone.now() + timedelta(days=1)}, owner_user)

        assert TaskService.mark_overdue() == 1
        late.refresh_from_db()
        assert late.status == TaskStatus.OVERDUE


@pytest.mark.django_db
class TestHomeService:

    def test_summary_without_profile(self, tenant):
        summary = HomeService.summary(tenant)

        assert summary['has_setup'] is False
        assert summary['business'] is None
        assert summary['next_action']['action'] == 'start_setup'
        assert list(summary['tasks']) == []

    def test_summary_with_workflow(self, workflow, tenant):
        summary = HomeService.summary(tenant)

        assert summary['has_setup'] is True
        assert summary['business']['name'] == 'Acme Ventures LLC'
        assert summary['progress']['formation'] == 50
        assert summary['next_action']['action'] == 'formation'
        tasks = list(summary['tasks'])
        assert len(tasks) == 4
        assert [t.priority for t in tasks[:2]] == [TaskPriority.HIGH, TaskPriority.HIGH]


@pytest.mark.django_db
class TestMarkOverdueItemsTask:

    def test_reports_counts(self, tenant, owner_user):
        from apps.formation.tasks import mark_overdue_items

        TaskService.create_task(
            tenant, {'title': 'Late', 'due_date': timezone.now() - timedelta(hours=2)}, owner_user
        )

        assert mark_overdue_items() == {'tasks': 1, 'compliance_items': 0}
