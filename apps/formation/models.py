"""
Formation models: business profile, workflow, documents, tasks and the
compliance calendar.

Phase history, step data and document version history are embedded JSON
lists on their parent rows. Timestamps inside them are ISO-8601 strings
and user references are user id strings.
"""
from django.conf import settings
from django.db import models
from django.utils import timezone

from apps.core.exceptions import InvalidTransition
from apps.core.models import BaseModel, BaseModelManager, BaseModelQuerySet, TenantScopedModel
from apps.formation.constants import (
    BankingStatus,
    BusinessType,
    ComplianceCalendarStatus,
    DocumentStatus,
    DocumentType,
    EINStatus,
    FormationStatus,
    FormationStep,
    OperatingAgreementStatus,
    TaskCategory,
    TaskPriority,
    TaskStatus,
    WorkflowPhase,
    WorkflowStatus,
)


def _now_iso():
    return timezone.now().isoformat()


def _user_ref(user):
    return str(user.id) if user is not None else None


class BusinessProfile(BaseModel):
    """
    The business being formed. Exactly one per tenant.

    Setup wizard answers and the formation, EIN and operations milestones
    are tracked here; progress percentages are derived from these fields.
    """

    tenant = models.OneToOneField(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='business_profile'
    )
    business_name = models.CharField(max_length=200, blank=True)
    dba_name = models.CharField(max_length=200, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    archetype = models.CharField(
        max_length=50,
        blank=True,
        help_text="Business archetype key chosen in the setup wizard"
    )
    business_type = models.CharField(
        max_length=30,
        choices=BusinessType.CHOICES,
        blank=True
    )
    formation_state = models.CharField(
        max_length=2,
        blank=True,
        help_text="Two-letter US state code"
    )
    business_address = models.JSONField(
        default=dict,
        blank=True,
        help_text="{street1, street2, city, state, zip_code}"
    )
    registered_agent = models.JSONField(
        default=dict,
        blank=True,
        help_text="{type, name, address}"
    )

    formation_status = models.CharField(
        max_length=20,
        choices=FormationStatus.CHOICES,
        default=FormationStatus.NOT_STARTED
    )
    sos_filing_number = models.CharField(max_length=50, blank=True)
    formation_date = models.DateField(null=True, blank=True)
    ein_status = models.CharField(
        max_length=20,
        choices=EINStatus.CHOICES,
        default=EINStatus.NOT_STARTED
    )
    ein = models.CharField(max_length=10, blank=True)

    banking_status = models.CharField(
        max_length=20,
        choices=BankingStatus.CHOICES,
        default=BankingStatus.NOT_STARTED
    )
    bank_name = models.CharField(max_length=200, blank=True)
    operating_agreement_status = models.CharField(
        max_length=20,
        choices=OperatingAgreementStatus.CHOICES,
        default=OperatingAgreementStatus.NOT_STARTED
    )
    compliance_calendar_status = models.CharField(
        max_length=20,
        choices=ComplianceCalendarStatus.CHOICES,
        default=ComplianceCalendarStatus.NOT_STARTED
    )

    setup_completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'business_profiles'

    def __str__(self):
        return self.business_name or f"Business profile for {self.tenant_id}"

    @property
    def has_address(self):
        return bool((self.business_address or {}).get('street1'))

    @property
    def formation_filed(self):
        return self.formation_status in FormationStatus.FILED_OR_APPROVED

    @property
    def operations_unlocked(self):
        """Operations open once formation is filed or the EIN is received."""
        return self.formation_filed or self.ein_status == EINStatus.RECEIVED


class WorkflowInstance(TenantScopedModel):
    """
    A tenant's formation workflow.

    ``phase_history`` entries: {phase, status, entered_at, completed_at,
    completed_by, notes}. ``step_data`` entries: {step, status, data,
    validation_errors, completed_at, completed_by}.
    """

    TYPE_FORMATION = 'formation'
    TYPE_CHOICES = [(TYPE_FORMATION, 'Formation')]

    business_profile = models.ForeignKey(
        BusinessProfile,
        on_delete=models.CASCADE,
        related_name='workflows'
    )
    workflow_type = models.CharField(
        max_length=30,
        choices=TYPE_CHOICES,
        default=TYPE_FORMATION
    )
    current_phase = models.CharField(
        max_length=20,
        choices=WorkflowPhase.CHOICES,
        default=WorkflowPhase.INTAKE,
        db_index=True
    )
    current_step = models.CharField(
        max_length=30,
        choices=FormationStep.CHOICES,
        blank=True
    )
    status = models.CharField(
        max_length=20,
        choices=WorkflowStatus.CHOICES,
        default=WorkflowStatus.NOT_STARTED,
        db_index=True
    )
    phase_history = models.JSONField(default=list, blank=True)
    step_data = models.JSONField(default=list, blank=True)
    started_at = models.DateTimeField(default=timezone.now)
    completed_at = models.DateTimeField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta(TenantScopedModel.Meta):
        db_table = 'workflow_instances'
        indexes = [
            models.Index(fields=['tenant', 'current_phase', 'status'], name='workflow_phase_status_idx'),
        ]

    def __str__(self):
        return f"{self.workflow_type} workflow ({self.current_phase})"

    def get_step_data(self, step):
        """Return the entry for ``step`` or None."""
        for entry in self.step_data:
            if entry.get('step') == step:
                return entry
        return None

    def set_step_data(self, step, patch):
        """Merge ``patch`` into the step's entry, creating it when missing."""
        existing = self.get_step_data(step)
        base = existing or {'step': step, 'status': WorkflowStatus.NOT_STARTED, 'data': {}}
        merged = {**base, **patch, 'step': step}

        if existing is None:
            self.step_data = list(self.step_data) + [merged]
        else:
            self.step_data = [merged if e.get('step') == step else e for e in self.step_data]
        return merged

    def get_phase_progress(self):
        total = len(FormationStep.ORDER)
        completed = sum(
            1 for step in FormationStep.ORDER
            if (self.get_step_data(step) or {}).get('status') == WorkflowStatus.COMPLETED
        )
        return {
            'completed': completed,
            'total': total,
            'percentage': round(completed / total * 100),
        }

    def enter_phase(self, phase, notes=''):
        self.current_phase = phase
        self.phase_history = list(self.phase_history) + [{
            'phase': phase,
            'status': WorkflowStatus.IN_PROGRESS,
            'entered_at': _now_iso(),
            'completed_at': None,
            'completed_by': None,
            'notes': (notes or '')[:1000],
        }]

    def advance_phase(self, user=None, notes=''):
        """
        Close the current phase and enter the next one.

        Raises:
            InvalidTransition: the workflow is already in the last phase
        """
        index = WorkflowPhase.ORDER.index(self.current_phase)
        if index + 1 >= len(WorkflowPhase.ORDER):
            raise InvalidTransition(
                f"Workflow is already in the final phase ({self.current_phase})"
            )

        history = list(self.phase_history)
        for entry in reversed(history):
            if entry.get('phase') == self.current_phase and not entry.get('completed_at'):
                entry['status'] = WorkflowStatus.COMPLETED
                entry['completed_at'] = _now_iso()
                entry['completed_by'] = _user_ref(user)
                if notes:
                    entry['notes'] = notes[:1000]
                break
        self.phase_history = history

        self.enter_phase(WorkflowPhase.ORDER[index + 1])
        if self.status == WorkflowStatus.NOT_STARTED:
            self.status = WorkflowStatus.IN_PROGRESS
        return self.current_phase


class DocumentInstance(TenantScopedModel):
    """
    A generated business document.

    ``version_history`` entries: {version, content, created_at, created_by,
    notes}. ``version`` always equals the highest entry version.
    """

    template_key = models.CharField(max_length=100, blank=True)
    template_version = models.PositiveIntegerField(default=1)
    business_profile = models.ForeignKey(
        BusinessProfile,
        on_delete=models.CASCADE,
        related_name='documents'
    )
    workflow = models.ForeignKey(
        WorkflowInstance,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='documents'
    )
    name = models.CharField(max_length=200)
    document_type = models.CharField(
        max_length=40,
        choices=DocumentType.CHOICES,
        db_index=True
    )
    status = models.CharField(
        max_length=20,
        choices=DocumentStatus.CHOICES,
        default=DocumentStatus.DRAFT,
        db_index=True
    )
    content = models.TextField(blank=True)
    merge_data = models.JSONField(default=dict, blank=True)

    file_name = models.CharField(max_length=255, blank=True)
    mime_type = models.CharField(max_length=100, blank=True)
    file_size = models.PositiveIntegerField(null=True, blank=True)

    generated_at = models.DateTimeField(null=True, blank=True)
    generated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    review_notes = models.CharField(max_length=2000, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    version = models.PositiveIntegerField(default=0)
    version_history = models.JSONField(default=list, blank=True)

    class Meta(TenantScopedModel.Meta):
        db_table = 'document_instances'
        indexes = [
            models.Index(fields=['tenant', 'document_type', 'status'], name='document_type_status_idx'),
        ]

    def __str__(self):
        return self.name

    def get_current_version(self):
        if not self.version_history:
            return 0
        return max(entry['version'] for entry in self.version_history)

    def add_version_entry(self, content, user, notes=''):
        version = self.get_current_version() + 1
        self.version_history = list(self.version_history) + [{
            'version': version,
            'content': content,
            'created_at': _now_iso(),
            'created_by': _user_ref(user),
            'notes': (notes or '')[:500],
        }]
        self.version = version
        self.content = content
        return version

    def can_transition_to(self, status):
        if status == DocumentStatus.ARCHIVED:
            return self.status != DocumentStatus.ARCHIVED
        return status in DocumentStatus.TRANSITIONS.get(self.status, set())

    def transition_to(self, status, user, notes=''):
        """
        Move to ``status``, stamping review/approval fields.

        Raises:
            InvalidTransition: the move is not allowed from the current status
        """
        if not self.can_transition_to(status):
            raise InvalidTransition(
                f"Cannot transition document from {self.status} to {status}",
                details={'from': self.status, 'to': status}
            )

        now = timezone.now()
        if status in (DocumentStatus.APPROVED, DocumentStatus.REJECTED):
            self.reviewed_at = now
            self.reviewed_by = user
            if notes:
                self.review_notes = notes[:2000]
        if status == DocumentStatus.APPROVED:
            self.approved_at = now
            self.approved_by = user

        self.status = status


class TaskQuerySet(BaseModelQuerySet):

    def open(self):
        return self.filter(status__in=TaskStatus.OPEN)

    def past_due(self, now=None):
        now = now or timezone.now()
        return self.filter(
            status__in=(TaskStatus.PENDING, TaskStatus.IN_PROGRESS),
            due_date__lt=now,
        )


class Task(TenantScopedModel):
    """A unit of work in the formation or operations journey."""

    workflow = models.ForeignKey(
        WorkflowInstance,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='tasks'
    )
    business_profile = models.ForeignKey(
        BusinessProfile,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='tasks'
    )
    title = models.CharField(max_length=200)
    description = models.CharField(max_length=2000, blank=True)
    category = models.CharField(
        max_length=30,
        choices=TaskCategory.CHOICES,
        default=TaskCategory.GENERAL,
        db_index=True
    )
    status = models.CharField(
        max_length=20,
        choices=TaskStatus.CHOICES,
        default=TaskStatus.PENDING,
        db_index=True
    )
    priority = models.CharField(
        max_length=10,
        choices=TaskPriority.CHOICES,
        default=TaskPriority.MEDIUM
    )
    due_date = models.DateTimeField(null=True, blank=True, db_index=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    completed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    assignee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='assigned_tasks'
    )
    phase = models.CharField(
        max_length=20,
        choices=WorkflowPhase.CHOICES,
        default=WorkflowPhase.FORMATION
    )
    step = models.CharField(max_length=30, choices=FormationStep.CHOICES, blank=True)
    is_required = models.BooleanField(default=False)
    is_blocking = models.BooleanField(default=False)
    order = models.PositiveIntegerField(default=0)
    evidence = models.JSONField(default=list, blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    objects = BaseModelManager.from_queryset(TaskQuerySet)()

    class Meta(TenantScopedModel.Meta):
        db_table = 'tasks'
        ordering = ['order', 'due_date', 'created_at']
        indexes = [
            models.Index(fields=['tenant', 'status'], name='tasks_tenant_status_idx'),
            models.Index(fields=['tenant', 'due_date', 'status'], name='tasks_tenant_due_idx'),
        ]

    def __str__(self):
        return self.title

    def is_overdue(self, now=None):
        if not self.due_date:
            return False
        if self.status in (TaskStatus.COMPLETED, TaskStatus.SKIPPED):
            return False
        return (now or timezone.now()) > self.due_date

    def mark_completed(self, user):
        self.status = TaskStatus.COMPLETED
        self.completed_at = timezone.now()
        self.completed_by = user


class ComplianceItemQuerySet(BaseModelQuerySet):

    def upcoming(self):
        return self.filter(
            status__in=(ComplianceItem.STATUS_PENDING, ComplianceItem.STATUS_OVERDUE),
        ).order_by('due_date')

    def past_due(self, today=None):
        today = today or timezone.now().date()
        return self.filter(status=ComplianceItem.STATUS_PENDING, due_date__lt=today)


class ComplianceItem(TenantScopedModel):
    """One deadline on the compliance calendar."""

    TYPE_ANNUAL_REPORT = 'annual_report'
    TYPE_FRANCHISE_TAX = 'franchise_tax'
    TYPE_BOI_REPORT = 'boi_report'
    TYPE_REGISTERED_AGENT_RENEWAL = 'registered_agent_renewal'
    TYPE_CHOICES = [
        (TYPE_ANNUAL_REPORT, 'Annual Report'),
        (TYPE_FRANCHISE_TAX, 'Franchise Tax'),
        (TYPE_BOI_REPORT, 'Beneficial Ownership Information Report'),
        (TYPE_REGISTERED_AGENT_RENEWAL, 'Registered Agent Renewal'),
    ]

    STATUS_PENDING = 'pending'
    STATUS_COMPLETED = 'completed'
    STATUS_OVERDUE = 'overdue'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_OVERDUE, 'Overdue'),
    ]

    RECURRENCE_ONCE = 'once'
    RECURRENCE_ANNUAL = 'annual'
    RECURRENCE_CHOICES = [
        (RECURRENCE_ONCE, 'Once'),
        (RECURRENCE_ANNUAL, 'Annual'),
    ]

    business_profile = models.ForeignKey(
        BusinessProfile,
        on_delete=models.CASCADE,
        related_name='compliance_items'
    )
    item_type = models.CharField(max_length=40, choices=TYPE_CHOICES)
    title = models.CharField(max_length=200)
    description = models.CharField(max_length=1000, blank=True)
    due_date = models.DateField(db_index=True)
    recurrence = models.CharField(
        max_length=10,
        choices=RECURRENCE_CHOICES,
        default=RECURRENCE_ANNUAL
    )
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING,
        db_index=True
    )
    completed_at = models.DateTimeField(null=True, blank=True)
    completed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    objects = BaseModelManager.from_queryset(ComplianceItemQuerySet)()

    class Meta(TenantScopedModel.Meta):
        db_table = 'compliance_items'
        ordering = ['due_date']

    def __str__(self):
        return f"{self.title} ({self.due_date})"
