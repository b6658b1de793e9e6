"""
Formation serializers for REST API endpoints.

Provides serialization for:
- Setup wizard input and the business profile
- The formation workflow
- Operations and the compliance calendar
- Documents and their version history
- Tasks
"""
from rest_framework import serializers

from apps.formation.constants import (
    ARCHETYPES,
    US_STATES,
    BankingStatus,
    BusinessType,
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
from apps.formation.models import BusinessProfile, ComplianceItem, DocumentInstance, Task, WorkflowInstance


# ===== SETUP WIZARD =====

class SetupStartSerializer(serializers.Serializer):
    archetype = serializers.ChoiceField(choices=list(ARCHETYPES))
    business_name = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    email = serializers.EmailField(required=False, allow_blank=True, default='')


class EntityTypeSerializer(serializers.Serializer):
    entity_type = serializers.ChoiceField(choices=BusinessType.ALL)


class FormationStateSerializer(serializers.Serializer):
    state = serializers.CharField(min_length=2, max_length=2)

    def validate_state(self, value):
        value = value.upper()
        if value not in US_STATES:
            raise serializers.ValidationError('Invalid US state code')
        return value


class AddressSerializer(serializers.Serializer):
    street1 = serializers.CharField(max_length=200)
    street2 = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')
    city = serializers.CharField(max_length=100)
    state = serializers.CharField(min_length=2, max_length=2)
    zip_code = serializers.RegexField(r'^\d{5}(-\d{4})?$')

    def validate_state(self, value):
        value = value.upper()
        if value not in US_STATES:
            raise serializers.ValidationError('Invalid US state code')
        return value


class RegisteredAgentSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=['self', 'commercial', 'individual'])
    name = serializers.CharField(max_length=200)
    address = AddressSerializer()


class BusinessInfoSerializer(serializers.Serializer):
    business_name = serializers.CharField(max_length=200, required=False)
    dba_name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    email = serializers.EmailField(required=False)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    business_address = AddressSerializer(required=False)
    registered_agent = RegisteredAgentSerializer(required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('At least one field is required')
        return attrs


class FormationStatusUpdateSerializer(serializers.Serializer):
    formation_status = serializers.ChoiceField(choices=FormationStatus.ALL, required=False)
    sos_filing_number = serializers.CharField(max_length=50, required=False, allow_blank=True)
    formation_date = serializers.DateField(required=False, allow_null=True)
    ein_status = serializers.ChoiceField(choices=EINStatus.ALL, required=False)
    ein = serializers.RegexField(r'^\d{2}-\d{7}$', required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError('At least one field is required')
        return attrs


class BusinessProfileSerializer(serializers.ModelSerializer):
    class Meta:
        model = BusinessProfile
        fields = [
            'id', 'business_name', 'dba_name', 'email', 'phone', 'archetype',
            'business_type', 'formation_state', 'business_address', 'registered_agent',
            'formation_status', 'sos_filing_number', 'formation_date', 'ein_status', 'ein',
            'banking_status', 'bank_name', 'operating_agreement_status',
            'compliance_calendar_status', 'setup_completed_at', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


# ===== WORKFLOW =====

class WorkflowSerializer(serializers.ModelSerializer):
    progress = serializers.SerializerMethodField()

    class Meta:
        model = WorkflowInstance
        fields = [
            'id', 'business_profile', 'workflow_type', 'current_phase', 'current_step',
            'status', 'phase_history', 'step_data', 'progress', 'started_at', 'completed_at',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_progress(self, obj):
        return obj.get_phase_progress()


class StepUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=WorkflowStatus.ALL, required=False)
    data = serializers.DictField(required=False)
    validation_errors = serializers.ListField(
        child=serializers.CharField(max_length=500), required=False
    )


class WorkflowAdvanceSerializer(serializers.Serializer):
    notes = serializers.CharField(max_length=1000, required=False, allow_blank=True, default='')


# ===== OPERATIONS =====

class BankingUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=BankingStatus.ALL)
    bank_name = serializers.CharField(max_length=200, required=False, allow_blank=True)


class OperatingAgreementUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OperatingAgreementStatus.ALL)


class ComplianceItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = ComplianceItem
        fields = [
            'id', 'item_type', 'title', 'description', 'due_date', 'recurrence',
            'status', 'completed_at', 'completed_by', 'created_at',
        ]
        read_only_fields = fields


# ===== DOCUMENTS =====

class DocumentListSerializer(serializers.ModelSerializer):
    class Meta:
        model = DocumentInstance
        fields = [
            'id', 'name', 'document_type', 'status', 'template_key', 'template_version',
            'version', 'file_name', 'mime_type', 'file_size', 'generated_at',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class DocumentDetailSerializer(serializers.ModelSerializer):
    class Meta:
        model = DocumentInstance
        fields = [
            'id', 'name', 'document_type', 'status', 'template_key', 'template_version',
            'business_profile', 'workflow', 'content', 'merge_data', 'version',
            'file_name', 'mime_type', 'file_size',
            'generated_at', 'generated_by', 'reviewed_at', 'reviewed_by', 'review_notes',
            'approved_at', 'approved_by', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class DocumentGenerateSerializer(serializers.Serializer):
    template_key = serializers.CharField(max_length=100)
    name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    custom_data = serializers.DictField(
        child=serializers.CharField(allow_blank=True, max_length=5000), required=False, default=dict
    )


class DocumentRegenerateSerializer(serializers.Serializer):
    custom_data = serializers.DictField(
        child=serializers.CharField(allow_blank=True, max_length=5000), required=False, default=dict
    )


class DocumentContentSerializer(serializers.Serializer):
    content = serializers.CharField(allow_blank=False, trim_whitespace=False)
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')


class DocumentTransitionSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=DocumentStatus.ALL)
    notes = serializers.CharField(max_length=2000, required=False, allow_blank=True, default='')


class DocumentQuerySerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=DocumentType.ALL, required=False)
    status = serializers.ChoiceField(choices=DocumentStatus.ALL, required=False)


# ===== TASKS =====

class TaskSerializer(serializers.ModelSerializer):
    assignee_email = serializers.EmailField(source='assignee.email', read_only=True, default=None)
    is_overdue = serializers.SerializerMethodField()

    class Meta:
        model = Task
        fields = [
            'id', 'title', 'description', 'category', 'status', 'priority', 'due_date',
            'completed_at', 'completed_by', 'assignee', 'assignee_email', 'phase', 'step',
            'is_required', 'is_blocking', 'order', 'evidence', 'metadata', 'is_overdue',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_is_overdue(self, obj):
        return obj.is_overdue()


class TaskEvidenceSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=100)
    type = serializers.ChoiceField(choices=['file', 'link', 'note'])
    name = serializers.CharField(max_length=200)
    url = serializers.URLField(required=False)
    content = serializers.CharField(max_length=5000, required=False)


class TaskWriteSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200)
    description = serializers.CharField(max_length=2000, required=False, allow_blank=True)
    category = serializers.ChoiceField(choices=TaskCategory.ALL, required=False)
    status = serializers.ChoiceField(choices=TaskStatus.ALL, required=False)
    priority = serializers.ChoiceField(choices=TaskPriority.ALL, required=False)
    due_date = serializers.DateTimeField(required=False, allow_null=True)
    assignee_id = serializers.UUIDField(required=False, allow_null=True)
    phase = serializers.ChoiceField(choices=WorkflowPhase.ORDER, required=False)
    step = serializers.ChoiceField(choices=FormationStep.ORDER, required=False, allow_blank=True)
    is_required = serializers.BooleanField(required=False)
    is_blocking = serializers.BooleanField(required=False)
    order = serializers.IntegerField(min_value=0, required=False)
    evidence = TaskEvidenceSerializer(many=True, required=False)
    metadata = serializers.DictField(required=False)


class TaskQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=TaskStatus.ALL, required=False)
    category = serializers.ChoiceField(choices=TaskCategory.ALL, required=False)
    phase = serializers.ChoiceField(choices=WorkflowPhase.ORDER, required=False)
    assignee_id = serializers.UUIDField(required=False)
