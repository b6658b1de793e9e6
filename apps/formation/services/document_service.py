"""
Document generation and lifecycle.

Documents are rendered from the built-in templates by replacing ``{{key}}``
merge fields with business profile data. Every content change appends an
entry to the document's version history.
"""
import logging
import re

from django.db import transaction
from django.utils import timezone
from django.utils.text import slugify

from apps.core.exceptions import InvalidTransition, NotFound
from apps.formation.constants import DocumentStatus
from apps.formation.document_templates import get_template, templates_for
from apps.formation.models import DocumentInstance
from apps.formation.services.setup_service import SetupService
from apps.formation.services.workflow_service import WorkflowService
from apps.iam.audit import AuditAction
from apps.iam.models import AuditLog

logger = logging.getLogger(__name__)

BLANK = '_______________'
MERGE_FIELD = re.compile(r'\{\{\s*([^}]+?)\s*\}\}')


def format_address(address):
    if not address:
        return ''
    lines = [address.get('street1'), address.get('street2')]
    city_state_zip = ', '.join(
        part for part in (address.get('city'), address.get('state'), address.get('zip_code')) if part
    )
    lines.append(city_state_zip)
    return '\n'.join(line for line in lines if line)


def render_template(content, merge_data):
    """Replace merge fields; missing or empty values become blanks."""
    def replace(match):
        value = merge_data.get(match.group(1))
        return str(value) if value not in (None, '') else BLANK
    return MERGE_FIELD.sub(replace, content)


class DocumentService:
    """
    Service for DocumentInstance generation, editing and status changes.
    """

    @classmethod
    def available_templates(cls, tenant):
        profile = SetupService.get_profile(tenant)
        business_type = profile.business_type if profile else None
        return [
            {
                'key': t['key'],
                'name': t['name'],
                'description': t['description'],
                'document_type': t['document_type'],
                'version': t['version'],
            }
            for t in templates_for(business_type)
        ]

    @classmethod
    def build_merge_data(cls, template, profile, custom_data=None):
        """
        Build merge values. Custom data wins over profile data, which wins
        over field defaults.
        """
        custom_data = custom_data or {}
        data = {}

        for key, source_path, default in template['merge_fields']:
            value = ''
            if source_path:
                value = getattr(profile, source_path, '') or ''
            data[key] = value or default

        today = timezone.now().date()
        data['date'] = f"{today:%B} {today.day}, {today.year}"
        data['year'] = str(today.year)
        data['effective_date'] = data['date']
        data['business_address'] = format_address(profile.business_address)

        agent = profile.registered_agent or {}
        data['registered_agent_name'] = agent.get('name', '')
        data['registered_agent_address'] = format_address(agent.get('address'))

        for key, value in custom_data.items():
            if value not in (None, ''):
                data[key] = str(value)
        return data

    @classmethod
    def list_documents(cls, tenant, document_type=None, status=None):
        documents = DocumentInstance.objects.for_tenant(tenant)
        if document_type:
            documents = documents.filter(document_type=document_type)
        if status:
            documents = documents.filter(status=status)
        return documents.order_by('-created_at')

    @classmethod
    def get_document(cls, tenant, document_id):
        document = DocumentInstance.objects.for_tenant(tenant).filter(id=document_id).first()
        if document is None:
            raise NotFound('Document')
        return document

    @classmethod
    @transaction.atomic
    def generate(cls, tenant, template_key, user, custom_data=None, name=None, request=None):
        template = get_template(template_key)
        if template is None:
            raise NotFound('Template')

        profile = SetupService.require_profile(tenant)
        merge_data = cls.build_merge_data(template, profile, custom_data)
        content = render_template(template['content'], merge_data)
        name = name or f"{template['name']} - {profile.business_name or 'Draft'}"

        document = DocumentInstance(
            tenant=tenant,
            template_key=template_key,
            template_version=template['version'],
            business_profile=profile,
            workflow=WorkflowService.get_workflow(tenant),
            name=name[:200],
            document_type=template['document_type'],
            merge_data=merge_data,
            file_name=f"{slugify(name)}.txt",
            mime_type='text/plain',
            file_size=len(content.encode('utf-8')),
            generated_at=timezone.now(),
            generated_by=user,
        )
        document.add_version_entry(content, user, notes='Initial generation')
        document.save()

        AuditLog.log_action(
            action=AuditAction.DOCUMENT_GENERATED,
            user=user,
            tenant=tenant,
            target_type='document',
            target_id=document.id,
            target_name=document.name,
            summary=f"Generated {template['name']}",
            after={'template_key': template_key, 'version': document.version},
            request=request,
        )
        logger.info(
            f"Document generated: {template_key}",
            extra={'tenant_id': str(tenant.id), 'document_id': str(document.id)}
        )
        return document

    @classmethod
    def _require_editable(cls, document):
        if document.status not in DocumentStatus.EDITABLE:
            raise InvalidTransition(
                f"Document cannot be edited while {document.status}",
                details={'status': document.status}
            )

    @classmethod
    def update_content(cls, document, content, user, notes=''):
        """Replace the content, recording a new version."""
        cls._require_editable(document)
        document.add_version_entry(content, user, notes=notes)
        document.file_size = len(content.encode('utf-8'))
        document.save()
        return document

    @classmethod
    def regenerate(cls, document, user, custom_data=None):
        """Re-render from the template with current profile data."""
        cls._require_editable(document)
        template = get_template(document.template_key)
        if template is None:
            raise NotFound('Template')

        merge_data = cls.build_merge_data(template, document.business_profile, custom_data)
        content = render_template(template['content'], merge_data)

        document.merge_data = merge_data
        document.template_version = template['version']
        document.generated_at = timezone.now()
        document.generated_by = user
        document.status = DocumentStatus.DRAFT
        document.add_version_entry(content, user, notes='Regenerated')
        document.file_size = len(content.encode('utf-8'))
        document.save()
        return document

    @classmethod
    def transition(cls, document, status, user, notes='', request=None):
        previous = document.status
        document.transition_to(status, user, notes=notes)
        document.save()

        AuditLog.log_action(
            action=AuditAction.DOCUMENT_STATUS_CHANGED,
            user=user,
            tenant=document.tenant,
            target_type='document',
            target_id=document.id,
            target_name=document.name,
            summary=f"Document moved from {previous} to {status}",
            before={'status': previous},
            after={'status': status},
            request=request,
        )
        return document
