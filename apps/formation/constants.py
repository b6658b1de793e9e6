"""
Enumerations shared by the formation models, services and serializers.

Phase and step tuples are ordered: workflow phases advance in the order
below and formation progress counts the steps in order.
"""


class WorkflowPhase:
    INTAKE = 'intake'
    ENROLLMENT = 'enrollment'
    FORMATION = 'formation'
    DOCUMENTS = 'documents'
    REVIEW = 'review'
    COMPLETION = 'completion'
    OPERATIONS = 'operations'
    GROWTH = 'growth'

    ORDER = (INTAKE, ENROLLMENT, FORMATION, DOCUMENTS, REVIEW, COMPLETION, OPERATIONS, GROWTH)
    CHOICES = [(p, p.replace('_', ' ').title()) for p in ORDER]


class WorkflowStatus:
    NOT_STARTED = 'not_started'
    IN_PROGRESS = 'in_progress'
    PENDING_REVIEW = 'pending_review'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    COMPLETED = 'completed'
    BLOCKED = 'blocked'

    ALL = (NOT_STARTED, IN_PROGRESS, PENDING_REVIEW, APPROVED, REJECTED, COMPLETED, BLOCKED)
    CHOICES = [(s, s.replace('_', ' ').title()) for s in ALL]


class FormationStep:
    BUSINESS_TYPE = 'business_type'
    BUSINESS_NAME = 'business_name'
    REGISTERED_AGENT = 'registered_agent'
    BUSINESS_ADDRESS = 'business_address'
    MEMBERS_OFFICERS = 'members_officers'
    SOS_FILING = 'sos_filing'
    EIN_APPLICATION = 'ein_application'
    OPERATING_AGREEMENT = 'operating_agreement'
    REVIEW_SUBMIT = 'review_submit'

    ORDER = (
        BUSINESS_TYPE, BUSINESS_NAME, REGISTERED_AGENT, BUSINESS_ADDRESS, MEMBERS_OFFICERS,
        SOS_FILING, EIN_APPLICATION, OPERATING_AGREEMENT, REVIEW_SUBMIT,
    )
    CHOICES = [(s, s.replace('_', ' ').title()) for s in ORDER]


class BusinessType:
    LLC = 'llc'
    CORPORATION = 'corporation'
    SOLE_PROPRIETORSHIP = 'sole_proprietorship'
    PARTNERSHIP = 'partnership'
    NONPROFIT = 'nonprofit'
    COOPERATIVE = 'cooperative'

    ALL = (LLC, CORPORATION, SOLE_PROPRIETORSHIP, PARTNERSHIP, NONPROFIT, COOPERATIVE)
    CHOICES = [
        (LLC, 'LLC'),
        (CORPORATION, 'Corporation'),
        (SOLE_PROPRIETORSHIP, 'Sole Proprietorship'),
        (PARTNERSHIP, 'Partnership'),
        (NONPROFIT, 'Nonprofit'),
        (COOPERATIVE, 'Cooperative'),
    ]


class DocumentType:
    ARTICLES_OF_ORGANIZATION = 'articles_of_organization'
    ARTICLES_OF_INCORPORATION = 'articles_of_incorporation'
    OPERATING_AGREEMENT = 'operating_agreement'
    BYLAWS = 'bylaws'
    EIN_CONFIRMATION = 'ein_confirmation'
    SOS_FILING_CONFIRMATION = 'sos_filing_confirmation'
    BUSINESS_PLAN = 'business_plan'
    MEMBER_CERTIFICATE = 'member_certificate'
    RESOLUTION = 'resolution'
    CUSTOM = 'custom'

    ALL = (
        ARTICLES_OF_ORGANIZATION, ARTICLES_OF_INCORPORATION, OPERATING_AGREEMENT, BYLAWS,
        EIN_CONFIRMATION, SOS_FILING_CONFIRMATION, BUSINESS_PLAN, MEMBER_CERTIFICATE,
        RESOLUTION, CUSTOM,
    )
    CHOICES = [(t, t.replace('_', ' ').title()) for t in ALL]


class DocumentStatus:
    DRAFT = 'draft'
    PENDING_REVIEW = 'pending_review'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    FINAL = 'final'
    ARCHIVED = 'archived'

    ALL = (DRAFT, PENDING_REVIEW, APPROVED, REJECTED, FINAL, ARCHIVED)
    CHOICES = [(s, s.replace('_', ' ').title()) for s in ALL]

    # Any non-archived status may also move to ARCHIVED
    TRANSITIONS = {
        DRAFT: {PENDING_REVIEW},
        PENDING_REVIEW: {APPROVED, REJECTED},
        REJECTED: {DRAFT},
        APPROVED: {FINAL},
        FINAL: set(),
        ARCHIVED: set(),
    }

    EDITABLE = (DRAFT, REJECTED)


class TaskCategory:
    SOS_FILING = 'sos_filing'
    EIN_APPLICATION = 'ein_application'
    DOCUMENT_PREPARATION = 'document_preparation'
    COMPLIANCE = 'compliance'
    ADVISOR_REVIEW = 'advisor_review'
    GENERAL = 'general'

    ALL = (SOS_FILING, EIN_APPLICATION, DOCUMENT_PREPARATION, COMPLIANCE, ADVISOR_REVIEW, GENERAL)
    CHOICES = [(c, c.replace('_', ' ').title()) for c in ALL]


class TaskStatus:
    PENDING = 'pending'
    IN_PROGRESS = 'in_progress'
    COMPLETED = 'completed'
    BLOCKED = 'blocked'
    SKIPPED = 'skipped'
    OVERDUE = 'overdue'

    ALL = (PENDING, IN_PROGRESS, COMPLETED, BLOCKED, SKIPPED, OVERDUE)
    CHOICES = [(s, s.replace('_', ' ').title()) for s in ALL]
    OPEN = (PENDING, IN_PROGRESS, BLOCKED, OVERDUE)


class TaskPriority:
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    URGENT = 'urgent'

    ALL = (LOW, MEDIUM, HIGH, URGENT)
    CHOICES = [(p, p.title()) for p in ALL]
    RANK = {URGENT: 0, HIGH: 1, MEDIUM: 2, LOW: 3}


class FormationStatus:
    NOT_STARTED = 'not_started'
    IN_PROGRESS = 'in_progress'
    FILED = 'filed'
    APPROVED = 'approved'
    REJECTED = 'rejected'

    ALL = (NOT_STARTED, IN_PROGRESS, FILED, APPROVED, REJECTED)
    CHOICES = [(s, s.replace('_', ' ').title()) for s in ALL]
    FILED_OR_APPROVED = (FILED, APPROVED)


class EINStatus:
    NOT_STARTED = 'not_started'
    APPLIED = 'applied'
    RECEIVED = 'received'

    ALL = (NOT_STARTED, APPLIED, RECEIVED)
    CHOICES = [(s, s.replace('_', ' ').title()) for s in ALL]


class BankingStatus:
    NOT_STARTED = 'not_started'
    ACCOUNT_OPENED = 'account_opened'
    VERIFIED = 'verified'

    ALL = (NOT_STARTED, ACCOUNT_OPENED, VERIFIED)
    CHOICES = [(s, s.replace('_', ' ').title()) for s in ALL]
    DONE = (ACCOUNT_OPENED, VERIFIED)


class OperatingAgreementStatus:
    NOT_STARTED = 'not_started'
    DRAFTED = 'drafted'
    SIGNED = 'signed'
    FILED = 'filed'

    ALL = (NOT_STARTED, DRAFTED, SIGNED, FILED)
    CHOICES = [(s, s.replace('_', ' ').title()) for s in ALL]
    DONE = (SIGNED, FILED)


class ComplianceCalendarStatus:
    NOT_STARTED = 'not_started'
    ACTIVE = 'active'

    CHOICES = [(NOT_STARTED, 'Not Started'), (ACTIVE, 'Active')]


# key -> (name, recommended entity types)
ARCHETYPES = {
    'professional_services': ('Professional Services', [BusinessType.LLC, BusinessType.SOLE_PROPRIETORSHIP]),
    'retail': ('Retail', [BusinessType.LLC, BusinessType.CORPORATION]),
    'ecommerce': ('E-commerce', [BusinessType.LLC]),
    'food_beverage': ('Food & Beverage', [BusinessType.LLC, BusinessType.CORPORATION]),
    'technology': ('Technology Startup', [BusinessType.CORPORATION, BusinessType.LLC]),
    'creative': ('Creative & Media', [BusinessType.LLC, BusinessType.SOLE_PROPRIETORSHIP]),
    'community': ('Community Organization', [BusinessType.NONPROFIT, BusinessType.COOPERATIVE]),
}

US_STATES = (
    'AL', 'AK', 'AZ', 'AR', 'CA', 'CO', 'CT', 'DE', 'DC', 'FL', 'GA', 'HI', 'ID', 'IL', 'IN',
    'IA', 'KS', 'KY', 'LA', 'ME', 'MD', 'MA', 'MI', 'MN', 'MS', 'MO', 'MT', 'NE', 'NV', 'NH',
    'NJ', 'NM', 'NY', 'NC', 'ND', 'OH', 'OK', 'OR', 'PA', 'RI', 'SC', 'SD', 'TN', 'TX', 'UT',
    'VT', 'VA', 'WA', 'WV', 'WI', 'WY',
)
