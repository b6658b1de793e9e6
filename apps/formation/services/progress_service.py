"""
Progress percentages for the setup, formation and operations journeys.
"""
from apps.formation.constants import BankingStatus, ComplianceCalendarStatus, EINStatus, OperatingAgreementStatus


class ProgressService:
    """Pure calculations over a BusinessProfile."""

    # (field, weight)
    SETUP_WEIGHTS = (
        ('business_name', 15),
        ('email', 10),
        ('archetype', 25),
        ('business_type', 25),
        ('formation_state', 25),
    )

    @classmethod
    def setup_progress(cls, profile):
        if profile is None:
            return 0
        total = sum(weight for field, weight in cls.SETUP_WEIGHTS if getattr(profile, field))
        return min(total, 100)

    @classmethod
    def formation_milestones(cls, profile):
        return [
            {
                'key': 'entity_type',
                'label': 'Entity type chosen',
                'complete': bool(profile.business_type),
            },
            {
                'key': 'business_info',
                'label': 'Business information complete',
                'complete': bool(profile.business_name) and profile.has_address,
            },
            {
                'key': 'formation_filed',
                'label': 'Formation filed',
                'complete': profile.formation_filed,
            },
            {
                'key': 'ein_received',
                'label': 'EIN received',
                'complete': profile.ein_status == EINStatus.RECEIVED,
            },
        ]

    @classmethod
    def formation_progress(cls, profile):
        """Each of the four milestones is worth 25%."""
        if profile is None:
            return 0
        return 25 * sum(1 for m in cls.formation_milestones(profile) if m['complete'])

    @classmethod
    def operations_progress(cls, profile):
        """
        Banking 33 + operating agreement 33 + compliance calendar 34.

        Always 0 until formation is filed or approved or the EIN is received.
        """
        if profile is None or not profile.operations_unlocked:
            return 0

        progress = 0
        if profile.banking_status in BankingStatus.DONE:
            progress += 33
        if profile.operating_agreement_status in OperatingAgreementStatus.DONE:
            progress += 33
        if profile.compliance_calendar_status == ComplianceCalendarStatus.ACTIVE:
            progress += 34
        return min(progress, 100)

    @classmethod
    def summary(cls, profile):
        setup = cls.setup_progress(profile)
        formation = cls.formation_progress(profile)
        operations = cls.operations_progress(profile)
        return {
            'overall': round((setup + formation + operations) / 3),
            'setup': setup,
            'formation': formation,
            'operations': operations,
        }
