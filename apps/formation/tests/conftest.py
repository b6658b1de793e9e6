"""
Formation fixtures: a business profile walked through the setup wizard.
"""
from datetime import date

import pytest

ADDRESS = {
    'street1': '100 Market Street',
    'street2': 'Suite 4',
    'city': 'Wilmington',
    'state': 'DE',
    'zip_code': '19801',
}


@pytest.fixture
def profile(tenant, owner_user):
    """An LLC profile with every wizard step answered but formation not yet filed."""
    from apps.formation.services import SetupService

    SetupService.start(
        tenant,
        archetype='professional_services',
        user=owner_user,
        business_name='Acme Ventures LLC',
        email='hello@acme.test',
    )
    SetupService.select_entity_type(tenant, 'llc', owner_user)
    SetupService.select_state(tenant, 'DE', owner_user)
    return SetupService.save_business_info(tenant, {'business_address': ADDRESS}, owner_user)


@pytest.fixture
def filed_profile(profile, tenant, owner_user):
    """The profile after the Secretary of State filing; operations are unlocked."""
    from apps.formation.services import SetupService

    return SetupService.update_formation_status(
        tenant,
        {'formation_status': 'filed', 'formation_date': date(2026, 3, 1)},
        owner_user,
    )


@pytest.fixture
def workflow(profile, tenant, owner_user):
    from apps.formation.services import SetupService

    _, workflow = SetupService.complete(tenant, owner_user)
    return workflow
