"""
Built-in document templates.

Template content uses ``{{key}}`` merge fields. Each merge field names the
business profile attribute it is read from (or None) and a default;
``date``, ``year`` and ``effective_date`` are always supplied by the
generator.
"""
from apps.formation.constants import BusinessType, DocumentType

ARTICLES_OF_ORGANIZATION = """ARTICLES OF ORGANIZATION
OF
{{business_name}}

A Limited Liability Company

ARTICLE I - NAME
The name of the Limited Liability Company is {{business_name}}.

ARTICLE II - FORMATION
The undersigned hereby establishes a Limited Liability Company pursuant to
the laws of the State of {{formation_state}}.

ARTICLE III - EFFECTIVE DATE
These Articles of Organization shall be effective upon filing with the
Secretary of State, unless a delayed effective date is specified: {{effective_date}}.

ARTICLE IV - REGISTERED AGENT
The name and address of the registered agent in the State of {{formation_state}} is:

Name: {{registered_agent_name}}
Address: {{registered_agent_address}}

ARTICLE V - MANAGEMENT
The Limited Liability Company shall be {{management_type}}.

ARTICLE VI - PRINCIPAL OFFICE
{{business_address}}

IN WITNESS WHEREOF, the undersigned organizer has executed these Articles
of Organization on {{date}}.

_______________________________
{{organizer_name}}, Organizer
"""

ARTICLES_OF_INCORPORATION = """ARTICLES OF INCORPORATION
OF
{{business_name}}

ARTICLE I - NAME
The name of the corporation is {{business_name}}.

ARTICLE II - REGISTERED AGENT
The registered agent of the corporation in the State of {{formation_state}} is
{{registered_agent_name}}, located at {{registered_agent_address}}.

ARTICLE III - PURPOSE
The purpose of the corporation is to engage in any lawful act or activity
for which corporations may be organized under the laws of {{formation_state}}.

ARTICLE IV - AUTHORIZED SHARES
The corporation is authorized to issue {{authorized_shares}} shares of common
stock with a par value of {{par_value}} per share.

ARTICLE V - PRINCIPAL OFFICE
{{business_address}}

ARTICLE VI - INCORPORATOR
{{incorporator_name}}

Executed on {{date}}.
"""

OPERATING_AGREEMENT = """OPERATING AGREEMENT
OF
{{business_name}}

This Operating Agreement is entered into as of {{effective_date}} by the
members of {{business_name}}, a {{formation_state}} limited liability company.

1. FORMATION
The Company was formed under the laws of the State of {{formation_state}}.

2. PRINCIPAL OFFICE
{{business_address}}

3. MEMBERS
{{member_names}}

4. CAPITAL CONTRIBUTIONS
Initial capital contributions total {{initial_capital}}.

5. MANAGEMENT
The Company shall be {{management_type}}.

6. TAX IDENTIFICATION
Employer Identification Number: {{ein}}

Signed on {{date}}, {{year}}.
"""

BYLAWS = """BYLAWS
OF
{{business_name}}

ARTICLE I - OFFICES
The principal office of the corporation is {{business_address}}.

ARTICLE II - SHAREHOLDERS
The annual meeting of shareholders shall be held each year in {{annual_meeting_month}}.

ARTICLE III - DIRECTORS
The number of directors shall be {{number_of_directors}}.

ARTICLE IV - OFFICERS
The officers of the corporation shall be a President, a Secretary and a Treasurer.

ARTICLE V - FISCAL YEAR
The fiscal year of the corporation shall end on {{fiscal_year_end}}.

Adopted on {{date}}.
"""

BANKING_RESOLUTION = """RESOLUTION OF {{business_name}}
AUTHORIZING THE OPENING OF A BANK ACCOUNT

RESOLVED, that {{business_name}} (EIN {{ein}}) is authorized to open a
business deposit account with {{bank_name}}.

RESOLVED FURTHER, that {{authorized_signer}} is authorized to sign checks and
withdrawals on behalf of the company.

Adopted on {{date}}.
"""

TEMPLATES = {
    'articles_of_organization': {
        'name': 'Articles of Organization',
        'description': 'State filing that forms a limited liability company.',
        'document_type': DocumentType.ARTICLES_OF_ORGANIZATION,
        'version': 1,
        'business_types': [BusinessType.LLC],
        'content': ARTICLES_OF_ORGANIZATION,
        'merge_fields': [
            ('business_name', 'business_name', ''),
            ('formation_state', 'formation_state', ''),
            ('management_type', None, 'member-managed'),
            ('organizer_name', None, ''),
        ],
    },
    'articles_of_incorporation': {
        'name': 'Articles of Incorporation',
        'description': 'State filing that forms a corporation.',
        'document_type': DocumentType.ARTICLES_OF_INCORPORATION,
        'version': 1,
        'business_types': [BusinessType.CORPORATION],
        'content': ARTICLES_OF_INCORPORATION,
        'merge_fields': [
            ('business_name', 'business_name', ''),
            ('formation_state', 'formation_state', ''),
            ('authorized_shares', None, '10,000,000'),
            ('par_value', None, '$0.0001'),
            ('incorporator_name', None, ''),
        ],
    },
    'operating_agreement': {
        'name': 'Operating Agreement',
        'description': 'Internal agreement governing LLC ownership and management.',
        'document_type': DocumentType.OPERATING_AGREEMENT,
        'version': 1,
        'business_types': [BusinessType.LLC],
        'content': OPERATING_AGREEMENT,
        'merge_fields': [
            ('business_name', 'business_name', ''),
            ('formation_state', 'formation_state', ''),
            ('ein', 'ein', ''),
            ('member_names', None, ''),
            ('initial_capital', None, '$0.00'),
            ('management_type', None, 'member-managed'),
        ],
    },
    'bylaws': {
        'name': 'Corporate Bylaws',
        'description': 'Rules governing the internal affairs of a corporation.',
        'document_type': DocumentType.BYLAWS,
        'version': 1,
        'business_types': [BusinessType.CORPORATION, BusinessType.NONPROFIT],
        'content': BYLAWS,
        'merge_fields': [
            ('business_name', 'business_name', ''),
            ('annual_meeting_month', None, 'January'),
            ('number_of_directors', None, '1'),
            ('fiscal_year_end', None, 'December 31'),
        ],
    },
    'banking_resolution': {
        'name': 'Banking Resolution',
        'description': 'Authorizes opening a business bank account.',
        'document_type': DocumentType.RESOLUTION,
        'version': 1,
        'business_types': [],
        'content': BANKING_RESOLUTION,
        'merge_fields': [
            ('business_name', 'business_name', ''),
            ('ein', 'ein', ''),
            ('bank_name', 'bank_name', ''),
            ('authorized_signer', None, ''),
        ],
    },
}


def get_template(key):
    return TEMPLATES.get(key)


def templates_for(business_type=None):
    """Templates applicable to ``business_type`` (all when empty)."""
    return [
        {'key': key, **template}
        for key, template in TEMPLATES.items()
        if not business_type or not template['business_types'] or business_type in template['business_types']
    ]
