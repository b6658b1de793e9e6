"""
Property-based tests for document template rendering.

Property: every merge field is replaced, known fields by their value and
unknown or empty fields by a blank line, and no placeholder survives.
"""
import string

from hypothesis import HealthCheck, given, settings, strategies as st

from apps.formation.services.document_service import BLANK, render_template

field_names = st.from_regex(r'[a-z][a-z_]{0,11}', fullmatch=True)
field_values = st.text(alphabet=string.ascii_letters + string.digits + ' .,', min_size=1, max_size=20)


@settings(max_examples=150, suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(merge_data=st.dictionaries(keys=field_names, values=field_values, min_size=1, max_size=6))
def test_known_fields_are_replaced(merge_data):
    template = ' | '.join(f'{{{{{key}}}}}' for key in merge_data)

    rendered = render_template(template, merge_data)

    assert rendered == ' | '.join(merge_data.values())
    assert '{{' not in rendered


@settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(
    merge_data=st.dictionaries(keys=field_names, values=field_values, max_size=4),
    missing=field_names,
)
def test_missing_fields_become_blanks(merge_data, missing):
    merge_data.pop(missing, None)

    rendered = render_template(f'Name: {{{{ {missing} }}}}', merge_data)

    assert rendered == f'Name: {BLANK}'


@settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(key=field_names)
def test_empty_value_becomes_blank(key):
    assert render_template(f'{{{{{key}}}}}', {key: ''}) == BLANK
