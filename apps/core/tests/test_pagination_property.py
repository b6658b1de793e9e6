"""
Property-based tests for pagination metadata and log redaction.

Property: pagination flags agree with total_pages for every page/limit/total,
and redacted keys never carry their original value.
"""
from hypothesis import HealthCheck, given, settings, strategies as st

from apps.core.log_sanitizer import sanitize_dict_for_logging
from apps.core.pagination import build_pagination_meta


@settings(max_examples=200, suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(
    page=st.integers(min_value=1, max_value=50),
    limit=st.integers(min_value=1, max_value=100),
    total=st.integers(min_value=0, max_value=10000),
)
def test_pagination_flags_match_total_pages(page, limit, total):
    meta = build_pagination_meta(page, limit, total)

    assert meta['total_pages'] * limit >= total
    assert (meta['total_pages'] - 1) * limit < total or total == 0
    assert meta['has_next'] == (page < meta['total_pages'])
    assert meta['has_prev'] == (page > 1)


@settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(
    data=st.dictionaries(
        keys=st.sampled_from(['name', 'email', 'role', 'status', 'scopes']),
        values=st.text(max_size=30),
        max_size=5,
    ),
    secret=st.text(min_size=1, max_size=40),
)
def test_secrets_never_survive_redaction(data, secret):
    payload = dict(data, password=secret, nested={'api_key': secret})

    sanitized = sanitize_dict_for_logging(payload)

    assert sanitized['password'] == '[REDACTED]'
    assert sanitized['nested'] == {'api_key': '[REDACTED]'}
    assert {k: v for k, v in sanitized.items() if k in data} == data
