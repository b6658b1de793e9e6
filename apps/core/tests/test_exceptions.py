"""
Tests for the API error envelope.

Tests:
- AppException subclasses map to their code and status
- DRF exceptions are rewritten into the envelope
- Rate limit responses carry Retry-After
- Unhandled exceptions become INTERNAL_ERROR and are reported
"""
from unittest.mock import patch

import pytest
from django.test import RequestFactory
from django_ratelimit.exceptions import Ratelimited
from rest_framework import exceptions as drf_exceptions

from apps.core.exceptions import (
    AlreadyExists,
    Conflict,
    Forbidden,
    InvalidCredentials,
    InvalidTransition,
    NotFound,
    PrerequisitesNotMet,
    TenantAccessDenied,
    TenantNotFound,
    TokenExpired,
    ValidationFailed,
    custom_exception_handler,
    error_payload,
)


@pytest.fixture
def context():
    request = RequestFactory().get('/v1/formation/status')
    request.request_id = 'req-1'
    return {'request': request}


class TestErrorPayload:

    def test_minimal(self):
        assert error_payload('NOT_FOUND', 'Task not found') == {
            'error': {'code': 'NOT_FOUND', 'message': 'Task not found'},
        }

    def test_with_details_and_request_id(self):
        payload = error_payload('VALIDATION_ERROR', 'Bad', {'name': ['required']}, 'req-9')

        assert payload['error']['details'] == {'name': ['required']}
        assert payload['request_id'] == 'req-9'


class TestAppExceptions:

    @pytest.mark.parametrize('exc,status,code', [
        (ValidationFailed('Bad input'), 400, 'VALIDATION_ERROR'),
        (InvalidTransition('No'), 400, 'INVALID_TRANSITION'),
        (PrerequisitesNotMet('Later'), 400, 'PREREQUISITES_NOT_MET'),
        (InvalidCredentials('Invalid email or password'), 401, 'INVALID_CREDENTIALS'),
        (TokenExpired('Token has expired'), 401, 'TOKEN_EXPIRED'),
        (Forbidden('No'), 403, 'FORBIDDEN'),
        (TenantAccessDenied('No'), 403, 'TENANT_ACCESS_DENIED'),
        (TenantNotFound(), 404, 'TENANT_NOT_FOUND'),
        (Conflict('Taken'), 409, 'CONFLICT'),
        (AlreadyExists('Taken'), 409, 'ALREADY_EXISTS'),
    ])
    def test_status_and_code(self, context, exc, status, code):
        response = custom_exception_handler(exc, context)

        assert response.status_code == status
        assert response.data['error']['code'] == code
        assert response.data['request_id'] == 'req-1'

    def test_not_found_message(self, context):
        response = custom_exception_handler(NotFound('Business profile'), context)

        assert response.data['error']['message'] == 'Business profile not found'

    def test_details_are_passed_through(self, context):
        exc = InvalidTransition('Invalid status transition', {'from': 'draft', 'to': 'final'})

        response = custom_exception_handler(exc, context)

        assert response.data['error']['details'] == {'from': 'draft', 'to': 'final'}


class TestDrfExceptions:

    def test_validation_error(self, context):
        exc = drf_exceptions.ValidationError({'title': ['This field is required.']})

        response = custom_exception_handler(exc, context)

        assert response.status_code == 400
        assert response.data['error']['code'] == 'VALIDATION_ERROR'
        assert response.data['error']['details'] == {'title': ['This field is required.']}

    def test_permission_denied(self, context):
        response = custom_exception_handler(drf_exceptions.PermissionDenied(), context)

        assert response.status_code == 403
        assert response.data['error']['code'] == 'FORBIDDEN'

    def test_not_authenticated(self, context):
        response = custom_exception_handler(drf_exceptions.NotAuthenticated(), context)

        assert response.status_code == 401
        assert response.data['error']['code'] == 'UNAUTHORIZED'

    def test_parse_error(self, context):
        response = custom_exception_handler(drf_exceptions.ParseError('Malformed JSON'), context)

        assert response.data['error'] == {'code': 'INVALID_INPUT', 'message': 'Malformed JSON'}


class TestRateLimitAndUnhandled:

    def test_rate_limited(self, context):
        response = custom_exception_handler(Ratelimited(), context)

        assert response.status_code == 429
        assert response['Retry-After'] == '60'
        assert response.data['error']['details'] == {'retry_after': 60}

    def test_register_rate_limit_window(self):
        request = RequestFactory().post('/v1/auth/register')

        response = custom_exception_handler(Ratelimited(), {'request': request})

        assert response['Retry-After'] == '3600'

    def test_unhandled_exception(self, context):
        with patch('apps.core.sentry_utils.capture_exception') as capture:
            response = custom_exception_handler(ValueError('boom'), context)

        assert response.status_code == 500
        assert response.data['error']['code'] == 'INTERNAL_ERROR'
        assert 'boom' not in response.data['error']['message']
        capture.assert_called_once()
