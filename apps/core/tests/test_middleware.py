"""
Tests for request ID tracing.

Tests:
- X-Request-ID is honored or generated and echoed back
- LoggingFilter stamps request_id and tenant_id onto log records
"""
import logging
import uuid

from django.http import HttpResponse
from django.test import RequestFactory

from apps.core.middleware import (
    LoggingFilter,
    RequestIDMiddleware,
    get_current_request_id,
    set_current_tenant_id,
)


def _record():
    return logging.LogRecord('apps.formation', logging.INFO, __file__, 1, 'event', None, None)


class TestRequestIDMiddleware:

    def test_uses_incoming_header(self):
        middleware = RequestIDMiddleware(lambda request: HttpResponse())
        request = RequestFactory().get('/health', HTTP_X_REQUEST_ID='trace-1')

        response = middleware(request)

        assert request.request_id == 'trace-1'
        assert response['X-Request-ID'] == 'trace-1'

    def test_generates_id(self):
        middleware = RequestIDMiddleware(lambda request: HttpResponse())
        request = RequestFactory().get('/health')

        response = middleware(request)

        assert uuid.UUID(response['X-Request-ID'])

    def test_truncates_long_id(self):
        middleware = RequestIDMiddleware(lambda request: HttpResponse())
        request = RequestFactory().get('/health', HTTP_X_REQUEST_ID='x' * 500)

        middleware(request)

        assert len(request.request_id) == 100

    def test_request_id_cleared_after_response(self):
        seen = {}

        def view(request):
            seen['request_id'] = get_current_request_id()
            return HttpResponse()

        RequestIDMiddleware(view)(RequestFactory().get('/health', HTTP_X_REQUEST_ID='trace-2'))

        assert seen['request_id'] == 'trace-2'
        assert get_current_request_id() is None


class TestLoggingFilter:

    def test_stamps_record_during_request(self):
        records = []

        def view(request):
            set_current_tenant_id('tenant-9')
            record = _record()
            LoggingFilter().filter(record)
            records.append(record)
            return HttpResponse()

        RequestIDMiddleware(view)(RequestFactory().get('/v1/tasks', HTTP_X_REQUEST_ID='trace-3'))

        assert records[0].request_id == 'trace-3'
        assert records[0].tenant_id == 'tenant-9'

    def test_keeps_explicit_values(self):
        record = _record()
        record.request_id = 'explicit'

        assert LoggingFilter().filter(record) is True
        assert record.request_id == 'explicit'
        assert record.tenant_id is None
