"""
Tests for health check views.

Tests:
- /health reports version, uptime and dependency state
- /health/live always answers
- /health/ready answers 503 NOT_READY while the database is down
"""
from unittest.mock import patch

import pytest
from django.conf import settings
from django.urls import reverse
from rest_framework.test import APIClient

from apps.core.database import ReadyState, db_connection


@pytest.fixture(autouse=True)
def connected_db(db):
    db_connection.connect()
    yield
    db_connection.connect()


@pytest.mark.django_db
class TestHealthCheckView:

    def test_healthy(self):
        response = APIClient().get(reverse('health-check'))

        assert response.status_code == 200
        assert response.data['status'] == 'healthy'
        assert response.data['version'] == settings.APP_VERSION
        assert response.data['uptime'] >= 0
        assert response.data['database'] == {'connected': True, 'ready_state': ReadyState.CONNECTED}
        assert response.data['cache'] == {'connected': True}

    def test_no_auth_required(self):
        response = APIClient().get('/health', HTTP_AUTHORIZATION='Bearer garbage')

        assert response.status_code == 200

    def test_database_down(self):
        with patch.object(db_connection, '_ping', return_value=False):
            response = APIClient().get(reverse('health-check'))

        assert response.status_code == 503
        assert response.data['status'] == 'unhealthy'
        assert response.data['database']['connected'] is False

    def test_cold_start_reconnects(self):
        db_connection._ready_state = ReadyState.DISCONNECTED

        response = APIClient().get(reverse('health-check'))

        assert response.status_code == 200
        assert response.data['database'] == {'connected': True, 'ready_state': ReadyState.CONNECTED}

    def test_cache_down_is_degraded(self):
        with patch('apps.core.views._cache_connected', return_value=False):
            response = APIClient().get(reverse('health-check'))

        assert response.status_code == 200
        assert response.data['status'] == 'degraded'

    def test_request_id_header(self):
        response = APIClient().get(reverse('health-check'), HTTP_X_REQUEST_ID='trace-42')

        assert response['X-Request-ID'] == 'trace-42'


@pytest.mark.django_db
class TestProbes:

    def test_liveness(self):
        response = APIClient().get(reverse('health-live'))

        assert response.status_code == 200
        assert response.data['status'] == 'alive'

    def test_ready(self):
        response = APIClient().get(reverse('health-ready'))

        assert response.status_code == 200
        assert response.data['status'] == 'ready'

    def test_ready_on_cold_start(self):
        db_connection._ready_state = ReadyState.DISCONNECTED

        response = APIClient().get(reverse('health-ready'))

        assert response.status_code == 200
        assert db_connection.ready_state() == ReadyState.CONNECTED

    def test_not_ready(self):
        with patch.object(db_connection, '_ping', return_value=False):
            response = APIClient().get(reverse('health-ready'))

        assert response.status_code == 503
        assert response.data['error']['code'] == 'NOT_READY'
