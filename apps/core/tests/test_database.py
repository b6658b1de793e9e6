"""
Tests for database connection tracking.

Tests:
- DatabaseConnection is a process-wide singleton
- connect/disconnect move the ready state
- is_connected notices a failed ping
"""
from unittest.mock import patch

import pytest
from django.db.utils import OperationalError

from apps.core.database import DatabaseConnection, ReadyState, db_connection


@pytest.mark.django_db
class TestDatabaseConnection:

    @pytest.fixture(autouse=True)
    def reconnect(self):
        yield
        db_connection.connect()

    def test_singleton(self):
        assert DatabaseConnection() is db_connection
        assert DatabaseConnection() is DatabaseConnection()

    def test_connect_is_idempotent(self):
        db_connection.connect()
        db_connection.connect()

        assert db_connection.ready_state() == ReadyState.CONNECTED
        assert db_connection.is_connected() is True

    def test_disconnect(self):
        db_connection.connect()
        db_connection.disconnect()

        assert db_connection.ready_state() == ReadyState.DISCONNECTED
        assert db_connection.is_connected() is False

    def test_failed_ping_marks_disconnected(self):
        db_connection.connect()

        with patch.object(db_connection, '_ping', return_value=False):
            assert db_connection.is_connected() is False

        assert db_connection.ready_state() == ReadyState.DISCONNECTED

    def test_connect_failure_propagates(self):
        db_connection.disconnect()

        with patch.object(db_connection._connection, 'ensure_connection', side_effect=OperationalError('down')):
            with pytest.raises(OperationalError):
                db_connection.connect()

        assert db_connection.ready_state() == ReadyState.DISCONNECTED

    def test_connection_status(self):
        db_connection.connect()

        status = db_connection.get_connection_status()

        assert status['is_connected'] is True
        assert status['ready_state'] == ReadyState.CONNECTED
        assert status['vendor'] == 'sqlite'

    def test_ensure_connected_reconnects_cold_worker(self):
        db_connection._ready_state = ReadyState.DISCONNECTED

        assert db_connection.ensure_connected() is True
        assert db_connection.ready_state() == ReadyState.CONNECTED

    def test_ensure_connected_reports_failure(self):
        db_connection.disconnect()

        with patch.object(db_connection._connection, 'ensure_connection', side_effect=OperationalError('down')):
            assert db_connection.ensure_connected() is False

        assert db_connection.ready_state() == ReadyState.DISCONNECTED
