"""
Database connection state tracking.

Django opens connections lazily per thread; this module keeps a single
process-wide view of whether the default database is reachable so health
checks can answer without touching the ORM layer.
"""
import logging
import threading

from django.db import DEFAULT_DB_ALIAS, connections
from django.db.backends.signals import connection_created
from django.db.utils import DatabaseError

logger = logging.getLogger(__name__)


class ReadyState:
    DISCONNECTED = 0
    CONNECTED = 1
    CONNECTING = 2
    DISCONNECTING = 3


class DatabaseConnection:
    """
    Singleton tracking the default database connection.

    Use the module-level ``db_connection`` instance rather than
    constructing this class.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls, alias=DEFAULT_DB_ALIAS):
        with cls._lock:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance.alias = alias
                instance._ready_state = ReadyState.DISCONNECTED
                cls._instance = instance
        return cls._instance

    @property
    def _connection(self):
        return connections[self.alias]

    def connect(self):
        """
        Open the connection and verify it with a round trip.

        Calling connect() while already connected is a no-op.
        """
        if self._ready_state == ReadyState.CONNECTED and self._ping():
            logger.debug("Database already connected")
            return

        self._ready_state = ReadyState.CONNECTING
        try:
            self._connection.ensure_connection()
        except DatabaseError:
            self._ready_state = ReadyState.DISCONNECTED
            logger.error("Database connection failed", exc_info=True)
            raise

        self._ready_state = ReadyState.CONNECTED
        logger.info(
            "Database connected",
            extra={'db_vendor': self._connection.vendor, 'db_name': self._settings_name()}
        )

    def disconnect(self):
        """Close the connection for the current thread."""
        if self._ready_state == ReadyState.DISCONNECTED:
            return
        self._ready_state = ReadyState.DISCONNECTING
        self._connection.close()
        self._ready_state = ReadyState.DISCONNECTED
        logger.info("Database disconnected")

    def mark_connected(self):
        self._ready_state = ReadyState.CONNECTED

    def ready_state(self):
        return self._ready_state

    def is_connected(self):
        """True when tracked as connected and a ``SELECT 1`` succeeds."""
        if self._ready_state != ReadyState.CONNECTED:
            return False
        if self._ping():
            return True
        self._ready_state = ReadyState.DISCONNECTED
        return False

    def ensure_connected(self):
        """
        Report connectivity, reconnecting first when the tracked state is down.

        A fresh worker has not opened a connection yet, so health checks must try
        before reporting the database as unavailable.
        """
        if self.is_connected():
            return True
        try:
            self.connect()
        except DatabaseError:
            return False
        return self.is_connected()

    def get_connection_status(self):
        settings_dict = self._connection.settings_dict
        return {
            'is_connected': self.is_connected(),
            'ready_state': self._ready_state,
            'host': settings_dict.get('HOST') or 'localhost',
            'name': self._settings_name(),
            'vendor': self._connection.vendor,
        }

    def _settings_name(self):
        return str(self._connection.settings_dict.get('NAME') or '')

    def _ping(self):
        try:
            with self._connection.cursor() as cursor:
                cursor.execute("SELECT 1")
            return True
        except DatabaseError:
            logger.warning("Database ping failed", exc_info=True)
            return False


db_connection = DatabaseConnection()


def _on_connection_created(sender, connection, **kwargs):
    if connection.alias == db_connection.alias:
        db_connection.mark_connected()


connection_created.connect(_on_connection_created, dispatch_uid='core.database.connection_created')
