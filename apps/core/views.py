"""
Health check views.

GET /health        full status, 503 when the database is down
GET /health/live   process liveness
GET /health/ready  readiness, 503 NOT_READY when the database is down
"""
import logging
import time

from django.conf import settings
from django.core.cache import cache
from django.utils import timezone
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.database import db_connection
from apps.core.exceptions import ApiErrorCode, error_payload

logger = logging.getLogger(__name__)

PROCESS_STARTED_AT = time.monotonic()


def _uptime_seconds():
    return round(time.monotonic() - PROCESS_STARTED_AT, 3)


def _cache_connected():
    try:
        cache.set('health_check', 'ok', timeout=10)
        return cache.get('health_check') == 'ok'
    except Exception:
        logger.error("Cache health check failed", exc_info=True)
        return False


class PublicAPIView(APIView):
    authentication_classes = []
    permission_classes = []


class HealthCheckView(PublicAPIView):
    """
    Health check endpoint reporting version, uptime and dependency state.
    """

    @extend_schema(
        summary="Health check",
        description="Report service version, uptime, and database/cache connectivity.",
        responses={200: dict, 503: dict},
        tags=['Health'],
    )
    def get(self, request):
        db_connected = db_connection.ensure_connected()

        cache_connected = _cache_connected()

        body = {
            'status': 'healthy' if db_connected and cache_connected else 'degraded',
            'version': settings.APP_VERSION,
            'timestamp': timezone.now().isoformat(),
            'uptime': _uptime_seconds(),
            'database': {
                'connected': db_connected,
                'ready_state': db_connection.ready_state(),
            },
            'cache': {
                'connected': cache_connected,
            },
        }
        if not db_connected:
            body['status'] = 'unhealthy'
            return Response(body, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        return Response(body, status=status.HTTP_200_OK)


class LivenessView(PublicAPIView):

    @extend_schema(summary="Liveness check", responses={200: dict}, tags=['Health'])
    def get(self, request):
        return Response({'status': 'alive', 'timestamp': timezone.now().isoformat()})


class ReadinessView(PublicAPIView):

    @extend_schema(summary="Readiness check", responses={200: dict, 503: dict}, tags=['Health'])
    def get(self, request):
        if not db_connection.ensure_connected():
            return Response(
                error_payload(ApiErrorCode.NOT_READY, 'Database not connected'),
                status=status.HTTP_503_SERVICE_UNAVAILABLE
            )
        return Response({'status': 'ready', 'timestamp': timezone.now().isoformat()})
